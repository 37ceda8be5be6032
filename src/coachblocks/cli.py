from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

from coachblocks.blocks import extract_message, load_config
from coachblocks.blocks.partial import detect_partial
from coachblocks.blocks.stream import StreamAccumulator, split_chunks
from coachblocks.core.tracing import TraceWriter


def _resolve_data_root() -> Path:
    env_root = os.getenv("COACHBLOCKS_DATA_ROOT")
    if env_root:
        return Path(env_root)
    return Path("data")


def _build_tracer(args: argparse.Namespace) -> TraceWriter | None:
    trace_id = getattr(args, "trace", None)
    if not trace_id:
        return None
    try:
        return TraceWriter(trace_id, base_dir=_resolve_data_root() / "traces")
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc


def _read_input(args: argparse.Namespace) -> str:
    if getattr(args, "text", None) is not None:
        return args.text
    if getattr(args, "file", None):
        path = Path(args.file)
        if not path.exists():
            raise SystemExit(f"input file not found: {path}")
        return path.read_text(encoding="utf-8")
    return sys.stdin.read()


def _extract_command(args: argparse.Namespace) -> int:
    config = load_config()
    result = extract_message(_read_input(args), config, tracer=_build_tracer(args))
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(result.cleaned_text)
    return 0


def _partial_command(args: argparse.Namespace) -> int:
    kind = detect_partial(_read_input(args), load_config())
    print(kind or "none")
    return 0


def _stream_command(args: argparse.Namespace) -> int:
    text = _read_input(args)
    try:
        chunks = split_chunks(text, args.chunk_size)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    accumulator = StreamAccumulator(config=load_config(), tracer=_build_tracer(args))
    for chunk in chunks:
        frame = accumulator.feed(chunk)
        status = frame.loading_label or "-"
        print(f"[{frame.index}] {frame.text_length} chars {status}")
    result = accumulator.finish()
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


def _fields_command(args: argparse.Namespace) -> int:
    config = load_config()
    for name in sorted(config.suggestion_fields):
        print(f"{name}\t{config.label_for(name)}")
    return 0


def _serve_command(args: argparse.Namespace) -> int:
    try:
        import uvicorn
    except ImportError as exc:
        raise SystemExit("uvicorn is required to run the service") from exc
    uvicorn.run("coachblocks.api.app:create_app", host=args.host, port=args.port, factory=True)
    return 0


def _add_input_args(parser: argparse.ArgumentParser) -> None:
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--text")
    source.add_argument("--file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="coachblocks")
    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser("extract", help="Extract blocks from a message")
    _add_input_args(extract_parser)
    extract_parser.add_argument("--json", action="store_true")
    extract_parser.add_argument("--trace")
    extract_parser.set_defaults(func=_extract_command)

    partial_parser = subparsers.add_parser("partial", help="Report an in-progress block")
    _add_input_args(partial_parser)
    partial_parser.set_defaults(func=_partial_command)

    stream_parser = subparsers.add_parser("stream", help="Replay a message in chunks")
    _add_input_args(stream_parser)
    stream_parser.add_argument("--chunk-size", type=int, default=16)
    stream_parser.add_argument("--trace")
    stream_parser.set_defaults(func=_stream_command)

    fields_parser = subparsers.add_parser("fields", help="List suggestion target fields")
    fields_parser.set_defaults(func=_fields_command)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.set_defaults(func=_serve_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())

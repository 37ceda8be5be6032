from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List

from coachblocks.blocks.cleaner import clean_text
from coachblocks.blocks.config import DEFAULT_CONFIG, ExtractorConfig
from coachblocks.blocks.extract import MessageExtraction, extract_message
from coachblocks.blocks.partial import detect_partial, partial_label
from coachblocks.core.tracing import TraceWriter, emit


@dataclass(slots=True)
class StreamFrame:
    index: int
    text_length: int
    visible_text: str
    partial_kind: str | None
    loading_label: str | None


@dataclass(slots=True)
class StreamAccumulator:
    """Accumulates a live response and re-scans the whole text on every chunk."""

    config: ExtractorConfig = DEFAULT_CONFIG
    tracer: TraceWriter | None = None
    text: str = ""
    frames: List[StreamFrame] = field(default_factory=list)

    def feed(self, chunk: str) -> StreamFrame:
        self.text += chunk
        kind = detect_partial(self.text, self.config)
        frame = StreamFrame(
            index=len(self.frames),
            text_length=len(self.text),
            visible_text=clean_text(self.text, self.config),
            partial_kind=kind,
            loading_label=partial_label(kind),
        )
        if kind is not None and (not self.frames or self.frames[-1].partial_kind != kind):
            emit(self.tracer, "partial_block_started", {"kind": kind, "offset": len(self.text)})
        self.frames.append(frame)
        return frame

    def finish(self) -> MessageExtraction:
        return extract_message(self.text, self.config, tracer=self.tracer)


def split_chunks(text: str, size: int) -> list[str]:
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [text[index : index + size] for index in range(0, len(text), size)]


def replay(
    chunks: Iterable[str],
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    tracer: TraceWriter | None = None,
) -> Iterator[StreamFrame]:
    accumulator = StreamAccumulator(config=config, tracer=tracer)
    for chunk in chunks:
        yield accumulator.feed(chunk)

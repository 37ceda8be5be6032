from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from coachblocks.blocks import ExtractorConfig, extract_message, load_config
from coachblocks.blocks.partial import detect_partial, partial_label
from coachblocks.core.tracing import TRACE_ID_PATTERN, TraceWriter


class ExtractRequest(BaseModel):
    text: str
    trace_id: str | None = Field(default=None, pattern=TRACE_ID_PATTERN)


class PartialRequest(BaseModel):
    text: str


def _resolve_data_root(data_root: Path | None) -> Path:
    if data_root is not None:
        return data_root
    env_root = os.getenv("COACHBLOCKS_DATA_ROOT")
    if env_root:
        return Path(env_root)
    return Path("data")


def create_app(
    data_root: Path | None = None, config: ExtractorConfig | None = None
) -> FastAPI:
    root = _resolve_data_root(data_root)
    extractor_config = config or load_config()

    app = FastAPI()
    app.state.data_root = root
    app.state.config = extractor_config

    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        token = os.getenv("COACHBLOCKS_API_TOKEN")
        if token:
            header = request.headers.get("X-Api-Token")
            if header != token:
                return JSONResponse(status_code=401, content={"detail": "Invalid API token"})
        return await call_next(request)

    @app.post("/api/extract")
    async def extract(payload: ExtractRequest) -> dict[str, Any]:
        tracer = None
        if payload.trace_id:
            tracer = TraceWriter(payload.trace_id, base_dir=root / "traces")
        result = extract_message(payload.text, extractor_config, tracer=tracer)
        return result.to_dict()

    @app.post("/api/partial")
    async def partial(payload: PartialRequest) -> dict[str, Any]:
        kind = detect_partial(payload.text, extractor_config)
        return {"partial_kind": kind, "label": partial_label(kind)}

    @app.get("/api/fields")
    async def fields() -> dict[str, Any]:
        return {
            "fields": {
                name: extractor_config.label_for(name)
                for name in sorted(extractor_config.suggestion_fields)
            }
        }

    return app

from __future__ import annotations

from typing import Iterable

from coachblocks.blocks.config import DEFAULT_CONFIG, ExtractorConfig
from coachblocks.blocks.matcher import find_all_blocks
from coachblocks.core.types import COMPLETE, PARTIAL, TextBlock


def _merge_spans(spans: Iterable[tuple[int, int]]) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for start, end in sorted(spans):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def remove_spans(text: str, spans: Iterable[tuple[int, int]]) -> str:
    segments: list[str] = []
    last_index = 0
    for start, end in _merge_spans(spans):
        segment = text[last_index:start]
        if text[end : end + 1] in (" ", "\t"):
            # one gap where a span sat inline between words
            segment = segment.rstrip(" \t")
        segments.append(segment)
        last_index = end
    segments.append(text[last_index:])
    return "".join(segments)


def strip_blocks(text: str, blocks: Iterable[TextBlock]) -> str:
    """Remove the complete blocks in ``blocks`` and trim what is left."""
    spans = [(block.start, block.end) for block in blocks if block.state == COMPLETE]
    if not spans:
        return text
    return remove_spans(text, spans).strip()


def partial_cut(blocks: Iterable[TextBlock]) -> int | None:
    starts = [block.start for block in blocks if block.state == PARTIAL]
    return min(starts) if starts else None


def clean_text(
    text: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    extra_spans: Iterable[tuple[int, int]] = (),
) -> str:
    """Return display-safe prose with every structured block removed.

    Complete blocks are cut out with their fences and trailing whitespace.
    Anything from the opening fence of a still-streaming block onward is
    dropped. ``extra_spans`` are removed as well (bare suggestion objects).
    """
    blocks = find_all_blocks(text, config)
    extra = list(extra_spans)
    if not blocks and not extra:
        return text

    cut = partial_cut(blocks)
    limit = len(text) if cut is None else cut
    spans = [
        (block.start, min(block.end, limit))
        for block in blocks
        if block.state == COMPLETE and block.start < limit
    ]
    spans.extend((start, min(end, limit)) for start, end in extra if start < limit)
    return remove_spans(text[:limit], spans).strip()

from __future__ import annotations

from coachblocks.blocks.config import DEFAULT_CONFIG, BlockSpec, ExtractorConfig
from coachblocks.core.types import COMPLETE, PARTIAL, TextBlock

FENCE = "```"
CLOSING_FENCE = "\n```"


def _find_opening(text: str, tag: str, start: int = 0) -> int:
    needle = f"{FENCE}{tag}"
    index = text.find(needle, start)
    while index != -1:
        after = index + len(needle)
        if after == len(text) or text[after].isspace():
            return index
        index = text.find(needle, index + 1)
    return -1


def next_opening(text: str, start: int, config: ExtractorConfig = DEFAULT_CONFIG) -> int:
    """Index of the earliest known opening fence at or after ``start``, else len(text)."""
    positions = [_find_opening(text, tag, start) for tag in config.tags]
    found = [position for position in positions if position != -1]
    return min(found) if found else len(text)


def _skip_whitespace(text: str, index: int) -> int:
    while index < len(text) and text[index].isspace():
        index += 1
    return index


def _match_at(
    text: str, spec: BlockSpec, open_index: int, config: ExtractorConfig
) -> TextBlock:
    header_end = open_index + len(FENCE) + len(spec.tag)
    newline = text.find("\n", header_end)
    if newline == -1:
        return TextBlock(spec.kind, spec.tag, PARTIAL, open_index, len(text))

    scope_end = next_opening(text, newline + 1, config)
    if spec.greedy:
        close_index = text.rfind(CLOSING_FENCE, newline, scope_end)
    else:
        close_index = text.find(CLOSING_FENCE, newline, scope_end)
    if close_index == -1:
        return TextBlock(spec.kind, spec.tag, PARTIAL, open_index, len(text))

    payload = text[newline + 1 : close_index]
    end = _skip_whitespace(text, close_index + len(CLOSING_FENCE))
    return TextBlock(spec.kind, spec.tag, COMPLETE, open_index, end, payload)


def _iter_spec_blocks(text: str, spec: BlockSpec, config: ExtractorConfig) -> list[TextBlock]:
    blocks: list[TextBlock] = []
    position = 0
    while True:
        open_index = _find_opening(text, spec.tag, position)
        if open_index == -1:
            return blocks
        block = _match_at(text, spec, open_index, config)
        blocks.append(block)
        if block.state == PARTIAL:
            return blocks
        position = block.end


def find_blocks(
    text: str,
    kind: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    include_legacy: bool = True,
) -> list[TextBlock]:
    blocks: list[TextBlock] = []
    for spec in config.specs_for(kind):
        if spec.legacy and not include_legacy:
            continue
        blocks.extend(_iter_spec_blocks(text, spec, config))
    blocks.sort(key=lambda block: block.start)
    return blocks


def find_block(
    text: str,
    kind: str,
    config: ExtractorConfig = DEFAULT_CONFIG,
    *,
    include_legacy: bool = True,
) -> TextBlock | None:
    blocks = find_blocks(text, kind, config, include_legacy=include_legacy)
    return blocks[0] if blocks else None


def find_all_blocks(text: str, config: ExtractorConfig = DEFAULT_CONFIG) -> list[TextBlock]:
    blocks: list[TextBlock] = []
    for spec in config.block_specs:
        blocks.extend(_iter_spec_blocks(text, spec, config))
    blocks.sort(key=lambda block: block.start)
    return blocks

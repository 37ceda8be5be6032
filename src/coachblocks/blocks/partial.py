from __future__ import annotations

from coachblocks.blocks.config import DEFAULT_CONFIG, PARTIAL_LABELS, ExtractorConfig
from coachblocks.blocks.matcher import find_blocks
from coachblocks.core.types import ABSENT, COMPLETE, PARTIAL


def block_state(text: str, kind: str, config: ExtractorConfig = DEFAULT_CONFIG) -> str:
    blocks = find_blocks(text, kind, config)
    if not blocks:
        return ABSENT
    if any(block.state == PARTIAL for block in blocks):
        return PARTIAL
    return COMPLETE


def detect_partial(text: str, config: ExtractorConfig = DEFAULT_CONFIG) -> str | None:
    """Kind of the block still streaming in ``text``, or None.

    Kinds are checked in config order, so a partial score block wins over a
    partial suggestion block.
    """
    for kind in config.kinds:
        if block_state(text, kind, config) == PARTIAL:
            return kind
    return None


def partial_label(kind: str | None) -> str | None:
    if kind is None:
        return None
    return PARTIAL_LABELS.get(kind)

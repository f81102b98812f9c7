from __future__ import annotations

import logging

from tally_audit.core.models import PollWindowState

logger = logging.getLogger(__name__)

# Blocks to stay behind head while a poll is open, so the subgraph has
# finished indexing the blocks we read at.
SAFETY_MARGIN_BLOCKS = 10


def resolve_poll_window(
    head_block: int, end_block: int, safety_margin: int = SAFETY_MARGIN_BLOCKS
) -> PollWindowState:
    """
    Pick the single block height every stake lookup in a run is read at.

    An open poll (head before its end block) is read ``safety_margin`` blocks
    behind head. A closed poll is read at exactly its end block.

    Args:
        head_block: Latest block number reported by the node
        end_block: The poll contract's configured end block
        safety_margin: Blocks to trail head by while the poll is open

    Returns:
        Immutable PollWindowState shared by every lookup in the run
    """
    is_active = head_block < end_block
    evaluation_block = max(head_block - safety_margin, 0) if is_active else end_block
    window = PollWindowState(
        is_active=is_active,
        evaluation_block=evaluation_block,
        head_block=head_block,
        end_block=end_block,
    )
    logger.info(
        "Poll window resolved: active=%s head=%d end=%d evaluation_block=%d",
        is_active,
        head_block,
        end_block,
        evaluation_block,
    )
    return window

from __future__ import annotations

from typing import Protocol

from tally_audit.core.models import PollSnapshot


class IndexerReader(Protocol):
    """Source of the indexer's precomputed tally and vote list for a poll."""

    async def fetch_poll(self, poll_address: str, block: int) -> PollSnapshot: ...

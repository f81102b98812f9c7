"""
Livepeer subgraph client.

Fetches a poll's cached tally and its vote list as of one block through the
subgraph's GraphQL endpoint. Votes are paged with ``first``/``skip`` while
the block stays pinned, so every page reflects the same state.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from tally_audit.core.exceptions import DataIntegrityError, LookupFailure
from tally_audit.core.models import PollSnapshot, ReportedTally, Vote

logger = logging.getLogger(__name__)

VOTES_PAGE_SIZE = 1000

POLL_QUERY = """
query PollTally($id: ID!, $block: Int!, $first: Int!, $skip: Int!) {
  poll(block: {number: $block}, id: $id) {
    tally {
      yes
      no
    }
    votes(first: $first, skip: $skip) {
      voter
      choiceID
      registeredTranscoder
    }
  }
}
"""


def parse_poll_payload(payload: dict[str, Any], poll_address: str, block: int) -> PollSnapshot:
    """Normalize one GraphQL response body into a PollSnapshot."""
    errors = payload.get("errors")
    if errors:
        messages = "; ".join(str(error.get("message", error)) for error in errors)
        raise LookupFailure(
            f"Subgraph returned errors: {messages}",
            {"operation": "indexerPoll", "poll": poll_address, "block": block},
        )

    poll = (payload.get("data") or {}).get("poll")
    if poll is None:
        raise DataIntegrityError(
            f"Poll {poll_address} not found in subgraph at block {block}",
            {"poll": poll_address, "block": block},
        )

    tally = ReportedTally.from_indexer(poll.get("tally"))
    votes = tuple(Vote.from_indexer(vote) for vote in poll.get("votes") or [])
    return PollSnapshot(poll_address=poll_address, block=block, tally=tally, votes=votes)


class SubgraphClient:
    """Async GraphQL client for the indexer's poll entity."""

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
        page_size: int = VOTES_PAGE_SIZE,
    ):
        self.url = url
        self.timeout = timeout
        self.page_size = page_size
        self._client = client

    async def fetch_poll(self, poll_address: str, block: int) -> PollSnapshot:
        poll_address = poll_address.lower()
        block = int(block)
        if self._client is not None:
            return await self._fetch_all(self._client, poll_address, block)
        async with httpx.AsyncClient() as client:
            return await self._fetch_all(client, poll_address, block)

    async def _fetch_all(self, client: httpx.AsyncClient, poll_address: str, block: int) -> PollSnapshot:
        snapshot = await self._fetch_page(client, poll_address, block, skip=0)
        votes = list(snapshot.votes)
        page = snapshot.votes
        while len(page) == self.page_size:
            page = (await self._fetch_page(client, poll_address, block, skip=len(votes))).votes
            votes.extend(page)
        return PollSnapshot(
            poll_address=poll_address, block=block, tally=snapshot.tally, votes=tuple(votes)
        )

    async def _fetch_page(
        self, client: httpx.AsyncClient, poll_address: str, block: int, skip: int
    ) -> PollSnapshot:
        body = {
            "query": POLL_QUERY,
            "variables": {"id": poll_address, "block": block, "first": self.page_size, "skip": skip},
        }
        logger.debug("Subgraph request: poll=%s block=%d skip=%d", poll_address, block, skip)
        response = await client.post(self.url, json=body, timeout=self.timeout)
        response.raise_for_status()
        logger.debug("Subgraph response: status=%d", response.status_code)
        return parse_poll_payload(response.json(), poll_address, block)

"""
Poll tally reconciliation.

PollAuditor runs one full audit: resolve the poll window, fetch the
indexer's snapshot at the evaluation block, rebuild the voter graph from
chain state, tally it and compare against the indexer's tally.
"""

from __future__ import annotations

import logging

from tally_audit.chain.reader import ChainReader
from tally_audit.core.lookups import LookupRunner
from tally_audit.core.models import (
    AuditReport,
    Discrepancy,
    ReportedTally,
    Tally,
    VoteChoice,
    normalize_address,
)
from tally_audit.core.poll_window import SAFETY_MARGIN_BLOCKS, resolve_poll_window
from tally_audit.core.tally_engine import StakeTallyEngine
from tally_audit.core.voter_graph import VoterGraphBuilder
from tally_audit.indexer.reader import IndexerReader

logger = logging.getLogger(__name__)


def compare_tallies(computed: Tally, expected: ReportedTally) -> tuple[Discrepancy, ...]:
    """
    Return one Discrepancy per side where the tallies differ.

    The computed totals are rendered as base-10 strings and compared exactly
    against the indexer's strings, so "0500" or "500.5" never matches 500.
    """
    discrepancies = []
    for side in VoteChoice:
        actual = str(computed.get(side))
        wanted = str(expected.get(side))
        if actual != wanted:
            discrepancies.append(Discrepancy(side=side, expected=wanted, actual=actual))
    return tuple(discrepancies)


class PollAuditor:
    def __init__(
        self,
        chain: ChainReader,
        indexer: IndexerReader,
        poll_address: str,
        runner: LookupRunner | None = None,
        safety_margin: int = SAFETY_MARGIN_BLOCKS,
    ):
        self.chain = chain
        self.indexer = indexer
        self.poll_address = normalize_address(poll_address)
        self.runner = runner or LookupRunner()
        self.safety_margin = safety_margin

    async def run(self) -> AuditReport:
        """
        Run the audit end to end.

        Raises:
            LookupFailure: A chain or indexer read failed or timed out
            DataIntegrityError: Fetched data violates tally assumptions
        """
        head = await self.runner.call("currentBlockHeight", self.chain.current_block_height)
        end_block = await self.runner.call("pollEndBlock", self.chain.poll_end_block)
        window = resolve_poll_window(int(head), int(end_block), self.safety_margin)

        snapshot = await self.runner.call(
            "indexerPoll", self.indexer.fetch_poll, self.poll_address, window.evaluation_block
        )
        logger.info(
            "Indexer snapshot at block %d: %d votes, yes=%s no=%s",
            snapshot.block,
            len(snapshot.votes),
            snapshot.tally.yes,
            snapshot.tally.no,
        )

        graph = await VoterGraphBuilder(self.chain, window, self.runner).build(snapshot.votes)
        computed = await StakeTallyEngine(self.chain, window, self.runner).tally(graph)

        discrepancies = compare_tallies(computed, snapshot.tally)
        for discrepancy in discrepancies:
            logger.warning(discrepancy.describe())

        return AuditReport(
            poll_address=self.poll_address,
            window=window,
            computed=computed,
            expected=snapshot.tally,
            voter_count=len(snapshot.votes),
            discrepancies=discrepancies,
        )

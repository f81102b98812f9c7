from __future__ import annotations

import logging
from typing import Iterable

from tally_audit.chain.reader import ChainReader
from tally_audit.core.lookups import LookupRunner, gather_all
from tally_audit.core.models import (
    DelegationFact,
    PollWindowState,
    Vote,
    VoterRecord,
    normalize_address,
)

logger = logging.getLogger(__name__)

VoterGraph = dict[str, VoterRecord]


class VoterGraphBuilder:
    """
    Turns the indexer's flat vote list into per-address voting intent.

    Registered delegates keep their own record. Every other voter is a
    delegator overriding its delegate, so its address is appended to the
    delegate's ``overrides`` list, creating a choice-less record for the
    delegate if it never voted.
    """

    def __init__(
        self,
        chain: ChainReader,
        window: PollWindowState,
        runner: LookupRunner | None = None,
    ):
        self.chain = chain
        self.window = window
        self.runner = runner or LookupRunner()

    async def build(self, votes: Iterable[Vote]) -> VoterGraph:
        """
        Build the voter graph, one registration lookup per distinct voter plus a
        delegation lookup for each non-delegate.

        Lookups may run concurrently; results are merged in vote order so the
        graph is the same either way.
        """
        votes = list(votes)
        voters = list(dict.fromkeys(vote.voter for vote in votes))
        resolved = await gather_all(self._resolve(voter) for voter in voters)
        facts = dict(zip(voters, resolved))

        graph: VoterGraph = {}
        for vote in votes:
            is_delegate, fact = facts[vote.voter]
            self._merge(graph, vote, is_delegate, fact)

        logger.info(
            "Voter graph built: %d votes, %d records, %d overrides",
            len(votes),
            len(graph),
            sum(len(record.overrides) for record in graph.values()),
        )
        return graph

    async def _resolve(self, voter: str) -> tuple[bool, DelegationFact | None]:
        block = self.window.evaluation_block
        is_delegate = await self.runner.call(
            "isRegisteredDelegate", self.chain.is_registered_delegate, voter, block
        )
        if is_delegate:
            return True, None
        fact = await self.runner.call("delegationFact", self.chain.delegation_fact, voter, block)
        return False, fact

    @staticmethod
    def _merge(
        graph: VoterGraph, vote: Vote, is_delegate: bool, fact: DelegationFact | None
    ) -> None:
        # Field-level updates only: a record created earlier as an override
        # target keeps its overrides when its owner's own vote arrives, and a
        # choice once set is never overwritten by a repeated vote.
        record = graph.get(vote.voter)
        if record is None:
            record = graph[vote.voter] = VoterRecord()
        if record.choice is None:
            record.choice = vote.choice
        record.is_registered_delegate = is_delegate

        if vote.registered_transcoder != is_delegate:
            logger.debug(
                "Indexer registration flag for %s (%s) differs from chain (%s)",
                vote.voter,
                vote.registered_transcoder,
                is_delegate,
            )

        if is_delegate or fact is None:
            return

        delegate = normalize_address(fact.delegate)
        target = graph.get(delegate)
        if target is None:
            target = graph[delegate] = VoterRecord()
        if vote.voter not in target.overrides:
            target.overrides.append(vote.voter)

from __future__ import annotations

import logging
from typing import Mapping

from tally_audit.chain.reader import ChainReader
from tally_audit.core.exceptions import DataIntegrityError
from tally_audit.core.lookups import LookupRunner, gather_all
from tally_audit.core.models import PollWindowState, Tally, VoterRecord, as_uint256

logger = logging.getLogger(__name__)


def checked_sub(base: int, deduction: int, address: str) -> int:
    """Subtract override stake from a delegate's stake, refusing to go below zero."""
    if deduction > base:
        raise DataIntegrityError(
            f"Override stake {deduction} exceeds delegated stake {base} for {address}",
            {"delegate": address, "delegated_stake": str(base), "override_stake": str(deduction)},
        )
    return base - deduction


class StakeTallyEngine:
    """
    Computes yes/no stake totals from a voter graph.

    A registered delegate's vote carries all stake delegated to it, less the
    pending stake of every delegator that overrode it. An individual voter's
    vote carries its own pending stake. Every read happens at the window's
    evaluation block.
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

    async def tally(self, graph: Mapping[str, VoterRecord]) -> Tally:
        """Sum the net stake of every record that voted, in graph order."""
        entries = [(address, record) for address, record in graph.items() if record.choice is not None]
        stakes = await gather_all(self.net_stake(address, record) for address, record in entries)

        tally = Tally()
        for (address, record), stake in zip(entries, stakes):
            tally = tally.add(record.choice, stake)
            logger.debug("%s votes %s with %d", address, record.choice.label, stake)

        logger.info("Tally computed over %d voting records: yes=%d no=%d", len(entries), tally.yes, tally.no)
        return tally

    async def net_stake(self, address: str, record: VoterRecord) -> int:
        block = self.window.evaluation_block

        if not record.is_registered_delegate:
            if record.overrides:
                # Only registered delegates vote on behalf of delegated stake.
                logger.warning(
                    "Ignoring %d overrides on non-delegate voter %s",
                    len(record.overrides),
                    address,
                )
            stake = await self.runner.call(
                "voterPendingStake", self.chain.voter_pending_stake, address, block
            )
            return as_uint256(stake, "pendingStake")

        delegated = await self.runner.call(
            "delegateTotalStake", self.chain.delegate_total_stake, address, block
        )
        delegated = as_uint256(delegated, "delegatedAmount")
        if not record.overrides:
            return delegated

        override_stakes = await gather_all(
            self.runner.call("voterPendingStake", self.chain.voter_pending_stake, delegator, block)
            for delegator in record.overrides
        )
        overridden = sum(as_uint256(stake, "pendingStake") for stake in override_stakes)
        return checked_sub(delegated, overridden, address)

"""
web3.py-backed ChainReader for the Livepeer protocol contracts.

All reads pass an explicit ``block_identifier``. Pending stake is computed
for the round that is current at the same block, matching what the poll's
tally sees on chain.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from eth_utils import to_checksum_address
from web3 import AsyncWeb3

from tally_audit.chain.abi import (
    BONDING_MANAGER_ABI,
    BONDING_MANAGER_ADDRESS,
    POLL_ABI,
    ROUNDS_MANAGER_ABI,
    ROUNDS_MANAGER_ADDRESS,
    TRANSCODER_STATUS_REGISTERED,
)
from tally_audit.core.models import DelegationFact, as_uint256, normalize_address

logger = logging.getLogger(__name__)

# getDelegator output positions
_DELEGATE_ADDRESS = 2
_DELEGATED_AMOUNT = 3


def default_web3_factory(provider_url: str) -> AsyncWeb3:
    return AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(provider_url))


class Web3ChainReader:
    def __init__(
        self,
        provider_url: str,
        poll_address: str,
        rounds_manager_address: str = ROUNDS_MANAGER_ADDRESS,
        bonding_manager_address: str = BONDING_MANAGER_ADDRESS,
        web3_factory: Callable[[str], Any] | None = None,
    ):
        self.web3 = (web3_factory or default_web3_factory)(provider_url)
        self.rounds_manager = self.web3.eth.contract(
            address=to_checksum_address(rounds_manager_address), abi=ROUNDS_MANAGER_ABI
        )
        self.bonding_manager = self.web3.eth.contract(
            address=to_checksum_address(bonding_manager_address), abi=BONDING_MANAGER_ABI
        )
        self.poll = self.web3.eth.contract(address=to_checksum_address(poll_address), abi=POLL_ABI)
        self._rounds: dict[int, int] = {}

    async def current_block_height(self) -> int:
        return int(await self.web3.eth.block_number)

    async def poll_end_block(self) -> int:
        return int(await self.poll.functions.endBlock().call())

    async def current_round(self, block: int) -> int:
        if block not in self._rounds:
            self._rounds[block] = int(
                await self.rounds_manager.functions.currentRound().call(block_identifier=block)
            )
        return self._rounds[block]

    async def delegate_total_stake(self, address: str, block: int) -> int:
        delegator = await self._get_delegator(address, block)
        return as_uint256(delegator[_DELEGATED_AMOUNT], "delegatedAmount")

    async def voter_pending_stake(self, address: str, block: int) -> int:
        round_number = await self.current_round(block)
        stake = await self.bonding_manager.functions.pendingStake(
            to_checksum_address(address), round_number
        ).call(block_identifier=block)
        return as_uint256(stake, "pendingStake")

    async def is_registered_delegate(self, address: str, block: int) -> bool:
        status = await self.bonding_manager.functions.transcoderStatus(
            to_checksum_address(address)
        ).call(block_identifier=block)
        return int(status) == TRANSCODER_STATUS_REGISTERED

    async def delegation_fact(self, address: str, block: int) -> DelegationFact:
        delegator = await self._get_delegator(address, block)
        return DelegationFact(
            delegator=normalize_address(address),
            delegate=normalize_address(delegator[_DELEGATE_ADDRESS]),
            delegated_amount=as_uint256(delegator[_DELEGATED_AMOUNT], "delegatedAmount"),
        )

    async def _get_delegator(self, address: str, block: int):
        return await self.bonding_manager.functions.getDelegator(
            to_checksum_address(address)
        ).call(block_identifier=block)

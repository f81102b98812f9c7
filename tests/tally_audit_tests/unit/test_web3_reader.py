"""
Tests for Web3ChainReader against a mocked web3 instance.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_utils import to_checksum_address

from tally_audit.chain.abi import BONDING_MANAGER_ABI, POLL_ABI, ROUNDS_MANAGER_ABI
from tally_audit.chain.web3_reader import Web3ChainReader
from tally_audit.core.exceptions import DataIntegrityError

POLL = "0x" + "9" * 40
DELEGATE = "0x" + "a" * 40
DELEGATOR = "0x" + "c" * 40


async def _value(value):
    return value


class FakeEth:
    def __init__(self, head):
        self.head = head
        self.contracts = {
            "rounds": MagicMock(),
            "bonding": MagicMock(),
            "poll": MagicMock(),
        }
        self.addresses = {}

    @property
    def block_number(self):
        return _value(self.head)

    def contract(self, address, abi):
        if abi is ROUNDS_MANAGER_ABI:
            name = "rounds"
        elif abi is BONDING_MANAGER_ABI:
            name = "bonding"
        else:
            assert abi is POLL_ABI
            name = "poll"
        self.addresses[name] = address
        return self.contracts[name]


@pytest.fixture
def eth():
    return FakeEth(head=1234)


@pytest.fixture
def reader(eth):
    web3 = MagicMock()
    web3.eth = eth
    return Web3ChainReader("http://localhost:8545", POLL, web3_factory=lambda url: web3)


def _delegator_tuple(delegate, delegated_amount):
    return [10, 0, to_checksum_address(delegate), delegated_amount, 1, 2, 0]


class TestWeb3ChainReader:
    def test_contracts_bound_to_checksum_addresses(self, reader, eth):
        assert eth.addresses["poll"] == to_checksum_address(POLL)
        assert eth.addresses["bonding"] == to_checksum_address("0x511bc4556d823ae99630ae8de28b9b80df90ea2e")

    @pytest.mark.asyncio
    async def test_current_block_height(self, reader):
        assert await reader.current_block_height() == 1234

    @pytest.mark.asyncio
    async def test_poll_end_block(self, reader, eth):
        eth.contracts["poll"].functions.endBlock.return_value.call = AsyncMock(return_value=150)

        assert await reader.poll_end_block() == 150

    @pytest.mark.asyncio
    async def test_pending_stake_uses_round_at_block(self, reader, eth):
        round_call = AsyncMock(return_value=2000)
        eth.contracts["rounds"].functions.currentRound.return_value.call = round_call
        stake_call = AsyncMock(return_value=10**21)
        bonding = eth.contracts["bonding"].functions
        bonding.pendingStake.return_value.call = stake_call

        first = await reader.voter_pending_stake(DELEGATOR, 150)
        second = await reader.voter_pending_stake(DELEGATE, 150)

        assert first == second == 10**21
        bonding.pendingStake.assert_any_call(to_checksum_address(DELEGATOR), 2000)
        stake_call.assert_awaited_with(block_identifier=150)
        round_call.assert_awaited_once_with(block_identifier=150)

    @pytest.mark.asyncio
    async def test_is_registered_delegate(self, reader, eth):
        status = eth.contracts["bonding"].functions.transcoderStatus.return_value
        status.call = AsyncMock(return_value=1)
        assert await reader.is_registered_delegate(DELEGATE, 150) is True

        status.call = AsyncMock(return_value=0)
        assert await reader.is_registered_delegate(DELEGATE, 150) is False
        status.call.assert_awaited_with(block_identifier=150)

    @pytest.mark.asyncio
    async def test_delegation_fact(self, reader, eth):
        eth.contracts["bonding"].functions.getDelegator.return_value.call = AsyncMock(
            return_value=_delegator_tuple(DELEGATE, 0)
        )

        fact = await reader.delegation_fact(to_checksum_address(DELEGATOR), 150)

        assert fact.delegator == DELEGATOR
        assert fact.delegate == DELEGATE

    @pytest.mark.asyncio
    async def test_delegate_total_stake(self, reader, eth):
        eth.contracts["bonding"].functions.getDelegator.return_value.call = AsyncMock(
            return_value=_delegator_tuple(DELEGATE, 5 * 10**23)
        )

        assert await reader.delegate_total_stake(DELEGATE, 150) == 5 * 10**23

    @pytest.mark.asyncio
    async def test_malformed_delegate_address_is_integrity_fault(self, reader, eth):
        eth.contracts["bonding"].functions.getDelegator.return_value.call = AsyncMock(
            return_value=[10, 0, "0x1234", 0, 1, 2, 0]
        )

        with pytest.raises(DataIntegrityError):
            await reader.delegation_fact(DELEGATOR, 150)

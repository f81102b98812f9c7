from __future__ import annotations

from typing import Protocol

from tally_audit.core.models import DelegationFact


class ChainReader(Protocol):
    """Point-in-time reads of staking and poll state.

    Every stake read takes an explicit block number; implementations must not
    fall back to "latest".
    """

    async def current_block_height(self) -> int: ...

    async def poll_end_block(self) -> int: ...

    async def delegate_total_stake(self, address: str, block: int) -> int: ...

    async def voter_pending_stake(self, address: str, block: int) -> int: ...

    async def is_registered_delegate(self, address: str, block: int) -> bool: ...

    async def delegation_fact(self, address: str, block: int) -> DelegationFact: ...

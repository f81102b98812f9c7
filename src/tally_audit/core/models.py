"""
Data model for poll tally audits.

Indexer and chain values are normalized here on ingestion: vote choices
become a two-valued enum, addresses become lowercase hex and stake amounts
become range-checked Python ints. The indexer's own tally is kept verbatim
so it can be compared string for string.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from eth_utils import is_address

from tally_audit.core.exceptions import DataIntegrityError

UINT256_MAX = 2**256 - 1


class VoteChoice(Enum):
    YES = 0
    NO = 1

    @classmethod
    def parse(cls, raw: Any) -> "VoteChoice":
        """Parse the subgraph's "Yes"/"No" strings or the contract's 0/1 choice IDs."""
        if isinstance(raw, VoteChoice):
            return raw
        if isinstance(raw, str):
            label = raw.strip().lower()
            if label == "yes":
                return cls.YES
            if label == "no":
                return cls.NO
            if label.isdigit():
                raw = int(label)
        if isinstance(raw, int) and not isinstance(raw, bool):
            for choice in cls:
                if choice.value == raw:
                    return choice
        raise DataIntegrityError(f"Unknown vote choice: {raw!r}", {"choice": repr(raw)})

    @property
    def label(self) -> str:
        return "Yes" if self is VoteChoice.YES else "No"


def normalize_address(value: Any) -> str:
    """Return ``value`` as lowercase hex, rejecting anything that is not an address."""
    if not isinstance(value, str) or not is_address(value):
        raise DataIntegrityError(f"Malformed address: {value!r}", {"address": repr(value)})
    return value.lower()


def as_uint256(value: Any, field_name: str = "value") -> int:
    """Coerce a contract or indexer amount to int and check it fits in uint256."""
    if isinstance(value, bool):
        raise DataIntegrityError(f"{field_name} is not an integer: {value!r}", {"field": field_name})
    try:
        amount = int(value)
    except (TypeError, ValueError) as exc:
        raise DataIntegrityError(
            f"{field_name} is not an integer: {value!r}", {"field": field_name}
        ) from exc
    if isinstance(value, float) and amount != value:
        raise DataIntegrityError(f"{field_name} is not an integer: {value!r}", {"field": field_name})
    if amount < 0 or amount > UINT256_MAX:
        raise DataIntegrityError(
            f"{field_name} outside uint256 range: {amount}",
            {"field": field_name, "value": str(amount)},
        )
    return amount


@dataclass(frozen=True)
class Vote:
    """One recorded vote as reported by the indexer."""

    voter: str
    choice: VoteChoice
    registered_transcoder: bool = False

    @classmethod
    def from_indexer(cls, payload: dict[str, Any]) -> "Vote":
        try:
            voter = payload["voter"]
            choice = payload["choiceID"]
        except KeyError as exc:
            raise DataIntegrityError(
                f"Indexer vote missing field {exc.args[0]!r}", {"vote": payload}
            ) from exc
        return cls(
            voter=normalize_address(voter),
            choice=VoteChoice.parse(choice),
            registered_transcoder=bool(payload.get("registeredTranscoder", False)),
        )


@dataclass(frozen=True)
class DelegationFact:
    """Which delegate currently receives a delegator's bonded stake."""

    delegator: str
    delegate: str
    delegated_amount: int


@dataclass
class VoterRecord:
    """Voting intent for one effective voter.

    ``choice`` is only set when the address voted itself. ``overrides`` lists
    delegators who voted independently and so withdraw their stake from this
    delegate's vote.
    """

    choice: VoteChoice | None = None
    is_registered_delegate: bool = False
    overrides: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PollWindowState:
    """Whether the poll is still open, and the one block every lookup reads at."""

    is_active: bool
    evaluation_block: int
    head_block: int
    end_block: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_active": self.is_active,
            "evaluation_block": self.evaluation_block,
            "head_block": self.head_block,
            "end_block": self.end_block,
        }


@dataclass(frozen=True)
class Tally:
    """Cumulative yes/no stake totals."""

    yes: int = 0
    no: int = 0

    def __post_init__(self) -> None:
        if self.yes < 0 or self.no < 0:
            raise DataIntegrityError(
                "Tally totals cannot be negative",
                {"yes": str(self.yes), "no": str(self.no)},
            )

    def add(self, choice: VoteChoice, amount: int) -> "Tally":
        if choice is VoteChoice.YES:
            return Tally(yes=self.yes + amount, no=self.no)
        return Tally(yes=self.yes, no=self.no + amount)

    def get(self, choice: VoteChoice) -> int:
        return self.yes if choice is VoteChoice.YES else self.no

    def as_strings(self) -> dict[str, str]:
        return {"yes": str(self.yes), "no": str(self.no)}


@dataclass(frozen=True)
class ReportedTally:
    """The indexer's tally exactly as served: decimal strings, never parsed."""

    yes: str = "0"
    no: str = "0"

    @classmethod
    def from_indexer(cls, raw: dict[str, Any] | None) -> "ReportedTally":
        # No tally entity means no stake has been counted yet.
        if not raw:
            return cls()
        return cls(yes=str(raw.get("yes", "0")), no=str(raw.get("no", "0")))

    def get(self, choice: VoteChoice) -> str:
        return self.yes if choice is VoteChoice.YES else self.no

    def as_strings(self) -> dict[str, str]:
        return {"yes": self.yes, "no": self.no}


@dataclass(frozen=True)
class Discrepancy:
    """One side of the tally where the indexer disagrees with chain state."""

    side: VoteChoice
    expected: str
    actual: str

    def describe(self) -> str:
        return f"{self.side.label} tally mismatch: indexer reports {self.expected}, chain state gives {self.actual}"

    def to_dict(self) -> dict[str, str]:
        return {"side": self.side.label.lower(), "expected": self.expected, "actual": self.actual}


@dataclass(frozen=True)
class AuditReport:
    """Outcome of one audit run. ``expected`` is the indexer's tally, ``computed`` ours."""

    poll_address: str
    window: PollWindowState
    computed: Tally
    expected: ReportedTally
    voter_count: int = 0
    discrepancies: tuple[Discrepancy, ...] = ()

    @property
    def matches(self) -> bool:
        return not self.discrepancies

    def to_dict(self) -> dict[str, Any]:
        return {
            "poll": self.poll_address,
            "window": self.window.to_dict(),
            "voters": self.voter_count,
            "indexer": self.expected.as_strings(),
            "node": self.computed.as_strings(),
            "matches": self.matches,
            "discrepancies": [d.to_dict() for d in self.discrepancies],
        }


@dataclass(frozen=True)
class PollSnapshot:
    """The indexer's cached view of a poll at one block: its tally and vote list."""

    poll_address: str
    block: int
    tally: ReportedTally
    votes: tuple[Vote, ...] = ()

"""
Exception hierarchy for poll tally audits.

Separates "the chain or indexer could not be read" from "the data we read
violates the tally's assumptions" so callers can map each to its own exit
status. A tally mismatch is a reported outcome, not an exception.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AuditError(Exception):
    """Base exception for all audit failures.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error (operation, address, block)
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AuditError):
    """Raised when required configuration is missing or invalid."""
    pass


class LookupFailure(AuditError):
    """Raised when a chain-reader or indexer call fails or times out.

    Wraps transport errors, contract reverts and lookup timeouts. Never retried.
    """
    pass


class DataIntegrityError(AuditError):
    """Raised when fetched data violates the tally's assumptions.

    Examples: override stake exceeding the delegate's stake, a value outside
    the uint256 range, an unknown vote choice, a malformed address.
    """
    pass

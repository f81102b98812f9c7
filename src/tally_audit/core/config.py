"""
Tally audit configuration.

Values come from environment variables, with a local ``.env`` file loaded
first. Command-line options override them through ``overrides``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any

from dotenv import find_dotenv, load_dotenv

from tally_audit.chain.abi import BONDING_MANAGER_ADDRESS, ROUNDS_MANAGER_ADDRESS
from tally_audit.core.exceptions import ConfigurationError, DataIntegrityError
from tally_audit.core.lookups import DEFAULT_LOOKUP_TIMEOUT
from tally_audit.core.models import normalize_address

logger = logging.getLogger(__name__)

DEFAULT_SUBGRAPH_URL = "https://api.thegraph.com/subgraphs/name/livepeer/livepeer"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _get_int(env_var: str, default: int) -> int:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc


def _get_float(env_var: str, default: float) -> float:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class AuditConfig:
    web3_provider: str
    poll_address: str
    subgraph_url: str = DEFAULT_SUBGRAPH_URL
    rounds_manager_address: str = ROUNDS_MANAGER_ADDRESS
    bonding_manager_address: str = BONDING_MANAGER_ADDRESS
    lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT
    concurrency: int = 1
    log_level: str = "WARNING"
    log_file: str | None = None

    @classmethod
    def from_env(cls, load_env_file: bool = True, **overrides: Any) -> "AuditConfig":
        """
        Load configuration from the environment.

        Args:
            load_env_file: Read ``.env`` from the working directory first
            **overrides: Explicit values (e.g. CLI options); None values are ignored

        Raises:
            ConfigurationError: A required value is missing or a value is invalid
        """
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True))

        config = cls(
            web3_provider=os.getenv("WEB3_PROVIDER", "").strip(),
            poll_address=os.getenv("POLL_ADDRESS", "").strip(),
            subgraph_url=os.getenv("SUBGRAPH_URL", "").strip() or DEFAULT_SUBGRAPH_URL,
            rounds_manager_address=os.getenv("ROUNDS_MANAGER_ADDRESS", "").strip()
            or ROUNDS_MANAGER_ADDRESS,
            bonding_manager_address=os.getenv("BONDING_MANAGER_ADDRESS", "").strip()
            or BONDING_MANAGER_ADDRESS,
            lookup_timeout=_get_float("TALLY_AUDIT_LOOKUP_TIMEOUT", DEFAULT_LOOKUP_TIMEOUT),
            concurrency=_get_int("TALLY_AUDIT_CONCURRENCY", 1),
            log_level=os.getenv("TALLY_AUDIT_LOG_LEVEL", "").strip() or "WARNING",
            log_file=os.getenv("TALLY_AUDIT_LOG_FILE", "").strip() or None,
        )
        config = replace(config, **{k: v for k, v in overrides.items() if v is not None})
        config.validate()
        return config

    def validate(self) -> None:
        if not self.web3_provider:
            raise ConfigurationError("WEB3_PROVIDER is required (JSON-RPC endpoint URL)")
        if not self.poll_address:
            raise ConfigurationError("POLL_ADDRESS is required")
        for name in ("poll_address", "rounds_manager_address", "bonding_manager_address"):
            try:
                normalize_address(getattr(self, name))
            except DataIntegrityError as exc:
                raise ConfigurationError(f"{name} is not a valid address: {getattr(self, name)!r}") from exc
        if not self.subgraph_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"SUBGRAPH_URL must be an http(s) URL, got {self.subgraph_url!r}")
        if self.lookup_timeout <= 0:
            raise ConfigurationError("TALLY_AUDIT_LOOKUP_TIMEOUT must be positive")
        if self.concurrency < 1:
            raise ConfigurationError("TALLY_AUDIT_CONCURRENCY must be at least 1")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"TALLY_AUDIT_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}")

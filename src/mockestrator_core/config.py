"""Canonical configuration surface for the mock orchestrator.

Process settings come from the environment (``MOCKESTRATOR_*``) and ``.env``.
Chain endpoints and funding live in two JSON files whose shape is validated
with pydantic models:

rpcs.json::

    {"84532": {"rpc": "http://localhost:30005", "privateKey": "0x..",
               "router": "0x..", "intentExecutor": "0x..", "multicall": "0x.."}}

funding.json::

    {"84532": {"native": "100000000000000000000",
               "tokens": {"USDC": "1000000000000"},
               "codeOverrides": {"0x..": "0x6080.."}}}
"""
from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .utils import normalize_address, parse_int

logger = logging.getLogger(__name__)

# Relayer key used when rpcs.json does not name one.
DEFAULT_RELAYER_KEY = "0xac0974bec39a17e36ba4a84b5d7da5d8fba9d1d0c8ab6ff96c6e3bf16ab79e04"

# Canonical deployments (same address on every chain).
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"
INTENT_EXECUTOR_ADDRESS = "0x00000000005aD9ce1f5035FD62CA96CEf16AdAAF"
MOCK_ROUTER_ADDRESS = "0x000000000000000000000000000000000000f111"


class MockestratorSettings(BaseSettings):
    """Process-level settings."""

    model_config = SettingsConfigDict(
        env_prefix="MOCKESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    environment: Literal["dev", "test", "prod"] = "dev"

    # HTTP server
    host: str = "0.0.0.0"
    port: int = 4000

    # Logging
    log_level: str = "INFO"
    log_json: Optional[bool] = None  # None = JSON everywhere except dev

    # Chain configuration files
    rpcs_file: str = "rpcs.json"
    funding_file: str = "funding.json"
    bootstrap_on_startup: bool = True

    # Intent routing
    route_ttl_seconds: int = 3600

    # Chain execution
    rpc_timeout_seconds: float = 30.0
    receipt_timeout_seconds: float = 120.0
    receipt_poll_interval_seconds: float = 0.5
    gas_limit_buffer_percent: int = Field(default=20, ge=0, le=500)

    @property
    def use_json_logs(self) -> bool:
        if self.log_json is not None:
            return self.log_json
        return self.environment != "dev"


class RpcFileEntry(BaseModel):
    """One chain entry of rpcs.json."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    rpc: str
    private_key: str = Field(default=DEFAULT_RELAYER_KEY, alias="privateKey")
    router: str = MOCK_ROUTER_ADDRESS
    intent_executor: str = Field(default=INTENT_EXECUTOR_ADDRESS, alias="intentExecutor")
    multicall: str = MULTICALL3_ADDRESS

    @field_validator("router", "intent_executor", "multicall")
    @classmethod
    def checksum_addresses(cls, v: str) -> str:
        return normalize_address(v)

    @field_validator("private_key")
    @classmethod
    def validate_private_key(cls, v: str) -> str:
        raw = v[2:] if v.startswith("0x") else v
        if len(raw) != 64:
            raise ValueError("privateKey must be 32 bytes of hex")
        bytes.fromhex(raw)
        return "0x" + raw


class FundingFileEntry(BaseModel):
    """One chain entry of funding.json."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    native: Optional[int] = None
    tokens: Dict[str, int] = Field(default_factory=dict)
    code_overrides: Dict[str, str] = Field(default_factory=dict, alias="codeOverrides")

    @field_validator("native", mode="before")
    @classmethod
    def parse_native(cls, v):
        return None if v is None else parse_int(v)

    @field_validator("tokens", mode="before")
    @classmethod
    def parse_token_amounts(cls, v):
        return {symbol: parse_int(amount) for symbol, amount in (v or {}).items()}

    @field_validator("code_overrides")
    @classmethod
    def checksum_override_targets(cls, v: Dict[str, str]) -> Dict[str, str]:
        return {normalize_address(address): code for address, code in v.items()}


def _read_json(path: Path) -> dict:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must contain a JSON object keyed by chain id")
    return raw


def _parse_chain_key(path: Path, key: str) -> int:
    try:
        return parse_int(key)
    except ValueError as e:
        raise ConfigurationError(f"{path}: invalid chain id {key!r}") from e


def load_rpcs_file(path: str | Path) -> Dict[int, RpcFileEntry]:
    """Load and validate rpcs.json, keyed by chain id in file order."""
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(f"RPC configuration file not found: {file_path}")

    entries: Dict[int, RpcFileEntry] = {}
    for key, value in _read_json(file_path).items():
        chain_id = _parse_chain_key(file_path, key)
        try:
            entries[chain_id] = RpcFileEntry.model_validate(value)
        except ValidationError as e:
            raise ConfigurationError(f"{file_path}: invalid entry for chain {key}: {e}") from e

    if not entries:
        raise ConfigurationError(f"{file_path} does not configure any chain")
    return entries


def load_funding_file(path: str | Path) -> Dict[int, FundingFileEntry]:
    """Load funding.json; a missing file means no funding."""
    file_path = Path(path)
    if not file_path.exists():
        logger.info(f"No funding file at {file_path}, skipping chain funding")
        return {}

    entries: Dict[int, FundingFileEntry] = {}
    for key, value in _read_json(file_path).items():
        chain_id = _parse_chain_key(file_path, key)
        try:
            entries[chain_id] = FundingFileEntry.model_validate(value)
        except (ValidationError, ValueError) as e:
            raise ConfigurationError(f"{file_path}: invalid entry for chain {key}: {e}") from e
    return entries


@lru_cache
def load_settings(env_file: str | None = None) -> MockestratorSettings:
    """Load settings once per process to keep services consistent."""
    if env_file:
        return MockestratorSettings(_env_file=Path(env_file))
    return MockestratorSettings()

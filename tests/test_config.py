"""Tests for settings and the chain configuration files."""
from __future__ import annotations

import json

import pytest

from mockestrator_core.config import (
    DEFAULT_RELAYER_KEY,
    INTENT_EXECUTOR_ADDRESS,
    MOCK_ROUTER_ADDRESS,
    MULTICALL3_ADDRESS,
    MockestratorSettings,
    load_funding_file,
    load_rpcs_file,
)
from mockestrator_core.exceptions import ConfigurationError


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MOCKESTRATOR_ENVIRONMENT", raising=False)
        settings = MockestratorSettings(_env_file=None)

        assert settings.environment == "dev"
        assert settings.port == 4000
        assert settings.rpcs_file == "rpcs.json"
        assert settings.use_json_logs is False

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("MOCKESTRATOR_PORT", "5001")
        monkeypatch.setenv("MOCKESTRATOR_ENVIRONMENT", "prod")
        monkeypatch.setenv("MOCKESTRATOR_BOOTSTRAP_ON_STARTUP", "false")

        settings = MockestratorSettings(_env_file=None)

        assert settings.port == 5001
        assert settings.bootstrap_on_startup is False
        assert settings.use_json_logs is True

    def test_explicit_log_format_wins(self):
        assert MockestratorSettings(environment="prod", log_json=False).use_json_logs is False


class TestRpcsFile:

    def test_missing(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_rpcs_file(tmp_path / "rpcs.json")

    def test_defaults_for_contract_addresses(self, tmp_path):
        path = write_json(tmp_path / "rpcs.json", {"84532": {"rpc": "http://localhost:30005"}})

        entries = load_rpcs_file(path)

        entry = entries[84532]
        assert entry.rpc == "http://localhost:30005"
        assert entry.private_key == DEFAULT_RELAYER_KEY
        assert entry.router == MOCK_ROUTER_ADDRESS
        assert entry.intent_executor == INTENT_EXECUTOR_ADDRESS
        assert entry.multicall == MULTICALL3_ADDRESS

    def test_keeps_file_order(self, tmp_path):
        path = write_json(tmp_path / "rpcs.json", {
            "11155111": {"rpc": "http://a"},
            "84532": {"rpc": "http://b", "privateKey": "ab" * 32},
        })

        entries = load_rpcs_file(path)

        assert list(entries) == [11155111, 84532]
        assert entries[84532].private_key == "0x" + "ab" * 32

    def test_invalid_private_key(self, tmp_path):
        path = write_json(tmp_path / "rpcs.json", {"84532": {"rpc": "http://a", "privateKey": "0x1234"}})

        with pytest.raises(ConfigurationError, match="invalid entry"):
            load_rpcs_file(path)

    def test_invalid_chain_key(self, tmp_path):
        path = write_json(tmp_path / "rpcs.json", {"base": {"rpc": "http://a"}})

        with pytest.raises(ConfigurationError, match="invalid chain id"):
            load_rpcs_file(path)

    def test_empty(self, tmp_path):
        path = write_json(tmp_path / "rpcs.json", {})

        with pytest.raises(ConfigurationError):
            load_rpcs_file(path)

    def test_not_json(self, tmp_path):
        path = tmp_path / "rpcs.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_rpcs_file(path)


class TestFundingFile:

    def test_missing_means_no_funding(self, tmp_path):
        assert load_funding_file(tmp_path / "funding.json") == {}

    def test_amount_formats(self, tmp_path):
        path = write_json(tmp_path / "funding.json", {
            "84532": {"native": "0x10", "tokens": {"USDC": "1000000", "WETH": 5}},
        })

        entry = load_funding_file(path)[84532]

        assert entry.native == 16
        assert entry.tokens == {"USDC": 1_000_000, "WETH": 5}
        assert entry.code_overrides == {}

    def test_bad_amount(self, tmp_path):
        path = write_json(tmp_path / "funding.json", {"84532": {"tokens": {"USDC": "lots"}}})

        with pytest.raises(ConfigurationError):
            load_funding_file(path)

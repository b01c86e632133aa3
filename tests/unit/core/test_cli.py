"""
Tests for the openlog-ship command line entry point.
"""

import io
from typing import Any, Dict, List

import pytest

import openlog.main as cli
from openlog.config import TransportConfig


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the CLI from reconfiguring logging for the whole test session."""
    monkeypatch.setattr(cli, "configure_logging", lambda log_level="WARNING": None)


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> Dict[str, Any]:
    """Replace the shipping coroutine and capture its config."""
    calls: Dict[str, Any] = {}

    async def fake_ship_stdin(config: TransportConfig) -> int:
        calls["config"] = config
        return 3

    monkeypatch.setattr(cli, "ship_stdin", fake_ship_stdin)
    return calls


class TestRun:
    """Test argument handling and exit status."""

    def test_missing_configuration_exits_2(self, captured: Dict[str, Any]) -> None:
        """Test an invalid config is reported with exit status 2."""

        assert cli.run([]) == 2
        assert "config" not in captured

    def test_flags_become_config(self, captured: Dict[str, Any]) -> None:
        """Test command line flags override defaults."""

        status = cli.run(
            [
                "--endpoint-url",
                "https://logs.example.com/",
                "--api-key",
                "k",
                "--batch-size",
                "50",
                "--service",
                "worker",
                "--debug",
            ]
        )

        assert status == 0
        config = captured["config"]
        assert config.endpoint_url == "https://logs.example.com"
        assert config.batch_size == 50
        assert config.service == "worker"
        assert config.debug is True
        assert config.retries == 3

    def test_environment_used_when_flags_absent(
        self, captured: Dict[str, Any], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test unset flags fall through to OPENLOG_* variables."""

        monkeypatch.setenv("OPENLOG_ENDPOINT_URL", "https://env.example.com")
        monkeypatch.setenv("OPENLOG_API_KEY", "env-key")
        monkeypatch.setenv("OPENLOG_DEBUG", "true")

        assert cli.run([]) == 0
        assert captured["config"].endpoint_url == "https://env.example.com"
        assert captured["config"].debug is True

    @pytest.mark.parametrize("healthy,expected", [(True, 0), (False, 1)])
    def test_check_health(self, monkeypatch: pytest.MonkeyPatch, healthy: bool, expected: int) -> None:
        """Test --check-health exit status follows the probe."""

        async def fake_check_health(config: TransportConfig) -> bool:
            return healthy

        monkeypatch.setattr(cli, "check_health", fake_check_health)

        assert cli.run(["--endpoint-url", "https://logs.example.com", "--api-key", "k", "--check-health"]) == expected


class TestReadStdinLines:
    """Test the non-blocking stdin reader."""

    @pytest.mark.asyncio
    async def test_yields_until_eof(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test every line is yielded and EOF ends iteration."""

        monkeypatch.setattr(cli.sys, "stdin", io.StringIO('{"msg": "a"}\n\n{"msg": "b"}\n'))

        collected: List[str] = [line async for line in cli.read_stdin_lines()]

        assert collected == ['{"msg": "a"}\n', "\n", '{"msg": "b"}\n']

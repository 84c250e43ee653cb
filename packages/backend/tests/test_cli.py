"""CLI tests — flags become settings overrides, exit codes follow serve()."""

import pytest
from click.testing import CliRunner

from rkse.cli import main as cli


@pytest.fixture()
def served(monkeypatch):
    """Replace the server with a recorder; returns the captured settings."""
    captured = {}

    async def fake_serve(settings):
        captured["settings"] = settings
        return captured.get("ok", True)

    monkeypatch.setattr(cli, "serve", fake_serve)
    monkeypatch.setattr(cli, "configure_logging", lambda level, json: None)
    return captured


def test_flags_override_settings(served):
    result = CliRunner().invoke(cli.main, [
        "--bind", "0.0.0.0:4000",
        "--static-path", "public",
        "--redis", "redis://cache:6379",
        "--pass", "secret",
        "--db", "2",
        "--chan", "selections",
        "--stats-prefix", "stat",
    ])

    assert result.exit_code == 0, result.output
    settings = served["settings"]
    assert settings.bind == "0.0.0.0:4000"
    assert settings.static_path == "public"
    assert settings.redis_addr == "redis://cache:6379"
    assert settings.bus.password == "secret"
    assert settings.redis_db == 2
    assert settings.redis_channel == "selections"
    assert settings.redis_stats_prefix == "stat"


def test_env_used_when_flag_missing(served):
    result = CliRunner().invoke(cli.main, [], env={"RKSE_REDIS_CHANNEL": "from-env"})
    assert result.exit_code == 0, result.output
    assert served["settings"].redis_channel == "from-env"


def test_invalid_bind_exits_with_usage_error(served):
    result = CliRunner().invoke(cli.main, ["--bind", "nowhere"])
    assert result.exit_code == 2
    assert "settings" not in served


def test_failed_service_exits_nonzero(served):
    served["ok"] = False
    result = CliRunner().invoke(cli.main, [])
    assert result.exit_code == 1


def test_version_option():
    result = CliRunner().invoke(cli.main, ["--version"])
    assert result.exit_code == 0
    assert "rkse" in result.output

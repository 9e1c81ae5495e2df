"""CLI end to end over a temporary DuckDB file."""

import re

import pytest
import structlog
from typer.testing import CliRunner

from predledger.cli.app import app

from conftest import ALICE, BOB, CREATOR

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "default.toml").write_text(
        '[ledger]\nallow_early_resolution = true\n\n[logging]\nlevel = "ERROR"\n'
    )
    yield ["--config-dir", str(config_dir), "--db", str(tmp_path / "cli.duckdb")]
    structlog.reset_defaults()


def _invoke(cli_env, *args):
    return runner.invoke(app, [*cli_env, *args])


def test_market_lifecycle(cli_env):
    r = _invoke(cli_env, "markets", "create", "--creator", CREATOR, "--question", "Ship by Friday?", "-c", "Work")
    assert r.exit_code == 0, r.output
    market = re.search(r"Market: ([0-9a-f]{64})", r.output).group(1)

    r = _invoke(cli_env, "bets", "place", market, "--bettor", ALICE, "--amount", "300", "--side", "yes")
    assert r.exit_code == 0, r.output
    r = _invoke(cli_env, "bets", "place", market, "--bettor", BOB, "--amount", "100", "--side", "no")
    assert r.exit_code == 0, r.output
    assert "Pools: yes=300 no=100" in r.output

    r = _invoke(cli_env, "markets", "quote", market, "--amount", "100", "--side", "no")
    assert "Potential payout: 250" in r.output

    r = _invoke(cli_env, "markets", "list")
    assert "Total: 1 markets" in r.output

    r = _invoke(cli_env, "markets", "resolve", market, "--resolver", ALICE, "--outcome", "no")
    assert r.exit_code == 1
    assert "unauthorized_resolver" in r.output

    r = _invoke(cli_env, "markets", "resolve", market, "--resolver", CREATOR, "--outcome", "no")
    assert r.exit_code == 0, r.output
    assert "Outcome: NO" in r.output

    r = _invoke(cli_env, "bets", "claim", market, "--bettor", BOB)
    assert r.exit_code == 0, r.output
    assert "Claimed 400" in r.output

    r = _invoke(cli_env, "bets", "position", market, "--user", BOB)
    assert "Claimed: True" in r.output

    r = _invoke(cli_env, "bets", "positions", "--user", BOB)
    assert r.exit_code == 0, r.output
    assert "Total: 1 positions" in r.output


def test_unknown_market_exits_nonzero(cli_env):
    r = _invoke(cli_env, "markets", "show", "ab" * 32)
    assert r.exit_code == 1
    assert "not_found" in r.output

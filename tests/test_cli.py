from __future__ import annotations

import pytest

from basisbot.cli import main as cli
from basisbot.errors import ConfigurationError, FillFailureError
from basisbot.models import (
    Leg,
    ManualAction,
    RunMode,
    RunResult,
    RunStatus,
    RunSummary,
)


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda level: None)


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setenv("ASTERDEX_API_KEY", "key")
    monkeypatch.setenv("ASTERDEX_API_SECRET", "secret")


def _result(mode: RunMode = RunMode.OPEN, **kwargs) -> RunResult:
    return RunResult(
        mode=mode,
        symbol="BTCUSDT",
        status=kwargs.pop("status", RunStatus.COMPLETED),
        summary=RunSummary(total_lots=2, total_futures_qty=0.2, total_spot_qty=0.2),
        **kwargs,
    )


@pytest.mark.parametrize(
    "total, lot",
    [("0", "10"), ("100", "-1"), ("50", "100"), ("abc", "10"), ("nan", "10")],
)
def test_open_arguments_are_validated(total, lot):
    with pytest.raises(ConfigurationError):
        cli.validate_open_args(total, lot)


@pytest.mark.parametrize(
    "close, lot",
    [("0", "10"), ("101", "10"), ("50", "60"), ("50", "0"), ("x", "1")],
)
def test_close_arguments_are_validated(close, lot):
    with pytest.raises(ConfigurationError):
        cli.validate_close_args(close, lot)


def test_valid_arguments_are_parsed():
    assert cli.validate_open_args("1000", "100") == (1000.0, 100.0)
    assert cli.validate_close_args("100", "20") == (100.0, 20.0)


def test_invalid_arguments_exit_before_network(monkeypatch, tmp_path, credentials):
    async def _unexpected(*args, **kwargs):  # pragma: no cover - must not run
        raise AssertionError("network path reached")

    monkeypatch.setattr(cli, "_run", _unexpected)

    code = cli.main(["--env-file", str(tmp_path / "none.env"), "open", "BTCUSDT", "100", "500"])

    assert code == cli.EXIT_FAILURE


def test_missing_credentials_exit_with_failure(tmp_path):
    code = cli.main(["--env-file", str(tmp_path / "none.env"), "close", "BTCUSDT", "100", "20"])

    assert code == cli.EXIT_FAILURE


def test_successful_run_exits_zero(monkeypatch, tmp_path, credentials, caplog):
    captured = {}

    async def _fake_run(args, config, symbol, sizes):
        captured.update(command=args.command, symbol=symbol, sizes=sizes)
        return _result(
            manual_actions=(ManualAction(Leg.SPOT, "BTC", 0.01, 0.5, "close manually"),),
            status=RunStatus.PARTIAL_BALANCE,
        )

    monkeypatch.setattr(cli, "_run", _fake_run)

    with caplog.at_level("INFO"):
        code = cli.main(["--env-file", str(tmp_path / "none.env"), "open", "btc-usdt", "1000", "100"])

    assert code == cli.EXIT_OK
    assert captured == {"command": "open", "symbol": "BTCUSDT", "sizes": (1000.0, 100.0)}
    assert "OPEN SUMMARY" in caplog.text
    assert "MANUAL: spot remaining" in caplog.text


def test_fatal_error_exits_one(monkeypatch, tmp_path, credentials):
    async def _fake_run(args, config, symbol, sizes):
        raise FillFailureError("lot 1 not filled")

    monkeypatch.setattr(cli, "_run", _fake_run)

    code = cli.main(["--env-file", str(tmp_path / "none.env"), "close", "BTCUSDT", "100", "50"])

    assert code == cli.EXIT_FAILURE


def test_interrupt_exits_130(monkeypatch, tmp_path, credentials):
    async def _fake_run(args, config, symbol, sizes):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "_run", _fake_run)

    code = cli.main(["--env-file", str(tmp_path / "none.env"), "open", "BTCUSDT", "100", "50"])

    assert code == cli.EXIT_INTERRUPTED


def test_config_file_errors_exit_one(tmp_path, credentials):
    bad = tmp_path / "config.yaml"
    bad.write_text("engine: [unclosed\n", encoding="utf-8")

    code = cli.main(
        ["--env-file", str(tmp_path / "none.env"), "--config", str(bad), "open", "BTCUSDT", "100", "50"]
    )

    assert code == cli.EXIT_FAILURE

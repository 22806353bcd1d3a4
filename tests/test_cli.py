"""CLI refresh trigger, driven through typer's ``CliRunner``."""

from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from miusage_feed import cli
from miusage_feed.errors import TransportError
from miusage_feed.services.coordinator import PAYLOAD_KEY

runner = CliRunner()


@pytest.fixture
def wired(monkeypatch, coordinator):
    monkeypatch.setattr(cli, "build_coordinator", lambda: coordinator)
    return coordinator


def test_refresh_success(wired, fetcher, store) -> None:
    store.set(PAYLOAD_KEY, {"old": True}, 3600)
    fetcher.queue([{"id": 1}, {"id": 2}, {"id": 3}])

    result = runner.invoke(cli.app, ["refresh"])

    assert result.exit_code == 0, result.output
    assert "Data marked for refresh" in result.output
    assert "Successfully fetched 3 items from API." in result.output
    assert "Cache will expire in: 1 hour" in result.output
    assert fetcher.calls == 1
    assert store.get(PAYLOAD_KEY) == [{"id": 1}, {"id": 2}, {"id": 3}]
    assert wired.is_refresh_pending() is False


def test_refresh_single_item(wired, fetcher) -> None:
    fetcher.queue({"only": "one"})
    result = runner.invoke(cli.app, ["refresh"])
    assert "Successfully fetched 1 item from API." in result.output


def test_refresh_fetch_failure(wired, fetcher) -> None:
    fetcher.queue(TransportError("Failed to fetch data from API: unreachable"))

    result = runner.invoke(cli.app, ["refresh"])

    assert result.exit_code == 1
    assert "Error: Failed to fetch data: Failed to fetch data from API: unreachable" in result.output


def test_refresh_mark_failure(monkeypatch) -> None:
    coordinator = MagicMock()
    coordinator.mark_for_refresh.return_value = False
    monkeypatch.setattr(cli, "build_coordinator", lambda: coordinator)

    result = runner.invoke(cli.app, ["refresh"])

    assert result.exit_code == 1
    assert "Failed to mark data for refresh" in result.output
    coordinator.get_data.assert_not_called()


def test_serve_runs_app_under_uvicorn(monkeypatch) -> None:
    run = MagicMock()
    monkeypatch.setattr(cli.uvicorn, "run", run)

    result = runner.invoke(cli.app, ["serve", "--port", "9000"])

    assert result.exit_code == 0, result.output
    run.assert_called_once_with("miusage_feed.app:app", host="127.0.0.1", port=9000, log_config=None)

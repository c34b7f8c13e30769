# tests/unit/test_cli.py
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from click.testing import CliRunner

from app.cli import run_sync
from app.core.exceptions import NotConnectedError
from app.schemas.sync import SyncAllResult, SyncErrorDetail, SyncResult

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def fake_service(mocker, **methods):
    service = MagicMock()
    service.sync_log.flush = AsyncMock(return_value=0)
    for name, mock in methods.items():
        setattr(service, name, mock)
    mocker.patch.object(run_sync, "BookingSyncService", return_value=service)
    return service


def test_sync_platform_prints_summary(mocker):
    result = SyncResult(run_id="run-1", villa_id=3, platform="vrbo", status="partial", new_bookings=2,
                        errors=[SyncErrorDetail(kind="malformed_response", message="bad row", external_id="V9")],
                        started_at=NOW, finished_at=NOW)
    service = fake_service(mocker, sync_platform=AsyncMock(return_value=result))

    outcome = CliRunner().invoke(run_sync.cli, ["sync-platform", "3", "vrbo"])

    assert outcome.exit_code == 0
    assert "Sync partial (run run-1)" in outcome.output
    assert "New: 2" in outcome.output
    assert "malformed_response: bad row" in outcome.output
    service.sync_platform.assert_awaited_once_with(3, "vrbo")
    service.sync_log.flush.assert_awaited_once()


def test_sync_platform_not_connected(mocker):
    fake_service(mocker, sync_platform=AsyncMock(side_effect=NotConnectedError("Villa 3 is not connected to VRBO")))

    outcome = CliRunner().invoke(run_sync.cli, ["sync-platform", "3", "vrbo"])

    assert outcome.exit_code == 1
    assert "not connected to VRBO" in outcome.output


def test_sync_platform_rejects_unknown_platform(mocker):
    fake_service(mocker)

    outcome = CliRunner().invoke(run_sync.cli, ["sync-platform", "3", "tripadvisor"])

    assert outcome.exit_code == 2


def test_sync_all(mocker):
    result = SyncAllResult(run_id="run-2", owner_id="owner-1", status="success", total_platforms=1, successful=1,
                           partial=0, failed=0, skipped=0, total_new_bookings=0, total_updated_bookings=0,
                           total_conflicts=0)
    service = fake_service(mocker, sync_all=AsyncMock(return_value=result))

    outcome = CliRunner().invoke(run_sync.cli, ["sync-all", "owner-1", "--max-concurrent", "3"])

    assert outcome.exit_code == 0
    assert "Sync all success: 1 ok" in outcome.output
    service.sync_all.assert_awaited_once_with("owner-1", max_concurrent=3)

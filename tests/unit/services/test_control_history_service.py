from unittest.mock import MagicMock

import pytest

from app.domain.control import ControlHistoryRecord
from app.enums import AuditAction, CommandSource
from app.services.application.control_history_service import ControlHistoryService, history_value


def _record(greenhouse_id, control_key="fan_1", *, success=True, source=CommandSource.MANUAL, user_id=7):
    return ControlHistoryRecord(
        greenhouse_id=greenhouse_id,
        control_key=control_key,
        control_name=control_key,
        action="set",
        value="true",
        source=source,
        user_id=user_id,
        success=success,
        error_message=None if success else "boom",
    )


@pytest.mark.parametrize(
    "value, expected",
    [(True, "true"), (False, "false"), (None, None), (2, "2"), ({"b": 1, "a": 2}, '{"a": 2, "b": 1}')],
)
def test_history_value(value, expected):
    assert history_value(value) == expected


def test_record_and_list(history_service, seeded):
    history_service.record(_record(seeded["gh1_id"]))
    history_service.record(_record(seeded["gh1_id"], "valve_1", success=False))
    history_service.record(_record(seeded["other_gh_id"], source=CommandSource.AUTOMATION, user_id=None))

    page = history_service.list_history({"project_key": "farm"}, limit=10)
    assert page["total"] == 2
    assert {item["control_key"] for item in page["items"]} == {"fan_1", "valve_1"}
    assert all(item["project_key"] == "farm" for item in page["items"])
    assert all(isinstance(item["success"], bool) for item in page["items"])
    assert page["items"][0]["greenhouse_name"] == "North House"


@pytest.mark.parametrize(
    "filters, expected",
    [
        ({"success": False}, 1),
        ({"success": True}, 2),
        ({"source": "automation"}, 1),
        ({"control_key": "valve_1"}, 1),
        ({"gh_key": "gh1"}, 3),
        ({"user_id": 7}, 2),
    ],
)
def test_filters(history_service, seeded, filters, expected):
    history_service.record(_record(seeded["gh1_id"]))
    history_service.record(_record(seeded["gh1_id"], "valve_1", success=False))
    history_service.record(_record(seeded["other_gh_id"], source=CommandSource.AUTOMATION, user_id=None))

    assert history_service.list_history(filters)["total"] == expected


def test_pagination(history_service, seeded):
    for _ in range(5):
        history_service.record(_record(seeded["gh1_id"]))
    page = history_service.list_history({}, limit=2, offset=4)
    assert page["total"] == 5
    assert len(page["items"]) == 1


def test_stats(history_service, seeded):
    history_service.record(_record(seeded["gh1_id"]))
    history_service.record(_record(seeded["gh1_id"], "valve_1", success=False))
    history_service.record(_record(seeded["gh1_id"], source=CommandSource.SCHEDULE))

    stats = history_service.stats({"project_key": "farm"})
    assert stats["total"] == 3
    assert stats["success"] == 2
    assert stats["failed"] == 1
    assert stats["success_rate"] == pytest.approx(0.6667, abs=1e-4)
    assert stats["by_source"] == {"manual": 2, "schedule": 1}
    assert stats["by_control"] == {"fan_1": 2, "valve_1": 1}


def test_empty_stats_have_no_rate(history_service, seeded):
    assert history_service.stats({})["success_rate"] is None


def test_recent_for_greenhouse(history_service, seeded):
    history_service.record(_record(seeded["gh1_id"]))
    history_service.record(_record(seeded["other_gh_id"]))
    recent = history_service.recent(seeded["gh1_id"])
    assert len(recent) == 1
    assert recent[0]["greenhouse_id"] == seeded["gh1_id"]


def test_record_failure_is_swallowed(audit_repo):
    broken = MagicMock()
    broken.insert.side_effect = RuntimeError("disk full")
    service = ControlHistoryService(broken, audit_repo)
    assert service.record(_record(1)) is None


def test_audit_writes_table_and_log_line(history_repo, audit_repo):
    audit_logger = MagicMock()
    history_service = ControlHistoryService(history_repo, audit_repo, audit_logger)
    history_service.audit(
        AuditAction.RPC_SENT,
        user_id=7,
        project_key="farm",
        gh_key="gh1",
        detail={"method": "set_fan_1_cmd"},
        ip_address="10.0.0.5",
    )
    rows = audit_repo.recent(10)
    assert rows[0]["action"] == "RPC_SENT"
    assert rows[0]["detail"] == {"method": "set_fan_1_cmd"}

    audit_logger.log_event.assert_called_once_with(
        actor="7",
        action="RPC_SENT",
        resource="farm/gh1",
        outcome="success",
        method="set_fan_1_cmd",
    )


def test_audit_failure_is_swallowed(history_repo):
    broken = MagicMock()
    broken.insert.side_effect = RuntimeError("locked")
    audit_logger = MagicMock()
    service = ControlHistoryService(history_repo, broken, audit_logger)

    service.audit(AuditAction.RPC_FAILED, user_id=None, project_key="farm", gh_key="gh1")

    assert audit_logger.log_event.call_args.kwargs["outcome"] == "failure"
    assert audit_logger.log_event.call_args.kwargs["actor"] == "system"

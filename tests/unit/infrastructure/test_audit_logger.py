from infrastructure.logging.audit import AuditLogger, read_audit_lines


def test_events_are_written_as_json_lines(tmp_path):
    path = tmp_path / "audit.log"
    audit = AuditLogger(str(path))
    audit.log_event(actor="7", action="rpc_sent", resource="farm/gh1", outcome="success", method="set_fan_1_cmd")
    audit.log_event(actor="7", action="rpc_failed", resource="farm/gh1", outcome="failure")
    audit.close()

    entries = read_audit_lines(str(path))
    assert [e["action"] for e in entries] == ["rpc_sent", "rpc_failed"]
    assert entries[0]["meta"] == {"method": "set_fan_1_cmd"}
    assert "meta" not in entries[1]
    assert entries[0]["ts"].endswith("+00:00")


def test_second_logger_writes_to_its_own_file(tmp_path):
    first = AuditLogger(str(tmp_path / "a.log"))
    first.log_event(actor="1", action="rpc_sent", resource="farm/gh1", outcome="success")

    second = AuditLogger(str(tmp_path / "b.log"))
    second.log_event(actor="2", action="rpc_sent", resource="farm/gh2", outcome="success")
    second.close()

    assert [e["actor"] for e in read_audit_lines(str(tmp_path / "a.log"))] == ["1"]
    assert [e["actor"] for e in read_audit_lines(str(tmp_path / "b.log"))] == ["2"]


def test_read_audit_lines_limit_and_missing_file(tmp_path):
    assert read_audit_lines(str(tmp_path / "missing.log")) == []

    audit = AuditLogger(str(tmp_path / "audit.log"))
    for n in range(5):
        audit.log_event(actor=str(n), action="rpc_sent", resource="farm/gh1", outcome="success")
    audit.close()

    assert [e["actor"] for e in read_audit_lines(str(tmp_path / "audit.log"), limit=2)] == ["3", "4"]

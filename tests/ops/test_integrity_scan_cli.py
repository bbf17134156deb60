import json

from app.custody.db.models import AssetItem, HolderType, Transfer, TransferStatus
from app.ops.integrity_scan import main, run_scan
from tests.transfer_helpers import seed_item


def _database_url(db_session) -> str:
    return db_session.get_bind().url.render_as_string(hide_password=False)


def test_integrity_scan_no_findings(db_session, capsys):
    seed_item(db_session, "IT-1")

    exit_code = run_scan("json", False, database_url=_database_url(db_session))
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert payload["summary"] == {"total": 0, "critical": 0, "warn": 0}
    assert payload["findings"] == []


def test_integrity_scan_warn_does_not_fail(db_session, capsys):
    db_session.add(AssetItem(id="IT-STRAY", tag="TAG-STRAY", holder_type=HolderType.STORE, holder_id="STORE"))
    db_session.commit()

    exit_code = main(["--format", "text", "--fail-on-critical", "--database-url", _database_url(db_session)])
    output = capsys.readouterr().out

    assert exit_code == 0
    assert "WARN: 1" in output
    assert "store_custody" in output


def test_integrity_scan_critical_exit(db_session, capsys):
    db_session.add(Transfer(from_office_id="OFF-A", to_office_id="OFF-B", status=TransferStatus.APPROVED))
    db_session.commit()

    exit_code = run_scan("json", True, database_url=_database_url(db_session))
    payload = json.loads(capsys.readouterr().out)

    assert exit_code == 1
    assert payload["summary"]["critical"] == 2
    assert {finding["check_id"] for finding in payload["findings"]} == {"transfer_fsm", "transfer_history"}

import json

from condoguard.config import AppConfig
from condoguard.database import DatabaseManager
from condoguard.schema import LOCAL_TABLES, initialize_schema
from condoguard.utils.audit import log_audit_event


def test_schema_is_idempotent(db, logger):
    initialize_schema(db.sqlite, logger)

    names = {
        row["name"]
        for row in db.sqlite.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
    }
    assert set(LOCAL_TABLES) <= names


def test_audit_event_is_persisted(db, logger):
    log_audit_event(
        logger=logger,
        action="ACCESS_APPROVE",
        entity_type="AccessRecord",
        entity_id="acc-1",
        user_id="boss",
        details={"status": "aprovado"},
        conn=db.sqlite,
    )

    row = db.sqlite.execute("SELECT * FROM audit_log").fetchone()
    assert row["action"] == "ACCESS_APPROVE"
    assert json.loads(row["details"]) == {"status": "aprovado"}


def test_audit_persistence_failure_is_not_raised(db, logger):
    db.sqlite.execute("DROP TABLE audit_log")

    log_audit_event(
        logger=logger,
        action="SIGN_OUT",
        entity_type="Session",
        entity_id="user-1",
        user_id="user-1",
        conn=db.sqlite,
    )


def test_offline_database_manager(logger):
    manager = DatabaseManager(supabase_url="", supabase_key="", sqlite_path=":memory:", logger=logger)
    try:
        assert not manager.is_online
    finally:
        manager.close()


def test_config_defaults(monkeypatch):
    monkeypatch.delenv("NEW_ACCOUNT_WINDOW_S", raising=False)

    config = AppConfig(_env_file=None)

    assert config.NEW_ACCOUNT_WINDOW_S == 60.0
    assert "/configuracoes" in config.ADMIN_PATH_PREFIXES
    assert config.COLLABORATOR_TENANT_SUFFIXES == ("/checkin", "/obrigacoes")

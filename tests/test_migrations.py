from sqlalchemy import inspect


def test_migrations_create_custody_tables(db_session):
    inspector = inspect(db_session.get_bind())

    assert {
        "asset_items",
        "documents",
        "transfers",
        "transfer_lines",
        "transfer_status_events",
        "audit_events",
        "alembic_version",
    } <= set(inspector.get_table_names())
    assert "version" in {column["name"] for column in inspector.get_columns("transfers")}


def test_reservation_index_is_unique(db_session):
    inspector = inspect(db_session.get_bind())
    constraints = inspector.get_unique_constraints("transfer_lines")
    indexes = inspector.get_indexes("transfer_lines")

    reserved = [
        entry
        for entry in constraints + [index for index in indexes if index.get("unique")]
        if entry["column_names"] == ["reserved_asset_item_id"]
    ]
    assert reserved

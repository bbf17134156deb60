"""custody initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-09-14 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "asset_items",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("tag", sa.String(length=100), nullable=True),
        sa.Column("holder_type", sa.String(length=40), nullable=False),
        sa.Column("holder_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "documents",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("doc_type", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="Final"),
        sa.Column("office_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "transfers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("from_office_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("to_office_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="REQUESTED", index=True),
        sa.Column("handover_document_id", sa.String(length=64), nullable=True),
        sa.Column("takeover_document_id", sa.String(length=64), nullable=True),
        sa.Column("requisition_id", sa.String(length=64), nullable=True, index=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("requested_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("approved_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("dispatched_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(), nullable=True),
        sa.Column("store_received_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("store_received_at", sa.DateTime(), nullable=True),
        sa.Column("store_dispatched_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("store_dispatched_at", sa.DateTime(), nullable=True),
        sa.Column("received_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("received_at", sa.DateTime(), nullable=True),
        sa.Column("rejected_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("rejected_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by_user_id", sa.String(length=64), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_transfers_from_to", "transfers", ["from_office_id", "to_office_id"])
    op.create_table(
        "transfer_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), sa.ForeignKey("transfers.id"), nullable=False, index=True),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("asset_item_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reserved_asset_item_id", sa.String(length=64), nullable=True),
        sa.Column("prior_holder_type", sa.String(length=40), nullable=True),
        sa.Column("prior_holder_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("reserved_asset_item_id", name="uq_transfer_lines_reserved_asset_item"),
    )
    op.create_table(
        "transfer_status_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("transfer_id", GUID(), sa.ForeignKey("transfers.id"), nullable=False, index=True),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("transition", sa.String(length=40), nullable=True),
        sa.Column("from_status", sa.String(length=40), nullable=True),
        sa.Column("to_status", sa.String(length=40), nullable=False),
        sa.Column("actor_user_id", sa.String(length=64), nullable=True),
        sa.Column("actor_office_id", sa.String(length=64), nullable=True),
        sa.Column("document_id", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("transfer_id", "sequence", name="uq_transfer_status_events_sequence"),
    )
    op.create_table(
        "audit_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("user_id", sa.String(length=64), nullable=True, index=True),
        sa.Column("trace_id", sa.String(length=64), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("result", sa.String(length=20), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_events_entity", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_table("transfer_status_events")
    op.drop_table("transfer_lines")
    op.drop_index("ix_transfers_from_to", table_name="transfers")
    op.drop_table("transfers")
    op.drop_table("documents")
    op.drop_table("asset_items")

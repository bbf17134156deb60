import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator, CHAR


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class TransferStatus(str, enum.Enum):
    REQUESTED = "REQUESTED"
    APPROVED = "APPROVED"
    DISPATCHED_TO_STORE = "DISPATCHED_TO_STORE"
    RECEIVED_AT_STORE = "RECEIVED_AT_STORE"
    DISPATCHED_TO_DEST = "DISPATCHED_TO_DEST"
    RECEIVED_AT_DEST = "RECEIVED_AT_DEST"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class HolderType(str, enum.Enum):
    OFFICE = "OFFICE"
    STORE = "STORE"


def _enum_column(enum_cls):
    return Enum(
        enum_cls,
        native_enum=False,
        length=40,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )


class Base(DeclarativeBase):
    pass


class AssetItem(Base):
    """Holder pointer projection of the asset directory."""

    __tablename__ = "asset_items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    tag: Mapped[str | None] = mapped_column(String(100), nullable=True)
    holder_type: Mapped[HolderType] = mapped_column(_enum_column(HolderType), nullable=False)
    holder_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Document(Base):
    """Reference projection of the document store."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    doc_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Final")
    office_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Transfer(Base):
    __tablename__ = "transfers"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    from_office_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    to_office_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[TransferStatus] = mapped_column(
        _enum_column(TransferStatus), nullable=False, default=TransferStatus.REQUESTED, index=True
    )
    handover_document_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    takeover_document_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    requisition_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    dispatched_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    store_received_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    store_received_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    store_dispatched_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    store_dispatched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    received_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    rejected_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    lines = relationship(
        "TransferLine",
        back_populates="transfer",
        order_by="TransferLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    history = relationship(
        "TransferStatusEvent",
        back_populates="transfer",
        order_by="TransferStatusEvent.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def asset_item_id(self) -> str | None:
        return self.lines[0].asset_item_id if self.lines else None


class TransferLine(Base):
    __tablename__ = "transfer_lines"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    transfer_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("transfers.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    asset_item_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Non-null only while the transfer is open.
    reserved_asset_item_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    prior_holder_type: Mapped[HolderType | None] = mapped_column(_enum_column(HolderType), nullable=True)
    prior_holder_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    transfer = relationship("Transfer", back_populates="lines")

    __table_args__ = (
        UniqueConstraint("reserved_asset_item_id", name="uq_transfer_lines_reserved_asset_item"),
    )


class TransferStatusEvent(Base):
    __tablename__ = "transfer_status_events"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    transfer_id: Mapped[uuid.UUID] = mapped_column(GUID(), ForeignKey("transfers.id"), nullable=False, index=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    transition: Mapped[str | None] = mapped_column(String(40), nullable=True)
    from_status: Mapped[TransferStatus | None] = mapped_column(_enum_column(TransferStatus), nullable=True)
    to_status: Mapped[TransferStatus] = mapped_column(_enum_column(TransferStatus), nullable=False)
    actor_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    actor_office_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    document_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    transfer = relationship("Transfer", back_populates="history")

    __table_args__ = (
        UniqueConstraint("transfer_id", "sequence", name="uq_transfer_status_events_sequence"),
    )


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str | None] = mapped_column(String(64), index=True, nullable=True)
    trace_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    result: Mapped[str] = mapped_column(String(20), nullable=False)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


Index("ix_transfers_from_to", Transfer.from_office_id, Transfer.to_office_id)
Index("ix_audit_events_entity", AuditEvent.entity_type, AuditEvent.entity_id)

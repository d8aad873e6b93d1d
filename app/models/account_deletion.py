"""Account deletion request model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

from app.models.users import metadata

account_deletion_requests = Table(
    "account_deletion_requests",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True),
    Column(
        "user_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("deletion_token", String(36), nullable=False, unique=True),
    Column("reason", Text),
    Column("status", String(20), nullable=False, server_default=text("'pending'")),
    Column("requested_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("confirmed_at", DateTime(timezone=True)),
    Column("completed_at", DateTime(timezone=True)),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'cancelled', 'completed', 'expired')",
        name="account_deletion_requests_status_check",
    ),
)

"""Session and remember-me token models using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
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

user_sessions = Table(
    "user_sessions",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True),
    Column(
        "user_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    # SHA-256 of the opaque session token; the raw token is only returned once
    Column("token_hash", String(64), nullable=False, unique=True),
    Column("device_fingerprint", String(32)),
    Column("ip_address", String(45)),
    Column("user_agent", Text),
    Column("login_type", String(20), nullable=False, server_default=text("'email'")),
    Column("remember_me", Boolean, nullable=False, server_default=text("false")),
    Column("expires_at", DateTime(timezone=True), nullable=False, index=True),
    Column("last_activity_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint(
        "login_type IN ('email', 'phone', 'remember_me')",
        name="user_sessions_login_type_check",
    ),
)

remember_tokens = Table(
    "remember_tokens",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True),
    Column(
        "user_id",
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("token_hash", String(64), nullable=False, unique=True),
    Column("device_fingerprint", String(32)),
    Column("expires_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

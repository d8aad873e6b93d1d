"""User model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    func,
    text,
)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True),
    # Credentials (at least one identifier must be present)
    Column("email", Text, unique=True, index=True),
    Column("phone", String(20), unique=True, index=True),
    Column("password_hash", Text, nullable=False),
    # Profile
    Column("first_name", Text, nullable=False),
    Column("last_name", Text, nullable=False),
    Column("role", Text, nullable=False, server_default=text("'CUSTOMER'")),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column("account_status", Text, nullable=False, server_default=text("'active'")),
    Column("email_verified_at", DateTime(timezone=True)),
    Column("phone_verified_at", DateTime(timezone=True)),
    Column("password_changed_at", DateTime(timezone=True)),
    Column("last_login_at", DateTime(timezone=True)),
    # Deletion workflow
    Column("deletion_requested_at", DateTime(timezone=True)),
    Column("deleted_at", DateTime(timezone=True)),
    Column("deletion_reason", Text),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    CheckConstraint("email IS NOT NULL OR phone IS NOT NULL", name="users_identifier_check"),
    CheckConstraint("role IN ('CUSTOMER', 'ADMIN')", name="users_role_check"),
    CheckConstraint(
        "account_status IN ('active', 'pending_deletion', 'deleted')",
        name="users_account_status_check",
    ),
)

"""Initial SSO admin schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

civil_status = postgresql.ENUM(
    "single",
    "married",
    "widowed",
    "separated",
    "divorced",
    name="civil_status",
    create_type=False,
)
location_level = postgresql.ENUM(
    "region",
    "province",
    "city",
    "barangay",
    name="location_level",
    create_type=False,
)
access_role = postgresql.ENUM(
    "guest",
    "standard",
    "administrator",
    "super_administrator",
    name="access_role",
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    civil_status.create(bind, checkfirst=True)
    location_level.create(bind, checkfirst=True)
    access_role.create(bind, checkfirst=True)

    op.create_table(
        "offices",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("abbreviation", sa.String(length=32), nullable=False),
        sa.UniqueConstraint("name", name="uq_offices_name"),
    )

    op.create_table(
        "locations",
        sa.Column("code", sa.String(length=16), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("level", location_level, nullable=False),
        sa.Column("parent_code", sa.String(length=16), nullable=True),
        sa.ForeignKeyConstraint(["parent_code"], ["locations.code"], ondelete="SET NULL"),
    )
    op.create_index("ix_locations_level", "locations", ["level"])
    op.create_index("ix_locations_parent_code", "locations", ["parent_code"])

    op.create_table(
        "employees",
        sa.Column("uuid", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("middle_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("suffix", sa.String(length=20), nullable=True),
        sa.Column("birthday", sa.Date(), nullable=False),
        sa.Column("civil_status", civil_status, nullable=False),
        sa.Column("nationality", sa.String(length=100), nullable=False),
        sa.Column("residence", sa.String(length=255), nullable=False),
        sa.Column("block_number", sa.String(length=50), nullable=True),
        sa.Column("building_floor", sa.String(length=50), nullable=True),
        sa.Column("house_number", sa.String(length=50), nullable=True),
        sa.Column("region_code", sa.String(length=16), nullable=True),
        sa.Column("province_code", sa.String(length=16), nullable=True),
        sa.Column("city_code", sa.String(length=16), nullable=True),
        sa.Column("barangay_code", sa.String(length=16), nullable=True),
        sa.Column("office_id", sa.Integer(), nullable=True),
        sa.Column("position", sa.String(length=255), nullable=True),
        sa.Column("date_employed", sa.Date(), nullable=True),
        sa.Column("date_terminated", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["office_id"], ["offices.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_employees_email", "employees", ["email"], unique=True)
    op.create_index("ix_employees_office_id", "employees", ["office_id"])

    op.create_table(
        "applications",
        sa.Column("uuid", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("client_id", sa.String(length=64), nullable=False),
        sa.Column("client_secret_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "redirect_uris",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("rate_limit_per_minute", sa.Integer(), nullable=False, server_default=sa.text("60")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("secret_rotated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        *_timestamps(),
        sa.CheckConstraint(
            "rate_limit_per_minute BETWEEN 1 AND 1000",
            name="ck_applications_rate_limit_range",
        ),
    )
    op.create_index("ix_applications_client_id", "applications", ["client_id"], unique=True)

    op.create_table(
        "access_grants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("employee_uuid", sa.Uuid(), nullable=False),
        sa.Column("application_uuid", sa.Uuid(), nullable=False),
        sa.Column("role", access_role, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["employee_uuid"], ["employees.uuid"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["application_uuid"], ["applications.uuid"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_uuid", "application_uuid", name="uq_access_grants_employee_application"),
    )
    op.create_index("ix_access_grants_employee_uuid", "access_grants", ["employee_uuid"])
    op.create_index("ix_access_grants_application_uuid", "access_grants", ["application_uuid"])

    op.create_table(
        "employee_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("jti", sa.String(length=64), nullable=False),
        sa.Column("employee_uuid", sa.Uuid(), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_ip", sa.String(length=128), nullable=True),
        sa.Column("last_user_agent", sa.String(length=1024), nullable=True),
        sa.ForeignKeyConstraint(["employee_uuid"], ["employees.uuid"], ondelete="CASCADE"),
    )
    op.create_index("ix_employee_sessions_jti", "employee_sessions", ["jti"], unique=True)
    op.create_index("ix_employee_sessions_employee_uuid", "employee_sessions", ["employee_uuid"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("employee_uuid", sa.Uuid(), nullable=True),
        sa.Column("employee_name", sa.String(length=255), nullable=True),
        sa.Column("application_uuid", sa.Uuid(), nullable=True),
        sa.Column("application_name", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=128), nullable=True),
        sa.Column("user_agent", sa.String(length=1024), nullable=True),
        sa.Column(
            "metadata",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_employee_uuid", "audit_logs", ["employee_uuid"])
    op.create_index("ix_audit_logs_application_uuid", "audit_logs", ["application_uuid"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    # Audit rows are append-only at the database level as well.
    op.execute(
        """
        CREATE OR REPLACE FUNCTION audit_logs_reject_change() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'audit_logs is append-only';
        END;
        $$ LANGUAGE plpgsql
        """
    )
    op.execute(
        """
        CREATE TRIGGER audit_logs_append_only
        BEFORE UPDATE OR DELETE ON audit_logs
        FOR EACH ROW EXECUTE FUNCTION audit_logs_reject_change()
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS audit_logs_append_only ON audit_logs")
    op.execute("DROP FUNCTION IF EXISTS audit_logs_reject_change()")
    op.drop_table("audit_logs")
    op.drop_table("employee_sessions")
    op.drop_table("access_grants")
    op.drop_table("applications")
    op.drop_table("employees")
    op.drop_table("locations")
    op.drop_table("offices")

    bind = op.get_bind()
    access_role.drop(bind, checkfirst=True)
    location_level.drop(bind, checkfirst=True)
    civil_status.drop(bind, checkfirst=True)

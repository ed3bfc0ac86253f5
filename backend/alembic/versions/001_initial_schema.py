"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = '001'
down_revision = None
branch_labels = None
depends_on = None


JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now())]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()))
    return columns


def upgrade() -> None:
    op.create_table(
        "zones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_zones_name", "zones", ["name"])

    op.create_table(
        "villages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_villages_zone_id", "villages", ["zone_id"])

    op.create_table(
        "staff",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("ic_number", sa.String(length=20), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="staff"),
        sa.Column("position", sa.String(length=255), nullable=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        *_timestamps(),
        sa.CheckConstraint(
            "role IN ('super_admin', 'adun', 'zone_leader', 'ketua_cawangan', 'staff_manager', 'staff')",
            name="chk_staff_role",
        ),
        sa.CheckConstraint("status IN ('active', 'inactive')", name="chk_staff_status"),
    )
    op.create_index("ix_staff_email", "staff", ["email"])
    op.create_index("ix_staff_ic_number", "staff", ["ic_number"])
    op.create_index("ix_staff_role", "staff", ["role"])
    op.create_index("ix_staff_zone_id", "staff", ["zone_id"])
    op.create_index("ix_staff_status", "staff", ["status"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("ic_number", sa.String(length=20), nullable=True),
        sa.Column("village_id", sa.Integer(), sa.ForeignKey("villages.id", ondelete="SET NULL"), nullable=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("household_member_id", sa.Integer(), nullable=True),
        sa.Column("verification_status", sa.String(length=20), nullable=False, server_default="pending"),
        *_timestamps(),
        sa.CheckConstraint(
            "verification_status IN ('pending', 'verified', 'rejected')",
            name="chk_profile_verification_status",
        ),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"])
    op.create_index("ix_profiles_ic_number", "profiles", ["ic_number"])
    op.create_index("ix_profiles_village_id", "profiles", ["village_id"])
    op.create_index("ix_profiles_zone_id", "profiles", ["zone_id"])
    op.create_index("ix_profiles_household_member_id", "profiles", ["household_member_id"])
    op.create_index("ix_profiles_verification_status", "profiles", ["verification_status"])

    op.create_table(
        "households",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("head_name", sa.String(length=255), nullable=False),
        sa.Column("head_ic_number", sa.String(length=20), nullable=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_households_zone_id", "households", ["zone_id"])

    op.create_table(
        "issues",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reporter_id", sa.Integer(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="SET NULL"), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=32), nullable=False, server_default="other"),
        sa.Column("issue_type_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'in_progress', 'resolved', 'closed')",
            name="chk_issue_status",
        ),
    )
    op.create_index("ix_issues_reporter_id", "issues", ["reporter_id"])
    op.create_index("ix_issues_assigned_staff_id", "issues", ["assigned_staff_id"])
    op.create_index("ix_issues_zone_id", "issues", ["zone_id"])
    op.create_index("ix_issues_issue_type_id", "issues", ["issue_type_id"])
    op.create_index("ix_issues_status", "issues", ["status"])
    op.create_index("ix_issues_created_at", "issues", ["created_at"])

    op.create_table(
        "aids_programs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("aid_type", sa.String(length=100), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("total_households", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("distributed_households", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.CheckConstraint("distributed_households >= 0", name="chk_program_distributed_non_negative"),
    )
    op.create_index("ix_aids_programs_status", "aids_programs", ["status"])
    op.create_index("ix_aids_programs_created_by", "aids_programs", ["created_by"])
    op.create_index("ix_aids_programs_created_at", "aids_programs", ["created_at"])

    op.create_table(
        "aids_program_zones",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("aids_programs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), nullable=True),
        sa.Column("village_id", sa.Integer(), sa.ForeignKey("villages.id", ondelete="CASCADE"), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_aids_program_zones_program_id", "aids_program_zones", ["program_id"])
    op.create_index("ix_aids_program_zones_zone_id", "aids_program_zones", ["zone_id"])
    op.create_index("ix_aids_program_zones_village_id", "aids_program_zones", ["village_id"])

    op.create_table(
        "aids_program_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("aids_programs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("zone_id", sa.Integer(), sa.ForeignKey("zones.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assigned_to", sa.Integer(), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assigned_by", sa.Integer(), sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assignment_type", sa.String(length=20), nullable=False, server_default="ketua_cawangan"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "assignment_type IN ('ketua_cawangan', 'assigned_staff')",
            name="chk_assignment_type",
        ),
        sa.UniqueConstraint(
            "program_id", "zone_id", "assigned_to", "assignment_type",
            name="uq_program_assignment",
        ),
    )
    op.create_index("ix_aids_program_assignments_program_id", "aids_program_assignments", ["program_id"])
    op.create_index("ix_aids_program_assignments_zone_id", "aids_program_assignments", ["zone_id"])
    op.create_index("ix_aids_program_assignments_assigned_to", "aids_program_assignments", ["assigned_to"])

    op.create_table(
        "household_distribution_marks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("program_id", sa.Integer(), sa.ForeignKey("aids_programs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("household_id", sa.Integer(), sa.ForeignKey("households.id", ondelete="CASCADE"), nullable=False),
        sa.Column("received", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("marked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("marked_by", sa.Integer(), sa.ForeignKey("staff.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("program_id", "household_id", name="uq_distribution_program_household"),
        sa.CheckConstraint(
            "(received AND marked_at IS NOT NULL AND marked_by IS NOT NULL)"
            " OR (NOT received AND marked_at IS NULL AND marked_by IS NULL)",
            name="chk_distribution_mark_consistent",
        ),
    )
    op.create_index("ix_household_distribution_marks_program_id", "household_distribution_marks", ["program_id"])
    op.create_index("ix_household_distribution_marks_household_id", "household_distribution_marks", ["household_id"])
    op.create_index("idx_distribution_received", "household_distribution_marks", ["program_id", "received"])

    op.create_table(
        "permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=100), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
    )
    op.create_index("ix_permissions_code", "permissions", ["code"], unique=True)

    op.create_table(
        "staff_permissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="CASCADE"), nullable=False),
        sa.Column("permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("granted_by", sa.Integer(), sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("granted_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("staff_id", "permission_id", name="uq_staff_permission"),
    )
    op.create_index("ix_staff_permissions_staff_id", "staff_permissions", ["staff_id"])
    op.create_index("ix_staff_permissions_permission_id", "staff_permissions", ["permission_id"])

    op.create_table(
        "refresh_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("jti", sa.String(length=64), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("replaced_by_jti", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_refresh_sessions_subject", "refresh_sessions", ["subject"])
    op.create_index("ix_refresh_sessions_jti", "refresh_sessions", ["jti"], unique=True)
    op.create_index("ix_refresh_sessions_expires_at", "refresh_sessions", ["expires_at"])
    op.create_index("ix_refresh_sessions_revoked_at", "refresh_sessions", ["revoked_at"])
    op.create_index("ix_refresh_sessions_created_at", "refresh_sessions", ["created_at"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("actor_staff_id", sa.Integer(), sa.ForeignKey("staff.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_profile_id", sa.Integer(), sa.ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_email", sa.String(length=255), nullable=True),
        sa.Column("actor_role", sa.String(length=20), nullable=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("details", JSONType, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_events_event_type", "audit_events", ["event_type"])
    op.create_index("ix_audit_events_actor_staff_id", "audit_events", ["actor_staff_id"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("idx_audit_entity", "audit_events", ["entity_type", "entity_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("profile_id", sa.Integer(), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=16), nullable=False, server_default="system"),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("idempotency_key", name="uq_notifications_idempotency_key"),
    )
    op.create_index("ix_notifications_profile_id", "notifications", ["profile_id"])
    op.create_index("ix_notifications_read", "notifications", ["read"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])


def downgrade() -> None:
    for table in (
        "notifications",
        "audit_events",
        "refresh_sessions",
        "staff_permissions",
        "permissions",
        "household_distribution_marks",
        "aids_program_assignments",
        "aids_program_zones",
        "aids_programs",
        "issues",
        "households",
        "profiles",
        "staff",
        "villages",
        "zones",
    ):
        op.drop_table(table)

"""SQLAlchemy models for the community watch backend."""
from sqlalchemy import (
    JSON, Boolean, Column, String, Integer, DateTime, Text,
    ForeignKey, CheckConstraint, Index, UniqueConstraint, and_, or_
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base


JSONType = JSON().with_variant(JSONB(), "postgresql")

STAFF_ROLES = ('super_admin', 'adun', 'zone_leader', 'ketua_cawangan', 'staff_manager', 'staff')
ISSUE_STATUSES = ('pending', 'in_progress', 'resolved', 'closed')


class Zone(Base):
    """Zone model (top-level scoping unit)."""
    __tablename__ = "zones"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    villages = relationship("Village", back_populates="zone")


class Village(Base):
    """Village model; always belongs to one zone."""
    __tablename__ = "villages"

    id = Column(Integer, primary_key=True)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    zone = relationship("Zone", back_populates="villages")


class Staff(Base):
    """Staff member (admin roles included)."""
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    ic_number = Column(String(20), nullable=True, index=True)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False, default='staff', index=True)
    position = Column(String(255), nullable=True)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="SET NULL"), nullable=True, index=True)
    status = Column(String(20), nullable=False, default='active', index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(role.in_(STAFF_ROLES), name='chk_staff_role'),
        CheckConstraint(status.in_(['active', 'inactive']), name='chk_staff_status'),
    )

    # Relationships
    zone = relationship("Zone")


class Profile(Base):
    """Community user profile."""
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    ic_number = Column(String(20), nullable=True, index=True)
    village_id = Column(Integer, ForeignKey("villages.id", ondelete="SET NULL"), nullable=True, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="SET NULL"), nullable=True, index=True)
    household_member_id = Column(Integer, nullable=True, index=True)
    verification_status = Column(String(20), nullable=False, default='pending', index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            verification_status.in_(['pending', 'verified', 'rejected']),
            name='chk_profile_verification_status'
        ),
    )


class Household(Base):
    """Household registry entry."""
    __tablename__ = "households"

    id = Column(Integer, primary_key=True)
    head_name = Column(String(255), nullable=False)
    head_ic_number = Column(String(20), nullable=True)
    address = Column(Text, nullable=False)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Issue(Base):
    """Reported issue.

    reporter_id is set for community-submitted issues and NULL for issues
    entered by staff/admins.
    """
    __tablename__ = "issues"

    id = Column(Integer, primary_key=True)
    reporter_id = Column(Integer, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    assigned_staff_id = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    address = Column(Text, nullable=True)
    category = Column(String(32), nullable=False, default='other')
    issue_type_id = Column(Integer, nullable=True, index=True)
    status = Column(String(20), nullable=False, default='pending', index=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(status.in_(ISSUE_STATUSES), name='chk_issue_status'),
    )


class AidsProgram(Base):
    """Aid program.

    total_households / distributed_households are a cached projection of the
    household and distribution tables, recomputed on every mark write.
    """
    __tablename__ = "aids_programs"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    aid_type = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default='draft', index=True)
    created_by = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True, index=True)
    total_households = Column(Integer, nullable=False, default=0)
    distributed_households = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(distributed_households >= 0, name='chk_program_distributed_non_negative'),
    )

    # Relationships
    zones = relationship("AidsProgramZone", back_populates="program", cascade="all, delete-orphan")


class AidsProgramZone(Base):
    """Program coverage: a zone or a single village."""
    __tablename__ = "aids_program_zones"

    id = Column(Integer, primary_key=True)
    program_id = Column(Integer, ForeignKey("aids_programs.id", ondelete="CASCADE"), nullable=False, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="CASCADE"), nullable=True, index=True)
    village_id = Column(Integer, ForeignKey("villages.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    program = relationship("AidsProgram", back_populates="zones")


class ProgramAssignment(Base):
    """Grants a staff member scope over one zone of one program."""
    __tablename__ = "aids_program_assignments"

    id = Column(Integer, primary_key=True)
    program_id = Column(Integer, ForeignKey("aids_programs.id", ondelete="CASCADE"), nullable=False, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_to = Column(Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    assignment_type = Column(String(20), nullable=False, default='ketua_cawangan')
    notes = Column(Text, nullable=True)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            assignment_type.in_(['ketua_cawangan', 'assigned_staff']),
            name='chk_assignment_type'
        ),
        UniqueConstraint(
            'program_id', 'zone_id', 'assigned_to', 'assignment_type',
            name='uq_program_assignment'
        ),
    )


class HouseholdDistributionMark(Base):
    """Per-household received/not-received fact for a program."""
    __tablename__ = "household_distribution_marks"

    id = Column(Integer, primary_key=True)
    program_id = Column(Integer, ForeignKey("aids_programs.id", ondelete="CASCADE"), nullable=False, index=True)
    household_id = Column(Integer, ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True)
    received = Column(Boolean, nullable=False, default=False)
    marked_at = Column(DateTime(timezone=True), nullable=True)
    marked_by = Column(Integer, ForeignKey("staff.id", ondelete="RESTRICT"), nullable=True)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('program_id', 'household_id', name='uq_distribution_program_household'),
        CheckConstraint(
            or_(
                and_(received.is_(True), marked_at.isnot(None), marked_by.isnot(None)),
                and_(received.is_(False), marked_at.is_(None), marked_by.is_(None)),
            ),
            name='chk_distribution_mark_consistent'
        ),
        Index('idx_distribution_received', 'program_id', 'received'),
    )


class Permission(Base):
    """Named permission that can be granted to non-admin staff."""
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True)
    code = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    category = Column(String(50), nullable=True)


class StaffPermission(Base):
    __tablename__ = "staff_permissions"

    id = Column(Integer, primary_key=True)
    staff_id = Column(Integer, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(Integer, ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False, index=True)
    granted_by = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    granted_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('staff_id', 'permission_id', name='uq_staff_permission'),
    )


class RefreshSession(Base):
    """Refresh session for refresh-token rotation (server-side replay protection)."""

    __tablename__ = "refresh_sessions"

    id = Column(Integer, primary_key=True)
    # Login email the identity provider authenticated.
    subject = Column(String(255), nullable=False, index=True)
    # JWT ID (jti) stored server-side to detect refresh token replay.
    jti = Column(String(64), nullable=False, unique=True, index=True)
    issued_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True, index=True)
    replaced_by_jti = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class AuditEvent(Base):
    """Audit trail entry."""
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True)
    event_type = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(30), nullable=False)
    entity_id = Column(Integer, nullable=True)
    actor_staff_id = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True, index=True)
    actor_profile_id = Column(Integer, ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    actor_email = Column(String(255), nullable=True)
    actor_role = Column(String(20), nullable=True)
    action = Column(Text, nullable=False)
    details = Column(JSONType, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        Index('idx_audit_entity', 'entity_type', 'entity_id'),
    )


class Notification(Base):
    """In-app notification for a community profile, one row per recipient."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    profile_id = Column(Integer, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    category = Column(String(16), nullable=False, default='system')
    read = Column(Boolean, nullable=False, default=False, index=True)
    # Format: type:entity_id:detail
    idempotency_key = Column(String(255), unique=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

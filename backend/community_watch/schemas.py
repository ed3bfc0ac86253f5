"""Pydantic schemas for API."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Literal, Optional
from datetime import datetime


# Workspace schemas
class WorkspaceAccessResponse(BaseModel):
    canAccessAdmin: bool
    canAccessStaff: bool
    canAccessCommunity: bool
    isSuperAdmin: bool = False
    isAdun: bool = False
    isZoneLeader: bool = False
    isKetuaCawangan: bool = False
    staffId: Optional[int] = None
    zoneId: Optional[int] = None
    profileId: Optional[int] = None
    homePath: Optional[str] = None


class GateDecisionResponse(BaseModel):
    """Page-gate outcome for one workspace."""
    workspace: Literal["admin", "staff", "community"]
    outcome: Literal["allow", "redirect", "defer"]
    redirectTo: Optional[str] = None


# Issue schemas
class IssueResponse(BaseModel):
    id: int
    title: str
    description: str
    address: Optional[str] = None
    category: str
    status: str
    reporter_id: Optional[int] = None
    assigned_staff_id: Optional[int] = None
    zone_id: Optional[int] = None
    issue_type_id: Optional[int] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    can_delete: bool = False
    model_config = ConfigDict(from_attributes=True)


class IssueStatusUpdate(BaseModel):
    status: Literal["pending", "in_progress", "resolved", "closed"]


class IssueAssignRequest(BaseModel):
    staff_id: int = Field(gt=0)


# Aid distribution schemas
class DistributionMarkRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=2000)


class DistributionMarkResponse(BaseModel):
    program_id: int
    household_id: int
    received: bool
    marked_at: Optional[datetime] = None
    marked_by: Optional[int] = None
    notes: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class HouseholdStatusResponse(BaseModel):
    household_id: int
    head_name: str
    address: str
    zone_id: Optional[int] = None
    received: bool
    marked_at: Optional[datetime] = None
    marked_by: Optional[int] = None
    model_config = ConfigDict(from_attributes=True)


class ZoneProgressResponse(BaseModel):
    zone_id: Optional[int] = None
    village_id: Optional[int] = None
    zone_name: Optional[str] = None
    village_name: Optional[str] = None
    total_households: int
    distributed_households: int
    percentage: float
    model_config = ConfigDict(from_attributes=True)


class ProgramProgressResponse(BaseModel):
    program_id: int
    total_households: int
    distributed_households: int
    zones: list[ZoneProgressResponse]


class ProgramAssignmentCreate(BaseModel):
    zone_id: int = Field(gt=0)
    staff_id: int = Field(gt=0)
    notes: Optional[str] = Field(default=None, max_length=2000)


class ProgramAssignmentResponse(BaseModel):
    id: int
    program_id: int
    zone_id: int
    assigned_to: int
    assigned_by: Optional[int] = None
    assignment_type: str
    notes: Optional[str] = None
    assigned_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


# Permission schemas
class PermissionResponse(BaseModel):
    id: int
    code: str
    name: str
    category: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class StaffPermissionGrantRequest(BaseModel):
    permission_id: int = Field(gt=0)


class StaffPermissionResponse(BaseModel):
    id: int
    staff_id: int
    permission_id: int
    permission_code: str
    permission_name: str
    granted_by: Optional[int] = None
    granted_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)

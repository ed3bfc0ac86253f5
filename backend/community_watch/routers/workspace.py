"""Workspace access endpoints (page gates for the admin/staff/community areas)."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..auth import get_current_capabilities
from ..schemas import GateDecisionResponse, WorkspaceAccessResponse
from ..services.capabilities import Capabilities, workspace_access
from ..services.workspace_gate import Workspace, gate_workspace, home_path

router = APIRouter(prefix="/workspace", tags=["workspace"])


@router.get("/access", response_model=WorkspaceAccessResponse)
def get_workspace_access(capabilities: Capabilities = Depends(get_current_capabilities)):
    """Capability flags for the current caller."""
    return WorkspaceAccessResponse(
        **workspace_access(capabilities),
        isSuperAdmin=capabilities.is_super_admin,
        isAdun=capabilities.is_adun,
        isZoneLeader=capabilities.is_zone_leader,
        isKetuaCawangan=capabilities.is_ketua_cawangan,
        staffId=capabilities.staff_id,
        zoneId=capabilities.zone_id,
        profileId=capabilities.profile_id,
        homePath=home_path(capabilities),
    )


@router.get("/gate/{workspace}", response_model=GateDecisionResponse)
def get_workspace_gate(
    workspace: Workspace,
    path: Optional[str] = Query(None, max_length=512),
    capabilities: Capabilities = Depends(get_current_capabilities),
):
    """Decide whether the caller may render a page in `workspace`."""
    decision = gate_workspace(capabilities, workspace, path=path)
    return GateDecisionResponse(
        workspace=workspace.value,
        outcome=decision.outcome,
        redirectTo=decision.redirect_to,
    )

"""Workspace gate: decides whether a caller may enter admin/staff/community pages."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from .capabilities import Capabilities


class Workspace(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    COMMUNITY = "community"


ADMIN_DASHBOARD = "/admin/dashboard"
STAFF_DASHBOARD = "/staff/dashboard"
COMMUNITY_DASHBOARD = "/community/dashboard"


def login_path(workspace: Workspace) -> str:
    return f"/{workspace.value}/login"


@dataclass(frozen=True)
class GateDecision:
    outcome: Literal["allow", "redirect", "defer"]
    redirect_to: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == "allow"


ALLOW = GateDecision("allow")
# Render the page and let the client-side check decide; avoids redirect loops
# around the staff login page.
DEFER = GateDecision("defer")


def redirect(path: str) -> GateDecision:
    return GateDecision("redirect", redirect_to=path)


def _gate_admin(capabilities: Capabilities) -> GateDecision:
    if not capabilities.can_access_admin:
        if capabilities.can_access_staff:
            return redirect(STAFF_DASHBOARD)
        if capabilities.can_access_community:
            return redirect(COMMUNITY_DASHBOARD)
        return redirect(login_path(Workspace.ADMIN))
    # Authenticated but not provisioned as staff.
    if capabilities.staff_id is None:
        return redirect(login_path(Workspace.ADMIN))
    return ALLOW


def _gate_staff(capabilities: Capabilities) -> GateDecision:
    if not capabilities.can_access_staff and not capabilities.can_access_admin:
        if capabilities.can_access_community:
            return redirect(COMMUNITY_DASHBOARD)
        return DEFER
    return ALLOW


def _gate_community(capabilities: Capabilities) -> GateDecision:
    if not capabilities.can_access_community:
        if capabilities.can_access_admin:
            return redirect(ADMIN_DASHBOARD)
        if capabilities.can_access_staff:
            return redirect(STAFF_DASHBOARD)
        return redirect(login_path(Workspace.COMMUNITY))
    return ALLOW


_GATES = {
    Workspace.ADMIN: _gate_admin,
    Workspace.STAFF: _gate_staff,
    Workspace.COMMUNITY: _gate_community,
}


def gate_workspace(
    capabilities: Capabilities,
    workspace: Workspace | str,
    *,
    path: str | None = None,
) -> GateDecision:
    """Return allow, a redirect target, or defer for the requested workspace."""
    workspace = Workspace(workspace)
    login = login_path(workspace)

    if path is not None and path.rstrip("/") == login:
        return ALLOW
    if not capabilities.is_authenticated:
        return redirect(login)
    return _GATES[workspace](capabilities)


def home_path(capabilities: Capabilities) -> str | None:
    """Landing page after login, in admin > staff > community order."""
    if capabilities.is_admin and capabilities.staff_id is not None:
        return ADMIN_DASHBOARD
    if capabilities.can_access_staff:
        return STAFF_DASHBOARD
    if capabilities.can_access_community:
        return COMMUNITY_DASHBOARD
    return None

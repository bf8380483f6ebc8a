# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for role-based access control.

This module contains pure functions deciding whether an actor, with an
explicitly passed role, may perform an action. The rule table is closed:
anything it does not list is denied.

The gate governs what the engine itself permits. A client writing to the
store directly bypasses it, so the store's own access rules remain the
tamper-proof boundary.
"""

from typing import Any, Dict, FrozenSet, Optional
from dataclasses import dataclass

from ..models.enums import Action, ActorRole


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None


ALL_ROLES: FrozenSet[str] = frozenset(role.value for role in ActorRole)
COORDINATOR_ROLES: FrozenSet[str] = frozenset({ActorRole.ADMIN.value, ActorRole.NGO.value})

# Roles allowed per action before any ownership rule is applied
ROLE_RULES: Dict[str, FrozenSet[str]] = {
    Action.CREATE_REPORT.value: ALL_ROLES,
    Action.RESOLVE_REPORT.value: COORDINATOR_ROLES,
    Action.CREATE_RESOURCE_REQUEST.value: ALL_ROLES,
    Action.FULFILL_RESOURCE_REQUEST.value: ALL_ROLES,
    Action.CREATE_BROADCAST.value: COORDINATOR_ROLES,
    Action.CREATE_VOLUNTEER_TASK.value: COORDINATOR_ROLES,
    Action.ACCEPT_VOLUNTEER_TASK.value: frozenset({ActorRole.VOLUNTEER.value}),
    Action.COMPLETE_VOLUNTEER_TASK.value: frozenset({
        ActorRole.VOLUNTEER.value, ActorRole.ADMIN.value, ActorRole.NGO.value
    }),
}

ACTION_DESCRIPTIONS = {
    Action.CREATE_REPORT.value: "submit reports",
    Action.RESOLVE_REPORT.value: "resolve reports",
    Action.CREATE_RESOURCE_REQUEST.value: "submit resource requests",
    Action.FULFILL_RESOURCE_REQUEST.value: "fulfill resource requests",
    Action.CREATE_BROADCAST.value: "send broadcasts",
    Action.CREATE_VOLUNTEER_TASK.value: "create volunteer tasks",
    Action.ACCEPT_VOLUNTEER_TASK.value: "accept volunteer tasks",
    Action.COMPLETE_VOLUNTEER_TASK.value: "complete volunteer tasks",
}


def _value(item: Any) -> Any:
    return getattr(item, "value", item)


def _field(resource: Any, name: str) -> Any:
    """Read a field from an entity or a plain dict."""
    if resource is None:
        return None
    if isinstance(resource, dict):
        return resource.get(name)
    return getattr(resource, name, None)


def allowed_roles(action: Any) -> FrozenSet[str]:
    """Roles that may attempt an action, empty for unknown actions."""
    return ROLE_RULES.get(_value(action), frozenset())


def authorize(role: Any, action: Any, actor_id: Optional[str], resource: Any = None) -> AuthorizationResult:
    """
    Decide whether an actor may perform an action.

    Args:
        role: Actor role (ActorRole or its string value)
        action: Action (Action or its string value)
        actor_id: Authenticated actor identifier
        resource: Current entity snapshot for actions with ownership rules

    Returns:
        AuthorizationResult with the decision and a reason when denied
    """
    role = _value(role)
    action = _value(action)

    if not actor_id:
        return AuthorizationResult(
            allowed=False,
            reason="You must be signed in to perform this action"
        )

    if role not in ALL_ROLES:
        return AuthorizationResult(allowed=False, reason=f"Unknown role: {role}")

    if action not in ROLE_RULES:
        return AuthorizationResult(allowed=False, reason=f"Unknown action: {action}")

    roles = ROLE_RULES[action]
    if role not in roles:
        return AuthorizationResult(
            allowed=False,
            reason=f"Only {_describe_roles(roles)} can {ACTION_DESCRIPTIONS[action]}"
        )

    if action == Action.FULFILL_RESOURCE_REQUEST.value:
        return _check_not_requester(actor_id, resource)

    if action == Action.COMPLETE_VOLUNTEER_TASK.value:
        return _check_can_complete(role, actor_id, resource)

    return AuthorizationResult(allowed=True)


def _check_not_requester(actor_id: str, resource: Any) -> AuthorizationResult:
    """Requesters cannot fulfill their own requests."""
    if _field(resource, "user_id") == actor_id:
        return AuthorizationResult(
            allowed=False,
            reason="You cannot fulfill your own resource request"
        )
    return AuthorizationResult(allowed=True)


def _check_can_complete(role: str, actor_id: str, resource: Any) -> AuthorizationResult:
    """Volunteers complete only tasks assigned to them; coordinators complete any."""
    if role in COORDINATOR_ROLES:
        return AuthorizationResult(allowed=True)

    if _field(resource, "assigned_to") == actor_id:
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason="Only the assigned volunteer, Admins, or NGOs can complete this task"
    )


def _describe_roles(roles: FrozenSet[str]) -> str:
    names = {
        ActorRole.ADMIN.value: "Admins",
        ActorRole.NGO.value: "NGOs",
        ActorRole.VOLUNTEER.value: "volunteers",
        ActorRole.VICTIM.value: "victims",
    }
    ordered = [names[role] for role in ("admin", "ngo", "volunteer", "victim") if role in roles]
    if len(ordered) == 1:
        return ordered[0]
    return ", ".join(ordered[:-1]) + " and " + ordered[-1]


def permitted_actions(role: Any) -> FrozenSet[str]:
    """Actions a role may attempt, before ownership rules."""
    role = _value(role)
    return frozenset(action for action, roles in ROLE_RULES.items() if role in roles)

"""Role gate: maps the current user's role to edit and visibility capabilities."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from signalpm.docstore import DocumentStore
from signalpm.schemas import User

log = logging.getLogger(__name__)

USERS_COLLECTION = "users"
DEFAULT_ROLE = "team"

ALL_ROLES = frozenset({"cpo", "team", "leadership"})
TEAM_ROLES = frozenset({"cpo", "team"})

VIEW_ROLES: dict[str, frozenset[str]] = {
    "dashboard": ALL_ROLES,
    "vision": ALL_ROLES,
    "focus-areas": ALL_ROLES,
    "strategic-context": TEAM_ROLES,
    "objectives": TEAM_ROLES,
    "discovery": TEAM_ROLES,
    "customer-archetypes": TEAM_ROLES,
    "design-partners": TEAM_ROLES,
    "delivery": TEAM_ROLES,
    "decisions": TEAM_ROLES,
    "documents": TEAM_ROLES,
    "idea-hopper": TEAM_ROLES,
    "journey-maps": TEAM_ROLES,
}


class NotAuthorizedError(Exception):
    """The current user may not perform the requested action."""


@dataclass(frozen=True)
class AuthContext:
    user: User | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> str:
        return self.user.id if self.user else ""

    @property
    def role(self) -> str | None:
        return self.user.role if self.user else None

    @property
    def can_edit(self) -> bool:
        return self.role in TEAM_ROLES

    @property
    def can_view_team_content(self) -> bool:
        return self.role in TEAM_ROLES

    @property
    def can_edit_vision(self) -> bool:
        return self.role == "cpo"

    def has_role(self, *roles: str) -> bool:
        return self.role is not None and self.role in roles

    def can_view(self, view: str) -> bool:
        """Unknown views are open to any signed-in user."""
        if not self.is_authenticated:
            return False
        return self.role in VIEW_ROLES.get(view, ALL_ROLES)

    def visible_views(self) -> list[str]:
        return [v for v in VIEW_ROLES if self.can_view(v)]

    def require_edit(self, action: str = "edit") -> None:
        if not self.can_edit:
            raise NotAuthorizedError(f"Not authorized to {action}")

    def require_edit_vision(self) -> None:
        if not self.can_edit_vision:
            raise NotAuthorizedError("Not authorized to edit vision")


# ---------------------------------------------------------------------------
# User profiles
# ---------------------------------------------------------------------------


def load_user(docs: DocumentStore, uid: str) -> User | None:
    record = docs.get(USERS_COLLECTION, uid)
    return User.model_validate(record) if record else None


def ensure_user(docs: DocumentStore, uid: str, email: str = "", display_name: str = "") -> User:
    """Return the profile for *uid*, creating it with the default role when missing."""
    user = load_user(docs, uid)
    if user is not None:
        return user
    log.info("Creating profile for %s with role %s", uid, DEFAULT_ROLE)
    docs.set(USERS_COLLECTION, uid, {
        "email": email,
        "display_name": display_name or email.split("@")[0],
        "role": DEFAULT_ROLE,
    }, created_by=uid)
    return load_user(docs, uid)  # type: ignore[return-value]


def set_role(docs: DocumentStore, actor: AuthContext, uid: str, role: str) -> User:
    if not actor.can_edit_vision:
        raise NotAuthorizedError("Not authorized to change roles")
    if role not in ALL_ROLES:
        raise ValueError(f"Unknown role: {role!r}")
    if load_user(docs, uid) is None:
        raise LookupError(f"User not found: {uid}")
    docs.update(USERS_COLLECTION, uid, {"role": role})
    return load_user(docs, uid)  # type: ignore[return-value]

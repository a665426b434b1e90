"""
Role Policy - one authority-ordered role enumeration for the whole portal.

The portal historically carried two role vocabularies: a coarse one
(owner / admin / partner / client) and a fine-grained one (client_editor,
partner_viewer, ...).  Both live in ``Role`` and every role is placed by a
single mapping table into a *family* and an authority *tier*:

    tier      family    roles
    ────────  ────────  ───────────────────────────────────────────────
    100       owner     owner
     90       admin     admin
     50       staff     client_services, specialty_skills
     50       partner   partner, partner_admin, partner_contributor
     50       client    client, client_editor
     10       partner   partner_viewer
     10       client    client_viewer

Call sites never branch on raw role strings; they ask ``can_manage`` or
``is_action_permitted``.

Management table:
    owner            → any role, owner and admin included
    admin            → any role except owner and admin
    partner family   → only client_editor
    everyone else    → nothing
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    CLIENT_SERVICES = "client_services"
    SPECIALTY_SKILLS = "specialty_skills"
    PARTNER = "partner"
    PARTNER_ADMIN = "partner_admin"
    PARTNER_CONTRIBUTOR = "partner_contributor"
    PARTNER_VIEWER = "partner_viewer"
    CLIENT = "client"
    CLIENT_EDITOR = "client_editor"
    CLIENT_VIEWER = "client_viewer"

    @classmethod
    def parse(cls, value) -> "Role | None":
        """Return the Role for ``value`` or None when it names no role."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def family(self) -> str:
        return _ROLE_TABLE[self][0]

    @property
    def tier(self) -> int:
        return _ROLE_TABLE[self][1]


# ── Tiers ────────────────────────────────────────────────────────────────
TIER_OWNER = 100
TIER_ADMIN = 90
TIER_MEMBER = 50
TIER_VIEWER = 10

# Role → (family, tier)
_ROLE_TABLE: dict[Role, tuple[str, int]] = {
    Role.OWNER: ("owner", TIER_OWNER),
    Role.ADMIN: ("admin", TIER_ADMIN),
    Role.CLIENT_SERVICES: ("staff", TIER_MEMBER),
    Role.SPECIALTY_SKILLS: ("staff", TIER_MEMBER),
    Role.PARTNER: ("partner", TIER_MEMBER),
    Role.PARTNER_ADMIN: ("partner", TIER_MEMBER),
    Role.PARTNER_CONTRIBUTOR: ("partner", TIER_MEMBER),
    Role.PARTNER_VIEWER: ("partner", TIER_VIEWER),
    Role.CLIENT: ("client", TIER_MEMBER),
    Role.CLIENT_EDITOR: ("client", TIER_MEMBER),
    Role.CLIENT_VIEWER: ("client", TIER_VIEWER),
}

# Roles minted by self-service registration, keyed by company type.
VIEWER_ROLE_BY_COMPANY_TYPE = {
    "client": Role.CLIENT_VIEWER,
    "sub": Role.CLIENT_VIEWER,
    "partner": Role.PARTNER_VIEWER,
}


def compare_roles(a, b) -> int:
    """Order two roles by authority: <0 if a < b, 0 if equal tier, >0 if a > b.

    Unknown roles sit below every known one.
    """
    ra, rb = Role.parse(a), Role.parse(b)
    ta = ra.tier if ra else 0
    tb = rb.tier if rb else 0
    return ta - tb


def can_manage(actor_role, target_role) -> bool:
    """Apply the management table.  Unknown or missing roles always deny."""
    actor = Role.parse(actor_role)
    target = Role.parse(target_role)
    if actor is None or target is None:
        return False

    if actor is Role.OWNER:
        return True
    if actor is Role.ADMIN:
        return target.family not in ("owner", "admin")
    if actor.family == "partner":
        return target is Role.CLIENT_EDITOR
    return False


def manageable_roles(actor_role) -> list[Role]:
    """Roles ``actor_role`` may assign, highest authority first."""
    return sorted(
        (r for r in Role if can_manage(actor_role, r)),
        key=lambda r: r.tier,
        reverse=True,
    )


# ═══════════════════════════════════════════════════════════════
# Actions
# ═══════════════════════════════════════════════════════════════
ALL_ACTIONS = frozenset({
    "companies.view",
    "companies.create",
    "companies.update",
    "users.view",
    "users.manage",
    "projects.view",
    "projects.create",
    "projects.update",
    "projects.grant_access",
    "audits.view",
    "audits.create",
    "audits.update",
    "audits.publish",
    "access_requests.review",
    "activity.view",
})

_READ_ACTIONS = frozenset({
    "companies.view",
    "users.view",
    "projects.view",
    "audits.view",
})

_STAFF_ACTIONS = _READ_ACTIONS | {
    "projects.create",
    "projects.update",
    "audits.create",
    "audits.update",
}


def permitted_actions(role) -> frozenset[str]:
    """Return the action codenames a role may perform.  Unknown → empty set."""
    r = Role.parse(role)
    if r is None:
        return frozenset()
    if r.family in ("owner", "admin"):
        return ALL_ACTIONS

    actions = set(_STAFF_ACTIONS if r.family == "staff" else _READ_ACTIONS)
    if manageable_roles(r):
        actions.add("users.manage")
    return frozenset(actions)


def is_action_permitted(role, action: str) -> bool:
    return action in permitted_actions(role)

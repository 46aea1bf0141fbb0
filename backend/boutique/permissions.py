# Overview: Role model and the single capability check used by routes and services.

"""
Role-based capability checks.

Roles:
- ADMIN: full back-office access
- OWNER: consignment owner; elevated at the counter (discounts, pay later)
  and sees only their own products when linked to an Owner record
- CASHIER: checkout, register, exchanges

Every role decision in the code base goes through check_capability() so
the rules live in one table.
"""

from __future__ import annotations


ROLE_ADMIN = "ADMIN"
ROLE_OWNER = "OWNER"
ROLE_CASHIER = "CASHIER"

ROLES = (ROLE_ADMIN, ROLE_OWNER, ROLE_CASHIER)

ADMIN_ONLY = frozenset({ROLE_ADMIN})
ELEVATED = frozenset({ROLE_ADMIN, ROLE_OWNER})
ANY_ROLE = frozenset(ROLES)


CAPABILITIES: dict[str, frozenset[str]] = {
    # Counter
    "CHECKOUT": ANY_ROLE,
    "APPLY_DISCOUNT": ELEVATED,
    "SELL_PAY_LATER": ELEVATED,
    "OPERATE_REGISTER": ANY_ROLE,
    "CREATE_EXCHANGE": ANY_ROLE,
    "VIEW_ORDERS": ANY_ROLE,
    # Catalog
    "VIEW_CATALOG": ANY_ROLE,
    "MANAGE_CATALOG": ADMIN_ONLY,
    "MANAGE_OWNERS": ADMIN_ONLY,
    "MANAGE_SUPPLIERS": ADMIN_ONLY,
    # Clients
    "VIEW_CLIENTS": ELEVATED,
    "MANAGE_CLIENTS": ELEVATED,
    # Finance
    "MANAGE_BILLS": ADMIN_ONLY,
    "CLOSE_MONTH": ADMIN_ONLY,
    # Administration
    "MANAGE_USERS": ADMIN_ONLY,
    "MANAGE_SETTINGS": ADMIN_ONLY,
}


def normalize_role(role: str | None) -> str:
    value = (role or ROLE_CASHIER).strip().upper()
    if value not in ROLES:
        return ROLE_CASHIER
    return value


def check_capability(user, required_roles, resource_owner_id: int | None = None) -> bool:
    """
    True when `user` holds one of `required_roles`.

    When `resource_owner_id` is given, an OWNER linked to that same owner
    record is also allowed, whatever `required_roles` says.
    """
    if user is None or not user.is_active:
        return False
    role = normalize_role(user.role)
    if role in required_roles:
        return True
    if resource_owner_id is not None and role == ROLE_OWNER:
        return user.owner_id is not None and user.owner_id == resource_owner_id
    return False


def has_capability(user, capability: str, resource_owner_id: int | None = None) -> bool:
    return check_capability(user, CAPABILITIES[capability], resource_owner_id)


def owner_scope(user) -> int | None:
    """Owner id that restricts catalog reads for this user, if any."""
    if normalize_role(user.role) == ROLE_OWNER and user.owner_id is not None:
        return user.owner_id
    return None

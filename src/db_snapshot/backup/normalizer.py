"""Legacy record normalization.

Older snapshots stored some enumerations with display casing
(``"Tech Lead"``, ``"Active"``).  These rewrite rules map them onto the
current canonical tokens before insertion.  Every rule is idempotent and
never raises.
"""

from typing import Any

ROLE_TABLE = "profiles"
DEFAULT_ROLE = "employee"

ROLE_MAP: dict[str, str] = {
    "Employee": "employee",
    "employee": "employee",
    "Tech Lead": "tech_lead",
    "tech_lead": "tech_lead",
    "Management": "management",
    "management": "management",
    "Admin": "admin",
    "admin": "admin",
}

KNOWN_STATUSES: frozenset[str] = frozenset({"active", "inactive", "pending"})


def normalize_role(value: Any) -> Any:
    """Map a role to its canonical token; unknown roles become ``employee``."""
    if value is None:
        return None
    if isinstance(value, str) and value in ROLE_MAP:
        return ROLE_MAP[value]
    return DEFAULT_ROLE


def normalize_status(value: Any) -> Any:
    """Lower-case known status tokens; leave everything else unchanged."""
    if isinstance(value, str) and value.lower() in KNOWN_STATUSES:
        return value.lower()
    return value


def normalize_record(table: str, record: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *record* with legacy encodings rewritten.

    Args:
        table: Table the record belongs to.
        record: Record from a snapshot document.  Not modified.

    Returns:
        A new dict; fields without a rule pass through untouched.
    """
    normalized = dict(record)

    if table == ROLE_TABLE and "role" in normalized:
        normalized["role"] = normalize_role(normalized["role"])

    if "status" in normalized:
        normalized["status"] = normalize_status(normalized["status"])

    return normalized

"""System role catalogue.

SYSTEM_ROLES is the static tier of the role lookup. Custom roles live in the
`roles_permissions` collection and are merged in at request time by
`hrdesk.services.roles`.
"""

from __future__ import annotations

from typing import Any, Final

ADMIN: Final = "ADMIN"
CEO: Final = "CEO"
INCUBATION_MANAGER: Final = "INCUBATION_MANAGER"
ACCOUNTANT: Final = "ACCOUNTANT"
OFFICER_IN_CHARGE: Final = "OFFICER_IN_CHARGE"
FACULTY_IN_CHARGE: Final = "FACULTY_IN_CHARGE"
EMPLOYEE: Final = "EMPLOYEE"

SYSTEM_ROLES: tuple[str, ...] = (
    ADMIN,
    CEO,
    INCUBATION_MANAGER,
    ACCOUNTANT,
    OFFICER_IN_CHARGE,
    FACULTY_IN_CHARGE,
    EMPLOYEE,
)

# Roles allowed to act on any leave and see every attendance row
LEAVE_ADMIN_ROLES: frozenset[str] = frozenset({ADMIN, CEO})

MANAGEMENT_ROLES: tuple[str, ...] = (
    ADMIN,
    CEO,
    INCUBATION_MANAGER,
    ACCOUNTANT,
    OFFICER_IN_CHARGE,
    FACULTY_IN_CHARGE,
)

# Oversight roles are not on the payroll sheet
PAYROLL_EXCLUDED_ROLES: tuple[str, ...] = (FACULTY_IN_CHARGE, OFFICER_IN_CHARGE)


COMPONENTS: tuple[tuple[str, str], ...] = (
    ("dashboard", "Dashboard"),
    ("employees", "Employee Management"),
    ("attendance", "Attendance"),
    ("leave", "Leave Management"),
    ("salary", "Salary"),
    ("peer-rating", "Peer Rating"),
    ("variable-remuneration", "Variable Remuneration"),
    ("remuneration", "Remuneration"),
    ("calendar", "Calendar"),
    ("efiling", "E-Filing"),
    ("settings", "Settings"),
    ("profile", "Profile"),
    ("admin", "Admin Panel"),
)

FEATURES: dict[str, str] = {
    "employee.create": "Create Employee",
    "employee.edit": "Edit Employee",
    "employee.delete": "Delete Employee",
    "employee.viewAll": "View All Employees",
    "leave.approve": "Approve Leave",
    "leave.apply": "Apply Leave",
    "attendance.mark": "Mark Attendance",
    "attendance.viewReports": "View Attendance Reports",
    "remuneration.view": "View Remuneration",
    "remuneration.variable": "Manage Variable Remuneration",
    "salary.viewAll": "View All Salaries",
    "salary.viewOwn": "View Own Salary",
    "salary.edit": "Edit Salary",
}

_ALL_COMPONENTS = {cid for cid, _ in COMPONENTS}
_MANAGER_COMPONENTS = _ALL_COMPONENTS - {"salary", "variable-remuneration", "admin"}
_MANAGER_FEATURES = {
    "employee.edit",
    "employee.viewAll",
    "leave.approve",
    "leave.apply",
    "attendance.mark",
    "attendance.viewReports",
    "remuneration.view",
}

# role_id -> (display_name, hierarchy_level, description, components, features)
_ROLE_MATRIX: dict[str, tuple[str, int, str, set[str], set[str]]] = {
    ADMIN: (
        "Admin",
        0,
        "System administrator with full access to all features including admin panel",
        _ALL_COMPONENTS - {"salary", "variable-remuneration"},
        _MANAGER_FEATURES | {"employee.create", "employee.delete"},
    ),
    OFFICER_IN_CHARGE: (
        "Officer in Charge",
        1,
        "Operations officer with manager-level permissions",
        _MANAGER_COMPONENTS,
        set(_MANAGER_FEATURES),
    ),
    FACULTY_IN_CHARGE: (
        "Faculty in Charge",
        1,
        "Faculty member with access to variable remuneration management",
        (_MANAGER_COMPONENTS - {"peer-rating"}) | {"variable-remuneration"},
        _MANAGER_FEATURES | {"remuneration.variable"},
    ),
    CEO: (
        "CEO",
        2,
        "Chief Executive Officer with high-level management access",
        _MANAGER_COMPONENTS,
        _MANAGER_FEATURES | {"employee.create", "employee.delete"},
    ),
    INCUBATION_MANAGER: (
        "Incubation Manager",
        3,
        "Manages incubation operations and has manager-level access",
        _MANAGER_COMPONENTS,
        set(_MANAGER_FEATURES),
    ),
    ACCOUNTANT: (
        "Accountant",
        3,
        "Manages financial records including salary and remuneration",
        _MANAGER_COMPONENTS | {"salary"},
        _MANAGER_FEATURES | {"salary.viewAll", "salary.edit"},
    ),
    EMPLOYEE: (
        "Employee",
        4,
        "Regular employee with basic access to view own information",
        {"dashboard", "salary", "profile"},
        {"salary.viewOwn", "leave.apply"},
    ),
}


def build_role_definition(role_id: str) -> dict[str, Any]:
    """Full seed document for a system role."""
    display_name, level, description, components, features = _ROLE_MATRIX[role_id]
    return {
        "role_id": role_id,
        "display_name": display_name,
        "hierarchy_level": level,
        "description": description,
        "is_system_role": True,
        "is_active": True,
        "component_access": [
            {"component_id": cid, "component_name": name, "has_access": cid in components}
            for cid, name in COMPONENTS
        ],
        "feature_access": [
            {"feature_id": fid, "feature_name": FEATURES[fid], "has_access": True}
            for fid in sorted(features)
        ],
    }


def system_role_definitions() -> list[dict[str, Any]]:
    return [build_role_definition(role_id) for role_id in SYSTEM_ROLES]

"""Seed the permission catalogue and the default global roles."""

from sqlalchemy.orm import Session
from fieldforce.models.role import Role, Permission, RolePermission, SUPER_ADMIN_ROLE

ALL_PERMISSIONS = [
    "users.create",
    "users.read",
    "users.update",
    "users.delete",
    "entities.manage",
    "roles.manage",
    "attendance.read",
    "attendance.write",
    "visits.read",
    "visits.write",
    "leads.read",
    "leads.write",
    "expenses.read",
    "expenses.write",
    "expenses.approve",
    "discrepancies.read",
    "discrepancies.write",
    "discrepancies.resolve",
    "routes.manage",
    "audit.read",
    "reports.read",
]

FIELD_PERMISSIONS = [
    "attendance.read", "attendance.write",
    "visits.read", "visits.write",
    "leads.read", "leads.write",
    "expenses.read", "expenses.write",
    "discrepancies.read", "discrepancies.write",
]

ROLE_DEFINITIONS = [
    {
        "name": SUPER_ADMIN_ROLE,
        "level": 100,
        "description": "Full system access",
        # Bypasses permission checks in code; mapped anyway so listings read naturally
        "permissions": ALL_PERMISSIONS,
    },
    {
        "name": "SM_ADMIN",
        "level": 50,
        "description": "State manager: users, approvals, routes",
        "permissions": [
            "users.create", "users.read", "users.update", "users.delete",
            "attendance.read", "visits.read",
            "leads.read", "leads.write",
            "expenses.read", "expenses.approve", "expenses.write",
            "discrepancies.read", "discrepancies.write", "discrepancies.resolve",
            "routes.manage",
            "audit.read", "reports.read",
        ],
    },
    {
        "name": "RM",
        "level": 40,
        "description": "Relationship manager",
        "permissions": FIELD_PERMISSIONS,
    },
    {
        "name": "ACCOUNTS",
        "level": 30,
        "description": "Accounts team: read-only reporting",
        "permissions": ["users.read", "attendance.read", "reports.read"],
    },
    {
        "name": "FIELD_USER",
        "level": 10,
        "description": "Field staff",
        "permissions": FIELD_PERMISSIONS,
    },
]


def seed_permissions(db: Session) -> dict:
    """Insert missing permissions and return ``{name: id}``."""
    permission_map = {}
    for name in ALL_PERMISSIONS:
        permission = db.query(Permission).filter(Permission.name == name).first()
        if not permission:
            permission = Permission(name=name)
            db.add(permission)
            db.flush()
        permission_map[name] = permission.id
    db.commit()
    print(f"✅ Seeded {len(permission_map)} permissions")
    return permission_map


def seed_roles(db: Session) -> dict:
    """Insert default global roles, fix drifted levels, add missing mappings.

    Returns ``{role name: role id}``.
    """
    permission_map = seed_permissions(db)
    role_map = {}

    for role_def in ROLE_DEFINITIONS:
        role = (
            db.query(Role)
            .filter(Role.name == role_def["name"], Role.entity_id.is_(None))
            .first()
        )
        if not role:
            role = Role(
                name=role_def["name"],
                level=role_def["level"],
                description=role_def["description"],
                entity_id=None,
            )
            db.add(role)
            db.flush()
        elif role.level != role_def["level"]:
            role.level = role_def["level"]

        existing = {rp.permission_id for rp in role.role_permissions}
        for name in role_def["permissions"]:
            permission_id = permission_map[name]
            if permission_id not in existing:
                db.add(RolePermission(role_id=role.id, permission_id=permission_id))

        role_map[role.name] = role.id

    db.commit()
    print(f"✅ Seeded {len(role_map)} roles")
    return role_map

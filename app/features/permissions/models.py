"""
Permission tags and role presets.

Permissions are stored on users and roles as ordered JSON lists of these tags.
They are deserialized into a frozen set once, when the acting user is resolved.
"""
from enum import Enum


class Permission(str, Enum):
    ADMIN = "ADMIN"
    CREATE_USER = "CREATE_USER"
    CREATE_CLIENT = "CREATE_CLIENT"
    EDIT_OWN_CLIENT = "EDIT_OWN_CLIENT"
    EDIT_ALL_CLIENTS = "EDIT_ALL_CLIENTS"
    MANAGE_ADDONS = "MANAGE_ADDONS"
    MANAGE_CITIES = "MANAGE_CITIES"
    MANAGE_AGREEMENTS = "MANAGE_AGREEMENTS"
    VIEW_ALL_CLIENTS = "VIEW_ALL_CLIENTS"
    SUGGEST_EDITS = "SUGGEST_EDITS"
    VIEW_ANALYTICS_GENERAL = "VIEW_ANALYTICS_GENERAL"
    VIEW_ANALYTICS_OWN = "VIEW_ANALYTICS_OWN"
    DELETE_OWN_CLIENT = "DELETE_OWN_CLIENT"
    DELETE_ALL_CLIENTS = "DELETE_ALL_CLIENTS"
    HIDE_OWN_CLIENT = "HIDE_OWN_CLIENT"
    HIDE_ALL_CLIENTS = "HIDE_ALL_CLIENTS"


PERMISSION_DESCRIPTIONS: dict[Permission, str] = {
    Permission.ADMIN: "Full access to every feature",
    Permission.CREATE_USER: "Create users",
    Permission.CREATE_CLIENT: "Create clients",
    Permission.EDIT_OWN_CLIENT: "Edit own clients",
    Permission.EDIT_ALL_CLIENTS: "Edit all clients",
    Permission.MANAGE_ADDONS: "Manage addons",
    Permission.MANAGE_CITIES: "Manage cities",
    Permission.MANAGE_AGREEMENTS: "Manage agreements",
    Permission.VIEW_ALL_CLIENTS: "View all clients",
    Permission.SUGGEST_EDITS: "Suggest edits to clients",
    Permission.VIEW_ANALYTICS_GENERAL: "View general analytics",
    Permission.VIEW_ANALYTICS_OWN: "View own analytics",
    Permission.DELETE_OWN_CLIENT: "Delete own clients",
    Permission.DELETE_ALL_CLIENTS: "Delete all clients",
    Permission.HIDE_OWN_CLIENT: "Hide own clients",
    Permission.HIDE_ALL_CLIENTS: "Hide all clients",
}


ROLE_PRESETS: dict[str, dict] = {
    "ADMIN": {
        "name": "Administrator",
        "description": "Full access to every feature",
        "permissions": [
            Permission.ADMIN, Permission.VIEW_ANALYTICS_GENERAL, Permission.VIEW_ANALYTICS_OWN,
        ],
    },
    "MANAGER": {
        "name": "Manager",
        "description": "Creates clients and edits their own",
        "permissions": [
            Permission.CREATE_CLIENT, Permission.EDIT_OWN_CLIENT, Permission.VIEW_ALL_CLIENTS,
            Permission.SUGGEST_EDITS, Permission.VIEW_ANALYTICS_OWN,
        ],
    },
    "SENIOR_MANAGER": {
        "name": "Senior manager",
        "description": "Edits every client, can delete and hide",
        "permissions": [
            Permission.CREATE_CLIENT, Permission.EDIT_OWN_CLIENT, Permission.EDIT_ALL_CLIENTS,
            Permission.VIEW_ALL_CLIENTS, Permission.SUGGEST_EDITS, Permission.VIEW_ANALYTICS_OWN,
            Permission.HIDE_OWN_CLIENT, Permission.HIDE_ALL_CLIENTS,
            Permission.DELETE_OWN_CLIENT, Permission.DELETE_ALL_CLIENTS,
        ],
    },
    "CONTENT_MANAGER": {
        "name": "Content manager",
        "description": "Maintains addons, cities and agreements",
        "permissions": [
            Permission.MANAGE_ADDONS, Permission.MANAGE_CITIES, Permission.MANAGE_AGREEMENTS,
            Permission.VIEW_ALL_CLIENTS,
        ],
    },
}


def normalize_permissions(values) -> list[str]:
    """Return known tags in first-seen order without duplicates."""
    seen: list[str] = []
    for value in values or []:
        tag = value.value if isinstance(value, Permission) else str(value)
        if tag in Permission.__members__ and tag not in seen:
            seen.append(tag)
    return seen

"""
Default feature catalog.
"""

from typing import Any, Dict, List

from ..gateway.records import parse_categories
from .models import Category

DEFAULT_FEATURE_CATEGORIES: List[Dict[str, Any]] = [
    {
        "id": "core-apps",
        "name": "Core Applications",
        "description": "Main application modules",
        "features": [
            {
                "id": "expenses",
                "name": "Expense Manager",
                "description": "Expense tracking and management",
                "dependencies": [],
                "dependents": ["analytics", "charts"],
                "isCore": True,
            },
            {
                "id": "settings",
                "name": "Settings",
                "description": "System configuration and user management",
                "dependencies": [],
                "dependents": [],
                "isCore": True,
            },
        ],
    },
    {
        "id": "dashboard-components",
        "name": "Dashboard Components",
        "description": "Analytics and reporting features",
        "features": [
            {
                "id": "analytics",
                "name": "Analytics Dashboard",
                "description": "Expense analytics and insights",
                "dependencies": ["expenses"],
            },
            {
                "id": "charts",
                "name": "Charts & Graphs",
                "description": "Visual data representation",
                "dependencies": ["expenses"],
            },
        ],
    },
    {
        "id": "user-interface",
        "name": "User Interface",
        "description": "UI components and navigation features",
        "features": [
            {
                "id": "navigation",
                "name": "Navigation Menu",
                "description": "Main navigation and menu system",
                "isCore": True,
            },
            {
                "id": "themes",
                "name": "Theme System",
                "description": "Dark/light theme switching",
            },
            {
                "id": "notifications",
                "name": "Notifications",
                "description": "Toast notifications and alerts",
            },
        ],
    },
    {
        "id": "administrative",
        "name": "Administrative",
        "description": "Admin-only features and system management",
        "features": [
            {
                "id": "user_management",
                "name": "User Management",
                "description": "Manage users and role assignments",
                "dependencies": ["settings"],
                "adminOnly": True,
            },
            {
                "id": "system_config",
                "name": "System Configuration",
                "description": "Advanced system settings",
                "dependencies": ["settings"],
                "adminOnly": True,
            },
            {
                "id": "audit_logs",
                "name": "Audit Logs",
                "description": "System activity and security logs",
                "dependencies": ["settings"],
                "adminOnly": True,
            },
        ],
    },
]


def default_feature_categories() -> List[Category]:
    """Parsed copy of the default catalog."""
    return parse_categories(DEFAULT_FEATURE_CATEGORIES)

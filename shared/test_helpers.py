"""
Test helper functions and factory methods for the Feature Visibility Engine.
"""

import asyncio
from typing import Dict, Any, List, Optional
from unittest.mock import MagicMock


class VisibilityDataFactory:
    """Factory for creating test data."""

    @staticmethod
    def create_categories() -> List[Dict[str, Any]]:
        """Two-category catalog: core expenses plus dependent analytics."""
        return [
            {
                "id": "core-apps",
                "name": "Core Applications",
                "description": "Main application modules",
                "features": [
                    {
                        "id": "expenses",
                        "name": "Expense Manager",
                        "dependencies": [],
                        "dependents": ["analytics"],
                        "isCore": True
                    },
                    {
                        "id": "navigation",
                        "name": "Navigation Menu",
                        "isCore": True
                    }
                ]
            },
            {
                "id": "dashboard-components",
                "name": "Dashboard Components",
                "description": "Analytics and reporting features",
                "features": [
                    {
                        "id": "analytics",
                        "name": "Analytics",
                        "dependencies": ["expenses"]
                    },
                    {
                        "id": "reports",
                        "name": "Reports",
                        "dependencies": ["analytics"]
                    }
                ]
            }
        ]

    @staticmethod
    def create_chain_categories(depth: int = 4) -> List[Dict[str, Any]]:
        """Linear chain level_1 <- level_2 <- ... <- level_<depth>."""
        features = []
        for level in range(1, depth + 1):
            features.append({
                "id": f"level_{level}",
                "name": f"Level {level}",
                "dependencies": [f"level_{level - 1}"] if level > 1 else []
            })
        return [{"id": "chain", "name": "Chain", "features": features}]

    @staticmethod
    def create_cyclic_categories() -> List[Dict[str, Any]]:
        """Two features that depend on each other."""
        return [
            {
                "id": "cyclic",
                "name": "Cyclic",
                "features": [
                    {"id": "a", "name": "Feature A", "dependencies": ["b"]},
                    {"id": "b", "name": "Feature B", "dependencies": ["a"]}
                ]
            }
        ]

    @staticmethod
    def create_roles() -> List[Dict[str, Any]]:
        return [
            {"id": "admin", "name": "Administrator", "displayName": "Administrator", "permissions": ["*"]},
            {"id": "officer", "name": "Account Officer", "displayName": "Account Officer", "permissions": ["expenses:write"]},
            {"id": "viewer", "name": "Viewer", "displayName": "Viewer", "permissions": ["expenses:read"]}
        ]

    @staticmethod
    def create_role_features() -> Dict[str, List[str]]:
        return {
            "admin": ["expenses", "navigation", "analytics", "reports"],
            "officer": ["expenses", "navigation", "analytics"],
            "viewer": ["navigation"]
        }

    @staticmethod
    def create_user_counts() -> Dict[str, int]:
        return {"admin": 1, "officer": 4, "viewer": 3}


def create_mock_notifier() -> MagicMock:
    """Notifier double exposing success/warning/error."""
    notifier = MagicMock()
    notifier.success = MagicMock()
    notifier.warning = MagicMock()
    notifier.error = MagicMock()
    return notifier


def toast_messages(mock_method: MagicMock) -> List[str]:
    """Messages passed to a notifier method."""
    return [call.args[0] for call in mock_method.call_args_list]


class SlowWriter:
    """Gateway write stand-in that records overlap between calls per role."""

    def __init__(self, delay: float = 0.05, fail_roles: Optional[List[str]] = None):
        self.delay = delay
        self.fail_roles = set(fail_roles or [])
        self.calls: List[Any] = []
        self.active: Dict[str, int] = {}
        self.max_active: Dict[str, int] = {}

    async def __call__(self, role_id: str, feature_ids: List[str]):
        self.active[role_id] = self.active.get(role_id, 0) + 1
        self.max_active[role_id] = max(self.max_active.get(role_id, 0), self.active[role_id])
        try:
            await asyncio.sleep(self.delay)
            if role_id in self.fail_roles:
                raise ConnectionError("store unavailable")
            self.calls.append((role_id, list(feature_ids)))
        finally:
            self.active[role_id] -= 1

"""
Committed role-feature matrix.
"""

from typing import Dict, FrozenSet, Iterable, Mapping, Optional

_EMPTY: FrozenSet[str] = frozenset()


class RoleFeatureMatrix:
    """Immutable snapshot of role id -> enabled feature ids.

    Every replacement bumps ``version`` so memoized previews can tell
    snapshots apart without comparing contents.
    """

    def __init__(self, entries: Optional[Mapping[str, Iterable[str]]] = None, version: int = 0):
        self._entries: Dict[str, FrozenSet[str]] = {
            role_id: frozenset(feature_ids) for role_id, feature_ids in (entries or {}).items()
        }
        self.version = version

    def __contains__(self, role_id: str) -> bool:
        return role_id in self._entries

    def __eq__(self, other) -> bool:
        if not isinstance(other, RoleFeatureMatrix):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"RoleFeatureMatrix(version={self.version}, roles={sorted(self._entries)})"

    def features_for(self, role_id: str) -> FrozenSet[str]:
        """Enabled features for a role; absent roles have none."""
        return self._entries.get(role_id, _EMPTY)

    def is_enabled(self, role_id: str, feature_id: str) -> bool:
        return feature_id in self.features_for(role_id)

    def with_role(self, role_id: str, feature_ids: Iterable[str]) -> "RoleFeatureMatrix":
        """New snapshot with one role replaced."""
        entries = dict(self._entries)
        entries[role_id] = frozenset(feature_ids)
        return RoleFeatureMatrix(entries, version=self.version + 1)

    def role_ids(self):
        return list(self._entries.keys())

    def to_dict(self) -> Dict[str, list]:
        return {role_id: sorted(feature_ids) for role_id, feature_ids in self._entries.items()}

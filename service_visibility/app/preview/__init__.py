"""
Preview package.

Describes the interface a role would see given committed state plus its
pending changes, memoized per input version.
"""

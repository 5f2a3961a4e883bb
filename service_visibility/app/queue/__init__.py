"""
Change queue package.

Holds per-role pending change sets, coalesces rapid toggles behind a
restartable quiet-period timer and serializes persistence per role.
"""

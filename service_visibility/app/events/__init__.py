"""
Events package.

Minimal publish/subscribe surface other parts of the application use to
follow persisted visibility changes.
"""

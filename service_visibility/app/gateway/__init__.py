"""
Gateway package.

The persistence contract the engine depends on, validated record shapes,
and two stores: an in-memory one for tests and local use, and a Redis
backed one.
"""

"""
Shared utilities for the Feature Visibility Engine.

This package aggregates common building blocks:

- config: Base configuration via pydantic-settings
- logging: Structured logging with request/actor context
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- test_helpers: Factories and doubles used by the test suites

Do not import from service_visibility into shared/.
"""

"""
Feature Visibility Engine package.

This package decides which product features are exposed to which user
roles. It provides:

- app.graph: Feature/category/role models, the dependency graph and the
  role-feature matrix snapshot.
- app.rules: Dependency validation, cycle detection and bulk checks.
- app.queue: Debounced, per-role serialized persistence of changes.
- app.preview: Memoized interface previews for a role.
- app.events: roleUpdate publish/subscribe surface.
- app.gateway: Persistence gateway contract plus in-memory and Redis stores.
- app.engine: The façade the UI layer talks to.
- app.main: Service wiring: logging, store connection, start/stop/health.

Guidelines:
- Only the façade mutates catalog, roles and matrix.
- Validation failures are results, not exceptions.
- Never assume the dependency graph is acyclic.
"""

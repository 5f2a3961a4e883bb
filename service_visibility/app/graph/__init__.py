"""
Graph package.

Immutable models for features, categories and roles, the dependency graph
built from a loaded catalog, and the committed role-feature matrix.

Modules of interest:
- models: Feature, Category and Role data classes.
- dependency_graph: O(1) lookups, transitive closure, dependents.
- matrix: Versioned role -> enabled feature snapshot.
- catalog: The default feature catalog.
"""

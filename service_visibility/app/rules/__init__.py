"""
Rules package.

Validation of feature visibility changes against the dependency graph.
Every check returns a structured result explaining why a change is or is
not allowed; nothing here raises for a rejected change or mutates state.

Modules of interest:
- models: ValidationResult, CycleReport and BulkOperation.
- validator: Single-change, bulk and cycle checks plus bulk planning.
"""

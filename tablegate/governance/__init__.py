"""Table-granular native query governance.

Decides whether a principal may run a native (raw SQL) query:
- PermissionIndex folds database/schema/table grants into per-table values
- TableReferenceExtractor recovers referenced tables lexically (sqlglot tokens)
- NameResolver maps references onto the data source catalog
- PolicyEvaluator combines them into a fail-closed Allow/Deny decision
"""

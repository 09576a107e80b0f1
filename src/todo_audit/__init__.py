"""
Todo Audit Backend package.

FastAPI service for Todo items with soft delete and an append-only audit
trail, backed by either an in-memory store or SQLite.
"""

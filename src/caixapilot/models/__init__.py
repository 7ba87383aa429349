"""Domain models package.

ORM models (`cash_session`, `cash_movement`) are backend-only; terminals only
need `enums` and `cash_session_schemas`, so nothing is re-exported here.
"""

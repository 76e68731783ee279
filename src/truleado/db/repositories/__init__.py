"""
truleado.db.repositories

Thin per-aggregate data access. Business rules and transactions live in services.
"""

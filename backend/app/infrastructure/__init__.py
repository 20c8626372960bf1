"""Infrastructure Layer — database sessions, locking and logging.

Invariants:
    - Infrastructure imports only error types from core/, never domain logic
    - All SQLAlchemy failures are mapped to core.errors.DatabaseError
"""

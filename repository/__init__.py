"""
Book persistence layer.

This package contains:
- The backend-agnostic repository contract and its error hierarchy
- PostgreSQL adapter (SQLAlchemy async engine, integer identifiers)
- MongoDB adapter (Motor, ObjectId identifiers)
- Backend selection from startup configuration
"""

__version__ = "1.0.0"

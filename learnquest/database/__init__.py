"""
Database package: declarative base, engine lifecycle and schema management.
"""

from learnquest.database.base import Base, ModelBase, metadata

__all__ = ["Base", "ModelBase", "metadata"]

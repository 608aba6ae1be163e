"""
Database session helpers.
"""

from learnquest.common.db.session import create_session_factory, session_scope

__all__ = ["create_session_factory", "session_scope"]

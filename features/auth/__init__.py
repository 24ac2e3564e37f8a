"""
Auth feature — client credentials and bearer-token lifecycle.

Public API:
    from features.auth import AuthSession, TokenIssuer
"""

from features.auth.session import AuthSession, TokenIssuer

__all__ = ["AuthSession", "TokenIssuer"]

"""
auth/models.py -- The identity a verified bearer token resolves to.

Pattern: Data class (pure data container, zero logic), same as core/models.py.

Layer rule: no imports from api/, db/, cache/, repository/, or services/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """Caller identity taken from the token claims, not from the database.

    id is the account id (claim "id"), username is the account email (claim
    "username") and scope is the scope of the role the token was issued
    through (claim "scope"). A token stays valid until exp even if the
    account is deleted afterwards.
    """

    id: int
    username: str
    scope: str

"""Authenticated identity consumed by the client.

Token issuance lives outside this library. Callers hand in either a static
:class:`Identity` or any object implementing :class:`IdentityProvider`.
"""

from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

OPERATOR_ROLE = "operator"


class Identity(BaseModel):
    """The logged-in user.

    Parameters
    ----------
    user_id : str
        Authenticated user id. Operations reference their operator by this id.
    roles : frozenset[str]
        Role names granted to the user.
    access_token : str or None
        Bearer token sent with every request.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    user_id: str
    roles: frozenset[str] = Field(default_factory=frozenset)
    access_token: str | None = None

    @field_validator("user_id")
    @classmethod
    def _user_id_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("user_id must be non-empty")
        return value

    @property
    def is_operator(self) -> bool:
        """Whether the user can run field operations (and therefore track)."""
        return OPERATOR_ROLE in self.roles


class IdentityProvider(Protocol):
    """Anything that can report the current identity, or ``None`` when logged out."""

    def current_identity(self) -> Identity | None: ...


class StaticIdentityProvider:
    """Identity provider returning a fixed identity."""

    def __init__(self, identity: Identity | None) -> None:
        self._identity = identity

    def current_identity(self) -> Identity | None:
        return self._identity

"""Injected session context.

Holds the bearer token and cached user for one authenticated identity. It is
acquired at login, read by the gateway on every call, and invalidated on
logout or when the store rejects the token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from expense_desk.core.errors import GatewayFailure, NotAuthenticated

if TYPE_CHECKING:  # pragma: no cover
    from expense_desk.services.gateway import ExpenseGateway

logger = logging.getLogger("expense_desk.session")


@dataclass
class SessionContext:
    token: Optional[str] = None
    user: Optional[Dict[str, Any]] = field(default=None)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def acquire(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        self.token = token
        self.user = user

    def invalidate(self) -> None:
        if self.token is not None:
            logger.info("session invalidated")
        self.token = None
        self.user = None

    def auth_headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


def bootstrap_session(gateway: "ExpenseGateway", session: SessionContext) -> Dict[str, Any]:
    """Confirm the held token with the store and cache the current user.

    Any failure clears the session and surfaces as ``NotAuthenticated``.
    """
    if not session.is_authenticated:
        raise NotAuthenticated("no session token")
    try:
        user = gateway.fetch_current_user()
    except NotAuthenticated:
        session.invalidate()
        raise
    except GatewayFailure as exc:
        logger.warning("session bootstrap failed: %s", exc.message)
        session.invalidate()
        raise NotAuthenticated(exc.message) from exc
    session.user = user
    return user


__all__ = ["SessionContext", "bootstrap_session"]

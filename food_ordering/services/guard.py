"""
Access Guard

FastAPI dependencies that gate identity-scoped routes on a bearer token.

    Authorization header missing, or not "Bearer <token>"  ->  401 Unauthenticated
    Token present but fails verification                   ->  403 Forbidden
    Token valid                                            ->  claim on request.state

Usage:
    @app.get("/orders")
    async def my_orders(claim: TokenClaim = Depends(require_identity)):
        ...
"""

import logging
from typing import Optional

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from food_ordering.core.config import get_settings
from food_ordering.core.errors import Forbidden, InvalidToken, Unauthenticated
from food_ordering.services.tokens import TokenClaim, TokenService, get_token_service

logger = logging.getLogger(__name__)

REFRESHED_TOKEN_HEADER = "X-Refreshed-Token"

bearer_scheme = HTTPBearer(auto_error=False)


class AccessGuard:
    """Resolve a bearer credential to a claim, or refuse the request."""

    def __init__(self, tokens: TokenService):
        self.tokens = tokens

    def check(self, credentials: Optional[HTTPAuthorizationCredentials]) -> TokenClaim:
        if credentials is None or not credentials.credentials:
            raise Unauthenticated()
        if (credentials.scheme or "").lower() != "bearer":
            raise Unauthenticated()

        try:
            return self.tokens.verify(credentials.credentials)
        except InvalidToken as e:
            raise Forbidden(e.detail)


def get_access_guard() -> AccessGuard:
    return AccessGuard(get_token_service())


async def require_identity(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    guard: AccessGuard = Depends(get_access_guard),
) -> TokenClaim:
    """Attach the verified claim to the request and return it."""
    claim = guard.check(credentials)
    request.state.claim = claim

    renewed = guard.tokens.renew(claim)
    if renewed:
        response.headers[REFRESHED_TOKEN_HEADER] = renewed

    return claim


async def require_admin(claim: TokenClaim = Depends(require_identity)) -> TokenClaim:
    """Like ``require_identity`` but only for the admin pool."""
    if not claim.admin:
        logger.info(f"Admin route refused for {claim.email}")
        raise Forbidden("Admin access required")
    return claim


async def require_admin_when_configured(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    guard: AccessGuard = Depends(get_access_guard),
) -> Optional[TokenClaim]:
    """Admin gate for GET /allorders, active only with ALL_ORDERS_REQUIRE_ADMIN."""
    if not get_settings().all_orders_require_admin:
        return None
    claim = await require_identity(request, response, credentials, guard)
    return await require_admin(claim)

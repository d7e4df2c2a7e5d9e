# fastapi dependency injection
# provides the service container and the authenticated owner

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sahara.errors import InternalError, Unauthenticated
from sahara.services.auth_service import resolve_subject
from sahara.services.container import Services

logger = logging.getLogger(__name__)

# auto_error off so a missing header maps to our 401 body, not fastapi's 403
security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    """the container built in the app lifespan"""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise InternalError("Services not initialised")
    return services


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> dict:
    """validate the bearer token and return {"id", "email"} of its subject"""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Access denied. No token provided.")

    user = resolve_subject(credentials.credentials)
    if user is None:
        raise Unauthenticated("Invalid or expired token")
    return user

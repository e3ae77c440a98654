# taskboard/utils/auth.py
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from taskboard.database import get_db
from taskboard.errors import Unauthenticated
from taskboard.utils.permissions import Action, Identity, authorize

bearer_scheme = HTTPBearer(auto_error=False)


def get_services(request: Request):
    """The service container built by create_app"""
    return request.app.state.services


def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Access denied. No token provided.")
    return credentials.credentials


def get_current_identity(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    services=Depends(get_services),
) -> Identity:
    return services.auth.authenticate(db, token)


def require_action(action: Action):
    """Route dependency: the caller must hold a role granted for action"""

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        authorize(identity, action)
        return identity

    return dependency

"""FastAPI dependencies resolving app-scoped services and the caller's id."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taskflow import auth
from taskflow.config import Settings
from taskflow.errors import Unavailable
from taskflow.reminders import Mailer
from taskflow.storage import Storage

bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> Storage:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise Unavailable("Storage not initialized")
    return storage


def get_mailer(request: Request) -> Optional[Mailer]:
    return getattr(request.app.state, "mailer", None)


def current_user_id(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    settings: Settings = Depends(get_settings),
) -> int:
    """Owner id for scoping; every task route depends on this."""
    token = creds.credentials if creds else None
    return auth.authenticate(token, settings)

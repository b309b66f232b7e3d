"""Signup, login, and the caller's own profile."""

from fastapi import APIRouter, Depends

from taskflow import auth
from taskflow.config import Settings
from taskflow.dependencies import current_user_id, get_settings, get_storage
from taskflow.schemas import AuthOut, LoginRequest, RenameRequest, SignupRequest, UserOut, format_user
from taskflow.storage import Storage

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", status_code=201)
def signup(
    body: SignupRequest,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> AuthOut:
    """Register a new account and return a session token."""
    return auth.signup(storage, settings, body.email, body.password, body.name)


@router.post("/login")
def login(
    body: LoginRequest,
    storage: Storage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> AuthOut:
    return auth.login(storage, settings, body.email, body.password)


@router.get("/me")
def me(
    user_id: int = Depends(current_user_id),
    storage: Storage = Depends(get_storage),
) -> UserOut:
    return auth.me(storage, user_id)


@router.patch("/me")
def rename(
    body: RenameRequest,
    user_id: int = Depends(current_user_id),
    storage: Storage = Depends(get_storage),
) -> UserOut:
    """Change the display name, the only mutable profile field."""
    return format_user(storage.rename_user(user_id, body.name))


@router.delete("/me", status_code=204)
def delete_account(
    user_id: int = Depends(current_user_id),
    storage: Storage = Depends(get_storage),
) -> None:
    """Delete the account and every task it owns."""
    storage.delete_user(user_id)

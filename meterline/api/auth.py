"""
Auth API routes.

- POST /api/auth/signup
- POST /api/auth/login
- GET  /api/auth/me
- POST /api/auth/logout
"""
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from meterline.core.auth import get_session_store, require_auth
from meterline.core.errors import AuthError, ValidationError
from meterline.core.logging import log_event
from meterline.features.auth.passwords import MIN_PASSWORD_LENGTH, hash_password, verify_password
from meterline.features.auth.sessions import ResolvedAuth
from meterline.models.user import normalize_email

router = APIRouter()


class SignupIn(BaseModel):
    email: str = ""
    password: str = ""
    name: str = ""


class LoginIn(BaseModel):
    email: str = ""
    password: str = ""


@router.post("/signup", status_code=201)
async def signup(data: SignupIn, request: Request):
    email = normalize_email(data.email)
    name = data.name.strip()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if len(data.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not name:
        raise ValidationError("Name is required")

    user = await request.app.state.identity_store.create(email, hash_password(data.password), name)
    token = get_session_store(request).issue(user)
    log_event("info", f"Auth signup: {user.email}", user_id=user.id, event_type="auth_signup")
    return {"token": token, "user": user.to_public().model_dump(by_alias=True)}


@router.post("/login")
async def login(data: LoginIn, request: Request):
    user = await request.app.state.identity_store.find_by_email(data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        raise AuthError("Invalid email or password")

    token = get_session_store(request).issue(user)
    log_event("info", f"Auth login: {user.email}", user_id=user.id, event_type="auth_login")
    return {"token": token, "user": user.to_public().model_dump(by_alias=True)}


@router.get("/me")
async def me(auth: ResolvedAuth = Depends(require_auth)):
    return {"user": auth.user.to_public().model_dump(by_alias=True)}


@router.post("/logout")
async def logout(request: Request, auth: ResolvedAuth = Depends(require_auth)):
    get_session_store(request).revoke(auth.token)
    return {"ok": True}

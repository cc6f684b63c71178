import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

import audit
import auth
import database as db
import sessions
from audit import AuditAction
from config import AUTH_COOKIE, REFRESH_COOKIE, RESET_TOKEN_TTL, SESSION_COOKIE
from deps import AuthUser, get_current_user
from roles import has_permission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/auth", tags=["auth"])

RESET_REQUESTED_MESSAGE = "If an account with that email exists, a password reset link has been sent."


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    rememberMe: bool = False


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None


class TokenRequest(BaseModel):
    token: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    token: Optional[str] = None
    password: Optional[str] = None


def _public_user(user: dict) -> dict:
    return {
        "id": user["id"],
        "email": user["email"],
        "role": user["role"],
        "lastLogin": user.get("last_login"),
    }


@router.post("/login")
async def login(req: LoginRequest, request: Request, response: Response):
    if not req.email or not req.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = await db.get_admin_user_by_email(req.email.strip().lower())
    if not user or not auth.verify_password(req.password, user["password_hash"]):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    tokens = auth.generate_tokens(user["id"], user["email"], user["role"], req.rememberMe)
    info = audit.client_info(request)
    await sessions.create_managed_session(
        user_id=user["id"],
        session_id=tokens.session_id,
        ip_address=info["ip_address"],
        user_agent=info["user_agent"],
        remember_me=req.rememberMe,
        device_info=auth.parse_device_info(info["user_agent"]),
    )
    await db.update_last_login(user["id"])
    auth.set_auth_cookies(response, tokens)

    await audit.log_action(
        AuditAction.LOGIN,
        user_id=user["id"],
        user_email=user["email"],
        resource_type="auth",
        details={"rememberMe": req.rememberMe},
        request=request,
        session_id=tokens.session_id,
    )
    user["last_login"] = datetime.now(timezone.utc)
    return {"success": True, "user": _public_user(user)}


@router.post("/refresh")
async def refresh(request: Request, response: Response):
    refresh_token = request.cookies.get(REFRESH_COOKIE)
    session_id = request.cookies.get(SESSION_COOKIE)
    if not refresh_token or not session_id:
        raise HTTPException(status_code=401, detail="No refresh token")

    try:
        payload = auth.verify_refresh_token(refresh_token)
    except auth.AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    if payload.get("sessionId") != session_id:
        raise HTTPException(status_code=401, detail="Session mismatch")

    validation = await sessions.validate_and_refresh_session(session_id)
    if not validation.is_valid:
        raise HTTPException(status_code=401, detail=f"Session {validation.reason}")

    user = await db.get_admin_user(payload["userId"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    access_token = auth.generate_access_token(user["id"], user["email"], user["role"], session_id)
    auth.set_access_cookie(response, access_token)
    return {"success": True, "session": validation.to_dict()}


def _access_payload(token: Optional[str]) -> dict:
    """Claims of a still-valid access token, or an empty dict."""
    if not token:
        return {}
    try:
        return auth.verify_access_token(token)
    except auth.AuthenticationError:
        return {}


@router.post("/logout")
async def logout(request: Request, response: Response):
    session_id = request.cookies.get(SESSION_COOKIE)
    payload = _access_payload(request.cookies.get(AUTH_COOKIE))
    user_id = payload.get("userId")
    email = payload.get("email")

    if session_id:
        try:
            await sessions.terminate_session(session_id, user_id)
        except Exception as e:
            logger.warning("Failed to terminate session on logout: %s", e)

    auth.clear_auth_cookies(response)
    if user_id:
        await audit.log_action(
            AuditAction.LOGOUT, user_id=user_id, user_email=email,
            resource_type="auth", request=request, session_id=session_id,
        )
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
async def me(user: AuthUser = Depends(get_current_user)):
    record = await db.get_admin_user(user.user_id)
    if not record:
        raise HTTPException(status_code=401, detail="User not found")
    return {"user": _public_user(record)}


@router.post("/forgot-password")
async def forgot_password(req: ForgotPasswordRequest, request: Request):
    if not req.email:
        raise HTTPException(status_code=400, detail="Email is required")

    user = await db.get_admin_user_by_email(req.email.strip().lower())
    if user:
        token = auth.generate_reset_token()
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=RESET_TOKEN_TTL)
        await db.create_reset_token(user["id"], token, expires_at)
        reset_url = f"{str(request.base_url).rstrip('/')}/admin/reset-password?token={token}"
        # No mail transport; the link goes to the server log
        logger.info("Password reset requested for %s: %s", user["email"], reset_url)

    return {"success": True, "message": RESET_REQUESTED_MESSAGE}


@router.post("/validate-reset-token")
async def validate_reset_token(req: TokenRequest):
    if not req.token:
        raise HTTPException(status_code=400, detail="Token is required")
    record = await db.get_valid_reset_token(req.token)
    if not record:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    return {"valid": True}


@router.post("/reset-password")
async def reset_password(req: ResetPasswordRequest, request: Request):
    if not req.token or not req.password:
        raise HTTPException(status_code=400, detail="Token and password are required")
    if not auth.is_password_strong(req.password):
        raise HTTPException(
            status_code=400,
            detail="Password is too weak. Use at least 8 characters with upper and lower case letters, numbers and symbols.",
        )

    record = await db.get_valid_reset_token(req.token)
    if not record:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user = await db.get_admin_user(record["user_id"])
    if not user:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    if auth.verify_password(req.password, user["password_hash"]):
        raise HTTPException(status_code=400, detail="New password must be different from the current password")

    await db.update_admin_password(user["id"], auth.hash_password(req.password))
    await db.mark_reset_token_used(req.token)
    terminated = await sessions.terminate_all_user_sessions(user["id"])

    await audit.log_action(
        AuditAction.PASSWORD_RESET,
        user_id=user["id"],
        user_email=user["email"],
        resource_type="auth",
        details={"sessionsTerminated": terminated},
        request=request,
    )
    return {"success": True, "message": "Password has been reset successfully"}


# --- Session management ---

@router.get("/sessions")
async def list_sessions(user: AuthUser = Depends(get_current_user)):
    return {
        "sessions": await sessions.get_user_sessions(user.user_id),
        "currentSessionId": user.session_id,
    }


@router.get("/sessions/stats")
async def session_stats(user: AuthUser = Depends(get_current_user)):
    """Global statistics for session managers, own statistics otherwise."""
    if has_permission(user.role, "can_manage_sessions"):
        return {"scope": "global", "stats": await sessions.get_session_statistics()}
    return {"scope": "user", "stats": await sessions.get_session_statistics(user.user_id)}


@router.post("/sessions/terminate-others")
async def terminate_other_sessions(user: AuthUser = Depends(get_current_user)):
    if not user.session_id:
        raise HTTPException(status_code=400, detail="Current session unknown")
    count = await sessions.terminate_other_sessions(user.user_id, user.session_id)
    return {"success": True, "terminated": count}


@router.delete("/sessions/{session_id}")
async def terminate_session(session_id: str, user: AuthUser = Depends(get_current_user)):
    if not await sessions.terminate_session(session_id, user.user_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return {"success": True}

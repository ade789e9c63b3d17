"""Auth API routes"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from app.core.container import Container, get_container
from app.core.security import SESSION_COOKIE, require_auth, set_auth_cookie
from app.db.session import get_db
from app.schemas.requests import RegisterRequest, LoginRequest
from app.services.auth_service import (
    validate_registration, register_user, authenticate_user, start_session,
    end_session, get_user_by_id, user_to_dict
)

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/register", status_code=201)
def register(request_data: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    """Create an account and log it in"""
    error = validate_registration(request_data.email, request_data.password)
    if error:
        raise HTTPException(400, error)

    try:
        user, session_id = register_user(request_data.email, request_data.password, request_data.name, db=db)
    except ValueError as e:
        raise HTTPException(409, str(e))

    set_auth_cookie(response, session_id)
    return {"success": True, "user": user_to_dict(user)}


@router.post("/login")
def login(request_data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """Login user"""
    if not request_data.email or not request_data.password:
        raise HTTPException(400, "Email and password are required")

    user = authenticate_user(request_data.email, request_data.password, db=db)
    if not user:
        raise HTTPException(401, "Invalid email or password")

    set_auth_cookie(response, start_session(user))
    return {"success": True, "user": user_to_dict(user)}


@router.post("/logout")
def logout(request: Request, response: Response):
    """Logout user"""
    session_id = request.cookies.get(SESSION_COOKIE)
    end_session(session_id)
    if session_id:
        response.delete_cookie(SESSION_COOKIE)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(user_id: int = Depends(require_auth), db: Session = Depends(get_db)):
    user = get_user_by_id(user_id, db=db)
    if not user:
        raise HTTPException(404, "User not found")
    return {"success": True, "user": user_to_dict(user)}


@router.get("/connected-accounts")
def connected_accounts(
    user_id: int = Depends(require_auth),
    db: Session = Depends(get_db),
    container: Container = Depends(get_container)
):
    """Active platform connections for the current user"""
    return {"success": True, "accounts": container.social.get_connected_accounts(user_id, db=db)}

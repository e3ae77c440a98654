from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from taskboard.database import get_db
from taskboard.schemas.auth import (
    ResendVerificationRequest,
    RevokeSessionsResponse,
    SetPasswordRequest,
    Token,
    UserLogin,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from taskboard.schemas.common import MessageResponse
from taskboard.schemas.user import UserEnvelope, UserRegister
from taskboard.utils.auth import get_bearer_token, get_current_identity, get_services
from taskboard.utils.permissions import Identity

router = APIRouter()

RESEND_MESSAGE = "If an account exists with this email and is not yet verified, a verification email has been sent."


@router.post("/register", response_model=UserEnvelope, status_code=status.HTTP_201_CREATED)
def register(data: UserRegister, db: Session = Depends(get_db), services=Depends(get_services)):
    user = services.auth.register(db, data)
    return {
        "message": "User registered successfully. Please check your email to verify your account.",
        "user": user,
    }


@router.post("/login", response_model=Token)
def login(credentials: UserLogin, db: Session = Depends(get_db), services=Depends(get_services)):
    token, user = services.auth.login(db, credentials.username, credentials.password)
    return {"message": "Login successful", "token": token, "user": user}


@router.post("/logout", response_model=MessageResponse)
def logout(token: str = Depends(get_bearer_token), db: Session = Depends(get_db), services=Depends(get_services)):
    services.auth.logout(db, token)
    return {"message": "Logout successful"}


@router.post("/verify-email", response_model=VerifyEmailResponse)
def verify_email(data: VerifyEmailRequest, db: Session = Depends(get_db), services=Depends(get_services)):
    user = services.auth.verify_email(db, data.token)
    if user.requires_password_setup:
        return {
            "message": "Email verified successfully. Please set your password to complete account setup.",
            "user": user,
            "requires_password_setup": True,
        }
    return {"message": "Email verified successfully. You can now log in.", "user": user}


@router.post("/set-password", response_model=UserEnvelope)
def set_password(data: SetPasswordRequest, db: Session = Depends(get_db), services=Depends(get_services)):
    user = services.auth.set_password(db, data.token, data.password)
    return {"message": "Password set successfully. You can now log in.", "user": user}


@router.post("/resend-verification", response_model=MessageResponse)
async def resend_verification(
    data: ResendVerificationRequest,
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    await services.auth.resend_verification(db, data.email)
    return {"message": RESEND_MESSAGE}


@router.post("/revoke-session/{user_id}", response_model=RevokeSessionsResponse)
def revoke_sessions(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    revoked = services.auth.revoke_all_sessions(db, identity, user_id)
    return {"message": "All sessions revoked successfully", "revoked_count": revoked}


@router.get("/me", response_model=UserEnvelope)
def me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db), services=Depends(get_services)):
    return {"user": services.users.get_user(db, identity.id)}

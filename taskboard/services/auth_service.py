# taskboard/services/auth_service.py
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taskboard.config import Settings
from taskboard.database import utcnow
from taskboard.errors import (
    DuplicateIdentity,
    EmailNotVerified,
    InvalidCredentials,
    InvalidOrExpiredToken,
    NotFound,
    Unauthenticated,
    WeakPassword,
)
from taskboard.models import User, UserSession
from taskboard.schemas.user import UserRegister
from taskboard.services.email_service import EmailOutbox, EmailTemplates
from taskboard.utils.permissions import Action, Identity, authorize
from taskboard.utils.security import create_access_token, generate_token, hash_password, verify_password, verify_token

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def ensure_unique_identity(db: Session, username: str, email: str) -> None:
    existing = db.query(User).filter(or_(User.username == username, User.email == email)).first()
    if existing is None:
        return
    if existing.username == username:
        raise DuplicateIdentity("Username already exists")
    raise DuplicateIdentity("Email already exists")


def commit_new_user(db: Session, user: User) -> User:
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration
        db.rollback()
        raise DuplicateIdentity()
    db.refresh(user)
    return user


class AuthService:
    """Sessions, login and the registration / verification state machine"""

    def __init__(self, settings: Settings, outbox: EmailOutbox, templates: EmailTemplates):
        self.settings = settings
        self.outbox = outbox
        self.templates = templates

    def _verification_expiry(self) -> datetime:
        return utcnow() + timedelta(hours=self.settings.EMAIL_VERIFICATION_EXPIRATION_HOURS)

    # Sessions

    def authenticate(self, db: Session, token: Optional[str]) -> Identity:
        """Resolve a bearer token to an Identity; the session row is the source of truth"""
        if not token:
            raise Unauthenticated("Access denied. No token provided.")

        payload = verify_token(token, self.settings)
        if payload is None:
            raise Unauthenticated("Invalid or expired token")

        session = db.query(UserSession).filter(UserSession.token == token).first()
        if session is None or session.expires_at <= utcnow():
            raise Unauthenticated("Session expired or revoked. Please log in again.")

        user = db.get(User, session.user_id)
        if user is None or payload.get("userId") != user.id:
            raise Unauthenticated("Invalid token")
        return Identity.from_user(user)

    def login(self, db: Session, username: str, password: str) -> Tuple[str, User]:
        user = db.query(User).filter(User.username == username).first()
        if user is None or not verify_password(password, user.hashed_password):
            logger.info("Failed login attempt for username %r", username)
            raise InvalidCredentials()
        if not user.can_log_in:
            raise EmailNotVerified()

        token, expires_at = create_access_token({"userId": user.id, "role": user.role}, self.settings)
        db.add(UserSession(user_id=user.id, token=token, expires_at=expires_at))
        db.commit()
        logger.info("User %s logged in", user.id)
        return token, user

    def logout(self, db: Session, token: str) -> bool:
        """Delete the session for token; a missing session is not an error"""
        deleted = db.query(UserSession).filter(UserSession.token == token).delete(synchronize_session=False)
        db.commit()
        return bool(deleted)

    def revoke_all_sessions(self, db: Session, identity: Identity, target_user_id: int) -> int:
        authorize(identity, Action.SESSION_REVOKE, target_user_id)
        if db.get(User, target_user_id) is None:
            raise NotFound("User not found")

        revoked = db.query(UserSession).filter(UserSession.user_id == target_user_id).delete(synchronize_session=False)
        db.commit()
        logger.info("User %s revoked %d sessions of user %s", identity.id, revoked, target_user_id)
        return revoked

    def purge_expired_sessions(self, db: Session, now: Optional[datetime] = None) -> int:
        deleted = db.query(UserSession).filter(UserSession.expires_at <= (now or utcnow())).delete(synchronize_session=False)
        db.commit()
        return deleted

    # Registration and verification

    def register(self, db: Session, data: UserRegister) -> User:
        ensure_unique_identity(db, data.username, data.email)

        user = User(
            username=data.username,
            email=data.email,
            hashed_password=hash_password(data.password, self.settings.BCRYPT_ROUNDS),
            role=data.role.value,
            email_verified=False,
            verification_token=generate_token(),
            verification_expires=self._verification_expiry(),
        )
        user = commit_new_user(db, user)
        logger.info("Registered user %s (%s)", user.id, user.username)

        self.outbox.enqueue(self.templates.verification(user.email, user.username, user.verification_token))
        return user

    def verify_email(self, db: Session, token: str) -> User:
        """
        Consume a verification token.

        Accounts still waiting for a password keep their token so it can be
        presented again to set_password.
        """
        user = db.query(User).filter(
            User.verification_token == token,
            User.verification_expires > utcnow(),
        ).first()
        if user is None:
            raise InvalidOrExpiredToken("Invalid or expired verification token")

        user.email_verified = True
        if user.requires_password_setup:
            db.commit()
            db.refresh(user)
            return user

        user.verification_token = None
        user.verification_expires = None
        db.commit()
        db.refresh(user)
        logger.info("User %s verified email", user.id)

        self.outbox.enqueue(self.templates.welcome(user.email, user.username))
        return user

    def set_password(self, db: Session, token: str, password: str) -> User:
        user = db.query(User).filter(
            User.verification_token == token,
            User.requires_password_setup == True,  # noqa: E712
            User.email_verified == True,  # noqa: E712
            User.verification_expires > utcnow(),
        ).first()
        if user is None:
            raise InvalidOrExpiredToken("Invalid or expired password setup token")
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise WeakPassword()

        user.hashed_password = hash_password(password, self.settings.BCRYPT_ROUNDS)
        user.verification_token = None
        user.verification_expires = None
        user.requires_password_setup = False
        db.commit()
        db.refresh(user)
        logger.info("User %s set their password", user.id)

        self.outbox.enqueue(self.templates.welcome(user.email, user.username))
        return user

    async def resend_verification(self, db: Session, email: str) -> bool:
        """Re-issue a verification token; the outcome is never revealed to the caller"""
        user = db.query(User).filter(User.email == email).first()
        if user is None or user.email_verified:
            return False

        user.verification_token = generate_token()
        user.verification_expires = self._verification_expiry()
        db.commit()

        sent = await self.outbox.deliver_now(
            self.templates.verification(user.email, user.username, user.verification_token)
        )
        if not sent:
            logger.error("Verification email to user %s could not be sent", user.id)
        return sent

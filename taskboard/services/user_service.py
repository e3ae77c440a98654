# taskboard/services/user_service.py
import asyncio
import logging
from datetime import timedelta
from typing import List, Tuple

from sqlalchemy.orm import Session

from taskboard.config import Settings
from taskboard.database import utcnow
from taskboard.errors import InvalidRole, NotFound
from taskboard.models import User, UserRole
from taskboard.schemas.user import AdminUserCreate
from taskboard.services.auth_service import commit_new_user, ensure_unique_identity
from taskboard.services.email_service import EmailOutbox, EmailTemplates
from taskboard.utils.security import generate_password, generate_token, hash_password

logger = logging.getLogger(__name__)

VALID_ROLES = {role.value for role in UserRole}


class UserService:
    def __init__(self, settings: Settings, outbox: EmailOutbox, templates: EmailTemplates):
        self.settings = settings
        self.outbox = outbox
        self.templates = templates

    async def create_user(self, db: Session, data: AdminUserCreate) -> Tuple[User, bool]:
        """
        Provision an account on behalf of an admin.

        The account can log in straight away. It carries a password-setup
        token so the owner can confirm their email and replace the initial
        password. When no password is supplied a one-time password is
        generated and included in the email. Returns the user and whether an
        email was delivered.
        """
        ensure_unique_identity(db, data.username, data.email)

        one_time_password = None
        password = data.password
        if not password:
            password = one_time_password = generate_password()
        hashed_password = await asyncio.to_thread(hash_password, password, self.settings.BCRYPT_ROUNDS)

        user = User(
            username=data.username,
            email=data.email,
            hashed_password=hashed_password,
            role=data.role.value,
            email_verified=True,
            admin_provisioned=True,
            requires_password_setup=True,
            verification_token=generate_token(),
            verification_expires=utcnow() + timedelta(hours=self.settings.EMAIL_VERIFICATION_EXPIRATION_HOURS),
        )
        user = commit_new_user(db, user)
        logger.info("Admin provisioned user %s (%s) with role %s", user.id, user.username, user.role)

        email_sent = await self.outbox.deliver_now(
            self.templates.admin_created(user.email, user.username, user.verification_token, one_time_password)
        )
        if not email_sent:
            logger.error("Account email to provisioned user %s could not be sent", user.id)
        return user, email_sent

    def list_users(self, db: Session, page: int, limit: int) -> Tuple[List[User], int]:
        query = db.query(User)
        total = query.count()
        users = query.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return users, total

    def get_user(self, db: Session, user_id: int) -> User:
        user = db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def update_user_role(self, db: Session, user_id: int, role: str) -> User:
        role = (role or "").strip().lower()
        if role not in VALID_ROLES:
            raise InvalidRole(f"Invalid role. Must be one of: {', '.join(r.value for r in UserRole)}")

        user = self.get_user(db, user_id)
        user.role = role
        db.commit()
        db.refresh(user)
        logger.info("User %s role changed to %s", user.id, role)
        return user

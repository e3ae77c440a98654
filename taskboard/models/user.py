# taskboard/models/user.py
import enum

from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship

from taskboard.database import Base, UTCDateTime, utcnow


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)

    # Verification / provisioning state
    email_verified = Column(Boolean, default=False, nullable=False)
    verification_token = Column(String(64), nullable=True, index=True)
    verification_expires = Column(UTCDateTime, nullable=True)
    admin_provisioned = Column(Boolean, default=False, nullable=False)
    requires_password_setup = Column(Boolean, default=False, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    created_tasks = relationship("Task", back_populates="creator", foreign_keys="Task.created_by")
    assigned_tasks = relationship("Task", back_populates="assignee", foreign_keys="Task.assigned_to")
    sessions = relationship("UserSession", back_populates="user")
    notifications = relationship("Notification", back_populates="user")

    @property
    def can_log_in(self) -> bool:
        return self.email_verified or self.admin_provisioned

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"

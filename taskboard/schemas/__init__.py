from .common import CamelModel, Pagination, MessageResponse
from .user import UserRegister, AdminUserCreate, UserRoleUpdate, UserOut, IdentityOut, UserEnvelope, AdminUserCreated, UserList
from .auth import UserLogin, Token, VerifyEmailRequest, VerifyEmailResponse, SetPasswordRequest, ResendVerificationRequest, RevokeSessionsResponse
from .task import TaskCreate, TaskUpdate, TaskOut, TaskSummary, TaskEnvelope, TaskList
from .notification import NotificationOut, NotificationList, NotificationEnvelope, UnreadCount, UpdatedCount, DeletedCount

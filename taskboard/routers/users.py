from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskboard.database import get_db
from taskboard.schemas.common import Pagination, clamp_page
from taskboard.schemas.user import AdminUserCreate, AdminUserCreated, UserEnvelope, UserList, UserRoleUpdate
from taskboard.utils.auth import get_current_identity, get_services, require_action
from taskboard.utils.permissions import Action, Identity

router = APIRouter()


@router.get("", response_model=UserList)
def list_users(
    page: int = Query(1),
    limit: int = Query(10),
    identity: Identity = Depends(require_action(Action.USER_LIST)),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    page, limit = clamp_page(page, limit)
    users, total = services.users.list_users(db, page, limit)
    return {"users": users, "pagination": Pagination.build(page, limit, total)}


@router.post("", response_model=AdminUserCreated, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AdminUserCreate,
    identity: Identity = Depends(require_action(Action.USER_CREATE)),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    user, email_sent = await services.users.create_user(db, data)
    if email_sent:
        message = "User created successfully. Login details have been sent to their email."
    else:
        message = "User created successfully, but the login details email could not be sent."
    return {
        "message": message,
        "user": user,
        "email_sent": email_sent,
    }


@router.get("/me", response_model=UserEnvelope)
def get_me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db), services=Depends(get_services)):
    return {"user": services.users.get_user(db, identity.id)}


@router.get("/{user_id}", response_model=UserEnvelope)
def get_user(
    user_id: int,
    identity: Identity = Depends(require_action(Action.USER_READ)),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    return {"user": services.users.get_user(db, user_id)}


@router.put("/{user_id}/role", response_model=UserEnvelope)
def update_user_role(
    user_id: int,
    data: UserRoleUpdate,
    identity: Identity = Depends(require_action(Action.USER_UPDATE_ROLE)),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    user = services.users.update_user_role(db, user_id, data.role)
    return {"message": "User role updated successfully", "user": user}

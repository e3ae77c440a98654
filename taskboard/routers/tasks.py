from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from taskboard.database import get_db
from taskboard.models.task import TaskPriority, TaskStatus
from taskboard.schemas.common import MessageResponse, Pagination, clamp_page
from taskboard.schemas.task import TaskCreate, TaskEnvelope, TaskList, TaskUpdate
from taskboard.utils.auth import get_current_identity, get_services, require_action
from taskboard.utils.permissions import Action, Identity

router = APIRouter()


@router.get("", response_model=TaskList)
def list_tasks(
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = Query(None),
    assigned_to: Optional[int] = Query(None, alias="assignedTo"),
    page: int = Query(1),
    limit: int = Query(10),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    """Tasks visible to the caller, soonest due first"""
    page, limit = clamp_page(page, limit)
    tasks, total = services.tasks.list_tasks(
        db, identity, page, limit, status=status_filter, priority=priority, assigned_to=assigned_to
    )
    return {"tasks": tasks, "pagination": Pagination.build(page, limit, total)}


@router.post("", response_model=TaskEnvelope, status_code=status.HTTP_201_CREATED)
async def create_task(
    data: TaskCreate,
    identity: Identity = Depends(require_action(Action.TASK_CREATE)),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    task = services.tasks.create_task(db, identity, data)
    return {"message": "Task created successfully", "task": task}


@router.get("/{task_id}", response_model=TaskEnvelope)
def get_task(
    task_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    return {"task": services.tasks.get_task(db, identity, task_id)}


@router.put("/{task_id}", response_model=TaskEnvelope)
async def update_task(
    task_id: int,
    data: TaskUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    # async so that notification pushes run on the event loop with the stream registry
    task = services.tasks.update_task(db, identity, task_id, data)
    return {"message": "Task updated successfully", "task": task}


@router.delete("/{task_id}", response_model=MessageResponse)
def delete_task(
    task_id: int,
    identity: Identity = Depends(require_action(Action.TASK_DELETE)),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    services.tasks.delete_task(db, identity, task_id)
    return {"message": "Task deleted successfully"}

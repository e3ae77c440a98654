# taskboard/services/task_service.py
import logging
from typing import List, Optional, Tuple

from pydantic.alias_generators import to_camel
from sqlalchemy import or_
from sqlalchemy.orm import Session

from taskboard.errors import InvalidReference, NotFound
from taskboard.models import ReminderLog, Task, TaskPriority, TaskStatus, User
from taskboard.schemas.task import TaskCreate, TaskUpdate
from taskboard.services.notification_service import NotificationService
from taskboard.utils.permissions import ADMIN, MANAGER, Action, Identity, authorize

logger = logging.getLogger(__name__)


def visible_tasks(db: Session, identity: Identity):
    """Base query restricted to the tasks the identity's role may see"""
    query = db.query(Task)
    if identity.role == ADMIN:
        return query
    if identity.role == MANAGER:
        return query.filter(or_(Task.created_by == identity.id, Task.assigned_to == identity.id))
    return query.filter(Task.assigned_to == identity.id)


class TaskService:
    def __init__(self, notifications: NotificationService):
        self.notifications = notifications

    def _resolve_assignee(self, db: Session, user_id: int) -> User:
        assignee = db.get(User, user_id)
        if assignee is None:
            raise InvalidReference("Assigned user not found")
        return assignee

    def _notify(self, db: Session, send, *args) -> None:
        # The task write already succeeded; a failed notice must not undo it
        try:
            send(db, *args)
        except Exception:
            db.rollback()
            logger.exception("Error creating notification for task %s", args[0].id)

    def create_task(self, db: Session, identity: Identity, data: TaskCreate) -> Task:
        authorize(identity, Action.TASK_CREATE)

        assignee = None
        if data.assigned_to is not None:
            assignee = self._resolve_assignee(db, data.assigned_to)

        task = Task(
            title=data.title,
            description=data.description or None,
            assigned_to=data.assigned_to,
            status=data.status,
            priority=data.priority,
            due_date=data.due_date,
            created_by=identity.id,
        )
        db.add(task)
        db.commit()
        db.refresh(task)
        logger.info("Task %s created by user %s", task.id, identity.id)

        if assignee is not None:
            self._notify(db, self.notifications.notify_task_assigned, task, assignee)
        return task

    def list_tasks(
        self,
        db: Session,
        identity: Identity,
        page: int,
        limit: int,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        assigned_to: Optional[int] = None,
    ) -> Tuple[List[Task], int]:
        authorize(identity, Action.TASK_LIST)

        # Filters only ever narrow the role-visible set
        query = visible_tasks(db, identity)
        if status is not None:
            query = query.filter(Task.status == status)
        if priority is not None:
            query = query.filter(Task.priority == priority)
        if assigned_to is not None:
            query = query.filter(Task.assigned_to == assigned_to)

        total = query.count()
        tasks = (
            query.order_by(Task.due_date.asc(), Task.created_at.desc(), Task.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return tasks, total

    def get_task(self, db: Session, identity: Identity, task_id: int) -> Task:
        task = db.get(Task, task_id)
        if task is None:
            raise NotFound("Task not found")
        authorize(identity, Action.TASK_READ, task)
        return task

    def update_task(self, db: Session, identity: Identity, task_id: int, data: TaskUpdate) -> Task:
        task = db.get(Task, task_id)
        if task is None:
            raise NotFound("Task not found")

        authorize(identity, Action.TASK_UPDATE, task, fields=data.requested_fields())
        patch = data.changes()

        new_assignee = None
        if patch.get("assigned_to") is not None and patch["assigned_to"] != task.assigned_to:
            new_assignee = self._resolve_assignee(db, patch["assigned_to"])

        previous_status = task.status
        changed = []
        for field, value in patch.items():
            if field == "description" and value == "":
                value = None
            if getattr(task, field) != value:
                setattr(task, field, value)
                changed.append(field)

        if not changed:
            return task

        db.commit()
        db.refresh(task)
        logger.info("Task %s updated by user %s: %s", task.id, identity.id, ", ".join(changed))

        if new_assignee is not None:
            self._notify(db, self.notifications.notify_task_assigned, task, new_assignee)
        elif "assigned_to" not in changed and task.assignee is not None:
            self._notify(
                db,
                self.notifications.notify_task_updated,
                task,
                task.assignee,
                [to_camel(field) for field in changed],
            )

        if (
            task.status == TaskStatus.COMPLETED
            and previous_status != TaskStatus.COMPLETED
            and task.created_by != identity.id
        ):
            self._notify(db, self.notifications.notify_task_completed, task, identity.username)
        return task

    def delete_task(self, db: Session, identity: Identity, task_id: int) -> None:
        authorize(identity, Action.TASK_DELETE)

        task = db.get(Task, task_id)
        if task is None:
            raise NotFound("Task not found")
        authorize(identity, Action.TASK_DELETE, task)

        db.query(ReminderLog).filter(ReminderLog.task_id == task.id).delete(synchronize_session=False)
        db.delete(task)
        db.commit()
        logger.info("Task %s deleted by user %s", task_id, identity.id)

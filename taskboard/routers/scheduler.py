from fastapi import APIRouter, Depends

from taskboard.utils.auth import get_services, require_action
from taskboard.utils.permissions import Action, Identity

router = APIRouter()


@router.get("/status")
async def get_scheduler_status(
    identity: Identity = Depends(require_action(Action.SCHEDULER_MANAGE)),
    services=Depends(get_services),
):
    return services.scheduler.get_scheduler_status()


@router.post("/trigger/reminders")
async def trigger_reminders(
    identity: Identity = Depends(require_action(Action.SCHEDULER_MANAGE)),
    services=Depends(get_services),
):
    """Run one reminder check now"""
    sent = await services.scheduler.check_upcoming_tasks()
    return {"message": "Reminder check completed", "sent": sent}

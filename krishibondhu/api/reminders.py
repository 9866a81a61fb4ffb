"""
Reminder endpoints
"""

from fastapi import APIRouter, Depends, status

from ..errors import KrishiError
from .schemas import CropReminderRequest, ReminderModel, ReminderListModel
from .system import KrishiSystem, get_system, http_error


router = APIRouter()


@router.get("")
async def list_reminders(system: KrishiSystem = Depends(get_system)):
    reminders = system.manager.reminders.list()
    return ReminderListModel(
        reminders=[ReminderModel.from_reminder(r) for r in reminders]
    ).model_dump()


@router.get("/due")
async def list_due_reminders(system: KrishiSystem = Depends(get_system)):
    """Reminders due today (read only; nothing is marked completed)"""
    reminders = system.manager.reminders.due_today()
    return ReminderListModel(
        reminders=[ReminderModel.from_reminder(r) for r in reminders]
    ).model_dump()


@router.post("/crop", status_code=status.HTTP_201_CREATED)
async def set_crop_reminder(request: CropReminderRequest, system: KrishiSystem = Depends(get_system)):
    """Schedule a fertilizer reminder for a crop"""
    try:
        reminder = await system.manager.request_crop_reminder(
            crop_id=request.crop_id,
            crop_name=request.crop_name,
            when=request.date,
            care_type=request.care_type
        )
    except KrishiError as e:
        raise http_error(e)
    return ReminderModel.from_reminder(reminder).model_dump()

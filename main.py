import logging
from typing import List, Optional

from fastapi import FastAPI, Query, Request, status
from fastapi.responses import JSONResponse

import db
from app.errors import ReminderServiceError
from app.services import reminders as reminder_service
from app.services import verification
from app.types.reminder_contract import (
    NotificationSettings,
    PhoneVerificationOut,
    ReminderCreate,
    ReminderOut,
    ReminderStatus,
    ReminderUpdate,
    VerificationConfirm,
    VerificationRequest,
)
from config import settings

logging.basicConfig(level=settings.LOG_LEVEL)
_LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Reminders backend")


@app.on_event("shutdown")
async def shutdown_event():
    await db.dispose_engine()


@app.exception_handler(ReminderServiceError)
async def reminder_service_exception_handler(request: Request, exc: ReminderServiceError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code, "details": exc.details},
    )


# --------------------------------------------
# Phone verification
# --------------------------------------------
@app.post("/v1/phones/verification")
async def send_verification(req: VerificationRequest, request: Request):
    await verification.issue_verification_code(req.phone, user_id=request.headers.get("x-user-id"))
    return {"success": True}


@app.post("/v1/phones/verification/confirm", response_model=PhoneVerificationOut)
async def confirm_verification(req: VerificationConfirm):
    try:
        phone = await verification.confirm_verification_code(req.phone, req.code)
    except ReminderServiceError as exc:
        _LOGGER.info("Verification rejected for %s: %s", req.phone, getattr(exc, "reason", exc.code))
        raise
    return phone


@app.delete("/v1/phones/{phone}", status_code=status.HTTP_204_NO_CONTENT)
async def unlink_phone(phone: str):
    await verification.unlink_phone(phone)


@app.put("/v1/phones/{phone}/notifications", response_model=PhoneVerificationOut)
async def set_notifications(phone: str, req: NotificationSettings):
    return await verification.set_notifications(phone, req.enabled)


# --------------------------------------------
# Reminders
# --------------------------------------------
@app.post("/v1/reminders", response_model=ReminderOut, status_code=status.HTTP_201_CREATED)
async def create_reminder(req: ReminderCreate):
    return await reminder_service.create_reminder(req)


@app.get("/v1/reminders", response_model=List[ReminderOut])
async def list_reminders(
    status: Optional[ReminderStatus] = None,
    phone_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
):
    return await reminder_service.list_reminders(status=status, phone_id=phone_id, limit=limit)


@app.patch("/v1/reminders/{reminder_id}", response_model=ReminderOut)
async def update_reminder(reminder_id: str, req: ReminderUpdate):
    return await reminder_service.update_reminder(reminder_id, req)


@app.delete("/v1/reminders/{reminder_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_reminder(reminder_id: str):
    await reminder_service.cancel_reminder(reminder_id)

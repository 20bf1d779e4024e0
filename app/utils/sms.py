"""Telnyx SMS gateway.

``send_sms`` never raises for delivery problems: provider rejections,
transport errors and timeouts all come back as a failed ``SendResult`` so the
dispatcher can record them on the reminder.
"""

from __future__ import annotations

import asyncio
import logging

import telnyx
from telnyx.error import APIConnectionError, TelnyxError
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from app.types.reminder_contract import SendResult
from config import settings

_LOGGER = logging.getLogger(__name__)

FROM_NUM = settings.TELNYX_FROM_NUMBER
TELNYX_API_KEY = settings.TELNYX_API_KEY
SEND_TIMEOUT = settings.SMS_SEND_TIMEOUT_SECONDS
SEND_ATTEMPTS = settings.SMS_SEND_ATTEMPTS
if TELNYX_API_KEY:
    telnyx.api_key = TELNYX_API_KEY

TIMEOUT_CODE = "SMS_GATEWAY_TIMEOUT"
TRANSPORT_CODE = "SMS_GATEWAY_ERROR"


def _create_message(to: str, body: str):
    """Blocking Telnyx call. Only connection errors are retried, never rejections."""
    for attempt in Retrying(
        wait=wait_random_exponential(multiplier=0.5, max=2),
        stop=stop_after_attempt(max(1, SEND_ATTEMPTS)),
        retry=retry_if_exception_type(APIConnectionError),
        reraise=True,
    ):
        with attempt:
            return telnyx.Message.create(from_=FROM_NUM, to=to, text=body)


def _provider_code(exc: Exception) -> str | None:
    """Pull the Telnyx error code (e.g. ``40300``) out of an API error."""
    body = getattr(exc, "json_body", None)
    if isinstance(body, dict):
        errors = body.get("errors") or []
        if errors and isinstance(errors[0], dict) and errors[0].get("code"):
            return str(errors[0]["code"])
    code = getattr(exc, "code", None)
    return str(code) if code else None


async def send_sms(to: str, body: str) -> SendResult:
    if not TELNYX_API_KEY or not FROM_NUM:
        _LOGGER.info("[SMS] DEV mode: would send to %s: %s", to, body)
        return SendResult(ok=True)

    try:
        msg = await asyncio.wait_for(
            asyncio.to_thread(_create_message, to, body), timeout=SEND_TIMEOUT
        )
    except asyncio.TimeoutError:
        _LOGGER.warning("[SMS] Telnyx call timed out after %ss (to=%s)", SEND_TIMEOUT, to)
        return SendResult(ok=False, error_code=TIMEOUT_CODE, error_message="gateway timeout")
    except APIConnectionError as exc:
        _LOGGER.warning("[SMS] Telnyx transport error (to=%s): %s", to, exc)
        return SendResult(ok=False, error_code=TRANSPORT_CODE, error_message=str(exc))
    except TelnyxError as exc:
        code = _provider_code(exc)
        _LOGGER.warning("[SMS] Telnyx rejected message (to=%s, code=%s): %s", to, code, exc)
        return SendResult(ok=False, error_code=code, error_message=str(exc) or None)

    return SendResult(ok=True, message_id=str(getattr(msg, "id", "")) or None)

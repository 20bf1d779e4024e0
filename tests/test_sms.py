import time
from types import SimpleNamespace

import pytest
from telnyx.error import APIConnectionError, TelnyxError

from app.utils import sms as sms_util


class FakeRejection(TelnyxError):
    def __init__(self, code):
        Exception.__init__(self, "Message blocked")
        self.json_body = {"errors": [{"code": code, "detail": "Message blocked"}]}
        self.code = None

    def __str__(self):
        return "Message blocked"


class FakeConnectionError(APIConnectionError):
    def __init__(self):
        Exception.__init__(self, "connection reset")
        self.json_body = None
        self.code = None

    def __str__(self):
        return "connection reset"


@pytest.fixture
def live_gateway(monkeypatch):
    monkeypatch.setattr(sms_util, "TELNYX_API_KEY", "KEY_test")
    monkeypatch.setattr(sms_util, "FROM_NUM", "+15550000000")


@pytest.mark.asyncio
async def test_dev_mode_pretends_success(monkeypatch):
    monkeypatch.setattr(sms_util, "TELNYX_API_KEY", None)

    def must_not_call(to, body):
        raise AssertionError("gateway called in dev mode")

    monkeypatch.setattr(sms_util, "_create_message", must_not_call)
    result = await sms_util.send_sms("+15551234567", "hi")
    assert result.ok


@pytest.mark.asyncio
async def test_send_success(live_gateway, monkeypatch):
    calls = []

    def fake_create(to, body):
        calls.append((to, body))
        return SimpleNamespace(id="msg-123")

    monkeypatch.setattr(sms_util, "_create_message", fake_create)

    result = await sms_util.send_sms("+15551234567", "hi")

    assert result.ok and result.message_id == "msg-123"
    assert calls == [("+15551234567", "hi")]


@pytest.mark.asyncio
async def test_timeout_becomes_failed_result(live_gateway, monkeypatch):
    def slow_create(to, body):
        time.sleep(0.3)

    monkeypatch.setattr(sms_util, "_create_message", slow_create)
    monkeypatch.setattr(sms_util, "SEND_TIMEOUT", 0.05)

    result = await sms_util.send_sms("+15551234567", "hi")

    assert not result.ok
    assert result.error_code == sms_util.TIMEOUT_CODE


@pytest.mark.asyncio
async def test_provider_rejection_carries_code(live_gateway, monkeypatch):
    def rejecting_create(to, body):
        raise FakeRejection(40300)

    monkeypatch.setattr(sms_util, "_create_message", rejecting_create)

    result = await sms_util.send_sms("+15551234567", "hi")

    assert not result.ok
    assert result.error_code == "40300"
    assert result.error_message == "Message blocked"


@pytest.mark.asyncio
async def test_transport_error_becomes_failed_result(live_gateway, monkeypatch):
    def broken_create(to, body):
        raise FakeConnectionError()

    monkeypatch.setattr(sms_util, "_create_message", broken_create)

    result = await sms_util.send_sms("+15551234567", "hi")

    assert not result.ok
    assert result.error_code == sms_util.TRANSPORT_CODE


def test_connection_errors_retried_up_to_attempts(monkeypatch):
    attempts = []

    def flaky(**kwargs):
        attempts.append(kwargs)
        if len(attempts) < 3:
            raise FakeConnectionError()
        return SimpleNamespace(id="msg-ok")

    monkeypatch.setattr(sms_util, "SEND_ATTEMPTS", 3)
    monkeypatch.setattr(sms_util.telnyx.Message, "create", flaky)
    monkeypatch.setattr(sms_util, "wait_random_exponential", lambda **kw: lambda retry_state: 0)

    msg = sms_util._create_message("+15551234567", "hi")

    assert msg.id == "msg-ok"
    assert len(attempts) == 3
    assert attempts[0]["text"] == "hi"


def test_rejections_are_not_retried(monkeypatch):
    attempts = []

    def rejecting(**kwargs):
        attempts.append(kwargs)
        raise FakeRejection(40300)

    monkeypatch.setattr(sms_util, "SEND_ATTEMPTS", 3)
    monkeypatch.setattr(sms_util.telnyx.Message, "create", rejecting)

    with pytest.raises(TelnyxError):
        sms_util._create_message("+15551234567", "hi")
    assert len(attempts) == 1

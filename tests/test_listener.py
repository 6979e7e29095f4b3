import asyncio
from datetime import datetime, timezone

import pytest
from telethon.errors import FloodWaitError, RPCError
from telethon.tl import types

from drivefeed.config import BackoffPolicy
from drivefeed.errors import AuthError, ChannelConnectionError, RateLimited
from drivefeed.models.updates import MessageUpdate
from drivefeed.telegram.client import BotCredentials
from drivefeed.telegram.listener import UpdateListener

CREDENTIALS = BotCredentials(api_id=1, api_hash="hash", bot_token="12345:secret")
FAST_BACKOFF = BackoffPolicy(base_interval=0.001, multiplier=1.1, max_interval=0.01, max_elapsed=5)


class FakeClient:
    def __init__(self, authorized=True, sign_in_error=None, auth_check_error=None):
        self.authorized = authorized
        self.sign_in_error = sign_in_error
        self.auth_check_error = auth_check_error
        self.connect_errors = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.sign_in_tokens = []
        self.handlers = []
        self.disconnected = None
        self.reconnected = asyncio.Event()

    async def connect(self):
        self.connect_calls += 1
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        self.disconnected = asyncio.get_running_loop().create_future()
        if self.connect_calls > 1:
            self.reconnected.set()

    async def is_user_authorized(self):
        if self.auth_check_error is not None:
            raise self.auth_check_error
        return self.authorized

    async def sign_in(self, bot_token=None):
        self.sign_in_tokens.append(bot_token)
        if self.sign_in_error is not None:
            raise self.sign_in_error
        self.authorized = True

    async def disconnect(self):
        self.disconnect_calls += 1

    def add_event_handler(self, callback, event):
        self.handlers.append(callback)

    def remove_event_handler(self, callback, event):
        self.handlers.remove(callback)

    async def emit(self, update):
        for handler in list(self.handlers):
            await handler(update)

    def drop(self):
        self.disconnected.set_result(None)


def _raw_message(message_id):
    message = types.Message(
        id=message_id,
        peer_id=types.PeerChannel(channel_id=2523726746),
        date=datetime(2024, 5, 1, tzinfo=timezone.utc),
        message="",
    )
    return types.UpdateNewChannelMessage(message=message, pts=message_id, pts_count=1)


def _listener(client, handler, **kwargs):
    kwargs.setdefault("startup_grace", 0.01)
    kwargs.setdefault("shutdown_grace", 1.0)
    kwargs.setdefault("backoff", FAST_BACKOFF)
    return UpdateListener(CREDENTIALS, handler, client_factory=lambda: client, **kwargs)


def _recorder():
    received = []

    async def handler(update):
        if isinstance(update, MessageUpdate):
            received.append(update.message.id)

    return handler, received


def test_authorized_session_delivers_updates_in_order():
    handler, received = _recorder()

    async def scenario():
        client = FakeClient()
        stop = asyncio.Event()
        listener = _listener(client, handler)
        await listener.start(stop)
        assert listener.running
        for message_id in (1, 2, 3):
            await client.emit(_raw_message(message_id))
        stop.set()
        await listener.wait()
        return client, listener

    client, listener = asyncio.run(scenario())

    assert received == [1, 2, 3]
    assert client.sign_in_tokens == []
    assert client.handlers == []
    assert client.disconnect_calls == 1
    assert not listener.running


def test_unauthorized_session_signs_in_with_bot_token():
    handler, _ = _recorder()

    async def scenario():
        client = FakeClient(authorized=False)
        stop = asyncio.Event()
        listener = _listener(client, handler)
        await listener.start(stop)
        stop.set()
        await listener.wait()
        return client

    client = asyncio.run(scenario())
    assert client.sign_in_tokens == ["12345:secret"]


def test_flood_wait_raises_rate_limited():
    handler, _ = _recorder()
    client = FakeClient(authorized=False, sign_in_error=FloodWaitError(request=None, capture=42))

    with pytest.raises(RateLimited) as excinfo:
        asyncio.run(_listener(client, handler).start(asyncio.Event()))

    assert excinfo.value.retry_after == 42
    assert client.disconnect_calls == 1


def test_rejected_token_raises_auth_error():
    handler, _ = _recorder()
    error = RPCError(request=None, message="ACCESS_TOKEN_INVALID", code=400)
    client = FakeClient(authorized=False, sign_in_error=error)

    with pytest.raises(AuthError) as excinfo:
        asyncio.run(_listener(client, handler).start(asyncio.Event()))

    assert not isinstance(excinfo.value, RateLimited)
    assert client.disconnect_calls == 1


def test_auth_check_network_error_raises_auth_error():
    handler, _ = _recorder()
    client = FakeClient(auth_check_error=ConnectionResetError("reset"))

    with pytest.raises(AuthError):
        asyncio.run(_listener(client, handler).start(asyncio.Event()))


def test_handler_errors_do_not_stop_the_stream():
    received = []

    async def handler(update):
        if update.message.id == 1:
            raise RuntimeError("boom")
        received.append(update.message.id)

    async def scenario():
        client = FakeClient()
        stop = asyncio.Event()
        listener = _listener(client, handler)
        await listener.start(stop)
        await client.emit(_raw_message(1))
        await client.emit(_raw_message(2))
        stop.set()
        await listener.wait()

    asyncio.run(scenario())
    assert received == [2]


def test_shutdown_grace_bounds_pending_work():
    async def handler(update):
        await asyncio.Event().wait()

    async def scenario():
        client = FakeClient()
        stop = asyncio.Event()
        listener = _listener(client, handler, shutdown_grace=0.05)
        await listener.start(stop)
        await client.emit(_raw_message(1))
        stop.set()
        await asyncio.wait_for(listener.wait(), timeout=2)
        return client

    client = asyncio.run(scenario())
    assert client.disconnect_calls == 1


def test_reconnects_after_drop_and_keeps_listening():
    handler, received = _recorder()

    async def scenario():
        client = FakeClient()
        stop = asyncio.Event()
        listener = _listener(client, handler)
        await listener.start(stop)
        await client.emit(_raw_message(1))
        client.connect_errors = [OSError("unreachable"), OSError("unreachable")]
        client.drop()
        await asyncio.wait_for(client.reconnected.wait(), timeout=2)
        await client.emit(_raw_message(2))
        stop.set()
        await listener.wait()
        return client

    client = asyncio.run(scenario())
    assert received == [1, 2]
    # initial connect, two failures, one success
    assert client.connect_calls == 4


def test_reconnect_budget_exhausted():
    handler, _ = _recorder()

    class NeverReconnects(FakeClient):
        async def connect(self):
            if self.connect_calls:
                self.connect_calls += 1
                raise OSError("unreachable")
            await super().connect()

    async def scenario():
        client = NeverReconnects()
        stop = asyncio.Event()
        backoff = BackoffPolicy(base_interval=0.001, multiplier=1.1, max_interval=0.005, max_elapsed=0.05)
        listener = _listener(client, handler, backoff=backoff)
        await listener.start(stop)
        client.drop()
        with pytest.raises(ChannelConnectionError):
            await asyncio.wait_for(listener.wait(), timeout=2)
        return client

    client = asyncio.run(scenario())
    assert client.connect_calls > 2
    assert client.disconnect_calls == 1


class RecordingLogger:
    def __init__(self):
        self.events = []

    def bind(self, **kwargs):
        return self

    def _record(self, event, **kwargs):
        self.events.append(event)

    debug = info = warning = error = exception = _record


class FailsAfterFirstConnect(FakeClient):
    def __init__(self, reconnect_error, **kwargs):
        super().__init__(**kwargs)
        self.reconnect_error = reconnect_error

    async def connect(self):
        if self.connect_calls:
            self.connect_calls += 1
            raise self.reconnect_error
        await super().connect()


def test_stop_during_reconnect_backoff_is_not_a_reconnect():
    handler, _ = _recorder()
    recorder = RecordingLogger()

    async def scenario():
        client = FailsAfterFirstConnect(OSError("unreachable"))
        stop = asyncio.Event()
        backoff = BackoffPolicy(base_interval=0.05, multiplier=1.1, max_interval=0.1, max_elapsed=5)
        listener = _listener(client, handler, backoff=backoff)
        listener.logger = recorder
        await listener.start(stop)
        client.drop()
        await asyncio.sleep(0.02)
        stop.set()
        await asyncio.wait_for(listener.wait(), timeout=2)
        return client

    client = asyncio.run(scenario())

    assert "listener_reconnect_interrupted" in recorder.events
    assert "listener_reconnected" not in recorder.events
    assert client.disconnect_calls == 1


def test_rejected_reconnect_raises_connection_error():
    handler, _ = _recorder()
    error = RPCError(request=None, message="AUTH_KEY_UNREGISTERED", code=401)

    async def scenario():
        client = FailsAfterFirstConnect(error)
        stop = asyncio.Event()
        listener = _listener(client, handler)
        await listener.start(stop)
        client.drop()
        with pytest.raises(ChannelConnectionError) as excinfo:
            await asyncio.wait_for(listener.wait(), timeout=2)
        return client, excinfo.value

    client, raised = asyncio.run(scenario())

    assert raised.__cause__ is error
    # rejected outright, no backoff retries
    assert client.connect_calls == 2
    assert client.disconnect_calls == 1

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Callable, Optional

from telethon import events
from telethon.errors import FloodWaitError, RPCError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_delay,
    wait_exponential,
)

from ..config import BackoffPolicy, IngestSettings
from ..errors import AuthError, ChannelConnectionError, RateLimited
from ..logging import get_logger
from ..models.updates import Update
from .client import BotCredentials, build_client
from .convert import convert_update

UpdateHandler = Callable[[Update], Awaitable[None]]
ClientFactory = Callable[[], Any]

RECONNECT_ERRORS = (OSError, asyncio.TimeoutError)

logger = get_logger("drivefeed.listener")


class UpdateListener:
    """Owns the bot session and feeds converted updates to ``handler``.

    Updates are queued as they arrive and handled by a single consumer task,
    so the handler never runs concurrently with itself.
    """

    def __init__(
        self,
        credentials: BotCredentials,
        handler: UpdateHandler,
        *,
        auth_check_timeout: float = 30.0,
        bot_auth_timeout: float = 120.0,
        startup_grace: float = 2.0,
        shutdown_grace: float = 5.0,
        backoff: Optional[BackoffPolicy] = None,
        flood_sleep_threshold: int = 60,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._credentials = credentials
        self._handler = handler
        self._auth_check_timeout = auth_check_timeout
        self._bot_auth_timeout = bot_auth_timeout
        self._startup_grace = startup_grace
        self._shutdown_grace = shutdown_grace
        self._backoff = backoff or BackoffPolicy()
        self._client_factory = client_factory or (lambda: build_client(credentials, flood_sleep_threshold))
        self._client: Any = None
        self._queue: Optional[asyncio.Queue] = None
        self._accepting = False
        self._task: Optional[asyncio.Task] = None
        self.logger = logger.bind(bot_id=credentials.bot_id)

    @classmethod
    def from_settings(
        cls,
        credentials: BotCredentials,
        handler: UpdateHandler,
        settings: IngestSettings,
        client_factory: Optional[ClientFactory] = None,
    ) -> "UpdateListener":
        return cls(
            credentials,
            handler,
            auth_check_timeout=settings.auth_check_timeout,
            bot_auth_timeout=settings.bot_auth_timeout,
            startup_grace=settings.startup_grace,
            shutdown_grace=settings.shutdown_grace,
            backoff=settings.reconnect,
            flood_sleep_threshold=settings.flood_sleep_threshold,
            client_factory=client_factory,
        )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, stop: asyncio.Event) -> None:
        """Authorize and start listening in the background.

        Returns once the session is live. Raises ``RateLimited`` when the
        platform asks us to back off and ``AuthError`` for other
        authorization failures.
        """
        if self._task is not None:
            raise RuntimeError("listener already started")

        client = self._client_factory()
        self._client = client
        try:
            await self._authorize(client)
        except BaseException:
            await self._disconnect(client)
            raise

        self._queue = asyncio.Queue()
        self._accepting = True
        client.add_event_handler(self._on_raw_update, events.Raw)
        self._task = asyncio.create_task(self._run(client, stop), name="drivefeed-listener")

        done, _ = await asyncio.wait({self._task}, timeout=self._startup_grace)
        if done:
            self._task.result()
        self.logger.info("listener_started")

    async def wait(self) -> None:
        """Block until the listener stops; re-raises a fatal session error."""
        if self._task is not None:
            await self._task

    async def _authorize(self, client: Any) -> None:
        try:
            await asyncio.wait_for(client.connect(), self._auth_check_timeout)
            authorized = await asyncio.wait_for(client.is_user_authorized(), self._auth_check_timeout)
        except FloodWaitError as exc:
            raise RateLimited(exc.seconds) from exc
        except (RPCError, *RECONNECT_ERRORS) as exc:
            self.logger.error("listener_auth_check_failed", error=str(exc), error_type=type(exc).__name__)
            raise AuthError(f"authorization check failed: {exc}") from exc

        if authorized:
            self.logger.info("listener_already_authorized")
            return

        self.logger.info("listener_bot_sign_in")
        try:
            await asyncio.wait_for(
                client.sign_in(bot_token=self._credentials.bot_token), self._bot_auth_timeout
            )
        except FloodWaitError as exc:
            self.logger.error("listener_rate_limited", retry_after=exc.seconds)
            raise RateLimited(exc.seconds) from exc
        except (RPCError, *RECONNECT_ERRORS) as exc:
            self.logger.error("listener_bot_sign_in_failed", error=str(exc), error_type=type(exc).__name__)
            raise AuthError(f"bot authorization failed: {exc}") from exc
        self.logger.info("listener_bot_authorized")

    async def _on_raw_update(self, update: Any) -> None:
        if not self._accepting or self._queue is None:
            return
        self._queue.put_nowait(convert_update(update))

    async def _consume(self) -> None:
        assert self._queue is not None
        while True:
            update = await self._queue.get()
            try:
                await self._handler(update)
            except Exception:
                self.logger.exception("listener_update_failed", update_type=type(update).__name__)
            finally:
                self._queue.task_done()

    async def _run(self, client: Any, stop: asyncio.Event) -> None:
        consumer = asyncio.create_task(self._consume(), name="drivefeed-consumer")
        try:
            while not stop.is_set():
                if not await self._wait_for_disconnect(client, stop):
                    break
                self.logger.warning("listener_disconnected")
                if not await self._reconnect(client, stop):
                    break
        finally:
            await self._shutdown(client, consumer)

    async def _wait_for_disconnect(self, client: Any, stop: asyncio.Event) -> bool:
        """Return True when the session dropped, False when ``stop`` was set."""
        stop_waiter = asyncio.ensure_future(stop.wait())
        disconnected = asyncio.ensure_future(client.disconnected)
        try:
            done, _ = await asyncio.wait({stop_waiter, disconnected}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_waiter.cancel()
        if disconnected in done and not disconnected.cancelled() and disconnected.exception() is not None:
            self.logger.warning("listener_connection_error", error=str(disconnected.exception()))
        return disconnected in done and not stop.is_set()

    def _interruptible_sleep(self, stop: asyncio.Event) -> Callable[[float], Awaitable[None]]:
        async def _sleep(seconds: float) -> None:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=seconds)

        return _sleep

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        self.logger.warning(
            "listener_reconnect_retry",
            attempt=retry_state.attempt_number,
            sleep=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(error) if error else None,
        )

    async def _reconnect(self, client: Any, stop: asyncio.Event) -> bool:
        """Reconnect with backoff; returns False when ``stop`` was set first.

        Raises ``ChannelConnectionError`` once the budget is spent or the
        platform rejects the connection outright.
        """
        policy = self._backoff
        retrying = AsyncRetrying(
            stop=stop_after_delay(policy.max_elapsed),
            wait=wait_exponential(
                multiplier=policy.base_interval,
                exp_base=policy.multiplier,
                max=policy.max_interval,
            ),
            retry=retry_if_exception_type(RECONNECT_ERRORS),
            sleep=self._interruptible_sleep(stop),
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if stop.is_set():
                        self.logger.info("listener_reconnect_interrupted")
                        return False
                    await client.connect()
        except RECONNECT_ERRORS as exc:
            self.logger.error("listener_reconnect_exhausted", max_elapsed=policy.max_elapsed, error=str(exc))
            raise ChannelConnectionError(
                f"could not reconnect within {policy.max_elapsed:g}s: {exc}"
            ) from exc
        except Exception as exc:
            self.logger.error("listener_reconnect_failed", error=str(exc), error_type=type(exc).__name__)
            raise ChannelConnectionError(f"reconnect failed: {exc}") from exc
        self.logger.info("listener_reconnected")
        return True

    async def _shutdown(self, client: Any, consumer: asyncio.Task) -> None:
        self._accepting = False
        client.remove_event_handler(self._on_raw_update, events.Raw)
        if self._queue is not None:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=self._shutdown_grace)
            except asyncio.TimeoutError:
                self.logger.warning("listener_shutdown_grace_expired", pending=self._queue.qsize())
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer
        await self._disconnect(client)
        self.logger.info("listener_stopped")

    async def _disconnect(self, client: Any) -> None:
        try:
            await client.disconnect()
        except OSError as exc:
            self.logger.warning("listener_disconnect_failed", error=str(exc))


__all__ = ["RECONNECT_ERRORS", "UpdateListener", "UpdateHandler"]

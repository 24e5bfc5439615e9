"""Dispatch of inbound messages and correlation of responses"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from .protocol import (
    ErrorCodes,
    LSPErrorCodes,
    Message,
    Notification,
    Request,
    RequestId,
    Response,
    ResponseError,
    encode_message,
)
from .transport import MessageWriter, TransportWriteError

RequestHandler = Callable[[Any], Awaitable[Any]]
NotificationHandler = Callable[[Any], Awaitable[None]]


class MessageRouter:
    """Routes decoded messages to handlers by method name.

    Every handler runs in its own task, so a slow request never stops the
    reader from taking the next frame. Responses to requests the server sent
    itself are matched to their futures by id.
    """

    def __init__(self, writer: MessageWriter, logger: logging.Logger | None = None):
        self._writer = writer
        self._logger = logger or logging.getLogger(__name__)
        self._request_handlers: dict[str, RequestHandler] = {}
        self._notification_handlers: dict[str, NotificationHandler] = {}
        self._tasks: set[asyncio.Task] = set()
        self._running: dict[RequestId, asyncio.Task] = {}
        self._cancelled: set[RequestId] = set()
        self._pending: dict[int, asyncio.Future] = {}
        self._request_id = 0
        self._closing = False
        self._failure: asyncio.Future = asyncio.get_running_loop().create_future()

    @property
    def failure(self) -> asyncio.Future:
        """Completes with the TransportWriteError that broke the session"""
        return self._failure

    @property
    def in_flight(self) -> set[asyncio.Task]:
        return set(self._tasks)

    def on_request(self, method: str, handler: RequestHandler) -> None:
        self._request_handlers[method] = handler

    def on_notification(self, method: str, handler: NotificationHandler) -> None:
        self._notification_handlers[method] = handler

    # --- outbound ---

    async def send(self, message: Message) -> None:
        await self._writer.write_message(encode_message(message))

    async def notify(self, method: str, params: Any = None) -> None:
        await self.send(Notification(method=method, params=params))

    async def respond(
        self,
        request_id: RequestId | None,
        result: Any = None,
        error: ResponseError | None = None,
    ) -> None:
        await self.send(Response(id=request_id, result=result, error=error))

    async def send_request(self, method: str, params: Any = None) -> Any:
        """Send a request to the client and wait for its response.

        Raises ResponseError if the client answers with an error, and
        CancelledError if the session ends first.
        """
        self._request_id += 1
        request_id = self._request_id

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self.send(Request(id=request_id, method=method, params=params))
            return await future
        finally:
            self._pending.pop(request_id, None)

    # --- inbound ---

    def resolve(self, response: Response) -> bool:
        """Deliver a client response to the request waiting for it."""
        future = self._pending.pop(response.id, None)
        if future is None or future.done():
            self._logger.warning(f"Response for unknown request id {response.id!r} ignored")
            return False
        if response.error is not None:
            future.set_exception(response.error)
        else:
            future.set_result(response.result)
        return True

    def dispatch_request(self, request: Request) -> asyncio.Task:
        task = self._spawn(self._run_request(request))
        self._running[request.id] = task
        task.add_done_callback(lambda t: self._request_done(request.id, t))
        return task

    def dispatch_notification(self, notification: Notification) -> asyncio.Task | None:
        handler = self._notification_handlers.get(notification.method)
        if handler is None:
            self._logger.info(f"Ignoring unhandled notification: {notification.method}")
            return None
        return self._spawn(self._run_notification(handler, notification))

    def cancel(self, request_id: RequestId) -> bool:
        """Cancel the handler of an in-flight request."""
        task = self._running.get(request_id)
        if task is None or task.done():
            self._logger.debug(f"Cancel for request {request_id!r} ignored: not running")
            return False
        self._cancelled.add(request_id)
        task.cancel()
        self._logger.info(f"Cancelling request {request_id!r}")
        return True

    async def settle(self, exclude: asyncio.Task | None = None, timeout: float | None = None) -> bool:
        """Wait for in-flight handlers. False if some were still running.

        Tasks spawned while waiting, such as cancellation responses, are
        waited for too.
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            tasks = {t for t in self._tasks if t is not exclude}
            if not tasks:
                return True
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                return False
            _, pending = await asyncio.wait(tasks, timeout=remaining)
            if pending:
                return False

    async def close(self) -> None:
        """Cancel every handler and every outstanding outbound request."""
        self._closing = True
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.wait(set(self._tasks))
        for future in self._pending.values():
            future.cancel()
        self._pending.clear()
        if not self._failure.done():
            self._failure.cancel()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _request_done(self, request_id: RequestId, task: asyncio.Task) -> None:
        if self._running.get(request_id) is task:
            del self._running[request_id]
        if request_id not in self._cancelled:
            return
        self._cancelled.discard(request_id)
        # A handler cancelled before it ever ran still owes the client a response
        if task.cancelled() and not self._closing:
            self._spawn(self._respond_cancelled(request_id))

    async def _respond_cancelled(self, request_id: RequestId) -> None:
        try:
            await self.respond(
                request_id,
                error=ResponseError(LSPErrorCodes.RequestCancelled, "Request cancelled"),
            )
        except TransportWriteError as e:
            self._fail(e)

    def _fail(self, error: TransportWriteError) -> None:
        if not self._failure.done():
            self._logger.error(f"Transport failed: {error}")
            self._failure.set_exception(error)

    async def _run_request(self, request: Request) -> None:
        handler = self._request_handlers.get(request.method)
        try:
            try:
                if handler is None:
                    raise ResponseError(
                        ErrorCodes.MethodNotFound, f"Method not found: {request.method}"
                    )
                result = await handler(request.params)
            except ResponseError as e:
                self._logger.warning(f"Request {request.method} failed: {e.message}")
                await self.respond(request.id, error=e)
            except ValidationError as e:
                self._logger.warning(f"Invalid params for {request.method}: {e}")
                await self.respond(
                    request.id,
                    error=ResponseError(ErrorCodes.InvalidParams, f"Invalid params: {e}"),
                )
            except TransportWriteError:
                raise
            except Exception as e:
                self._logger.exception(f"Request {request.method} raised")
                await self.respond(
                    request.id,
                    error=ResponseError(ErrorCodes.InternalError, f"Internal error: {e}"),
                )
            else:
                await self.respond(request.id, result=result)
        except TransportWriteError as e:
            self._fail(e)

    async def _run_notification(
        self, handler: NotificationHandler, notification: Notification
    ) -> None:
        try:
            await handler(notification.params)
        except TransportWriteError as e:
            self._fail(e)
        except ValidationError as e:
            self._logger.warning(f"Invalid params for {notification.method}: {e}")
        except ResponseError as e:
            self._logger.warning(f"Notification {notification.method} rejected: {e.message}")
        except Exception:
            self._logger.exception(f"Notification {notification.method} raised")

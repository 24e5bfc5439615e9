"""One client connection from the first frame to exit"""

import asyncio
import logging
from contextlib import suppress
from typing import Any

from .. import __version__
from ..analyzer import Analyzer, create_analyzer
from ..config import AnalyzerConfig, Config
from .diagnostics import DiagnosticPublisher
from .documents import DocumentStore
from .lifecycle import (
    CANCEL_REQUEST,
    EXIT,
    INITIALIZE,
    INITIALIZED,
    SHUTDOWN,
    Lifecycle,
)
from .protocol import ErrorCodes, Notification, Request, Response, ResponseError, decode_message
from .router import MessageRouter
from .transport import FramingError, MessageReader, MessageWriter, TransportWriteError
from .types import is_full_change, structure, types, unstructure

SETTINGS_SECTION = "wordguard"


class Session:
    """Serves one client over a pair of streams.

    Must be created inside a running event loop. ``run()`` returns the exit
    status the process should end with.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        config: Config | None = None,
        analyzer: Analyzer | None = None,
        logger: logging.Logger | None = None,
    ):
        self.config = config or Config()
        self.analyzer_config = self.config.analyzer
        self._logger = logger or logging.getLogger(__name__)

        self._reader = MessageReader(reader)
        self.router = MessageRouter(MessageWriter(writer), self._logger.getChild("router"))
        self.lifecycle = Lifecycle(
            auto_activate=self.config.server.auto_activate,
            logger=self._logger.getChild("lifecycle"),
        )
        self.publisher = DiagnosticPublisher(
            analyzer or create_analyzer(self.analyzer_config),
            self.router.notify,
            self._logger.getChild("diagnostics"),
        )
        self.documents = DocumentStore(
            on_update=self.publisher.publish,
            on_close=self.publisher.clear,
            logger=self._logger.getChild("documents"),
        )
        self._broken = False
        self._initialize_ok = False
        self._register()

    def _register(self) -> None:
        router = self.router
        router.on_request(INITIALIZE, self.initialize)
        router.on_request(SHUTDOWN, self.shutdown)
        router.on_notification(INITIALIZED, self.initialized)
        router.on_notification(types.TEXT_DOCUMENT_DID_OPEN, self.did_open)
        router.on_notification(types.TEXT_DOCUMENT_DID_CHANGE, self.did_change)
        router.on_notification(types.TEXT_DOCUMENT_DID_SAVE, self.did_save)
        router.on_notification(types.TEXT_DOCUMENT_DID_CLOSE, self.did_close)
        router.on_notification(
            types.WORKSPACE_DID_CHANGE_CONFIGURATION, self.did_change_configuration
        )

    async def send_request(self, method: str, params: Any = None) -> Any:
        return await self.router.send_request(method, params)

    # --- reader loop ---

    async def run(self) -> int:
        self._logger.info("Session started")
        try:
            await self._serve()
        except FramingError as e:
            self._logger.error(f"Framing error, closing connection: {e}")
            self._broken = True
        except TransportWriteError as e:
            self._logger.error(f"Client unreachable, closing connection: {e}")
            self._broken = True
        finally:
            await self._finish()

        code = 1 if self._broken else self.lifecycle.exit_code
        self._logger.info(f"Session ended with exit status {code}")
        return code

    async def _serve(self) -> None:
        while not self.lifecycle.exited:
            payload = await self._next_frame()
            if payload is None:
                self._logger.info("Client closed the stream")
                return
            await self._receive(payload)

    async def _next_frame(self) -> bytes | None:
        read = asyncio.ensure_future(self._reader.read_message())
        failure = self.router.failure
        done, _ = await asyncio.wait({read, failure}, return_when=asyncio.FIRST_COMPLETED)
        if failure in done:
            read.cancel()
            with suppress(asyncio.CancelledError):
                await read
            failure.result()
        return read.result()

    async def _receive(self, payload: bytes) -> None:
        try:
            message = decode_message(payload)
        except ResponseError as e:
            self._logger.warning(f"Undecodable message: {e.message}")
            await self.router.respond(None, error=e)
            return

        if isinstance(message, Response):
            self.router.resolve(message)
        elif isinstance(message, Request):
            await self._receive_request(message)
        else:
            self._receive_notification(message)

    async def _receive_request(self, request: Request) -> None:
        try:
            self.lifecycle.admit_request(request.method)
        except ResponseError as e:
            self._logger.warning(f"Rejected request {request.method}: {e.message}")
            await self.router.respond(request.id, error=e)
            return

        task = self.router.dispatch_request(request)
        if request.method == INITIALIZE:
            task.add_done_callback(self._initialize_done)

    def _initialize_done(self, task: asyncio.Task) -> None:
        if self._initialize_ok:
            self.lifecycle.initialize_answered()
        else:
            self.lifecycle.initialize_failed()

    def _receive_notification(self, notification: Notification) -> None:
        if not self.lifecycle.admit_notification(notification.method):
            return
        if notification.method == EXIT:
            self._logger.info("Exit requested")
        elif notification.method == CANCEL_REQUEST:
            try:
                params = structure(notification.params, types.CancelParams)
            except ResponseError as e:
                self._logger.warning(e.message)
                return
            self.router.cancel(params.id)
        else:
            self.router.dispatch_notification(notification)

    async def _finish(self) -> None:
        if not self._broken:
            settled = await self.router.settle(timeout=self.config.server.exit_grace_period)
            if not settled:
                self._logger.warning("Cancelling handlers still running at session end")
        failure = self.router.failure
        if failure.done() and not failure.cancelled() and failure.exception():
            self._broken = True
        await self.router.close()

    # --- lifecycle handlers ---

    async def initialize(self, params: Any) -> dict:
        init = structure(params, types.InitializeParams)
        client = init.client_info.name if init.client_info else "unknown client"
        self._logger.info(f"Initializing for {client} (pid {init.process_id})")
        capabilities = types.ServerCapabilities(
            text_document_sync=types.TextDocumentSyncKind.Full,
            experimental={"diagnosticProvider": "push"},
        )
        self._initialize_ok = True
        return {
            "capabilities": unstructure(capabilities),
            "serverInfo": {"name": "wordguard", "version": __version__},
        }

    async def initialized(self, params: Any) -> None:
        self._logger.info("Client acknowledged initialization")

    async def shutdown(self, params: Any) -> None:
        self._logger.info("Shutdown requested, settling in-flight work")
        await self.router.settle(exclude=asyncio.current_task())
        return None

    # --- text document handlers ---

    async def did_open(self, params: Any) -> None:
        doc = structure(params, types.DidOpenTextDocumentParams).text_document
        await self.documents.open(doc.uri, doc.text, doc.version, doc.language_id)

    async def did_change(self, params: Any) -> None:
        change = structure(params, types.DidChangeTextDocumentParams)
        uri = change.text_document.uri
        if not change.content_changes:
            self._logger.warning(f"Change without content for {uri} ignored")
            return
        if not all(is_full_change(c) for c in change.content_changes):
            raise ResponseError(
                ErrorCodes.InvalidParams,
                f"Incremental change for {uri}; only full document sync is supported",
            )
        await self.documents.change(
            uri, change.content_changes[-1].text, change.text_document.version
        )

    async def did_save(self, params: Any) -> None:
        save = structure(params, types.DidSaveTextDocumentParams)
        await self.documents.save(save.text_document.uri)

    async def did_close(self, params: Any) -> None:
        close = structure(params, types.DidCloseTextDocumentParams)
        await self.documents.close(close.text_document.uri)

    # --- workspace handlers ---

    async def did_change_configuration(self, params: Any) -> None:
        settings = structure(params, types.DidChangeConfigurationParams).settings
        if not isinstance(settings, dict) or not isinstance(settings.get(SETTINGS_SECTION), dict):
            self._logger.info("Configuration change without wordguard settings ignored")
            return

        merged = {**self.analyzer_config.model_dump(), **settings[SETTINGS_SECTION]}
        self.analyzer_config = AnalyzerConfig.model_validate(merged)
        self.publisher.analyzer = create_analyzer(self.analyzer_config)
        self._logger.info(f"Analyzer reconfigured: {self.analyzer_config.kind}, "
                          f"{len(self.analyzer_config.words)} word(s)")
        await asyncio.gather(*(self._republish(uri) for uri in self.documents.uris()))

    async def _republish(self, uri: str) -> None:
        async with self.documents.ordered(uri):
            document = self.documents.get(uri)
            if document is not None:
                await self.publisher.publish(document)

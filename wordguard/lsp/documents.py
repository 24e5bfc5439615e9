"""Open document state kept in sync with the client"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional

DocumentListener = Callable[["TextDocument"], Awaitable[Any]]
CloseListener = Callable[[str], Awaitable[Any]]


@dataclass(frozen=True)
class TextDocument:
    uri: str
    text: str
    version: int
    language_id: str = "plaintext"


class DocumentStore:
    """Full-text documents keyed by uri.

    Events for one uri are applied strictly in the order they were
    submitted; events for different uris do not wait on each other.
    ``on_update`` runs after every successful open or change while the
    document's ordering lock is still held.
    """

    def __init__(
        self,
        on_update: Optional[DocumentListener] = None,
        on_close: Optional[CloseListener] = None,
        logger: logging.Logger | None = None,
    ):
        self._documents: dict[str, TextDocument] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._on_update = on_update
        self._on_close = on_close
        self._logger = logger or logging.getLogger(__name__)

    def __contains__(self, uri: str) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def get(self, uri: str) -> TextDocument | None:
        return self._documents.get(uri)

    def uris(self) -> list[str]:
        return list(self._documents)

    @asynccontextmanager
    async def ordered(self, uri: str):
        """Hold the ordering lock for a uri.

        asyncio.Lock wakes waiters first in, first out, so callers that
        enter in arrival order are served in arrival order.
        """
        lock = self._locks.setdefault(uri, asyncio.Lock())
        self._lock_users[uri] = self._lock_users.get(uri, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[uri] -= 1
            if not self._lock_users[uri]:
                del self._lock_users[uri]
                del self._locks[uri]

    async def open(
        self,
        uri: str,
        text: str,
        version: int,
        language_id: str = "plaintext",
    ) -> TextDocument:
        async with self.ordered(uri):
            if uri in self._documents:
                self._logger.warning(f"Document reopened without close: {uri}")
            document = TextDocument(uri=uri, text=text, version=version, language_id=language_id)
            self._documents[uri] = document
            self._logger.info(f"Document opened: {uri} (version {version})")
            await self._updated(document)
            return document

    async def change(self, uri: str, text: str, version: int) -> TextDocument | None:
        async with self.ordered(uri):
            current = self._documents.get(uri)
            if current is None:
                self._logger.warning(f"Change for unknown document ignored: {uri}")
                return None
            if version <= current.version:
                self._logger.warning(
                    f"Stale change for {uri} dropped: version {version} "
                    f"is not newer than {current.version}"
                )
                return None
            document = replace(current, text=text, version=version)
            self._documents[uri] = document
            self._logger.info(f"Document changed: {uri} (version {version})")
            await self._updated(document)
            return document

    async def save(self, uri: str) -> TextDocument | None:
        async with self.ordered(uri):
            document = self._documents.get(uri)
            if document is None:
                self._logger.warning(f"Save for unknown document ignored: {uri}")
                return None
            self._logger.info(f"Document saved: {uri}")
            return document

    async def close(self, uri: str) -> bool:
        async with self.ordered(uri):
            if self._documents.pop(uri, None) is None:
                self._logger.warning(f"Close for unknown document ignored: {uri}")
                return False
            self._logger.info(f"Document closed: {uri}")
            if self._on_close:
                await self._on_close(uri)
            return True

    async def _updated(self, document: TextDocument) -> None:
        if self._on_update:
            await self._on_update(document)

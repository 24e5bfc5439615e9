"""Diagnostics and their publication to the client"""

import asyncio
import logging
from typing import Awaitable, Callable

from lsprotocol.types import (
    TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS,
    Diagnostic,
    DiagnosticSeverity,
    PublishDiagnosticsParams,
)

from ..analyzer import Analyzer, AnalyzerError, Finding
from .documents import TextDocument
from .positions import PositionError, PositionMapper
from .types import unstructure

Notify = Callable[[str, dict], Awaitable[None]]


def to_diagnostics(
    findings: list[Finding], mapper: PositionMapper, source: str
) -> list[Diagnostic]:
    """Place findings in the text the mapper was built over"""
    return [
        Diagnostic(
            range=mapper.range(f.start, f.end),
            severity=DiagnosticSeverity(f.severity),
            message=f.message,
            source=source,
            code=f.code,
        )
        for f in findings
    ]


def diagnose(analyzer: Analyzer, text: str) -> list[Diagnostic]:
    """Run the analyzer over the text. Raises AnalyzerError."""
    try:
        findings = analyzer.scan(text)
    except Exception as e:
        raise AnalyzerError(f"{type(analyzer).__name__} failed: {e}") from e
    try:
        return to_diagnostics(findings, PositionMapper(text), analyzer.source)
    except (PositionError, ValueError, TypeError, AttributeError) as e:
        raise AnalyzerError(
            f"{type(analyzer).__name__} returned an unusable finding: {e}"
        ) from e


class DiagnosticPublisher:
    """Scans document text and pushes the complete finding set.

    Every publish replaces whatever the client showed before for the uri,
    so an empty list is sent when nothing is found.
    """

    def __init__(
        self,
        analyzer: Analyzer,
        notify: Notify,
        logger: logging.Logger | None = None,
    ):
        self.analyzer = analyzer
        self._notify = notify
        self._logger = logger or logging.getLogger(__name__)

    async def publish(self, document: TextDocument) -> bool:
        """Publish diagnostics for the document. False if the scan failed."""
        try:
            diagnostics = await asyncio.to_thread(diagnose, self.analyzer, document.text)
        except AnalyzerError as e:
            self._logger.error(f"Skipping diagnostics for {document.uri}: {e}")
            return False

        await self.send(document.uri, diagnostics, document.version)
        self._logger.info(
            f"Published {len(diagnostics)} diagnostic(s) for {document.uri}"
        )
        return True

    async def send(
        self,
        uri: str,
        diagnostics: list[Diagnostic],
        version: int | None = None,
    ) -> None:
        params = PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics, version=version)
        await self._notify(TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS, unstructure(params))

    async def clear(self, uri: str) -> None:
        await self.send(uri, [])

"""Analyzer plugin interface"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from lsprotocol.types import DiagnosticSeverity

SEVERITIES = {
    "error": DiagnosticSeverity.Error,
    "warning": DiagnosticSeverity.Warning,
    "information": DiagnosticSeverity.Information,
    "hint": DiagnosticSeverity.Hint,
}


@dataclass(frozen=True)
class Finding:
    """A span of text an analyzer wants reported.

    ``start`` and ``end`` are string indices into the scanned text,
    ``end`` exclusive.
    """
    start: int
    end: int
    severity: DiagnosticSeverity
    message: str
    code: str | None = None


class AnalyzerError(Exception):
    """An analyzer failed to produce usable findings for a text"""


class Analyzer(ABC):
    """Base class for analyzers.

    Implementations must be pure: the same text always yields the same
    findings, and no state is carried between calls.
    """

    source: str = "wordguard"

    @abstractmethod
    def scan(self, text: str) -> list[Finding]:
        """Return every finding for the complete text"""
        pass

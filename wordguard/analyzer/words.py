"""Word list analyzers"""

import re
from abc import abstractmethod

from lsprotocol.types import DiagnosticSeverity

from ..config.schema import AnalyzerConfig
from .base import SEVERITIES, Analyzer, Finding


class _WordListAnalyzer(Analyzer):
    def __init__(
        self,
        words: list[str],
        severity: DiagnosticSeverity = DiagnosticSeverity.Warning,
        source: str = "wordguard",
        code: str | None = "faulty-word",
        message: str = "{word}",
        case_sensitive: bool = False,
    ):
        self.words = list(words)
        self.severity = severity
        self.source = source
        self.code = code
        self.message = message
        self.case_sensitive = case_sensitive
        flags = 0 if case_sensitive else re.IGNORECASE
        # Lookahead patterns report every candidate start, overlapping or not
        self._patterns = [
            (word, re.compile(f"(?=({re.escape(word)}))", flags))
            for word in self.words
        ]

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "_WordListAnalyzer":
        return cls(
            words=config.words,
            severity=SEVERITIES[config.severity],
            source=config.source,
            code=config.code,
            message=config.message,
            case_sensitive=config.case_sensitive,
        )

    def _finding(self, word: str, start: int, end: int) -> Finding:
        return Finding(
            start=start,
            end=end,
            severity=self.severity,
            message=self.message.format(word=word),
            code=self.code,
        )

    def _candidates(self, text: str):
        for word, pattern in self._patterns:
            for match in pattern.finditer(text):
                yield word, match.start(1), match.end(1)

    def scan(self, text: str) -> list[Finding]:
        findings = [
            self._finding(word, start, end)
            for word, start, end in self._matches(text)
        ]
        findings.sort(key=lambda f: (f.start, f.end))
        return findings

    @abstractmethod
    def _matches(self, text: str):
        """Yield (word, start, end) for each span to report"""
        pass


class WordAnalyzer(_WordListAnalyzer):
    """Flags whole-word occurrences.

    A candidate counts only when neither neighbour is a letter or digit, so
    ``badword1`` is found in ``"a badword1."`` but not in ``"xbadword1"``.
    After a match the search resumes at its end.
    """

    def _matches(self, text: str):
        resume: dict[str, int] = {}
        for word, start, end in self._candidates(text):
            if start < resume.get(word, 0):
                continue
            if start > 0 and text[start - 1].isalnum():
                continue
            if end < len(text) and text[end].isalnum():
                continue
            resume[word] = end
            yield word, start, end


class SubstringAnalyzer(_WordListAnalyzer):
    """Flags every occurrence, including ones inside other words"""

    def _matches(self, text: str):
        return self._candidates(text)

"""Analyzers producing findings for document text"""

from ..config.schema import AnalyzerConfig
from .base import SEVERITIES, Analyzer, AnalyzerError, Finding
from .words import WordAnalyzer, SubstringAnalyzer

ANALYZERS: dict[str, type] = {
    "word": WordAnalyzer,
    "substring": SubstringAnalyzer,
}


def create_analyzer(config: AnalyzerConfig) -> Analyzer:
    """Build the analyzer described by the config"""
    try:
        analyzer_cls = ANALYZERS[config.kind]
    except KeyError:
        raise ValueError(
            f"Unknown analyzer: {config.kind}. Supported: {', '.join(ANALYZERS)}"
        ) from None
    return analyzer_cls.from_config(config)


__all__ = [
    "Analyzer",
    "AnalyzerError",
    "Finding",
    "SEVERITIES",
    "WordAnalyzer",
    "SubstringAnalyzer",
    "ANALYZERS",
    "create_analyzer",
]

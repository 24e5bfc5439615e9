"""Configuration schemas using Pydantic"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class AnalyzerConfig(BaseModel):
    """Which words to flag and how findings are reported"""
    kind: Literal["word", "substring"] = "word"
    words: list[str] = Field(default_factory=lambda: ["badword1", "badword2"])
    case_sensitive: bool = False
    severity: Literal["error", "warning", "information", "hint"] = "warning"
    source: str = "wordguard"
    code: str | None = "faulty-word"
    message: str = "{word}"

    @field_validator("words")
    @classmethod
    def _check_words(cls, words: list[str]) -> list[str]:
        for word in words:
            if not word:
                raise ValueError("words must not be empty strings")
            if "\n" in word or "\r" in word:
                raise ValueError(f"word {word!r} contains a line break")
        return words

    @field_validator("message")
    @classmethod
    def _check_message(cls, message: str) -> str:
        try:
            message.format(word="word")
        except (KeyError, IndexError, AttributeError, ValueError) as e:
            raise ValueError(f"message template {message!r} is unusable: {e!r}") from e
        return message


class LoggingConfig(BaseModel):
    """Logging configuration"""
    file: Path | None = None
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


class ServerConfig(BaseModel):
    """Session behaviour"""
    auto_activate: bool = False
    exit_grace_period: float = Field(default=2.0, ge=0)

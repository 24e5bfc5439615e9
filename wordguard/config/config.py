"""Configuration management"""

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from .schema import AnalyzerConfig, LoggingConfig, ServerConfig

CONFIG_NAME = "wordguard.json"


class ConfigError(Exception):
    """Raised when a configuration file cannot be used"""


class Config(BaseModel):
    analyzer: AnalyzerConfig = Field(default_factory=AnalyzerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def candidates(cls) -> list[Path]:
        return [
            Path.cwd() / CONFIG_NAME,
            Path.home() / ".config" / "wordguard" / "config.json",
        ]

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from file"""
        if path is None:
            for p in cls.candidates():
                if p.exists():
                    path = p
                    break
        elif not path.exists():
            raise ConfigError(f"Config file not found: {path}")

        if path is None:
            return cls()

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return cls.model_validate(data)
        except json.JSONDecodeError as e:
            raise ConfigError(f"{path}: invalid JSON: {e}") from e
        except ValidationError as e:
            raise ConfigError(f"{path}: {e}") from e

    def save(self, path: Path):
        """Save config to file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2))

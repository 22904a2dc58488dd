"""
Configuration loading.

Merge order (later overrides earlier):
1. Dataclass defaults
2. .env file (python-dotenv)
3. Environment variables (TESSERA_* prefix)
4. Explicit overrides
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, asdict, fields
from pathlib import Path
import json
import logging
import os

from dotenv import dotenv_values

from .faults.domains import ConfigInvalidFault


logger = logging.getLogger("tessera.config")


@dataclass
class TesseraConfig:
    """Application configuration."""
    debug: bool = False
    autowire: bool = False
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000
    env: str = "dev"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConfigLoader:
    """
    Loads TesseraConfig from .env, the environment and overrides.

    Keys are matched case-insensitively after stripping the prefix:
    TESSERA_DEBUG=true sets `debug`.
    """

    def __init__(self, env_prefix: str = "TESSERA_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "TESSERA_",
        env_file: Optional[str] = ".env",
        overrides: Optional[Dict[str, Any]] = None,
    ) -> TesseraConfig:
        """
        Build a TesseraConfig.

        Raises:
            ConfigInvalidFault: A value cannot be converted to its field type
        """
        loader = cls(env_prefix=env_prefix)

        if env_file and Path(env_file).exists():
            loader._merge_prefixed(dotenv_values(env_file))
            logger.debug("Loaded %s", env_file)

        loader._merge_prefixed(os.environ)

        if overrides:
            loader.config_data.update(overrides)

        return loader.build()

    def _merge_prefixed(self, source) -> None:
        for key, value in source.items():
            if value is None or not key.startswith(self.env_prefix):
                continue
            name = key[len(self.env_prefix):].lower()
            self.config_data[name] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        lowered = value.lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def build(self) -> TesseraConfig:
        kwargs: Dict[str, Any] = {}
        for field_info in fields(TesseraConfig):
            if field_info.name not in self.config_data:
                continue
            kwargs[field_info.name] = self._coerce(field_info.name, field_info.type, self.config_data[field_info.name])

        unknown = set(self.config_data) - {f.name for f in fields(TesseraConfig)}
        if unknown:
            logger.debug("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))

        return TesseraConfig(**kwargs)

    @staticmethod
    def _coerce(name: str, expected: Any, value: Any) -> Any:
        if expected in (bool, "bool"):
            if isinstance(value, bool):
                return value
            if value in (0, 1):
                return bool(value)
            raise ConfigInvalidFault(name, f"expected a boolean, got {value!r}")
        if expected in (int, "int"):
            if isinstance(value, bool):
                raise ConfigInvalidFault(name, f"expected an integer, got {value!r}")
            try:
                return int(value)
            except (TypeError, ValueError):
                raise ConfigInvalidFault(name, f"expected an integer, got {value!r}") from None
        if expected in (str, "str"):
            return str(value)
        return value


def configure_logging(level: str = "INFO") -> None:
    """Install a stream handler on the `tessera` logger."""
    tessera_logger = logging.getLogger("tessera")
    tessera_logger.setLevel(level.upper())
    if not tessera_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        tessera_logger.addHandler(handler)

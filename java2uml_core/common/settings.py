from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "JAVA2UML_"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class ServiceSettings:
    """
    Service settings, loaded from ``JAVA2UML_*`` environment variables.

    Attributes
    ----------
    upload_root :
        Directory under which every project gets its own extraction folder.
    max_entries :
        Maximum number of archive members accepted per upload.
    max_uncompressed_bytes :
        Maximum number of bytes written while extracting one upload.
    chunk_size :
        Buffer size used when streaming entry payloads to disk.
    log_level :
        Root logging level for the service.
    """
    upload_root: str = ""
    max_entries: int = 10_000
    max_uncompressed_bytes: int = 512 * 1024 * 1024
    chunk_size: int = 64 * 1024
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        return cls(
            upload_root=os.getenv(f"{ENV_PREFIX}UPLOAD_ROOT", ""),
            max_entries=_get_env_int("MAX_ENTRIES", default=10_000, minimum=1),
            max_uncompressed_bytes=_get_env_int(
                "MAX_UNCOMPRESSED_BYTES", default=512 * 1024 * 1024, minimum=1
            ),
            chunk_size=_get_env_int("CHUNK_SIZE", default=64 * 1024, minimum=512),
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
        ).normalized()

    @property
    def upload_root_path(self) -> Path:
        """Upload root as a Path, defaulting to ``<tmp>/java2uml``."""
        if self.upload_root:
            return Path(self.upload_root)
        return Path(tempfile.gettempdir()) / "java2uml"

    def normalized(self) -> "ServiceSettings":
        """Validate fields. Raises ValueError on invalid configuration."""
        log_level = self.log_level.strip().upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(
                f"{ENV_PREFIX}LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}, got: {self.log_level!r}"
            )
        if self.max_entries < 1:
            raise ValueError(f"{ENV_PREFIX}MAX_ENTRIES must be >= 1, got: {self.max_entries}")
        if self.max_uncompressed_bytes < 1:
            raise ValueError(
                f"{ENV_PREFIX}MAX_UNCOMPRESSED_BYTES must be >= 1, got: {self.max_uncompressed_bytes}"
            )
        if self.chunk_size < 1:
            raise ValueError(f"{ENV_PREFIX}CHUNK_SIZE must be >= 1, got: {self.chunk_size}")
        return ServiceSettings(
            upload_root=self.upload_root.strip(),
            max_entries=self.max_entries,
            max_uncompressed_bytes=self.max_uncompressed_bytes,
            chunk_size=self.chunk_size,
            log_level=log_level,
        )


def configure_logging(level: str = "INFO") -> None:
    """Attach a plain stream handler to the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


def _get_env_int(name: str, default: int, minimum: int, maximum: int = 2**40) -> int:
    """
    Parse a bounded integer from ``JAVA2UML_<name>``.

    Raises
    ------
    ValueError
        If the value is not an integer or falls outside [minimum, maximum].
    """
    key = f"{ENV_PREFIX}{name}"
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got: {raw!r}") from exc
    if parsed < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got: {parsed}")
    if parsed > maximum:
        raise ValueError(f"{key} must be <= {maximum}, got: {parsed}")
    return parsed

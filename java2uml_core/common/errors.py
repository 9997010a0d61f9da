"""
Exceptions raised by the java2uml core and service.

Extraction and parsing errors are caught by the ingestion pipeline and
recorded on the project; retrieval errors propagate to the HTTP layer,
which maps them to status codes.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class Java2UMLError(Exception):
    """Base exception for all java2uml errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ----------------------------------------------------------------------
# Extraction
# ----------------------------------------------------------------------

class ExtractionError(Java2UMLError):
    """Base exception for archive extraction failures."""


class PathTraversalError(ExtractionError):
    """An archive entry would be written outside the destination root."""

    def __init__(self, entry_name: str) -> None:
        super().__init__(
            f"Entry is outside of the target dir: {entry_name}",
            {"entry": entry_name},
        )
        self.entry_name = entry_name


class IOFailure(ExtractionError):
    """Directory/file creation or write failed, or the archive is unreadable."""


class ArchiveLimitError(ExtractionError):
    """The archive exceeds the configured entry count or uncompressed size."""

    def __init__(self, what: str, limit: int) -> None:
        super().__init__(
            f"Archive exceeds the {what} limit of {limit}",
            {"limit": what, "value": limit},
        )


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------

class ParsingFailure(Java2UMLError):
    """The parsing service rejected or could not process the extracted tree."""


class UnknownHandle(KeyError):
    """The parsing service holds no parsed project under this handle."""


# ----------------------------------------------------------------------
# Retrieval
# ----------------------------------------------------------------------

class ProjectNotFound(Java2UMLError):
    """No project exists under the requested identifier."""

    def __init__(self, project_id: int) -> None:
        super().__init__(
            f"ProjectInfo not found with id: {project_id}",
            {"project_id": project_id},
        )
        self.project_id = project_id


class ParsedComponentNotFound(Java2UMLError):
    """The project exists but its parsed representation does not."""

    def __init__(self, project_id: int) -> None:
        super().__init__(
            "Unable to find requested ParsedComponent.",
            {"project_id": project_id},
        )
        self.project_id = project_id


class StateTransitionError(Java2UMLError):
    """A lifecycle transition was requested that the state machine forbids."""

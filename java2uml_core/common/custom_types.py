from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from java2uml_core.common.errors import StateTransitionError

#------------ Project lifecycle ------------

class ProjectState(str, Enum):
    """Lifecycle state of an uploaded project."""
    UPLOADED = "UPLOADED"
    EXTRACTED = "EXTRACTED"
    PARSED = "PARSED"
    ARTIFACTS_READY = "ARTIFACTS_READY"
    FAILED = "FAILED"
    DELETED = "DELETED"


ALLOWED_TRANSITIONS: Dict[ProjectState, FrozenSet[ProjectState]] = {
    ProjectState.UPLOADED: frozenset({ProjectState.EXTRACTED, ProjectState.FAILED, ProjectState.DELETED}),
    ProjectState.EXTRACTED: frozenset({ProjectState.PARSED, ProjectState.FAILED, ProjectState.DELETED}),
    ProjectState.PARSED: frozenset({ProjectState.ARTIFACTS_READY, ProjectState.FAILED, ProjectState.DELETED}),
    ProjectState.ARTIFACTS_READY: frozenset({ProjectState.DELETED}),
    ProjectState.FAILED: frozenset({ProjectState.DELETED}),
    ProjectState.DELETED: frozenset(),
}

# States in which the extracted tree is on disk and tracked by the record
HAS_EXTRACTED_TREE = frozenset({
    ProjectState.EXTRACTED,
    ProjectState.PARSED,
    ProjectState.ARTIFACTS_READY,
})

# States in which a parsed handle may have been recorded
MAY_HOLD_HANDLE = frozenset({ProjectState.PARSED, ProjectState.ARTIFACTS_READY})


@dataclass(frozen=True)
class ProjectRecord:
    """
    Snapshot of one uploaded project.

    Records are immutable; every lifecycle step produces a new record
    through :meth:`advance`, and the store swaps it in atomically.

    Attributes
    ----------
    id :
        Identifier assigned by the store at creation.
    state :
        Current lifecycle state.
    filename :
        Name of the uploaded archive, as given by the client.
    extracted_path :
        Root of the extracted tree. Set only while the tree is live.
    parsed_handle :
        Back-reference to the parsing service's handle. The parsing
        service may drop its side at any time, so this is never
        trusted without re-checking it.
    failure :
        Human-readable cause, recorded when the project fails.
    """
    id: int
    state: ProjectState = ProjectState.UPLOADED
    filename: str = ""
    extracted_path: Optional[Path] = None
    parsed_handle: Optional[str] = None
    failure: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def check_invariants(self) -> None:
        """
        Raise StateTransitionError if path/handle presence disagrees with state.
        """
        has_path = self.extracted_path is not None
        if has_path != (self.state in HAS_EXTRACTED_TREE):
            raise StateTransitionError(
                f"Project {self.id} in state {self.state.value} "
                f"{'must not' if has_path else 'must'} carry an extracted path",
                {"project_id": self.id, "state": self.state.value},
            )
        if self.parsed_handle is not None and self.state not in MAY_HOLD_HANDLE:
            raise StateTransitionError(
                f"Project {self.id} in state {self.state.value} must not carry a parsed handle",
                {"project_id": self.id, "state": self.state.value},
            )

    def advance(self, state: ProjectState, **changes) -> "ProjectRecord":
        """
        Return a copy moved to ``state`` with ``changes`` applied.

        Raises
        ------
        StateTransitionError
            If the transition is not allowed from the current state or
            the resulting record breaks the path/handle invariants.
        """
        if state not in ALLOWED_TRANSITIONS[self.state]:
            raise StateTransitionError(
                f"Illegal transition {self.state.value} -> {state.value} for project {self.id}",
                {"project_id": self.id, "from": self.state.value, "to": state.value},
            )
        record = replace(self, state=state, updated_at=time.time(), **changes)
        record.check_invariants()
        return record

#------------ Extraction-time entries ------------

@dataclass(frozen=True)
class ArchiveEntry:
    """One archive member while it is being processed. Never persisted."""
    name_as_stored: str     # raw, attacker-controlled
    is_directory: bool
    payload_length: int     # declared in the archive header, not trusted

#------------ Generated artifacts ------------

PLANTUML_MEDIA_TYPE = "text/plain"
SVG_MEDIA_TYPE = "image/svg+xml"


@dataclass(frozen=True)
class Artifact:
    """A generated output ready to be returned to a client."""
    content: bytes
    media_type: str
    filename: str

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

from __future__ import annotations

import asyncio
import itertools
import logging
import shutil
import threading
import uuid
from contextlib import suppress
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from java2uml_core.archive.extractor import ArchiveSource, ExtractionLimits, extract
from java2uml_core.common.custom_types import (
    PLANTUML_MEDIA_TYPE,
    SVG_MEDIA_TYPE,
    Artifact,
    ProjectRecord,
    ProjectState,
)
from java2uml_core.common.errors import (
    ExtractionError,
    ParsedComponentNotFound,
    ParsingFailure,
    ProjectNotFound,
    UnknownHandle,
)
from java2uml_core.common.settings import ServiceSettings
from java2uml_core.parsing.service import ParsingService

logger = logging.getLogger(__name__)


class ProjectStore:
    """
    Authoritative registry of project records.

    Records are immutable snapshots; every method that changes a project
    swaps in a new record under the store lock, so each lifecycle step is
    a single atomic update. The lock is never held while extracting,
    parsing or touching the filesystem.

    The store is in-memory and thread-safe: it is read from request
    handlers running in the threadpool and written from both the event loop
    and ingestion jobs in the executor.
    """

    def __init__(self) -> None:
        self._records: Dict[int, ProjectRecord] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    # --------------------------------------------------------
    # Queries
    # --------------------------------------------------------

    def get(self, project_id: int) -> Optional[ProjectRecord]:
        with self._lock:
            return self._records.get(project_id)

    def require(self, project_id: int) -> ProjectRecord:
        record = self.get(project_id)
        if record is None:
            raise ProjectNotFound(project_id)
        return record

    def all(self) -> List[ProjectRecord]:
        with self._lock:
            return [self._records[key] for key in sorted(self._records)]

    # --------------------------------------------------------
    # Transitions
    # --------------------------------------------------------

    def create(self, filename: str = "") -> ProjectRecord:
        with self._lock:
            record = ProjectRecord(id=next(self._ids), filename=filename)
            self._records[record.id] = record
        logger.info("Project %d created for %r", record.id, filename)
        return record

    def transition_if(
        self,
        project_id: int,
        expected: ProjectState,
        state: ProjectState,
        **changes,
    ) -> Optional[ProjectRecord]:
        """
        Move a project from ``expected`` to ``state``, applying ``changes``.

        Returns None, leaving the record untouched, if the project is no
        longer in ``expected`` (typically because it was deleted or
        abandoned while a blocking step was running).

        Raises
        ------
        ProjectNotFound
            If the project does not exist.
        StateTransitionError
            If the state machine forbids the move.
        """
        with self._lock:
            current = self._records.get(project_id)
            if current is None:
                raise ProjectNotFound(project_id)
            if current.state is not expected:
                return None
            record = current.advance(state, **changes)
            self._records[project_id] = record
        logger.info("Project %d: %s -> %s", project_id, expected.value, state.value)
        return record

    def mark_deleted(self, project_id: int) -> Tuple[ProjectRecord, ProjectRecord]:
        """
        Move a project to DELETED, clearing its path and handle.

        Returns
        -------
        tuple of ProjectRecord
            The record before and after. Both are the same object when
            the project was already deleted.
        """
        with self._lock:
            current = self._records.get(project_id)
            if current is None:
                raise ProjectNotFound(project_id)
            if current.state is ProjectState.DELETED:
                return current, current
            record = current.advance(ProjectState.DELETED, extracted_path=None, parsed_handle=None)
            self._records[project_id] = record
        logger.info("Project %d: %s -> DELETED", project_id, current.state.value)
        return current, record


class IngestionPipeline:
    """
    Drives one uploaded archive from UPLOADED to PARSED.

    Each upload is handled by the coroutine of the request that carried
    it. Extraction, parsing and the state updates that follow them run
    together in one executor job; the coroutine only waits for it.

    Extraction and parsing failures never escape :meth:`ingest`: they
    move the project to FAILED, record the cause on it and remove the
    partial tree. Any other exception also fails the project but is
    re-raised.

    Every step commits with a compare-and-set, so a project that was
    deleted or abandoned while a step was running is left alone, and
    the step discards whatever it produced.
    """

    def __init__(
        self,
        *,
        store: ProjectStore,
        parsing: ParsingService,
        settings: ServiceSettings,
    ):
        self.store = store
        self.parsing = parsing
        self.settings = settings
        self.limits = ExtractionLimits(
            max_entries=settings.max_entries,
            max_uncompressed_bytes=settings.max_uncompressed_bytes,
        )

    # --------------------------------------------------------
    # Async ↔ blocking bridge
    # --------------------------------------------------------

    async def _run_blocking(self, fn, *args):
        """Run a blocking extraction / parsing / filesystem call in the executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    # --------------------------------------------------------
    # Entry point
    # --------------------------------------------------------

    def destination_for(self, project_id: int) -> Path:
        """Fresh extraction directory; never shared between projects."""
        return self.settings.upload_root_path / f"{project_id}-{uuid.uuid4().hex}"

    async def ingest(self, archive_source: ArchiveSource, filename: str = "") -> ProjectRecord:
        """
        Extract and parse an uploaded archive.

        If the calling task is cancelled, the project is marked FAILED
        straight away; the executor job keeps running until its current
        step ends, then finds the project gone and removes its output.

        Parameters
        ----------
        archive_source : path or binary stream
            The uploaded zip. Consumed and closed.
        filename : str
            Client-side name of the upload, kept on the record.

        Returns
        -------
        ProjectRecord
            Final record: PARSED on success, FAILED with ``failure`` set
            otherwise, or DELETED if the project was deleted meanwhile.
        """
        record = self.store.create(filename)
        destination = self.destination_for(record.id)

        loop = asyncio.get_running_loop()
        job = loop.run_in_executor(None, self._ingest_blocking, record.id, archive_source, destination)
        try:
            return await asyncio.shield(job)
        except asyncio.CancelledError:
            self._abandon(record.id)
            raise

    def _ingest_blocking(
        self,
        project_id: int,
        archive_source: ArchiveSource,
        destination: Path,
    ) -> ProjectRecord:
        try:
            root = extract(
                archive_source,
                destination,
                limits=self.limits,
                chunk_size=self.settings.chunk_size,
            )
            extracted = self.store.transition_if(
                project_id, ProjectState.UPLOADED, ProjectState.EXTRACTED, extracted_path=root
            )
            if extracted is None:
                return self._discard(project_id, destination)

            handle = self.parsing.parse(root)
            parsed = self.store.transition_if(
                project_id, ProjectState.EXTRACTED, ProjectState.PARSED, parsed_handle=handle
            )
            if parsed is None:
                self.parsing.delete(handle)
                return self._discard(project_id, destination)
            return parsed
        except (ExtractionError, ParsingFailure) as exc:
            return self._fail(project_id, exc, destination)
        except Exception as exc:
            self._fail(project_id, exc, destination)
            raise

    # --------------------------------------------------------
    # Deletion
    # --------------------------------------------------------

    async def delete(self, project_id: int) -> ProjectRecord:
        """
        Delete a project's parsed component and extracted tree.

        The record itself is kept, in state DELETED, so the project stays
        queryable while retrieval reports its parsed component missing.

        Raises
        ------
        ProjectNotFound
            If the project does not exist.
        """
        before, after = self.store.mark_deleted(project_id)
        if before is after:
            return after
        if before.parsed_handle is not None:
            self.parsing.delete(before.parsed_handle)
        if before.extracted_path is not None:
            await self._run_blocking(_remove_tree, before.extracted_path)
        return after

    # --------------------------------------------------------
    # Internals
    # --------------------------------------------------------

    def _fail(self, project_id: int, exc: Exception, tree: Path) -> ProjectRecord:
        cause = f"{type(exc).__name__}: {exc}"
        logger.warning("Ingestion of project %d failed: %s", project_id, cause)
        record = self._mark_failed(project_id, cause)
        _remove_tree(tree)
        return record

    def _discard(self, project_id: int, tree: Path) -> ProjectRecord:
        logger.info("Project %d left ingestion early; discarding %s", project_id, tree)
        _remove_tree(tree)
        return self.store.require(project_id)

    def _abandon(self, project_id: int) -> None:
        """Fail a project whose ingestion was cancelled."""
        record = self._mark_failed(project_id, "Ingestion cancelled")
        logger.warning("Ingestion of project %d cancelled (now %s)", project_id, record.state.value)

    def _mark_failed(self, project_id: int, cause: str) -> ProjectRecord:
        """
        Move an in-flight project to FAILED.

        Projects that already left UPLOADED/EXTRACTED (parsed, deleted or
        failed by another caller) are returned unchanged.
        """
        current = self.store.require(project_id)
        if current.state in (ProjectState.UPLOADED, ProjectState.EXTRACTED):
            failed = self.store.transition_if(
                project_id, current.state, ProjectState.FAILED, extracted_path=None, failure=cause
            )
            if failed is not None:
                return failed
        return self.store.require(project_id)


class ArtifactRetriever:
    """
    Serves diagram artifacts for a project.

    The parsed handle stored on the record is only a back-reference: the
    parsing service may have dropped it, so it is re-checked on every
    request and a handle that vanishes between the check and the fetch
    is reported the same way as a missing one.
    """

    def __init__(self, *, store: ProjectStore, parsing: ParsingService):
        self.store = store
        self.parsing = parsing

    def _resolve(self, project_id: int) -> Tuple[ProjectRecord, str]:
        record = self.store.get(project_id)
        if record is None:
            raise ProjectNotFound(project_id)
        handle = record.parsed_handle
        if handle is None or not self.parsing.contains(handle):
            logger.warning("Project %d has no parsed component (state %s)", project_id, record.state.value)
            raise ParsedComponentNotFound(project_id)
        return record, handle

    def _mark_ready(self, record: ProjectRecord) -> None:
        if record.state is ProjectState.PARSED:
            self.store.transition_if(record.id, ProjectState.PARSED, ProjectState.ARTIFACTS_READY)

    def get_diagram_text(self, project_id: int) -> Artifact:
        """
        PlantUML class diagram for the project.

        Raises
        ------
        ProjectNotFound
            Unknown project.
        ParsedComponentNotFound
            The project exists but has no live parsed component.
        """
        record, handle = self._resolve(project_id)
        try:
            text = self.parsing.get_uml_text(handle)
        except UnknownHandle:
            raise ParsedComponentNotFound(project_id) from None
        self._mark_ready(record)
        return Artifact(
            content=text.encode("utf-8"),
            media_type=PLANTUML_MEDIA_TYPE,
            filename=f"{project_id}.puml",
        )

    def get_diagram_image(self, project_id: int) -> Artifact:
        """SVG rendering of the class diagram. Raises like :meth:`get_diagram_text`."""
        record, handle = self._resolve(project_id)
        try:
            image = self.parsing.get_svg(handle)
        except UnknownHandle:
            raise ParsedComponentNotFound(project_id) from None
        self._mark_ready(record)
        return Artifact(content=image, media_type=SVG_MEDIA_TYPE, filename=f"{project_id}.svg")


def _remove_tree(path: Path) -> None:
    # a concurrent delete may have removed it already
    with suppress(FileNotFoundError):
        shutil.rmtree(path)

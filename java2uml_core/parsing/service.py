"""
service.py

In-process parsing service.

Holds parsed projects under opaque handles and produces diagram artifacts
from them on demand. Handles can be deleted at any time, independently
of whoever still holds a reference to them; callers must re-check with
:meth:`ParsingService.contains` or handle :class:`UnknownHandle`.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

from java2uml_core.common.errors import ParsingFailure, UnknownHandle
from java2uml_core.parsing.java_parser import ParsedProject, parse_tree
from java2uml_core.parsing.plantuml import render_plantuml
from java2uml_core.parsing.svg import render_svg

logger = logging.getLogger(__name__)

Parser = Callable[[Path], ParsedProject]


@dataclass
class ParsedComponent:
    """A parsed project plus its lazily generated artifacts."""
    handle: str
    project: ParsedProject
    uml_text: Optional[str] = None
    svg: Optional[bytes] = None


class ParsingService:
    """
    Thread-safe registry of parsed projects.

    Parsing and rendering run outside the lock; only registry lookups
    and the first-writer-wins artifact caching hold it. Once an artifact
    has been generated for a handle, every later request returns the
    same object.
    """

    def __init__(self, parser: Parser = parse_tree):
        self._parser = parser
        self._components: Dict[str, ParsedComponent] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def parse(self, root: Path) -> str:
        """
        Parse the tree at ``root`` and register the result.

        Returns
        -------
        str
            Handle of the new parsed component.

        Raises
        ------
        ParsingFailure
            If the parser rejects the tree.
        """
        try:
            project = self._parser(Path(root))
        except ParsingFailure:
            raise
        except Exception as exc:
            raise ParsingFailure(f"Parser crashed on {root}: {exc}", {"root": str(root)}) from exc

        handle = uuid.uuid4().hex
        with self._lock:
            self._components[handle] = ParsedComponent(handle=handle, project=project)
        logger.info("Registered parsed component %s (%d types)", handle, len(project.types))
        return handle

    def contains(self, handle: Optional[str]) -> bool:
        if handle is None:
            return False
        with self._lock:
            return handle in self._components

    def get(self, handle: str) -> ParsedComponent:
        with self._lock:
            try:
                return self._components[handle]
            except KeyError:
                raise UnknownHandle(handle) from None

    def delete(self, handle: str) -> bool:
        """Drop a parsed component. Returns False if it was already gone."""
        with self._lock:
            removed = self._components.pop(handle, None)
        if removed is not None:
            logger.info("Deleted parsed component %s", handle)
        return removed is not None

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def get_uml_text(self, handle: str) -> str:
        component = self.get(handle)
        if component.uml_text is None:
            text = render_plantuml(component.project)
            with self._lock:
                if component.uml_text is None:
                    component.uml_text = text
        return component.uml_text

    def get_svg(self, handle: str) -> bytes:
        component = self.get(handle)
        if component.svg is None:
            image = render_svg(self.get_uml_text(handle), component.project)
            with self._lock:
                if component.svg is None:
                    component.svg = image
        return component.svg

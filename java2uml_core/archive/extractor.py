"""
extractor.py

Zip-slip-safe extraction of an uploaded project archive.

The extractor is a plain function with no module state: every input is
an explicit parameter, and every failure is one of the typed
``ExtractionError`` subclasses. It is blocking; the service calls it
through ``run_in_executor()``.
"""

from __future__ import annotations

import logging
import os
import zipfile
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Tuple, Union

from java2uml_core.common.custom_types import ArchiveEntry
from java2uml_core.common.errors import (
    ArchiveLimitError,
    IOFailure,
    PathTraversalError,
)

logger = logging.getLogger(__name__)

ArchiveSource = Union[str, "os.PathLike[str]", BinaryIO]

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ExtractionLimits:
    """Caps applied while streaming one archive."""
    max_entries: int = 10_000
    max_uncompressed_bytes: int = 512 * 1024 * 1024


# ------------------------------------------------------------------
# Path validation
# ------------------------------------------------------------------

def resolve_entry_path(canonical_root: Path, entry_name: str) -> Path:
    """
    Resolve an archive entry name against the destination root.

    Both sides are canonicalized (symlinks followed, ``..`` collapsed)
    before comparison, and the result must lie strictly below the root.
    This rejects ``..`` escapes, absolute names, sibling directories
    sharing the root's prefix, the root itself, and names routed out
    through a symlink that already exists under the root.

    Parameters
    ----------
    canonical_root : Path
        Destination root, already passed through ``Path.resolve()``.
    entry_name : str
        Raw member name as stored in the archive.

    Returns
    -------
    Path
        Canonical path the entry must be written to.

    Raises
    ------
    PathTraversalError
        If the entry would land outside the root.
    IOFailure
        If the name cannot be resolved at all (NUL bytes, symlink loops).
    """
    try:
        candidate = (canonical_root / entry_name).resolve()
    except (OSError, RuntimeError, ValueError) as exc:
        raise IOFailure(
            f"Cannot resolve archive entry {entry_name!r}: {exc}",
            {"entry": entry_name},
        ) from exc

    if canonical_root not in candidate.parents:
        logger.warning("Rejected archive entry %r: resolves to %s", entry_name, candidate)
        raise PathTraversalError(entry_name)
    return candidate


# ------------------------------------------------------------------
# Archive access
# ------------------------------------------------------------------

@contextmanager
def _open_archive(archive_source: ArchiveSource) -> Iterator[zipfile.ZipFile]:
    """
    Open ``archive_source`` as a zip and close the underlying stream on exit.

    Streams passed in by the caller are closed too: the extractor takes
    ownership of its source.
    """
    if isinstance(archive_source, (str, os.PathLike)):
        try:
            stream: BinaryIO = open(archive_source, "rb")
        except OSError as exc:
            raise IOFailure(f"Cannot open archive {archive_source}: {exc}") from exc
    else:
        stream = archive_source

    try:
        try:
            zip_file = zipfile.ZipFile(stream)
        except (zipfile.BadZipFile, OSError) as exc:
            raise IOFailure(f"Not a valid zip archive: {exc}") from exc
        with zip_file:
            yield zip_file
    finally:
        stream.close()


def iter_entries(zip_file: zipfile.ZipFile) -> Iterator[Tuple[ArchiveEntry, zipfile.ZipInfo]]:
    """Yield one ArchiveEntry per member, in archive order, with its ZipInfo."""
    for info in zip_file.infolist():
        entry = ArchiveEntry(
            name_as_stored=info.filename,
            is_directory=info.is_dir(),
            payload_length=info.file_size,
        )
        yield entry, info


# ------------------------------------------------------------------
# Writers
# ------------------------------------------------------------------

def _make_directory(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise IOFailure(f"Failed to create directory {path}: {exc}", {"path": str(path)}) from exc


def _write_file(
    zip_file: zipfile.ZipFile,
    info: zipfile.ZipInfo,
    target: Path,
    *,
    budget: int,
    limit: int,
    chunk_size: int,
) -> int:
    """
    Stream one member's payload to ``target``.

    Returns the number of bytes written. ``budget`` is what remains of
    the per-archive byte cap; it is enforced on bytes actually
    decompressed, not on the size declared in the header.
    """
    if info.flag_bits & 0x1:
        raise IOFailure(f"Encrypted archive entry not supported: {info.filename}")

    _make_directory(target.parent)

    written = 0
    try:
        with zip_file.open(info) as src, open(target, "wb") as dst:
            while True:
                chunk = src.read(chunk_size)
                if not chunk:
                    break
                written += len(chunk)
                if written > budget:
                    raise ArchiveLimitError("uncompressed size", limit)
                dst.write(chunk)
    except (zipfile.BadZipFile, zlib.error, EOFError) as exc:
        raise IOFailure(f"Corrupt archive entry {info.filename}: {exc}") from exc
    except (NotImplementedError, RuntimeError) as exc:
        # unsupported compression method (e.g. Deflate64), password required
        raise IOFailure(
            f"Cannot decompress archive entry {info.filename}: {exc}",
            {"entry": info.filename, "compress_type": info.compress_type},
        ) from exc
    except OSError as exc:
        raise IOFailure(f"Failed to write {target}: {exc}", {"path": str(target)}) from exc
    return written


# ------------------------------------------------------------------
# Public API
# ------------------------------------------------------------------

def extract(
    archive_source: ArchiveSource,
    destination_root: Union[str, "os.PathLike[str]"],
    *,
    limits: ExtractionLimits | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Path:
    """
    Extract a zip archive into ``destination_root``.

    Entries are processed one at a time; each is validated, then written
    or rejected before the next one is read. The first failure aborts
    the whole extraction. Files already written are left in place: the
    caller owns the destination and is responsible for removing it.

    Parameters
    ----------
    archive_source : path or binary stream
        The archive. Closed on every exit path.
    destination_root : path
        Directory owned by the caller for this extraction. Created if
        missing.
    limits : ExtractionLimits, optional
        Entry count and uncompressed size caps.
    chunk_size : int
        Read/write buffer size for entry payloads.

    Returns
    -------
    Path
        The canonical destination root.

    Raises
    ------
    PathTraversalError
        An entry would be written outside the destination.
    ArchiveLimitError
        The archive has too many entries or too much data.
    IOFailure
        The archive is unreadable, or a directory or file could not be
        created or written.
    """
    limits = limits or ExtractionLimits()
    root = Path(destination_root)

    files = 0
    total = 0
    with _open_archive(archive_source) as zip_file:
        # the central directory is already in memory; refuse before writing
        if len(zip_file.filelist) > limits.max_entries:
            raise ArchiveLimitError("entry count", limits.max_entries)

        _make_directory(root)
        canonical_root = root.resolve()

        for entry, info in iter_entries(zip_file):
            target = resolve_entry_path(canonical_root, entry.name_as_stored)

            if entry.is_directory:
                _make_directory(target)
                continue

            total += _write_file(
                zip_file,
                info,
                target,
                budget=limits.max_uncompressed_bytes - total,
                limit=limits.max_uncompressed_bytes,
                chunk_size=chunk_size,
            )
            files += 1
            logger.debug("Extracted %s (%d bytes)", entry.name_as_stored, entry.payload_length)

    logger.info("Extracted %d files (%d bytes) into %s", files, total, canonical_root)
    return canonical_root

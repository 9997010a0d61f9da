"""Archive module for java2uml core.

Contains the zip-slip-safe extractor used to materialize uploaded
project archives on disk.
"""

from java2uml_core.archive.extractor import ExtractionLimits, extract, resolve_entry_path

__all__ = ["ExtractionLimits", "extract", "resolve_entry_path"]

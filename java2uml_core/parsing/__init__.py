"""Parsing module for java2uml core.

Turns an extracted Java source tree into a parsed component and renders
class-diagram artifacts (PlantUML text and SVG) from it.
"""

from java2uml_core.parsing.service import ParsedComponent, ParsingService

__all__ = ["ParsedComponent", "ParsingService"]

"""Render a ParsedProject as a PlantUML class diagram."""

from __future__ import annotations

from typing import Dict, List

from java2uml_core.parsing.java_parser import Member, ParsedProject, TypeDecl

START_MARKER = "@startuml"
END_MARKER = "@enduml"


def member_line(member: Member) -> str:
    modifiers = ""
    if member.is_static:
        modifiers += "{static} "
    if member.is_abstract:
        modifiers += "{abstract} "
    if member.kind == "field":
        return f"  {member.visibility}{modifiers}{member.name} : {member.type}"
    signature = f"{member.name}({member.params})"
    if member.kind == "method" and member.type:
        signature += f" : {member.type}"
    return f"  {member.visibility}{modifiers}{signature}"


def _declaration(decl: TypeDecl) -> str:
    if decl.kind == "interface":
        return f"interface {decl.qualified_name}"
    if decl.kind == "enum":
        return f"enum {decl.qualified_name}"
    if decl.kind == "record":
        return f"class {decl.qualified_name} <<record>>"
    if decl.is_abstract:
        return f"abstract class {decl.qualified_name}"
    return f"class {decl.qualified_name}"


def render_plantuml(project: ParsedProject) -> str:
    """
    Build the diagram text for ``project``.

    The result starts with ``@startuml`` and ends with ``@enduml``, with
    no trailing newline. Output is deterministic for a given project.
    """
    # simple name -> qualified name, for resolving relation targets
    known: Dict[str, str] = {}
    for decl in project.types:
        known.setdefault(decl.name, decl.qualified_name)

    lines: List[str] = [START_MARKER, "skinparam classAttributeIconSize 0", ""]
    relations: List[str] = []

    for decl in project.types:
        lines.append(_declaration(decl) + " {")
        lines.extend(f"  {constant}" for constant in decl.constants)
        lines.extend(member_line(member) for member in decl.members)
        lines.append("}")
        lines.append("")

        for parent in decl.extends:
            relations.append(f"{known.get(parent, parent)} <|-- {decl.qualified_name}")
        for parent in decl.implements:
            relations.append(f"{known.get(parent, parent)} <|.. {decl.qualified_name}")

    lines.extend(relations)
    lines.append(END_MARKER)
    return "\n".join(lines)

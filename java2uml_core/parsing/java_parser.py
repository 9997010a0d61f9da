"""
java_parser.py

Lightweight structural scanner for Java sources.

It recovers what a class diagram needs (types, inheritance, fields and
method signatures) from an extracted source tree. It does not compile or
type-check anything; bodies of methods are skipped wholesale.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from java2uml_core.common.errors import ParsingFailure

logger = logging.getLogger(__name__)

#------------ Parsed model ------------

VISIBILITY_SYMBOLS = {"public": "+", "private": "-", "protected": "#"}


@dataclass
class Member:
    """A field, method or constructor of a type."""
    name: str
    kind: str                   # "field" | "method" | "constructor"
    visibility: str = "~"       # PlantUML symbol
    type: str = ""              # field type or method return type
    params: str = ""
    is_static: bool = False
    is_abstract: bool = False


@dataclass
class TypeDecl:
    """A class, interface, enum or record declaration."""
    name: str
    kind: str                   # "class" | "interface" | "enum" | "record"
    package: str = ""
    extends: List[str] = field(default_factory=list)
    implements: List[str] = field(default_factory=list)
    members: List[Member] = field(default_factory=list)
    constants: List[str] = field(default_factory=list)
    is_abstract: bool = False

    @property
    def qualified_name(self) -> str:
        return f"{self.package}.{self.name}" if self.package else self.name


@dataclass
class ParsedProject:
    """Result of scanning one extracted tree."""
    root: Path
    types: List[TypeDecl]
    source_files: int

#------------ Regexes ------------

_COMMENTS_AND_LITERALS = re.compile(
    r'//[^\n]*|/\*.*?\*/|"(?:\\.|[^"\\\n])*"|\'(?:\\.|[^\'\\\n])*\'',
    re.S,
)
_PACKAGE = re.compile(r"^\s*package\s+([\w.]+)\s*;", re.M)
_ANNOTATION = re.compile(r"@[\w.]+(?:\s*\([^()]*\))?")
_GENERIC = re.compile(r"<[^<>]*>")
_TYPE_DECL = re.compile(
    r"(?P<mods>(?:\b(?:public|protected|private|abstract|static|final|sealed|non-sealed|strictfp)\s+)*)"
    r"\b(?P<kind>class|interface|enum|record)\s+(?P<name>\w+)\s*"
    r"(?P<generics><[^{]*?>)?\s*"
    r"(?P<components>\([^)]*\))?\s*"
    r"(?:extends\s+(?P<extends>[^{]+?))?\s*"
    r"(?:implements\s+(?P<implements>[^{]+?))?\s*"
    r"(?:permits\s+[^{]+?)?\s*\{"
)
_MODIFIERS = {
    "public", "protected", "private", "static", "final", "abstract",
    "synchronized", "native", "transient", "volatile", "default", "strictfp",
}

#------------ Text helpers ------------

def _strip_comments_and_literals(source: str) -> str:
    def blank(match: re.Match) -> str:
        token = match.group(0)
        if token.startswith("/"):
            # keep line structure so package regex still anchors on lines
            return "\n" * token.count("\n") or " "
        return '""'
    return _COMMENTS_AND_LITERALS.sub(blank, source)


def _strip_generics(text: str) -> str:
    previous = None
    while previous != text:
        previous, text = text, _GENERIC.sub("", text)
    return text


def _split_type_list(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [part.strip().split(".")[-1] for part in _strip_generics(text).split(",") if part.strip()]


def _matching_brace(text: str, open_at: int, where: str) -> int:
    depth = 0
    for index in range(open_at, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    raise ParsingFailure(f"Unbalanced braces in {where}", {"file": where})


def _split_modifiers(header: str) -> Tuple[set, List[str]]:
    words = _strip_generics(_ANNOTATION.sub(" ", header)).split()
    modifiers = set()
    rest: List[str] = []
    for word in words:
        if not rest and word in _MODIFIERS:
            modifiers.add(word)
        else:
            rest.append(word)
    return modifiers, rest


def _visibility(modifiers: set, in_interface: bool) -> str:
    for word, symbol in VISIBILITY_SYMBOLS.items():
        if word in modifiers:
            return symbol
    return "+" if in_interface else "~"

#------------ Member parsing ------------

def _parse_callable(header: str, owner: TypeDecl) -> Optional[Member]:
    before, _, after = _ANNOTATION.sub(" ", header).partition("(")
    params = after.rsplit(")", 1)[0]
    modifiers, words = _split_modifiers(before)
    if not words:
        return None
    name = words[-1]
    if not re.fullmatch(r"[A-Za-z_$][\w$]*", name):
        return None
    is_constructor = name == owner.name and len(words) == 1
    return Member(
        name=name,
        kind="constructor" if is_constructor else "method",
        visibility=_visibility(modifiers, owner.kind == "interface"),
        type="" if is_constructor else " ".join(words[:-1]),
        params=" ".join(_strip_generics(_ANNOTATION.sub(" ", params)).split()),
        is_static="static" in modifiers,
        is_abstract="abstract" in modifiers or (
            owner.kind == "interface" and "default" not in modifiers and "static" not in modifiers
        ),
    )


def _parse_field(statement: str, owner: TypeDecl) -> Optional[Member]:
    declarator = _strip_generics(statement.split("=", 1)[0])
    modifiers, words = _split_modifiers(declarator.split(",", 1)[0])
    if len(words) < 2:
        return None
    name = words[-1].rstrip("[]")
    if not re.fullmatch(r"[A-Za-z_$][\w$]*", name):
        return None
    return Member(
        name=name,
        kind="field",
        visibility=_visibility(modifiers, owner.kind == "interface"),
        type=" ".join(words[:-1]),
        is_static="static" in modifiers or owner.kind == "interface",
    )


def _scan_body(body: str, owner: TypeDecl, where: str) -> None:
    """Fill ``owner`` with the depth-1 members found in ``body``."""
    if owner.kind == "enum":
        head, sep, body = body.partition(";")
        if not sep:
            head, body = body, ""
        for constant in head.split(","):
            constant = _ANNOTATION.sub(" ", constant).strip()
            match = re.match(r"[A-Za-z_$][\w$]*", constant)
            if match:
                owner.constants.append(match.group(0))

    start = 0
    index = 0
    while index < len(body):
        char = body[index]
        if char == ";":
            statement = _ANNOTATION.sub(" ", body[start:index]).strip()
            if statement:
                if "(" in statement.split("=", 1)[0]:
                    member = _parse_callable(statement, owner)
                else:
                    member = _parse_field(statement, owner)
                if member:
                    owner.members.append(member)
            start = index + 1
        elif char == "{":
            close = _matching_brace(body, index, where)
            header = _ANNOTATION.sub(" ", body[start:index]).strip()
            if "=" in header.split("(", 1)[0]:
                # initializer block, lambda or anonymous class: the field ends at the next ';'
                index = close + 1
                continue
            if "(" in header and not _TYPE_DECL.search(header + "{"):
                member = _parse_callable(header, owner)
                if member:
                    owner.members.append(member)
            start = close + 1
            index = close
        index += 1


def _scan_types(text: str, package: str, where: str) -> List[TypeDecl]:
    types: List[TypeDecl] = []
    position = 0
    while True:
        match = _TYPE_DECL.search(text, position)
        if match is None:
            return types
        open_at = match.end() - 1
        close = _matching_brace(text, open_at, where)
        body = text[open_at + 1:close]

        modifiers = set(match.group("mods").split())
        decl = TypeDecl(
            name=match.group("name"),
            kind=match.group("kind"),
            package=package,
            extends=_split_type_list(match.group("extends")),
            implements=_split_type_list(match.group("implements")),
            is_abstract="abstract" in modifiers,
        )
        if decl.kind == "record" and match.group("components"):
            for component in match.group("components").strip("()").split(","):
                words = _strip_generics(_ANNOTATION.sub(" ", component)).split()
                if len(words) >= 2:
                    decl.members.append(
                        Member(name=words[-1], kind="field", visibility="-", type=" ".join(words[:-1]))
                    )
        _scan_body(body, decl, where)
        types.append(decl)
        types.extend(_scan_types(body, package, where))
        position = close + 1

#------------ Public API ------------

def _is_source_file(path: Path, root: Path) -> bool:
    relative = path.relative_to(root)
    if any(part == "__MACOSX" or part.startswith(".") for part in relative.parts):
        return False
    return path.is_file()


def parse_source(source: str, where: str = "<string>") -> List[TypeDecl]:
    """Parse one compilation unit into its type declarations."""
    text = _strip_comments_and_literals(source)
    package_match = _PACKAGE.search(text)
    package = package_match.group(1) if package_match else ""
    return _scan_types(text, package, where)


def parse_tree(root: Path) -> ParsedProject:
    """
    Scan every ``*.java`` file below ``root``.

    Parameters
    ----------
    root : Path
        Root of an extracted project tree.

    Returns
    -------
    ParsedProject
        All type declarations, sorted by qualified name.

    Raises
    ------
    ParsingFailure
        If there are no Java sources, a file is not UTF-8, or braces
        do not balance.
    """
    root = Path(root)
    if not root.is_dir():
        raise ParsingFailure(f"Source directory does not exist: {root}", {"root": str(root)})

    files = sorted(p for p in root.rglob("*.java") if _is_source_file(p, root))
    if not files:
        raise ParsingFailure(f"No Java source files found in {root}", {"root": str(root)})

    types: List[TypeDecl] = []
    for path in files:
        where = str(path.relative_to(root))
        try:
            source = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise ParsingFailure(f"{where} is not valid UTF-8", {"file": where}) from exc
        except OSError as exc:
            raise ParsingFailure(f"Cannot read {where}: {exc}", {"file": where}) from exc
        types.extend(parse_source(source, where))

    types.sort(key=lambda decl: decl.qualified_name)
    logger.info("Parsed %d types from %d Java files under %s", len(types), len(files), root)
    return ParsedProject(root=root, types=types, source_files=len(files))

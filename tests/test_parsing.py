"""Tests for the Java scanner, the PlantUML writer and the parsing service."""

from __future__ import annotations

import io
from pathlib import Path

import pytest

from java2uml_core.archive.extractor import extract
from java2uml_core.common.errors import ParsingFailure, UnknownHandle
from java2uml_core.parsing.java_parser import parse_source, parse_tree
from java2uml_core.parsing.plantuml import render_plantuml
from java2uml_core.parsing.service import ParsingService


@pytest.fixture
def shapes_root(tmp_path: Path, shapes_zip: bytes) -> Path:
    return extract(io.BytesIO(shapes_zip), tmp_path / "shapes")


def _by_name(project):
    return {decl.name: decl for decl in project.types}


def test_parse_tree_finds_all_types(shapes_root: Path):
    project = parse_tree(shapes_root)
    types = _by_name(project)

    assert project.source_files == 4
    assert sorted(types) == ["AbstractShape", "Circle", "Color", "Shape"]
    assert types["Shape"].kind == "interface"
    assert types["AbstractShape"].is_abstract
    assert types["Circle"].extends == ["AbstractShape"]
    assert types["AbstractShape"].implements == ["Shape"]
    assert types["Color"].constants == ["RED", "GREEN", "BLUE"]
    assert all(decl.package == "com.example.shapes" for decl in project.types)


def test_members_carry_visibility_and_modifiers(shapes_root: Path):
    types = _by_name(parse_tree(shapes_root))
    circle = {m.name: m for m in types["Circle"].members}
    shape = {m.name: m for m in types["AbstractShape"].members}

    assert circle["radius"].kind == "field"
    assert circle["radius"].visibility == "-"
    assert circle["tags"].type == "List"
    assert circle["Circle"].kind == "constructor"
    assert circle["area"].type == "double"
    assert shape["created"].is_static
    assert shape["perimeter"].is_abstract
    assert shape["name"].visibility == "#"


def test_nested_types_and_string_braces():
    source = """
    package p;
    public class Outer {
        private String s = "}{";
        static class Inner implements Runnable {
            public void run() { if (true) { } }
        }
        // class NotReal {
    }
    """
    types = {decl.name: decl for decl in parse_source(source)}

    assert set(types) == {"Outer", "Inner"}
    assert types["Inner"].implements == ["Runnable"]
    assert [m.name for m in types["Inner"].members] == ["run"]
    assert [m.name for m in types["Outer"].members] == ["s"]


def test_annotated_method_with_generic_parameters():
    source = """
    class Api {
        @GetMapping("/items/{id}")
        public Map<String, List<Item>> find(@PathVariable Long id, Map<String, Integer> q) {
            return null;
        }
    }
    """
    (api,) = parse_source(source)
    (find,) = api.members

    assert find.name == "find"
    assert find.type == "Map"
    assert find.params == "Long id, Map q"


def test_tree_without_java_sources_fails(tmp_path: Path):
    (tmp_path / "notes.txt").write_text("nothing to see")

    with pytest.raises(ParsingFailure):
        parse_tree(tmp_path)


def test_non_utf8_source_fails(tmp_path: Path):
    (tmp_path / "Bad.java").write_bytes(b"class Bad { \xff\xfe }")

    with pytest.raises(ParsingFailure):
        parse_tree(tmp_path)


def test_macos_resource_forks_are_ignored(shapes_root: Path):
    forks = shapes_root / "__MACOSX" / "demo"
    forks.mkdir(parents=True)
    (forks / "._Circle.java").write_bytes(b"\x00\x05\x16\x07\xff")

    assert parse_tree(shapes_root).source_files == 4


def test_unbalanced_braces_fail():
    with pytest.raises(ParsingFailure):
        parse_source("class Broken { void x() {", "Broken.java")


def test_plantuml_is_wrapped_in_markers(shapes_root: Path):
    uml = render_plantuml(parse_tree(shapes_root))

    assert uml.startswith("@startuml")
    assert uml.endswith("@enduml")
    assert "abstract class com.example.shapes.AbstractShape {" in uml
    assert "interface com.example.shapes.Shape {" in uml
    assert "com.example.shapes.AbstractShape <|-- com.example.shapes.Circle" in uml
    assert "com.example.shapes.Shape <|.. com.example.shapes.AbstractShape" in uml
    assert "  -radius : double" in uml


# ------------------------------------------------------------------
# ParsingService
# ------------------------------------------------------------------

def test_service_parse_and_artifacts(shapes_root: Path):
    service = ParsingService()
    handle = service.parse(shapes_root)

    assert service.contains(handle)
    text = service.get_uml_text(handle)
    svg = service.get_svg(handle)

    assert text.startswith("@startuml") and text.endswith("@enduml")
    assert svg.startswith(b"<?xml")
    assert b"@startuml" in svg and b"@enduml" in svg
    assert service.get_svg(handle) is svg
    assert service.get_uml_text(handle) is text


def test_service_delete_makes_handle_unknown(shapes_root: Path):
    service = ParsingService()
    handle = service.parse(shapes_root)

    assert service.delete(handle) is True
    assert service.delete(handle) is False
    assert not service.contains(handle)
    assert not service.contains(None)
    with pytest.raises(UnknownHandle):
        service.get_uml_text(handle)


def test_service_wraps_unexpected_parser_errors(tmp_path: Path):
    def exploding_parser(root: Path):
        raise RuntimeError("boom")

    service = ParsingService(parser=exploding_parser)

    with pytest.raises(ParsingFailure, match="boom"):
        service.parse(tmp_path)

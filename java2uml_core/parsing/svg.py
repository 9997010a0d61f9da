"""
svg.py

Minimal SVG rendering of a parsed project.

One box per type, laid out on a grid, with inheritance drawn as straight
lines between box centres. The PlantUML source the image was drawn from
is embedded in the document's ``<desc>`` element.
"""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from typing import Dict, List, Tuple

from java2uml_core.parsing.java_parser import ParsedProject, TypeDecl
from java2uml_core.parsing.plantuml import member_line

SVG_NS = "http://www.w3.org/2000/svg"

CHAR_WIDTH = 7
LINE_HEIGHT = 16
HEADER_HEIGHT = 24
PADDING = 10
GAP = 40
MIN_BOX_WIDTH = 120


def _box_lines(decl: TypeDecl) -> List[str]:
    return list(decl.constants) + [member_line(m).strip() for m in decl.members]


def _box_size(decl: TypeDecl) -> Tuple[int, int]:
    lines = _box_lines(decl)
    longest = max([len(decl.qualified_name) + 4] + [len(line) for line in lines])
    width = max(MIN_BOX_WIDTH, longest * CHAR_WIDTH + 2 * PADDING)
    height = HEADER_HEIGHT + max(1, len(lines)) * LINE_HEIGHT + PADDING
    return width, height


def _stereotype(decl: TypeDecl) -> str:
    if decl.kind in ("interface", "enum", "record"):
        return f"«{decl.kind}» "
    if decl.is_abstract:
        return "«abstract» "
    return ""


def render_svg(uml_text: str, project: ParsedProject) -> bytes:
    """
    Render ``project`` to an SVG document.

    Parameters
    ----------
    uml_text : str
        PlantUML source for the same project; embedded verbatim.
    project : ParsedProject
        Types to draw.

    Returns
    -------
    bytes
        UTF-8 encoded SVG, identical for identical inputs.
    """
    ET.register_namespace("", SVG_NS)
    types = project.types
    columns = max(1, math.ceil(math.sqrt(len(types))))
    sizes = [_box_size(decl) for decl in types]

    column_widths = [0] * columns
    row_heights = [0] * max(1, math.ceil(len(types) / columns))
    for index, (width, height) in enumerate(sizes):
        row, column = divmod(index, columns)
        column_widths[column] = max(column_widths[column], width)
        row_heights[row] = max(row_heights[row], height)

    boxes: List[Tuple[int, int, int, int]] = []
    # simple name -> box, first declaration wins, used as relation anchor
    positions: Dict[str, Tuple[int, int, int, int]] = {}
    for index, decl in enumerate(types):
        row, column = divmod(index, columns)
        x = GAP + sum(column_widths[:column]) + column * GAP
        y = GAP + sum(row_heights[:row]) + row * GAP
        boxes.append((x, y, *sizes[index]))
        positions.setdefault(decl.name, boxes[-1])

    total_width = GAP + sum(column_widths) + columns * GAP
    total_height = GAP + sum(row_heights) + len(row_heights) * GAP

    svg = ET.Element(f"{{{SVG_NS}}}svg", {
        "width": str(total_width),
        "height": str(total_height),
        "viewBox": f"0 0 {total_width} {total_height}",
        "font-family": "monospace",
        "font-size": "12",
    })
    desc = ET.SubElement(svg, f"{{{SVG_NS}}}desc")
    desc.text = uml_text

    edges = ET.SubElement(svg, f"{{{SVG_NS}}}g", {"class": "relations", "stroke": "#555"})
    for decl, child in zip(types, boxes):
        parents = [(p, None) for p in decl.extends] + [(p, "5,3") for p in decl.implements]
        for parent, dash in parents:
            if parent not in positions:
                continue
            target = positions[parent]
            attrs = {
                "x1": str(child[0] + child[2] // 2),
                "y1": str(child[1]),
                "x2": str(target[0] + target[2] // 2),
                "y2": str(target[1] + target[3]),
            }
            if dash:
                attrs["stroke-dasharray"] = dash
            ET.SubElement(edges, f"{{{SVG_NS}}}line", attrs)

    for decl, (x, y, width, height) in zip(types, boxes):
        group = ET.SubElement(svg, f"{{{SVG_NS}}}g", {"class": "type", "id": decl.qualified_name})
        ET.SubElement(group, f"{{{SVG_NS}}}rect", {
            "x": str(x), "y": str(y), "width": str(width), "height": str(height),
            "fill": "#FEFECE", "stroke": "#A80036",
        })
        title = ET.SubElement(group, f"{{{SVG_NS}}}text", {
            "x": str(x + PADDING), "y": str(y + HEADER_HEIGHT - 8), "font-weight": "bold",
        })
        title.text = _stereotype(decl) + decl.name
        ET.SubElement(group, f"{{{SVG_NS}}}line", {
            "x1": str(x), "y1": str(y + HEADER_HEIGHT),
            "x2": str(x + width), "y2": str(y + HEADER_HEIGHT), "stroke": "#A80036",
        })
        for offset, line in enumerate(_box_lines(decl), start=1):
            text = ET.SubElement(group, f"{{{SVG_NS}}}text", {
                "x": str(x + PADDING), "y": str(y + HEADER_HEIGHT + offset * LINE_HEIGHT - 4),
            })
            text.text = line

    return ET.tostring(svg, encoding="utf-8", xml_declaration=True)

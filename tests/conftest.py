"""Shared fixtures: in-memory archives and a small Java project."""

from __future__ import annotations

import io
import zipfile
from pathlib import Path
from typing import Dict, Optional

import pytest

from java2uml_core.common.settings import ServiceSettings

SHAPES = {
    "demo/src/main/java/com/example/shapes/Shape.java": b"""\
package com.example.shapes;

/** Anything with an area. */
public interface Shape {
    double area();
    default String describe() { return "shape with area " + area(); }
}
""",
    "demo/src/main/java/com/example/shapes/AbstractShape.java": b"""\
package com.example.shapes;

public abstract class AbstractShape implements Shape {
    protected final String name;
    private static int created = 0;

    protected AbstractShape(String name) {
        this.name = name;
        created++;
    }

    public abstract double perimeter();

    public static int getCreated() {
        return created;
    }
}
""",
    "demo/src/main/java/com/example/shapes/Circle.java": b"""\
package com.example.shapes;

import java.util.List;

public class Circle extends AbstractShape {
    private double radius;
    private List<String> tags = List.of("round", "{curly}");

    public Circle(double radius) {
        super("circle");
        this.radius = radius;
    }

    @Override
    public double area() {
        return Math.PI * radius * radius;
    }

    @Override
    public double perimeter() {
        return 2 * Math.PI * radius;
    }
}
""",
    "demo/src/main/java/com/example/shapes/Color.java": b"""\
package com.example.shapes;

public enum Color {
    RED, GREEN, BLUE;

    public String lower() { return name().toLowerCase(); }
}
""",
    "demo/README.md": b"# demo\n",
}


def make_zip(entries: Dict[str, Optional[bytes]]) -> bytes:
    """Build a zip in memory. A value of None adds a directory entry."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, payload in entries.items():
            if payload is None:
                zf.writestr(zipfile.ZipInfo(name if name.endswith("/") else name + "/"), b"")
            else:
                zf.writestr(name, payload)
    return buffer.getvalue()


@pytest.fixture
def shapes_zip() -> bytes:
    return make_zip(SHAPES)


@pytest.fixture
def settings(tmp_path: Path) -> ServiceSettings:
    return ServiceSettings(upload_root=str(tmp_path / "uploads"))


def make_zip_with_method(name: str, payload: bytes, method: int) -> bytes:
    """
    Build a one-entry stored zip, then rewrite its compression method.

    Used to produce archives ``zipfile`` can list but not decompress,
    e.g. method 9 (Deflate64).
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_STORED) as zf:
        zf.writestr(name, payload)
    data = bytearray(buffer.getvalue())

    local = data.index(b"PK\x03\x04")
    data[local + 8:local + 10] = method.to_bytes(2, "little")
    central = data.index(b"PK\x01\x02")
    data[central + 10:central + 12] = method.to_bytes(2, "little")
    return bytes(data)

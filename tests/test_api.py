"""End-to-end tests for the HTTP interface."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from java2uml_control.backend.app.main import create_app
from java2uml_core.common.settings import ServiceSettings

from conftest import make_zip, make_zip_with_method

UNKNOWN_ID = 2**63 - 1


@pytest.fixture
def client(settings: ServiceSettings):
    with TestClient(create_app(settings)) as test_client:
        yield test_client


def _upload(client: TestClient, archive: bytes, filename: str = "project.zip"):
    return client.post("/api/files", files={"file": (filename, archive, "application/zip")})


@pytest.fixture
def uploaded(client: TestClient, shapes_zip: bytes) -> dict:
    response = _upload(client, shapes_zip)
    assert response.status_code == 201, response.text
    return response.json()


# ------------------------------------------------------------------
# Upload
# ------------------------------------------------------------------

def test_upload_returns_project_links(uploaded: dict):
    links = uploaded["_links"]

    assert uploaded["state"] == "PARSED"
    assert uploaded["filename"] == "project.zip"
    assert links["self"]["href"].endswith(f"/api/project-info/{uploaded['id']}")
    assert links["umlText"]["href"].endswith(f"/api/uml/plant-uml-code/{uploaded['id']}")
    assert links["umlSvg"]["href"].endswith(f"/api/uml/svg/{uploaded['id']}")


def test_upload_rejects_non_zip_name(client: TestClient, shapes_zip: bytes):
    response = _upload(client, shapes_zip, filename="project.tar.gz")

    assert response.status_code == 400
    assert response.json() == {"errors": ["Only .zip archives supported"]}


def test_upload_with_traversal_entry_is_reported(client: TestClient):
    response = _upload(client, make_zip({"A.java": b"class A {}", "../../evil.txt": b"owned"}))
    body = response.json()

    assert response.status_code == 400
    assert body["state"] == "FAILED"
    assert "Entry is outside of the target dir: ../../evil.txt" in body["errors"][0]

    assert body["_links"]["projectInfo"] == body["_links"]["self"]

    info = client.get(body["_links"]["projectInfo"]["href"]).json()
    assert info["state"] == "FAILED"
    assert info["failure"] == body["errors"][0]


def test_upload_with_unsupported_compression_is_reported(client: TestClient):
    response = _upload(client, make_zip_with_method("src/Big.java", b"class Big {}", 9))
    body = response.json()

    assert response.status_code == 400
    assert body["state"] == "FAILED"
    assert body["errors"][0].startswith("IOFailure: ")
    assert "src/Big.java" in body["errors"][0]
    assert body["_links"]["projectInfo"]["href"].endswith(f"/api/project-info/{body['id']}")


# ------------------------------------------------------------------
# Diagram text
# ------------------------------------------------------------------

def test_get_plant_uml_code(client: TestClient, uploaded: dict):
    text_uri = uploaded["_links"]["umlText"]["href"]
    svg_uri = uploaded["_links"]["umlSvg"]["href"]
    project_uri = uploaded["_links"]["self"]["href"]

    response = client.get(text_uri)
    body = response.json()

    assert response.status_code == 200
    assert body["_links"]["self"]["href"] == text_uri
    assert body["_links"]["umlSvg"]["href"] == svg_uri
    assert body["_links"]["projectInfo"]["href"] == project_uri
    assert body["content"].startswith("@startuml")
    assert body["content"].endswith("@enduml")


def test_plant_uml_code_for_unknown_project_is_404(client: TestClient):
    response = client.get(f"/api/uml/plant-uml-code/{UNKNOWN_ID}")

    assert response.status_code == 404
    assert "ProjectInfo not found" in response.json()["errors"][0]


# ------------------------------------------------------------------
# Diagram image
# ------------------------------------------------------------------

def test_get_svg(client: TestClient, uploaded: dict):
    response = client.get(uploaded["_links"]["umlSvg"]["href"])

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/svg+xml"
    assert "content-disposition" in response.headers
    assert "@startuml" in response.text
    assert "@enduml" in response.text


def test_svg_for_unknown_project_is_404(client: TestClient):
    response = client.get(f"/api/uml/svg/{UNKNOWN_ID}")

    assert response.status_code == 404
    assert "ProjectInfo not found" in response.json()["errors"][0]


def test_repeated_svg_requests_are_identical(client: TestClient, uploaded: dict):
    uri = uploaded["_links"]["umlSvg"]["href"]

    assert client.get(uri).content == client.get(uri).content


# ------------------------------------------------------------------
# Missing parsed component
# ------------------------------------------------------------------

@pytest.mark.parametrize("link", ["umlText", "umlSvg"])
def test_missing_parsed_component_is_500(client: TestClient, uploaded: dict, link: str):
    record = client.app.state.store.require(uploaded["id"])
    client.app.state.parsing.delete(record.parsed_handle)

    response = client.get(uploaded["_links"][link]["href"])

    assert response.status_code == 500
    assert "Unable to find requested ParsedComponent." in response.json()["errors"][0]


@pytest.mark.parametrize("link", ["umlText", "umlSvg"])
def test_deleted_project_stays_queryable(client: TestClient, uploaded: dict, link: str):
    deleted = client.delete(uploaded["_links"]["self"]["href"])
    assert deleted.status_code == 200
    assert deleted.json()["state"] == "DELETED"

    info = client.get(uploaded["_links"]["self"]["href"])
    assert info.status_code == 200
    assert info.json()["state"] == "DELETED"

    response = client.get(uploaded["_links"][link]["href"])
    assert response.status_code == 500
    assert "Unable to find requested ParsedComponent." in response.json()["errors"][0]


def test_project_info_for_unknown_project_is_404(client: TestClient):
    response = client.get(f"/api/project-info/{UNKNOWN_ID}")

    assert response.status_code == 404
    assert "ProjectInfo not found" in response.json()["errors"][0]

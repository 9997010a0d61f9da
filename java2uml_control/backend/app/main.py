from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, FastAPI, Request, UploadFile
from fastapi.responses import JSONResponse, Response

from java2uml_control.backend.app.manager import (
    ArtifactRetriever,
    IngestionPipeline,
    ProjectStore,
)
from java2uml_core.common.custom_types import ProjectRecord, ProjectState
from java2uml_core.common.errors import ParsedComponentNotFound, ProjectNotFound
from java2uml_core.common.settings import ServiceSettings, configure_logging
from java2uml_core.parsing.service import ParsingService

router = APIRouter(prefix="/api")


def _href(request: Request, name: str, project_id: int) -> Dict[str, str]:
    return {"href": str(request.url_for(name, project_id=project_id))}


def _project_body(request: Request, record: ProjectRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "state": record.state.value,
        "filename": record.filename,
        "failure": record.failure,
        "_links": {
            "self": _href(request, "get_project_info", record.id),
            "umlText": _href(request, "get_plant_uml_code", record.id),
            "umlSvg": _href(request, "get_svg", record.id),
        },
    }


# ------------------------------------------------------------------
# Ingestion
# ------------------------------------------------------------------

@router.post("/files", status_code=201)
async def upload_archive(request: Request, file: UploadFile):
    filename = file.filename or ""
    if not filename.lower().endswith(".zip"):
        return JSONResponse(status_code=400,
                            content={"errors": ["Only .zip archives supported"]})

    pipeline: IngestionPipeline = request.app.state.pipeline
    record = await pipeline.ingest(file.file, filename)

    body = _project_body(request, record)
    if record.state is ProjectState.FAILED:
        body["errors"] = [record.failure]
        body["_links"]["projectInfo"] = _href(request, "get_project_info", record.id)
        return JSONResponse(status_code=400, content=body)
    return body


# ------------------------------------------------------------------
# Project info
# ------------------------------------------------------------------

@router.get("/project-info/{project_id}")
def get_project_info(request: Request, project_id: int):
    store: ProjectStore = request.app.state.store
    return _project_body(request, store.require(project_id))


@router.delete("/project-info/{project_id}")
async def delete_project(request: Request, project_id: int):
    pipeline: IngestionPipeline = request.app.state.pipeline
    record = await pipeline.delete(project_id)
    return _project_body(request, record)


# ------------------------------------------------------------------
# Artifacts
# ------------------------------------------------------------------

@router.get("/uml/plant-uml-code/{project_id}")
def get_plant_uml_code(request: Request, project_id: int):
    retriever: ArtifactRetriever = request.app.state.retriever
    artifact = retriever.get_diagram_text(project_id)
    return {
        "content": artifact.text,
        "_links": {
            "self": _href(request, "get_plant_uml_code", project_id),
            "umlSvg": _href(request, "get_svg", project_id),
            "projectInfo": _href(request, "get_project_info", project_id),
        },
    }


@router.get("/uml/svg/{project_id}")
def get_svg(request: Request, project_id: int):
    retriever: ArtifactRetriever = request.app.state.retriever
    artifact = retriever.get_diagram_image(project_id)
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


# ------------------------------------------------------------------
# Error mapping
# ------------------------------------------------------------------

async def _project_not_found(request: Request, exc: ProjectNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"errors": [exc.message]})


async def _parsed_component_not_found(request: Request, exc: ParsedComponentNotFound) -> JSONResponse:
    return JSONResponse(status_code=500, content={"errors": [exc.message]})


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """
    Build the service with fresh collaborators.

    The store, parsing service, pipeline and retriever are attached to
    ``app.state`` so tests and operators can reach them directly.
    """
    settings = settings or ServiceSettings.from_env()
    configure_logging(settings.log_level)

    store = ProjectStore()
    parsing = ParsingService()

    app = FastAPI(title="java2uml")
    app.state.settings = settings
    app.state.store = store
    app.state.parsing = parsing
    app.state.pipeline = IngestionPipeline(store=store, parsing=parsing, settings=settings)
    app.state.retriever = ArtifactRetriever(store=store, parsing=parsing)

    app.include_router(router)
    app.add_exception_handler(ProjectNotFound, _project_not_found)
    app.add_exception_handler(ParsedComponentNotFound, _parsed_component_not_found)
    return app


app = create_app()

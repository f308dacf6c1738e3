"""fastapi server for model canvas.

exposes the editing core as REST endpoints for the browser canvas.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from fastapi import Body, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict

from ..core.curve_path import build_catmull_rom_path, nearest_segment_for_point
from ..core.document import EXPORT_FILENAME, LoadResult
from ..core.models import ArrowType, CurvePoint, HandleLocation, Position, get_model_dir
from ..core.mutations import MutationResult, UnknownIdError
from ..core.session import EditorSession
from ..core.validation import validate_for_export, validate_model
from ..logging_config import setup_logging

logger = logging.getLogger(__name__)


# --- pydantic models for api ---

class PointBody(BaseModel):
    """canvas-space point."""
    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float


class ObjectCreate(BaseModel):
    """request to create an object; no position means next grid slot."""
    position: Optional[PointBody] = None


class ObjectEdit(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class AttributeEdit(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    formula: Optional[str] = None


class RelationshipCreate(BaseModel):
    from_id: str
    to_id: str
    from_handle: HandleLocation = HandleLocation.RIGHT
    to_handle: HandleLocation = HandleLocation.LEFT


class RelationshipEdit(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    label: Optional[str] = None
    arrow_type: Optional[ArrowType] = None


class ReconnectRequest(BaseModel):
    """partial endpoint update; omitted fields keep their value."""
    from_id: Optional[str] = None
    to_id: Optional[str] = None
    from_handle: Optional[HandleLocation] = None
    to_handle: Optional[HandleLocation] = None


class CurvePointInsert(BaseModel):
    point: PointBody
    insert_index: int


class DraftStart(BaseModel):
    from_id: Optional[str] = None


class PathRequest(BaseModel):
    model_config = ConfigDict(allow_inf_nan=False)

    points: list[PointBody]
    tension: Optional[float] = None


class NearestSegmentRequest(BaseModel):
    points: list[PointBody]
    point: PointBody


class DocumentLocation(BaseModel):
    """document file name inside the data directory."""
    name: str = EXPORT_FILENAME


# --- app state ---

class AppState:
    """shared application state."""

    def __init__(self, data_dir: Optional[str] = None):
        self.session = EditorSession()
        self.data_dir = data_dir
        self.document_path: Optional[Path] = None

    def resolve_path(self, name: str) -> Path:
        """document path inside the data directory; refuses to escape it."""
        base = get_model_dir(self.data_dir)
        file_name = Path(name).name
        if not file_name:
            raise HTTPException(status_code=400, detail="document name is required")
        if not file_name.endswith(".json"):
            file_name += ".json"
        return base / file_name


state = AppState()


def _snapshot() -> dict:
    snapshot = state.session.snapshot()
    snapshot["documentPath"] = str(state.document_path) if state.document_path else None
    return snapshot


def _commit(result: MutationResult) -> dict:
    """turn a refused operation into a 409, otherwise return the session."""
    if result.error is not None:
        raise HTTPException(status_code=409, detail=result.error.to_dict())
    return _snapshot()


def _load_failure(result: LoadResult) -> HTTPException:
    return HTTPException(
        status_code=400 if result.stage == "parse" else 422,
        detail={
            "title": "import failed",
            "stage": result.stage,
            "issues": [i.to_dict() for i in result.issues],
        },
    )


def _point(body: PointBody) -> CurvePoint:
    return CurvePoint(body.x, body.y)


# --- app ---

app = FastAPI(
    title="model canvas api",
    description="REST API for editing numerical models on a canvas",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(UnknownIdError)
async def unknown_id_handler(request: Request, exc: UnknownIdError):
    return JSONResponse(status_code=404, content={"detail": exc.args[0] if exc.args else "not found"})


# --- endpoints: document ---

@app.get("/health")
async def health():
    """health check."""
    return {"status": "ok"}


@app.get("/model")
async def get_model():
    """current model, positions, selection and draft."""
    return _snapshot()


@app.post("/model/new")
async def new_model():
    """discard the current model and start empty."""
    state.session.reset()
    state.document_path = None
    return _snapshot()


@app.post("/model/import")
async def import_model(file: UploadFile = File(...)):
    """import an uploaded json document, replacing the current model."""
    result = await state.session.import_document(file.read)
    if result is None:
        raise HTTPException(status_code=409, detail="import superseded by a newer import")
    if not result.ok:
        raise _load_failure(result)
    state.document_path = None
    return _snapshot()


@app.post("/model/validate")
async def validate_document(
    document: Any = Body(...),
    export: bool = Query(False, description="also apply the export-only rules"),
):
    """validate an arbitrary json document without loading it."""
    if export and isinstance(document, dict):
        return validate_for_export(document).to_dict()
    return validate_model(document).to_dict()


@app.get("/model/export")
async def export_model():
    """download the model as json; refused while export validation fails."""
    result = state.session.export_document()
    if not result.ok:
        raise HTTPException(
            status_code=422,
            detail={"title": "export failed", "issues": [i.to_dict() for i in result.issues]},
        )
    return Response(
        content=result.text,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


@app.post("/model/save")
async def save_model(req: DocumentLocation):
    """write the exported document into the data directory."""
    path = state.resolve_path(req.name)
    result = state.session.export_document()
    if not result.ok:
        raise HTTPException(
            status_code=422,
            detail={"title": "export failed", "issues": [i.to_dict() for i in result.issues]},
        )
    path.write_text(result.text, encoding="utf-8")
    state.document_path = path
    logger.info("saved document to %s", path)
    return {"status": "saved", "path": str(path)}


@app.post("/model/load")
async def load_model(req: DocumentLocation):
    """load a document from the data directory."""
    path = state.resolve_path(req.name)
    if not path.exists():
        raise HTTPException(status_code=404, detail=f"document not found: {path.name}")

    async def read() -> bytes:
        return await asyncio.to_thread(path.read_bytes)

    result = await state.session.import_document(read)
    if result is None:
        raise HTTPException(status_code=409, detail="load superseded by a newer import")
    if not result.ok:
        raise _load_failure(result)
    state.document_path = path
    return _snapshot()


# --- endpoints: layout ---

@app.post("/layout/auto")
async def layout_auto():
    """re-place every object on the default grid."""
    state.session.auto_layout()
    return _snapshot()


@app.put("/positions/{object_id}")
async def move_object(object_id: str, req: PointBody):
    """store where a finished drag left an object."""
    state.session.move_object(object_id, Position(req.x, req.y))
    return _snapshot()


# --- endpoints: objects ---

@app.post("/objects")
async def create_object(req: ObjectCreate):
    position = Position(req.position.x, req.position.y) if req.position else None
    return _commit(state.session.create_object(position))


@app.put("/objects/{object_id}")
async def update_object(object_id: str, req: ObjectEdit):
    return _commit(state.session.update_object(object_id, **req.model_dump()))


@app.delete("/objects/{object_id}")
async def delete_object(object_id: str):
    """delete an object; 409 while relationships still reference it."""
    return _commit(state.session.delete_object(object_id))


@app.post("/objects/{object_id}/attributes")
async def add_attribute(object_id: str):
    return _commit(state.session.add_attribute(object_id))


@app.put("/objects/{object_id}/attributes/{index}")
async def update_attribute(object_id: str, index: int, req: AttributeEdit):
    return _commit(state.session.update_attribute(object_id, index, **req.model_dump()))


@app.delete("/objects/{object_id}/attributes/{index}")
async def delete_attribute(object_id: str, index: int):
    return _commit(state.session.delete_attribute(object_id, index))


# --- endpoints: relationships ---

@app.post("/relationships")
async def create_relationship(req: RelationshipCreate):
    """create a relationship; 409 for self links or an already connected pair."""
    return _commit(
        state.session.create_relationship(req.from_id, req.to_id, req.from_handle, req.to_handle)
    )


@app.put("/relationships/{relationship_id}")
async def update_relationship(relationship_id: str, req: RelationshipEdit):
    return _commit(state.session.update_relationship(relationship_id, **req.model_dump()))


@app.post("/relationships/{relationship_id}/reconnect")
async def reconnect_relationship(relationship_id: str, req: ReconnectRequest):
    return _commit(
        state.session.reconnect_relationship(
            relationship_id,
            new_from_id=req.from_id,
            new_to_id=req.to_id,
            new_from_handle=req.from_handle,
            new_to_handle=req.to_handle,
        )
    )


@app.delete("/relationships/{relationship_id}")
async def delete_relationship(relationship_id: str):
    return _commit(state.session.delete_relationship(relationship_id))


@app.post("/relationships/{relationship_id}/curve-points")
async def insert_curve_point(relationship_id: str, req: CurvePointInsert):
    return _commit(
        state.session.insert_curve_point(relationship_id, _point(req.point), req.insert_index)
    )


@app.put("/relationships/{relationship_id}/curve-points/{index}")
async def move_curve_point(relationship_id: str, index: int, req: PointBody):
    return _commit(state.session.move_curve_point(relationship_id, index, _point(req)))


@app.delete("/relationships/{relationship_id}/curve-points/{index}")
async def delete_curve_point(relationship_id: str, index: int):
    return _commit(state.session.delete_curve_point(relationship_id, index))


# --- endpoints: relationship draft ---

@app.post("/draft/start")
async def start_draft(req: DraftStart):
    """enter relationship creation mode, optionally with the source picked."""
    state.session.start_relationship(req.from_id)
    return _snapshot()


@app.post("/draft/pick/{object_id}")
async def pick_draft_endpoint(object_id: str):
    """pick the next endpoint; the second pick creates the relationship."""
    result = state.session.pick_endpoint(object_id)
    if result is None:
        return _snapshot()
    return _commit(result)


@app.post("/draft/cancel")
async def cancel_draft():
    state.session.cancel_relationship()
    return _snapshot()


# --- endpoints: geometry ---

@app.post("/geometry/path")
async def curve_path(req: PathRequest):
    """svg path through the given points."""
    return {"path": build_catmull_rom_path(req.points, req.tension)}


@app.post("/geometry/nearest-segment")
async def nearest_segment(req: NearestSegmentRequest):
    """segment of the polyline closest to point, and the curve point insert index."""
    hit = nearest_segment_for_point(req.points, req.point)
    if hit is None:
        raise HTTPException(status_code=400, detail="at least two points are required")
    return {
        "segment_index": hit.segment_index,
        "insert_index": hit.insert_index,
        "distance_sq": hit.distance_sq,
    }


# --- entrypoint ---

def main():
    """run the api server."""
    import argparse
    import uvicorn

    from ..core.document import load_document

    parser = argparse.ArgumentParser(description="model canvas api server")
    parser.add_argument("--host", default="127.0.0.1", help="host to bind")
    parser.add_argument("--port", "-p", type=int, default=8000, help="port to bind")
    parser.add_argument("--reload", action="store_true", help="enable auto-reload")
    parser.add_argument(
        "--data-dir",
        "-d",
        help="directory for saved documents (default: $MODEL_CANVAS_DIR or ~/.model-canvas)",
    )
    parser.add_argument("--document", help="json document to open on startup")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="log level (default: INFO)",
    )
    parser.add_argument("--log-file", help="also write logs to this file")

    args = parser.parse_args()
    setup_logging(getattr(logging, args.log_level), args.log_file)

    # configure state
    global state
    state = AppState(data_dir=args.data_dir)
    if args.document:
        path = Path(args.document).expanduser()
        result = load_document(path.read_bytes())
        if not result.ok:
            for issue in result.issues:
                logger.error("%s: %s", args.document, issue.message)
            raise SystemExit(1)
        state.session = EditorSession(result.model, result.positions)
        state.document_path = path

    uvicorn.run(
        "model_canvas.api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()

"""core primitives shared between frontends."""

from .models import (
    ArrowType,
    HandleLocation,
    Attribute,
    Entity,
    CurvePoint,
    Position,
    Relationship,
    ModelData,
    SCHEMA_VERSION,
    MAX_CURVE_POINTS,
    create_id,
    create_empty_attribute,
    get_model_dir,
)
from .validation import (
    ValidationIssue,
    ValidationResult,
    validate_model,
    validate_for_export,
    coerce_model,
)
from .curve_path import SegmentHit, build_catmull_rom_path, nearest_segment_for_point
from .layout import auto_layout, next_grid_position, fill_missing_positions
from .mutations import (
    GuardKind,
    OperationError,
    MutationResult,
    UnknownIdError,
    DraftState,
    RelationshipDraft,
)
from .document import LoadResult, ExportResult, load_document, dump_document, export_document
from .session import EditorSession, Selection

__all__ = [
    # models
    "ArrowType",
    "HandleLocation",
    "Attribute",
    "Entity",
    "CurvePoint",
    "Position",
    "Relationship",
    "ModelData",
    "SCHEMA_VERSION",
    "MAX_CURVE_POINTS",
    "create_id",
    "create_empty_attribute",
    "get_model_dir",
    # validation
    "ValidationIssue",
    "ValidationResult",
    "validate_model",
    "validate_for_export",
    "coerce_model",
    # geometry
    "SegmentHit",
    "build_catmull_rom_path",
    "nearest_segment_for_point",
    # layout
    "auto_layout",
    "next_grid_position",
    "fill_missing_positions",
    # mutations
    "GuardKind",
    "OperationError",
    "MutationResult",
    "UnknownIdError",
    "DraftState",
    "RelationshipDraft",
    # documents
    "LoadResult",
    "ExportResult",
    "load_document",
    "dump_document",
    "export_document",
    # session
    "EditorSession",
    "Selection",
]

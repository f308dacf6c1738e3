"""json document import/export.

a document is the model plus the positions map:

    {"schemaVersion": 1, "objects": [...], "relationships": [...],
     "positions": {"<objectId>": {"x": 0, "y": 0}}}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional, Union

from .layout import fill_missing_positions, positions_to_dict
from .models import SCHEMA_VERSION, ModelData, Position
from .validation import ValidationIssue, coerce_model, validate_for_export, validate_model

logger = logging.getLogger(__name__)

EXPORT_FILENAME = "numerical-model.json"

LoadStage = Literal["parse", "schema"]


@dataclass(frozen=True)
class LoadResult:
    """outcome of reading a document. on failure nothing is partially loaded."""

    ok: bool
    issues: tuple[ValidationIssue, ...] = ()
    stage: Optional[LoadStage] = None  # set when ok is False
    model: Optional[ModelData] = None
    positions: dict[str, Position] = field(default_factory=dict)


@dataclass(frozen=True)
class ExportResult:
    ok: bool
    issues: tuple[ValidationIssue, ...] = ()
    text: Optional[str] = None


def _reject_constant(name: str):
    raise ValueError(f"{name} is not allowed in JSON")


def _parse_failure(detail: str) -> LoadResult:
    logger.info("document could not be parsed: %s", detail)
    return LoadResult(
        ok=False,
        stage="parse",
        issues=(
            ValidationIssue(
                f"invalid JSON: {detail}",
                suggestion="check that the file contains valid JSON",
            ),
        ),
    )


def load_document(raw: Union[bytes, str]) -> LoadResult:
    """parse, validate and coerce a whole document."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            return _parse_failure(f"file is not UTF-8 text ({e.reason})")

    try:
        parsed = json.loads(raw, parse_constant=_reject_constant)
    except ValueError as e:
        # json.JSONDecodeError is a ValueError subclass
        return _parse_failure(str(e))

    result = validate_model(parsed)
    if not result.ok:
        logger.info("document rejected with %d issue(s)", len(result.issues))
        return LoadResult(ok=False, stage="schema", issues=result.issues)

    model = coerce_model(parsed)
    stored = parsed.get("positions")
    positions = fill_missing_positions(model.objects, stored if isinstance(stored, dict) else {})
    logger.info(
        "loaded document: %d object(s), %d relationship(s)",
        len(model.objects),
        len(model.relationships),
    )
    return LoadResult(ok=True, model=model, positions=positions)


def dump_document(model: ModelData, positions: Mapping[str, Position]) -> str:
    """serialize model and positions, pretty printed."""
    data = model.to_dict()
    data["schemaVersion"] = SCHEMA_VERSION
    data["positions"] = positions_to_dict(positions)
    # a NaN would be written as a bare literal that load_document refuses
    return json.dumps(data, indent=2, ensure_ascii=False, allow_nan=False)


def export_document(model: ModelData, positions: Mapping[str, Position]) -> ExportResult:
    """dump_document, refused unless validate_for_export is clean for model and positions."""
    result = validate_for_export(dict(model.to_dict(), positions=positions_to_dict(positions)))
    if not result.ok:
        return ExportResult(ok=False, issues=result.issues)
    return ExportResult(ok=True, text=dump_document(model, positions))

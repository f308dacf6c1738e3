"""schema validation and coercion for imported model documents.

validate_model never raises: it walks the whole document and reports every
problem it finds, so a user can fix them all in one round trip.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .models import (
    SCHEMA_VERSION,
    MAX_CURVE_POINTS,
    DEFAULT_FROM_HANDLE,
    DEFAULT_TO_HANDLE,
    ArrowType,
    Attribute,
    CurvePoint,
    Entity,
    HandleLocation,
    ModelData,
    Relationship,
)

logger = logging.getLogger(__name__)

ARROW_TYPES = tuple(a.value for a in ArrowType)
HANDLE_LOCATIONS = tuple(h.value for h in HandleLocation)


@dataclass(frozen=True)
class ValidationIssue:
    """one user facing problem with a document or an operation."""

    message: str
    field_path: Optional[str] = None
    id: Optional[str] = None
    suggestion: Optional[str] = None

    def to_dict(self) -> dict:
        d: dict[str, str] = {"message": self.message}
        if self.field_path is not None:
            d["fieldPath"] = self.field_path
        if self.id is not None:
            d["id"] = self.id
        if self.suggestion is not None:
            d["suggestion"] = self.suggestion
        return d


@dataclass(frozen=True)
class ValidationResult:
    ok: bool
    issues: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {"ok": self.ok, "issues": [i.to_dict() for i in self.issues]}


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # json integers are unbounded; anything past float range is no coordinate
        return False


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _owner(value: Any) -> Optional[str]:
    # issues only carry an owning id when that id is itself a string
    return value if isinstance(value, str) else None


def _result(issues: list[ValidationIssue]) -> ValidationResult:
    return ValidationResult(ok=not issues, issues=tuple(issues))


def validate_model(data: Any) -> ValidationResult:
    """validate an arbitrary parsed json value as a model document."""
    if isinstance(data, ModelData):
        data = data.to_dict()

    issues: list[ValidationIssue] = []

    def push(message, field_path=None, id=None, suggestion=None):
        issues.append(ValidationIssue(message, field_path, id, suggestion))

    if not isinstance(data, dict):
        push("document root must be a JSON object")
        return _result(issues)

    objects = data.get("objects")
    relationships = data.get("relationships")

    if not isinstance(objects, list):
        push("objects must be an array", "objects")
    if not isinstance(relationships, list):
        push("relationships must be an array", "relationships")

    object_ids: set[str] = set()
    duplicate_object_ids: list[str] = []

    if isinstance(objects, list):
        for index, obj in enumerate(objects):
            base = f"objects[{index}]"
            if not isinstance(obj, dict):
                push("object must be a JSON object", base)
                continue

            obj_id = obj.get("id")
            owner = _owner(obj_id)
            if not _is_non_empty_string(obj_id):
                push("object id must be a non-empty string", f"{base}.id")
            elif obj_id in object_ids:
                if obj_id not in duplicate_object_ids:
                    duplicate_object_ids.append(obj_id)
            else:
                object_ids.add(obj_id)

            if not isinstance(obj.get("name"), str):
                push("object name must be a string", f"{base}.name", owner)
            if not isinstance(obj.get("description"), str):
                push("object description must be a string", f"{base}.description", owner)

            attributes = obj.get("attributes")
            if not isinstance(attributes, list):
                push("object attributes must be an array", f"{base}.attributes", owner)
                continue
            for attr_index, attr in enumerate(attributes):
                attr_path = f"{base}.attributes[{attr_index}]"
                if not isinstance(attr, dict):
                    push("attribute must be a JSON object", attr_path, owner)
                    continue
                for key in ("name", "description", "formula"):
                    if not isinstance(attr.get(key), str):
                        push(f"attribute {key} must be a string", f"{attr_path}.{key}", owner)

    if duplicate_object_ids:
        push(
            f"duplicate object ids: {', '.join(duplicate_object_ids)}",
            "objects",
            suggestion="make sure every object id is unique",
        )

    if "positions" in data:
        _validate_positions(data["positions"], object_ids, push)

    relationship_ids: set[str] = set()
    duplicate_relationship_ids: list[str] = []
    seen_pairs: dict[frozenset[str], str] = {}

    if isinstance(relationships, list):
        for index, rel in enumerate(relationships):
            base = f"relationships[{index}]"
            if not isinstance(rel, dict):
                push("relationship must be a JSON object", base)
                continue

            rel_id = rel.get("id")
            owner = _owner(rel_id)
            if not _is_non_empty_string(rel_id):
                push("relationship id must be a non-empty string", f"{base}.id")
            elif rel_id in relationship_ids:
                if rel_id not in duplicate_relationship_ids:
                    duplicate_relationship_ids.append(rel_id)
            else:
                relationship_ids.add(rel_id)

            if not isinstance(rel.get("name"), str):
                push("relationship name must be a string", f"{base}.name", owner)
            if not isinstance(rel.get("description"), str):
                push("relationship description must be a string", f"{base}.description", owner)

            endpoints_ok = True
            for key in ("fromId", "toId"):
                ref = rel.get(key)
                if not _is_non_empty_string(ref):
                    push(f"relationship {key} must be a non-empty string", f"{base}.{key}", owner)
                    endpoints_ok = False
                elif ref not in object_ids:
                    push(
                        f'{key} references unknown object id "{ref}"',
                        f"{base}.{key}",
                        owner,
                        f"fix {key} or add the missing object",
                    )
                    endpoints_ok = False

            if endpoints_ok:
                from_id, to_id = rel["fromId"], rel["toId"]
                if from_id == to_id:
                    push(
                        f'relationship must connect two different objects (both ends are "{from_id}")',
                        f"{base}.toId",
                        owner,
                        "point fromId and toId at different objects",
                    )
                else:
                    pair = frozenset((from_id, to_id))
                    if pair in seen_pairs:
                        push(
                            f'duplicate relationship between objects "{from_id}" and "{to_id}"'
                            f' (already connected by "{seen_pairs[pair]}")',
                            base,
                            owner,
                            "keep at most one relationship per pair of objects",
                        )
                    else:
                        seen_pairs[pair] = owner or base

            arrow_type = rel.get("arrowType")
            if arrow_type not in ARROW_TYPES:
                push(
                    f"arrowType must be one of {' / '.join(ARROW_TYPES)}",
                    f"{base}.arrowType",
                    owner,
                )

            for key in ("fromHandle", "toHandle"):
                if key in rel and rel[key] not in HANDLE_LOCATIONS:
                    push(
                        f"{key} must be one of {' / '.join(HANDLE_LOCATIONS)}",
                        f"{base}.{key}",
                        owner,
                    )

            if not isinstance(rel.get("label"), str):
                push("relationship label must be a string", f"{base}.label", owner)

            if "curvePoints" in rel:
                _validate_curve_points(rel["curvePoints"], f"{base}.curvePoints", owner, push)

    if duplicate_relationship_ids:
        push(
            f"duplicate relationship ids: {', '.join(duplicate_relationship_ids)}",
            "relationships",
            suggestion="make sure every relationship id is unique",
        )

    return _result(issues)


def _validate_positions(positions: Any, object_ids: set[str], push) -> None:
    if not isinstance(positions, dict):
        push(
            "positions must be an object mapping ({ [objectId]: {x, y} })",
            "positions",
            suggestion="remove the field or provide a position mapping",
        )
        return

    for object_id, raw in positions.items():
        # unknown ids are tolerated (partial layouts, newer exports)
        if object_id not in object_ids:
            continue
        base = f"positions.{object_id}"
        if not isinstance(raw, dict):
            push(
                "position must be an object ({x, y})",
                base,
                object_id,
                "provide { x: number, y: number } for this object",
            )
            continue
        for axis in ("x", "y"):
            if not is_finite_number(raw.get(axis)):
                push(f"positions.{axis} must be a finite number", f"{base}.{axis}", object_id)


def _validate_curve_points(curve_points: Any, path: str, owner: Optional[str], push) -> None:
    if not isinstance(curve_points, list):
        push(
            "relationship curvePoints must be an array",
            path,
            owner,
            f"remove the field or provide an array of at most {MAX_CURVE_POINTS} points",
        )
        return

    if len(curve_points) > MAX_CURVE_POINTS:
        push(
            f"relationship curvePoints cannot hold more than {MAX_CURVE_POINTS} points",
            path,
            owner,
            f"remove the extra control points (at most {MAX_CURVE_POINTS})",
        )

    for index, point in enumerate(curve_points):
        point_path = f"{path}[{index}]"
        if not isinstance(point, dict):
            push("curve point must be a JSON object", point_path, owner)
            continue
        for axis in ("x", "y"):
            if not is_finite_number(point.get(axis)):
                push(f"curve point {axis} must be a finite number", f"{point_path}.{axis}", owner)


def validate_for_export(data: Union[ModelData, dict]) -> ValidationResult:
    """validate_model plus the export-only rule that every object is named."""
    if isinstance(data, ModelData):
        data = data.to_dict()

    base = validate_model(data)
    if not base.ok:
        return base

    issues = list(base.issues)
    for index, obj in enumerate(data["objects"]):
        if obj["name"].strip() == "":
            issues.append(
                ValidationIssue(
                    "object name cannot be empty when exporting",
                    f"objects[{index}].name",
                    obj["id"],
                    "name the object before exporting",
                )
            )

    if issues:
        logger.info("export blocked by %d issue(s)", len(issues))
    return _result(issues)


def coerce_model(data: Union[ModelData, dict]) -> ModelData:
    """fill every missing optional field with its default.

    expects input that already passed validate_model; it never rejects, it
    only fills gaps. curvePoints is passed through (absent stays absent).
    """
    if isinstance(data, ModelData):
        data = data.to_dict()

    schema_version = data.get("schemaVersion")
    if isinstance(schema_version, bool) or not isinstance(schema_version, int):
        schema_version = SCHEMA_VERSION

    objects = tuple(_coerce_object(obj) for obj in data.get("objects") or [])
    relationships = tuple(_coerce_relationship(rel) for rel in data.get("relationships") or [])
    return ModelData(schema_version=schema_version, objects=objects, relationships=relationships)


def _str_or_empty(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _coerce_attribute(attr: Any) -> Attribute:
    if not isinstance(attr, dict):
        return Attribute()
    return Attribute(
        name=_str_or_empty(attr.get("name")),
        description=_str_or_empty(attr.get("description")),
        formula=_str_or_empty(attr.get("formula")),
    )


def _coerce_object(obj: dict) -> Entity:
    attributes = obj.get("attributes")
    if not isinstance(attributes, list):
        attributes = []
    return Entity(
        id=_str_or_empty(obj.get("id")),
        name=_str_or_empty(obj.get("name")),
        description=_str_or_empty(obj.get("description")),
        attributes=tuple(_coerce_attribute(attr) for attr in attributes),
    )


def _coerce_relationship(rel: dict) -> Relationship:
    from_handle = rel.get("fromHandle")
    to_handle = rel.get("toHandle")
    arrow_type = rel.get("arrowType")
    curve_points = rel.get("curvePoints")
    return Relationship(
        id=_str_or_empty(rel.get("id")),
        name=_str_or_empty(rel.get("name")),
        description=_str_or_empty(rel.get("description")),
        from_id=_str_or_empty(rel.get("fromId")),
        to_id=_str_or_empty(rel.get("toId")),
        from_handle=HandleLocation(from_handle) if from_handle in HANDLE_LOCATIONS else DEFAULT_FROM_HANDLE,
        to_handle=HandleLocation(to_handle) if to_handle in HANDLE_LOCATIONS else DEFAULT_TO_HANDLE,
        arrow_type=ArrowType(arrow_type) if arrow_type in ARROW_TYPES else ArrowType.SINGLE,
        label=_str_or_empty(rel.get("label")),
        curve_points=(
            tuple(CurvePoint(p.get("x"), p.get("y")) for p in curve_points if isinstance(p, dict))
            if isinstance(curve_points, list)
            else None
        ),
    )

"""graph mutation engine.

every operation takes a ModelData and returns a MutationResult holding the
next model. a rejected operation returns the untouched model plus an
OperationError; nothing is ever half applied. unknown ids are caller bugs
and raise UnknownIdError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from .models import (
    MAX_CURVE_POINTS,
    DEFAULT_OBJECT_NAME,
    DEFAULT_RELATIONSHIP_NAME,
    DEFAULT_FROM_HANDLE,
    DEFAULT_TO_HANDLE,
    ArrowType,
    Attribute,
    CurvePoint,
    Entity,
    HandleLocation,
    ModelData,
    Relationship,
    create_id,
    create_empty_attribute,
)
from .validation import ValidationIssue, is_finite_number

logger = logging.getLogger(__name__)


class UnknownIdError(KeyError):
    """an operation referenced an object or relationship that does not exist."""


class GuardKind(str, Enum):
    SELF_RELATIONSHIP = "self_relationship"
    DUPLICATE_PAIR = "duplicate_pair"
    HAS_REFERENCES = "has_references"
    CURVE_POINT_CAPACITY = "curve_point_capacity"


@dataclass(frozen=True)
class OperationError:
    """why an operation was refused."""

    kind: GuardKind
    title: str
    issue: ValidationIssue

    def to_dict(self) -> dict:
        return {"title": self.title, "kind": self.kind.value, "issues": [self.issue.to_dict()]}


@dataclass(frozen=True)
class MutationResult:
    model: ModelData
    error: Optional[OperationError] = None
    changed: bool = False
    created_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _rejected(model: ModelData, error: OperationError) -> MutationResult:
    logger.info("%s: %s", error.title, error.issue.message)
    return MutationResult(model=model, error=error)


def _self_relationship_error(title: str) -> OperationError:
    return OperationError(
        GuardKind.SELF_RELATIONSHIP,
        title,
        ValidationIssue(
            "source and target cannot be the same object",
            suggestion="pick two different objects",
        ),
    )


def _duplicate_pair_error(title: str, existing: Relationship) -> OperationError:
    return OperationError(
        GuardKind.DUPLICATE_PAIR,
        title,
        ValidationIssue(
            "a relationship already exists between these two objects",
            id=existing.id,
            suggestion="edit the existing relationship or pick other objects",
        ),
    )


def find_pair_conflict(
    model: ModelData,
    from_id: str,
    to_id: str,
    exclude_id: Optional[str] = None,
) -> Optional[Relationship]:
    """first relationship (other than exclude_id) joining {from_id, to_id} in either direction."""
    pair = frozenset((from_id, to_id))
    for rel in model.relationships:
        if rel.id != exclude_id and rel.pair == pair:
            return rel
    return None


def _require_object(model: ModelData, object_id: str) -> Entity:
    obj = model.get_object(object_id)
    if obj is None:
        raise UnknownIdError(f"object not found: {object_id}")
    return obj


def _require_relationship(model: ModelData, relationship_id: str) -> Relationship:
    rel = model.get_relationship(relationship_id)
    if rel is None:
        raise UnknownIdError(f"relationship not found: {relationship_id}")
    return rel


def finite_point(point) -> CurvePoint:
    """copy point as a CurvePoint; non-finite coordinates are a caller bug."""
    if not (is_finite_number(point.x) and is_finite_number(point.y)):
        raise ValueError(f"point coordinates must be finite numbers, got ({point.x!r}, {point.y!r})")
    return CurvePoint(point.x, point.y)


def _with_object(model: ModelData, updated: Entity) -> ModelData:
    return replace(
        model,
        objects=tuple(updated if obj.id == updated.id else obj for obj in model.objects),
    )


def _with_relationship(model: ModelData, updated: Relationship) -> ModelData:
    return replace(
        model,
        relationships=tuple(updated if rel.id == updated.id else rel for rel in model.relationships),
    )


# --- objects ---

def create_object(model: ModelData, name: str = DEFAULT_OBJECT_NAME) -> MutationResult:
    obj = Entity(id=create_id("obj"), name=name)
    logger.debug("created object %s", obj.id)
    return MutationResult(
        model=replace(model, objects=model.objects + (obj,)),
        changed=True,
        created_id=obj.id,
    )


def update_object(
    model: ModelData,
    object_id: str,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> MutationResult:
    """edit object fields; name may be empty while editing."""
    current = _require_object(model, object_id)
    updated = replace(
        current,
        name=current.name if name is None else name,
        description=current.description if description is None else description,
    )
    if updated == current:
        return MutationResult(model=model)
    return MutationResult(model=_with_object(model, updated), changed=True)


def add_attribute(model: ModelData, object_id: str) -> MutationResult:
    current = _require_object(model, object_id)
    updated = replace(current, attributes=current.attributes + (create_empty_attribute(),))
    return MutationResult(model=_with_object(model, updated), changed=True)


def update_attribute(
    model: ModelData,
    object_id: str,
    index: int,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    formula: Optional[str] = None,
) -> MutationResult:
    current = _require_object(model, object_id)
    if not 0 <= index < len(current.attributes):
        return MutationResult(model=model)

    attr = current.attributes[index]
    new_attr = Attribute(
        name=attr.name if name is None else name,
        description=attr.description if description is None else description,
        formula=attr.formula if formula is None else formula,
    )
    if new_attr == attr:
        return MutationResult(model=model)

    attributes = current.attributes[:index] + (new_attr,) + current.attributes[index + 1:]
    return MutationResult(model=_with_object(model, replace(current, attributes=attributes)), changed=True)


def delete_attribute(model: ModelData, object_id: str, index: int) -> MutationResult:
    current = _require_object(model, object_id)
    if not 0 <= index < len(current.attributes):
        return MutationResult(model=model)
    attributes = current.attributes[:index] + current.attributes[index + 1:]
    return MutationResult(model=_with_object(model, replace(current, attributes=attributes)), changed=True)


def delete_object(model: ModelData, object_id: str) -> MutationResult:
    """remove an object, refused while any relationship still references it."""
    _require_object(model, object_id)
    references = model.relationships_for(object_id)
    if references:
        return _rejected(
            model,
            OperationError(
                GuardKind.HAS_REFERENCES,
                "cannot delete object",
                ValidationIssue(
                    f"the object is still referenced by {len(references)} relationship(s)",
                    id=object_id,
                    suggestion="delete the related relationships first, then delete the object",
                ),
            ),
        )
    logger.debug("deleted object %s", object_id)
    return MutationResult(
        model=replace(model, objects=tuple(o for o in model.objects if o.id != object_id)),
        changed=True,
    )


# --- relationships ---

def create_relationship(
    model: ModelData,
    from_id: str,
    to_id: str,
    from_handle: HandleLocation = DEFAULT_FROM_HANDLE,
    to_handle: HandleLocation = DEFAULT_TO_HANDLE,
    name: str = DEFAULT_RELATIONSHIP_NAME,
) -> MutationResult:
    title = "cannot create relationship"
    if from_id == to_id:
        return _rejected(model, _self_relationship_error(title))

    _require_object(model, from_id)
    _require_object(model, to_id)

    existing = find_pair_conflict(model, from_id, to_id)
    if existing is not None:
        return _rejected(model, _duplicate_pair_error(title, existing))

    rel = Relationship(
        id=create_id("rel"),
        name=name,
        from_id=from_id,
        to_id=to_id,
        from_handle=HandleLocation(from_handle),
        to_handle=HandleLocation(to_handle),
        arrow_type=ArrowType.SINGLE,
        label="",
    )
    logger.debug("created relationship %s (%s -> %s)", rel.id, from_id, to_id)
    return MutationResult(
        model=replace(model, relationships=model.relationships + (rel,)),
        changed=True,
        created_id=rel.id,
    )


def update_relationship(
    model: ModelData,
    relationship_id: str,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
    label: Optional[str] = None,
    arrow_type: Union[ArrowType, str, None] = None,
) -> MutationResult:
    """edit descriptive fields. endpoints go through reconnect_relationship."""
    current = _require_relationship(model, relationship_id)
    updated = replace(
        current,
        name=current.name if name is None else name,
        description=current.description if description is None else description,
        label=current.label if label is None else label,
        # ArrowType() raises ValueError on values outside the enum
        arrow_type=current.arrow_type if arrow_type is None else ArrowType(arrow_type),
    )
    if updated == current:
        return MutationResult(model=model)
    return MutationResult(model=_with_relationship(model, updated), changed=True)


def reconnect_relationship(
    model: ModelData,
    relationship_id: str,
    new_from_id: Optional[str] = None,
    new_to_id: Optional[str] = None,
    new_from_handle: Optional[HandleLocation] = None,
    new_to_handle: Optional[HandleLocation] = None,
) -> MutationResult:
    """move either end of a relationship; omitted values are kept.

    returns an unchanged result (no error) when nothing would change. the
    pair rule is checked against every other relationship, so a handle-only
    change can never collide.
    """
    title = "cannot update relationship"
    current = _require_relationship(model, relationship_id)

    from_id = current.from_id if new_from_id is None else new_from_id
    to_id = current.to_id if new_to_id is None else new_to_id
    from_handle = current.from_handle if new_from_handle is None else HandleLocation(new_from_handle)
    to_handle = current.to_handle if new_to_handle is None else HandleLocation(new_to_handle)

    if (from_id, to_id, from_handle, to_handle) == (
        current.from_id,
        current.to_id,
        current.from_handle,
        current.to_handle,
    ):
        return MutationResult(model=model)

    if from_id == to_id:
        return _rejected(model, _self_relationship_error(title))

    _require_object(model, from_id)
    _require_object(model, to_id)

    if (from_id, to_id) != (current.from_id, current.to_id):
        existing = find_pair_conflict(model, from_id, to_id, exclude_id=relationship_id)
        if existing is not None:
            return _rejected(model, _duplicate_pair_error(title, existing))

    updated = replace(
        current,
        from_id=from_id,
        to_id=to_id,
        from_handle=from_handle,
        to_handle=to_handle,
    )
    logger.debug("reconnected relationship %s (%s -> %s)", relationship_id, from_id, to_id)
    return MutationResult(model=_with_relationship(model, updated), changed=True)


def delete_relationship(model: ModelData, relationship_id: str) -> MutationResult:
    _require_relationship(model, relationship_id)
    return MutationResult(
        model=replace(
            model,
            relationships=tuple(r for r in model.relationships if r.id != relationship_id),
        ),
        changed=True,
    )


# --- curve points ---

def insert_curve_point(
    model: ModelData,
    relationship_id: str,
    point: CurvePoint,
    insert_index: int,
) -> MutationResult:
    current = _require_relationship(model, relationship_id)
    new_point = finite_point(point)
    existing = current.curve_points or ()
    if len(existing) >= MAX_CURVE_POINTS:
        return _rejected(
            model,
            OperationError(
                GuardKind.CURVE_POINT_CAPACITY,
                "cannot add curve point",
                ValidationIssue(
                    f"a relationship cannot have more than {MAX_CURVE_POINTS} curve points",
                    "relationships[].curvePoints",
                    relationship_id,
                    "delete a curve point before adding another",
                ),
            ),
        )

    index = max(0, min(len(existing), insert_index))
    points = existing[:index] + (new_point,) + existing[index:]
    return MutationResult(
        model=_with_relationship(model, replace(current, curve_points=points)),
        changed=True,
    )


def delete_curve_point(model: ModelData, relationship_id: str, index: int) -> MutationResult:
    current = _require_relationship(model, relationship_id)
    existing = current.curve_points or ()
    if not 0 <= index < len(existing):
        return MutationResult(model=model)
    points = existing[:index] + existing[index + 1:]
    return MutationResult(
        model=_with_relationship(model, replace(current, curve_points=points)),
        changed=True,
    )


def move_curve_point(
    model: ModelData,
    relationship_id: str,
    index: int,
    point: CurvePoint,
) -> MutationResult:
    current = _require_relationship(model, relationship_id)
    moved = finite_point(point)
    existing = current.curve_points or ()
    if not 0 <= index < len(existing):
        return MutationResult(model=model)
    if existing[index] == moved:
        return MutationResult(model=model)
    points = existing[:index] + (moved,) + existing[index + 1:]
    return MutationResult(
        model=_with_relationship(model, replace(current, curve_points=points)),
        changed=True,
    )


# --- relationship draft ---

class DraftState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST = "awaiting_first"
    AWAITING_SECOND = "awaiting_second"


@dataclass(frozen=True)
class RelationshipDraft:
    """pending relationship creation: which endpoint the user picks next."""

    state: DraftState = DraftState.IDLE
    from_id: Optional[str] = None

    @classmethod
    def start(cls, from_id: Optional[str] = None) -> RelationshipDraft:
        if from_id is None:
            return cls(DraftState.AWAITING_FIRST)
        return cls(DraftState.AWAITING_SECOND, from_id)

    def pick(self, object_id: str) -> tuple[RelationshipDraft, Optional[tuple[str, str]]]:
        """advance with a picked object.

        returns the next draft and, once both ends are known, the
        (from_id, to_id) pair to hand to create_relationship. the draft is
        idle again after the second pick whether or not creation succeeds.
        """
        if self.state is DraftState.AWAITING_FIRST:
            return RelationshipDraft(DraftState.AWAITING_SECOND, object_id), None
        if self.state is DraftState.AWAITING_SECOND:
            return RelationshipDraft(), (self.from_id, object_id)
        return self, None

    def cancel(self) -> RelationshipDraft:
        return RelationshipDraft()

    @property
    def active(self) -> bool:
        return self.state is not DraftState.IDLE

    def to_dict(self) -> dict:
        return {"state": self.state.value, "fromId": self.from_id}

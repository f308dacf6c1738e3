"""editor session: one model being edited, plus the ui state around it.

the session applies mutation results, keeps selection and positions in step
with the model, and surfaces the last refused operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Literal, Optional, Union

from . import mutations
from .document import ExportResult, LoadResult, export_document, load_document
from .layout import auto_layout, next_grid_position, positions_to_dict
from .models import (
    DEFAULT_FROM_HANDLE,
    DEFAULT_TO_HANDLE,
    CurvePoint,
    HandleLocation,
    ModelData,
    Position,
)
from .mutations import MutationResult, OperationError, RelationshipDraft

logger = logging.getLogger(__name__)

SelectionKind = Literal["object", "relationship"]


@dataclass(frozen=True)
class Selection:
    kind: SelectionKind
    id: str

    def to_dict(self) -> dict:
        return {"type": self.kind, "id": self.id}


class EditorSession:
    """owns a model for the length of one editing session."""

    def __init__(self, model: Optional[ModelData] = None, positions: Optional[dict[str, Position]] = None):
        self.model = model or ModelData()
        self.positions: dict[str, Position] = (
            dict(positions) if positions is not None else auto_layout(self.model.objects)
        )
        self.selection: Optional[Selection] = None
        self.draft = RelationshipDraft()
        self.dirty = False
        self.last_error: Optional[OperationError] = None
        self._import_generation = 0

    # --- bookkeeping ---

    def _apply(self, result: MutationResult) -> MutationResult:
        if result.error is not None:
            self.last_error = result.error
            return result
        if result.changed:
            self.model = result.model
            self.dirty = True
        return result

    def _clear_selection_if(self, kind: SelectionKind, item_id: str) -> None:
        if self.selection == Selection(kind, item_id):
            self.selection = None

    def clear_error(self) -> None:
        self.last_error = None

    def select(self, kind: Optional[SelectionKind], item_id: Optional[str] = None) -> None:
        """select an object/relationship, or pass kind=None to deselect."""
        if kind is None or item_id is None:
            self.selection = None
            return
        lookup = self.model.get_object if kind == "object" else self.model.get_relationship
        if lookup(item_id) is None:
            raise mutations.UnknownIdError(f"{kind} not found: {item_id}")
        self.selection = Selection(kind, item_id)

    def reset(self) -> None:
        """start over with an empty model."""
        self.model = ModelData()
        self.positions = {}
        self.selection = None
        self.draft = RelationshipDraft()
        self.dirty = False
        self.last_error = None

    # --- objects ---

    def create_object(self, position: Optional[Position] = None) -> MutationResult:
        """add an object at position, or at the next toolbar grid slot."""
        slot = mutations.finite_point(position) if position is not None else next_grid_position(len(self.model.objects))
        result = self._apply(mutations.create_object(self.model))
        self.positions[result.created_id] = Position(slot.x, slot.y)
        self.selection = Selection("object", result.created_id)
        return result

    def update_object(self, object_id: str, **fields) -> MutationResult:
        return self._apply(mutations.update_object(self.model, object_id, **fields))

    def add_attribute(self, object_id: str) -> MutationResult:
        return self._apply(mutations.add_attribute(self.model, object_id))

    def update_attribute(self, object_id: str, index: int, **fields) -> MutationResult:
        return self._apply(mutations.update_attribute(self.model, object_id, index, **fields))

    def delete_attribute(self, object_id: str, index: int) -> MutationResult:
        return self._apply(mutations.delete_attribute(self.model, object_id, index))

    def delete_object(self, object_id: str) -> MutationResult:
        result = self._apply(mutations.delete_object(self.model, object_id))
        if result.ok:
            self.positions.pop(object_id, None)
            self._clear_selection_if("object", object_id)
            if self.draft.from_id == object_id:
                self.draft = RelationshipDraft()
        return result

    def move_object(self, object_id: str, position: Position) -> None:
        """record where a finished drag left an object."""
        if self.model.get_object(object_id) is None:
            raise mutations.UnknownIdError(f"object not found: {object_id}")
        moved = mutations.finite_point(position)
        if self.positions.get(object_id) != moved:
            self.positions[object_id] = moved
            self.dirty = True

    def auto_layout(self) -> None:
        self.positions = auto_layout(self.model.objects)
        self.dirty = True

    # --- relationships ---

    def create_relationship(
        self,
        from_id: str,
        to_id: str,
        from_handle: HandleLocation = DEFAULT_FROM_HANDLE,
        to_handle: HandleLocation = DEFAULT_TO_HANDLE,
    ) -> MutationResult:
        result = self._apply(
            mutations.create_relationship(self.model, from_id, to_id, from_handle, to_handle)
        )
        if result.ok:
            self.selection = Selection("relationship", result.created_id)
            self.draft = RelationshipDraft()
        return result

    def update_relationship(self, relationship_id: str, **fields) -> MutationResult:
        return self._apply(mutations.update_relationship(self.model, relationship_id, **fields))

    def reconnect_relationship(
        self,
        relationship_id: str,
        new_from_id: Optional[str] = None,
        new_to_id: Optional[str] = None,
        new_from_handle: Optional[HandleLocation] = None,
        new_to_handle: Optional[HandleLocation] = None,
    ) -> MutationResult:
        result = self._apply(
            mutations.reconnect_relationship(
                self.model,
                relationship_id,
                new_from_id,
                new_to_id,
                new_from_handle,
                new_to_handle,
            )
        )
        if result.changed:
            self.selection = Selection("relationship", relationship_id)
        return result

    def delete_relationship(self, relationship_id: str) -> MutationResult:
        result = self._apply(mutations.delete_relationship(self.model, relationship_id))
        self._clear_selection_if("relationship", relationship_id)
        return result

    def delete_selected(self) -> Optional[MutationResult]:
        if self.selection is None:
            return None
        if self.selection.kind == "relationship":
            return self.delete_relationship(self.selection.id)
        return self.delete_object(self.selection.id)

    # --- curve points ---

    def insert_curve_point(self, relationship_id: str, point: CurvePoint, insert_index: int) -> MutationResult:
        return self._apply(mutations.insert_curve_point(self.model, relationship_id, point, insert_index))

    def delete_curve_point(self, relationship_id: str, index: int) -> MutationResult:
        return self._apply(mutations.delete_curve_point(self.model, relationship_id, index))

    def move_curve_point(self, relationship_id: str, index: int, point: CurvePoint) -> MutationResult:
        return self._apply(mutations.move_curve_point(self.model, relationship_id, index, point))

    # --- relationship draft ---

    def start_relationship(self, from_id: Optional[str] = None) -> None:
        """enter relationship creation, optionally with the first end chosen."""
        if from_id is not None:
            self.select("object", from_id)
        self.draft = RelationshipDraft.start(from_id)

    def pick_endpoint(self, object_id: str) -> Optional[MutationResult]:
        """feed a picked object to the draft; creates the relationship on the second pick."""
        if self.model.get_object(object_id) is None:
            raise mutations.UnknownIdError(f"object not found: {object_id}")
        self.draft, request = self.draft.pick(object_id)
        if request is None:
            return None
        return self.create_relationship(*request)

    def cancel_relationship(self) -> None:
        self.draft = self.draft.cancel()

    # --- import / export ---

    async def import_document(self, read: Callable[[], Awaitable[Union[bytes, str]]]) -> Optional[LoadResult]:
        """read, parse and validate a document, then replace the session's model.

        the read is the only await. if another import starts before this one
        finishes, this result is stale: it is discarded and None returned.
        """
        self._import_generation += 1
        generation = self._import_generation

        raw = await read()
        if generation != self._import_generation:
            logger.info("discarding superseded import")
            return None

        result = load_document(raw)
        if result.ok:
            self.model = result.model
            self.positions = dict(result.positions)
            self.selection = None
            self.draft = RelationshipDraft()
            self.dirty = False
            self.last_error = None
        return result

    def export_document(self) -> ExportResult:
        result = export_document(self.model, self.positions)
        if result.ok:
            self.dirty = False
        return result

    def snapshot(self) -> dict:
        """json friendly view of the whole session."""
        return {
            "model": self.model.to_dict(),
            "positions": positions_to_dict(self.positions),
            "selection": self.selection.to_dict() if self.selection else None,
            "dirty": self.dirty,
            "draft": self.draft.to_dict(),
        }

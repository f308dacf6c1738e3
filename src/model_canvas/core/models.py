"""core data model for model canvas.

objects with attributes/formulas, connected by relationships. every value here
is frozen: edits build a new ModelData instead of mutating the old one.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


SCHEMA_VERSION = 1
MAX_CURVE_POINTS = 5
DEFAULT_OBJECT_NAME = "Untitled object"
DEFAULT_RELATIONSHIP_NAME = "Untitled relationship"


class ArrowType(str, Enum):
    SINGLE = "single"  # from influences to
    DOUBLE = "double"  # mutual influence
    NONE = "none"      # undirected association


class HandleLocation(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"


DEFAULT_FROM_HANDLE = HandleLocation.RIGHT
DEFAULT_TO_HANDLE = HandleLocation.LEFT


@dataclass(frozen=True)
class Attribute:
    """named attribute of an object, optionally carrying a formula."""

    name: str = ""
    description: str = ""
    formula: str = ""

    def to_dict(self) -> dict:
        return {"name": self.name, "description": self.description, "formula": self.formula}


@dataclass(frozen=True)
class Entity:
    """single object (node) of the numerical model."""

    id: str
    name: str = ""
    description: str = ""
    attributes: tuple[Attribute, ...] = ()

    def to_dict(self) -> dict:
        """serialize to dict for json."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "attributes": [a.to_dict() for a in self.attributes],
        }


@dataclass(frozen=True)
class CurvePoint:
    x: float
    y: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


# same shape, different meaning: canvas coordinates of an object's box
Position = CurvePoint


@dataclass(frozen=True)
class Relationship:
    """edge between two objects.

    curve_points holds 0..5 user placed control points; the endpoints are
    implicit (derived from the objects' positions). None means the field is
    absent from the document, which is kept distinct from an empty tuple.
    """

    id: str
    from_id: str
    to_id: str
    name: str = ""
    description: str = ""
    from_handle: HandleLocation = DEFAULT_FROM_HANDLE
    to_handle: HandleLocation = DEFAULT_TO_HANDLE
    arrow_type: ArrowType = ArrowType.SINGLE
    label: str = ""
    curve_points: Optional[tuple[CurvePoint, ...]] = None

    @property
    def pair(self) -> frozenset[str]:
        """unordered endpoint pair, used for the one-relationship-per-pair rule."""
        return frozenset((self.from_id, self.to_id))

    def connects(self, object_id: str) -> bool:
        return self.from_id == object_id or self.to_id == object_id

    def to_dict(self) -> dict:
        """serialize to dict for json (camelCase document keys)."""
        d = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "fromId": self.from_id,
            "toId": self.to_id,
            "fromHandle": self.from_handle.value,
            "toHandle": self.to_handle.value,
            "arrowType": self.arrow_type.value,
            "label": self.label,
        }
        if self.curve_points is not None:
            d["curvePoints"] = [p.to_dict() for p in self.curve_points]
        return d


@dataclass(frozen=True)
class ModelData:
    """the full model: objects plus relationships."""

    schema_version: int = SCHEMA_VERSION
    objects: tuple[Entity, ...] = ()
    relationships: tuple[Relationship, ...] = ()

    def get_object(self, object_id: str) -> Optional[Entity]:
        for obj in self.objects:
            if obj.id == object_id:
                return obj
        return None

    def get_relationship(self, relationship_id: str) -> Optional[Relationship]:
        for rel in self.relationships:
            if rel.id == relationship_id:
                return rel
        return None

    def relationships_for(self, object_id: str) -> list[Relationship]:
        """relationships that reference object_id at either end."""
        return [rel for rel in self.relationships if rel.connects(object_id)]

    def to_dict(self) -> dict:
        """serialize to dict for json."""
        return {
            "schemaVersion": self.schema_version,
            "objects": [o.to_dict() for o in self.objects],
            "relationships": [r.to_dict() for r in self.relationships],
        }


def create_id(prefix: str) -> str:
    """generate a unique id such as obj_<uuid4>."""
    return f"{prefix}_{uuid.uuid4()}"


def create_empty_attribute() -> Attribute:
    return Attribute(name="", description="", formula="")


def get_model_dir(data_dir: Optional[str] = None) -> Path:
    """resolve the directory documents are saved to and loaded from.

    priority:
    1. explicit data_dir argument
    2. MODEL_CANVAS_DIR environment variable
    3. ~/.model-canvas
    """
    if data_dir:
        path = Path(data_dir).expanduser()
    elif os.environ.get("MODEL_CANVAS_DIR"):
        path = Path(os.environ["MODEL_CANVAS_DIR"]).expanduser()
    else:
        path = Path.home() / ".model-canvas"
    path.mkdir(parents=True, exist_ok=True)
    return path

"""tests for document validation and coercion."""

import copy

import pytest

from model_canvas.core.models import (
    ArrowType,
    CurvePoint,
    Entity,
    HandleLocation,
    ModelData,
    Relationship,
)
from model_canvas.core.validation import coerce_model, validate_for_export, validate_model


def messages(result):
    return [issue.message for issue in result.issues]


class TestValidateModel:
    """tests for validate_model."""

    def test_accepts_valid_document(self, raw_document):
        result = validate_model(raw_document)
        assert result.ok is True
        assert result.issues == ()

    def test_accepts_model_data(self, linked_model):
        """ModelData instances are validated through their dict form."""
        assert validate_model(linked_model).ok is True

    @pytest.mark.parametrize("root", ["invalid", None, [], 42])
    def test_rejects_non_object_root(self, root):
        """a non-object root is reported alone."""
        result = validate_model(root)
        assert result.ok is False
        assert len(result.issues) == 1
        assert "root must be a JSON object" in result.issues[0].message

    def test_missing_arrays(self):
        """both arrays are reported in one pass."""
        result = validate_model({"objects": {}, "relationships": "nope"})
        assert result.ok is False
        assert [i.field_path for i in result.issues] == ["objects", "relationships"]

    def test_duplicate_object_ids_aggregated(self, raw_document):
        """every duplicated id is listed in a single issue."""
        raw_document["objects"] = [
            {"id": "dup", "name": "A", "description": "", "attributes": []},
            {"id": "dup", "name": "B", "description": "", "attributes": []},
            {"id": "twice", "name": "C", "description": "", "attributes": []},
            {"id": "twice", "name": "D", "description": "", "attributes": []},
            {"id": "dup", "name": "E", "description": "", "attributes": []},
        ]
        raw_document["relationships"] = []
        result = validate_model(raw_document)
        assert result.ok is False
        duplicates = [i for i in result.issues if "duplicate object ids" in i.message]
        assert len(duplicates) == 1
        assert duplicates[0].message == "duplicate object ids: dup, twice"
        assert duplicates[0].suggestion

    def test_duplicate_relationship_ids_aggregated(self, raw_document):
        raw_document["objects"].append({"id": "e3", "name": "X", "description": "", "attributes": []})
        second = dict(raw_document["relationships"][0], fromId="e2", toId="e3")
        raw_document["relationships"].append(second)
        result = validate_model(raw_document)
        assert result.ok is False
        assert "duplicate relationship ids: r1" in messages(result)

    def test_blank_object_id(self, raw_document):
        raw_document["objects"][0]["id"] = "   "
        result = validate_model(raw_document)
        assert result.ok is False
        assert any(i.field_path == "objects[0].id" for i in result.issues)

    def test_object_field_types(self, raw_document):
        raw_document["objects"][1]["name"] = 5
        raw_document["objects"][1]["description"] = None
        result = validate_model(raw_document)
        found = {(i.field_path, i.id) for i in result.issues}
        assert ("objects[1].name", "e2") in found
        assert ("objects[1].description", "e2") in found

    def test_attribute_fields(self, raw_document):
        raw_document["objects"][0]["attributes"] = [{"name": 123, "description": "", "formula": ""}]
        result = validate_model(raw_document)
        assert result.ok is False
        assert "attribute name must be a string" in messages(result)

    def test_attributes_must_be_array(self, raw_document):
        raw_document["objects"][0]["attributes"] = "x"
        result = validate_model(raw_document)
        assert "object attributes must be an array" in messages(result)

    def test_non_object_entries(self, raw_document):
        raw_document["objects"].append("oops")
        raw_document["relationships"].append(["also", "wrong"])
        result = validate_model(raw_document)
        paths = [i.field_path for i in result.issues]
        assert "objects[2]" in paths
        assert "relationships[1]" in paths

    def test_dangling_reference(self, raw_document):
        """a missing endpoint is named in the message."""
        raw_document["relationships"][0]["fromId"] = "missing"
        result = validate_model(raw_document)
        assert result.ok is False
        issue = next(i for i in result.issues if "unknown object id" in i.message)
        assert issue.message == 'fromId references unknown object id "missing"'
        assert issue.id == "r1"
        assert issue.field_path == "relationships[0].fromId"

    def test_empty_endpoint(self, raw_document):
        raw_document["relationships"][0]["toId"] = ""
        result = validate_model(raw_document)
        assert "relationship toId must be a non-empty string" in messages(result)

    def test_invalid_arrow_type(self, raw_document):
        raw_document["relationships"][0]["arrowType"] = "invalid"
        result = validate_model(raw_document)
        assert any(m.startswith("arrowType must be one of single / double / none") for m in messages(result))

    def test_missing_arrow_type(self, raw_document):
        del raw_document["relationships"][0]["arrowType"]
        assert validate_model(raw_document).ok is False

    def test_handles_optional_but_checked(self, raw_document):
        rel = raw_document["relationships"][0]
        rel["fromHandle"] = "top"
        assert validate_model(raw_document).ok is True
        rel["toHandle"] = "middle"
        result = validate_model(raw_document)
        assert result.ok is False
        assert any(m.startswith("toHandle must be one of") for m in messages(result))

    def test_label_must_be_string(self, raw_document):
        raw_document["relationships"][0]["label"] = None
        assert "relationship label must be a string" in messages(validate_model(raw_document))

    def test_self_relationship(self, raw_document):
        raw_document["relationships"][0]["toId"] = "e1"
        result = validate_model(raw_document)
        assert result.ok is False
        assert any("two different objects" in m for m in messages(result))

    def test_duplicate_pair_in_either_direction(self, raw_document):
        reverse = dict(raw_document["relationships"][0], id="r2", fromId="e2", toId="e1")
        raw_document["relationships"].append(reverse)
        result = validate_model(raw_document)
        assert result.ok is False
        issue = next(i for i in result.issues if "duplicate relationship between" in i.message)
        assert issue.id == "r2"
        assert '"r1"' in issue.message

    def test_curve_points(self, raw_document):
        rel = raw_document["relationships"][0]
        rel["curvePoints"] = [{"x": 1, "y": 2.5}]
        assert validate_model(raw_document).ok is True

        rel["curvePoints"] = [{"x": 0, "y": 0}] * 6
        assert any("more than 5" in m for m in messages(validate_model(raw_document)))

        rel["curvePoints"] = [{"x": "1", "y": 0}, {"x": 0, "y": True}, 7]
        paths = [i.field_path for i in validate_model(raw_document).issues]
        assert "relationships[0].curvePoints[0].x" in paths
        assert "relationships[0].curvePoints[1].y" in paths
        assert "relationships[0].curvePoints[2]" in paths

        rel["curvePoints"] = {"x": 0}
        assert "relationship curvePoints must be an array" in messages(validate_model(raw_document))

    def test_non_finite_curve_point(self, raw_document):
        raw_document["relationships"][0]["curvePoints"] = [{"x": float("nan"), "y": float("inf")}]
        result = validate_model(raw_document)
        assert len(result.issues) == 2

    def test_oversized_integers_reported(self, raw_document):
        """integers past float range are issues, not exceptions."""
        raw_document["relationships"][0]["curvePoints"] = [{"x": 10**400, "y": 0}]
        raw_document["positions"] = {"e1": {"x": 10**400, "y": 0}}
        result = validate_model(raw_document)
        assert result.ok is False
        paths = [i.field_path for i in result.issues]
        assert "relationships[0].curvePoints[0].x" in paths
        assert "positions.e1.x" in paths

    def test_positions_for_known_ids(self, raw_document):
        raw_document["positions"] = {"e1": {"x": 120, "y": 240}, "e2": {"x": 360.5, "y": 80}}
        assert validate_model(raw_document).ok is True

    def test_positions_unknown_ids_ignored(self, raw_document):
        raw_document["positions"] = {"e1": {"x": 1, "y": 2}, "ghost": "anything"}
        assert validate_model(raw_document).ok is True

    def test_positions_shape(self, raw_document):
        raw_document["positions"] = []
        result = validate_model(raw_document)
        assert result.ok is False
        assert result.issues[0].message.startswith("positions must be an object mapping")

    def test_positions_values(self, raw_document):
        raw_document["positions"] = {"e1": {"x": "bad", "y": 10}, "e2": 3}
        result = validate_model(raw_document)
        assert "positions.x must be a finite number" in messages(result)
        assert any(i.field_path == "positions.e2" and i.id == "e2" for i in result.issues)

    def test_reports_every_issue(self, raw_document):
        """validation does not stop at the first problem."""
        raw_document["objects"][0]["name"] = 1
        raw_document["relationships"][0]["arrowType"] = "x"
        raw_document["relationships"][0]["label"] = 2
        assert len(validate_model(raw_document).issues) == 3


class TestValidateForExport:
    """tests for validate_for_export."""

    def test_requires_names(self, raw_document):
        raw_document["objects"][0]["name"] = "  "
        result = validate_for_export(raw_document)
        assert result.ok is False
        assert len(result.issues) == 1
        assert result.issues[0].id == "e1"
        assert result.issues[0].field_path == "objects[0].name"

    def test_one_issue_per_unnamed_object(self, raw_document):
        for obj in raw_document["objects"]:
            obj["name"] = ""
        result = validate_for_export(raw_document)
        assert [i.id for i in result.issues] == ["e1", "e2"]

    def test_base_failure_returned_unchanged(self, raw_document):
        raw_document["objects"][0]["name"] = ""
        raw_document["relationships"][0]["arrowType"] = "bad"
        base = validate_model(raw_document)
        assert validate_for_export(raw_document) == base

    def test_accepts_model_data(self, linked_model):
        assert validate_for_export(linked_model).ok is True
        unnamed = ModelData(objects=(Entity("a", ""),))
        assert validate_for_export(unnamed).ok is False


class TestCoerceModel:
    """tests for coerce_model."""

    def test_fills_defaults(self):
        coerced = coerce_model(
            {
                "objects": [{"id": "obj_1"}],
                "relationships": [{"id": "rel_1"}],
            }
        )
        assert coerced.schema_version == 1
        assert coerced.objects[0] == Entity(id="obj_1", name="", description="", attributes=())
        rel = coerced.relationships[0]
        assert rel == Relationship(
            id="rel_1",
            from_id="",
            to_id="",
            name="",
            description="",
            from_handle=HandleLocation.RIGHT,
            to_handle=HandleLocation.LEFT,
            arrow_type=ArrowType.SINGLE,
            label="",
            curve_points=None,
        )

    def test_keeps_values(self, raw_document):
        raw_document["relationships"][0].update(
            fromHandle="bottom",
            toHandle="top",
            arrowType="double",
            curvePoints=[{"x": 4, "y": 5}],
        )
        coerced = coerce_model(raw_document)
        rel = coerced.relationships[0]
        assert rel.from_handle is HandleLocation.BOTTOM
        assert rel.to_handle is HandleLocation.TOP
        assert rel.arrow_type is ArrowType.DOUBLE
        assert rel.curve_points == (CurvePoint(4, 5),)
        assert coerced.objects[1].attributes[0].formula == "a * b"

    def test_absent_curve_points_stay_absent(self, raw_document):
        coerced = coerce_model(raw_document)
        assert coerced.relationships[0].curve_points is None
        assert "curvePoints" not in coerced.to_dict()["relationships"][0]

    def test_idempotent(self, raw_document):
        once = coerce_model(raw_document)
        assert coerce_model(once) == once
        assert coerce_model(once.to_dict()) == once

    def test_does_not_touch_input(self, raw_document):
        before = copy.deepcopy(raw_document)
        coerce_model(raw_document)
        assert raw_document == before

    def test_valid_model_round_trips_through_validate(self, raw_document):
        """a coerced model still validates."""
        assert validate_model(coerce_model(raw_document)).ok is True

"""pytest fixtures for model canvas tests."""

import tempfile
from pathlib import Path

import pytest

from model_canvas.core.models import Entity, ModelData, Relationship
from model_canvas.core.session import EditorSession


@pytest.fixture
def temp_dir():
    """temporary directory that cleans up after test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def raw_document():
    """valid document as parsed json: e1 -> e2."""
    return {
        "schemaVersion": 1,
        "objects": [
            {"id": "e1", "name": "Revenue", "description": "", "attributes": []},
            {
                "id": "e2",
                "name": "Cost",
                "description": "monthly",
                "attributes": [{"name": "rate", "description": "", "formula": "a * b"}],
            },
        ],
        "relationships": [
            {
                "id": "r1",
                "name": "drives",
                "description": "",
                "fromId": "e1",
                "toId": "e2",
                "arrowType": "single",
                "label": "",
            }
        ],
    }


@pytest.fixture
def three_objects():
    """model with a, b, c and no relationships."""
    return ModelData(objects=(Entity("a", "A"), Entity("b", "B"), Entity("c", "C")))


@pytest.fixture
def linked_model():
    """a-b and b-c connected, a and c not."""
    return ModelData(
        objects=(Entity("a", "A"), Entity("b", "B"), Entity("c", "C")),
        relationships=(
            Relationship("ab", from_id="a", to_id="b"),
            Relationship("bc", from_id="b", to_id="c"),
        ),
    )


@pytest.fixture
def session(linked_model):
    """editor session over linked_model with auto-laid-out positions."""
    return EditorSession(linked_model)

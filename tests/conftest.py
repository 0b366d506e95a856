"""Pytest fixtures and test configuration for face registration tests."""
from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest

from face_register.config import MatchConfig
from face_register.core.registry import FaceRegistry
from face_register.core.registry_store import JsonRegistryStore
from face_register.core.session import RegistrationSession
from face_register.core.types import DetectionResult, Face, Rect
from face_register.web.app import create_app

TEST_API_KEY = "test-api-key"


def make_detection(face_id: Any, x: float, y: float, width: float, height: float) -> DetectionResult:
    """Build a single-face detection result."""
    return DetectionResult(faces=(Face(face_id=face_id, bounds=Rect(x, y, width, height)),))


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary data directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def target() -> Rect:
    """Target region used by the alignment scenarios."""
    return Rect(x=100, y=100, width=200, height=300)


@pytest.fixture
def aligned_detection() -> DetectionResult:
    """Face f1 within 10% of the target region."""
    return make_detection("f1", 105, 98, 195, 305)


@pytest.fixture
def misaligned_detection() -> DetectionResult:
    """Face f1 shifted 50% to the right of the target region."""
    return make_detection("f1", 150, 100, 200, 300)


@pytest.fixture
def registry() -> FaceRegistry:
    """Empty in-memory registry."""
    return FaceRegistry()


@pytest.fixture
def store(temp_data_dir: Path) -> JsonRegistryStore:
    """JSON store inside the temp data directory."""
    return JsonRegistryStore(temp_data_dir / "faces.json")


@pytest.fixture
def session(target: Rect, registry: FaceRegistry) -> RegistrationSession:
    """Idle session against the scenario target."""
    return RegistrationSession(target=target, registry=registry, session_id="test")


@pytest.fixture
def app(temp_data_dir: Path, registry: FaceRegistry):
    """Create Flask app for testing with an in-memory registry."""
    app = create_app(
        data_dir=temp_data_dir,
        api_key=TEST_API_KEY,
        match_config=MatchConfig(),
        registry=registry,
    )
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    """Create Flask test client."""
    return app.test_client()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-API-Key": TEST_API_KEY}


@pytest.fixture
def write_log(tmp_path: Path):
    """Write JSON-lines records to a detection log and return its path."""

    def _write(records: list[dict[str, Any]], name: str = "detections.jsonl") -> Path:
        path = tmp_path / name
        path.write_text(
            "\n".join(json.dumps(record) for record in records) + "\n",
            encoding="utf-8",
        )
        return path

    return _write

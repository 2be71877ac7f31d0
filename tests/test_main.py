import os
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock
from io import BytesIO

from app.main import app, parse_placeholder_names
from app.config import settings
from app.dependencies import get_mockup_service
from app.exceptions import InvalidBoundsError, PlaceholderNotFoundError
from app.services.mockup_service import MockupService

client = TestClient(app)

DIAGNOSTICS = {
    "resolved_bounds": {"left": 200, "top": 300, "right": 1800, "bottom": 1700},
    "composite_position": {"left": 200, "top": 300},
    "design_size": {"width": 1600, "height": 1400},
    "document_dimensions": {"width": 2000, "height": 2000},
    "placeholder_name": "YOUR DESIGN HERE",
    "render_strategy": "layer_stack",
    "output_size": {"width": 2000, "height": 2000},
    "dpi": 72.0,
}

# Fixtures for test data
@pytest.fixture
def upload_files():
    """Multipart files for a process request"""
    return {
        "design_image": ("design.png", BytesIO(b"mock design content"), "image/png"),
        "mockup_psd": ("mockup.psd", BytesIO(b"8BPS mock psd content"), "image/vnd.adobe.photoshop"),
    }

@pytest.fixture
def mock_mockup_service():
    """Override the mockup service dependency with a mock"""
    mock_service = MagicMock(spec=MockupService)
    mock_service.process_mockup = AsyncMock(return_value={
        "file_path": "output/test-mockup-id.jpg",
        "mime_type": "image/jpeg",
        "diagnostics": DIAGNOSTICS,
    })
    app.dependency_overrides[get_mockup_service] = lambda: mock_service
    yield mock_service
    app.dependency_overrides.clear()

@pytest.fixture
def file_service(tmp_path):
    """Real service over a temporary output directory, compositor unused"""
    service = MockupService(MagicMock(), output_dir=str(tmp_path))
    app.dependency_overrides[get_mockup_service] = lambda: service
    yield service
    app.dependency_overrides.clear()

# Create test output file
@pytest.fixture
def test_output_file(file_service):
    """Create a test output file"""
    with open(os.path.join(file_service.output_dir, "test-mockup-id.png"), "wb") as f:
        f.write(b"test image data")
    return "test-mockup-id"

# Tests
def test_root_endpoint():
    """Test the health check endpoint"""
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "message": "PSD Mockup Compositor API is running"}

def test_process_mockup_success(upload_files, mock_mockup_service):
    """Test successful mockup processing"""
    response = client.post(
        "/mockups/process",
        files=upload_files,
        data={
            "placeholder_names": '["Front Print", "Design"]',
            "export_format": "png",
            "export_quality": 80,
            "export_dpi": 300,
            "image_fit": "contain",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert "mockup_id" in body
    assert body["file_path"] == "output/test-mockup-id.jpg"
    assert body["download_url"] == f"/mockups/{body['mockup_id']}/download"
    assert body["mime_type"] == "image/jpeg"
    assert body["diagnostics"]["resolved_bounds"]["right"] == 1800
    assert body["diagnostics"]["render_strategy"] == "layer_stack"

    # Verify mockup service was called with correct parameters
    mock_mockup_service.process_mockup.assert_awaited_once()
    call_args = mock_mockup_service.process_mockup.call_args[1]
    assert call_args["placeholder_names"] == ["Front Print", "Design"]
    assert call_args["export_format"] == "png"
    assert call_args["export_quality"] == 80
    assert call_args["export_dpi"] == 300
    assert call_args["image_fit"] == "contain"

def test_process_mockup_defaults(upload_files, mock_mockup_service):
    """Omitted form fields fall back to the configured defaults"""
    response = client.post("/mockups/process", files=upload_files)

    assert response.status_code == 200
    call_args = mock_mockup_service.process_mockup.call_args[1]
    assert call_args["placeholder_names"] == settings.DEFAULT_PLACEHOLDER_NAMES
    assert call_args["export_format"] == settings.DEFAULT_EXPORT_FORMAT
    assert call_args["export_quality"] == settings.DEFAULT_EXPORT_QUALITY
    assert call_args["export_dpi"] is None
    assert call_args["image_fit"] == settings.DEFAULT_IMAGE_FIT

def test_process_mockup_with_session_id(upload_files, mock_mockup_service):
    """Test mockup processing with a provided session ID"""
    response = client.post(
        "/mockups/process",
        files=upload_files,
        data={"session_id": "test-session-id"},
    )

    assert response.status_code == 200
    assert response.json()["mockup_id"] == "test-session-id"
    assert mock_mockup_service.process_mockup.call_args[1]["mockup_id"] == "test-session-id"

@pytest.mark.parametrize("session_id", ["../escaped", "../../tmp/x", "a/b", "id.jpg", "name with space"])
def test_process_mockup_rejects_unsafe_session_id(upload_files, mock_mockup_service, session_id):
    """Session ids that are not a plain file name are rejected before processing"""
    response = client.post(
        "/mockups/process",
        files=upload_files,
        data={"session_id": session_id},
    )

    assert response.status_code == 400
    assert "Invalid mockup id" in response.json()["detail"]
    mock_mockup_service.process_mockup.assert_not_called()

def test_process_mockup_placeholder_not_found(upload_files, mock_mockup_service):
    """Missing placeholder reports the available layer names"""
    mock_mockup_service.process_mockup.side_effect = PlaceholderNotFoundError(
        ["Background", "Shadow"], ["YOUR DESIGN HERE"]
    )

    response = client.post("/mockups/process", files=upload_files)

    assert response.status_code == 400
    body = response.json()
    assert "Smart Object layer not found" in body["detail"]
    assert body["available_layers"] == ["Background", "Shadow"]

def test_process_mockup_validation_error(upload_files, mock_mockup_service):
    """Test mockup processing with a composite error"""
    mock_mockup_service.process_mockup.side_effect = InvalidBoundsError("Design", 0, 0)

    response = client.post("/mockups/process", files=upload_files)

    assert response.status_code == 400
    assert "detail" in response.json()
    assert "invalid bounds" in response.json()["detail"]

def test_process_mockup_bad_placeholder_names(upload_files, mock_mockup_service):
    """Malformed JSON placeholder names are rejected"""
    response = client.post(
        "/mockups/process",
        files=upload_files,
        data={"placeholder_names": '["Design",'},
    )

    assert response.status_code == 400
    assert "Invalid placeholder_names JSON" in response.json()["detail"]
    mock_mockup_service.process_mockup.assert_not_called()

def test_process_mockup_server_error(upload_files, mock_mockup_service):
    """Test mockup processing with server error"""
    mock_mockup_service.process_mockup.side_effect = Exception("Processing error")

    response = client.post("/mockups/process", files=upload_files)

    assert response.status_code == 500
    assert "detail" in response.json()
    assert "Processing error" in response.json()["detail"]

def test_download_mockup_success(test_output_file):
    """Test successful mockup download"""
    response = client.get(f"/mockups/{test_output_file}/download")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["content-disposition"] == f'attachment; filename="mockup_{test_output_file}.png"'
    assert response.content == b"test image data"

def test_download_mockup_not_found(file_service):
    """Test mockup download with non-existent ID"""
    response = client.get("/mockups/non-existent-id/download")

    assert response.status_code == 404
    assert "detail" in response.json()
    assert "Mockup not found" in response.json()["detail"]

def test_delete_mockup_success(test_output_file, file_service):
    """Test successful mockup deletion"""
    response = client.delete(f"/mockups/{test_output_file}")

    assert response.status_code == 200
    assert response.json()["status"] == "success"
    assert f"Mockup {test_output_file} deleted successfully" in response.json()["message"]
    assert not os.path.exists(os.path.join(file_service.output_dir, f"{test_output_file}.png"))

def test_delete_mockup_not_found(file_service):
    """Test mockup deletion with non-existent ID"""
    response = client.delete("/mockups/non-existent-id")

    assert response.status_code == 404
    assert "detail" in response.json()
    assert "Mockup not found" in response.json()["detail"]

@pytest.mark.parametrize("raw,expected", [
    ('["A", " B "]', ["A", "B"]),
    ("Front, Back ,", ["Front", "Back"]),
    ("Design", ["Design"]),
])
def test_parse_placeholder_names(raw, expected):
    assert parse_placeholder_names(raw) == expected

def test_parse_placeholder_names_defaults():
    assert parse_placeholder_names(None) == settings.DEFAULT_PLACEHOLDER_NAMES
    assert parse_placeholder_names("  ") == settings.DEFAULT_PLACEHOLDER_NAMES
    assert parse_placeholder_names("[]") == settings.DEFAULT_PLACEHOLDER_NAMES

def test_parse_placeholder_names_rejects_non_strings():
    with pytest.raises(ValueError):
        parse_placeholder_names("[1, 2]")

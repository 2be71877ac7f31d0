import asyncio
import os
from io import BytesIO

import pytest
from fastapi import UploadFile

from app.config import settings
from app.exceptions import PlaceholderNotFoundError
from app.interfaces.mockup_compositor import MockupCompositor
from app.models.mockup import CompositeDiagnostics, CompositeResult, ImageFit
from app.services import mockup_service as mockup_service_module
from app.services.mockup_service import MockupService


class RecordingCompositor(MockupCompositor):
    """Returns canned output and remembers the requests it saw"""

    def __init__(self, extension="jpg", error=None):
        self.extension = extension
        self.error = error
        self.requests = []

    def generate_mockup(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return CompositeResult(
            image_bytes=b"encoded-" + self.extension.encode(),
            mime_type="image/jpeg" if self.extension == "jpg" else "image/png",
            extension=self.extension,
            diagnostics=CompositeDiagnostics(
                resolved_bounds={"left": 0, "top": 0, "right": 10, "bottom": 10},
                composite_position={"left": 0, "top": 0},
                design_size={"width": 10, "height": 10},
                document_dimensions={"width": 10, "height": 10},
                placeholder_name="Design",
                render_strategy="layer_stack",
                output_size={"width": 10, "height": 10},
                dpi=72,
            ),
        )


@pytest.fixture(autouse=True)
def fresh_composite_slots(monkeypatch):
    """Each asyncio.run gets its own loop, so start without a shared semaphore"""
    monkeypatch.setattr(mockup_service_module, "_composite_slots", None)


def _upload(content, filename="upload.bin"):
    return UploadFile(file=BytesIO(content), filename=filename)


def _process(service, **kwargs):
    params = dict(
        mockup_id="mockup-1",
        design_image=_upload(b"design-bytes", "design.png"),
        mockup_psd=_upload(b"8BPS-bytes", "mockup.psd"),
    )
    params.update(kwargs)
    return asyncio.run(service.process_mockup(**params))


def test_process_mockup_saves_output(tmp_path):
    compositor = RecordingCompositor()
    service = MockupService(compositor, output_dir=str(tmp_path))

    result = _process(
        service,
        placeholder_names=["Front Print"],
        export_format="jpg",
        export_quality=80,
        export_dpi=300,
        image_fit="contain",
    )

    output_path = os.path.join(str(tmp_path), "mockup-1.jpg")
    assert result["file_path"] == output_path
    assert result["mime_type"] == "image/jpeg"
    assert result["diagnostics"]["placeholder_name"] == "Design"
    with open(output_path, "rb") as f:
        assert f.read() == b"encoded-jpg"

    request = compositor.requests[0]
    assert request.design_bytes == b"design-bytes"
    assert request.document_bytes == b"8BPS-bytes"
    assert request.placeholder_names == ("Front Print",)
    assert request.export_quality == 80
    assert request.export_dpi == 300
    assert request.image_fit == ImageFit.CONTAIN


def test_default_placeholder_names(tmp_path):
    compositor = RecordingCompositor()
    _process(MockupService(compositor, output_dir=str(tmp_path)))

    assert compositor.requests[0].placeholder_names == tuple(settings.DEFAULT_PLACEHOLDER_NAMES)
    assert compositor.requests[0].image_fit == ImageFit.COVER


def test_empty_upload_is_rejected(tmp_path):
    compositor = RecordingCompositor()
    service = MockupService(compositor, output_dir=str(tmp_path))

    with pytest.raises(ValueError, match="PSD file is empty"):
        _process(service, mockup_psd=_upload(b""))
    assert compositor.requests == []


def test_oversized_upload_is_rejected(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 4)
    service = MockupService(RecordingCompositor(), output_dir=str(tmp_path))

    with pytest.raises(ValueError, match="too large"):
        _process(service)


def test_compositor_errors_propagate(tmp_path):
    error = PlaceholderNotFoundError(["Background"], ["Design"])
    service = MockupService(RecordingCompositor(error=error), output_dir=str(tmp_path))

    with pytest.raises(PlaceholderNotFoundError):
        _process(service)
    assert service.find_output("mockup-1") is None


def test_reused_session_replaces_other_format(tmp_path):
    """Re-rendering a session as PNG removes the earlier JPEG"""
    _process(MockupService(RecordingCompositor("jpg"), output_dir=str(tmp_path)))
    service = MockupService(RecordingCompositor("png"), output_dir=str(tmp_path))

    result = _process(service)

    assert result["file_path"].endswith("mockup-1.png")
    assert not os.path.exists(os.path.join(str(tmp_path), "mockup-1.jpg"))
    assert service.find_output("mockup-1") == result["file_path"]


def test_unsafe_mockup_id_is_rejected(tmp_path):
    """Ids that could leave the output directory never reach the file system"""
    compositor = RecordingCompositor()
    output_dir = tmp_path / "output"
    service = MockupService(compositor, output_dir=str(output_dir))

    with pytest.raises(ValueError, match="Invalid mockup id"):
        _process(service, mockup_id="../escaped")

    assert compositor.requests == []
    assert not (tmp_path / "escaped.jpg").exists()


def test_find_output_ignores_unsafe_ids(tmp_path):
    """A matching file outside the output directory is not found"""
    (tmp_path / "outside.png").write_bytes(b"data")
    service = MockupService(RecordingCompositor(), output_dir=str(tmp_path / "output"))

    assert service.find_output("../outside") is None


def test_find_output_missing(tmp_path):
    service = MockupService(RecordingCompositor(), output_dir=str(tmp_path))
    assert service.find_output("unknown") is None

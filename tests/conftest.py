import pytest
import os
import sys

import cv2
import numpy as np

# Add the project root to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Settings are read at import time, keep test runs from writing log files
os.environ.setdefault("LOG_TO_FILE", "False")

from app.models.document import Document, Layer, LayerMask  # noqa: E402


# Setup any global fixtures or configuration for tests here
@pytest.fixture(autouse=True)
def setup_test_environment():
    """Setup test environment variables and configurations"""
    # Set environment variables for testing
    os.environ["DEBUG"] = "True"
    os.environ["TESTING"] = "True"
    os.environ["OUTPUT_DIR"] = "output"

    # Create test directories if they don't exist
    os.makedirs("output", exist_ok=True)

    yield


@pytest.fixture
def solid_image():
    """Factory for solid BGRA rasters"""
    def _make(width, height, color=(0, 0, 255, 255)):
        image = np.zeros((height, width, 4), dtype=np.uint8)
        image[:, :] = color
        return image
    return _make


@pytest.fixture
def encode_png():
    """Factory encoding a raster to PNG bytes"""
    def _encode(image):
        ok, buffer = cv2.imencode(".png", image)
        assert ok
        return buffer.tobytes()
    return _encode


@pytest.fixture
def decode_output():
    """Decode exported bytes back to a BGRA raster"""
    def _decode(data):
        image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
        assert image is not None
        if image.ndim == 3 and image.shape[2] == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
        return image
    return _decode


@pytest.fixture
def small_document(solid_image):
    """
    200x200 document:
    - "Background" gray, full canvas (before the placeholder)
    - "Frame" group containing the "Design" placeholder at (50, 40)-(150, 120)
    - "Glare" 20x20 white patch at (60, 50) painted after the placeholder
    """
    background = Layer(
        name="Background", left=0, top=0, right=200, bottom=200,
        canvas=solid_image(200, 200, (128, 128, 128, 255)),
    )
    placeholder = Layer(
        name="Design", left=50, top=40, right=150, bottom=120,
        canvas=solid_image(100, 80, (0, 0, 0, 255)), is_smart_object=True,
    )
    frame = Layer(name="Frame", children=[placeholder])
    glare = Layer(
        name="Glare", left=60, top=50, right=80, bottom=70,
        canvas=solid_image(20, 20, (255, 255, 255, 255)),
    )
    composite = solid_image(200, 200, (128, 128, 128, 255))
    return Document(width=200, height=200, children=[background, frame, glare], composite=composite)


@pytest.fixture
def left_half_mask():
    """Mask covering the small_document placeholder, visible on its left half only"""
    canvas = np.zeros((80, 100), dtype=np.uint8)
    canvas[:, :50] = 255
    return LayerMask(left=50, top=40, right=150, bottom=120, canvas=canvas)

from fastapi import FastAPI, Depends, UploadFile, File, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
import json
import uuid
import os
import logging
import time
from typing import List, Optional

from app.services.mockup_service import MockupService, validate_mockup_id
from app.dependencies import get_mockup_service
from app.exceptions import MockupError, PlaceholderNotFoundError
from app.schemas.mockup_schemas import MockupResponse, ErrorResponse
from app.utils.logging_config import setup_logging, get_logger
from app.config import settings

# Setup logging
logger = setup_logging(
    log_level=logging.DEBUG if settings.DEBUG else logging.INFO,
    log_to_file=settings.LOG_TO_FILE,
)

# Create the FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="API for compositing design images into layered PSD mockups",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    request_id = str(uuid.uuid4())
    logger.info(f"Request {request_id} started: {request.method} {request.url.path}")

    start_time = time.time()
    try:
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info(f"Request {request_id} completed: {response.status_code} in {process_time:.4f}s")
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.error(f"Request {request_id} failed after {process_time:.4f}s: {str(e)}")
        return JSONResponse(
            status_code=500,
            content={"detail": f"Internal server error: {str(e)}"}
        )

# Add exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": f"Internal server error: {str(exc)}"}
    )

# Ensure output directory exists
os.makedirs(settings.OUTPUT_DIR, exist_ok=True)

MEDIA_TYPES = {".jpg": "image/jpeg", ".png": "image/png"}

def parse_placeholder_names(raw: Optional[str]) -> List[str]:
    """Accept a JSON list or a comma-separated string of layer names"""
    if raw is None or not raw.strip():
        return list(settings.DEFAULT_PLACEHOLDER_NAMES)
    raw = raw.strip()
    if raw.startswith("["):
        try:
            names = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid placeholder_names JSON: {str(e)}")
        if not isinstance(names, list) or not all(isinstance(name, str) for name in names):
            raise ValueError("placeholder_names must be a list of strings")
    else:
        names = raw.split(",")
    names = [name.strip() for name in names if name.strip()]
    return names or list(settings.DEFAULT_PLACEHOLDER_NAMES)

@app.get("/")
async def root():
    """Health check endpoint"""
    logger.debug("Health check endpoint called")
    return {"status": "ok", "message": "PSD Mockup Compositor API is running"}

@app.post(
    "/mockups/process",
    response_model=MockupResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def process_mockup(
    design_image: UploadFile = File(...),
    mockup_psd: UploadFile = File(...),
    placeholder_names: Optional[str] = Form(None),
    export_format: str = Form(settings.DEFAULT_EXPORT_FORMAT),
    export_quality: int = Form(settings.DEFAULT_EXPORT_QUALITY),
    export_dpi: Optional[float] = Form(None),
    image_fit: str = Form(settings.DEFAULT_IMAGE_FIT),
    session_id: Optional[str] = Form(None),
    mockup_service: MockupService = Depends(get_mockup_service)
):
    """
    Composite a design image into the Smart Object placeholder of a PSD mockup

    - **design_image**: Flat design artwork (PNG, JPEG, ...)
    - **mockup_psd**: Layered PSD mockup containing the placeholder layer
    - **placeholder_names**: Candidate placeholder layer names, as a JSON list or
      comma-separated string, matched case-insensitively; first match wins
      (default: YOUR DESIGN HERE, Design Here, Design)
    - **export_format**: 'jpg' or 'png' (default: jpg); anything else exports PNG
    - **export_quality**: JPEG quality 0-100 (default: 90)
    - **export_dpi**: Target DPI; the image is rescaled by export_dpi / 72 and tagged
      with this density
    - **image_fit**: 'cover' fills the frame and may crop, 'contain' fits inside
      the frame with near-white letterboxing (default: cover)
    - **session_id**: Optional session ID to update the same mockup across requests
      (letters, digits, '-' and '_' only)
    """
    req_logger = get_logger(__name__)
    try:
        candidate_names = parse_placeholder_names(placeholder_names)

        # Use provided session_id or generate a new unique ID for this mockup
        mockup_id = validate_mockup_id(session_id) if session_id else str(uuid.uuid4())
        req_logger.info(f"Starting mockup processing with ID: {mockup_id}")

        # Log input parameters
        req_logger.debug(f"Parameters: placeholders={candidate_names}, format={export_format}, "
                        f"quality={export_quality}, dpi={export_dpi}, fit={image_fit}")

        result = await mockup_service.process_mockup(
            mockup_id=mockup_id,
            design_image=design_image,
            mockup_psd=mockup_psd,
            placeholder_names=candidate_names,
            export_format=export_format,
            export_quality=export_quality,
            export_dpi=export_dpi,
            image_fit=image_fit,
        )

        req_logger.info(f"Mockup processing completed successfully: {mockup_id}")
        return {
            "mockup_id": mockup_id,
            "file_path": result["file_path"],
            "download_url": f"/mockups/{mockup_id}/download",
            "mime_type": result["mime_type"],
            "diagnostics": result["diagnostics"],
        }

    except PlaceholderNotFoundError as e:
        req_logger.warning(f"Placeholder not found: {str(e)}")
        return JSONResponse(
            status_code=400,
            content={"detail": str(e), "available_layers": e.available_layers}
        )
    except (MockupError, ValueError) as e:
        req_logger.warning(f"Validation error: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        req_logger.error(f"Error processing mockup: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error processing mockup: {str(e)}")

@app.get(
    "/mockups/{mockup_id}/download",
    responses={404: {"model": ErrorResponse}}
)
async def download_mockup(mockup_id: str, mockup_service: MockupService = Depends(get_mockup_service)):
    """Download a generated mockup by ID"""
    req_logger = get_logger(__name__)
    req_logger.debug(f"Download request for mockup ID: {mockup_id}")

    file_path = mockup_service.find_output(mockup_id)
    if file_path is None:
        req_logger.warning(f"Mockup not found: {mockup_id}")
        raise HTTPException(status_code=404, detail="Mockup not found")

    extension = os.path.splitext(file_path)[1]
    req_logger.info(f"Serving mockup file: {file_path}")
    return FileResponse(
        file_path,
        media_type=MEDIA_TYPES.get(extension, "application/octet-stream"),
        filename=f"mockup_{mockup_id}{extension}"
    )

@app.delete(
    "/mockups/{mockup_id}",
    responses={404: {"model": ErrorResponse}}
)
async def delete_mockup(mockup_id: str, mockup_service: MockupService = Depends(get_mockup_service)):
    """Delete a generated mockup by ID"""
    req_logger = get_logger(__name__)
    req_logger.debug(f"Delete request for mockup ID: {mockup_id}")

    file_path = mockup_service.find_output(mockup_id)
    if file_path is None:
        req_logger.warning(f"Mockup not found for deletion: {mockup_id}")
        raise HTTPException(status_code=404, detail="Mockup not found")

    os.remove(file_path)
    req_logger.info(f"Mockup deleted successfully: {mockup_id}")
    return {"status": "success", "message": f"Mockup {mockup_id} deleted successfully"}

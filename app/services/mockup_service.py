import asyncio
import os
import re
from typing import Any, Dict, Optional, Sequence

import aiofiles
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from app.config import settings
from app.interfaces.mockup_compositor import MockupCompositor
from app.models.mockup import CompositeRequest, ImageFit
from app.utils.logging_config import get_logger

# Mockup ids become file names in OUTPUT_DIR
MOCKUP_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def validate_mockup_id(mockup_id: str) -> str:
    """Reject ids that are not a plain file name stem"""
    if not mockup_id or not MOCKUP_ID_PATTERN.fullmatch(mockup_id):
        raise ValueError(
            f"Invalid mockup id: {mockup_id!r}. Use letters, digits, '-' and '_' only"
        )
    return mockup_id


# Shared across service instances so the bound holds per process
_composite_slots: Optional[asyncio.Semaphore] = None


def _get_composite_slots() -> asyncio.Semaphore:
    global _composite_slots
    if _composite_slots is None:
        _composite_slots = asyncio.Semaphore(max(1, settings.MAX_CONCURRENT_MOCKUPS))
    return _composite_slots


class MockupService:
    """Service for handling mockup processing requests"""

    def __init__(self, mockup_compositor: MockupCompositor, output_dir: Optional[str] = None):
        self.mockup_compositor = mockup_compositor
        self.output_dir = output_dir or settings.OUTPUT_DIR
        self.logger = get_logger(__name__)
        # Ensure output directory exists
        os.makedirs(self.output_dir, exist_ok=True)

    async def _read_upload(self, upload_file: UploadFile, label: str) -> bytes:
        """Read an uploaded file fully into memory, enforcing the size limit"""
        content = await upload_file.read()
        self.logger.debug(f"{label} read, size: {len(content)}")
        if not content:
            raise ValueError(f"{label} is empty")
        if len(content) > settings.MAX_UPLOAD_SIZE:
            raise ValueError(
                f"{label} is too large: {len(content)} bytes (limit {settings.MAX_UPLOAD_SIZE})"
            )
        return content

    async def _save_output(self, content: bytes, file_path: str) -> str:
        """Write the encoded mockup to disk"""
        self.logger.debug(f"Saving mockup to {file_path}")
        async with aiofiles.open(file_path, 'wb') as out_file:
            await out_file.write(content)
        return file_path

    def find_output(self, mockup_id: str) -> Optional[str]:
        """Path of a previously generated mockup, whatever its format"""
        if not MOCKUP_ID_PATTERN.fullmatch(mockup_id or ""):
            return None
        for extension in ("jpg", "png"):
            path = os.path.join(self.output_dir, f"{mockup_id}.{extension}")
            if os.path.exists(path):
                return path
        return None

    async def process_mockup(
        self,
        mockup_id: str,
        design_image: UploadFile,
        mockup_psd: UploadFile,
        placeholder_names: Optional[Sequence[str]] = None,
        export_format: str = "jpg",
        export_quality: int = 90,
        export_dpi: Optional[float] = None,
        image_fit: str = "cover",
    ) -> Dict[str, Any]:
        """Composite the uploaded design into the uploaded PSD mockup"""
        validate_mockup_id(mockup_id)
        self.logger.info(f"Starting mockup processing for ID: {mockup_id}")

        design_bytes = await self._read_upload(design_image, "Design image")
        document_bytes = await self._read_upload(mockup_psd, "PSD file")

        request = CompositeRequest(
            design_bytes=design_bytes,
            document_bytes=document_bytes,
            placeholder_names=tuple(placeholder_names or settings.DEFAULT_PLACEHOLDER_NAMES),
            export_format=export_format,
            export_quality=export_quality,
            export_dpi=export_dpi,
            image_fit=ImageFit.parse(image_fit),
        )

        # Compositing is CPU bound and memory hungry, bound how many run at once
        async with _get_composite_slots():
            result = await run_in_threadpool(self.mockup_compositor.generate_mockup, request)

        # Drop stale output in the other format when a session id is reused
        previous = self.find_output(mockup_id)
        if previous and not previous.endswith(f".{result.extension}"):
            os.remove(previous)

        output_path = os.path.join(self.output_dir, f"{mockup_id}.{result.extension}")
        await self._save_output(result.image_bytes, output_path)
        self.logger.info(f"Mockup saved to {output_path}")

        return {
            "file_path": output_path,
            "mime_type": result.mime_type,
            "diagnostics": result.diagnostics.to_dict(),
        }

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from app.models.document import Rect


class ImageFit(str, Enum):
    """How the design image fills the placeholder frame"""
    COVER = "cover"
    CONTAIN = "contain"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ImageFit":
        """Anything other than 'contain' falls back to cover (fill frame)"""
        if isinstance(value, cls):
            return value
        if value and value.strip().lower() == cls.CONTAIN.value:
            return cls.CONTAIN
        return cls.COVER


@dataclass(frozen=True)
class CompositeRequest:
    """Caller-supplied inputs for one composite"""
    design_bytes: bytes = field(repr=False)
    document_bytes: bytes = field(repr=False)
    placeholder_names: Tuple[str, ...] = ()
    export_format: str = "jpg"
    export_quality: int = 90
    export_dpi: Optional[float] = None
    image_fit: ImageFit = ImageFit.COVER


@dataclass
class RenderResult:
    """Flattened raster plus where the design ended up"""
    raster: np.ndarray
    position: Tuple[int, int]
    design_size: Tuple[int, int]
    strategy: str


@dataclass
class ExportResult:
    image_bytes: bytes
    mime_type: str
    extension: str
    width: int
    height: int
    dpi: float


@dataclass
class CompositeDiagnostics:
    """Placement metadata reported alongside the encoded image"""
    resolved_bounds: Dict[str, int]
    composite_position: Dict[str, int]
    design_size: Dict[str, int]
    document_dimensions: Dict[str, int]
    placeholder_name: Optional[str] = None
    render_strategy: str = ""
    output_size: Dict[str, int] = field(default_factory=dict)
    dpi: Optional[float] = None

    @classmethod
    def build(
        cls,
        bounds: Rect,
        render: RenderResult,
        document_size: Tuple[int, int],
        export: ExportResult,
        placeholder_name: Optional[str] = None,
    ) -> "CompositeDiagnostics":
        return cls(
            resolved_bounds=bounds.as_dict(),
            composite_position={"left": render.position[0], "top": render.position[1]},
            design_size={"width": render.design_size[0], "height": render.design_size[1]},
            document_dimensions={"width": document_size[0], "height": document_size[1]},
            placeholder_name=placeholder_name,
            render_strategy=render.strategy,
            output_size={"width": export.width, "height": export.height},
            dpi=export.dpi,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CompositeResult:
    image_bytes: bytes
    mime_type: str
    extension: str
    diagnostics: CompositeDiagnostics

from pydantic import BaseModel, Field
from typing import Dict, List, Optional

class MockupDiagnostics(BaseModel):
    """Placement metadata for a generated mockup"""
    resolved_bounds: Dict[str, int] = Field(..., description="Placeholder bounds in document pixels")
    composite_position: Dict[str, int] = Field(..., description="Where the design was painted")
    design_size: Dict[str, int] = Field(..., description="Size of the painted design")
    document_dimensions: Dict[str, int] = Field(..., description="PSD canvas size")
    placeholder_name: Optional[str] = Field(None, description="Name of the matched placeholder layer")
    render_strategy: str = Field("", description="layer_stack or flat_composite")
    output_size: Dict[str, int] = Field(default_factory=dict, description="Exported pixel size")
    dpi: Optional[float] = Field(None, description="Density written to the exported image")

class MockupResponse(BaseModel):
    """Response schema for a processed mockup"""
    mockup_id: str = Field(..., description="Unique identifier for the mockup")
    file_path: str = Field(..., description="Server file path of the generated mockup")
    download_url: str = Field(..., description="URL to download the mockup")
    mime_type: str = Field(..., description="Media type of the exported image")
    diagnostics: MockupDiagnostics

class ErrorResponse(BaseModel):
    """Error response schema"""
    detail: str = Field(..., description="Error details")
    available_layers: Optional[List[str]] = Field(None, description="Layer names found when no placeholder matched")

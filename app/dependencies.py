from fastapi import Depends

from app.interfaces.document_decoder import DocumentDecoder
from app.interfaces.mockup_compositor import MockupCompositor
from app.implementations.psd_tools_decoder import PsdToolsDocumentDecoder
from app.implementations.psd.psd_mockup_compositor import PsdMockupCompositor
from app.services.mockup_service import MockupService

def get_document_decoder() -> DocumentDecoder:
    """Dependency for getting the layered document decoder"""
    return PsdToolsDocumentDecoder()

def get_mockup_compositor(
    document_decoder: DocumentDecoder = Depends(get_document_decoder)
) -> MockupCompositor:
    """Dependency for getting the mockup compositor implementation"""
    return PsdMockupCompositor(document_decoder)

def get_mockup_service(
    mockup_compositor: MockupCompositor = Depends(get_mockup_compositor)
) -> MockupService:
    """Dependency for getting the mockup service"""
    return MockupService(mockup_compositor)

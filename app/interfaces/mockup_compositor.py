from abc import ABC, abstractmethod

from app.models.mockup import CompositeRequest, CompositeResult

class MockupCompositor(ABC):
    """Interface for PSD mockup compositing implementations"""

    @abstractmethod
    def generate_mockup(self, request: CompositeRequest) -> CompositeResult:
        """
        Place the design image into the placeholder layer of the mockup document
        and flatten the layer stack.

        Returns:
            CompositeResult: Encoded image bytes plus placement diagnostics
        """
        pass

from abc import ABC, abstractmethod

from app.models.document import Document

class DocumentDecoder(ABC):
    """Interface for turning layered document bytes into a layer tree"""

    @abstractmethod
    def decode(self, data: bytes) -> Document:
        """
        Decode a layered document.

        Raises:
            DocumentDecodeError: The bytes are not a parsable document
        """
        pass

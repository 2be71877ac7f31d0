from typing import Iterable, List, Optional, Sequence

from app.implementations.psd.layer_tree import walk_layers
from app.models.document import Layer
from app.utils.logging_config import get_logger
from app.utils.debug_utils import debug_exception


def normalize_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


class PlaceholderLocator:
    """Finds the layer that receives the design image"""

    def __init__(self, max_depth: Optional[int] = None):
        self.logger = get_logger(__name__)
        self.max_depth = max_depth

    @debug_exception
    def locate(self, root_layers: Optional[Sequence[Layer]], candidate_names: Iterable[str]) -> Optional[Layer]:
        """Return the first visible layer whose name matches any candidate.

        Hidden layers are never chosen and their subtrees are not searched.
        A name match wins even when the layer is not flagged as a smart object.
        """
        candidates: List[str] = [normalize_name(name) for name in candidate_names if normalize_name(name)]
        if not candidates:
            self.logger.warning("No candidate placeholder names supplied")
            return None

        for layer, depth in walk_layers(root_layers, self.max_depth, skip_hidden=True):
            if normalize_name(layer.name) in candidates:
                self.logger.info(
                    f"Found matching layer \"{layer.name}\" at depth {depth} "
                    f"- isSmartObject: {layer.is_smart_object}"
                )
                return layer

        self.logger.debug(f"No layer matched any of {candidates}")
        return None

from typing import Iterator, List, Optional, Sequence, Tuple

from app.config import settings
from app.models.document import Layer
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


def walk_layers(
    root_layers: Optional[Sequence[Layer]],
    max_depth: Optional[int] = None,
    skip_hidden: bool = False,
) -> Iterator[Tuple[Layer, int]]:
    """Yield (layer, depth) in document pre-order: each layer, then its children.

    Uses an explicit stack. Children of layers at max_depth are not expanded.
    With skip_hidden, hidden layers and their subtrees are left out.
    """
    if not root_layers:
        return
    if max_depth is None:
        max_depth = settings.MAX_LAYER_DEPTH

    stack = [(layer, 0) for layer in reversed(list(root_layers))]
    while stack:
        layer, depth = stack.pop()
        if layer is None or (skip_hidden and layer.hidden):
            continue
        yield layer, depth

        if layer.children:
            if depth >= max_depth:
                logger.warning(
                    f"Layer nesting deeper than {max_depth} levels, "
                    f"not expanding children of \"{layer.name}\""
                )
                continue
            stack.extend((child, depth + 1) for child in reversed(layer.children))


def flatten_layers(root_layers: Optional[Sequence[Layer]], max_depth: Optional[int] = None) -> List[Layer]:
    """Flatten the layer tree into a single list in document order.

    Hidden layers are kept so indices match group-aware renderers.
    """
    return [layer for layer, _ in walk_layers(root_layers, max_depth)]


def collect_layer_names(root_layers: Optional[Sequence[Layer]], max_depth: Optional[int] = None) -> List[str]:
    """All non-empty layer names in document order, for diagnostics"""
    return [layer.name for layer, _ in walk_layers(root_layers, max_depth) if layer.name]

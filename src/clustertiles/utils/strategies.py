"""
Caller-supplied strategy interfaces.

Each strategy is a plain callable; the Protocols below document the input and
output contract the pipeline relies on. They are injected once through
``TileSetConfig`` and never looked up at runtime.
"""

from typing import Any, Dict, List, Optional, Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from ..clustering.cluster_index import TileFeature


Properties = Dict[str, Any]
GeoJSONFeature = Dict[str, Any]


class TagFilter(Protocol):
    """Per-tile predicate; features whose tags return False are dropped."""

    def __call__(self, tags: Properties) -> bool: ...


class GeometryMapper(Protocol):
    """
    Tile augmentation hook.

    Receives the non-cluster features of a tile and the full input feature
    list, and returns extra tile features to append. Returned features are
    not passed through the tag filter.
    """

    def __call__(
        self,
        features: List["TileFeature"],
        input_features: List[GeoJSONFeature]
    ) -> List["TileFeature"]: ...


class InputGeometryFilter(Protocol):
    """Predicate applied to raw GeoJSON features before clustering."""

    def __call__(self, feature: GeoJSONFeature) -> bool: ...


class PropertyMapper(Protocol):
    """Returns the properties a single point contributes to its cluster."""

    def __call__(self, properties: Properties) -> Properties: ...


class PropertyReducer(Protocol):
    """Merges ``properties`` into ``accumulated`` in place."""

    def __call__(self, accumulated: Properties, properties: Properties) -> Optional[Any]: ...

"""
Point geometry pre-filter applied to raw input before clustering.
"""

from typing import Any, Dict, Optional


def is_point_feature(feature: Optional[Dict[str, Any]]) -> bool:
    """True when ``feature`` has a GeoJSON Point geometry."""
    if not isinstance(feature, dict):
        return False
    geometry = feature.get('geometry')
    return isinstance(geometry, dict) and geometry.get('type') == 'Point'


def filter_points(feature_collection: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return a new FeatureCollection holding only the Point features."""
    features = (feature_collection or {}).get('features') or []

    return {
        'type': 'FeatureCollection',
        'features': [feature for feature in features if is_point_feature(feature)]
    }

"""Map overlay export utilities."""

from .geojson import route_to_feature, suggestions_to_geojson, zone_to_feature

__all__ = ["route_to_feature", "suggestions_to_geojson", "zone_to_feature"]

from .models import GeoPoint, RouteSummary

__all__ = ["GeoPoint", "RouteSummary"]

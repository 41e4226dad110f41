from .base import PlaceStore, TripStore
from .memory import InMemoryStore

__all__ = ["InMemoryStore", "PlaceStore", "TripStore"]

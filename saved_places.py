import logging
import os
import tempfile
from typing import Callable, Dict, List, Optional, Protocol, Tuple
from uuid import UUID

from pydantic import TypeAdapter

from models import Coordinate, SavedPlace, WeatherCondition

logger = logging.getLogger(__name__)

_PLACES = TypeAdapter(List[SavedPlace])

PlacesCallback = Callable[[Tuple[SavedPlace, ...]], None]


class KeyValueStorage(Protocol):
    """A persistence slot holding opaque byte blobs by key."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...


class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self.data: Dict[str, bytes] = dict(initial or {})

    def get(self, key: str) -> Optional[bytes]:
        return self.data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self.data[key] = value


class JsonFileStorage:
    """Store each key as ``<directory>/<key>.json``."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return f.read()

    def set(self, key: str, value: bytes) -> None:
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
            os.replace(tmp_path, self._path(key))
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class SavedPlacesStore:
    """Ordered, name-deduplicated list of saved places.

    Every mutation is persisted immediately. Storage failures are logged and
    never reach the caller: loading degrades to an empty list and a failed
    write leaves the in-memory list as the source of truth.
    """

    def __init__(self, storage: KeyValueStorage, key: str = "savedLocations"):
        self.storage = storage
        self.key = key
        self._places: List[SavedPlace] = []
        self._subscribers: List[PlacesCallback] = []

    @property
    def places(self) -> Tuple[SavedPlace, ...]:
        return tuple(self._places)

    def load(self) -> List[SavedPlace]:
        try:
            blob = self.storage.get(self.key)
            places = _PLACES.validate_json(blob) if blob else []
        except Exception as e:  # noqa: BLE001 - a corrupt blob must not crash startup
            logger.error(f"Error loading saved places from '{self.key}': {e}")
            places = []

        self._places = list(places)
        logger.info(f"Loaded {len(self._places)} saved places")
        self._notify()
        return list(self._places)

    def persist(self) -> None:
        try:
            self.storage.set(self.key, _PLACES.dump_json(self._places))
        except Exception as e:  # noqa: BLE001 - keep serving from memory
            logger.error(f"Error saving places to '{self.key}': {e}")

    def find_by_name(self, name: str) -> Optional[SavedPlace]:
        wanted = name.strip().lower()
        for place in self._places:
            if place.name.lower() == wanted:
                return place
        return None

    def get(self, place_id: UUID) -> Optional[SavedPlace]:
        for place in self._places:
            if place.id == place_id:
                return place
        return None

    def add(
        self,
        name: str,
        coordinate: Coordinate,
        last_known_condition: Optional[WeatherCondition] = None,
    ) -> Optional[SavedPlace]:
        """Append a place unless one with the same name (any case) exists."""
        if self.find_by_name(name) is not None:
            logger.info(f"Place '{name}' is already saved")
            return None

        place = SavedPlace(
            name=name.strip(),
            coordinate=coordinate,
            last_known_condition=last_known_condition,
        )
        self._places.append(place)
        logger.info(f"Saved place '{place.name}' ({place.id})")
        self._changed()
        return place

    def remove(self, place_id: UUID) -> bool:
        for index, place in enumerate(self._places):
            if place.id == place_id:
                del self._places[index]
                logger.info(f"Removed place '{place.name}' ({place.id})")
                self._changed()
                return True
        return False

    def replace(self, place: SavedPlace) -> bool:
        for index, existing in enumerate(self._places):
            if existing.id == place.id:
                self._places[index] = place
                self._changed()
                return True
        return False

    def subscribe(self, callback: PlacesCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _changed(self) -> None:
        self.persist()
        self._notify()

    def _notify(self) -> None:
        snapshot = self.places
        for callback in list(self._subscribers):
            callback(snapshot)

"""
Tally Core Workpaper Engine - Persistence Port

Workpapers are stored whole, one document per key, where the key is
"<namespace>-<tax_year>" (e.g. "tally-low-value-pool-2024-25").

- WorkpaperStore: the port
- InMemoryWorkpaperStore: in-process fake for tests and sessions
- JsonFileWorkpaperStore: one JSON file per key in a directory

Loaders ignore unknown fields and default missing ones, so documents
written by older or newer versions still load.
"""

import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from tally_core.utils.validation_errors import PersistenceError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Namespace used by the low-value pool workpaper
LOW_VALUE_POOL_NAMESPACE = "tally-low-value-pool"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


def workpaper_key(namespace: str, tax_year: str) -> str:
    """Build the storage key for a tax year's workpaper."""
    return f"{namespace}-{tax_year}"


class WorkpaperStore(ABC):
    """Persistence port for whole workpaper documents"""

    @abstractmethod
    def load(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the stored document, or None when the key is absent"""

    @abstractmethod
    def save(self, key: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...


class InMemoryWorkpaperStore(WorkpaperStore):
    """Dict-backed store. Documents are copied through JSON on the way in and out."""

    def __init__(self):
        self._documents: Dict[str, str] = {}

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._documents.get(key)
        return json.loads(raw) if raw is not None else None

    def save(self, key: str, data: Dict[str, Any]) -> None:
        self._documents[key] = json.dumps(data, default=str)

    def delete(self, key: str) -> bool:
        return self._documents.pop(key, None) is not None

    def keys(self) -> List[str]:
        return sorted(self._documents)


class JsonFileWorkpaperStore(WorkpaperStore):
    """File-based storage, one <key>.json per workpaper"""

    def __init__(self, directory):
        self.directory = Path(directory)
        self._write_lock = threading.Lock()

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise PersistenceError(f"Invalid storage key: {key!r}", key)
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading {path}: {e}")
            raise PersistenceError(f"Could not load workpaper {key}: {e}", key) from e

    def save(self, key: str, data: Dict[str, Any]) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with self._write_lock:
                self.directory.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, default=str)
                tmp_path.replace(path)
        except OSError as e:
            logger.error(f"Error saving {path}: {e}")
            raise PersistenceError(f"Could not save workpaper {key}: {e}", key) from e

    def delete(self, key: str) -> bool:
        path = self._path(key)
        try:
            with self._write_lock:
                if not path.exists():
                    return False
                path.unlink()
                return True
        except OSError as e:
            raise PersistenceError(f"Could not delete workpaper {key}: {e}", key) from e

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))


def dump_model(model: BaseModel) -> Dict[str, Any]:
    """JSON-safe document for a workpaper model"""
    return model.model_dump(mode="json")


def load_model(store: WorkpaperStore, key: str, model_cls: Type[M]) -> Optional[M]:
    """
    Load and parse a stored workpaper.
    Unknown fields are dropped and missing ones take their defaults.

    Raises:
        PersistenceError: the store failed or the document cannot be parsed
    """
    data = store.load(key)
    if data is None:
        return None
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        logger.error(f"Stored workpaper {key} is not a valid {model_cls.__name__}: {e}")
        raise PersistenceError(f"Stored workpaper {key} is corrupt", key) from e

"""
Tally Core Workpaper Engine - State Synchronisation

WorkpaperSession keeps the current snapshot of one stored workpaper,
applies pure operations to it, and writes the result through the
persistence port.

A failed save never loses work: the session keeps the new in-memory
snapshot, marks itself dirty and records the error; flush() retries.
A failed load keeps the last-known-good snapshot.
"""

import logging
from typing import Any, Callable, Generic, Optional, Type, TypeVar

from pydantic import BaseModel

from tally_core.logging_config import clear_workpaper_context, set_workpaper_context
from tally_core.services.workpaper.storage import (
    LOW_VALUE_POOL_NAMESPACE,
    WorkpaperStore,
    dump_model,
    load_model,
    workpaper_key,
)
from tally_core.utils.validation_errors import PersistenceError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class WorkpaperSession(Generic[M]):
    """
    Session over one "<namespace>-<tax_year>" workpaper.

    Args:
        store: persistence port
        namespace: storage namespace of the workpaper type
        tax_year: "2024-25"
        model_cls: pydantic model stored under the key
        factory: builds an empty workpaper when nothing is stored
        recalculate: applied after every operation and after loading
    """

    def __init__(
        self,
        store: WorkpaperStore,
        namespace: str,
        tax_year: str,
        model_cls: Type[M],
        factory: Optional[Callable[[str], M]] = None,
        recalculate: Optional[Callable[[M], M]] = None
    ):
        self.store = store
        self.tax_year = tax_year
        self.key = workpaper_key(namespace, tax_year)
        self.model_cls = model_cls
        self.factory = factory or (lambda year: model_cls(tax_year=year))
        self.recalculate = recalculate

        self.snapshot: Optional[M] = None
        self.last_error: Optional[PersistenceError] = None
        self.is_dirty = False

        self.reload()

    # ==================== LOADING ====================

    def reload(self) -> M:
        """
        Re-read the workpaper from the store.
        On PersistenceError the in-memory snapshot is kept (or a fresh one
        created when there is none yet).
        """
        set_workpaper_context(self.tax_year, self.key)
        try:
            loaded = load_model(self.store, self.key, self.model_cls)
        except PersistenceError as e:
            self.last_error = e
            logger.error(f"Failed to load {self.key}; keeping in-memory workpaper: {e.message}")
            if self.snapshot is None:
                self.snapshot = self._recalculated(self.factory(self.tax_year))
            return self.snapshot
        finally:
            clear_workpaper_context()

        if loaded is None:
            loaded = self.factory(self.tax_year)
        self.snapshot = self._recalculated(loaded)
        self.is_dirty = False
        return self.snapshot

    def _recalculated(self, workpaper: M) -> M:
        return self.recalculate(workpaper) if self.recalculate else workpaper

    # ==================== MUTATION ====================

    def apply(self, operation: Callable[..., M], *args: Any, **kwargs: Any) -> M:
        """
        Run operation(snapshot, *args, **kwargs), keep and persist its result.
        Errors raised by the operation propagate and leave the snapshot as it was.
        """
        set_workpaper_context(self.tax_year, self.key)
        try:
            updated = self._recalculated(operation(self.snapshot, *args, **kwargs))
            self.snapshot = updated
            self.is_dirty = True
            self.flush()
            return updated
        finally:
            clear_workpaper_context()

    def flush(self) -> bool:
        """Write the snapshot if it has unsaved changes. Returns True when saved."""
        if not self.is_dirty:
            return True
        try:
            self.store.save(self.key, dump_model(self.snapshot))
        except PersistenceError as e:
            self.last_error = e
            logger.error(f"Failed to save {self.key}; keeping in-memory workpaper: {e.message}")
            return False
        self.is_dirty = False
        self.last_error = None
        logger.debug(f"Saved {self.key}")
        return True

    def discard(self) -> bool:
        """Delete the stored workpaper and start again from an empty one."""
        try:
            removed = self.store.delete(self.key)
        except PersistenceError as e:
            self.last_error = e
            logger.error(f"Failed to delete {self.key}: {e.message}")
            raise
        self.snapshot = self._recalculated(self.factory(self.tax_year))
        self.is_dirty = False
        return removed

    # ==================== FACTORIES ====================

    @classmethod
    def for_low_value_pool(cls, store: WorkpaperStore, tax_year: str, namespace: str = LOW_VALUE_POOL_NAMESPACE):
        from tally_core.services.workpaper import low_value_pool
        from tally_core.services.workpaper.models import LowValuePoolWorkpaper

        return cls(
            store,
            namespace,
            tax_year,
            LowValuePoolWorkpaper,
            factory=low_value_pool.create_empty_workpaper,
            recalculate=low_value_pool.recalculate_pool,
        )

    @classmethod
    def for_model(cls, store: WorkpaperStore, model_cls: Type[M], tax_year: str, namespace: Optional[str] = None):
        """Session for a record store or workpaper class carrying a NAMESPACE."""
        recalculate = getattr(model_cls, "recalculate", None)
        return cls(
            store,
            namespace or model_cls.NAMESPACE,
            tax_year,
            model_cls,
            recalculate=recalculate,
        )

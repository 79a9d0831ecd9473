"""
Model Store

Holds the active model per scope (one global model plus optional
scholarship-specific models). The active set is an immutable mapping that
is replaced by a single reference assignment, so a reader sees either the
old set or the new one and never a half-written model. Writers serialize
through a lock; readers never lock.
"""

import logging
import threading
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional

from .contracts import Model
from .errors import ModelNotFound

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"


class ModelStore:
    def __init__(self):
        self._active: Mapping[str, Model] = MappingProxyType({})
        self._history: List[Model] = []
        self._write_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def current(self, scholarship_id: Optional[str] = None) -> Optional[Model]:
        """
        Active model for a scholarship: its own model if one is active,
        else the global model, else None.
        """
        active = self._active
        if scholarship_id is not None and scholarship_id in active:
            return active[scholarship_id]
        return active.get(GLOBAL_SCOPE)

    def active_models(self) -> List[Model]:
        return list(self._active.values())

    def history(self) -> List[Model]:
        """Every model ever activated, oldest first. Superseded models are kept."""
        return list(self._history)

    def latest_version(self, scholarship_id: Optional[str] = None) -> int:
        """Highest version recorded for a scope, 0 if none."""
        scope = scholarship_id or GLOBAL_SCOPE
        versions = [m.version for m in self._history if m.scope == scope]
        return max(versions, default=0)

    def find(self, version: int, scholarship_id: Optional[str] = None) -> Model:
        scope = scholarship_id or GLOBAL_SCOPE
        for model in reversed(self._history):
            if model.version == version and model.scope == scope:
                return model
        raise ModelNotFound(
            f"No model v{version} for scope {scope}",
            details={"version": version, "scope": scope},
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def activate(self, model: Model) -> Model:
        """Make a model the active one for its scope."""
        with self._write_lock:
            updated = dict(self._active)
            previous = updated.get(model.scope)
            updated[model.scope] = model
            if not any(m is model for m in self._history):
                self._history.append(model)
            self._active = MappingProxyType(updated)

        if previous is not None:
            logger.info(f"🔄 Model v{model.version} replaces v{previous.version} ({model.scope})")
        else:
            logger.info(f"🔄 Model v{model.version} activated ({model.scope})")
        return model

    def rollback(self, version: int, scholarship_id: Optional[str] = None) -> Model:
        """Re-activate an earlier model of the same scope."""
        return self.activate(self.find(version, scholarship_id))

    def load(self, models: Iterable[Model], history: Iterable[Model] = ()) -> None:
        """Replace the whole store, e.g. from persisted models on startup."""
        with self._write_lock:
            active = {m.scope: m for m in models}
            self._history = list(history) or list(active.values())
            self._active = MappingProxyType(active)
        logger.info(f"📦 Loaded {len(active)} active model(s)")

    def clear(self) -> None:
        with self._write_lock:
            self._active = MappingProxyType({})
            self._history = []


model_store = ModelStore()

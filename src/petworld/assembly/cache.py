"""Per-trajectory memoization of models assemblies.

Parsing operator expressions and composing matrices depends only on the
static metadata of a trajectory, so the result is built once per trajectory
object and shared by every frame. Entries are held in a weak-keyed side
table and disappear together with the trajectory.
"""

from __future__ import annotations

import logging
import threading
import weakref
from typing import Optional, Tuple

from petworld.assembly.definitions import ModelsAssembly, build_models_assemblies
from petworld.assembly.operators import build_matrix_table
from petworld.data.tables import MmcifSource
from petworld.data.trajectory import Trajectory


logger = logging.getLogger(__name__)


def create_models_assemblies(source: Optional[MmcifSource]) -> Tuple[ModelsAssembly, ...]:
    """Build all models assemblies described by a trajectory's metadata."""
    if source is None:
        return ()
    matrices = build_matrix_table(source.operators)
    return build_models_assemblies(
        source.assemblies,
        source.generators,
        matrices,
        source.generator_model_nums,
    )


class AssemblyCache:
    """Weak-keyed cache of models assemblies per trajectory.

    Construction happens at most once per trajectory, also under concurrent
    first access. A failed construction stores nothing, so the next request
    retries and raises again.
    """

    def __init__(self):
        self._entries: "weakref.WeakKeyDictionary[Trajectory, Tuple[ModelsAssembly, ...]]" = (
            weakref.WeakKeyDictionary()
        )
        self._locks: "weakref.WeakKeyDictionary[Trajectory, threading.Lock]" = (
            weakref.WeakKeyDictionary()
        )
        self._guard = threading.Lock()
        self.build_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, trajectory: Trajectory) -> bool:
        return trajectory in self._entries

    def _lock_for(self, trajectory: Trajectory) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(trajectory)
            if lock is None:
                lock = threading.Lock()
                self._locks[trajectory] = lock
            return lock

    def get_or_build(self, trajectory: Trajectory) -> Tuple[ModelsAssembly, ...]:
        """Return the models assemblies of ``trajectory``, building them once.

        Raises:
            InvalidExpression: An operator expression is malformed
            MalformedTable: The assembly tables are inconsistent
        """
        cached = self._entries.get(trajectory)
        if cached is not None:
            return cached

        with self._lock_for(trajectory):
            cached = self._entries.get(trajectory)
            if cached is not None:
                return cached
            assemblies = create_models_assemblies(trajectory.source)
            self.build_count += 1
            self._entries[trajectory] = assemblies
            logger.debug(
                f"Cached {len(assemblies)} assemblies for {trajectory.label or 'trajectory'}"
            )
            return assemblies

    def invalidate(self, trajectory: Trajectory) -> None:
        with self._guard:
            self._entries.pop(trajectory, None)

    def clear(self) -> None:
        with self._guard:
            self._entries.clear()


_default_cache: Optional[AssemblyCache] = None
_default_cache_lock = threading.Lock()


def get_default_cache() -> AssemblyCache:
    """Process-wide cache used by builders created without one."""
    global _default_cache
    with _default_cache_lock:
        if _default_cache is None:
            _default_cache = AssemblyCache()
        return _default_cache


__all__ = ["AssemblyCache", "create_models_assemblies", "get_default_cache"]

"""Lazy multi-model trajectories.

A trajectory is an ordered sequence of models (frames) that share one set of
static mmCIF metadata. Frames are decoded on demand, off the event loop, and
memoized once decoding has completed.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Dict, Optional, Sequence

from petworld.data.parsers.structure import Model
from petworld.data.tables import MmcifSource
from petworld.exceptions import FrameResolutionError


logger = logging.getLogger(__name__)

FrameLoader = Callable[[int], Model]


class Trajectory:
    """Ordered, lazily decoded frames of one multi-model file.

    Instances hash and compare by identity so they can key caches.

    Args:
        frame_count: Number of frames
        loader: Callable decoding the frame at a zero-based index
        source: Static metadata shared by every frame, None for non-mmCIF input
        label: Display label (usually the entry id)
    """

    def __init__(
        self,
        frame_count: int,
        loader: FrameLoader,
        source: Optional[MmcifSource] = None,
        label: str = "",
    ):
        if frame_count < 0:
            raise ValueError(f"frame_count must be >= 0, got {frame_count}")
        self._frame_count = frame_count
        self._loader = loader
        self.source = source
        self.label = label
        self._frames: Dict[int, Model] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_models(
        cls,
        models: Sequence[Model],
        source: Optional[MmcifSource] = None,
        label: str = "",
    ) -> "Trajectory":
        """Wrap already decoded models."""
        frames = list(models)
        return cls(len(frames), frames.__getitem__, source=source, label=label)

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def __len__(self) -> int:
        return self._frame_count

    def __repr__(self) -> str:
        return f"Trajectory(label={self.label!r}, frame_count={self._frame_count})"

    def is_loaded(self, index: int) -> bool:
        return index in self._frames

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self._frame_count:
            raise FrameResolutionError(
                f"Frame index {index} out of range [0, {self._frame_count})",
                index=index,
            )

    def _decode(self, index: int) -> Model:
        try:
            model = self._loader(index)
        except FrameResolutionError:
            raise
        except Exception as exc:
            raise FrameResolutionError(
                f"Failed to decode frame {index} of {self.label or 'trajectory'}: {exc}",
                index=index,
            ) from exc
        with self._lock:
            # Keep the first decoded instance if two requests raced.
            return self._frames.setdefault(index, model)

    def get_frame(self, index: int) -> Model:
        """Resolve a frame synchronously."""
        self._check_index(index)
        cached = self._frames.get(index)
        if cached is not None:
            return cached
        logger.debug(f"Decoding frame {index} of {self.label or 'trajectory'}")
        return self._decode(index)

    async def get_frame_at_index(self, index: int) -> Model:
        """Resolve a frame, decoding it in the default executor if needed.

        Cancelling the awaiting task abandons the result; the frame is only
        memoized by a decode that ran to completion.
        """
        self._check_index(index)
        cached = self._frames.get(index)
        if cached is not None:
            return cached
        logger.debug(f"Decoding frame {index} of {self.label or 'trajectory'} in executor")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._decode, index)


__all__ = ["Trajectory", "FrameLoader"]

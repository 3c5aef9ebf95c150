"""
Journaled store - staged writes with nested commit/rollback.

Conceptual Background:
---------------------
A contract platform gives every call all-or-nothing semantics: if the call
aborts, none of its writes survive, including writes made *before* the
failing external call. ``JournaledStore`` reproduces that on top of any
``KeyValueStore``:

1. ``begin()`` opens a frame; reads see the newest frame first
2. writes land in the innermost frame only
3. ``commit()`` merges the frame into its parent, or flushes it to the
   base store in one batch when it is the outermost frame
4. ``rollback()`` drops the frame

Frames nest, so a re-entrant call made from inside an external call gets
its own frame and can fail without taking its caller down with it.
Writes made while no frame is open go straight to the base store.
"""

from typing import List, Optional, Tuple

from auctionstore.core.storage.kv import ChangeSet, KeyValueStore
from auctionstore.utils.logger import get_logger

logger = get_logger("storage.journal")


class JournaledStore:
    """
    KeyValueStore view with a stack of uncommitted write frames.

    Attributes:
        base: Store that receives committed outermost frames
    """

    def __init__(self, base: KeyValueStore):
        self.base = base
        self._frames: List[ChangeSet] = []

    @property
    def depth(self) -> int:
        """Number of open frames (0 = not inside a call)."""
        return len(self._frames)

    # =========================================================================
    # Frames
    # =========================================================================

    def begin(self) -> None:
        self._frames.append({})

    def commit(self) -> None:
        if not self._frames:
            raise RuntimeError("commit() without an open frame")

        frame = self._frames.pop()
        if self._frames:
            self._frames[-1].update(frame)
        elif frame:
            self.base.write_batch(frame)
            logger.debug(f"Flushed {len(frame)} writes to base store")

    def rollback(self) -> None:
        if not self._frames:
            raise RuntimeError("rollback() without an open frame")

        frame = self._frames.pop()
        logger.debug(f"Discarded {len(frame)} staged writes (depth={self.depth})")

    # =========================================================================
    # KeyValueStore
    # =========================================================================

    def get(self, bucket: str, key: bytes) -> Optional[bytes]:
        slot = (bucket, key)
        for frame in reversed(self._frames):
            if slot in frame:
                return frame[slot]
        return self.base.get(bucket, key)

    def put(self, bucket: str, key: bytes, value: bytes) -> None:
        if self._frames:
            self._frames[-1][(bucket, key)] = value
        else:
            self.base.put(bucket, key, value)

    def delete(self, bucket: str, key: bytes) -> None:
        if self._frames:
            self._frames[-1][(bucket, key)] = None
        else:
            self.base.delete(bucket, key)

    def items(self, bucket: str) -> List[Tuple[bytes, bytes]]:
        merged = dict(self.base.items(bucket))
        for frame in self._frames:
            for (frame_bucket, key), value in frame.items():
                if frame_bucket != bucket:
                    continue
                if value is None:
                    merged.pop(key, None)
                else:
                    merged[key] = value
        return sorted(merged.items())

    def write_batch(self, changes: ChangeSet) -> None:
        for (bucket, key), value in changes.items():
            if value is None:
                self.delete(bucket, key)
            else:
                self.put(bucket, key, value)

    def __repr__(self) -> str:
        return f"JournaledStore(depth={self.depth}, base={self.base!r})"

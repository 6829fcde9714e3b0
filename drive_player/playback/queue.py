"""
Queue model for DrivePlayer.

Derives the play order from the library listing plus shuffle/repeat policy.
Every function here is pure and total: no I/O, no exceptions. The queue is
always recomputed from the library, never patched in place.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from drive_player.library.types import TrackMeta

logger = logging.getLogger(__name__)


class RepeatMode(Enum):
    """Queue repeat modes."""

    OFF = "off"  # Stop after last track
    ALL = "all"  # Loop entire queue
    ONE = "one"  # Repeat current track


_REPEAT_CYCLE = [RepeatMode.OFF, RepeatMode.ALL, RepeatMode.ONE]


@dataclass(frozen=True)
class QueueStep:
    """Result of advancing the queue cursor."""

    index: int
    wrapped: bool = False


def build_queue(library: Sequence[TrackMeta], shuffle_on: bool) -> list[TrackMeta]:
    """
    Build the play queue for a library.

    With shuffle off the queue is the library in store order. With shuffle
    on it is a uniformly random permutation, regenerated on every call.
    """
    queue = list(library)
    if shuffle_on:
        random.shuffle(queue)
        logger.debug(f"Shuffled queue of {len(queue)} tracks")
    return queue


def index_of(queue: Sequence[TrackMeta], track_id: str) -> Optional[int]:
    """Position of a track in the queue, or None if it is not there."""
    for i, track in enumerate(queue):
        if track.id == track_id:
            return i
    return None


def next_index(
    queue: Sequence[TrackMeta],
    current_index: int,
    repeat_mode: RepeatMode,
) -> Optional[QueueStep]:
    """
    Resolve the track after current_index.

    Wraps to the start only under RepeatMode.ALL. Returns None at the end of
    the queue otherwise (RepeatMode.ONE is resolved by the caller on track
    end, so it behaves like OFF here).
    """
    if not queue:
        return None
    if current_index + 1 < len(queue):
        return QueueStep(index=current_index + 1)
    if repeat_mode == RepeatMode.ALL:
        return QueueStep(index=0, wrapped=True)
    return None


def prev_index(queue: Sequence[TrackMeta], current_index: int) -> Optional[int]:
    """
    Resolve the track before current_index.

    Unlike next_index this always wraps to the last track, whatever the
    repeat mode. Returns None only for an empty queue.
    """
    if not queue:
        return None
    if current_index - 1 < 0:
        return len(queue) - 1
    return current_index - 1


def cycle_repeat(mode: RepeatMode) -> RepeatMode:
    """OFF -> ALL -> ONE -> OFF."""
    return _REPEAT_CYCLE[(_REPEAT_CYCLE.index(mode) + 1) % len(_REPEAT_CYCLE)]

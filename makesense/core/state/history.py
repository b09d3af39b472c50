from __future__ import annotations

import math
from collections import deque
from itertools import islice
from typing import Deque, Iterator, Sequence, Tuple

from makesense.domain.models import Sample


def decimation_stride(length: int, target_points: int) -> int:
    """
    Positional stride used to fit ``length`` samples into ``target_points``.

    Returns 1 when no decimation is needed.
    """
    if target_points < 1:
        raise ValueError("target_points must be positive")
    if length <= target_points:
        return 1
    return math.ceil(length / target_points)


def decimate(samples: Sequence[Sample], target_points: int) -> Tuple[Sample, ...]:
    """
    Keep every ``stride``-th sample, starting with the oldest.

    The result holds exactly ``ceil(len(samples) / stride)`` samples in
    chronological order. Intermediate samples are dropped, never averaged.

    Examples
    --------
    250 samples with a 100 point budget: stride 3, indices 0, 3, ..., 249,
    84 points.
    """
    stride = decimation_stride(len(samples), target_points)
    return tuple(islice(samples, 0, None, stride))


class SampleHistory:
    """
    Bounded FIFO of samples, oldest first.

    Appending at capacity evicts the oldest sample. Not thread-safe; the
    reduction engine serializes access.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._samples: Deque[Sample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, sample: Sample) -> None:
        self._samples.append(sample)

    def resize(self, capacity: int) -> None:
        """Change capacity, keeping the most recent samples that fit."""
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._samples = deque(self._samples, maxlen=capacity)

    def clear(self) -> None:
        self._samples.clear()

    def snapshot(self) -> Tuple[Sample, ...]:
        return tuple(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self._samples)

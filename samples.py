from dataclasses import dataclass
from enum import Enum

import numpy as np


class Label(Enum):
    A = 0
    B = 1

    @property
    def index(self):
        return self.value


@dataclass(frozen=True)
class Sample:
    label: Label
    vector: np.ndarray


class SampleStore:
    """
    Two insertion-ordered buckets of embedding vectors, one per label.

    The label of a vector is implied by the bucket it sits in. Nothing is
    deduplicated and the vector width is not checked; the extractor's
    fixed output shape is trusted.
    """

    def __init__(self):
        self._buckets = {Label.A: [], Label.B: []}

    def add_sample(self, label: Label, vector) -> Sample:
        vector = np.array(vector, dtype=np.float32)
        # samples are immutable once stored
        vector.setflags(write=False)
        sample = Sample(label=label, vector=vector)
        self._buckets[label].append(sample)
        return sample

    def samples(self, label: Label):
        return tuple(self._buckets[label])

    def vectors(self, label: Label):
        return [s.vector for s in self._buckets[label]]

    def counts(self):
        return len(self._buckets[Label.A]), len(self._buckets[Label.B])

    @property
    def total(self):
        return sum(self.counts())

    def dataset(self):
        """Return (X, y) with every A sample before every B sample."""
        ordered = self._buckets[Label.A] + self._buckets[Label.B]
        if not ordered:
            return np.empty((0, 0), dtype=np.float32), np.empty((0,), dtype=np.int64)
        xs = np.stack([s.vector for s in ordered]).astype(np.float32)
        ys = np.array([s.label.index for s in ordered], dtype=np.int64)
        return xs, ys

    def clear(self):
        for bucket in self._buckets.values():
            bucket.clear()

    def __len__(self):
        return self.total

from __future__ import annotations

import numpy as np
import pytest

from samples import Label, SampleStore


def test_counts_follow_interleaved_captures(make_vectors) -> None:
    store = SampleStore()
    sequence = [Label.A, Label.B, Label.B, Label.A, Label.A, Label.B, Label.A]
    for label, vector in zip(sequence, make_vectors(len(sequence))):
        store.add_sample(label, vector)

    assert store.counts() == (4, 3)
    assert store.total == 7
    assert len(store) == 7


def test_buckets_keep_insertion_order(make_vectors) -> None:
    store = SampleStore()
    vectors = make_vectors(4)
    for label, vector in zip([Label.B, Label.A, Label.B, Label.A], vectors):
        store.add_sample(label, vector)

    a = store.samples(Label.A)
    b = store.samples(Label.B)
    np.testing.assert_array_equal(a[0].vector, vectors[1])
    np.testing.assert_array_equal(a[1].vector, vectors[3])
    np.testing.assert_array_equal(b[0].vector, vectors[0])
    np.testing.assert_array_equal(b[1].vector, vectors[2])
    assert all(s.label is Label.A for s in a)


def test_dataset_puts_class_a_first(make_vectors) -> None:
    store = SampleStore()
    vectors = make_vectors(3)
    store.add_sample(Label.B, vectors[0])
    store.add_sample(Label.A, vectors[1])
    store.add_sample(Label.A, vectors[2])

    xs, ys = store.dataset()

    assert xs.shape == (3, vectors[0].shape[0])
    assert xs.dtype == np.float32
    assert ys.tolist() == [0, 0, 1]
    np.testing.assert_array_equal(xs[2], vectors[0])


def test_stored_vectors_are_immutable_copies(make_vectors) -> None:
    store = SampleStore()
    vector = make_vectors(1)[0]
    sample = store.add_sample(Label.A, vector)

    vector[0] = 1234.0
    assert sample.vector[0] != 1234.0
    with pytest.raises(ValueError):
        sample.vector[0] = 0.0


def test_duplicates_are_kept(make_vectors) -> None:
    store = SampleStore()
    vector = make_vectors(1)[0]
    store.add_sample(Label.A, vector)
    store.add_sample(Label.A, vector)

    assert store.counts() == (2, 0)


def test_empty_dataset() -> None:
    xs, ys = SampleStore().dataset()

    assert xs.shape[0] == 0
    assert ys.shape == (0,)

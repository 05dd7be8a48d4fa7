import pytest

from kmersweep.sweep import kmer_range


def test_kmer_range_includes_both_bounds():
    assert kmer_range(19, 25) == [19, 21, 23, 25]


def test_kmer_range_single_value():
    assert kmer_range(21, 21) == [21]


def test_default_range_is_ascending_and_odd():
    kmers = kmer_range(19, 201)
    assert kmers[0] == 19
    assert kmers[-1] == 201
    assert len(kmers) == 92
    assert all(k % 2 == 1 for k in kmers)
    assert kmers == sorted(kmers)


@pytest.mark.parametrize("from_k, to_k", [(20, 25), (19, 24), (-1, 5), (25, 19)])
def test_invalid_bounds_raise(from_k, to_k):
    with pytest.raises(ValueError):
        kmer_range(from_k, to_k)


@pytest.mark.parametrize("from_k, to_k", [("19", 25), (19.0, 25), (True, 25)])
def test_non_integer_bounds_raise(from_k, to_k):
    with pytest.raises(ValueError):
        kmer_range(from_k, to_k)

import pytest
from numpy.testing import assert_array_equal

from ndflow.descriptor import AffineDescriptor, ThreadGroup
from ndflow.errors import BoundsCheckError, TooManyDimsError


def test_contiguous():
    d = AffineDescriptor.contiguous((2, 3))
    assert (2, 3) == d.shape
    assert (3, 1) == d.strides
    assert 0 == d.offset
    assert 2 == d.ndim
    assert 6 == d.size
    assert d.is_valid


def test_shape_strides_mismatch():
    with pytest.raises(ValueError):
        AffineDescriptor(shape=(2, 3), strides=(1,))


def test_storage_index():
    d = AffineDescriptor(shape=(2, 3), strides=(-3, 1), offset=3)
    assert 3 == d.storage_index((0, 0))
    assert 2 == d.storage_index((1, 2))
    with pytest.raises(IndexError):
        d.storage_index((0,))


def test_extent():
    d = AffineDescriptor(shape=(2, 3), strides=(-3, 2), offset=3)
    assert (0, 7) == d.extent()
    assert AffineDescriptor(shape=(0, 3), strides=(3, 1)).extent() is None
    # rank-0 addresses exactly one element
    assert (5, 5) == AffineDescriptor(shape=(), strides=(), offset=5).extent()


def test_indices():
    d = AffineDescriptor(shape=(2, 3), strides=(1, 2), offset=1)
    assert_array_equal([[1, 3, 5], [2, 4, 6]], d.indices())
    d = AffineDescriptor(shape=(2, 2), strides=(0, 1))
    assert_array_equal([[0, 1], [0, 1]], d.indices())
    assert (0, 4) == AffineDescriptor(shape=(0, 4), strides=(4, 1)).indices().shape


def test_flat_storage():
    d = AffineDescriptor(shape=(2, 3), strides=(1, 2), offset=1)
    assert_array_equal([5, 2, 1], d.flat_storage([2, 3, 0]))
    assert_array_equal(d.indices().reshape(-1), d.flat_storage(range(6)))
    assert_array_equal([[4]], AffineDescriptor(shape=(5,), strides=(-1,), offset=4)
                       .flat_storage([[0]]))
    assert_array_equal([7, 7], AffineDescriptor(shape=(), strides=(), offset=7)
                       .flat_storage([0, 0]))
    assert (0,) == d.flat_storage([]).shape


def test_validate():
    d = AffineDescriptor(shape=(2, 3), strides=(3, 1), offset=0)
    d.validate(6)
    with pytest.raises(BoundsCheckError):
        d.validate(5)
    d = AffineDescriptor(shape=(2,), strides=(-1,), offset=0)
    with pytest.raises(BoundsCheckError):
        d.validate(5)
    # empty descriptors address nothing
    AffineDescriptor(shape=(0,), strides=(1,), offset=10).validate(0)


def test_deferred_errors():
    d = AffineDescriptor.contiguous((3,))
    e = d.defer(TooManyDimsError(1, 2, 1), BoundsCheckError(5, 0, 2))
    assert not e.is_valid
    assert d.is_valid
    with pytest.raises(TooManyDimsError):
        e.validate(3)


def test_thread_group():
    t = ThreadGroup.default(3)
    assert (3,) == t.cuts
    assert 2 == t.ngroups
    assert [(0, 3), (3, 3)] == t.groups()
    assert [(2, 3, 4), ()] == t.split_shape((2, 3, 4))

    t = ThreadGroup(4, (1, 3))
    assert [(0, 1), (1, 3), (3, 4)] == t.groups()
    assert 0 == t.group_of(0)
    assert 1 == t.group_of(2)
    assert 2 == t.group_of(3)
    assert [(2,), (3, 4), (5,)] == t.split_shape((2, 3, 4, 5))
    with pytest.raises(IndexError):
        t.group_of(4)


def test_thread_group_invalid():
    with pytest.raises(ValueError):
        ThreadGroup(3, (2, 1))
    with pytest.raises(ValueError):
        ThreadGroup(3, (4,))


def test_frozen():
    d = AffineDescriptor.contiguous((2,))
    with pytest.raises(AttributeError):
        d.offset = 1

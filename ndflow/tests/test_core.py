import gc

import numpy as np
import pytest
from numpy.testing import assert_array_equal

import ndflow
from ndflow.core import Array
from ndflow.errors import BoundsCheckError, DataflowError, ShapeMismatchError


def _grid():
    return ndflow.array(np.arange(10).reshape(2, 5))


def test_creation():
    a = ndflow.array([[1, 2], [3, 4]])
    assert isinstance(a, Array)
    assert (2, 2) == a.shape
    assert 2 == a.ndim
    assert 4 == a.size
    assert 'physical' == a.kind
    assert a.is_physical
    assert not a.is_virtual
    assert not a.flows
    assert a.source is None
    assert a is a.owner
    assert (2, 1) == a.strides
    assert 0 == a.offset

    z = ndflow.zeros((2, 3), dtype='i2')
    assert np.dtype('i2') == z.dtype
    assert 2 == z.itemsize
    assert 12 == z.nbytes
    assert_array_equal(np.zeros((2, 3)), z.get())
    assert_array_equal(np.ones(3), ndflow.ones(3).get())
    assert_array_equal(np.full((2,), 7), ndflow.full(2, 7).get())
    assert (2, 3) == ndflow.empty((2, 3)).shape


def test_creation_like():
    a = ndflow.zeros((2, 3), dtype='f4')
    for b in (ndflow.empty_like(a), ndflow.zeros_like(a), ndflow.ones_like(a),
              ndflow.full_like(a, 2)):
        assert (2, 3) == b.shape
        assert np.dtype('f4') == b.dtype
    assert_array_equal(np.full((2, 3), 2), ndflow.full_like(a, 2).get())
    assert (4,) == ndflow.zeros_like(np.zeros(4)).shape


def test_array_copies_data():
    data = np.arange(4)
    a = ndflow.array(data)
    data[0] = 99
    assert 0 == a.at(0)
    b = ndflow.array(a)
    b.set_at(0, 5)
    assert 0 == a.at(0)


def test_rank0_and_empty():
    a = ndflow.array(5)
    assert () == a.shape
    assert 1 == a.size
    assert not a.isempty
    assert 5 == a.at()
    a.assign(6)
    assert 6 == a.get()

    e = ndflow.zeros((0, 3))
    assert e.isempty
    assert (0, 3) == e.get().shape
    assert (0, 3) == e.slice(':').get().shape


def test_affine_view_reads_and_writes():
    a = _grid()
    v = a.slice(':,1:3')
    assert 'affine' == v.kind
    assert v.is_virtual
    assert v.flows
    assert a is v.owner
    assert a is v.source
    assert_array_equal([[1, 2, 3], [6, 7, 8]], v.get())

    v.assign(0)
    assert_array_equal([[0, 0, 0, 0, 4], [5, 0, 0, 0, 9]], a.get())

    a.set_at((1, 2), 42)
    assert 42 == v.at(1, 1)


def test_view_chains_collapse():
    a = _grid()
    v = a.slice('-1:0').slice(':,-1:0').slice('0')
    assert a is v.owner
    assert_array_equal([[9, 8, 7, 6, 5]], v.get())
    assert (-5, -1) == v.strides
    assert 9 == v.offset


def test_deferred_bounds_error():
    a = _grid()
    v = a.slice('7')
    # shape is available without evaluating
    assert (1, 5) == v.shape
    with pytest.raises(BoundsCheckError):
        v.get()
    with pytest.raises(BoundsCheckError):
        v.assign(1)
    with pytest.raises(BoundsCheckError):
        np.asarray(v)
    # a failed evaluation leaves the source untouched
    assert_array_equal(np.arange(10).reshape(2, 5), a.get())


def test_at_and_set_at():
    a = _grid()
    assert 9 == a.at(-1, -1)
    assert 7 == a.at((1, 2))
    a.set_at((0, -1), 40)
    assert 40 == a.at(0, 4)
    with pytest.raises(BoundsCheckError):
        a.at(2, 0)
    with pytest.raises(IndexError):
        a.at(0, 0, 0)
    with pytest.raises(IndexError):
        a.at(0)


def test_assign_broadcasts_trailing():
    a = ndflow.zeros((3, 4))
    a.assign([1, 2, 3])
    assert_array_equal([[1] * 4, [2] * 4, [3] * 4], a.get())
    a.assign(np.arange(4).reshape(1, 4))
    assert_array_equal([[0, 1, 2, 3]] * 3, a.get())
    a.assign(ndflow.full((3, 1), 5))
    assert_array_equal(np.full((3, 4), 5), a.get())
    with pytest.raises(ShapeMismatchError):
        a.assign([1, 2])


def test_writable():
    a = _grid()
    v = a.slice('1')
    with v.writable() as out:
        out[0, 0] = 100
        out[0, -1] *= 2
    assert_array_equal([100, 6, 7, 8, 18], a.get()[1])


def test_array_protocol():
    a = _grid()
    assert_array_equal(np.arange(10).reshape(2, 5), np.asarray(a))
    assert np.dtype('f8') == np.asarray(a, dtype='f8').dtype


def test_sever_affine():
    a = _grid()
    v = a.slice('0')
    assert v is v.sever()
    assert 'physical' == v.kind
    assert v.source is None
    v.assign(-1)
    assert_array_equal(np.arange(5), a.get()[0])
    # idempotent
    assert v is v.sever()
    assert_array_equal([[-1] * 5], v.get())


def test_sever_keeps_existing_children_on_original_owner():
    a = _grid()
    v = a.slice('0')
    w = v.slice(':,0:1')
    v.sever()
    w.assign(7)
    assert_array_equal([7, 7], a.get()[0, :2])
    assert_array_equal([0, 1], v.get()[0, :2])


def test_sever_computed():
    a = ndflow.array([1, 2, 3])
    c = a.index1d([2, 0])
    c.sever()
    assert 'physical' == c.kind
    assert_array_equal([3, 1], c.get())
    c.assign(0)
    assert_array_equal([1, 2, 3], a.get())


def test_copy():
    a = _grid()
    v = a.slice('-1:0')
    c = v.copy()
    assert 'physical' == c.kind
    assert c is not v
    assert_array_equal(v.get(), c.get())
    c.assign(0)
    assert 9 == a.at(1, 4)
    # copies of physical arrays are independent too
    d = a.copy()
    d.assign(1)
    assert 0 == a.at(0, 0)


def test_set_flow():
    a = ndflow.array([1, 2, 3])
    with pytest.raises(DataflowError):
        a.slice('0:1').set_flow(forward=False)
    with pytest.raises(DataflowError):
        a.set_flow(backward=False)

    c = a.index1d([0, 1])
    assert c.flows
    c.set_flow(forward=False)
    assert_array_equal([1, 2], c.get())
    a.set_at(0, 10)
    # not refreshed any more
    assert_array_equal([1, 2], c.get())
    c.set_flow(forward=True)
    assert_array_equal([10, 2], c.get())

    c.set_flow(backward=False)
    c.assign(0)
    assert_array_equal([10, 2, 3], a.get())
    c.set_flow(forward=False, backward=False)
    assert not c.flows


def test_first_read_pulls_even_without_forward_flow():
    a = ndflow.array([1, 2, 3])
    c = a.index1d([2])
    c.set_flow(forward=False)
    assert_array_equal([3], c.get())


def test_views_are_tracked_weakly():
    a = _grid()
    v = a.slice(':')
    assert [v] == a.views()
    del v
    gc.collect()
    assert [] == a.views()


def test_repr():
    a = ndflow.zeros((2, 3), dtype='i4')
    assert '<ndflow.core.Array physical (2, 3) int32>' == repr(a)
    assert '<ndflow.core.Array affine (3, 2) int32>' == repr(a.exchange_axes(0, 1))


def test_info_items():
    a = ndflow.zeros(3)
    items = dict(a.info_items())
    assert 'physical' == items['Kind']
    assert '(3,)' == items['Shape']
    assert 'Flow' not in items
    bad = a.slice('5')
    assert 1 == dict(bad.info_items())['Deferred errors']


def test_missing_mask():
    a = ndflow.array([1, 2, 3])
    assert not a.missing_mask().any()
    r = a.range([[1, 5]], boundary='t')
    assert_array_equal([False, True], r.missing_mask())
    assert_array_equal([True], r.slice('1').missing_mask())


def test_missing_mask_survives_chained_gathers():
    a = ndflow.array([10, 11, 12, 13, 14])
    r = a.range([[3]], size=4, boundary='truncate').slice('(0)')
    assert_array_equal([False, False, True, True], r.missing_mask())
    c = r.index1d([1, 2, 3])
    assert_array_equal([False, True, True], c.missing_mask())
    assert_array_equal([14, 0, 0], c.get())
    # missing elements are not written back
    c.assign(-1)
    assert_array_equal([10, 11, 12, 13, -1], a.get())
    g = ndflow.array(np.arange(6).reshape(2, 3)).range([[1]], size=3, boundary='t')
    m = g.slice('(0)').exchange_axes(0, 1).flat()
    assert 'computed' == m.kind
    assert_array_equal([False, True, True] * 3, m.missing_mask())


def test_computed_view_reads_only_mapped_elements(monkeypatch):
    a = ndflow.array(np.arange(1000))
    s = a.slice('-1:0')
    c = s.index1d([1, 2])

    def whole_copy():
        raise AssertionError('source copied')

    monkeypatch.setattr(s, 'get', whole_copy)
    assert_array_equal([998, 997], c.get())

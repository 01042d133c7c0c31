import numpy as np
import pytest
from numpy.testing import assert_array_equal

import ndflow
from ndflow.errors import AxisError, NegativeSizeError


def _cube():
    return ndflow.array(np.arange(24).reshape(2, 3, 4)), np.arange(24).reshape(2, 3, 4)


def test_exchange_axes():
    m = ndflow.array(np.arange(6).reshape(2, 3))
    t = m.exchange_axes(0, 1)
    assert 'affine' == t.kind
    assert_array_equal(np.arange(6).reshape(2, 3).T, t.get())
    t.set_at((2, 0), 99)
    assert 99 == m.at(0, 2)
    assert (3, 2) == m.exchange_axes(-1, 0).shape
    with pytest.raises(AxisError):
        m.exchange_axes(0, 5)


def test_move_axis():
    a, x = _cube()
    assert_array_equal(np.moveaxis(x, 2, 0), a.move_axis(2, 0).get())
    assert_array_equal(np.moveaxis(x, 0, -1), a.move_axis(0, -1).get())


def test_reorder():
    a, x = _cube()
    assert_array_equal(np.transpose(x, (1, 0, 2)), a.reorder(1, 0).get())
    assert_array_equal(np.transpose(x, (2, 0, 1)), a.reorder((2, 0, 1)).get())
    with pytest.raises(ValueError):
        a.reorder(1, 2)
    with pytest.raises(ValueError):
        a.reorder(0, 0)


def test_merge_axes_affine():
    a, x = _cube()
    m = a.merge_axes(0, 2)
    assert 'affine' == m.kind
    assert (6, 4) == m.shape
    assert_array_equal(x.reshape(6, 4), m.get())
    assert (24,) == a.merge_axes(0, 3).shape
    # an empty run inserts a unit axis
    assert (1, 2, 3, 4) == a.merge_axes(0, 0).shape


def test_merge_axes_bounds():
    m = ndflow.array(np.arange(6).reshape(2, 3))
    assert (6,) == m.merge_axes(0, -1).shape
    assert (2, 3) == m.merge_axes(-2, 2).shape
    with pytest.raises(AxisError):
        m.merge_axes(0, 10)
    with pytest.raises(AxisError):
        m.merge_axes(-4, 1)
    with pytest.raises(ValueError):
        m.merge_axes(2, 1)


def test_merge_axes_computed():
    m = ndflow.array(np.arange(6).reshape(2, 3))
    f = m.exchange_axes(0, 1).flat()
    assert 'computed' == f.kind
    assert_array_equal(np.arange(6).reshape(2, 3).T.reshape(-1), f.get())
    f.set_at(1, 100)
    assert 100 == m.at(1, 0)


def test_merge_axes_with_unit_and_reversed_axes():
    a, x = _cube()
    # unit axes do not break the chain
    v = a.slice(':,0:0').merge_axes(0, 2)
    assert 'affine' == v.kind
    assert_array_equal(x[:, 0:1].reshape(2, 4), v.get())
    # a reversed run still chains
    r = a.slice('-1:0,-1:0,-1:0').flat()
    assert 'affine' == r.kind
    assert_array_equal(np.arange(24)[::-1], r.get())


def test_clump():
    a, x = _cube()
    assert (6, 4) == a.clump(2).shape
    assert (24,) == a.clump(-1).shape
    assert (6, 4) == a.clump(-2).shape
    assert (2, 3, 4) == a.clump(1).shape
    c = a.clump(0, 2)
    assert (8, 3) == c.shape
    assert 'computed' == c.kind
    assert_array_equal(np.transpose(x, (0, 2, 1)).reshape(8, 3), c.get())
    assert (1,) == ndflow.array(3).flat().shape


def test_split_axis():
    a = ndflow.array(np.arange(6))
    s = a.split_axis(0, 3)
    assert 'affine' == s.kind
    assert_array_equal([[0, 1, 2], [3, 4, 5]], s.get())
    assert_array_equal([[0, 1, 2], [3, 4, 5]], ndflow.array(np.arange(7)).split_axis(0, 3).get())
    with pytest.raises(ValueError):
        a.split_axis(0, 0)
    with pytest.raises(ValueError):
        a.split_axis(0, 7)


def test_diagonal():
    a = ndflow.array(np.arange(9).reshape(3, 3))
    d = a.diagonal(0, 1)
    assert_array_equal([0, 4, 8], d.get())
    d.assign(-1)
    assert_array_equal([-1, -1, -1], np.diag(a.get()))

    x = np.arange(18).reshape(3, 2, 3)
    b = ndflow.array(x)
    expect = [[x[i, j, i] for j in range(2)] for i in range(3)]
    assert_array_equal(expect, b.diagonal(2, 0).get())
    with pytest.raises(ValueError):
        b.diagonal(0, 1)


def test_dummy():
    a = ndflow.array([1, 2, 3])
    d = a.dummy(0, 2)
    assert (2, 3) == d.shape
    assert (0, 1) == d.strides
    assert_array_equal([[1, 2, 3], [1, 2, 3]], d.get())
    assert (3, 1) == a.dummy(-1).shape
    assert (3, 4) == a.dummy(1, 4).shape
    with pytest.raises(NegativeSizeError):
        a.dummy(0, -1)
    with pytest.raises(AxisError):
        a.dummy(3)


def test_lags():
    a = ndflow.array(np.arange(5))
    y = a.lags(0, 2, 2)
    assert (3, 2) == y.shape
    assert_array_equal([[2, 0], [3, 1], [4, 2]], y.get())
    assert_array_equal([[1, 0], [2, 1], [3, 2], [4, 3]], a.lags(0, 1, 2).get())
    with pytest.raises(ValueError):
        a.lags(0, 2, 4)
    with pytest.raises(ValueError):
        a.lags(0, 0, 2)


def test_thread():
    a, x = _cube()
    assert (3,) == a.thread_ids
    t = a.thread(0)
    assert (3, 4, 2) == t.shape
    assert (2,) == t.thread_ids
    assert_array_equal(np.moveaxis(x, 0, -1), t.get())
    # axis 0 joins the front of group 1
    g = t.thread_group(1, [0])
    assert (4, 3, 2) == g.shape
    assert (1,) == g.thread_ids

    u = t.unthread()
    assert (3,) == u.thread_ids
    assert_array_equal(x, u.get())
    assert (3, 2, 4) == t.unthread(1).shape


def test_thread_group_multiple():
    a, _ = _cube()
    t = a.thread_group(2, [1])
    assert (2, 4, 3) == t.shape
    assert (2, 2) == t.thread_ids
    assert [(2, 4), (), (3,)] == t.threads.split_shape(t.shape)
    t2 = t.thread_group(1, [0])
    assert (4, 2, 3) == t2.shape
    assert (1, 2) == t2.thread_ids


def test_views_keep_thread_groups():
    t = ndflow.zeros((2, 5, 3)).thread(1)
    assert ((2, 3, 5), (2,)) == (t.shape, t.thread_ids)
    s = t.slice(':,1:3')
    assert (2,) == s.thread_ids
    # a leading dummy joins group 0, so the cut moves right
    assert (3,) == s.dummy(0).thread_ids
    # a trailing dummy joins the group on its left
    assert ((2, 3, 5, 1), (2,)) == (t.dummy(-1).shape, t.dummy(-1).thread_ids)
    assert (1,) == t.slice('(0)').thread_ids
    assert (2,) == t.slice(':,:,:,*').thread_ids
    assert (2,) == t.exchange_axes(0, 1).thread_ids
    assert (2,) == t.move_axis(2, 0).thread_ids
    assert (2,) == t.identity().thread_ids


def test_split_and_merge_keep_thread_groups():
    t = ndflow.zeros((2, 5, 3)).thread(1)
    assert ((2, 3, 1, 5), (2,)) == (t.split_axis(2, 5).shape, t.split_axis(2, 5).thread_ids)
    assert ((1, 2, 3, 5), (3,)) == (t.split_axis(0, 2).shape, t.split_axis(0, 2).thread_ids)
    assert ((2, 2, 2, 5), (3,)) == (t.lags(1, 1, 2).shape, t.lags(1, 1, 2).thread_ids)

    m = ndflow.zeros((2, 3, 4)).thread(2)
    assert (2,) == m.thread_ids
    merged = m.merge_axes(0, 2)
    assert 'affine' == merged.kind
    assert ((6, 4), (1,)) == (merged.shape, merged.thread_ids)
    # non-chaining runs merge through a computed view with the same grouping
    c = t.merge_axes(0, 2)
    assert 'computed' == c.kind
    assert ((6, 5), (1,)) == (c.shape, c.thread_ids)


def test_diagonal_keeps_thread_groups():
    t = ndflow.zeros((3, 3, 3)).thread(2)
    d = t.diagonal(0, 1)
    assert ((3, 3), (1,)) == (d.shape, d.thread_ids)


def test_default_grouping_survives_views():
    a, _ = _cube()
    assert (3,) == a.slice(':,0').thread_ids
    assert (2,) == a.slice('(0)').thread_ids
    assert (4,) == a.dummy(1).thread_ids
    assert (2,) == a.merge_axes(0, 2).thread_ids


def test_gathers_start_a_new_grouping():
    t = ndflow.array(np.arange(24).reshape(2, 3, 4)).thread(0)
    assert ((2, 4, 2), (3,)) == (t.index1d([0, 1]).shape, t.index1d([0, 1]).thread_ids)


def test_identity():
    a, x = _cube()
    v = a.identity()
    assert 'affine' == v.kind
    assert v is not a
    assert_array_equal(x, v.get())

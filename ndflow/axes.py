"""Axis reordering and regrouping as pure descriptor arithmetic.

Every function takes an :class:`AffineDescriptor` and returns a new one
addressing the same buffer; no data is touched.  Argument errors are raised
immediately, deferred errors of the input are carried along.
"""
from ndflow.descriptor import AffineDescriptor, ThreadGroup
from ndflow.errors import NegativeSizeError
from ndflow.util import normalize_axes, normalize_axis, product


def _replace(descriptor, shape, strides, offset=None):
    if offset is None:
        offset = descriptor.offset
    return AffineDescriptor(shape=tuple(shape), strides=tuple(strides), offset=offset,
                            deferred=descriptor.deferred)


def permute(descriptor, order):
    """Reorder all axes; ``order[i]`` is the source axis of output axis i."""
    return _replace(descriptor,
                    [descriptor.shape[i] for i in order],
                    [descriptor.strides[i] for i in order])


def exchange_axes(descriptor, a, b):
    a = normalize_axis(a, descriptor.ndim)
    b = normalize_axis(b, descriptor.ndim)
    order = list(range(descriptor.ndim))
    order[a], order[b] = order[b], order[a]
    return permute(descriptor, order)


def move_axis(descriptor, src, dst):
    """Move axis `src` so that it ends up at position `dst`."""
    src = normalize_axis(src, descriptor.ndim)
    dst = normalize_axis(dst, descriptor.ndim)
    order = [i for i in range(descriptor.ndim) if i != src]
    order.insert(dst, src)
    return permute(descriptor, order)


def reorder(descriptor, order):
    """Permute the leading ``len(order)`` axes; the rest stay in place."""
    order = normalize_axes(order, descriptor.ndim)
    if sorted(order) != list(range(len(order))):
        raise ValueError('reorder needs a permutation of the leading axes, got {!r}'
                         .format(order))
    return permute(descriptor, list(order) + list(range(len(order), descriptor.ndim)))


def merge_stride(shape, strides):
    """Single stride addressing a run of axes in C order, or None when the
    run's strides do not chain."""
    run = [(n, s) for n, s in zip(shape, strides) if n != 1]
    if not run:
        return 1
    if any(n == 0 for n, _ in run):
        return run[-1][1]
    for (n0, s0), (n1, s1) in zip(run[:-1], run[1:]):
        if s0 != s1 * n1:
            return None
    return run[-1][1]


def merged_shape(shape, start, stop):
    return tuple(shape[:start]) + (product(shape[start:stop]),) + tuple(shape[stop:])


def merge_axes(descriptor, start, stop):
    """Merge axes ``start:stop`` into one axis at `start`.

    Returns None when the run cannot be addressed by a single stride.
    """
    stride = merge_stride(descriptor.shape[start:stop], descriptor.strides[start:stop])
    if stride is None:
        return None
    shape = merged_shape(descriptor.shape, start, stop)
    strides = descriptor.strides[:start] + (stride,) + descriptor.strides[stop:]
    return _replace(descriptor, shape, strides)


def clump_plan(ndim, *args):
    """Work out which axes a clump merges.

    ``clump(n)`` merges the leading `n` axes, ``clump(-n)`` all but the last
    ``n - 1`` axes and ``clump(a, b, ...)`` gathers the named axes, in that
    order, at the position of the lowest one.  Returns ``(order, start,
    stop)``, where `order` is the axis permutation to apply before merging
    ``start:stop`` (None when no permutation is needed).
    """
    if not args:
        raise TypeError('clump requires at least one argument')
    if len(args) == 1:
        n = int(args[0])
        if n < 0:
            n = ndim + 1 + n
        n = max(0, min(n, ndim))
        return None, 0, n
    axes = normalize_axes(args, ndim)
    first = min(axes)
    rest = [i for i in range(ndim) if i not in axes]
    order = rest[:first] + list(axes) + rest[first:]
    return order, first, first + len(axes)


def split_axis(descriptor, axis, factor):
    """Split `axis` of extent n into ``(n // factor, factor)``."""
    axis = normalize_axis(axis, descriptor.ndim)
    n = descriptor.shape[axis]
    stride = descriptor.strides[axis]
    factor = int(factor)
    if factor <= 0:
        raise ValueError('split factor must be positive, got {}'.format(factor))
    if factor > n:
        raise ValueError('split factor {} exceeds extent {} of axis {}'.format(factor, n, axis))
    shape = descriptor.shape[:axis] + (n // factor, factor) + descriptor.shape[axis + 1:]
    strides = (descriptor.strides[:axis] + (stride * factor, stride) +
               descriptor.strides[axis + 1:])
    return _replace(descriptor, shape, strides)


def diagonal(descriptor, *axes):
    """Replace `axes` by a single axis walking their common diagonal, placed at
    the position of the lowest of them."""
    axes = normalize_axes(axes, descriptor.ndim)
    if not axes:
        raise ValueError('diagonal requires at least one axis')
    extents = {descriptor.shape[a] for a in axes}
    if len(extents) != 1:
        raise ValueError('diagonal axes {} have different extents {}'
                         .format(axes, [descriptor.shape[a] for a in axes]))
    first = min(axes)
    stride = sum(descriptor.strides[a] for a in axes)
    shape, strides = [], []
    for i in range(descriptor.ndim):
        if i == first:
            shape.append(descriptor.shape[i])
            strides.append(stride)
        elif i not in axes:
            shape.append(descriptor.shape[i])
            strides.append(descriptor.strides[i])
    return _replace(descriptor, shape, strides)


def insert_dummy(descriptor, position, size=1):
    """Insert a zero-stride axis of extent `size` before `position`.

    Negative positions count from the end, so -1 appends.
    """
    position = normalize_axis(position, descriptor.ndim, extra=1)
    if size < 0:
        raise NegativeSizeError(size, 'a dummy axis')
    shape = descriptor.shape[:position] + (int(size),) + descriptor.shape[position:]
    strides = descriptor.strides[:position] + (0,) + descriptor.strides[position:]
    return _replace(descriptor, shape, strides)


def lags(descriptor, axis, step, n):
    """Sliding windows of `n` lagged copies of `axis`.

    `axis` shrinks to ``extent - step * (n - 1)`` and a new axis of extent
    `n` follows it, with lag ``j`` reading ``step * (n - 1 - j)`` elements
    ahead.
    """
    axis = normalize_axis(axis, descriptor.ndim)
    if step <= 0 or n <= 0:
        raise ValueError('lags requires positive step and count, got step={} n={}'
                         .format(step, n))
    extent = descriptor.shape[axis]
    remaining = extent - step * (n - 1)
    if remaining <= 0:
        raise ValueError('lags of step {} and count {} do not fit in extent {}'
                         .format(step, n, extent))
    stride = descriptor.strides[axis]
    shape = descriptor.shape[:axis] + (remaining, n) + descriptor.shape[axis + 1:]
    strides = descriptor.strides[:axis] + (stride, -step * stride) + descriptor.strides[axis + 1:]
    offset = descriptor.offset + step * (n - 1) * stride
    return _replace(descriptor, shape, strides, offset)


def thread_group(descriptor, threads, group_id, axes):
    """Move `axes` to the front of thread group `group_id`.

    Returns the permuted descriptor and the new :class:`ThreadGroup`.
    """
    ndim = descriptor.ndim
    axes = normalize_axes(axes, ndim)
    group_id = int(group_id)
    if group_id < 0:
        raise ValueError('thread group id must be non-negative, got {}'.format(group_id))

    cuts = list(threads.cuts)
    while len(cuts) < group_id:
        cuts.append(ndim)
    ranges = ThreadGroup(ndim, tuple(cuts)).groups()

    order, new_cuts = [], []
    for gid, (start, stop) in enumerate(ranges):
        if gid > 0:
            new_cuts.append(len(order))
        if gid == group_id:
            order.extend(axes)
        order.extend(i for i in range(start, stop) if i not in axes)
    return permute(descriptor, order), ThreadGroup(ndim, tuple(new_cuts))


def unthread(descriptor, threads, at=0):
    """Move every axis outside group 0 back among the group 0 axes at
    position `at`, and reset the grouping."""
    ndim = descriptor.ndim
    first = threads.cuts[0] if threads.cuts else ndim
    plain = list(range(first))
    threaded = list(range(first, ndim))
    at = normalize_axis(at, len(plain), extra=1)
    order = plain[:at] + threaded + plain[at:]
    return permute(descriptor, order), ThreadGroup.default(ndim)


def carry_threads(threads, origins):
    """Thread groups of a view whose axes come from `origins`.

    ``origins[i]`` is the source axis of output axis i, or ``p - 0.5`` for an
    axis inserted before source axis p.  Each cut point moves to the number
    of output axes coming from before it, so inserted axes join the group
    on their left and removed axes leave their group.
    """
    cuts = tuple(sum(1 for o in origins if o < c) for c in threads.cuts)
    return ThreadGroup(len(origins), cuts)

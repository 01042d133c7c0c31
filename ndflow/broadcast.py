"""Thread-shape resolution.

Operands are split into leading *active* axes, consumed by an operation, and
trailing *thread* axes, which are iterated over.  Thread axes of different
operands are aligned from the first thread axis onward and missing trailing
axes count as size 1.
"""
import numbers
from typing import List, Sequence, Tuple

from ndflow.descriptor import AffineDescriptor, ThreadGroup
from ndflow.errors import ShapeMismatchError


def _normalize_active(active, n) -> List[int]:
    if isinstance(active, numbers.Integral):
        return [int(active)] * n
    active = [int(a) for a in active]
    if len(active) != n:
        raise ValueError('expected {} active axis count(s), got {}'.format(n, len(active)))
    return active


def _merge_size(axis, current, n):
    if n == 1:
        return current
    if current == 1 or current == n:
        return n
    raise ShapeMismatchError(axis, current, n)


def broadcast_shapes(*shapes, active=0) -> Tuple[int, ...]:
    """Resolve the common thread shape of `shapes`.

    Parameters
    ----------
    *shapes : tuples of ints
        Full operand shapes.
    active : int or sequence of ints
        Number of leading active axes of every operand, or of each operand.

    Examples
    --------
    >>> broadcast_shapes((2, 0), (2, 1))
    (2, 0)
    >>> broadcast_shapes((3, 4, 5), (4,), active=(1, 0))
    (4, 5)
    """
    active = _normalize_active(active, len(shapes))
    threads = []
    for shape, a in zip(shapes, active):
        shape = tuple(shape)
        if a > len(shape):
            raise ValueError('operand of shape {} has fewer than {} active axis(es)'
                             .format(shape, a))
        threads.append(shape[a:])

    ndim = max((len(t) for t in threads), default=0)
    result = []
    for axis in range(ndim):
        size = 1
        for t in threads:
            if axis < len(t):
                size = _merge_size(axis, size, t[axis])
        result.append(size)
    return tuple(result)


def broadcast_grouped(*groupings: Sequence[Tuple[int, ...]]) -> List[Tuple[int, ...]]:
    """Resolve every thread group independently.

    Each argument is one operand's list of per-group shapes; an operand with
    fewer groups contributes empty shapes to the missing ones.
    """
    ngroups = max((len(g) for g in groupings), default=0)
    result = []
    for gid in range(ngroups):
        shapes = [g[gid] if gid < len(g) else () for g in groupings]
        result.append(broadcast_shapes(*shapes))
    return result


def broadcast_to(shape, target) -> Tuple[int, ...]:
    """Check that `shape` stretches to `target` and return it padded to
    ``len(target)`` axes."""
    shape, target = tuple(shape), tuple(target)
    for axis in range(len(target), len(shape)):
        if shape[axis] != 1:
            raise ShapeMismatchError(axis, shape[axis], 1)
    padded = shape[:len(target)] + (1,) * (len(target) - len(shape))
    for axis, (n, t) in enumerate(zip(padded, target)):
        if n != t and n != 1:
            raise ShapeMismatchError(axis, n, t)
    return padded


def expand_descriptor(descriptor, active, thread_shape) -> AffineDescriptor:
    """Stretch the thread axes of `descriptor` to `thread_shape` using zero
    strides; active axes are left untouched."""
    head_shape = descriptor.shape[:active]
    head_strides = descriptor.strides[:active]
    tail_shape = descriptor.shape[active:]
    tail_strides = descriptor.strides[active:]
    padded = broadcast_to(tail_shape, thread_shape)
    strides = []
    for axis, (n, t) in enumerate(zip(padded, thread_shape)):
        if axis < len(tail_shape) and n == t:
            strides.append(tail_strides[axis])
        else:
            strides.append(0)
    return AffineDescriptor(shape=head_shape + tuple(thread_shape),
                            strides=head_strides + tuple(strides),
                            offset=descriptor.offset, deferred=descriptor.deferred)


def _group_ranges(threads, active, ngroups):
    """Axis range of every thread group with the `active` leading axes left
    out of group 0, padded with empty groups to `ngroups`."""
    ranges = threads.groups()
    start, stop = ranges[0]
    if active > stop:
        raise ValueError('{} active axis(es) do not fit in thread group 0 of {} axis(es)'
                         .format(active, stop))
    ranges[0] = (active, stop)
    end = ranges[-1][1]
    return ranges + [(end, end)] * (ngroups - len(ranges))


def expand_groups(descriptor, threads, active, group_shapes):
    """Stretch each thread group of `descriptor` to the matching entry of
    `group_shapes` using zero strides.

    Returns the new descriptor and its :class:`ThreadGroup`, whose cut points
    fall between the stretched groups.
    """
    shape = list(descriptor.shape[:active])
    strides = list(descriptor.strides[:active])
    cuts = []
    for gid, (start, stop) in enumerate(_group_ranges(threads, active, len(group_shapes))):
        if gid > 0:
            cuts.append(len(shape))
        target = tuple(group_shapes[gid]) if gid < len(group_shapes) else ()
        group = AffineDescriptor(shape=descriptor.shape[start:stop],
                                 strides=descriptor.strides[start:stop])
        grown = expand_descriptor(group, 0, target)
        shape.extend(grown.shape)
        strides.extend(grown.strides)
    expanded = AffineDescriptor(shape=tuple(shape), strides=tuple(strides),
                                offset=descriptor.offset, deferred=descriptor.deferred)
    return expanded, ThreadGroup(len(shape), tuple(cuts))


class Broadcast(object):
    """Iteration plan for an operation over several operands.

    Every thread group is resolved on its own: group ``g`` of one operand
    only ever meets group ``g`` of the others.

    Parameters
    ----------
    *operands : Array
        Arrays taking part in the operation.
    active : int or sequence of ints
        Number of leading active axes of each operand.

    Attributes
    ----------
    groups : list of tuples
        Resolved thread shape of every group.
    shape : tuple of ints
        The group shapes laid end to end.

    Examples
    --------
    >>> import ndflow
    >>> a = ndflow.zeros((3, 1))
    >>> b = ndflow.zeros((3, 4))
    >>> bc = Broadcast(a, b)
    >>> bc.shape
    (3, 4)
    >>> [v.shape for v in bc.views()]
    [(3, 4), (3, 4)]
    """

    def __init__(self, *operands, active=0):
        self.operands = operands
        self.active = _normalize_active(active, len(operands))
        groupings = []
        for op, a in zip(operands, self.active):
            if a > op.ndim:
                raise ValueError('operand of shape {} has fewer than {} active axis(es)'
                                 .format(op.shape, a))
            ranges = _group_ranges(op.threads, a, op.threads.ngroups)
            groupings.append([op.shape[start:stop] for start, stop in ranges])
        self.groups = broadcast_grouped(*groupings)
        self.shape = tuple(n for group in self.groups for n in group)

    def views(self):
        """One affine view per operand, active axes first, every thread group
        stretched to its common shape."""
        return [op.expand_groups(self.groups, active=a)
                for op, a in zip(self.operands, self.active)]

    def chunks(self, n):
        """Split the thread space into at most `n` independent pieces along
        its slowest axis, as tuples of slices over the thread shape."""
        if n < 1:
            raise ValueError('number of chunks must be positive, got {}'.format(n))
        if not self.shape:
            return [()]
        extent = self.shape[0]
        n = max(1, min(n, extent))
        bounds = [extent * i // n for i in range(n + 1)]
        rest = (slice(None),) * (len(self.shape) - 1)
        return [(slice(bounds[i], bounds[i + 1]),) + rest for i in range(n)]

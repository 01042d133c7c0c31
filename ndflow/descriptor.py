"""Affine addressing descriptors and thread groups.

An :class:`AffineDescriptor` maps a coordinate of a view to an element of its
owner's one-dimensional buffer::

    storage_index(coord) = offset + sum(coord[i] * strides[i])

Descriptors are composed eagerly but validated lazily: composition records
bounds problems in ``deferred`` and :meth:`AffineDescriptor.validate` raises
them when the view is actually evaluated.
"""
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from ndflow.errors import BoundsCheckError
from ndflow.util import c_strides, product


@dataclass(frozen=True)
class AffineDescriptor:
    """Offset plus one signed stride per output dimension.

    Parameters
    ----------
    shape : tuple of ints
        Extent of each output dimension.
    strides : tuple of ints
        Signed element stride of each output dimension.
    offset : int
        Element index of coordinate zero in the owner's buffer.
    deferred : tuple of exceptions
        Errors found while composing the descriptor, raised on validation.
    """

    shape: Tuple[int, ...]
    strides: Tuple[int, ...]
    offset: int = 0
    deferred: Tuple[Exception, ...] = ()

    def __post_init__(self):
        if len(self.shape) != len(self.strides):
            raise ValueError('descriptor has {} dimension(s) but {} stride(s)'
                             .format(len(self.shape), len(self.strides)))

    @classmethod
    def contiguous(cls, shape):
        """The identity descriptor of a C-contiguous buffer."""
        shape = tuple(shape)
        return cls(shape=shape, strides=c_strides(shape))

    @property
    def ndim(self):
        return len(self.shape)

    @property
    def size(self):
        return product(self.shape)

    @property
    def is_valid(self):
        return not self.deferred

    def defer(self, *errors):
        """Return a copy carrying additional deferred errors."""
        return AffineDescriptor(self.shape, self.strides, self.offset,
                                self.deferred + tuple(errors))

    def storage_index(self, coord):
        if len(coord) != self.ndim:
            raise IndexError('expected {} coordinate(s), got {}'
                             .format(self.ndim, len(coord)))
        return self.offset + sum(c * s for c, s in zip(coord, self.strides))

    def extent(self):
        """Lowest and highest storage index addressed, or None if empty."""
        if self.size == 0:
            return None
        lo = hi = self.offset
        for n, s in zip(self.shape, self.strides):
            span = (n - 1) * s
            if span < 0:
                lo += span
            else:
                hi += span
        return lo, hi

    def validate(self, buffer_size):
        """Raise the first deferred error, then check the addressed range
        lies inside a buffer of `buffer_size` elements."""
        if self.deferred:
            raise self.deferred[0].with_traceback(None)
        span = self.extent()
        if span is None:
            return
        lo, hi = span
        if lo < 0:
            raise BoundsCheckError(lo, 'storage', buffer_size - 1)
        if hi >= buffer_size:
            raise BoundsCheckError(hi, 'storage', buffer_size - 1)

    def indices(self):
        """Storage index of every element, as an array of this shape."""
        index = np.full(self.shape, self.offset, dtype=np.intp)
        for axis, (n, s) in enumerate(zip(self.shape, self.strides)):
            if n == 0 or s == 0:
                continue
            step = np.arange(n, dtype=np.intp) * s
            index += step.reshape((n,) + (1,) * (self.ndim - axis - 1))
        return index

    def flat_storage(self, positions):
        """Storage index of the elements at flat C-order `positions`."""
        positions = np.asarray(positions, dtype=np.intp)
        index = np.full(positions.shape, self.offset, dtype=np.intp)
        if positions.size == 0 or self.ndim == 0:
            return index
        for coord, s in zip(np.unravel_index(positions, self.shape), self.strides):
            index += coord * s
        return index


@dataclass(frozen=True)
class ThreadGroup:
    """Cut points partitioning an array's axes into contiguous groups.

    ``cuts[i]`` is the first axis of group ``i + 1``; group 0 (the implicit
    default) spans the axes before ``cuts[0]``.  The final group runs to
    ``ndim``.
    """

    ndim: int
    cuts: Tuple[int, ...] = ()

    def __post_init__(self):
        previous = 0
        for c in self.cuts:
            if c < previous or c > self.ndim:
                raise ValueError('invalid thread group cut points {!r} for {} dimension(s)'
                                 .format(self.cuts, self.ndim))
            previous = c

    @classmethod
    def default(cls, ndim):
        return cls(ndim=ndim, cuts=(ndim,))

    @property
    def ngroups(self):
        return len(self.cuts) + 1

    def groups(self):
        """(start, stop) axis range of every group, group 0 first."""
        bounds = (0,) + self.cuts + (self.ndim,)
        return [(bounds[i], bounds[i + 1]) for i in range(len(bounds) - 1)]

    def group_of(self, axis):
        for gid, (start, stop) in enumerate(self.groups()):
            if start <= axis < stop:
                return gid
        raise IndexError('axis {} not in any thread group'.format(axis))

    def split_shape(self, shape):
        """Split `shape` into one tuple per group."""
        return [tuple(shape[start:stop]) for start, stop in self.groups()]

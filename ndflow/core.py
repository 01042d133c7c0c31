import logging
import weakref
from contextlib import contextmanager

import numpy as np
from numpy.lib.stride_tricks import as_strided

from ndflow import axes as _axes
from ndflow import indexing
from ndflow.broadcast import broadcast_to, expand_descriptor, expand_groups
from ndflow.dataflow import DataflowEdge, GatherTransform
from ndflow.descriptor import AffineDescriptor, ThreadGroup
from ndflow.errors import DataflowError, err_too_many_indices
from ndflow.slicing import DICE, SliceTerm, compose, parse_slice, term_origins
from ndflow.util import (InfoReporter, TreeViewer, human_readable_size, normalize_axes,
                         normalize_axis, normalize_integer_selection, typestr)


logger = logging.getLogger(__name__)


PHYSICAL = 'physical'
AFFINE = 'affine'
COMPUTED = 'computed'


class Array(object):
    """Dense N-dimensional array, or a live view of one.

    Parameters
    ----------
    data : array_like
        Initial values; always copied.
    dtype : string or dtype, optional
        NumPy dtype.

    Attributes
    ----------
    shape
    ndim
    size
    dtype
    itemsize
    nbytes
    strides
    offset
    kind
    is_physical
    is_virtual
    isempty
    flows
    thread_ids
    source
    owner
    info

    Methods
    -------
    get
    at
    set_at
    assign
    writable
    sever
    copy
    set_flow
    slice
    range
    index
    index1d
    index2d
    dice
    views
    tree

    Notes
    -----
    An array is one of three kinds.  A *physical* array owns a flat buffer.
    An *affine* view addresses the buffer of another array through an offset
    and one stride per axis, so reads and writes go straight to that buffer;
    views of affine views always address the original buffer directly.  A
    *computed* view owns a buffer of its own which is refreshed from its
    source before reads and written back to it after writes.

    Views are cheap to create and check nothing until they are evaluated:
    bounds errors surface from :meth:`get`, :meth:`at`, :meth:`assign` and
    friends, never from the slicing call itself.

    Examples
    --------
    >>> import ndflow
    >>> a = ndflow.array([[0, 1, 2], [3, 4, 5]])
    >>> v = a.slice(':,1:2')
    >>> v.assign(0)
    <ndflow.core.Array affine (2, 2) int64>
    >>> a.get()
    array([[0, 0, 0],
           [3, 0, 0]])
    """

    def __init__(self, data, dtype=None):
        values = np.array(data, dtype=dtype, order='C')
        self._setup(buffer=values.reshape(-1),
                    descriptor=AffineDescriptor.contiguous(values.shape))

    def _setup(self, descriptor, buffer=None, owner=None, transform=None, edge=None,
               parent=None, threads=None):
        self._descriptor = descriptor
        self._buffer = buffer
        self._owner = self if owner is None else owner
        self._transform = transform
        self._edge = edge
        self._parent = parent
        if threads is None:
            threads = ThreadGroup.default(descriptor.ndim)
        self._threads = threads
        self._pulled = transform is None
        self._views = weakref.WeakSet()
        if parent is not None:
            parent._views.add(self)

    @classmethod
    def _new(cls, **kwargs):
        obj = cls.__new__(cls)
        obj._setup(**kwargs)
        return obj

    @classmethod
    def _wrap(cls, values):
        """Physical array taking ownership of the ndarray `values`."""
        values = np.ascontiguousarray(values)
        return cls._new(buffer=values.reshape(-1),
                        descriptor=AffineDescriptor.contiguous(values.shape))

    def _derive(self, descriptor, threads=None):
        """Affine view of this array's owner through `descriptor`."""
        return Array._new(descriptor=descriptor, owner=self._owner, parent=self,
                          threads=threads)

    def _carry(self, descriptor, origins):
        """Like :meth:`_derive`, keeping the thread groups of this array.

        ``origins[i]`` is the axis of this array that output axis i comes
        from; an axis inserted before axis p has origin ``p - 0.5``.
        """
        return self._derive(descriptor, _axes.carry_threads(self._threads, origins))

    def _computed(self, mapping, valid=None, deferred=(), threads=None):
        """Computed view gathering this array's elements at `mapping`.

        Elements mapped onto missing elements of this array are missing too.
        """
        mapping = np.asarray(mapping, dtype=np.intp)
        inherited = self._valid_flat()
        if inherited is not None:
            if valid is None:
                valid = np.ones(mapping.shape, dtype=bool)
            valid = np.logical_and(valid, inherited[mapping])
        transform = GatherTransform(self, mapping, valid=valid, deferred=deferred)
        buffer = np.empty(transform.shape, dtype=self.dtype).reshape(-1)
        return Array._new(descriptor=AffineDescriptor.contiguous(transform.shape),
                          buffer=buffer, transform=transform, edge=DataflowEdge(self),
                          parent=self, threads=threads)

    def _empty_result(self, shape):
        return Array._new(descriptor=AffineDescriptor.contiguous(shape),
                          buffer=np.empty(0, dtype=self.dtype))

    @property
    def shape(self):
        """A tuple of integers describing the length of each dimension."""
        return self._descriptor.shape

    @property
    def ndim(self):
        return self._descriptor.ndim

    @property
    def size(self):
        """The total number of elements in the array."""
        return self._descriptor.size

    @property
    def dtype(self):
        return self._owner._buffer.dtype

    @property
    def itemsize(self):
        return self.dtype.itemsize

    @property
    def nbytes(self):
        """The total number of bytes that would be required to store the
        array as a physical one."""
        return self.size * self.itemsize

    @property
    def strides(self):
        """Signed element strides against the owner's buffer."""
        return self._descriptor.strides

    @property
    def offset(self):
        return self._descriptor.offset

    @property
    def kind(self):
        if self._owner is not self:
            return AFFINE
        if self._edge is not None:
            return COMPUTED
        return PHYSICAL

    @property
    def is_physical(self):
        return self.kind == PHYSICAL

    @property
    def is_virtual(self):
        return self.kind != PHYSICAL

    @property
    def isempty(self):
        return self.size == 0

    @property
    def flows(self):
        """True if changes can travel between this array and its source."""
        if self.kind == AFFINE:
            return True
        if self._edge is not None:
            return self._edge.forward or self._edge.backward
        return False

    @property
    def thread_ids(self):
        return self._threads.cuts

    @property
    def threads(self):
        return self._threads

    @property
    def source(self):
        """The array this one was derived from, or None."""
        return self._parent

    @property
    def owner(self):
        """The array whose buffer holds this array's elements."""
        return self._owner

    @property
    def info(self):
        """Report some diagnostic information about the array."""
        return InfoReporter(self)

    def info_items(self):
        items = [
            ('Type', typestr(self)),
            ('Kind', self.kind),
            ('Data type', '%s' % self.dtype),
            ('Shape', str(self.shape)),
            ('Strides', str(self.strides)),
            ('Offset', self.offset),
        ]
        if self._edge is not None:
            items.append(('Flow', 'forward=%s, backward=%s'
                          % (self._edge.forward, self._edge.backward)))
        items.append(('Thread ids', str(self.thread_ids)))
        items.append(('No. bytes', '%s (%s)' % (self.nbytes, human_readable_size(self.nbytes))))
        if self._descriptor.deferred:
            items.append(('Deferred errors', len(self._descriptor.deferred)))
        return items

    def __repr__(self):
        t = type(self)
        return f"<{t.__module__}.{t.__name__} {self.kind} {str(self.shape)} {self.dtype}>"

    def __array__(self, *args, **kwargs):
        a = self.get()
        dtype = args[0] if args else kwargs.get('dtype')
        if dtype is not None:
            a = a.astype(dtype)
        return a

    def views(self):
        """Live arrays derived directly from this one."""
        return list(self._views)

    def tree(self, level=None):
        """Draw the live views derived from this array."""
        return TreeViewer(self, level=level)

    # evaluation

    def _check(self):
        self._descriptor.validate(self._owner._buffer.size)

    def _refresh(self):
        if self._edge is None:
            return
        if self._edge.forward or not self._pulled:
            values = self._transform.pull()
            self._buffer[...] = values.reshape(-1)
            self._pulled = True

    def _push(self):
        if self._edge is None or not self._edge.backward:
            return
        self._transform.push(self._buffer)

    def _strided(self):
        descriptor = self._descriptor
        buffer = self._owner._buffer
        if descriptor.size == 0:
            return np.empty(descriptor.shape, dtype=buffer.dtype)
        itemsize = buffer.itemsize
        return as_strided(buffer[descriptor.offset:], shape=descriptor.shape,
                          strides=tuple(s * itemsize for s in descriptor.strides),
                          writeable=True)

    def _scatter(self, positions, values):
        """Write `values` at the flat C-order `positions` of this array.

        Where several values land on one element the last one wins.
        """
        self._check()
        owner = self._owner
        owner._refresh()
        storage = self._descriptor.flat_storage(positions).reshape(-1)
        values = np.asarray(values).reshape(-1)
        targets, first = np.unique(storage[::-1], return_index=True)
        owner._buffer[targets] = values[::-1][first]
        owner._push()

    def _take(self, positions):
        """Values at the flat C-order `positions` of this array."""
        self._check()
        owner = self._owner
        owner._refresh()
        return owner._buffer[self._descriptor.flat_storage(positions)]

    def _valid_flat(self):
        """Flat C-order validity of the elements, or None if none is missing."""
        transform = self._owner._transform
        if transform is None or transform.all_valid or not self._descriptor.is_valid:
            return None
        return transform.valid.reshape(-1)[self._descriptor.indices()].reshape(-1)

    def _normalize_coords(self, coords):
        if len(coords) == 1 and isinstance(coords[0], (tuple, list)):
            coords = tuple(coords[0])
        if len(coords) > self.ndim:
            err_too_many_indices(coords, self.shape)
        if len(coords) < self.ndim:
            raise IndexError('expected {} coordinate(s), got {}'.format(self.ndim, len(coords)))
        return tuple(normalize_integer_selection(c, n, axis)
                     for axis, (c, n) in enumerate(zip(coords, self.shape)))

    def get(self):
        """Current values as a new ndarray."""
        self._check()
        self._owner._refresh()
        return self._strided().copy()

    def at(self, *coords):
        """Value of a single element."""
        coords = self._normalize_coords(coords)
        self._check()
        self._owner._refresh()
        return self._strided()[coords]

    def set_at(self, coords, value):
        """Set a single element."""
        if not isinstance(coords, (tuple, list)):
            coords = (coords,)
        coords = self._normalize_coords(tuple(coords))
        with self.writable() as out:
            out[coords] = value
        return self

    def assign(self, value):
        """Write `value` into every element, stretching it over missing and
        size-1 trailing axes."""
        if isinstance(value, Array):
            value = value.get()
        value = np.asarray(value)
        padded = broadcast_to(value.shape, self.shape)
        value = np.broadcast_to(value.reshape(padded), self.shape)
        with self.writable() as out:
            out[...] = value
        return self

    @contextmanager
    def writable(self):
        """Writable ndarray over this array's elements; changes are passed on
        to the source when the block exits."""
        self._check()
        owner = self._owner
        owner._refresh()
        yield self._strided()
        owner._push()

    def sever(self):
        """Detach from any source, in place.  Returns `self`."""
        kind = self.kind
        if kind == PHYSICAL:
            return self
        if kind == AFFINE:
            values = self.get()
            self._buffer = values.reshape(-1)
            self._descriptor = AffineDescriptor.contiguous(values.shape)
            self._owner = self
        else:
            self._refresh()
            self._edge = None
            self._transform = None
        if self._parent is not None:
            self._parent._views.discard(self)
            self._parent = None
        logger.debug('severed %s array of shape %s', kind, self.shape)
        return self

    def copy(self):
        """New, independent physical array with the current values."""
        values = self.get()
        logger.debug('copied %s array of shape %s', self.kind, self.shape)
        return Array._wrap(values)

    def set_flow(self, forward=None, backward=None):
        """Switch the dataflow of a computed view on or off."""
        if self._edge is None:
            raise DataflowError('{} arrays have no dataflow to toggle; use sever() to '
                                'detach a view'.format(self.kind))
        if forward is not None:
            self._edge.forward = bool(forward)
        if backward is not None:
            self._edge.backward = bool(backward)
        return self

    def missing_mask(self):
        """True where an element mirrors no source element."""
        self._check()
        valid = self._valid_flat()
        if valid is None:
            return np.zeros(self.shape, dtype=bool)
        return ~valid.reshape(self.shape)

    # affine views

    def slice(self, *spec):
        """View selected by a slice specification, one term per axis.

        Examples
        --------
        >>> import ndflow
        >>> a = ndflow.array([0, 1, 2, 3, 4])
        >>> a.slice('1:3').get()
        array([1, 2, 3])
        >>> a.slice('-1:0').get()
        array([4, 3, 2, 1, 0])
        """
        terms = parse_slice(*[t.get() if isinstance(t, Array) else t for t in spec])
        base = self
        affine = []
        axis = 0
        for term in terms:
            if term.kind == DICE:
                n = term.index.size
                if n > 1:
                    base = indexing.dice_axis(base, axis, term.index)
                    term = SliceTerm.whole()
                elif n == 1:
                    term = SliceTerm.select(int(term.index[0]))
                else:
                    term = SliceTerm.span(1, 0, 1)
            affine.append(term)
            if term.consumes_axis:
                axis += 1
        # dicing keeps every axis, so the groups still line up with ours
        threads = _axes.carry_threads(self._threads, term_origins(affine, self.ndim))
        return base._derive(compose(base._descriptor, affine), threads)

    def identity(self):
        return self._derive(self._descriptor, self._threads)

    def dummy(self, position, size=1):
        descriptor = _axes.insert_dummy(self._descriptor, position, size)
        position = normalize_axis(position, self.ndim, extra=1)
        origins = list(range(self.ndim))
        origins.insert(position, position - 0.5)
        return self._carry(descriptor, origins)

    def exchange_axes(self, a, b):
        return self._derive(_axes.exchange_axes(self._descriptor, a, b), self._threads)

    def move_axis(self, src, dst):
        return self._derive(_axes.move_axis(self._descriptor, src, dst), self._threads)

    def reorder(self, *order):
        if len(order) == 1 and isinstance(order[0], (tuple, list)):
            order = tuple(order[0])
        return self._derive(_axes.reorder(self._descriptor, order), self._threads)

    def merge_axes(self, start, stop):
        """Merge axes ``start:stop`` into one.

        The result is affine when the axes' strides chain, otherwise a
        computed view.  Negative bounds count from the end, so ``-1`` is
        past the last axis.
        """
        start = normalize_axis(start, self.ndim, extra=1)
        stop = normalize_axis(stop, self.ndim, extra=1)
        if stop < start:
            raise ValueError('cannot merge axes {}:{}, stop is before start'
                             .format(start, stop))
        merged = start - 0.5 if start == stop else start
        origins = list(range(start)) + [merged] + list(range(stop, self.ndim))
        descriptor = _axes.merge_axes(self._descriptor, start, stop)
        if descriptor is not None:
            return self._carry(descriptor, origins)
        logger.debug('axes %s:%s of %r do not chain, merging via a computed view',
                     start, stop, self)
        shape = _axes.merged_shape(self.shape, start, stop)
        return self._computed(np.arange(self.size, dtype=np.intp).reshape(shape),
                              threads=_axes.carry_threads(self._threads, origins))

    def clump(self, *args):
        order, start, stop = _axes.clump_plan(self.ndim, *args)
        base = self
        if order is not None:
            base = self._derive(_axes.permute(self._descriptor, order), self._threads)
        return base.merge_axes(start, stop)

    def flat(self):
        return self.clump(-1)

    def split_axis(self, axis, factor):
        descriptor = _axes.split_axis(self._descriptor, axis, factor)
        axis = normalize_axis(axis, self.ndim)
        origins = list(range(axis + 1)) + list(range(axis, self.ndim))
        return self._carry(descriptor, origins)

    def diagonal(self, *axes):
        descriptor = _axes.diagonal(self._descriptor, *axes)
        axes = normalize_axes(axes, self.ndim)
        first = min(axes)
        return self._carry(descriptor, [i for i in range(self.ndim)
                                        if i == first or i not in axes])

    def lags(self, axis, step, n):
        descriptor = _axes.lags(self._descriptor, axis, step, n)
        axis = normalize_axis(axis, self.ndim)
        return self._carry(descriptor, list(range(axis + 1)) + list(range(axis, self.ndim)))

    def thread_group(self, group_id, axes):
        descriptor, threads = _axes.thread_group(self._descriptor, self._threads,
                                                 group_id, axes)
        return self._derive(descriptor, threads)

    def thread(self, *axes):
        return self.thread_group(1, axes)

    def unthread(self, at=0):
        descriptor, threads = _axes.unthread(self._descriptor, self._threads, at)
        return self._derive(descriptor, threads)

    def expand(self, thread_shape, active=0):
        """Stretch the thread axes to `thread_shape` with zero strides."""
        descriptor = expand_descriptor(self._descriptor, active, tuple(thread_shape))
        origins = [min(i, self.ndim - 0.5) for i in range(descriptor.ndim)]
        return self._carry(descriptor, origins)

    def expand_groups(self, group_shapes, active=0):
        """Stretch every thread group to the matching shape in
        `group_shapes`, keeping the group boundaries."""
        descriptor, threads = expand_groups(self._descriptor, self._threads, active,
                                            group_shapes)
        return self._derive(descriptor, threads)

    # computed views

    def range(self, index, size=None, boundary=None):
        return indexing.range_(self, index, size=size, boundary=boundary)

    def index_nd(self, index, boundary=None):
        return indexing.index_nd(self, index, boundary=boundary)

    def index(self, ind):
        return indexing.index(self, ind)

    def index1d(self, ind):
        return indexing.index1d(self, ind)

    def index2d(self, ind0, ind1):
        return indexing.index2d(self, ind0, ind1)

    def dice_axis(self, axis, ind):
        return indexing.dice_axis(self, axis, ind)

    def dice(self, *selections):
        return indexing.dice(self, *selections)

    def rotate(self, shift, axis=-1):
        return indexing.rotate(self, shift, axis=axis)

"""N-dimensional gather and scatter.

All lookups here produce *computed* views: the result owns its values and a
:class:`~ndflow.dataflow.GatherTransform` mapping every element back to a
flat position in the source, so writes can be scattered back.
"""
import enum
import logging
import numbers

import numpy as np

from ndflow.broadcast import broadcast_shapes
from ndflow.config import config
from ndflow.errors import (BoundaryModeError, ExcessDimensionsError, NegativeSizeError,
                           SampleBoundsError, err_too_many_indices)
from ndflow.util import c_strides, normalize_axis, product


logger = logging.getLogger(__name__)


class Boundary(enum.Enum):
    FORBID = 'forbid'
    TRUNCATE = 'truncate'
    EXTEND = 'extend'
    PERIODIC = 'periodic'
    MIRROR = 'mirror'


_boundary_codes = {
    '0': Boundary.FORBID, 'f': Boundary.FORBID,
    '1': Boundary.TRUNCATE, 't': Boundary.TRUNCATE,
    '2': Boundary.EXTEND, 'e': Boundary.EXTEND, 'x': Boundary.EXTEND,
    '3': Boundary.PERIODIC, 'p': Boundary.PERIODIC,
    '4': Boundary.MIRROR, 'm': Boundary.MIRROR,
}


def _boundary_token(token):
    if isinstance(token, Boundary):
        return token
    if isinstance(token, bool):
        raise BoundaryModeError(token)
    if isinstance(token, numbers.Integral):
        token = str(int(token))
    if isinstance(token, str):
        text = token.strip().lower()
        if text and text[0] in _boundary_codes:
            return _boundary_codes[text[0]]
    raise BoundaryModeError(token)


def parse_boundary(spec, ndim):
    """One :class:`Boundary` per coordinate axis.

    A string made only of mode characters (``f0 t1 ex2 p3 m4``) gives one mode
    per axis; any other string is a word and only its first character
    counts.  Sequences are taken element-wise.  The last mode repeats for the
    remaining axes.

    Examples
    --------
    >>> parse_boundary('tp', 3)
    (<Boundary.TRUNCATE: 'truncate'>, <Boundary.PERIODIC: 'periodic'>, <Boundary.PERIODIC: 'periodic'>)
    >>> parse_boundary('mirror', 1)
    (<Boundary.MIRROR: 'mirror'>,)
    """
    if spec is None:
        spec = config.get('range.boundary')
    if isinstance(spec, str):
        text = spec.strip().lower()
        if text and all(c in _boundary_codes for c in text):
            tokens = list(text)
        else:
            tokens = [text or spec]
    elif isinstance(spec, (Boundary, numbers.Integral)):
        tokens = [spec]
    else:
        tokens = list(spec)
        if not tokens:
            tokens = [config.get('range.boundary')]
    modes = [_boundary_token(t) for t in tokens]
    return tuple(modes[min(i, len(modes) - 1)] for i in range(ndim))


def resolve(coords, extent, mode):
    """Apply one boundary mode to an array of coordinates along an axis of
    `extent` elements.

    Returns ``(coords, valid)``.  For FORBID and TRUNCATE the coordinates are
    returned unchanged and `valid` marks those in range; the other modes
    always return in-range coordinates.
    """
    coords = np.asarray(coords, dtype=np.intp)
    if extent == 0:
        return coords, np.zeros(coords.shape, dtype=bool)
    if mode in (Boundary.FORBID, Boundary.TRUNCATE):
        return coords, (coords >= 0) & (coords < extent)
    if mode == Boundary.EXTEND:
        resolved = np.clip(coords, 0, extent - 1)
    elif mode == Boundary.PERIODIC:
        resolved = np.mod(coords, extent)
    elif mode == Boundary.MIRROR:
        resolved = np.mod(coords + extent, 2 * extent) - extent
        resolved = np.where(resolved < 0, -resolved - 1, resolved)
    else:
        raise BoundaryModeError(mode)
    return resolved, np.ones(coords.shape, dtype=bool)


def _values(x):
    from ndflow.core import Array
    if isinstance(x, Array):
        return x.get()
    return np.asarray(x)


def _as_index(x):
    values = _values(x)
    if values.size == 0:
        return values.astype(np.intp)
    if values.dtype.kind not in 'iub':
        raise TypeError('index arrays must hold integers, got {}'.format(values.dtype))
    return values.astype(np.intp)


def _range_sizes(size, ncoords):
    """Per-coordinate block sizes, and whether every coordinate got an
    explicit entry."""
    if size is None:
        return (0,) * ncoords, False
    values = _values(size)
    if values.ndim == 0:
        sizes = (int(values),) * ncoords
        explicit = False
    else:
        sizes = tuple(int(s) for s in values.reshape(-1))
        if len(sizes) > ncoords:
            raise ValueError('size has {} entries but the index has {} coordinate(s)'
                             .format(len(sizes), ncoords))
        explicit = len(sizes) == ncoords
        sizes = sizes + (0,) * (ncoords - len(sizes))
    for s in sizes:
        if s < 0:
            raise NegativeSizeError(s, 'a range size')
    return sizes, explicit


def _axis_grid(extent, axis, ndim):
    return np.arange(extent, dtype=np.intp).reshape(
        (1,) * axis + (extent,) + (1,) * (ndim - axis - 1))


def _first_violation(bad, coords, axis, extent, sample_block):
    flat = int(np.flatnonzero(bad.reshape(-1))[0])
    coord = int(coords.reshape(-1)[flat])
    return SampleBoundsError(coord, axis, flat // sample_block, extent - 1)


def _gather(source, shape, coords, modes, trailing=(), sample_block=1):
    """Build the mapping of a gather.

    `coords` holds one integer array per looked-up source axis (already
    broadcast to `shape`), `modes` one boundary mode for each.  `trailing`
    pairs every remaining source axis with the output axis it runs along
    (or None for a stretched size-1 axis).
    """
    src_shape = source.shape
    src_strides = c_strides(src_shape)
    empty_source = source.size == 0
    position = np.zeros(shape, dtype=np.intp)
    valid = np.ones(shape, dtype=bool)
    deferred = []

    for axis, (c, mode) in enumerate(zip(coords, modes)):
        # coordinates beyond the source rank address a virtual axis of extent 1
        extent = src_shape[axis] if axis < len(src_shape) else 1
        if empty_source and mode != Boundary.FORBID:
            mode = Boundary.TRUNCATE
        resolved, ok = resolve(c, extent, mode)
        if mode == Boundary.FORBID:
            if not ok.all() and not deferred:
                deferred.append(_first_violation(~ok, c, axis, extent, sample_block))
        if not ok.all():
            valid &= ok
            resolved = np.where(ok, resolved, 0)
        if axis < len(src_shape):
            position += resolved * src_strides[axis]

    for src_axis, out_axis in trailing:
        if out_axis is not None:
            position += _axis_grid(shape[out_axis], out_axis, len(shape)) * src_strides[src_axis]

    return source._computed(position, valid=valid, deferred=deferred)


def range_(source, index, size=None, boundary=None):
    """Extract rectangular blocks at the coordinates in `index`.

    Axis 0 of `index` holds the R coordinates of a block corner; the rest of
    its axes enumerate blocks.  The result has shape
    ``index.shape[1:] + nonzero sizes + source.shape[R:]``.

    Parameters
    ----------
    source : Array
    index : array_like of ints
    size : int or sequence of ints, optional
        Block extent along each coordinate axis; 0 collapses that axis.
    boundary : str or sequence, optional
        Boundary mode(s), see :func:`parse_boundary`.

    Examples
    --------
    >>> import ndflow
    >>> a = ndflow.array([0, 1, 2, 3, 4])
    >>> a.range([[7]], boundary='periodic').get()
    array([2])
    """
    ind = _as_index(index)
    if ind.ndim == 0:
        ind = ind.reshape(1)
    ncoords = ind.shape[0]
    batch = ind.shape[1:]
    sizes, explicit = _range_sizes(size, ncoords)
    nonzero = tuple(s for s in sizes if s)
    rest = source.shape[ncoords:]
    shape = batch + nonzero + rest

    if ind.size == 0:
        if ncoords == 0:
            shape = (0,) + shape
        logger.debug('empty range index, returning empty array of shape %s', shape)
        return source._empty_result(shape)

    limit = config.get('range.max_implicit_dims')
    if ncoords > source.ndim + limit and not explicit:
        raise ExcessDimensionsError(ncoords, source.ndim, limit)

    modes = parse_boundary(boundary, ncoords)
    ndim = len(shape)
    nbatch = len(batch)
    coords = []
    block_axis = nbatch
    for axis in range(ncoords):
        c = ind[axis].reshape(batch + (1,) * (ndim - nbatch))
        if sizes[axis]:
            c = c + _axis_grid(sizes[axis], block_axis, ndim)
            block_axis += 1
        coords.append(np.broadcast_to(c, shape))

    trailing = [(ncoords + i, nbatch + len(nonzero) + i) for i in range(len(rest))]
    return _gather(source, shape, coords, modes, trailing,
                   sample_block=product(shape[nbatch:]))


def index_nd(source, index, boundary=None):
    """Gather single elements at the coordinates in `index`."""
    return range_(source, index, boundary=boundary)


def _thread_lookup(source, indices, active=()):
    """Look up the leading ``len(indices)`` axes of `source`; its remaining
    axes thread with the index arrays, each of which carries the leading
    `active` axes first."""
    nlook = len(indices)
    nact = len(active)
    for ind in indices:
        if ind.shape[:nact] != tuple(active):
            raise ValueError('index of shape {} does not start with {}'
                             .format(ind.shape, tuple(active)))
    rest = source.shape[nlook:]
    thread = broadcast_shapes(rest, *[ind.shape for ind in indices],
                              active=[0] + [nact] * nlook)
    shape = tuple(active) + thread
    coords = []
    for ind in indices:
        padded = ind.reshape(ind.shape + (1,) * (len(shape) - ind.ndim))
        coords.append(np.broadcast_to(padded, shape))
    trailing = []
    for i, n in enumerate(rest):
        out_axis = nact + i
        trailing.append((nlook + i, out_axis if n == shape[out_axis] else None))
    return _gather(source, shape, coords, (Boundary.FORBID,) * nlook, trailing)


def index(source, ind):
    """Look up axis 0 of `source`; its other axes thread with `ind`."""
    return _thread_lookup(source, [_as_index(ind)])


def index1d(source, ind):
    """Look up axis 0 of `source` at every entry of the leading axis of `ind`,
    which becomes axis 0 of the result."""
    ind = _as_index(ind)
    if ind.ndim == 0:
        ind = ind.reshape(1)
    return _thread_lookup(source, [ind], active=ind.shape[:1])


def index2d(source, ind0, ind1):
    """Look up axes 0 and 1 of `source` together."""
    return _thread_lookup(source, [_as_index(ind0), _as_index(ind1)])


def dice_axis(source, axis, ind):
    """Select the entries `ind` along one axis, keeping the axis."""
    axis = normalize_axis(axis, source.ndim)
    ind = _as_index(ind)
    if ind.ndim > 1:
        raise ValueError('dice indices must be at most 1D, got shape {}'.format(ind.shape))
    picked = index1d(source.move_axis(axis, 0), ind.reshape(-1))
    return picked.move_axis(0, axis)


def _skips(selection):
    return selection is None or (isinstance(selection, str) and
                                 selection.strip().upper() == 'X')


def dice(source, *selections):
    """Apply :func:`dice_axis` along each axis in turn; ``None`` or ``'X'``
    leaves an axis alone."""
    if len(selections) > source.ndim:
        err_too_many_indices(selections, source.shape)
    result = source
    for axis, selection in enumerate(selections):
        if not _skips(selection):
            result = dice_axis(result, axis, selection)
    return result


def rotate(source, shift, axis=-1):
    """Cyclically shift the elements along `axis` by `shift` positions."""
    axis = normalize_axis(axis, source.ndim)
    n = source.shape[axis]
    if n == 0:
        return source.identity()
    ind = np.mod(np.arange(n, dtype=np.intp) - int(shift), n)
    return dice_axis(source, axis, ind)

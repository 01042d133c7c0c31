"""Synchronisation between computed views and their sources.

A computed view owns a buffer of its own.  Its :class:`DataflowEdge` says
whether values flow forward (source to view, before every read) and backward
(view to source, after every write); its :class:`GatherTransform` says which
source element each view element mirrors.
"""
import logging

import numpy as np

from ndflow.config import config


logger = logging.getLogger(__name__)


class DataflowEdge(object):
    """Link from a computed view to the array it was derived from.

    Parameters
    ----------
    source : Array
        The array the view reads from and writes back to.
    forward : bool, optional
        Refresh the view from the source before every read.  Defaults to the
        ``dataflow.forward`` configuration value.
    backward : bool, optional
        Write mutations of the view back to the source.  Defaults to the
        ``dataflow.backward`` configuration value.
    """

    def __init__(self, source, forward=None, backward=None):
        self.source = source
        if forward is None:
            forward = config.get('dataflow.forward')
        if backward is None:
            backward = config.get('dataflow.backward')
        self.forward = bool(forward)
        self.backward = bool(backward)

    def __repr__(self):
        return '{}(forward={}, backward={})'.format(type(self).__name__, self.forward,
                                                     self.backward)


class GatherTransform(object):
    """Element mapping of a computed view onto its source.

    Parameters
    ----------
    source : Array
        Array being gathered from.
    mapping : ndarray of ints
        For each view element, the flat C-order position of the source element
        it mirrors.  Its shape is the view's shape.
    valid : ndarray of bools, optional
        False where a view element mirrors nothing (a truncated sample).
    deferred : tuple of exceptions, optional
        Errors found while building the mapping; raised on the first pull.
    fill_value : scalar, optional
        Value of invalid elements.  Defaults to ``range.fill_value``.
    """

    def __init__(self, source, mapping, valid=None, deferred=(), fill_value=None):
        self.source = source
        self.mapping = np.asarray(mapping, dtype=np.intp)
        if valid is None:
            valid = np.ones(self.mapping.shape, dtype=bool)
        self.valid = np.broadcast_to(np.asarray(valid, dtype=bool), self.mapping.shape)
        self.deferred = tuple(deferred)
        if fill_value is None:
            fill_value = config.get('range.fill_value')
        self.fill_value = fill_value

    @property
    def shape(self):
        return self.mapping.shape

    @property
    def all_valid(self):
        return bool(self.valid.all())

    def validate(self):
        if self.deferred:
            raise self.deferred[0].with_traceback(None)

    def pull(self):
        """Fresh values of the view, gathered from the source."""
        self.validate()
        out = np.empty(self.shape, dtype=self.source.dtype)
        if self.all_valid:
            out[...] = self.source._take(self.mapping)
        else:
            out[...] = self.fill_value
            out[self.valid] = self.source._take(self.mapping[self.valid])
        logger.debug('pulled %s element(s) from %r', out.size, self.source)
        return out

    def push(self, values):
        """Write `values` back to the source, skipping invalid elements."""
        self.validate()
        values = np.asarray(values).reshape(self.shape)
        positions = self.mapping[self.valid]
        if positions.size == 0:
            return
        self.source._scatter(positions, values[self.valid])
        logger.debug('pushed %s element(s) to %r', positions.size, self.source)

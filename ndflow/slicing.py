"""Slice specification parsing and affine composition.

A slice specification is a list of per-axis terms.  Each term is parsed once
into a :class:`SliceTerm`; :func:`compose` then folds the terms into an
existing :class:`~ndflow.descriptor.AffineDescriptor`.  Syntax problems are
raised while parsing, bounds problems are only recorded on the resulting
descriptor.
"""
import numbers
import re
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from ndflow.descriptor import AffineDescriptor
from ndflow.errors import (BoundsCheckError, NegativeSizeError, SliceSyntaxError,
                           TooManyDimsError)
from ndflow.util import trunc_div


KEEP = 'keep'
SELECT = 'select'
COLLAPSE = 'collapse'
RANGE = 'range'
DUMMY = 'dummy'
DICE = 'dice'


_int_re = re.compile(r'[+-]?\d+')


@dataclass(frozen=True)
class SliceTerm:
    """One parsed axis of a slice specification.

    ``step`` is None when the direction should follow ``start`` and ``end``.
    ``size`` is only used by dummy axes and ``index`` only by dice terms.
    """

    kind: str
    start: int = 0
    end: int = -1
    step: Optional[int] = None
    size: int = 1
    index: Any = None

    @classmethod
    def whole(cls):
        return cls(KEEP)

    @classmethod
    def select(cls, n):
        return cls(SELECT, start=n, end=n)

    @classmethod
    def collapse(cls, n):
        return cls(COLLAPSE, start=n, end=n)

    @classmethod
    def span(cls, start, end, step=None):
        if step == 0:
            return cls.collapse(start)
        return cls(RANGE, start=start, end=end, step=step)

    @classmethod
    def dummy(cls, size=1):
        if size < 0:
            raise NegativeSizeError(size, 'a dummy axis')
        return cls(DUMMY, size=size)

    @property
    def consumes_axis(self):
        return self.kind != DUMMY


def _parse_string_term(text, argno):
    """Parse one string term following the slice grammar."""

    n0, n1, n2 = 0, -1, None
    keep = squish = dummy = squish_closed = flagged = False
    subargno = 0
    pos = 0

    while pos < len(text):
        ch = text[pos]
        if ch.isspace():
            pos += 1
            continue

        if ch == '*':
            if flagged or subargno:
                raise SliceSyntaxError(text, "erroneous '*' (arg {})".format(argno))
            dummy = flagged = True
            n0 = n1 = 1
            pos += 1

        elif ch == '(':
            if flagged or subargno:
                raise SliceSyntaxError(text, "erroneous '(' (arg {})".format(argno))
            squish = flagged = True
            pos += 1

        elif ch in 'Xx':
            if flagged or subargno > 1:
                raise SliceSyntaxError(text, "erroneous 'X' (arg {})".format(argno))
            if subargno == 0:
                keep = flagged = True
            else:
                squish = squish_closed = flagged = True
            pos += 1

        elif ch in '+-' or ch.isdigit():
            match = _int_re.match(text, pos)
            if match is None:
                raise SliceSyntaxError(text, "sign without digits (arg {})".format(argno))
            value = int(match.group())
            pos = match.end()
            if subargno == 0:
                n0 = n1 = value
                if dummy:
                    n0 = 1
            elif subargno == 1:
                n1 = value
            else:
                if squish or dummy:
                    raise SliceSyntaxError(
                        text, 'erroneous third field (arg {})'.format(argno))
                n2 = value

        elif ch == ')':
            if squish_closed or not squish or subargno > 0:
                raise SliceSyntaxError(text, "erroneous ')' (arg {})".format(argno))
            squish_closed = True
            pos += 1

        elif ch == ':':
            if squish and not squish_closed:
                raise SliceSyntaxError(
                    text, 'must close collapsing parens (arg {})'.format(argno))
            if subargno == 0:
                n1 = -1
            if subargno > 1:
                raise SliceSyntaxError(text, "too many ':'s (arg {})".format(argno))
            subargno += 1
            pos += 1

        else:
            raise SliceSyntaxError(text, 'unexpected {!r} (arg {})'.format(ch, argno))

    if squish and not squish_closed:
        raise SliceSyntaxError(text, 'must close collapsing parens (arg {})'.format(argno))

    if keep:
        return SliceTerm.whole()
    if dummy:
        return SliceTerm.dummy(n1 - n0 + 1)
    if squish:
        return SliceTerm.collapse(n0)
    if subargno == 0 and flagged is False and text.strip() != '':
        return SliceTerm.select(n0)
    if n2 is None and n0 == 0 and n1 == -1:
        return SliceTerm.whole() if text.strip() in ('', ':') else SliceTerm.span(n0, n1)
    return SliceTerm.span(n0, n1, n2)


def _as_int(value, text, argno):
    if isinstance(value, str):
        match = _int_re.fullmatch(value.strip())
        if match is None:
            raise SliceSyntaxError(text, 'expected an integer, got {!r} (arg {})'
                                   .format(value, argno))
        return int(match.group())
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, np.ndarray) and value.size == 1 and value.dtype.kind in 'iu':
        return int(value.reshape(-1)[0])
    raise SliceSyntaxError(text, 'expected an integer, got {!r} (arg {})'.format(value, argno))


def _parse_list_term(term, argno):
    """Parse the ``[start, end, step]`` structured form of a term."""

    items = list(term)
    if len(items) > 3:
        raise SliceSyntaxError(term, 'list terms can have at most 3 elements (arg {})'
                               .format(argno))
    if not items:
        return SliceTerm.whole()

    first = items[0]
    if isinstance(first, str) and first.strip()[:1] in ('X', 'x'):
        return SliceTerm.whole()
    if isinstance(first, str) and first.strip()[:1] == '*':
        size = 1
        if len(items) > 1 and items[1] is not None:
            size = _as_int(items[1], term, argno)
        return SliceTerm.dummy(size)

    n0 = 0 if first is None else _as_int(first, term, argno)
    n1 = n0 if first is not None else -1
    step = None

    if len(items) > 1 and items[1] is not None:
        second = items[1]
        if isinstance(second, str) and second.strip()[:1] in ('X', 'x'):
            return SliceTerm.collapse(n0)
        n1 = _as_int(second, term, argno)

    if len(items) > 2 and items[2] is not None:
        if not (isinstance(items[2], str) and items[2].strip() == ''):
            step = _as_int(items[2], term, argno)
            if step == 0:
                return SliceTerm.collapse(n0)

    if len(items) == 1 and first is not None:
        return SliceTerm.select(n0)
    return SliceTerm.span(n0, n1, step)


def parse_term(term, argno=0):
    """Parse a single slice term in any of its accepted forms."""

    if term is None:
        return SliceTerm.whole()
    if isinstance(term, str):
        return _parse_string_term(term, argno)
    if isinstance(term, np.ndarray):
        if term.ndim > 1:
            raise SliceSyntaxError(term, 'dicing parameters must be at most 1D (arg {})'
                                   .format(argno))
        if term.dtype.kind not in 'iu':
            raise SliceSyntaxError(term, 'dicing parameters must be integers (arg {})'
                                   .format(argno))
        return SliceTerm(DICE, index=term.reshape(-1))
    if isinstance(term, numbers.Integral):
        return SliceTerm.select(int(term))
    if isinstance(term, (list, tuple)):
        return _parse_list_term(term, argno)
    raise SliceSyntaxError(term, 'unsupported term type {} (arg {})'
                           .format(type(term).__name__, argno))


def parse_slice(*terms):
    """Parse a slice specification into a tuple of :class:`SliceTerm`.

    A single string containing commas is split into one term per axis.

    Examples
    --------
    >>> [t.kind for t in parse_slice('1:3,(0),*2')]
    ['range', 'collapse', 'dummy']
    >>> parse_slice([3, 1])[0]
    SliceTerm(kind='range', start=3, end=1, step=None, size=1, index=None)
    """
    if len(terms) == 1 and isinstance(terms[0], str) and ',' in terms[0]:
        terms = tuple(terms[0].split(','))
    return tuple(parse_term(term, argno) for argno, term in enumerate(terms))


def compose(descriptor, terms):
    """Fold parsed slice terms into `descriptor`.

    Returns a new :class:`AffineDescriptor` against the same buffer.  Bounds
    problems are recorded as deferred errors rather than raised.
    """

    shape, strides = descriptor.shape, descriptor.strides
    ndim = len(shape)
    offset = descriptor.offset
    out_shape = []
    out_strides = []
    deferred = []
    idim = 0

    for term in terms:
        if term.kind == DICE:
            raise ValueError('dice terms must be resolved before affine composition')

        if term.kind == DUMMY:
            out_shape.append(term.size)
            out_strides.append(0)
            continue

        axis = idim
        idim += 1
        if axis < ndim:
            pdsize, pstride = shape[axis], strides[axis]
        else:
            # permissive slicing: a missing axis acts like a dummy of size 1
            pdsize, pstride = 1, 0

        full = term.kind == RANGE and term.step is None and (term.start, term.end) == (0, -1)
        if pdsize == 0 and (term.kind == KEEP or full):
            out_shape.append(0)
            out_strides.append(pstride)
            continue
        if term.kind == KEEP:
            start, end, step = 0, pdsize - 1, 1
        else:
            start, end, step = term.start, term.end, term.step

        if start < 0:
            start += pdsize
        if start < 0 or start >= pdsize:
            if axis >= ndim:
                deferred.append(TooManyDimsError(axis, term.start, ndim))
            else:
                deferred.append(BoundsCheckError(term.start, axis, pdsize - 1))

        if term.kind == COLLAPSE:
            offset += start * pstride
            continue

        if end < 0:
            end += pdsize
        if (end < 0 or end >= pdsize) and term.kind != SELECT:
            if axis >= ndim:
                deferred.append(TooManyDimsError(axis, term.end, ndim))
            else:
                deferred.append(BoundsCheckError(term.end, axis, pdsize - 1))

        if not step:
            step = 1 if start <= end else -1
        size = max(0, trunc_div(end - start + step, step))

        out_shape.append(size)
        out_strides.append(pstride * step)
        offset += start * pstride

    # source axes not named by the specification pass through unchanged
    for axis in range(idim, ndim):
        out_shape.append(shape[axis])
        out_strides.append(strides[axis])

    return AffineDescriptor(shape=tuple(out_shape), strides=tuple(out_strides),
                            offset=offset, deferred=descriptor.deferred + tuple(deferred))


def term_origins(terms, ndim):
    """Source axis of every output axis of :func:`compose`.

    Dummy axes, and axes past the end of the source, are inserted before
    source axis p and get origin ``p - 0.5``.
    """
    origins = []
    idim = 0
    for term in terms:
        if term.kind == DUMMY:
            origins.append(min(idim, ndim) - 0.5)
            continue
        axis = idim
        idim += 1
        if term.kind != COLLAPSE:
            origins.append(axis if axis < ndim else ndim - 0.5)
    origins.extend(range(idim, ndim))
    return origins

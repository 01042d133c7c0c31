import numbers
import operator
from functools import reduce
from textwrap import TextWrapper
from typing import Any, Sequence, Tuple

from asciitree import BoxStyle, LeftAligned
from asciitree.traversal import Traversal

from ndflow.errors import AxisError, BoundsCheckError


def normalize_shape(shape) -> Tuple[int, ...]:
    """Convenience function to normalize the `shape` argument."""

    if shape is None:
        raise TypeError('shape is None')

    # handle 1D convenience form
    if isinstance(shape, numbers.Integral):
        shape = (int(shape),)

    # normalize
    shape = tuple(int(s) for s in shape)
    if any(s < 0 for s in shape):
        raise ValueError('negative dimensions are not allowed: {!r}'.format(shape))
    return shape


def product(values: Sequence[int]) -> int:
    return reduce(operator.mul, values, 1)


def c_strides(shape: Tuple[int, ...]) -> Tuple[int, ...]:
    """Element strides of a C-contiguous layout of `shape`."""
    strides = []
    step = 1
    for n in reversed(shape):
        strides.append(step)
        step *= max(n, 1)
    return tuple(reversed(strides))


def normalize_axis(axis, ndim, extra=0) -> int:
    """Normalize a possibly negative axis against `ndim` dimensions.

    `extra` widens the accepted range, e.g. for insertion points."""
    axis = int(axis)
    limit = ndim + extra
    if axis < 0:
        axis += limit
    if axis < 0 or axis >= limit:
        raise AxisError(axis, ndim)
    return axis


def normalize_axes(axes, ndim) -> Tuple[int, ...]:
    axes = tuple(normalize_axis(a, ndim) for a in axes)
    if len(set(axes)) != len(axes):
        raise ValueError('repeated axis in {!r}'.format(axes))
    return axes


def normalize_integer_selection(dim_sel, dim_len, axis=0):

    # normalize type to int
    dim_sel = int(dim_sel)

    # handle wraparound
    if dim_sel < 0:
        dim_sel = dim_len + dim_sel

    # handle out of bounds
    if dim_sel >= dim_len or dim_sel < 0:
        raise BoundsCheckError(dim_sel, axis, dim_len - 1)

    return dim_sel


def trunc_div(a: int, b: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def human_readable_size(size) -> str:
    if size < 2**10:
        return '%s' % size
    elif size < 2**20:
        return '%.1fK' % (size / float(2**10))
    elif size < 2**30:
        return '%.1fM' % (size / float(2**20))
    else:
        return '%.1fG' % (size / float(2**30))


def info_text_report(items: Sequence[Tuple[str, Any]]) -> str:
    keys = [k for k, v in items]
    max_key_len = max(len(k) for k in keys)
    report = ''
    for k, v in items:
        wrapper = TextWrapper(width=80,
                              initial_indent=k.ljust(max_key_len) + ' : ',
                              subsequent_indent=' '*max_key_len + ' : ')
        text = wrapper.fill(str(v))
        report += text + '\n'
    return report


def info_html_report(items) -> str:
    report = '<table class="ndflow-info">'
    report += '<tbody>'
    for k, v in items:
        report += '<tr>' \
                  '<th style="text-align: left">%s</th>' \
                  '<td style="text-align: left">%s</td>' \
                  '</tr>' \
                  % (k, v)
    report += '</tbody>'
    report += '</table>'
    return report


class InfoReporter(object):

    def __init__(self, obj):
        self.obj = obj

    def __repr__(self):
        items = self.obj.info_items()
        return info_text_report(items)

    def _repr_html_(self):
        items = self.obj.info_items()
        return info_html_report(items)


class TreeNode(object):

    def __init__(self, obj, depth=0, level=None):
        self.obj = obj
        self.depth = depth
        self.level = level

    def get_children(self):
        if self.level is None or self.depth < self.level:
            depth = self.depth + 1
            return [TreeNode(o, depth=depth, level=self.level)
                    for o in self.obj.views()]
        return []

    def get_text(self):
        return '{} {} {}'.format(self.obj.kind, self.obj.shape, self.obj.dtype)


class TreeTraversal(Traversal):

    def get_children(self, node):
        return node.get_children()

    def get_root(self, tree):
        return tree

    def get_text(self, node):
        return node.get_text()


class TreeViewer(object):
    """Draws the live views derived from an array."""

    def __init__(self, array, level=None):

        self.array = array
        self.level = level

        self.text_kwargs = dict(
            horiz_len=2,
            label_space=1,
            indent=1
        )

        self.bytes_kwargs = dict(
            UP_AND_RIGHT="+",
            HORIZONTAL="-",
            VERTICAL="|",
            VERTICAL_AND_RIGHT="+"
        )

        self.unicode_kwargs = dict(
            UP_AND_RIGHT="└",
            HORIZONTAL="─",
            VERTICAL="│",
            VERTICAL_AND_RIGHT="├"
        )

    def __bytes__(self):
        drawer = LeftAligned(
            traverse=TreeTraversal(),
            draw=BoxStyle(gfx=self.bytes_kwargs, **self.text_kwargs)
        )
        root = TreeNode(self.array, level=self.level)
        return drawer(root).encode()

    def __unicode__(self):
        drawer = LeftAligned(
            traverse=TreeTraversal(),
            draw=BoxStyle(gfx=self.unicode_kwargs, **self.text_kwargs)
        )
        root = TreeNode(self.array, level=self.level)
        return drawer(root)

    def __repr__(self):
        return self.__unicode__()


def typestr(o) -> str:
    return '{}.{}'.format(type(o).__module__, type(o).__name__)

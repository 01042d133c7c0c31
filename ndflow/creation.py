import numpy as np

from ndflow.core import Array
from ndflow.util import normalize_shape


def array(data, dtype=None):
    """Create a physical array filled with `data`.

    Parameters
    ----------
    data : array_like or Array
        Initial values; always copied.
    dtype : string or dtype, optional
        NumPy dtype.

    Returns
    -------
    a : ndflow.core.Array

    Examples
    --------
    >>> import ndflow
    >>> a = ndflow.array([[1, 2], [3, 4]])
    >>> a
    <ndflow.core.Array physical (2, 2) int64>
    """
    if isinstance(data, Array):
        data = data.get()
    return Array(data, dtype=dtype)


def empty(shape, dtype=float):
    """Create an array with uninitialized values."""
    return Array._wrap(np.empty(normalize_shape(shape), dtype=dtype))


def zeros(shape, dtype=float):
    """Create an array, with zero being used as the default value for
    uninitialized portions of the array.

    Examples
    --------
    >>> import ndflow
    >>> ndflow.zeros((2, 3)).shape
    (2, 3)
    """
    return Array._wrap(np.zeros(normalize_shape(shape), dtype=dtype))


def ones(shape, dtype=float):
    """Create an array, with one being used as the default value for
    uninitialized portions of the array."""
    return Array._wrap(np.ones(normalize_shape(shape), dtype=dtype))


def full(shape, fill_value, dtype=None):
    """Create an array, with `fill_value` being used as the default value for
    uninitialized portions of the array."""
    return Array._wrap(np.full(normalize_shape(shape), fill_value, dtype=dtype))


def _like_args(a, kwargs):
    kwargs.setdefault('shape', tuple(a.shape))
    if hasattr(a, 'dtype'):
        kwargs.setdefault('dtype', a.dtype)


def empty_like(a, **kwargs):
    """Create an empty array like `a`."""
    _like_args(a, kwargs)
    return empty(**kwargs)


def zeros_like(a, **kwargs):
    """Create an array of zeros like `a`."""
    _like_args(a, kwargs)
    return zeros(**kwargs)


def ones_like(a, **kwargs):
    """Create an array of ones like `a`."""
    _like_args(a, kwargs)
    return ones(**kwargs)


def full_like(a, fill_value, **kwargs):
    """Create a filled array like `a`."""
    _like_args(a, kwargs)
    return full(fill_value=fill_value, **kwargs)

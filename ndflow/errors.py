class _BaseNdflowError(ValueError):
    _msg = ""

    def __init__(self, *args):
        super().__init__(self._msg.format(*args))


class _BaseNdflowIndexError(IndexError):
    _msg = ""

    def __init__(self, *args):
        super().__init__(self._msg.format(*args))


class BoundsCheckError(_BaseNdflowIndexError):
    _msg = "index {0} out of bounds for axis {1}; valid range is 0..{2}"


class TooManyDimsError(BoundsCheckError):
    _msg = "slice indexes axis {0} with {1}, but the source has only {2} dimension(s)"


class SampleBoundsError(BoundsCheckError):
    _msg = ("coordinate {0} out of bounds for axis {1} in sample #{2}; "
            "valid range is 0..{3}")


class AxisError(_BaseNdflowIndexError):
    _msg = "axis {0} is out of range for array with {1} dimension(s)"


class SliceSyntaxError(_BaseNdflowError):
    _msg = "invalid slice specifier {0!r}: {1}"


class NegativeSizeError(_BaseNdflowError):
    _msg = "negative size {0} is not allowed in {1}"


class ShapeMismatchError(_BaseNdflowError):
    _msg = "shape mismatch in axis {0}: {1} and {2} cannot be broadcast together"


class ExcessDimensionsError(_BaseNdflowError):
    _msg = ("index has {0} coordinate(s) but the source has only {1} dimension(s); "
            "more than {2} implicit dimensions requires a size for every coordinate")


class BoundaryModeError(_BaseNdflowError):
    _msg = "unrecognized boundary condition {0!r}"


class DataflowError(_BaseNdflowError):
    _msg = "{0}"


def err_too_many_indices(selection, shape):
    raise IndexError("too many indices for array; expected {}, got {}"
                     .format(len(shape), len(selection)))

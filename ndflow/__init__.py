# flake8: noqa
from ndflow.broadcast import (Broadcast, broadcast_grouped, broadcast_shapes,
                              broadcast_to)
from ndflow.config import config
from ndflow.core import Array
from ndflow.creation import (array, empty, empty_like, full, full_like, ones,
                             ones_like, zeros, zeros_like)
from ndflow.dataflow import DataflowEdge, GatherTransform
from ndflow.descriptor import AffineDescriptor, ThreadGroup
from ndflow.errors import (AxisError, BoundaryModeError, BoundsCheckError,
                           DataflowError, ExcessDimensionsError, NegativeSizeError,
                           SampleBoundsError, ShapeMismatchError, SliceSyntaxError,
                           TooManyDimsError)
from ndflow.indexing import (Boundary, dice, dice_axis, index, index1d, index2d,
                             index_nd, parse_boundary, range_, resolve, rotate)
from ndflow.slicing import SliceTerm, compose, parse_slice
from ndflow.version import version as __version__

#  Copyright 2019 The MixMatrix Authors
#
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
"""Errors and warnings raised by MixMatrix"""

import numpy as np
from sklearn.exceptions import ConvergenceWarning

__all__ = [
    "ConvergenceWarning",
    "DegenerateVariableError",
    "FitFailedError",
    "GroupDroppedWarning",
    "SingularMatrixError",
    "ValidationError",
]


class ValidationError(ValueError):
    """Malformed input: bad shapes, non-finite values, invalid prior."""


class DegenerateVariableError(ValueError):
    """One or more matrix cells do not vary across observations.

    Parameters
    ----------
    positions : list of (int, int)
        (row, column) of every offending cell.

    shape : tuple of int
        (p, q) shape of the observations.

    Attributes
    ----------
    indices : list of int
        Row-major, 0-based linear indices of the offending cells.
    """

    def __init__(self, positions, shape, context="within groups"):
        self.positions = [(int(i), int(j)) for i, j in positions]
        self.indices = [int(np.ravel_multi_index(pos, shape))
                        for pos in self.positions]
        if len(self.indices) == 1:
            msg = "variable {} appears to be constant {}".format(
                self.indices[0], context)
        else:
            msg = "variables {} appear to be constant {}".format(
                " ".join(str(i) for i in self.indices), context)
        super(DegenerateVariableError, self).__init__(msg)


class SingularMatrixError(np.linalg.LinAlgError):
    """A covariance estimate is not symmetric positive-definite."""


class FitFailedError(RuntimeError):
    """An iterative fit produced a non-finite or invalid state."""


class GroupDroppedWarning(UserWarning):
    """A declared group has no observations and was removed."""

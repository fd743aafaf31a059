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
"""Bounded fixed-point iteration with pluggable stopping rules

Every iterative fit in the package (flip-flop, ECM, the pooled LDA loop and
the mixture EM) is run by :func:`run_iterations`. A step function maps the
current state to the next state and its objective value (a log-likelihood);
a stopping predicate looks at the two states and the objective trace and
decides whether the iteration has converged.
"""

import logging
from enum import Enum

import numpy as np

__all__ = [
    "IterationStatus",
    "aitken",
    "loglik_change",
    "run_iterations",
    "squared_change",
]

logger = logging.getLogger(__name__)


class IterationStatus(Enum):
    """States of an iterative fit

    UNINITIALIZED and INITIALIZING are only used by the mixture model, which
    has a separate initialization phase. The terminal states are CONVERGED,
    MAX_ITER_REACHED (a result is still returned) and FAILED (an error is
    raised instead of a result).
    """
    UNINITIALIZED = 0
    INITIALIZING = 1
    ITERATING = 2
    CONVERGED = 3
    MAX_ITER_REACHED = 4
    FAILED = 5


def squared_change(tol, keys):
    """Stop when the summed squared change of the named arrays is below tol

    Parameters
    ----------
    tol : float
        Threshold on :math:`\\sum_k \\|new_k - old_k\\|_F^2`.

    keys : sequence of str
        Entries of the state dict to compare.
    """
    def stop(old, new, trace):
        error = sum(np.sum((np.asarray(new[key]) - np.asarray(old[key])) ** 2)
                    for key in keys)
        return error < tol
    return stop


def loglik_change(tol, relative=False):
    """Stop when successive objective values differ by less than tol

    With ``relative=True`` the difference is divided by the magnitude of the
    previous value.
    """
    def stop(old, new, trace):
        if len(trace) < 2:
            return False
        diff = abs(trace[-1] - trace[-2])
        if relative:
            diff /= max(abs(trace[-2]), np.finfo(float).tiny)
        return diff < tol
    return stop


def aitken(tol):
    """Stop when the Aitken-extrapolated limit is within tol of the last value

    Given the last three values :math:`l_{k-2}, l_{k-1}, l_k` the rate is
    :math:`a = (l_k - l_{k-1}) / (l_{k-1} - l_{k-2})` and the asymptotic
    estimate is :math:`l_\\infty = l_{k-1} + (l_k - l_{k-1}) / (1 - a)`.
    """
    def stop(old, new, trace):
        if len(trace) < 3:
            return False
        l2, l1, l0 = trace[-3], trace[-2], trace[-1]
        denom = l1 - l2
        if denom == 0:
            return l0 == l1
        rate = (l0 - l1) / denom
        if rate >= 1:
            return False
        l_inf = l1 + (l0 - l1) / (1 - rate)
        return abs(l_inf - l0) < tol
    return stop


def run_iterations(step, state, stop, max_iter, min_iter=1, name="fit"):
    """Iterate ``state = step(state)`` until ``stop`` or ``max_iter``

    Parameters
    ----------
    step : Callable[[dict], Tuple[dict, float]]
        Computes the next state and its objective value.

    state : dict
        Initial state.

    stop : Callable[[dict, dict, list], bool]
        Stopping predicate called with the previous state, the new state and
        the objective trace (which already includes the new value).

    max_iter : int
        Maximum number of steps.

    min_iter : int, default 1
        The predicate is not consulted before this many steps.

    name : str
        Label used in log messages.

    Returns
    -------
    state : dict
        Final state.

    trace : list of float
        Objective value after every step.

    n_iter : int
        Number of steps taken.

    status : IterationStatus
        CONVERGED or MAX_ITER_REACHED.
    """
    if max_iter < 1:
        raise ValueError("max_iter must be at least 1, got {}".format(
            max_iter))
    trace = []
    status = IterationStatus.ITERATING
    n_iter = 0
    while status is IterationStatus.ITERATING:
        new_state, value = step(state)
        n_iter += 1
        trace.append(float(value))
        logger.debug("%s: iteration %d, LL=%f", name, n_iter, value)
        if n_iter >= min_iter and stop(state, new_state, trace):
            status = IterationStatus.CONVERGED
        elif n_iter >= max_iter:
            status = IterationStatus.MAX_ITER_REACHED
        state = new_state
    return state, trace, n_iter, status

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
from enum import Enum

import numpy as np
from numpy.linalg import cholesky
from scipy.stats import chi2, norm
from sklearn.utils import check_random_state

from ..exceptions import ValidationError

__all__ = [
    "Method",
    "resolve_method",
    "rmatrixnorm",
    "rmatrixt",
    "rmn",
    "weighted_mean",
]


class Method(Enum):
    """Distribution family of a fitted model

    NORMAL models carry no degrees of freedom; T models carry nu.
    """
    NORMAL = "normal"
    T = "t"


def resolve_method(method, nu):
    """Parse a method tag, falling back to the normal model

    A t model with ``nu`` of None, 0 or infinity is the normal model.

    Returns
    -------
    method : Method

    nu : float, ndarray or None
        None for the normal model.
    """
    try:
        method = Method(method) if not isinstance(method, Method) else method
    except ValueError as err:
        raise ValidationError(
            "method must be 'normal' or 't', got {!r}".format(method)) \
            from err
    if method is Method.T:
        if nu is None:
            return Method.NORMAL, None
        nu_arr = np.asarray(nu, dtype=np.float64)
        if np.any(nu_arr == 0) or np.any(np.isinf(nu_arr)):
            return Method.NORMAL, None
        if np.any(nu_arr < 0) or np.any(np.isnan(nu_arr)):
            raise ValidationError("nu must be positive, got {}".format(nu))
        return method, nu
    return method, None


def weighted_mean(x, weights, row_mean=False, col_mean=False):
    """Weighted mean matrix of a stack, with optional constraints

    Parameters
    ----------
    x : array, shape=[n, p, q]

    weights : array, shape=[n]
        Non-negative, with a positive sum.

    row_mean : bool
        Mean is constant within each row (averaged across columns).

    col_mean : bool
        Mean is constant within each column (averaged across rows).

    Returns
    -------
    mean : array, shape=[p, q]
    """
    mean = np.tensordot(weights, x, axes=1) / np.sum(weights)
    if row_mean:
        mean = np.repeat(mean.mean(axis=1, keepdims=True), mean.shape[1],
                         axis=1)
    if col_mean:
        mean = np.repeat(mean.mean(axis=0, keepdims=True), mean.shape[0],
                         axis=0)
    return mean


def rmn(rowcov, colcov, random_state=None):
    """
    Generate random draws from a zero-mean matrix-normal distribution.

    Parameters
    -----------
    rowcov : np.ndarray
        Row covariance (assumed to be positive definite)
    colcov : np.ndarray
        Column covariance (assumed to be positive definite)
    random_state : int, RandomState or None
        Seed or generator for the draws.
    """

    Z = norm.rvs(size=(rowcov.shape[0], colcov.shape[0]),
                 random_state=random_state)
    return cholesky(rowcov).dot(Z).dot(cholesky(colcov).T)


def rmatrixnorm(n, mean, U=None, V=None, random_state=None):
    """Draw a stack of matrix-normal observations

    Parameters
    ----------
    n : int
        Number of draws.
    mean : array, shape=[p, q]
    U : array, shape=[p, p], default identity
    V : array, shape=[q, q], default identity
    random_state : int, RandomState or None

    Returns
    -------
    x : array, shape=[n, p, q]
    """
    mean = np.asarray(mean, dtype=np.float64)
    p, q = mean.shape
    U = np.identity(p) if U is None else np.asarray(U, dtype=np.float64)
    V = np.identity(q) if V is None else np.asarray(V, dtype=np.float64)
    random_state = check_random_state(random_state)
    return np.stack([mean + rmn(U, V, random_state) for _ in range(n)])


def rmatrixt(n, nu, mean, U=None, V=None, random_state=None):
    """Draw a stack of matrix-t observations

    Draws follow :math:`vec(X) \\sim t_{pq}(vec(M), V \\otimes U, \\nu)`,
    the scale mixture :math:`X = M + Z / \\sqrt{W / \\nu}` with
    :math:`Z \\sim \\mathcal{MN}(0, U, V)` and :math:`W \\sim \\chi^2_\\nu`.
    """
    random_state = check_random_state(random_state)
    mean = np.asarray(mean, dtype=np.float64)
    z = rmatrixnorm(n, np.zeros_like(mean), U, V, random_state)
    w = chi2.rvs(nu, size=n, random_state=random_state)
    return mean + z / np.sqrt(w / nu)[:, np.newaxis, np.newaxis]

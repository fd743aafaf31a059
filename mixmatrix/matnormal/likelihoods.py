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
import logging

import numpy as np
from scipy.special import gammaln

from ..exceptions import ValidationError
from ..utils.utils import check_matrix_stack, chol_inv_logdet, \
    condition_number
from .utils import Method

__all__ = [
    "dmatrixnorm",
    "dmatrixt",
    "log_density",
    "logpdf_terms",
    "quad_forms",
]

logger = logging.getLogger(__name__)

LOG2PI = 1.8378770664093453


def quad_forms(resid, u_inv, v_inv):
    """Per-observation :math:`\\Tr[U^{-1} R_i V^{-1} R_i^T]`

    Parameters
    ----------
    resid : array, shape=[n, p, q]
        Residual matrices :math:`R_i = X_i - M`.

    u_inv : array, shape=[p, p]

    v_inv : array, shape=[q, q]
    """
    return np.einsum("ij,njk,kl,nil->n", u_inv, resid, v_inv, resid)


def _log_diagnostics(U, V):
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("U condition %f, V condition %f",
                     condition_number(U), condition_number(V))


def _mnorm_logp_internal(colsize, rowsize, logdet_row, logdet_col, quad):
    """Construct logp from the quadratic forms and determinants.

    Parameters
    ----------------
    colsize: int
        Column dimension of the observations
    rowsize: int
        Row dimension of the observations
    logdet_row: float
        log-determinant of row covariance
    logdet_col: float
        log-determinant of column covariance
    quad: np.ndarray
        :math:`\\Tr[U^{-1} R_i V^{-1} R_i^T]` for every observation
    """
    denominator = (-rowsize * colsize * LOG2PI -
                   colsize * logdet_row - rowsize * logdet_col)
    return 0.5 * (denominator - quad)


def _mt_logp_internal(colsize, rowsize, logdet_row, logdet_col, quad, nu):
    """Log density of the Kronecker-separable matrix-t from its parts.

    Uses :math:`vec(X) \\sim t_{pq}(vec(M), V \\otimes U, \\nu)`, so the
    kernel exponent is :math:`(\\nu + pq) / 2`, matching the latent scale
    weights of the ECM fitter.
    """
    dim = rowsize * colsize
    return (gammaln((nu + dim) / 2) - gammaln(nu / 2)
            - 0.5 * dim * np.log(nu * np.pi)
            - 0.5 * colsize * logdet_row - 0.5 * rowsize * logdet_col
            - 0.5 * (nu + dim) * np.log1p(quad / nu))


def logpdf_terms(x, mean, U, V, nu=None):
    """Log density and quadratic forms of a validated stack

    Parameters
    ----------
    x : array, shape=[n, p, q]

    mean : array, shape=[p, q]

    U : array, shape=[p, p]

    V : array, shape=[q, q]

    nu : float or None
        Degrees of freedom; None selects the normal density.

    Returns
    -------
    logp : array, shape=[n]

    quad : array, shape=[n]
        :math:`\\Tr[U^{-1} R_i V^{-1} R_i^T]`, reused for the latent scale
        weights of the t model.
    """
    _log_diagnostics(U, V)
    u_inv, logdet_u = chol_inv_logdet(U)
    v_inv, logdet_v = chol_inv_logdet(V)
    quad = quad_forms(x - mean, u_inv, v_inv)
    _, rowsize, colsize = x.shape
    if nu is None:
        logp = _mnorm_logp_internal(colsize, rowsize, logdet_u, logdet_v,
                                    quad)
    else:
        logp = _mt_logp_internal(colsize, rowsize, logdet_u, logdet_v, quad,
                                 nu)
    return logp, quad


def _prepare(x, mean, U, V):
    x = check_matrix_stack(x)
    _, p, q = x.shape
    mean = np.zeros((p, q)) if mean is None else np.asarray(mean,
                                                            dtype=np.float64)
    if mean.shape != (p, q):
        raise ValidationError(
            "mean must be {}x{}, got shape {}".format(p, q, mean.shape))
    U = np.identity(p) if U is None else np.asarray(U, dtype=np.float64)
    V = np.identity(q) if V is None else np.asarray(V, dtype=np.float64)
    if U.shape != (p, p) or V.shape != (q, q):
        raise ValidationError(
            "covariances of shape {} and {} do not match {}x{} "
            "observations".format(U.shape, V.shape, p, q))
    return x, mean, U, V


def dmatrixnorm(x, mean=None, U=None, V=None, log=True):
    """Matrix-normal density of every observation in a stack

    Parameters
    ----------
    x : array, shape=[n, p, q] or [p, q]

    mean : array, shape=[p, q], default zeros

    U : array, shape=[p, p], default identity
        Row covariance.

    V : array, shape=[q, q], default identity
        Column covariance.

    log : bool, default True
        Return the log density.

    Returns
    -------
    density : array, shape=[n]
    """
    x, mean, U, V = _prepare(x, mean, U, V)
    logp, _ = logpdf_terms(x, mean, U, V)
    return logp if log else np.exp(logp)


def dmatrixt(x, nu, mean=None, U=None, V=None, log=True):
    """Matrix-t density of every observation in a stack

    The density is that of :math:`vec(X) \\sim t_{pq}(vec(M), V \\otimes U,
    \\nu)`:

    .. math::
        \\log f(X) = \\log\\Gamma(\\frac{\\nu+pq}{2})
        - \\log\\Gamma(\\frac{\\nu}{2}) - \\frac{pq}{2}\\log(\\nu\\pi)
        - \\frac{q}{2}\\log|U| - \\frac{p}{2}\\log|V|
        - \\frac{\\nu+pq}{2}\\log\\left(1 +
        \\frac{\\Tr[U^{-1}(X-M)V^{-1}(X-M)^T]}{\\nu}\\right)

    Parameters
    ----------
    x : array, shape=[n, p, q] or [p, q]

    nu : float
        Degrees of freedom, positive.

    mean, U, V, log
        As in :func:`dmatrixnorm`.
    """
    if not nu > 0:
        raise ValidationError("nu must be positive, got {}".format(nu))
    x, mean, U, V = _prepare(x, mean, U, V)
    logp, _ = logpdf_terms(x, mean, U, V, nu)
    return logp if log else np.exp(logp)


def log_density(x, mean, U, V, scale=1.0, method=Method.NORMAL, nu=None):
    """Log density of a validated stack under a fitted component

    Parameters
    ----------
    x : array, shape=[n, p, q]

    mean : array, shape=[p, q]

    U, V : arrays
        Normalized covariance factors, the covariance of :math:`vec(X)`
        being :math:`scale \\cdot V \\otimes U`.

    scale : float

    method : Method

    nu : float or None
        Degrees of freedom of a t component.
    """
    logp, _ = logpdf_terms(x, mean, scale * U, V,
                           nu if method is Method.T else None)
    return logp

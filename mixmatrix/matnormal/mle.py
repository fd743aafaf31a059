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
"""Maximum-likelihood fitting of matrix-normal and matrix-t models

The row covariance U and the column covariance V are only identified up to
a positive factor, :math:`(cU) \\otimes (V/c) = U \\otimes V`. Every
returned :class:`MatrixFit` therefore uses ``U[0, 0] == V[0, 0] == 1`` and
carries the overall variance in ``scale``, so that
:math:`cov(vec(X)) = scale \\cdot V \\otimes U`.
"""

# Authors: MixMatrix developers

import logging
import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy.optimize import brentq
from scipy.special import digamma

from ..exceptions import ConvergenceWarning, DegenerateVariableError, \
    ValidationError
from ..utils.iteration import IterationStatus, loglik_change, \
    run_iterations, squared_change
from ..utils.utils import check_cov, check_matrix_stack, check_weights, \
    chol_inv_logdet
from .likelihoods import logpdf_terms
from .utils import Method, weighted_mean

__all__ = [
    "MatrixFit",
    "NU_BOUNDS",
    "fit_matrix_normal",
    "fit_matrix_t",
    "flip_flop_step",
    "t_ecm_step",
]

logger = logging.getLogger(__name__)

EPS = np.finfo(float).eps

NU_BOUNDS = (0.5, 1000.0)
"""Range the estimated degrees of freedom are clamped to."""


@dataclass(frozen=True)
class MatrixFit:
    """Fitted matrix-normal or matrix-t parameters

    Attributes
    ----------
    mean : array, shape=[p, q]

    U : array, shape=[p, p]
        Row covariance with ``U[0, 0] == 1``.

    V : array, shape=[q, q]
        Column covariance with ``V[0, 0] == 1``.

    scale : float
        Overall variance.

    nu : float or None
        Degrees of freedom of the t model, None for the normal model.

    converged : bool

    n_iter : int

    loglik : float
        Weighted log-likelihood at the returned parameters.

    loglik_trace : ndarray
        Weighted log-likelihood after every iteration.

    method : Method

    status : IterationStatus
    """
    mean: np.ndarray
    U: np.ndarray
    V: np.ndarray
    scale: float
    nu: Optional[float]
    converged: bool
    n_iter: int
    loglik: float
    loglik_trace: np.ndarray
    method: Method
    status: IterationStatus

    @property
    def cov(self):
        """Covariance of :math:`vec(X)`, :math:`scale \\cdot V \\otimes U`"""
        return self.scale * np.kron(self.V, self.U)


def _check_constant(x, weights, sd_tol):
    mean = weighted_mean(x, weights)
    var = np.tensordot(weights, (x - mean) ** 2, axes=1) / np.sum(weights)
    positions = np.argwhere(np.sqrt(var) < sd_tol)
    if positions.size:
        raise DegenerateVariableError(positions, x.shape[1:],
                                      context="across observations")


def _covariance_step(resid, weights, w_sum, U, V, fix_U=False, fix_V=False):
    """Update U given V, then V given the new U

    ``weights`` scale each observation's contribution while ``w_sum`` is the
    normalizer, which differ for the t model.
    """
    _, p, q = resid.shape
    normalize = not (fix_U or fix_V)
    if not fix_U:
        v_inv, _ = chol_inv_logdet(V)
        U = np.einsum("n,nij,jk,nlk->il", weights, resid, v_inv,
                      resid) / (q * w_sum)
        U = (U + U.T) / 2
    if not fix_V:
        u_inv, _ = chol_inv_logdet(U)
        V = np.einsum("n,nji,jk,nkl->il", weights, resid, u_inv,
                      resid) / (p * w_sum)
        V = (V + V.T) / 2
    if normalize:
        factor = V[0, 0]
        V = V / factor
        U = U * factor
    return U, V


def flip_flop_step(x, weights, U, V, row_mean=False, col_mean=False,
                   fix_U=False, fix_V=False):
    """One weighted flip-flop update

    Parameters
    ----------
    x : array, shape=[n, p, q]

    weights : array, shape=[n]

    U : array, shape=[p, p]
        Current row covariance, carrying the overall scale.

    V : array, shape=[q, q]
        Current column covariance.

    row_mean, col_mean : bool
        Mean constraints, see :func:`mixmatrix.matnormal.utils.weighted_mean`.

    fix_U, fix_V : bool
        Keep the corresponding covariance at its current value.

    Returns
    -------
    mean : array, shape=[p, q]

    U : array, shape=[p, p]

    V : array, shape=[q, q]
        Normalized to ``V[0, 0] == 1`` unless a covariance is fixed.
    """
    mean = weighted_mean(x, weights, row_mean, col_mean)
    U, V = _covariance_step(x - mean, weights, np.sum(weights), U, V,
                            fix_U, fix_V)
    return mean, U, V


def _solve_nu(nu, delta, weights, dim, bounds=NU_BOUNDS):
    """Solve the degrees of freedom equation of the t ECM

    Root of :math:`1 + \\log(\\nu/2) - \\psi(\\nu/2) + c = 0` where :math:`c`
    collects the E-step terms evaluated at the previous ``nu``.
    """
    half = (nu + dim) / 2
    constant = (1 + np.dot(weights, np.log(delta) - delta) / np.sum(weights)
                + digamma(half) - np.log(half))

    def func(x):
        return np.log(x / 2) - digamma(x / 2) + constant

    low, high = bounds
    # func decreases in x, so clamp when the root is out of range
    if func(low) <= 0:
        return low
    if func(high) >= 0:
        return high
    return brentq(func, low, high)


def t_ecm_step(x, weights, mean, U, V, nu, row_mean=False, col_mean=False,
               fix_U=False, fix_V=False, fixed=True, quad=None):
    """One weighted ECM update of the matrix-t model

    The E-step computes the latent scale weights
    :math:`\\delta_i = (pq + \\nu) / (\\nu + \\Tr[U^{-1} R_i V^{-1} R_i^T])`
    at the current parameters. The CM-steps update the mean, U and V with
    contributions :math:`w_i \\delta_i` (normalizer :math:`\\sum_i w_i`) and,
    unless ``fixed``, the degrees of freedom.

    Parameters
    ----------
    quad : array, shape=[n], optional
        Quadratic forms at the current parameters, if already available.

    Returns
    -------
    mean, U, V, nu

    delta : array, shape=[n]
        Latent scale weights of this E-step.
    """
    _, p, q = x.shape
    if quad is None:
        _, quad = logpdf_terms(x, mean, U, V, nu)
    delta = (p * q + nu) / (nu + quad)
    weighted = weights * delta
    mean = weighted_mean(x, weighted, row_mean, col_mean)
    U, V = _covariance_step(x - mean, weighted, np.sum(weights), U, V,
                            fix_U, fix_V)
    if not fixed:
        nu = _solve_nu(nu, delta, weights, p * q)
    return mean, U, V, nu, delta


def _build_fit(state, trace, n_iter, status, method, name):
    if status is IterationStatus.MAX_ITER_REACHED:
        warnings.warn("{} did not converge in {} iterations".format(
            name, n_iter), ConvergenceWarning)
    U, V = state["U"], state["V"]
    scale = U[0, 0] * V[0, 0]
    return MatrixFit(mean=state["mean"], U=U / U[0, 0], V=V / V[0, 0],
                     scale=float(scale), nu=state.get("nu"),
                     converged=status is IterationStatus.CONVERGED,
                     n_iter=n_iter, loglik=trace[-1],
                     loglik_trace=np.asarray(trace), method=method,
                     status=status)


def fit_matrix_normal(x, weights=None, row_mean=False, col_mean=False,
                      U=None, V=None, fix_U=False, fix_V=False,
                      tol=10 * np.sqrt(EPS), max_iter=100, sd_tol=1e-8,
                      stop=None):
    """Maximum-likelihood estimate of a matrix-normal model (flip-flop)

    Alternates the closed-form updates

    .. math::
        U = \\frac{1}{qW} \\sum_i w_i R_i V^{-1} R_i^T, \\qquad
        V = \\frac{1}{pW} \\sum_i w_i R_i^T U^{-1} R_i

    with :math:`R_i = X_i - M` and :math:`W = \\sum_i w_i`, normalizing
    :math:`V_{11} = 1` after every iteration.

    Parameters
    ----------
    x : array, shape=[n, p, q] or [p, q]
        Observations.

    weights : array, shape=[n], optional
        Non-negative observation weights, default ones.

    row_mean : bool, default False
        Constrain the mean to be constant within each row.

    col_mean : bool, default False
        Constrain the mean to be constant within each column.

    U : array, shape=[p, p], optional
        Starting (or, with fix_U, fixed) row covariance; identity by default.

    V : array, shape=[q, q], optional
        Starting (or, with fix_V, fixed) column covariance.

    fix_U, fix_V : bool, default False
        Hold the covariance at its starting value.

    tol : float
        Convergence threshold on the summed squared change of U and V.

    max_iter : int, default 100

    sd_tol : float
        Cells whose weighted standard deviation is below this value raise
        :class:`DegenerateVariableError`.

    stop : callable, optional
        Stopping predicate ``stop(old, new, trace)`` replacing the default,
        see :mod:`mixmatrix.utils.iteration`.

    Returns
    -------
    MatrixFit
    """
    x = check_matrix_stack(x)
    n, p, q = x.shape
    weights = check_weights(weights, n)
    U = check_cov(U, p, "U")
    V = check_cov(V, q, "V")
    _check_constant(x, weights, sd_tol)
    logger.info("Fitting matrix-normal model to %d observations of size "
                "%dx%d", n, p, q)

    def step(state):
        mean, new_U, new_V = flip_flop_step(x, weights, state["U"],
                                            state["V"], row_mean, col_mean,
                                            fix_U, fix_V)
        logp, _ = logpdf_terms(x, mean, new_U, new_V)
        return dict(mean=mean, U=new_U, V=new_V), np.dot(weights, logp)

    if stop is None:
        stop = squared_change(tol, ("U", "V"))
    state, trace, n_iter, status = run_iterations(
        step, dict(mean=None, U=U, V=V), stop, max_iter,
        name="fit_matrix_normal")
    return _build_fit(state, trace, n_iter, status, Method.NORMAL,
                      "fit_matrix_normal")


def fit_matrix_t(x, nu=10, weights=None, row_mean=False, col_mean=False,
                 U=None, V=None, fix_U=False, fix_V=False, fixed=True,
                 tol=np.sqrt(EPS), max_iter=5000, sd_tol=1e-8, stop=None):
    """Maximum-likelihood estimate of a matrix-t model (ECM)

    The model is :math:`vec(X) \\sim t_{pq}(vec(M), V \\otimes U, \\nu)`,
    fitted through its representation as a scale mixture of matrix-normals.
    See :func:`t_ecm_step` for one iteration.

    Parameters
    ----------
    nu : float, default 10
        Degrees of freedom, the starting value when ``fixed`` is False.

    fixed : bool, default True
        Hold nu fixed. Otherwise nu is re-estimated every iteration and
        clamped to :data:`NU_BOUNDS`.

    tol : float
        Convergence threshold on the relative change of the log-likelihood.

    max_iter : int, default 5000

    Other parameters are as in :func:`fit_matrix_normal`.

    Returns
    -------
    MatrixFit
    """
    if nu is None or not np.isfinite(nu) or nu <= 0:
        raise ValidationError(
            "nu must be positive and finite, got {}".format(nu))
    x = check_matrix_stack(x)
    n, p, q = x.shape
    weights = check_weights(weights, n)
    U = check_cov(U, p, "U")
    V = check_cov(V, q, "V")
    _check_constant(x, weights, sd_tol)
    logger.info("Fitting matrix-t model to %d observations of size %dx%d, "
                "nu=%s", n, p, q, nu)

    def step(state):
        mean, new_U, new_V, new_nu, _ = t_ecm_step(
            x, weights, state["mean"], state["U"], state["V"], state["nu"],
            row_mean, col_mean, fix_U, fix_V, fixed, state["quad"])
        logp, quad = logpdf_terms(x, mean, new_U, new_V, new_nu)
        new_state = dict(mean=mean, U=new_U, V=new_V, nu=float(new_nu),
                         quad=quad)
        return new_state, np.dot(weights, logp)

    mean = weighted_mean(x, weights, row_mean, col_mean)
    if stop is None:
        stop = loglik_change(tol, relative=True)
    state, trace, n_iter, status = run_iterations(
        step, dict(mean=mean, U=U, V=V, nu=float(nu), quad=None), stop,
        max_iter, name="fit_matrix_t")
    return _build_fit(state, trace, n_iter, status, Method.T,
                      "fit_matrix_t")

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
"""Finite mixtures of matrix-variate normal and t distributions

The model is :math:`f(X) = \\sum_k \\pi_k f_k(X)` with every component a
matrix-normal or matrix-t density. Parameters are estimated with EM: the
E-step computes the responsibilities

.. math::
    \\tau_{ik} = \\frac{\\pi_k f_k(X_i)}{\\sum_l \\pi_l f_l(X_i)},

and the M-step sets :math:`\\pi_k` to the mean responsibility and updates
every component with one responsibility-weighted flip-flop (normal) or ECM
(t) pass. Convergence is judged on the log-likelihood
:math:`\\sum_i \\log \\sum_k \\pi_k f_k(X_i)`, by default through Aitken
acceleration.

The labels of the components are arbitrary; nothing is done about label
switching.
"""

# Authors: MixMatrix developers

import logging
import warnings
from dataclasses import dataclass

import numpy as np
from sklearn.base import BaseEstimator, ClusterMixin
from sklearn.cluster import KMeans
from sklearn.utils import check_random_state
from sklearn.utils.validation import check_is_fitted

from ..exceptions import ConvergenceWarning, FitFailedError, \
    SingularMatrixError, ValidationError
from ..loglik import LogLik, count_parameters
from ..matnormal.likelihoods import log_density
from ..matnormal.mle import flip_flop_step, t_ecm_step
from ..matnormal.utils import Method, resolve_method
from ..utils.iteration import IterationStatus, aitken, loglik_change, \
    run_iterations
from ..utils.utils import check_matrix_stack, check_prior, \
    normalize_log_scores

__all__ = [
    "MatrixMixture",
    "MixtureInit",
    "init_matrix_mixture",
    "matrix_mixture",
]

logger = logging.getLogger(__name__)

DEFAULT_NU = 10.0


@dataclass(frozen=True)
class MixtureInit:
    """Starting values of a mixture fit

    Attributes
    ----------
    centers : array, shape=[K, p, q]

    U : array, shape=[K, p, p]

    V : array, shape=[K, q, q]

    prior : array, shape=[K]
    """
    centers: np.ndarray
    U: np.ndarray
    V: np.ndarray
    prior: np.ndarray

    @property
    def n_components(self):
        return self.centers.shape[0]


def _stack_covariances(cov, K, dim, name):
    if cov is None:
        return np.tile(np.identity(dim), (K, 1, 1))
    cov = np.asarray(cov, dtype=np.float64)
    if cov.shape == (dim, dim):
        cov = np.tile(cov, (K, 1, 1))
    if cov.shape != (K, dim, dim):
        raise ValidationError(
            "'{}' must be {}x{} or {}x{}x{}, got shape {}".format(
                name, dim, dim, K, dim, dim, cov.shape))
    if not np.all(np.isfinite(cov)):
        raise ValidationError("non-finite values in '{}'".format(name))
    return cov


def init_matrix_mixture(x, K=None, prior=None, center_method="kmeans",
                        centers=None, U=None, V=None, random_state=None):
    """Complete the starting values of a mixture fit

    Parameters
    ----------
    x : array, shape=[n, p, q]
        Observations.

    K : int, optional
        Number of components; taken from ``prior`` if not given.

    prior : array, shape=[K], optional
        Starting mixing proportions, uniform by default.

    center_method : {"kmeans", "random"}
        How missing centers are chosen: cluster centers of k-means on the
        vectorized observations, or distinct observations drawn at random.

    centers : array, shape=[m, p, q], optional
        Supplied centers; with m < K the remaining K - m are filled in.

    U : array, shape=[p, p] or [K, p, p], optional
        Starting row covariances, identity by default.

    V : array, shape=[q, q] or [K, q, q], optional
        Starting column covariances, identity by default.

    random_state : int, RandomState or None

    Returns
    -------
    MixtureInit
    """
    x = check_matrix_stack(x)
    n, p, q = x.shape
    if K is None:
        if prior is None:
            raise ValidationError("one of 'K' and 'prior' must be given")
        K = len(np.ravel(prior))
    K = int(K)
    if K < 1 or K > n:
        raise ValidationError(
            "K must be between 1 and the number of observations ({}), "
            "got {}".format(n, K))
    prior = np.full(K, 1.0 / K) if prior is None else check_prior(prior, K)

    if centers is None:
        centers = np.empty((0, p, q))
    else:
        centers = np.asarray(centers, dtype=np.float64)
        if centers.ndim == 2:
            centers = centers[np.newaxis]
        if centers.shape[1:] != (p, q) or centers.shape[0] > K:
            raise ValidationError(
                "centers of shape {} do not fit {} components of size "
                "{}x{}".format(centers.shape, K, p, q))
    missing = K - centers.shape[0]
    if missing > 0:
        random_state = check_random_state(random_state)
        if center_method == "kmeans":
            km = KMeans(n_clusters=missing, n_init=10,
                        random_state=random_state)
            km.fit(x.reshape(n, p * q))
            new_centers = km.cluster_centers_.reshape(missing, p, q)
        elif center_method == "random":
            distinct = np.unique(x.reshape(n, p * q), axis=0)
            if distinct.shape[0] < missing:
                raise ValidationError(
                    "only {} distinct observations for {} centers".format(
                        distinct.shape[0], missing))
            idx = random_state.choice(distinct.shape[0], missing,
                                      replace=False)
            new_centers = distinct[idx].reshape(missing, p, q)
        else:
            raise ValidationError(
                "center_method must be 'kmeans' or 'random', got {!r}".format(
                    center_method))
        centers = np.concatenate([centers, new_centers])

    return MixtureInit(centers=centers,
                       U=_stack_covariances(U, K, p, "U"),
                       V=_stack_covariances(V, K, q, "V"),
                       prior=prior)


class MatrixMixture(BaseEstimator, ClusterMixin):
    """Mixture of matrix-variate normal or t distributions

    Parameters
    ----------
    n_components : int, optional
        Number of components K. Needed unless ``init`` is given.

    init : MixtureInit, optional
        Starting values; completed by :func:`init_matrix_mixture` if absent.

    model : {"normal", "t"}, default "normal"

    nu : float or array, optional
        Degrees of freedom of the t components, recycled to K. Default 10.

    tol : float, default 0.1
        Convergence threshold on the log-likelihood.

    max_iter : int, default 1000

    min_iter : int, default 5
        Convergence is not checked before this many iterations.

    convergence : {"aitken", "lik"}, default "aitken"
        Stop on the Aitken-extrapolated log-likelihood or on the raw change
        of successive log-likelihoods.

    row_mean, col_mean : bool, default False
        Mean constraints of every component.

    fixed : bool, default True
        Hold nu fixed; otherwise it is estimated for every component.

    center_method : {"kmeans", "random"}, default "kmeans"
        Used when ``init`` is not given.

    random_state : int, RandomState or None

    Attributes
    ----------
    weights_ : array, shape=[K]
        Mixing proportions.

    means_ : array, shape=[K, p, q]

    U_ : array, shape=[K, p, p]
        Row covariances, ``U_[k, 0, 0] == 1``.

    V_ : array, shape=[K, q, q]
        Column covariances, ``V_[k, 0, 0] == 1``.

    scaling_ : array, shape=[K]

    nu_ : array, shape=[K] or None

    posterior_ : array, shape=[n, K]
        Responsibilities of the training observations.

    labels_ : array, shape=[n]
        Most responsible component of every training observation.

    loglik_trace_ : array
        Log-likelihood after every iteration.

    loglik_ : float

    n_iter_ : int

    converged_ : bool

    status_ : IterationStatus
    """

    def __init__(self, n_components=None, init=None, model="normal",
                 nu=None, tol=0.1, max_iter=1000, min_iter=5,
                 convergence="aitken", row_mean=False, col_mean=False,
                 fixed=True, center_method="kmeans", random_state=None):
        self.n_components = n_components
        self.init = init
        self.model = model
        self.nu = nu
        self.tol = tol
        self.max_iter = max_iter
        self.min_iter = min_iter
        self.convergence = convergence
        self.row_mean = row_mean
        self.col_mean = col_mean
        self.fixed = fixed
        self.center_method = center_method
        self.random_state = random_state

    def _stopping_rule(self):
        if self.convergence == "aitken":
            return aitken(self.tol)
        if self.convergence in ("lik", "loglik"):
            return loglik_change(self.tol)
        raise ValidationError(
            "convergence must be 'aitken' or 'lik', got {!r}".format(
                self.convergence))

    def _check_init(self, X):
        _, p, q = X.shape
        init = self.init
        if init is None:
            return init_matrix_mixture(X, K=self.n_components,
                                       center_method=self.center_method,
                                       random_state=self.random_state)
        K = init.centers.shape[0]
        if init.centers.shape[1:] != (p, q):
            raise ValidationError(
                "initial centers are {}x{}, observations are {}x{}".format(
                    init.centers.shape[1], init.centers.shape[2], p, q))
        return MixtureInit(centers=np.array(init.centers, dtype=np.float64),
                           U=_stack_covariances(init.U, K, p, "U"),
                           V=_stack_covariances(init.V, K, q, "V"),
                           prior=check_prior(init.prior, K))

    def _scores(self, X, means, U, V, nu, weights):
        K = means.shape[0]
        scores = np.empty((X.shape[0], K))
        for k in range(K):
            scores[:, k] = log_density(
                X, means[k], U[k], V[k], 1.0, self.method_,
                None if nu is None else nu[k])
        with np.errstate(divide="ignore"):
            return scores + np.log(weights)

    def fit(self, X, y=None):
        """Fit the mixture with EM

        Parameters
        ----------
        X : array, shape=[n, p, q]
            Observations.

        y : not used

        Returns
        -------
        self

        Raises
        ------
        FitFailedError
            If an iteration produces a non-finite log-likelihood, an empty
            component or a covariance that is not positive definite.
        """
        self.status_ = IterationStatus.UNINITIALIZED
        X = check_matrix_stack(X)
        n, p, q = X.shape
        stop = self._stopping_rule()
        nu = self.nu
        if self.model == "t" and nu is None:
            nu = DEFAULT_NU
        self.method_, nu = resolve_method(self.model, nu)

        self.status_ = IterationStatus.INITIALIZING
        init = self._check_init(X)
        K = init.n_components
        if nu is not None:
            nu = np.resize(np.asarray(nu, dtype=np.float64), K)
        logger.info("Fitting %d-component matrix-%s mixture to %d "
                    "observations of size %dx%d", K, self.method_.value, n,
                    p, q)

        def step(state):
            tau = state["posterior"]
            weights = tau.mean(axis=0)
            if np.any(weights < np.finfo(float).eps):
                raise FitFailedError("component {} is empty".format(
                    int(np.argmin(weights))))
            means = np.empty_like(state["means"])
            U = np.empty_like(state["U"])
            V = np.empty_like(state["V"])
            new_nu = None if state["nu"] is None else state["nu"].copy()
            for k in range(K):
                if self.method_ is Method.T:
                    means[k], U[k], V[k], new_nu[k], _ = t_ecm_step(
                        X, tau[:, k], state["means"][k], state["U"][k],
                        state["V"][k], state["nu"][k], self.row_mean,
                        self.col_mean, fixed=self.fixed)
                else:
                    means[k], U[k], V[k] = flip_flop_step(
                        X, tau[:, k], state["U"][k], state["V"][k],
                        self.row_mean, self.col_mean)
            scores = self._scores(X, means, U, V, new_nu, weights)
            posterior, log_norm = normalize_log_scores(scores)
            loglik = np.sum(log_norm)
            if not np.isfinite(loglik):
                raise FitFailedError("non-finite log-likelihood")
            new_state = dict(means=means, U=U, V=V, nu=new_nu,
                             weights=weights, posterior=posterior)
            return new_state, loglik

        self.status_ = IterationStatus.ITERATING
        try:
            scores = self._scores(X, init.centers, init.U, init.V, nu,
                                  init.prior)
            posterior, _ = normalize_log_scores(scores)
            state = dict(means=init.centers, U=init.U, V=init.V, nu=nu,
                         weights=init.prior, posterior=posterior)
            state, trace, n_iter, status = run_iterations(
                step, state, stop, self.max_iter, self.min_iter,
                name="MatrixMixture")
        except (FitFailedError, SingularMatrixError) as err:
            self.status_ = IterationStatus.FAILED
            logger.error("Mixture fit failed: %s", err)
            if isinstance(err, FitFailedError):
                raise
            raise FitFailedError(
                "covariance is not positive definite: {}".format(err)) \
                from err

        if status is IterationStatus.MAX_ITER_REACHED:
            warnings.warn("mixture did not converge in {} iterations".format(
                n_iter), ConvergenceWarning)
        self.status_ = status
        self.converged_ = status is IterationStatus.CONVERGED
        self.n_iter_ = n_iter
        self.loglik_trace_ = np.asarray(trace)
        self.loglik_ = trace[-1]

        u00 = state["U"][:, 0, 0]
        v00 = state["V"][:, 0, 0]
        self.means_ = state["means"]
        self.U_ = state["U"] / u00[:, np.newaxis, np.newaxis]
        self.V_ = state["V"] / v00[:, np.newaxis, np.newaxis]
        self.scaling_ = u00 * v00
        self.nu_ = state["nu"]
        self.weights_ = state["weights"]
        self.posterior_ = state["posterior"]
        self.labels_ = np.argmax(self.posterior_, axis=1)
        self.n_obs_ = n
        return self

    def predict_proba(self, X):
        """Responsibilities of new observations, shape=[n, K]"""
        check_is_fitted(self, "means_")
        X = check_matrix_stack(X)
        if X.shape[1:] != self.means_.shape[1:]:
            raise ValidationError(
                "observations are {}x{}, the model is {}x{}".format(
                    X.shape[1], X.shape[2], self.means_.shape[1],
                    self.means_.shape[2]))
        U = self.U_ * self.scaling_[:, np.newaxis, np.newaxis]
        scores = self._scores(X, self.means_, U, self.V_, self.nu_,
                              self.weights_)
        return normalize_log_scores(scores)[0]

    def predict(self, X):
        """Most responsible component of every observation"""
        return np.argmax(self.predict_proba(X), axis=1)

    def log_likelihood(self):
        """Mixture log-likelihood of the training data

        Returns
        -------
        LogLik
        """
        check_is_fitted(self, "means_")
        K, p, q = self.means_.shape
        nu_fixed = self.fixed or self.method_ is Method.NORMAL
        df = count_parameters("mixture", K, p, q, self.row_mean,
                              self.col_mean, nu_fixed=nu_fixed)
        return LogLik(self.loglik_, df, self.n_obs_)


def matrix_mixture(x, K=None, init=None, model="normal", nu=None, tol=0.1,
                   max_iter=1000, convergence="aitken", **kwargs):
    """Fit a :class:`MatrixMixture`

    Parameters
    ----------
    x : array, shape=[n, p, q]

    K : int, optional
        Number of components, needed unless ``init`` is given.

    kwargs
        Further :class:`MatrixMixture` parameters.

    Returns
    -------
    MatrixMixture
        The fitted model.
    """
    estimator = MatrixMixture(n_components=K, init=init, model=model, nu=nu,
                              tol=tol, max_iter=max_iter,
                              convergence=convergence, **kwargs)
    return estimator.fit(x)

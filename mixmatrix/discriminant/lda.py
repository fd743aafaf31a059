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
"""Linear discriminant analysis for matrix-variate observations

All groups share one row covariance U, one column covariance V and one
scale; only the means differ. With the t model the shared parameters are
found by alternating per-group t fits, warm-started at the pooled estimate,
with a prior-weighted average of their covariances.
"""

# Authors: MixMatrix developers

import logging
import warnings

import numpy as np

from ..exceptions import ConvergenceWarning
from ..matnormal.mle import fit_matrix_normal, fit_matrix_t
from ..matnormal.utils import Method
from ..utils.iteration import IterationStatus, run_iterations, \
    squared_change
from .base import BaseMatrixDiscriminant

__all__ = [
    "MatrixLDA",
    "matrix_lda",
]

logger = logging.getLogger(__name__)

POOL_TOL = 1e-7
POOL_MAX_ITER = 10000


class MatrixLDA(BaseMatrixDiscriminant):
    """Linear discriminant analysis with a matrix-variate normal or t model

    This does not sphere or otherwise normalize the data. The groups are
    presumed to share their covariance matrices, and class probabilities
    are computed from the matrix-variate density of each group.

    Parameters
    ----------
    prior : array, shape=[n_classes], optional
        Prior class probabilities, non-negative and summing to one. Default
        is the class proportions of the training data.

    method : {"normal", "t"}, default "normal"

    nu : float, default 10
        Degrees of freedom of the t model. 0, None or infinity select the
        normal model.

    tol : float, default 1e-4
        Cells whose within-group standard deviation is below this value
        raise :class:`~mixmatrix.exceptions.DegenerateVariableError`.

    row_mean : bool, default False
        Constrain the group means to be constant within each row.

    col_mean : bool, default False
        Constrain the group means to be constant within each column.

    Attributes
    ----------
    classes_ : array, shape=[n_classes]

    prior_ : array, shape=[n_classes]

    counts_ : array, shape=[n_classes]
        Training observations per class.

    means_ : array, shape=[n_classes, p, q]

    U_ : array, shape=[p, p]
        Shared row covariance, ``U_[0, 0] == 1``.

    V_ : array, shape=[q, q]
        Shared column covariance, ``V_[0, 0] == 1``.

    scaling_ : float
        Shared scale; the covariance of :math:`vec(X)` in every group is
        ``scaling_ * kron(V_, U_)``.

    nu_ : float or None

    method_ : Method

    n_obs_ : int
    """

    _kind = "lda"

    def __init__(self, prior=None, method="normal", nu=10, tol=1.0e-4,
                 row_mean=False, col_mean=False):
        self.prior = prior
        self.method = method
        self.nu = nu
        self.tol = tol
        self.row_mean = row_mean
        self.col_mean = col_mean

    def _fit_groups(self, X, codes):
        if self.method_ is Method.NORMAL:
            fit = fit_matrix_normal(X - self.means_[codes])
            self.U_, self.V_, self.scaling_ = fit.U, fit.V, fit.scale
            return

        n_groups = len(self.classes_)

        def step(state):
            U = np.zeros_like(state["U"])
            V = np.zeros_like(state["V"])
            scale = 0.0
            loglik = 0.0
            for k in range(n_groups):
                fit = fit_matrix_t(X[codes == k], nu=self.nu_,
                                   row_mean=self.row_mean,
                                   col_mean=self.col_mean,
                                   U=state["scale"] * state["U"],
                                   V=state["V"])
                if not fit.converged:
                    warnings.warn("ML fit failed for group {}".format(
                        self.classes_[k]), ConvergenceWarning)
                self.means_[k] = fit.mean
                U += self.prior_[k] * fit.U
                V += self.prior_[k] * fit.V
                scale += self.prior_[k] * fit.scale
                loglik += fit.loglik
            return dict(U=U, V=V, scale=np.array(scale)), loglik

        state = dict(U=np.identity(X.shape[1]), V=np.identity(X.shape[2]),
                     scale=np.array(1.0))
        state, _, n_iter, status = run_iterations(
            step, state, squared_change(POOL_TOL, ("U", "V", "scale")),
            POOL_MAX_ITER, name="MatrixLDA pooling")
        if status is IterationStatus.MAX_ITER_REACHED:
            warnings.warn("pooled covariance did not converge in {} "
                          "iterations".format(n_iter), ConvergenceWarning)
        self.U_, self.V_ = state["U"], state["V"]
        self.scaling_ = float(state["scale"])

    def _group_params(self, k):
        return self.means_[k], self.U_, self.V_, self.scaling_, self.nu_


def matrix_lda(x, grouping, prior=None, method="normal", nu=10, tol=1.0e-4,
               row_mean=False, col_mean=False, classes=None):
    """Fit a :class:`MatrixLDA` model

    Parameters
    ----------
    x : array, shape=[n, p, q]

    grouping : array-like, shape=[n]

    classes : array-like, optional
        Declared groups, see :meth:`MatrixLDA.fit`.

    Other parameters are those of :class:`MatrixLDA`.

    Returns
    -------
    MatrixLDA
        The fitted model.
    """
    model = MatrixLDA(prior=prior, method=method, nu=nu, tol=tol,
                      row_mean=row_mean, col_mean=col_mean)
    return model.fit(x, grouping, classes=classes)

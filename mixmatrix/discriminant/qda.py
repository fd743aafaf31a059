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
"""Quadratic discriminant analysis for matrix-variate observations"""

# Authors: MixMatrix developers

import logging
import warnings

import numpy as np

from ..exceptions import ConvergenceWarning
from ..matnormal.mle import fit_matrix_normal, fit_matrix_t
from ..matnormal.utils import Method
from .base import BaseMatrixDiscriminant

__all__ = [
    "MatrixQDA",
    "matrix_qda",
]

logger = logging.getLogger(__name__)


class MatrixQDA(BaseMatrixDiscriminant):
    """Quadratic discriminant analysis with a matrix-variate normal or t model

    Every group gets its own mean, row covariance, column covariance and
    scale (and, with the t model, degrees of freedom).

    Parameters
    ----------
    prior : array, shape=[n_classes], optional
        Prior class probabilities; default is the class proportions.

    method : {"normal", "t"}, default "normal"

    nu : float or array, default 10
        Degrees of freedom of the t model, one per group. Shorter arrays are
        recycled to the number of groups.

    tol : float, default 1e-4
        Threshold on the within-group standard deviation of every cell.

    row_mean, col_mean : bool, default False
        Mean constraints, as in :class:`~mixmatrix.discriminant.MatrixLDA`.

    fixed : bool, default True
        Hold nu fixed; otherwise it is estimated for every group.

    Attributes
    ----------
    U_ : array, shape=[n_classes, p, p]

    V_ : array, shape=[n_classes, q, q]

    scaling_ : array, shape=[n_classes]

    nu_ : array, shape=[n_classes] or None

    See :class:`~mixmatrix.discriminant.MatrixLDA` for the others.
    """

    _kind = "qda"

    def __init__(self, prior=None, method="normal", nu=10, tol=1.0e-4,
                 row_mean=False, col_mean=False, fixed=True):
        self.prior = prior
        self.method = method
        self.nu = nu
        self.tol = tol
        self.row_mean = row_mean
        self.col_mean = col_mean
        self.fixed = fixed

    def _nu_fixed(self):
        return self.fixed or self.method_ is Method.NORMAL

    def _fit_groups(self, X, codes):
        n_groups = len(self.classes_)
        _, p, q = X.shape
        self.U_ = np.empty((n_groups, p, p))
        self.V_ = np.empty((n_groups, q, q))
        self.scaling_ = np.empty(n_groups)
        if self.method_ is Method.T:
            self.nu_ = np.resize(np.asarray(self.nu_, dtype=np.float64),
                                 n_groups)
        for k in range(n_groups):
            if self.method_ is Method.T:
                fit = fit_matrix_t(X[codes == k], nu=self.nu_[k],
                                   row_mean=self.row_mean,
                                   col_mean=self.col_mean, fixed=self.fixed)
                self.nu_[k] = fit.nu
            else:
                fit = fit_matrix_normal(X[codes == k],
                                        row_mean=self.row_mean,
                                        col_mean=self.col_mean)
            if not fit.converged:
                warnings.warn("ML fit failed for group {}".format(
                    self.classes_[k]), ConvergenceWarning)
            logger.debug("group %s: %d iterations, LL=%f", self.classes_[k],
                         fit.n_iter, fit.loglik)
            self.means_[k] = fit.mean
            self.U_[k] = fit.U
            self.V_[k] = fit.V
            self.scaling_[k] = fit.scale

    def _group_params(self, k):
        nu = None if self.nu_ is None else self.nu_[k]
        return (self.means_[k], self.U_[k], self.V_[k], self.scaling_[k],
                nu)


def matrix_qda(x, grouping, prior=None, method="normal", nu=10, tol=1.0e-4,
               row_mean=False, col_mean=False, fixed=True, classes=None):
    """Fit a :class:`MatrixQDA` model

    Parameters are those of :class:`MatrixQDA` and
    :func:`~mixmatrix.discriminant.matrix_lda`.

    Returns
    -------
    MatrixQDA
        The fitted model.
    """
    model = MatrixQDA(prior=prior, method=method, nu=nu, tol=tol,
                      row_mean=row_mean, col_mean=col_mean, fixed=fixed)
    return model.fit(x, grouping, classes=classes)

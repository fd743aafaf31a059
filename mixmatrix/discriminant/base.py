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
"""Shared machinery of the matrix-variate discriminant classifiers"""

import logging
import warnings

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.utils import column_or_1d
from sklearn.utils.validation import check_is_fitted

from ..exceptions import DegenerateVariableError, GroupDroppedWarning, \
    ValidationError
from ..loglik import LogLik, count_parameters
from ..matnormal.likelihoods import log_density
from ..matnormal.utils import resolve_method, weighted_mean
from ..utils.utils import check_matrix_stack, check_prior, \
    normalize_log_scores

__all__ = [
    "BaseMatrixDiscriminant",
]

logger = logging.getLogger(__name__)


def _check_within_group_variance(swept, tol):
    """Raise if a cell of the group-centred stack is (nearly) constant"""
    n, p, q = swept.shape
    if n > 1:
        sd = np.std(swept, axis=0, ddof=1)
    else:
        sd = np.zeros((p, q))
    positions = np.argwhere(sd < tol)
    if positions.size:
        raise DegenerateVariableError(positions, (p, q))


class BaseMatrixDiscriminant(BaseEstimator, ClassifierMixin):
    """Base class for matrix-variate discriminant analysis

    Subclasses implement ``_fit_groups`` to set ``means_``, ``U_``, ``V_``,
    ``scaling_`` and ``nu_``, and ``_group_params`` to return the parameters
    used to score group k.
    """

    _kind = None

    def _nu_fixed(self):
        return True

    def _prepare_groups(self, X, y, classes):
        X = check_matrix_stack(X)
        y = column_or_1d(y, warn=True)
        n = X.shape[0]
        if y.shape[0] != n:
            raise ValidationError(
                "number of observations ({}) and length of grouping ({}) are "
                "different".format(n, y.shape[0]))
        if classes is None:
            classes = np.unique(y)
        else:
            classes = np.asarray(classes)
            unknown = np.setdiff1d(np.unique(y), classes)
            if unknown.size:
                raise ValidationError(
                    "labels {} are not among the declared classes".format(
                        list(unknown)))
        counts = np.array([np.sum(y == label) for label in classes])

        prior = self.prior
        if prior is not None:
            prior = check_prior(prior, len(classes))

        if np.any(counts == 0):
            empty = classes[counts == 0]
            if len(empty) == 1:
                msg = "group {} is empty".format(empty[0])
            else:
                msg = "groups {} are empty".format(
                    " ".join(str(e) for e in empty))
            warnings.warn(msg, GroupDroppedWarning)
            keep = counts > 0
            classes = classes[keep]
            counts = counts[keep]
            if prior is not None:
                prior = prior[keep]
                if np.sum(prior) <= 0:
                    raise ValidationError(
                        "invalid 'prior': no mass on the non-empty groups")
                prior = prior / np.sum(prior)
        if prior is None:
            prior = counts / n

        codes = np.array([np.flatnonzero(classes == label)[0]
                          for label in y])
        return X, codes, classes, counts, prior

    def fit(self, X, y, classes=None):
        """Fit the group means and covariances

        Parameters
        ----------
        X : array, shape=[n, p, q]
            Training observations.

        y : array-like, shape=[n]
            Group label of every observation.

        classes : array-like, optional
            Declared groups, in order. Declared groups without observations
            are dropped with a :class:`GroupDroppedWarning`; defaults to the
            sorted distinct labels.

        Returns
        -------
        self
        """
        X, codes, classes, counts, prior = self._prepare_groups(X, y,
                                                                classes)
        self.method_, self.nu_ = resolve_method(self.method, self.nu)
        n, p, q = X.shape
        n_groups = len(classes)
        logger.info("Fitting %s (%s) with %d groups to %d observations of "
                    "size %dx%d", type(self).__name__, self.method_.value,
                    n_groups, n, p, q)

        means = np.empty((n_groups, p, q))
        for k in range(n_groups):
            means[k] = weighted_mean(X, (codes == k).astype(np.float64),
                                     self.row_mean, self.col_mean)
        _check_within_group_variance(X - means[codes], self.tol)

        self.classes_ = classes
        self.counts_ = counts
        self.prior_ = prior
        self.n_obs_ = n
        self.means_ = means
        self._fit_groups(X, codes)
        self._fit_X = X
        self._fit_codes = codes
        return self

    def _fit_groups(self, X, codes):
        raise NotImplementedError

    def _group_params(self, k):
        raise NotImplementedError

    def _check_X(self, X):
        if X is None:
            return self._fit_X
        X = check_matrix_stack(X, "newdata")
        _, p, q = self.means_.shape
        if X.shape[1] != p:
            raise ValidationError("wrong row dimension of matrices: "
                                  "expected {}, got {}".format(p, X.shape[1]))
        if X.shape[2] != q:
            raise ValidationError("wrong column dimension of matrices: "
                                  "expected {}, got {}".format(q, X.shape[2]))
        return X

    def _group_log_density(self, X):
        scores = np.empty((X.shape[0], len(self.classes_)))
        for k in range(len(self.classes_)):
            mean, U, V, scale, nu = self._group_params(k)
            scores[:, k] = log_density(X, mean, U, V, scale, self.method_,
                                       nu)
        return scores

    def classify(self, X=None, prior=None):
        """Posterior class probabilities and MAP labels

        Parameters
        ----------
        X : array, shape=[n, p, q] or [p, q], optional
            Observations to classify; the training data by default.

        prior : array, shape=[n_classes], optional
            Prior overriding the fitted ``prior_``.

        Returns
        -------
        labels : array, shape=[n]
            Most probable class, the first one in ``classes_`` on ties.

        posterior : array, shape=[n, n_classes]
            Rows sum to one.
        """
        check_is_fitted(self, "means_")
        X = self._check_X(X)
        if prior is None:
            prior = self.prior_
        else:
            prior = check_prior(prior, len(self.classes_))
        with np.errstate(divide="ignore"):
            scores = self._group_log_density(X) + np.log(prior)
        posterior, _ = normalize_log_scores(scores)
        labels = self.classes_[np.argmax(posterior, axis=1)]
        return labels, posterior

    def predict_proba(self, X=None):
        """Posterior class probabilities, shape=[n, n_classes]"""
        return self.classify(X)[1]

    def predict(self, X=None):
        """MAP class of every observation"""
        return self.classify(X)[0]

    def log_likelihood(self):
        """Log-likelihood of the training data at the fitted parameters

        Every training observation is scored under its own group's
        parameters.

        Returns
        -------
        LogLik
        """
        check_is_fitted(self, "means_")
        value = 0.0
        for k in range(len(self.classes_)):
            mean, U, V, scale, nu = self._group_params(k)
            value += np.sum(log_density(self._fit_X[self._fit_codes == k],
                                        mean, U, V, scale, self.method_, nu))
        _, p, q = self.means_.shape
        df = count_parameters(self._kind, len(self.classes_), p, q,
                              self.row_mean, self.col_mean,
                              nu_fixed=self._nu_fixed())
        return LogLik(value, df, self.n_obs_)

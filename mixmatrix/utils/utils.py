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
import scipy.linalg
from sklearn.utils import check_array

from ..exceptions import SingularMatrixError, ValidationError

"""
Linear algebra and input checking shared by the fitters and the models
"""

logger = logging.getLogger(__name__)


def chol_inv_logdet(a):
    """Inverse and log-determinant of a symmetric positive-definite matrix

    Parameters
    ----------

    a : 2D array
        Symmetric positive-definite matrix.


    Returns
    -------

    inva : 2D array
        Inverse of a, symmetrized.

    logdet : float
        :math:`\\log|a|`


    Raises
    -------

    SingularMatrixError
        If the Cholesky factorization fails.
    """
    try:
        chol, lower = scipy.linalg.cho_factor(a, check_finite=False)
    except np.linalg.LinAlgError as err:
        logging.exception("Error from scipy.linalg.cho_factor")
        raise SingularMatrixError(
            "matrix is not positive definite: {}".format(err)) from err
    diag = np.diag(chol)
    if np.any(diag <= 0) or not np.all(np.isfinite(diag)):
        raise SingularMatrixError("matrix is not positive definite")
    inva = scipy.linalg.cho_solve((chol, lower), np.identity(a.shape[0]),
                                  check_finite=False)
    logdet = 2 * np.sum(np.log(diag))
    return (inva + inva.T) / 2, logdet


def condition_number(a):
    """Condition number of a symmetric positive definite matrix, used for
    debug diagnostics.
    """
    s = np.linalg.svd(a, compute_uv=False)
    return np.max(s) / np.min(s)


def sumexp_stable(data):
    """Compute the sum of exponents for a list of samples

    Parameters
    ----------

    data : array, shape=[features, samples]
        A data array containing samples.


    Returns
    -------

    result_sum : array, shape=[samples,]
        The sum of exponents for each sample divided by the exponent
        of the maximum feature value in the sample.

    max_value : array, shape=[samples,]
        The maximum feature value for each sample.

    result_exp : array, shape=[features, samples]
        The exponent of each element in each sample divided by the exponent
        of the maximum feature value in the sample.

    ..note::
    This function is more stable than computing the sum(exp(v)).
    It useful for computing the softmax_i(v)=exp(v_i)/sum(exp(v)) function.
    """
    max_value = data.max(axis=0)
    result_exp = np.exp(data - max_value)
    result_sum = np.sum(result_exp, axis=0)
    return result_sum, max_value, result_exp


def normalize_log_scores(scores):
    """Turn per-row log scores into probabilities and log normalizers

    Parameters
    ----------

    scores : array, shape=[samples, classes]
        Unnormalized log probabilities.


    Returns
    -------

    probabilities : array, shape=[samples, classes]
        Rows sum to one.

    log_norm : array, shape=[samples,]
        :math:`\\log\\sum_k \\exp(scores_{ik})`
    """
    result_sum, max_value, result_exp = sumexp_stable(scores.T)
    probabilities = (result_exp / result_sum).T
    log_norm = max_value + np.log(result_sum)
    return probabilities, log_norm


def check_matrix_stack(x, name="x"):
    """Validate a stack of matrix observations

    Parameters
    ----------

    x : array-like, shape=[n, p, q] or [p, q]
        Matrix observations, stacked along the first axis. A single matrix
        is promoted to a stack of one.

    name : str
        Name used in error messages.


    Returns
    -------

    x : array, shape=[n, p, q]
        Float copy of the input.


    Raises
    -------

    ValidationError
        If x is not 2 or 3 dimensional or has non-finite values.
    """
    arr = np.asarray(x)
    if arr.ndim not in (2, 3):
        raise ValidationError(
            "'{}' is not an array of matrices (got {} dimensions)".format(
                name, arr.ndim))
    try:
        arr = check_array(arr, dtype=np.float64, ensure_2d=False,
                          allow_nd=True, copy=True)
    except ValueError as err:
        raise ValidationError(
            "invalid values in '{}': {}".format(name, err)) from err
    if arr.ndim == 2:
        arr = arr[np.newaxis, :, :]
    return arr


def check_prior(prior, n_groups, name="prior"):
    """Validate a vector of prior probabilities

    Entries must be non-negative and sum to one after rounding to five
    decimals.

    Raises
    -------

    ValidationError
        If the prior is invalid or of the wrong length.
    """
    prior = np.asarray(prior, dtype=np.float64).ravel()
    if np.any(~np.isfinite(prior)) or np.any(prior < 0) \
            or round(float(np.sum(prior)), 5) != 1:
        raise ValidationError("invalid '{}'".format(name))
    if prior.shape[0] != n_groups:
        raise ValidationError(
            "'{}' is of incorrect length: expected {}, got {}".format(
                name, n_groups, prior.shape[0]))
    return prior


def check_weights(weights, n):
    """Validate observation weights, defaulting to ones"""
    if weights is None:
        return np.ones(n)
    weights = np.asarray(weights, dtype=np.float64).ravel()
    if weights.shape[0] != n:
        raise ValidationError(
            "length of weights ({}) differs from the number of "
            "observations ({})".format(weights.shape[0], n))
    if np.any(~np.isfinite(weights)) or np.any(weights < 0):
        raise ValidationError("weights must be finite and non-negative")
    if np.sum(weights) <= 0:
        raise ValidationError("weights must have a positive sum")
    return weights


def check_cov(cov, dim, name):
    """Validate a square starting covariance, defaulting to identity"""
    if cov is None:
        return np.identity(dim)
    cov = np.asarray(cov, dtype=np.float64)
    if cov.shape != (dim, dim):
        raise ValidationError(
            "'{}' must be {}x{}, got shape {}".format(name, dim, dim,
                                                       cov.shape))
    if not np.all(np.isfinite(cov)):
        raise ValidationError("non-finite values in '{}'".format(name))
    return (cov + cov.T) / 2

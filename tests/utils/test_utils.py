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

import numpy as np
import pytest
from numpy.testing import assert_allclose

from mixmatrix.exceptions import SingularMatrixError, ValidationError
from mixmatrix.utils.utils import (check_cov, check_matrix_stack,
                                   check_prior, check_weights,
                                   chol_inv_logdet, normalize_log_scores,
                                   sumexp_stable)


def test_chol_inv_logdet(seeded_rng):
    A = np.random.randn(4, 4)
    a = A.dot(A.T) + 4 * np.eye(4)
    inva, logdet = chol_inv_logdet(a)
    assert_allclose(inva, np.linalg.inv(a), rtol=1e-8)
    assert_allclose(logdet, np.linalg.slogdet(a)[1], rtol=1e-10)
    assert_allclose(inva, inva.T)


def test_chol_inv_logdet_singular():
    with pytest.raises(SingularMatrixError):
        chol_inv_logdet(np.array([[1.0, 1.0], [1.0, 1.0]]))
    # still a LinAlgError for callers catching numpy's errors
    with pytest.raises(np.linalg.LinAlgError):
        chol_inv_logdet(-np.eye(2))


def test_sumexp():
    data = np.array([[1, 1], [0, 1]])
    sums, maxs, exps = sumexp_stable(data)
    assert sums.size == data.shape[1], (
        "Invalid sum(exp(v)) computation (wrong # samples in sums)")
    assert exps.shape[0] == data.shape[0], (
        "Invalid exp(v) computation (wrong # features)")
    assert exps.shape[1] == data.shape[1], (
        "Invalid exp(v) computation (wrong # samples)")
    assert maxs.size == data.shape[1], (
        "Invalid max computation (wrong # samples in maxs)")


def test_normalize_log_scores():
    scores = np.array([[1000.0, 1000.0], [-1000.0, -1001.0], [0.0, 5.0]])
    probs, log_norm = normalize_log_scores(scores)
    assert np.all(np.isfinite(probs))
    assert_allclose(probs.sum(axis=1), 1, atol=1e-12)
    assert_allclose(probs[0], [0.5, 0.5])
    assert_allclose(log_norm[0], 1000 + np.log(2))
    assert_allclose(probs[1, 0], 1 / (1 + np.exp(-1)))


def test_check_matrix_stack():
    x = np.arange(6.0).reshape(2, 3)
    stack = check_matrix_stack(x)
    assert stack.shape == (1, 2, 3)
    stack[0, 0, 0] = 100
    assert x[0, 0] == 0, "input was modified"

    with pytest.raises(ValidationError):
        check_matrix_stack(np.ones(3))
    with pytest.raises(ValidationError):
        check_matrix_stack(np.ones((2, 2, 2, 2)))
    bad = np.ones((3, 2, 2))
    bad[1, 0, 1] = np.nan
    with pytest.raises(ValidationError):
        check_matrix_stack(bad)


def test_check_prior():
    assert_allclose(check_prior([0.2, 0.8], 2), [0.2, 0.8])
    # sums are compared after rounding to five decimals
    check_prior([0.5, 0.500001], 2)
    with pytest.raises(ValidationError, match="invalid"):
        check_prior([-0.5, 1.5], 2)
    with pytest.raises(ValidationError, match="invalid"):
        check_prior([0.5, 0.6], 2)
    with pytest.raises(ValidationError, match="incorrect length"):
        check_prior([0.5, 0.5], 3)


def test_check_weights():
    assert_allclose(check_weights(None, 3), np.ones(3))
    with pytest.raises(ValidationError):
        check_weights([1, 2], 3)
    with pytest.raises(ValidationError):
        check_weights([1, -1, 1], 3)
    with pytest.raises(ValidationError):
        check_weights([0, 0, 0], 3)


def test_check_cov():
    assert_allclose(check_cov(None, 3, "U"), np.eye(3))
    with pytest.raises(ValidationError):
        check_cov(np.eye(2), 3, "U")
    cov = check_cov(np.array([[2.0, 1.0], [0.0, 2.0]]), 2, "V")
    assert_allclose(cov, cov.T)

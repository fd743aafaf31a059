import numpy as np
import pytest
from numpy.testing import assert_allclose

from mixmatrix.discriminant import MatrixQDA, matrix_qda
from mixmatrix.exceptions import DegenerateVariableError, ValidationError
from mixmatrix.loglik import count_parameters
from mixmatrix.matnormal import fit_matrix_normal, rmatrixnorm, rmatrixt
from mixmatrix.matnormal.utils import Method

p = 3
q = 4


def _different_spread(n):
    A = rmatrixnorm(n, np.zeros((p, q)))
    B = rmatrixnorm(n, np.zeros((p, q)), U=9 * np.eye(p))
    return np.concatenate([A, B]), np.repeat([0, 1], n)


def test_separates_covariances(seeded_rng):
    x, y = _different_spread(50)
    model = matrix_qda(x, y)
    assert model.U_.shape == (2, p, p)
    assert model.V_.shape == (2, q, q)
    assert model.scaling_.shape == (2,)
    assert_allclose(model.U_[:, 0, 0], 1)
    assert_allclose(model.V_[:, 0, 0], 1)
    assert model.scaling_[1] > model.scaling_[0]
    assert np.mean(model.predict(x) == y) >= 0.9

    x_test, y_test = _different_spread(100)
    labels, posterior = model.classify(x_test)
    assert np.mean(labels == y_test) >= 0.9
    assert_allclose(posterior.sum(axis=1), 1, atol=1e-8)


def test_nu_recycled(seeded_rng):
    groups = [rmatrixt(20, 5, k * 4 * np.ones((p, q))) for k in range(3)]
    x = np.concatenate(groups)
    y = np.repeat([0, 1, 2], 20)
    model = MatrixQDA(method="t", nu=[5]).fit(x, y)
    assert model.method_ is Method.T
    assert_allclose(model.nu_, [5, 5, 5])
    assert np.mean(model.predict(x) == y) >= 0.95
    assert model.log_likelihood().df == count_parameters("qda", 3, p, q)


def test_estimated_nu(seeded_rng):
    x = np.concatenate([rmatrixt(60, 3, np.zeros((p, q))),
                        rmatrixt(60, 3, 3 * np.ones((p, q)))])
    y = np.repeat([0, 1], 60)
    model = MatrixQDA(method="t", nu=20, fixed=False).fit(x, y)
    assert model.nu_.shape == (2,)
    assert np.all(model.nu_ < 20)
    loglik = model.log_likelihood()
    assert loglik.df == 2 * (6 + 10 + 1 + 12 - 1)


def test_log_likelihood_matches_group_fits(seeded_rng):
    x, y = _different_spread(30)
    model = MatrixQDA().fit(x, y)
    expected = sum(fit_matrix_normal(x[y == k]).loglik for k in range(2))
    loglik = model.log_likelihood()
    assert_allclose(loglik.value, expected)
    assert loglik.df == 2 * (6 + 10 + 12 - 1)
    assert loglik.nobs == 60


def test_degenerate_and_invalid(seeded_rng):
    x, y = _different_spread(15)
    with pytest.raises(ValidationError, match="invalid"):
        MatrixQDA(prior=[0.7, 0.7]).fit(x, y)
    x[:, 2, 3] = 1.0
    with pytest.raises(DegenerateVariableError) as excinfo:
        MatrixQDA().fit(x, y)
    assert excinfo.value.indices == [2 * q + 3]

import numpy as np
import pytest
from numpy.testing import assert_allclose
from sklearn.exceptions import NotFittedError

from mixmatrix.discriminant import MatrixLDA, matrix_lda
from mixmatrix.exceptions import DegenerateVariableError, \
    GroupDroppedWarning, ValidationError
from mixmatrix.loglik import count_parameters
from mixmatrix.matnormal import dmatrixnorm, rmatrixnorm
from mixmatrix.matnormal.utils import Method

p = 3
q = 4


def _two_groups(n, shift):
    A = rmatrixnorm(n, np.zeros((p, q)))
    B = rmatrixnorm(n, shift * np.ones((p, q)))
    return np.concatenate([A, B]), np.repeat([0, 1], n)


def test_round_trip(seeded_rng):
    x, y = _two_groups(30, 1)
    model = matrix_lda(x, y, prior=[0.5, 0.5])
    assert_allclose(model.prior_, [0.5, 0.5])
    assert_allclose(model.counts_, [30, 30])
    assert model.n_obs_ == 60
    assert model.means_.shape == (2, p, q)
    assert model.method_ is Method.NORMAL
    assert model.nu_ is None

    x_test, y_test = _two_groups(200, 1)
    accuracy = np.mean(model.predict(x_test) == y_test)
    assert accuracy > 0.9, "Held-out accuracy is too low"


def test_covariance_recovery(seeded_rng):
    x, y = _two_groups(500, 1)
    model = MatrixLDA().fit(x, y)
    cov = model.scaling_ * np.kron(model.V_, model.U_)
    error = np.linalg.norm(cov - np.eye(p * q)) / np.linalg.norm(
        np.eye(p * q))
    assert error < 0.25
    assert_allclose(model.U_[0, 0], 1)
    assert_allclose(model.V_[0, 0], 1)


def test_well_separated(seeded_rng):
    x, y = _two_groups(50, 3)
    model = MatrixLDA(prior=[0.5, 0.5]).fit(x, y)
    labels, posterior = model.classify()
    assert np.mean(labels == y) >= 0.95
    assert_allclose(posterior.sum(axis=1), 1, atol=1e-8)
    assert_allclose(model.predict_proba(), posterior)
    assert model.score(x, y) >= 0.95


def test_t_method(seeded_rng):
    x, y = _two_groups(40, 3)
    model = MatrixLDA(method="t", nu=5).fit(x, y)
    assert model.method_ is Method.T
    assert model.nu_ == 5
    assert_allclose(model.U_[0, 0], 1)
    assert_allclose(model.V_[0, 0], 1)
    assert np.mean(model.predict(x) == y) >= 0.95
    assert_allclose(model.predict_proba(x).sum(axis=1), 1, atol=1e-8)

    assert MatrixLDA(method="t", nu=0).fit(x, y).method_ is Method.NORMAL


def test_string_labels(seeded_rng):
    x, y = _two_groups(20, 3)
    labels = np.where(y == 0, "control", "case")
    model = MatrixLDA().fit(x, labels)
    assert list(model.classes_) == ["case", "control"]
    assert np.mean(model.predict(x) == labels) >= 0.95


def test_invalid_prior_before_fitting(seeded_rng, monkeypatch):
    def fail(*args, **kwargs):
        raise AssertionError("fitting started")

    monkeypatch.setattr("mixmatrix.discriminant.lda.fit_matrix_normal", fail)
    x, y = _two_groups(10, 1)
    with pytest.raises(ValidationError, match="invalid"):
        MatrixLDA(prior=[-0.1, 1.1]).fit(x, y)
    with pytest.raises(ValidationError, match="invalid"):
        MatrixLDA(prior=[0.5, 0.6]).fit(x, y)
    with pytest.raises(ValidationError, match="incorrect length"):
        MatrixLDA(prior=[0.2, 0.3, 0.5]).fit(x, y)


def test_invalid_data(seeded_rng):
    x, y = _two_groups(10, 1)
    with pytest.raises(ValidationError):
        MatrixLDA().fit(x, y[:-1])
    bad = x.copy()
    bad[3, 1, 1] = np.nan
    with pytest.raises(ValidationError):
        MatrixLDA().fit(bad, y)


def test_degenerate_cell(seeded_rng):
    x, y = _two_groups(15, 1)
    x[:, 0, 1] = 7.0
    with pytest.raises(DegenerateVariableError,
                       match="variable 1 appears to be constant"):
        MatrixLDA().fit(x, y)
    # constant within groups, but different between them
    x[y == 1, 0, 1] = 9.0
    with pytest.raises(DegenerateVariableError) as excinfo:
        MatrixLDA().fit(x, y)
    assert excinfo.value.indices == [1]
    assert excinfo.value.positions == [(0, 1)]


def test_empty_group(seeded_rng):
    x, y = _two_groups(20, 3)
    with pytest.warns(GroupDroppedWarning, match="group 2 is empty"):
        model = MatrixLDA(prior=[0.25, 0.25, 0.5]).fit(x, y,
                                                       classes=[0, 1, 2])
    assert list(model.classes_) == [0, 1]
    assert_allclose(model.prior_, [0.5, 0.5])
    assert model.predict_proba(x).shape == (40, 2)


def test_prediction_input(seeded_rng):
    x, y = _two_groups(20, 3)
    model = MatrixLDA().fit(x, y)
    assert model.predict(x[0]).shape == (1,)
    with pytest.raises(ValidationError, match="column dimension"):
        model.predict(np.zeros((2, p, q + 1)))
    with pytest.raises(ValidationError, match="row dimension"):
        model.predict(np.zeros((2, p + 1, q)))

    labels, _ = model.classify(x, prior=[1, 0])
    assert np.all(labels == 0)
    with pytest.raises(ValidationError):
        model.classify(x, prior=[0.5, 0.2])


def test_ties_go_to_first_class(seeded_rng):
    x, y = _two_groups(20, 3)
    model = MatrixLDA(prior=[0.5, 0.5]).fit(x, y)
    model.means_[1] = model.means_[0]
    labels, posterior = model.classify(x[:5])
    assert_allclose(posterior, 0.5)
    assert np.all(labels == 0)


def test_not_fitted():
    with pytest.raises(NotFittedError):
        MatrixLDA().predict(np.zeros((1, p, q)))


def test_log_likelihood(seeded_rng):
    x, y = _two_groups(25, 2)
    model = MatrixLDA().fit(x, y)
    loglik = model.log_likelihood()
    expected = sum(
        np.sum(dmatrixnorm(x[y == k], model.means_[k],
                           model.scaling_ * model.U_, model.V_))
        for k in range(2))
    assert_allclose(loglik.value, expected)
    assert loglik.df == count_parameters("lda", 2, p, q)
    assert loglik.df == 6 + 10 + 2 * 12 - 1
    assert loglik.nobs == 50

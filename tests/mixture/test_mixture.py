import numpy as np
import pytest
from numpy.testing import assert_allclose

from mixmatrix.exceptions import ConvergenceWarning, FitFailedError, \
    ValidationError
from mixmatrix.matnormal import rmatrixnorm, rmatrixt
from mixmatrix.matnormal.utils import Method
from mixmatrix.mixture import MatrixMixture, MixtureInit, \
    init_matrix_mixture, matrix_mixture
from mixmatrix.utils.iteration import IterationStatus

p = 3
q = 4


def _two_components(n, shift=3):
    A = rmatrixnorm(n, np.zeros((p, q)))
    B = rmatrixnorm(n, shift * np.ones((p, q)))
    return np.concatenate([A, B]), np.repeat([0, 1], n)


def _true_init():
    return MixtureInit(centers=np.stack([np.zeros((p, q)),
                                         3 * np.ones((p, q))]),
                       U=np.tile(np.eye(p), (2, 1, 1)),
                       V=np.tile(np.eye(q), (2, 1, 1)),
                       prior=np.array([0.5, 0.5]))


def test_converges_from_truth(seeded_rng):
    x, y = _two_components(100)
    model = matrix_mixture(x, init=_true_init())

    assert model.status_ is IterationStatus.CONVERGED
    assert model.converged_
    assert model.n_iter_ < 1000
    trace = model.loglik_trace_
    assert len(trace) == model.n_iter_
    assert np.all(np.diff(trace) >= -1e-8 * np.abs(trace[1:])), \
        "EM decreased the log-likelihood"
    assert_allclose(model.loglik_, trace[-1])

    assert_allclose(model.posterior_.sum(axis=1), 1, atol=1e-8)
    assert_allclose(model.weights_.sum(), 1)
    assert np.mean(model.labels_ == y) >= 0.95
    assert_allclose(model.U_[:, 0, 0], 1)
    assert_allclose(model.V_[:, 0, 0], 1)


def test_kmeans_start(seeded_rng):
    x, y = _two_components(60)
    model = MatrixMixture(n_components=2, random_state=0).fit(x)
    agreement = np.mean(model.labels_ == y)
    assert max(agreement, 1 - agreement) >= 0.95
    assert_allclose(model.predict_proba(x).sum(axis=1), 1, atol=1e-8)
    assert np.array_equal(model.predict(x), model.labels_)
    assert np.array_equal(model.fit_predict(x), model.labels_)


def test_t_mixture(seeded_rng):
    x = np.concatenate([rmatrixt(80, 5, np.zeros((p, q))),
                        rmatrixt(80, 5, 4 * np.ones((p, q)))])
    init = _true_init()
    init = MixtureInit(centers=4 / 3 * init.centers, U=init.U, V=init.V,
                       prior=init.prior)
    model = MatrixMixture(init=init, model="t", nu=5).fit(x)
    assert model.method_ is Method.T
    assert_allclose(model.nu_, [5, 5])
    assert model.status_ is IterationStatus.CONVERGED
    assert_allclose(model.posterior_.sum(axis=1), 1, atol=1e-8)
    trace = model.loglik_trace_
    assert np.all(np.diff(trace) >= -1e-8 * np.abs(trace[1:]))


def test_max_iter(seeded_rng):
    x, _ = _two_components(30)
    with pytest.warns(ConvergenceWarning):
        model = MatrixMixture(init=_true_init(), convergence="lik", tol=0,
                              max_iter=6).fit(x)
    assert model.status_ is IterationStatus.MAX_ITER_REACHED
    assert not model.converged_
    assert model.n_iter_ == 6


def test_failed_fit(seeded_rng):
    x, _ = _two_components(30)
    init = _true_init()
    singular = MixtureInit(centers=init.centers,
                           U=np.zeros((2, p, p)), V=init.V,
                           prior=init.prior)
    model = MatrixMixture(init=singular)
    with pytest.raises(FitFailedError):
        model.fit(x)
    assert model.status_ is IterationStatus.FAILED


def test_log_likelihood(seeded_rng):
    x, _ = _two_components(50)
    model = MatrixMixture(init=_true_init()).fit(x)
    loglik = model.log_likelihood()
    assert_allclose(loglik.value, model.loglik_)
    assert loglik.df == 2 * (6 + 10 - 1 + 12) + 1
    assert loglik.nobs == 100


def test_init_matrix_mixture(seeded_rng):
    x, _ = _two_components(20)
    init = init_matrix_mixture(x, K=3, random_state=0)
    assert init.centers.shape == (3, p, q)
    assert init.U.shape == (3, p, p)
    assert init.V.shape == (3, q, q)
    assert_allclose(init.prior, np.ones(3) / 3)
    assert_allclose(init.U[1], np.eye(p))

    init = init_matrix_mixture(x, prior=[0.3, 0.7], center_method="random",
                               random_state=0)
    assert init.n_components == 2
    assert_allclose(init.prior, [0.3, 0.7])
    flat = x.reshape(len(x), -1)
    for center in init.centers:
        assert np.any(np.all(np.isclose(flat, center.ravel()), axis=1)), \
            "Random centers must be observations"
    assert not np.allclose(init.centers[0], init.centers[1])

    given = np.full((p, q), 7.0)
    init = init_matrix_mixture(x, K=2, centers=given, V=2 * np.eye(q),
                               random_state=0)
    assert_allclose(init.centers[0], given)
    assert_allclose(init.V, np.tile(2 * np.eye(q), (2, 1, 1)))


def test_init_invalid(seeded_rng):
    x, _ = _two_components(10)
    with pytest.raises(ValidationError):
        init_matrix_mixture(x)
    with pytest.raises(ValidationError):
        init_matrix_mixture(x, K=2, center_method="hierarchical")
    with pytest.raises(ValidationError):
        init_matrix_mixture(x, K=2, prior=[0.5, 0.6])
    with pytest.raises(ValidationError):
        init_matrix_mixture(x, K=2, U=np.eye(q))
    with pytest.raises(ValidationError):
        MatrixMixture(n_components=2, convergence="fast").fit(x)

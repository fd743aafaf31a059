"""Example of classifying and clustering simulated matrix-variate data

Two groups of 3x4 matrices share a row covariance with AR(1) structure and
an identity column covariance, and differ only in their means. Linear and
quadratic discriminant analysis are trained on one sample and evaluated on
another; a two-component mixture is then fitted to the training sample
without its labels, and the information criteria of the three models are
compared.
"""
import logging

import numpy as np

from mixmatrix.discriminant import matrix_lda, matrix_qda
from mixmatrix.loglik import aic, bic
from mixmatrix.matnormal import rmatrixnorm, rmatrixt
from mixmatrix.mixture import matrix_mixture

logging.basicConfig(level=logging.INFO)


def ar1(dim, rho):
    idx = np.arange(dim)
    return rho ** np.abs(idx[:, np.newaxis] - idx[np.newaxis, :])


def generate_data(n, means, U, nu=None):
    groups = []
    for mean in means:
        if nu is None:
            groups.append(rmatrixnorm(n, mean, U))
        else:
            groups.append(rmatrixt(n, nu, mean, U))
    return np.concatenate(groups), np.repeat(np.arange(len(means)), n)


np.random.seed(1)
p, q = 3, 4
U = ar1(p, 0.7)
means = [np.zeros((p, q)), np.tile(np.linspace(0, 1.5, q), (p, 1))]

x_train, y_train = generate_data(50, means, U)
x_test, y_test = generate_data(500, means, U)

lda = matrix_lda(x_train, y_train)
qda = matrix_qda(x_train, y_train)
print("LDA test accuracy: {:.3f}".format(lda.score(x_test, y_test)))
print("QDA test accuracy: {:.3f}".format(qda.score(x_test, y_test)))
print("Estimated row covariance:\n{}".format(lda.scaling_ * lda.U_))

# Heavy tails: the t model is less disturbed by outlying matrices
x_heavy, y_heavy = generate_data(50, means, U, nu=3)
lda_t = matrix_lda(x_heavy, y_heavy, method="t", nu=3)
lda_normal = matrix_lda(x_heavy, y_heavy)
x_heavy_test, y_heavy_test = generate_data(500, means, U, nu=3)
print("Heavy-tailed data, normal LDA: {:.3f}, t LDA: {:.3f}".format(
    lda_normal.score(x_heavy_test, y_heavy_test),
    lda_t.score(x_heavy_test, y_heavy_test)))

mixture = matrix_mixture(x_train, K=2, random_state=0)
agreement = np.mean(mixture.labels_ == y_train)
print("Mixture agreement with the true labels: {:.3f}".format(
    max(agreement, 1 - agreement)))

for name, model in [("LDA", lda), ("QDA", qda), ("mixture", mixture)]:
    loglik = model.log_likelihood()
    print("{:8s} LL={:10.2f} df={:4.0f} AIC={:10.2f} BIC={:10.2f}".format(
        name, loglik.value, loglik.df, aic(loglik), bic(loglik)))

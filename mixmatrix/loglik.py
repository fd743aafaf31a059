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
"""Log-likelihoods and parameter counts for model comparison

The fitted models in :mod:`mixmatrix.discriminant` and
:mod:`mixmatrix.mixture` return a :class:`LogLik` from their
``log_likelihood`` method, which :func:`aic` and :func:`bic` turn into
information criteria.
"""

import logging
import re
from collections import namedtuple

import numpy as np

from .exceptions import ValidationError

__all__ = [
    "LogLik",
    "aic",
    "bic",
    "count_parameters",
    "var_parse_df",
]

logger = logging.getLogger(__name__)

LogLik = namedtuple("LogLik", ["value", "df", "nobs"])
LogLik.__doc__ = """Log-likelihood of a fitted model

value : float
    Sum of the training observations' log-densities.

df : float
    Number of free parameters.

nobs : int
    Number of training observations.
"""


def var_parse_df(structure, dim):
    """Free parameters of a dim x dim covariance with a given structure

    Structures are matched on case-insensitive prefixes: ``"ar"`` (AR(1))
    and ``"cs"`` (compound symmetry) have 2, ``"i"`` (identity) has 1,
    ``"cor"`` (correlation) has :math:`d(d-1)/2 + 1`; anything else is a
    full covariance with :math:`d(d+1)/2`.
    """
    if structure is None:
        structure = "full"
    structure = str(structure)
    if re.match("cor", structure, re.IGNORECASE):
        return (dim - 1) * dim / 2 + 1
    if re.match("i", structure, re.IGNORECASE):
        return 1
    if re.match("ar|cs", structure, re.IGNORECASE):
        return 2
    return (dim + 1) * dim / 2


def count_parameters(kind, n_groups, p, q, row_mean=False, col_mean=False,
                     row_variance="full", col_variance="full",
                     nu_fixed=True):
    """Degrees of freedom of a fitted discriminant or mixture model

    Parameters
    ----------
    kind : {"lda", "qda", "mixture"}

    n_groups : int
        Number of groups or mixture components.

    p, q : int
        Row and column dimension of the observations.

    row_mean, col_mean : bool
        Mean constraints; they divide the mean parameters by q and p.

    row_variance, col_variance : str
        Covariance structure tags, see :func:`var_parse_df`.

    nu_fixed : bool
        Whether the t degrees of freedom were held fixed (or absent).

    Returns
    -------
    df : float
    """
    meanpars = p * q
    if row_mean:
        meanpars = meanpars / q
    if col_mean:
        meanpars = meanpars / p
    upars = var_parse_df(row_variance, p)
    vpars = var_parse_df(col_variance, q)
    nupar = 0 if nu_fixed else 1
    if kind == "lda":
        return upars + vpars + nupar + n_groups * meanpars - 1
    if kind == "qda":
        return n_groups * (upars + vpars + nupar + meanpars - 1)
    if kind == "mixture":
        return (n_groups * (upars + vpars - 1 + nupar + meanpars)
                + (n_groups - 1))
    raise ValidationError(
        "kind must be 'lda', 'qda' or 'mixture', got {!r}".format(kind))


def aic(loglik, k=2):
    """Akaike information criterion, :math:`-2 LL + k \\cdot df`"""
    return -2 * loglik.value + k * loglik.df


def bic(loglik):
    """Bayesian information criterion, :math:`-2 LL + \\log(n) \\cdot df`"""
    return aic(loglik, k=np.log(loglik.nobs))

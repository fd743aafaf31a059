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
"""
Matrix-variate normal and t distributions
-----------------------------------------

.. math::
    \\DeclareMathOperator{\\Tr}{Tr}
    \\newcommand{\\trp}{^{T}} % transpose
    \\newcommand{\\inv}{^{-1}}
    \\newcommand{\\M}{\\mathbf{M}}
    \\newcommand{\\U}{\\mathbf{U}}
    \\newcommand{\\V}{\\mathbf{V}}
    \\newcommand{\\X}{\\mathbf{X}}
    \\newcommand{\\R}{\\mathbf{R}}
    \\newcommand{\\vecop}{\\mathrm{vec}}

The matrix-variate normal distribution is a generalization to matrices of the
normal distribution. Another name for it is the multivariate normal
distribution with kronecker separable covariance.
If :math:`\\X \\sim \\mathcal{MN}(\\M,\\U,\\V)` then
:math:`\\vecop(\\X)\\sim\\mathcal{N}(\\vecop(\\M), \\V \\otimes \\U)`, where
:math:`\\vecop(\\cdot)` stacks columns and :math:`\\otimes` is the Kronecker
product. Every column of :math:`\\X` shares the row covariance
:math:`\\U` (:math:`p\\times p`) and every row shares the column covariance
:math:`\\V` (:math:`q\\times q`).

The log-likelihood for the matrix-normal density is:

.. math::
    \\log p(\\X\\mid \\M,\\U, \\V) = -\\frac{pq}{2}\\log 2\\pi
    - \\frac{q}{2} \\log|\\U| - \\frac{p}{2} \\log|\\V|
    - \\frac{1}{2}\\Tr\\left[\\V\\inv(\\X-\\M)\\trp\\U\\inv(\\X-\\M)\\right]

Only the product :math:`\\V \\otimes \\U` is identified, since
:math:`(c\\U, \\V/c)` gives the same distribution for any :math:`c > 0`.
Fitted models in this package report :math:`\\U_{11} = \\V_{11} = 1` and a
separate scale.

The matrix-t used here is the Kronecker-separable multivariate t,
:math:`\\vecop(\\X)\\sim t_{pq}(\\vecop(\\M), \\V \\otimes \\U, \\nu)`. It
is a scale mixture of matrix-normals: with
:math:`w \\sim \\Gamma(\\nu/2, \\nu/2)` and
:math:`\\X \\mid w \\sim \\mathcal{MN}(\\M, \\U / w, \\V)`. The expected
latent weight given an observation,

.. math::
    \\delta = \\frac{pq + \\nu}{\\nu +
    \\Tr\\left[\\U\\inv(\\X-\\M)\\V\\inv(\\X-\\M)\\trp\\right]},

drives the ECM fitter: each observation enters the flip-flop updates with
weight :math:`\\delta`, so outlying observations are down-weighted.

Flip-flop estimation
--------------------

Given :math:`\\V`, the maximizer over :math:`\\U` is
:math:`\\frac{1}{nq}\\sum_i \\R_i \\V\\inv \\R_i\\trp` with
:math:`\\R_i = \\X_i - \\M`, and symmetrically for :math:`\\V` given
:math:`\\U`. Alternating the two updates never decreases the likelihood.
Weighted versions of the same updates are used for discriminant analysis
(indicator weights) and mixtures (responsibilities).
"""

from .likelihoods import dmatrixnorm, dmatrixt
from .mle import MatrixFit, fit_matrix_normal, fit_matrix_t
from .utils import Method, rmatrixnorm, rmatrixt

__all__ = [
    "MatrixFit",
    "Method",
    "dmatrixnorm",
    "dmatrixt",
    "fit_matrix_normal",
    "fit_matrix_t",
    "rmatrixnorm",
    "rmatrixt",
]

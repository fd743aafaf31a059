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
"""Classification and clustering of matrix-variate data

Observations are stacks of p x q matrices, shape (n, p, q), modelled with
matrix-variate normal and matrix-variate t distributions. The package
provides maximum-likelihood fitters (:mod:`mixmatrix.matnormal`), linear and
quadratic discriminant analysis (:mod:`mixmatrix.discriminant`), finite
mixtures (:mod:`mixmatrix.mixture`) and parameter counts for model
comparison (:mod:`mixmatrix.loglik`).
"""

__version__ = "0.1.0"

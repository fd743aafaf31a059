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
"""Linear and quadratic discriminant analysis for matrix-variate data

Each group is modelled as matrix-normal or matrix-t. :class:`MatrixLDA`
shares one row covariance, one column covariance and one scale across
groups; :class:`MatrixQDA` fits them separately for every group. Posterior
class probabilities combine the group log-densities with the prior.
"""

from .lda import MatrixLDA, matrix_lda
from .qda import MatrixQDA, matrix_qda

__all__ = [
    "MatrixLDA",
    "MatrixQDA",
    "matrix_lda",
    "matrix_qda",
]

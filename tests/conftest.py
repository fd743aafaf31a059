import pytest
import numpy
import random


@pytest.fixture
def seeded_rng():
    random.seed(0)
    numpy.random.seed(0)

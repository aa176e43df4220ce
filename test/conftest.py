import pytest
import torch

from pomotree import Parameter
from pomotree.evolution.datatype import NucleotideDataType
from pomotree.evolution.pomo import AlleleCounts, PoMoSitePattern, SamplingMethod
from pomotree.evolution.substitution_model import (
    GTR,
    HKY,
    JC69,
    GeneralNonSymmetricSubstitutionModel,
)

A, C, G, T = range(4)


@pytest.fixture
def jc69_model():
    return JC69('jc')


@pytest.fixture
def hky_model():
    return HKY(
        'hky',
        Parameter('kappa', torch.tensor([3.0], dtype=torch.float64)),
        Parameter('pi', torch.tensor([0.3, 0.2, 0.2, 0.3], dtype=torch.float64)),
    )


@pytest.fixture
def gtr_model():
    return GTR(
        'gtr',
        Parameter(
            'rates',
            torch.tensor([0.5, 2.0, 0.8, 1.2, 2.5, 1.0], dtype=torch.float64),
        ),
        Parameter('pi', torch.tensor([0.25, 0.25, 0.25, 0.25], dtype=torch.float64)),
    )


@pytest.fixture
def unrest_model():
    return GeneralNonSymmetricSubstitutionModel(
        'unrest',
        NucleotideDataType(None),
        Parameter(None, torch.arange(12)),
        Parameter(
            'rates',
            torch.tensor(
                [0.5, 2.0, 0.8, 1.2, 2.5, 1.0, 0.7, 1.5, 0.9, 1.1, 3.0, 1.0],
                dtype=torch.float64,
            ),
        ),
        Parameter('pi', torch.full((4,), 0.25, dtype=torch.float64)),
    )


def make_patterns(N, sampling_method=SamplingMethod.WEIGHTED):
    """Two populations, four patterns with fixed and polymorphic sites."""
    patterns = [
        [AlleleCounts(A, N, A, 0), AlleleCounts(A, N, A, 0)],
        [AlleleCounts(A, 1, C, N - 1), AlleleCounts(C, N, C, 0)],
        [AlleleCounts(G, N, G, 0), AlleleCounts(G, 2, T, N - 2)],
        [AlleleCounts(T, N, T, 0), None],
    ]
    return PoMoSitePattern(
        'patterns', patterns, [10, 2, 3, 5], N, sampling_method, torch.Generator()
    )


@pytest.fixture
def site_pattern():
    return make_patterns(10)


@pytest.fixture
def sampled_site_pattern():
    return make_patterns(10, SamplingMethod.SAMPLED)

import numpy as np
import pytest
import torch

from pomotree.core.utils import ConfigurationError
from pomotree.evolution.pomo import MutationRateNormalizer, StateCodec
from pomotree.evolution.pomo.mutation_rates import polymorphic_weight
from pomotree.math import harmonic


def test_rates_gtr(gtr_model):
    rates = MutationRateNormalizer(gtr_model, StateCodec(10)).rates()
    expected = torch.zeros((4, 4), dtype=torch.float64)
    indices = torch.triu_indices(4, 4, 1)
    expected[indices[0], indices[1]] = gtr_model.rates
    expected = expected + expected.t()
    off_diagonal = ~torch.eye(4, dtype=torch.bool)
    np.testing.assert_allclose(
        rates.mutation[off_diagonal], expected[off_diagonal], rtol=1e-12
    )
    np.testing.assert_allclose(rates.symmetric, rates.mutation, rtol=1e-12)
    assert torch.all(rates.skew == 0.0)


def test_rates_non_reversible(unrest_model):
    rates = MutationRateNormalizer(unrest_model, StateCodec(10)).rates()
    np.testing.assert_allclose(rates.symmetric, rates.symmetric.t())
    np.testing.assert_allclose(rates.skew, -rates.skew.t())
    np.testing.assert_allclose(rates.symmetric + rates.skew, rates.mutation)
    assert torch.all(torch.diagonal(rates.skew) == 0.0)
    assert torch.any(rates.skew != 0.0)


@pytest.mark.parametrize('N', [2, 5, 10])
@pytest.mark.parametrize('theta', [0.001, 0.01, 0.1])
def test_normalize_matches_theta(hky_model, N, theta):
    pi = torch.tensor([0.4, 0.1, 0.2, 0.3], dtype=torch.float64)
    normalizer = MutationRateNormalizer(hky_model, StateCodec(N))
    rates = normalizer.normalize(pi, theta)
    poly = normalizer.polymorphic_sum(pi, rates)
    heterozygosity = poly / (pi.sum() + poly)
    assert heterozygosity.item() / harmonic(N - 1) == pytest.approx(theta)


def test_normalize_preserves_relative_rates(gtr_model):
    pi = torch.full((4,), 0.25, dtype=torch.float64)
    normalizer = MutationRateNormalizer(gtr_model, StateCodec(10))
    raw = normalizer.rates()
    rates = normalizer.normalize(pi, 0.01)
    ratio = rates.mutation[0, 1] / raw.mutation[0, 1]
    np.testing.assert_allclose(rates.mutation, raw.mutation * ratio)


def test_theta_too_large(jc69_model):
    normalizer = MutationRateNormalizer(jc69_model, StateCodec(10))
    pi = torch.full((4,), 0.25, dtype=torch.float64)
    with pytest.raises(ConfigurationError):
        normalizer.normalize(pi, 0.5)


def test_polymorphic_weight():
    pi = torch.tensor([0.1, 0.2, 0.3, 0.4], dtype=torch.float64)
    R = torch.ones((4, 4), dtype=torch.float64)
    expected = 1.0 - (pi**2).sum()
    assert polymorphic_weight(pi, R).item() == pytest.approx(expected.item())


def test_scale(jc69_model):
    rates = MutationRateNormalizer(jc69_model, StateCodec(4)).rates()
    scaled = rates.scale(2.0)
    np.testing.assert_allclose(scaled.mutation, rates.mutation * 2.0)
    np.testing.assert_allclose(scaled.symmetric, rates.symmetric * 2.0)

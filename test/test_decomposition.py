import numpy as np
import pytest
import torch

from pomotree.core.utils import ConfigurationError
from pomotree.evolution.pomo import (
    MatrixExpTechnique,
    MutationRateNormalizer,
    RateMatrixBuilder,
    SpectralDecomposer,
    StateCodec,
)


def generator(mutation_model, N=5):
    codec = StateCodec(N)
    pi = torch.tensor([0.4, 0.1, 0.2, 0.3], dtype=torch.float64)
    rates = MutationRateNormalizer(mutation_model, codec).normalize(pi, 0.02)
    return RateMatrixBuilder(codec).build(pi, rates)


def test_reversible(hky_model):
    state_frequencies, Q = generator(hky_model)
    eigen_system = SpectralDecomposer(True).decompose(Q, state_frequencies)
    assert torch.all(eigen_system.eigenvalues_imag == 0.0)
    Q_reconstructed = (
        eigen_system.eigenvectors
        @ torch.diag(eigen_system.eigenvalues)
        @ eigen_system.inv_eigenvectors
    )
    np.testing.assert_allclose(Q_reconstructed, Q, atol=1e-10)
    np.testing.assert_allclose(
        eigen_system.eigenvectors @ eigen_system.inv_eigenvectors,
        torch.eye(Q.shape[0], dtype=torch.float64),
        atol=1e-10,
    )
    assert eigen_system.eigenvalues.max().item() == pytest.approx(0.0, abs=1e-10)


@pytest.mark.parametrize(
    'technique',
    [MatrixExpTechnique.EIGEN3LIB_DECOMPOSITION, MatrixExpTechnique.LIE_MARKOV_DECOMPOSITION],
)
def test_reversible_ignores_technique(hky_model, technique):
    state_frequencies, Q = generator(hky_model)
    decomposer = SpectralDecomposer(True, technique)
    assert decomposer.decompose(Q, state_frequencies) is not None


def test_non_reversible_eigen(unrest_model):
    state_frequencies, Q = generator(unrest_model)
    eigen_system = SpectralDecomposer(False).decompose(Q, state_frequencies)
    assert eigen_system.eigenvectors.is_complex()
    e = torch.complex(eigen_system.eigenvalues, eigen_system.eigenvalues_imag)
    Q_reconstructed = (
        eigen_system.eigenvectors @ torch.diag(e) @ eigen_system.inv_eigenvectors
    )
    np.testing.assert_allclose(Q_reconstructed.real, Q, atol=1e-10)


def test_non_reversible_scaling_squaring(unrest_model):
    state_frequencies, Q = generator(unrest_model)
    decomposer = SpectralDecomposer(False, MatrixExpTechnique.SCALING_SQUARING)
    assert decomposer.decompose(Q, state_frequencies) is None
    branch_lengths = torch.tensor([0.1, 1.0], dtype=torch.float64)
    P = decomposer.p_t(Q, state_frequencies, branch_lengths)
    P_eigen = SpectralDecomposer(False).p_t(Q, state_frequencies, branch_lengths)
    np.testing.assert_allclose(P, P_eigen, atol=1e-8)


@pytest.mark.parametrize(
    'technique',
    [MatrixExpTechnique.EIGEN3LIB_DECOMPOSITION, MatrixExpTechnique.LIE_MARKOV_DECOMPOSITION],
)
def test_non_reversible_unsupported(technique):
    with pytest.raises(ConfigurationError):
        SpectralDecomposer(False, technique)


@pytest.mark.parametrize('reversible', [True, False])
def test_p_t(hky_model, unrest_model, reversible):
    model = hky_model if reversible else unrest_model
    state_frequencies, Q = generator(model)
    decomposer = SpectralDecomposer(reversible)
    branch_lengths = torch.tensor([0.0, 0.1, 10.0], dtype=torch.float64)
    P = decomposer.p_t(Q, state_frequencies, branch_lengths)
    assert P.shape == (3,) + Q.shape
    np.testing.assert_allclose(P.sum(-1), np.ones((3, Q.shape[0])), atol=1e-8)
    np.testing.assert_allclose(P[0], torch.eye(Q.shape[0]), atol=1e-8)
    np.testing.assert_allclose(
        P[1], torch.linalg.matrix_exp(Q * 0.1), atol=1e-8
    )

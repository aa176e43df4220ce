r"""Mutation rates of the PoMo model.

The mutation rates :math:`M_{ij} = Q^{mut}_{ij} / \pi^{mut}_j` of the
underlying nucleotide model are split into a symmetric part
:math:`R = (M + M^T)/2` and a skew part :math:`F = (M - M^T)/2` (zero for
reversible models).

Under boundary mutation the expected heterozygosity of the model is

.. math::

    \frac{H_{N-1} \theta_{bm}}{1 + H_{N-1} \theta_{bm}}, \quad
    \theta_{bm} = \sum_{i<j} 2 \pi_i \pi_j R_{ij}

so multiplying the rates by
:math:`m = \theta / (\theta_{bm} (1 - H_{N-1} \theta))` sets the sum of the
stationary polymorphic frequencies to :math:`H_{N-1} \theta`.
"""
from __future__ import annotations

import logging
from typing import NamedTuple, Union

import torch
from torch import Tensor

from ...core.utils import ConfigurationError
from ...math import harmonic
from ..substitution_model.abstract import SubstitutionModel
from .state_space import StateCodec

# Sampling without replacement. Sampling with replacement from the boundary
# mutation equilibrium corresponds to (N-1)/N, and (N-1)/(N+1) is an
# empirical alternative; neither is used.
SAMPLING_CORRECTION = 1.0


class MutationRates(NamedTuple):
    """Mutation rate matrix with its symmetric and skew parts (4x4 each)."""

    mutation: Tensor
    symmetric: Tensor
    skew: Tensor

    def scale(self, factor: Union[float, Tensor]) -> MutationRates:
        return MutationRates(
            self.mutation * factor, self.symmetric * factor, self.skew * factor
        )


def polymorphic_weight(frequencies: Tensor, symmetric: Tensor) -> Tensor:
    r"""Compute :math:`\sum_{i<j} 2 \pi_i \pi_j R_{ij}`.

    :example:
    >>> pi = torch.full((4,), 0.25, dtype=torch.float64)
    >>> float(polymorphic_weight(pi, torch.ones((4, 4), dtype=torch.float64)))
    0.75
    """
    indices = torch.triu_indices(4, 4, 1)
    return torch.sum(
        2.0
        * frequencies[indices[0]]
        * frequencies[indices[1]]
        * symmetric[indices[0], indices[1]]
    )


class MutationRateNormalizer:
    """Derive PoMo mutation rates from a nucleotide substitution model.

    :param SubstitutionModel mutation_model: 4-state mutation model
    :param StateCodec codec: state space of the model
    :param float correction: sampling correction factor
    """

    def __init__(
        self,
        mutation_model: SubstitutionModel,
        codec: StateCodec,
        correction: float = SAMPLING_CORRECTION,
    ) -> None:
        self.mutation_model = mutation_model
        self.codec = codec
        self.correction = correction

    @property
    def harmonic(self) -> float:
        return harmonic(self.codec.N - 1)

    def rates(self) -> MutationRates:
        """Unscaled mutation rates of the mutation model."""
        Q = self.mutation_model.q().to(dtype=torch.float64)
        pi = self.mutation_model.frequencies.to(dtype=torch.float64)
        M = Q / pi.unsqueeze(-2)
        R = (M + M.transpose(-2, -1)) / 2.0
        if self.mutation_model.is_reversible:
            F = torch.zeros_like(M)
        else:
            F = (M - M.transpose(-2, -1)) / 2.0
            F = F - torch.diag_embed(torch.diagonal(F, dim1=-2, dim2=-1))
        return MutationRates(M, R, F)

    def polymorphic_sum(self, frequencies: Tensor, rates: MutationRates) -> Tensor:
        """Unnormalized mass of the polymorphic states."""
        return self.harmonic * polymorphic_weight(frequencies, rates.symmetric)

    def normalize(
        self, frequencies: Tensor, theta: Union[float, Tensor]
    ) -> MutationRates:
        """Mutation rates scaled to the heterozygosity theta.

        :param Tensor frequencies: boundary frequencies
        :param theta: target heterozygosity
        """
        rates = self.rates()
        theta_bm = self.polymorphic_sum(frequencies, rates) / self.harmonic
        if float(theta_bm) <= 0.0:
            raise ConfigurationError(
                'Mutation rates do not produce any polymorphism'
            )
        denominator = self.correction - self.harmonic * theta
        if float(denominator) <= 0.0:
            raise ConfigurationError(
                'Theta {} is too large for virtual population size {}'
                ' (must be below {:.6f})'.format(
                    float(theta), self.codec.N, self.correction / self.harmonic
                )
            )
        m_norm = theta / (theta_bm * denominator)
        logging.debug(
            'Normalization constant of mutation rates: {}'.format(float(m_norm))
        )
        return rates.scale(m_norm)

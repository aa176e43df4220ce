r"""Empirical boundary state frequencies and heterozygosity.

The boundary frequencies :math:`\pi` are the relative abundances of the four
alleles, counted over all observed populations and sites. Because the PoMo
stationary distribution degenerates when an allele is (nearly) absent, the
frequencies are kept inside :math:`[0.05, 0.95]`.
"""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import torch
from torch import Tensor

from ...core.utils import ConfigurationError
from ...math import harmonic
from .data import PoMoSitePattern, SamplingMethod
from .state_space import ALLELE_COUNT, ALLELES, StateCodec

MIN_BOUNDARY_FREQ = 0.05
MAX_BOUNDARY_FREQ = 0.95


def clamp_boundary_frequencies(
    frequencies: Tensor,
    lower: float = MIN_BOUNDARY_FREQ,
    upper: float = MAX_BOUNDARY_FREQ,
) -> Tensor:
    """Normalize frequencies and keep every entry inside [lower, upper].

    Entries below the lower bound are handled first. An out of bound entry is
    set to the bound and the remaining mass is spread proportionally over the
    entries that were not clamped, until none of them is out of bounds.

    :example:
    >>> clamp_boundary_frequencies(
    ...     torch.tensor([0.0, 1.0, 1.0, 2.0], dtype=torch.float64)
    ... ).tolist()
    [0.05, 0.2375, 0.2375, 0.475]
    """
    total = frequencies.sum()
    if not torch.isfinite(total) or total <= 0.0:
        raise ConfigurationError(
            'Boundary state frequencies cannot be normalized: {}'.format(
                frequencies.tolist()
            )
        )
    frequencies = frequencies / total
    clamped = torch.zeros(frequencies.shape, dtype=torch.bool)

    while True:
        mask = ~clamped & (frequencies < lower)
        bound = lower
        if not mask.any():
            mask = ~clamped & (frequencies > upper)
            bound = upper
            if not mask.any():
                break
        for idx in mask.nonzero().flatten().tolist():
            logging.warning(
                'Boundary state frequency of {} ({:.6f}) clamped to {}'.format(
                    ALLELES[idx], frequencies[idx].item(), bound
                )
            )
        frequencies = torch.where(
            mask, torch.full_like(frequencies, bound), frequencies
        )
        clamped = clamped | mask

        free = ~clamped
        free_mass = frequencies[free].sum()
        if not free.any() or free_mass <= 0.0:
            raise ConfigurationError(
                'Boundary state frequencies cannot be kept inside [{}, {}]'.format(
                    lower, upper
                )
            )
        remaining = 1.0 - frequencies[clamped].sum()
        frequencies = torch.where(free, frequencies * remaining / free_mass, frequencies)
    return frequencies


class BoundaryFrequencyEstimator:
    """Estimate boundary frequencies and Watterson's theta from PoMo data.

    :param StateCodec codec: state space of the model
    :param PoMoSitePattern site_pattern: allele-count data
    """

    def __init__(self, codec: StateCodec, site_pattern: PoMoSitePattern) -> None:
        if codec.N != site_pattern.virtual_population_size:
            raise ConfigurationError(
                'Virtual population size mismatch: {} (model) vs {} (data)'.format(
                    codec.N, site_pattern.virtual_population_size
                )
            )
        self.codec = codec
        self.site_pattern = site_pattern

    @property
    def sampling_method(self) -> SamplingMethod:
        return self.site_pattern.sampling_method

    @property
    def highest_frequency_state(self) -> Optional[int]:
        """Most frequently observed state (sampled method only)."""
        if self.sampling_method != SamplingMethod.SAMPLED:
            return None
        return int(torch.argmax(self.site_pattern.compute_absolute_state_freq()))

    def _allele_sums(self) -> np.ndarray:
        sums = np.zeros(ALLELE_COUNT)
        if self.sampling_method == SamplingMethod.SAMPLED:
            histogram = self.site_pattern.compute_absolute_state_freq().numpy()
            layout = np.array(
                [
                    (count, first, first if second is None else second)
                    for count, first, second in map(
                        self.codec.decompose, range(self.codec.state_count)
                    )
                ]
            )
            counts, firsts, seconds = layout.T
            np.add.at(sums, firsts, counts * histogram)
            np.add.at(sums, seconds, (self.codec.N - counts) * histogram)
        else:
            for pattern, weight in self.site_pattern:
                for observation in pattern:
                    if observation is None:
                        continue
                    sums[observation.first] += observation.first_count * weight
                    sums[observation.second] += observation.second_count * weight
        return sums

    def estimate_frequencies(self) -> Tensor:
        """Empirical boundary frequencies in the order A, C, G, T."""
        frequencies = clamp_boundary_frequencies(
            torch.from_numpy(self._allele_sums())
        )
        logging.debug(
            'Empirical boundary state frequencies: {}'.format(frequencies.tolist())
        )
        return frequencies

    def estimate_theta(self) -> float:
        r"""Watterson's estimate of the heterozygosity per site.

        With the weighted method every polymorphic observation of sample size
        :math:`n` contributes :math:`1/H_{n-1}`. With the sampled method the
        estimate is the proportion of polymorphic states, which is biased
        downward because sampling loses polymorphism.
        """
        if self.sampling_method == SamplingMethod.SAMPLED:
            histogram = self.site_pattern.compute_absolute_state_freq()
            fixed = int(histogram[:ALLELE_COUNT].sum())
            polymorphic = int(histogram[ALLELE_COUNT:].sum())
            if fixed + polymorphic == 0:
                raise ConfigurationError('No observed allele counts')
            theta = polymorphic / (fixed + polymorphic)
        else:
            total = 0
            theta_w = 0.0
            for pattern, weight in self.site_pattern:
                for observation in pattern:
                    if observation is None:
                        continue
                    total += weight
                    if not observation.is_monomorphic:
                        theta_w += weight / harmonic(observation.total - 1)
            if total == 0:
                raise ConfigurationError('No observed allele counts')
            theta = theta_w / total
        logging.debug(
            'Estimated relative frequency of polymorphic states: {:.8f}'.format(theta)
        )
        return theta

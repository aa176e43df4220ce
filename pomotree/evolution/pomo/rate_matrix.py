r"""Stationary distribution and generator of the PoMo model.

Transitions between PoMo states are either drift events, which change the
allele count of a polymorphic population by one, or mutation events, which
take a fixed population to a polymorphic state with a single copy of the new
allele. A drift event from count :math:`i` happens at rate
:math:`i(N-i)/N`; a mutation event from allele :math:`x` to allele :math:`y`
at rate :math:`M_{xy} \pi_y`. Every other transition has rate zero.
"""
from __future__ import annotations

from typing import NamedTuple, Optional, Union

import torch
from torch import Tensor

from ...math import harmonic
from .mutation_rates import MutationRates, polymorphic_weight
from .state_space import ALLELE_COUNT, StateCodec


class Drift(NamedTuple):
    """Genetic drift event with its rate."""

    rate: float


class Mutation(NamedTuple):
    """Boundary mutation event from allele source to allele target."""

    source: int
    target: int


Transition = Optional[Union[Drift, Mutation]]


def drift_rate(count: int, N: int) -> float:
    return count * (N - count) / N


def classify_transition(codec: StateCodec, s1: int, s2: int) -> Transition:
    """Type of the transition from state s1 to state s2 (None if impossible).

    :example:
    >>> codec = StateCodec(10)
    >>> classify_transition(codec, 0, 12)  # 10A -> 9A1C
    Mutation(source=0, target=1)
    >>> classify_transition(codec, 1, 4)  # 10C -> 1A9C
    Mutation(source=1, target=0)
    >>> classify_transition(codec, 4, 5)  # 1A9C -> 2A8C
    Drift(rate=0.9)
    >>> classify_transition(codec, 4, 1)  # 1A9C -> 10C
    Drift(rate=0.9)
    >>> classify_transition(codec, 0, 5) is None
    True
    """
    assert s1 != s2
    N = codec.N
    i1, a1, b1 = codec.decompose(s1)
    i2, a2, b2 = codec.decompose(s2)

    if a1 == a2 and (b1 == b2 or b1 is None or b2 is None):
        if i1 + 1 == i2:
            # 2A8C -> 3A7C or 9A1C -> 10A
            return Drift(drift_rate(i1, N))
        if i1 - 1 == i2:
            if b1 is None:
                # 10A -> 9A1C
                return Mutation(a1, b2)
            # 9A1C -> 8A2C
            return Drift(drift_rate(i1, N))
        return None
    if b1 is None and a1 == b2 and i2 == 1:
        # 10G -> 1A9G
        return Mutation(a1, a2)
    if b1 is not None and b1 == a2 and i1 == 1 and b2 is None:
        # 1A9G -> 10G
        return Drift(drift_rate(i1, N))
    return None


class RateMatrixBuilder:
    r"""Build the stationary distribution and the normalized PoMo generator.

    The transitions are classified once at construction; the rates are
    recomputed from the boundary frequencies and the mutation rates on every
    call.

    :param StateCodec codec: state space
    """

    def __init__(self, codec: StateCodec) -> None:
        self.codec = codec
        self.harmonic = harmonic(codec.N - 1)

        drift_indices, drift_rates, mutation_indices, mutation_alleles = (
            [],
            [],
            [],
            [],
        )
        for s1 in range(codec.state_count):
            for s2 in range(codec.state_count):
                if s1 == s2:
                    continue
                transition = classify_transition(codec, s1, s2)
                if isinstance(transition, Drift):
                    drift_indices.append((s1, s2))
                    drift_rates.append(transition.rate)
                elif isinstance(transition, Mutation):
                    mutation_indices.append((s1, s2))
                    mutation_alleles.append(transition)
        self._drift_indices = torch.tensor(drift_indices, dtype=torch.long).t()
        self._drift_rates = torch.tensor(drift_rates, dtype=torch.float64)
        self._mutation_indices = torch.tensor(mutation_indices, dtype=torch.long).t()
        self._mutation_alleles = torch.tensor(mutation_alleles, dtype=torch.long).t()

        polymorphic = [codec.decompose(s) for s in range(ALLELE_COUNT, len(codec))]
        counts, first, second = zip(*polymorphic)
        self._counts = torch.tensor(counts, dtype=torch.float64)
        self._first = torch.tensor(first, dtype=torch.long)
        self._second = torch.tensor(second, dtype=torch.long)

    def normalization(self, frequencies: Tensor, rates: MutationRates) -> Tensor:
        """Sum of the unnormalized stationary frequencies."""
        return frequencies.sum() + self.harmonic * polymorphic_weight(
            frequencies, rates.symmetric
        )

    def state_frequencies(self, frequencies: Tensor, rates: MutationRates) -> Tensor:
        r"""Stationary distribution of the PoMo model.

        Boundary states have frequency :math:`\pi_x / Z` and polymorphic
        states :math:`\pi_a \pi_b (R_{ab}(1/i + 1/(N-i)) - F_{ab}(1/i - 1/(N-i))) / Z`.
        """
        N = self.codec.N
        i = self._counts
        a = self._first
        b = self._second
        symmetric = rates.symmetric[a, b] * (1.0 / i + 1.0 / (N - i))
        skew = -rates.skew[a, b] * (1.0 / i - 1.0 / (N - i))
        polymorphic = frequencies[a] * frequencies[b] * (symmetric + skew)
        return torch.cat((frequencies, polymorphic)) / self.normalization(
            frequencies, rates
        )

    def transition_rate(
        self, s1: int, s2: int, frequencies: Tensor, rates: MutationRates
    ) -> float:
        """Unnormalized rate of the transition from s1 to s2."""
        transition = classify_transition(self.codec, s1, s2)
        if isinstance(transition, Drift):
            return transition.rate
        if isinstance(transition, Mutation):
            return float(
                rates.mutation[transition.source, transition.target]
                * frequencies[transition.target]
            )
        return 0.0

    def unnormalized_rate_matrix(
        self, frequencies: Tensor, rates: MutationRates
    ) -> Tensor:
        """Transition rates with zero row sums, before normalization."""
        size = self.codec.state_count
        source, target = self._mutation_alleles
        Q = torch.zeros((size, size), dtype=torch.float64)
        Q = Q.index_put(tuple(self._drift_indices), self._drift_rates)
        Q = Q.index_put(
            tuple(self._mutation_indices),
            rates.mutation[source, target] * frequencies[target],
        )
        return Q - torch.diag(Q.sum(-1))

    def rate_matrix(
        self, frequencies: Tensor, rates: MutationRates, state_frequencies: Tensor
    ) -> Tensor:
        """Generator normalized to one expected event per unit of time."""
        Q = self.unnormalized_rate_matrix(frequencies, rates)
        row_sum = -torch.diagonal(Q)
        return Q / torch.sum(state_frequencies * row_sum)

    def build(self, frequencies: Tensor, rates: MutationRates) -> tuple[Tensor, Tensor]:
        """Stationary distribution and normalized generator."""
        state_frequencies = self.state_frequencies(frequencies, rates)
        return state_frequencies, self.rate_matrix(
            frequencies, rates, state_frequencies
        )

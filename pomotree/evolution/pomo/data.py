from __future__ import annotations

import logging
from enum import Enum
from typing import Iterator, NamedTuple, Optional, Sequence, Union

import torch

from ...core.model import Model
from ...core.utils import ConfigurationError, enum_from_str, register_class
from ...typing import ID
from ..datatype import NucleotideDataType
from .state_space import StateCodec


class SamplingMethod(Enum):
    """How allele counts with a sample size other than N enter the model.

    WEIGHTED keeps the observed counts and weights them; SAMPLED reduces every
    observation to a PoMo state by drawing N alleles.
    """

    WEIGHTED = 'weighted'
    SAMPLED = 'sampled'


class AlleleCounts(NamedTuple):
    """Allele counts observed in one population at one site."""

    first: int
    first_count: int
    second: int
    second_count: int = 0

    @property
    def total(self) -> int:
        return self.first_count + self.second_count

    @property
    def is_monomorphic(self) -> bool:
        return self.second_count == 0


Observation = Optional[AlleleCounts]


def parse_allele_counts(
    counts: Optional[dict[str, int]], data_type: NucleotideDataType
) -> Observation:
    """Build an observation from a dictionary such as ``{"A": 7, "C": 3}``.

    Missing data (None, an empty dictionary or only zero counts) gives None.

    :example:
    >>> parse_allele_counts({'G': 2, 'A': 8}, NucleotideDataType(None))
    AlleleCounts(first=0, first_count=8, second=2, second_count=2)
    >>> parse_allele_counts({'T': 5}, NucleotideDataType(None))
    AlleleCounts(first=3, first_count=5, second=3, second_count=0)
    """
    if counts is None:
        return None
    alleles = []
    for symbol, count in counts.items():
        allele = data_type.encoding(symbol)
        if allele >= data_type.state_count:
            raise ConfigurationError('Unknown allele {}'.format(symbol))
        if count < 0:
            raise ConfigurationError(
                'Negative count {} for allele {}'.format(count, symbol)
            )
        if count > 0:
            alleles.append((allele, int(count)))
    if len(alleles) == 0:
        return None
    if len(alleles) > 2:
        raise ConfigurationError(
            'More than two alleles observed: {}'.format(
                ', '.join(counts.keys())
            )
        )
    alleles.sort()
    if len(alleles) == 1:
        allele, count = alleles[0]
        return AlleleCounts(allele, count, allele, 0)
    return AlleleCounts(alleles[0][0], alleles[0][1], alleles[1][0], alleles[1][1])


@register_class
class PoMoSitePattern(Model):
    r"""Compressed allele-count data for the PoMo model.

    Each pattern holds one observation per population (None when the
    population is not sampled at the site) and an integer weight, the number of
    sites sharing the pattern.

    With the sampled method every observation is reduced to a PoMo state at
    construction: an observation with exactly :math:`N` alleles maps directly
    onto its state, otherwise :math:`N` alleles are drawn with replacement
    from the observed allele frequencies.

    :param id_: identifier
    :param patterns: observations of each pattern
    :param weights: pattern weights
    :param int virtual_population_size: virtual population size N
    :param SamplingMethod sampling_method: weighted or sampled
    :param generator: random generator used by the sampled method
    """

    def __init__(
        self,
        id_: ID,
        patterns: Sequence[Sequence[Observation]],
        weights: Union[torch.Tensor, Sequence[int]],
        virtual_population_size: int,
        sampling_method: SamplingMethod = SamplingMethod.WEIGHTED,
        generator: Optional[torch.Generator] = None,
    ) -> None:
        super().__init__(id_)
        self.patterns = [tuple(pattern) for pattern in patterns]
        self.weights = torch.as_tensor(weights, dtype=torch.long)
        if self.weights.shape != (len(self.patterns),):
            raise ConfigurationError(
                'Expected {} pattern weights (got {})'.format(
                    len(self.patterns), tuple(self.weights.shape)
                )
            )
        self.codec = StateCodec(virtual_population_size)
        self.sampling_method = sampling_method
        self._states = None
        if sampling_method == SamplingMethod.SAMPLED:
            self._states = self._sample_states(generator)

    @property
    def virtual_population_size(self) -> int:
        return self.codec.N

    @property
    def pattern_count(self) -> int:
        return len(self.patterns)

    def __iter__(self) -> Iterator[tuple[tuple[Observation, ...], int]]:
        for pattern, weight in zip(self.patterns, self.weights.tolist()):
            yield pattern, weight

    @property
    def states(self) -> torch.Tensor:
        """PoMo state of every observation [patterns, populations].

        Unknown observations are encoded as ``state_count``. Only available
        with the sampled method.
        """
        if self._states is None:
            raise ConfigurationError(
                'PoMo states are only drawn with the sampled method'
            )
        return self._states

    def _sample_state(
        self, observation: AlleleCounts, generator: Optional[torch.Generator]
    ) -> int:
        N = self.codec.N
        if observation.is_monomorphic:
            return self.codec.compose(N, observation.first)
        if observation.total == N:
            count = observation.first_count
        else:
            count = int(
                torch.binomial(
                    torch.tensor(float(N), dtype=torch.float64),
                    torch.tensor(
                        observation.first_count / observation.total,
                        dtype=torch.float64,
                    ),
                    generator=generator,
                ).item()
            )
        return self.codec.compose(count, observation.first, observation.second)

    def _sample_states(self, generator: Optional[torch.Generator]) -> torch.Tensor:
        unknown = self.codec.state_count
        states = [
            [
                unknown
                if observation is None
                else self._sample_state(observation, generator)
                for observation in pattern
            ]
            for pattern in self.patterns
        ]
        if len(states) == 0:
            return torch.zeros((0, 0), dtype=torch.long)
        return torch.tensor(states, dtype=torch.long)

    def compute_absolute_state_freq(self) -> torch.Tensor:
        """Number of times each PoMo state is observed, weighted by pattern.

        :return: integer histogram of length ``state_count``
        """
        states = self.states
        counts = self.weights.unsqueeze(-1).expand_as(states)
        known = states < self.codec.state_count
        histogram = torch.zeros(self.codec.state_count, dtype=torch.long)
        histogram.index_add_(0, states[known], counts[known])
        logging.debug(
            'Absolute empirical state frequencies: {}'.format(histogram.tolist())
        )
        return histogram

    def handle_model_changed(self, model, obj, index):
        pass

    def handle_parameter_changed(self, variable, index, event):
        pass

    @property
    def sample_shape(self) -> torch.Size:
        return torch.Size([])

    @classmethod
    def from_json(cls, data, dic):
        r"""Create a PoMoSitePattern object from a dictionary.

        **JSON attributes**:

         Mandatory:
          - id (str): identifier of object.
          - patterns (list): one list per pattern of allele-count dictionaries
            (null for missing data).
          - virtual_population_size (int): virtual population size N.

         Optional:
          - weights (list of int): pattern weights (default: 1 for each pattern).
          - sampling (str): ``weighted`` (default) or ``sampled``.
          - seed (int): seed of the generator used by the sampled method.

        **JSON Examples**

        .. code-block:: json

          {
            "id": "patterns",
            "type": "PoMoSitePattern",
            "virtual_population_size": 10,
            "sampling": "weighted",
            "patterns": [
              [{"A": 7, "C": 3}, {"A": 10}],
              [{"G": 4}, null]
            ],
            "weights": [3, 1]
          }
        """
        id_ = data['id']
        data_type = NucleotideDataType(None)
        patterns = [
            [parse_allele_counts(counts, data_type) for counts in pattern]
            for pattern in data['patterns']
        ]
        weights = data.get('weights', [1] * len(patterns))
        sampling_method = enum_from_str(
            SamplingMethod, data.get('sampling', SamplingMethod.WEIGHTED.value)
        )
        generator = None
        if 'seed' in data:
            generator = torch.Generator()
            generator.manual_seed(data['seed'])
        return cls(
            id_,
            patterns,
            weights,
            data['virtual_population_size'],
            sampling_method,
            generator,
        )

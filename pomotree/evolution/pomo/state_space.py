r"""State space of the PoMo model.

A population of virtual size :math:`N` is either fixed for one of the four
alleles (boundary state) or segregates two alleles :math:`a < b` with
:math:`i` copies of :math:`a` and :math:`N-i` copies of :math:`b`,
:math:`1 \leq i \leq N-1` (polymorphic state). There are
:math:`4 + 6(N-1)` states, numbered as follows:

* 0..3: boundary states A, C, G, T;
* then one block of :math:`N-1` states per allele pair, in the order
  (A,C), (A,G), (A,T), (C,G), (C,T), (G,T), with increasing count :math:`i`.

For :math:`N=3` state 4 is ``1A2C``, state 5 ``2A1C`` and state 6 ``1A2G``.
"""
from __future__ import annotations

from typing import Iterator, NamedTuple, Optional, Union

from ...core.utils import ConfigurationError

ALLELE_COUNT = 4
ALLELES = ('A', 'C', 'G', 'T')
ALLELE_PAIRS = ((0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3))


class StateRangeError(IndexError):
    """State index outside of the state space."""


class BoundaryState(NamedTuple):
    """Population fixed for ``allele``."""

    allele: int

    @property
    def first(self) -> int:
        return self.allele

    @property
    def second(self) -> None:
        return None


class PolymorphicState(NamedTuple):
    """Population with ``count`` copies of the first allele of ``pair``."""

    pair: int
    count: int

    @property
    def first(self) -> int:
        return ALLELE_PAIRS[self.pair][0]

    @property
    def second(self) -> int:
        return ALLELE_PAIRS[self.pair][1]


State = Union[BoundaryState, PolymorphicState]


def pair_index(first: int, second: int) -> int:
    """Index of the unordered allele pair in :data:`ALLELE_PAIRS`.

    :example:
    >>> pair_index(2, 0)
    1
    """
    return ALLELE_PAIRS.index((min(first, second), max(first, second)))


class StateCodec:
    """Bidirectional mapping between state indices and their meaning.

    :param int virtual_population_size: virtual population size N (>= 2)

    :example:
    >>> codec = StateCodec(10)
    >>> codec.state_count
    58
    >>> codec.decompose(2)
    (10, 2, None)
    >>> codec.decompose(4)
    (1, 0, 1)
    >>> codec.variant(57)
    PolymorphicState(pair=5, count=9)
    >>> codec.label(57)
    '9G1T'
    """

    def __init__(self, virtual_population_size: int) -> None:
        if virtual_population_size < 2:
            raise ConfigurationError(
                'Virtual population size must be at least 2 (got {})'.format(
                    virtual_population_size
                )
            )
        self.N = virtual_population_size
        self.state_count = ALLELE_COUNT + len(ALLELE_PAIRS) * (self.N - 1)

    def __len__(self) -> int:
        return self.state_count

    def __iter__(self) -> Iterator[State]:
        for state in range(self.state_count):
            yield self.variant(state)

    def _check(self, state: int) -> None:
        if not 0 <= state < self.state_count:
            raise StateRangeError(
                'State {} exceeds limit (number of states: {})'.format(
                    state, self.state_count
                )
            )

    def is_boundary(self, state: int) -> bool:
        self._check(state)
        return state < ALLELE_COUNT

    def is_polymorphic(self, state: int) -> bool:
        return not self.is_boundary(state)

    def variant(self, state: int) -> State:
        self._check(state)
        if self.is_boundary(state):
            return BoundaryState(state)
        pair, offset = divmod(state - ALLELE_COUNT, self.N - 1)
        return PolymorphicState(pair, offset + 1)

    def index(self, variant: State) -> int:
        if isinstance(variant, BoundaryState):
            if not 0 <= variant.allele < ALLELE_COUNT:
                raise StateRangeError('Unknown allele {}'.format(variant.allele))
            return variant.allele
        if not 1 <= variant.count <= self.N - 1:
            raise StateRangeError(
                'Allele count {} outside of [1, {}]'.format(variant.count, self.N - 1)
            )
        return ALLELE_COUNT + variant.pair * (self.N - 1) + variant.count - 1

    def decompose(self, state: int) -> tuple[int, int, Optional[int]]:
        """Decompose a state into (count, first allele, second allele).

        The second allele is None for boundary states, whose count is N.
        """
        variant = self.variant(state)
        if isinstance(variant, BoundaryState):
            return self.N, variant.allele, None
        return variant.count, variant.first, variant.second

    def compose(self, count: int, first: int, second: Optional[int] = None) -> int:
        """State with count copies of first and N-count copies of second.

        The alleles may be given in any order; count N (or 0) maps to a
        boundary state.

        :example:
        >>> codec = StateCodec(10)
        >>> codec.compose(3, 1, 0) == codec.compose(7, 0, 1)
        True
        >>> codec.compose(10, 3)
        3
        """
        if count == self.N or second is None or second == first:
            return self.index(BoundaryState(first))
        if count == 0:
            return self.index(BoundaryState(second))
        if first > second:
            first, second, count = second, first, self.N - count
        return self.index(PolymorphicState(pair_index(first, second), count))

    def label(self, state: int) -> str:
        count, first, second = self.decompose(state)
        if second is None:
            return '{}{}'.format(count, ALLELES[first])
        return '{}{}{}{}'.format(count, ALLELES[first], self.N - count, ALLELES[second])

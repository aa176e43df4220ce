from __future__ import annotations

import abc

from ..core.serializable import Identifiable
from ..core.utils import register_class
from ..typing import ID


class DataType(Identifiable, abc.ABC):
    @property
    @abc.abstractmethod
    def states(self) -> tuple[str, ...]:
        pass

    @property
    @abc.abstractmethod
    def state_count(self) -> int:
        pass

    @abc.abstractmethod
    def encoding(self, string: str) -> int:
        pass


class AbstractDataType(DataType, abc.ABC):
    def __init__(self, id_: ID, states: tuple[str, ...]):
        super().__init__(id_)
        self._states = states
        self._state_count = len(states)

    @property
    def states(self) -> tuple[str, ...]:
        return self._states

    @property
    def state_count(self) -> int:
        return self._state_count


@register_class
class NucleotideDataType(AbstractDataType):
    """The 4-letter allele alphabet A, C, G, T (U is read as T).

    Any other character (ambiguity codes, gaps) is encoded as
    :attr:`state_count`, the unknown state.

    :example:
    >>> nuc = NucleotideDataType(None)
    >>> nuc.encoding('G'), nuc.encoding('u'), nuc.encoding('N')
    (2, 3, 4)
    """

    UNKNOWN = 4

    def __init__(self, id_: ID):
        super().__init__(id_, ('A', 'C', 'G', 'T'))
        self._lookup = {state: idx for idx, state in enumerate(self.states)}
        self._lookup['U'] = self._lookup['T']

    def encoding(self, string: str) -> int:
        return self._lookup.get(string.upper(), NucleotideDataType.UNKNOWN)

    def symbol(self, index: int) -> str:
        return self.states[index]

    @classmethod
    def from_json(cls, data, dic):
        return cls(data['id'])

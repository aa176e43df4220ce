from abc import ABC, abstractmethod
from typing import Optional

import torch
from torch import Tensor

from ...core.model import Model
from ...core.parameter import AbstractParameter
from ...typing import ID
from .eigen import EigenSystem, general_eigen_system, reversible_eigen_system

MIN_RATE = 1e-4
MAX_RATE = 100.0


class SubstitutionModel(Model):
    """Continuous-time Markov substitution process.

    Besides the rate matrix and the transition probabilities, a substitution
    model exposes its free exchangeability rates as a slice of a flat vector so
    that an optimizer can drive it (see :meth:`get_rate_variables`).
    """

    # number of trailing rate entries that are fixed (reference rates)
    fixed_rate_count = 0

    def __init__(self, id_: ID) -> None:
        super().__init__(id_)

    @property
    @abstractmethod
    def frequencies(self) -> torch.Tensor:
        pass

    @abstractmethod
    def p_t(self, branch_lengths: torch.Tensor) -> torch.Tensor:
        pass

    @abstractmethod
    def q(self) -> torch.Tensor:
        pass

    @property
    def is_reversible(self) -> bool:
        return True

    def rate_parameter(self) -> Optional[AbstractParameter]:
        """Parameter holding the exchangeability rates, None if there is none."""
        return None

    @property
    def rate_dimension(self) -> int:
        """Number of free rates."""
        parameter = self.rate_parameter()
        if parameter is None:
            return 0
        return parameter.shape[-1] - self.fixed_rate_count

    def get_rate_variables(self, variables: Tensor, offset: int = 0) -> bool:
        """Read the free rates from variables[offset:offset+rate_dimension].

        :return: True if the rates changed
        """
        dim = self.rate_dimension
        if dim == 0:
            return False
        parameter = self.rate_parameter()
        rates = parameter.tensor.detach().clone()
        rates[..., :dim] = variables[offset : offset + dim].to(dtype=rates.dtype)
        changed = not torch.equal(rates, parameter.tensor)
        if changed:
            parameter.tensor = rates
        return changed

    def set_rate_variables(self, variables: Tensor, offset: int = 0) -> None:
        """Write the free rates into variables[offset:offset+rate_dimension]."""
        dim = self.rate_dimension
        if dim > 0:
            variables[offset : offset + dim] = self.rate_parameter().tensor[..., :dim]

    def set_rate_bounds(
        self, lower: Tensor, upper: Tensor, bound_check: Tensor, offset: int = 0
    ) -> None:
        dim = self.rate_dimension
        lower[offset : offset + dim] = MIN_RATE
        upper[offset : offset + dim] = MAX_RATE
        bound_check[offset : offset + dim] = False


class AbstractSubstitutionModel(SubstitutionModel, ABC):
    def __init__(self, id_: ID, frequencies: AbstractParameter) -> None:
        super().__init__(id_)
        self._frequencies = frequencies

    @property
    def frequencies(self) -> torch.Tensor:
        return self._frequencies.tensor

    def norm(self, Q) -> torch.Tensor:
        return -torch.sum(torch.diagonal(Q, dim1=-2, dim2=-1) * self.frequencies, -1)

    @property
    def sample_shape(self) -> torch.Size:
        return max(
            [parameter.shape[:-1] for parameter in self._parameters.values()],
            key=len,
        )


class SymmetricSubstitutionModel(AbstractSubstitutionModel, ABC):
    """Reversible model; its normalized rate matrix is decomposed through a
    symmetric matrix."""

    def normalized_q(self) -> torch.Tensor:
        Q = self.q()
        return Q / self.norm(Q).unsqueeze(-1).unsqueeze(-1)

    def decompose_rate_matrix(self) -> EigenSystem:
        return reversible_eigen_system(self.normalized_q(), self.frequencies)

    def p_t(self, branch_lengths: torch.Tensor) -> torch.Tensor:
        return self.decompose_rate_matrix().p_t(branch_lengths)


class NonSymmetricSubstitutionModel(AbstractSubstitutionModel, ABC):
    """Non-reversible model; the rate matrix is normalized only when
    ``normalize`` is true."""

    def __init__(self, id_: ID, frequencies: AbstractParameter, normalize: bool):
        super().__init__(id_, frequencies)
        self.normalize = normalize

    @property
    def is_reversible(self) -> bool:
        return False

    def decompose_rate_matrix(self) -> EigenSystem:
        Q = self.q()
        if self.normalize:
            Q = Q / self.norm(Q).unsqueeze(-1).unsqueeze(-1)
        return general_eigen_system(Q)

    def p_t(self, branch_lengths: torch.Tensor) -> torch.Tensor:
        return self.decompose_rate_matrix().p_t(branch_lengths)

r"""Reversible nucleotide mutation models.

The rate matrix of a reversible nucleotide model is built from symmetric
exchangeabilities :math:`r_{ij}` and equilibrium frequencies :math:`\pi`:

.. math::

    Q_{ij} =
    \begin{cases}
    r_{ij} \pi_j & \text{if } i \neq j \\
    -\sum_{k \neq i} Q_{ik} & \text{if } i = j
    \end{cases}

The exchangeabilities are ordered AC, AG, AT, CG, CT, GT (upper off-diagonal
elements, row by row). Dividing :math:`Q` column-wise by :math:`\pi` gives back
:math:`r`, which is what the PoMo model uses as mutation rates.

.. note::
    The order of the equilibrium frequencies in a :class:`~pomotree.Parameter`
    is expected to be :math:`\pi_A, \pi_C, \pi_G, \pi_T`.
"""
from __future__ import annotations

from typing import Optional, Union

import torch
from torch import Tensor

from ...core.parameter import AbstractParameter, Parameter
from ...core.utils import process_object, register_class
from ...typing import ID
from .abstract import SymmetricSubstitutionModel


def exchangeability_rate_matrix(rates: Tensor, frequencies: Tensor) -> Tensor:
    """Build the 4x4 rate matrix from six exchangeabilities.

    :param Tensor rates: exchangeabilities [...,6] in the order AC AG AT CG CT GT
    :param Tensor frequencies: equilibrium frequencies [...,4]
    :return: unnormalized rate matrix [...,4,4]
    """
    indices = torch.triu_indices(4, 4, 1)
    batch_shape = torch.broadcast_shapes(rates.shape[:-1], frequencies.shape[:-1])
    R = torch.zeros(batch_shape + (4, 4), dtype=rates.dtype, device=rates.device)
    R[..., indices[0], indices[1]] = rates
    R[..., indices[1], indices[0]] = rates
    Q = R * frequencies.unsqueeze(-2)
    return Q - torch.diag_embed(Q.sum(-1))


@register_class
class JC69(SymmetricSubstitutionModel):
    """Jukes-Cantor (JC69) model: equal exchangeabilities and frequencies.

    JC69 has no free rate so it contributes nothing to the optimizer's
    parameter vector.
    """

    def __init__(self, id_: ID) -> None:
        super().__init__(id_, Parameter(None, torch.full((4,), 0.25)))

    @property
    def rates(self) -> Tensor:
        return torch.ones(6, dtype=self.frequencies.dtype)

    def q(self) -> torch.Tensor:
        return exchangeability_rate_matrix(self.rates, self.frequencies)

    def handle_model_changed(self, model, obj, index):
        pass

    def handle_parameter_changed(self, variable, index, event):
        pass

    @property
    def sample_shape(self) -> torch.Size:
        return torch.Size([])

    @classmethod
    def from_json(cls, data, dic):
        return cls(data['id'])


@register_class
class HKY(SymmetricSubstitutionModel):
    r"""Hasegawa-Kishino-Yano (HKY) model.

    Transitions (A<->G, C<->T) have exchangeability :math:`\kappa`, transversions
    have exchangeability 1. The only free rate is :math:`\kappa`.
    """

    TRANSITIONS = (1, 4)

    def __init__(
        self, id_: ID, kappa: AbstractParameter, frequencies: AbstractParameter
    ) -> None:
        super().__init__(id_, frequencies)
        self._kappa = kappa

    @property
    def kappa(self) -> torch.Tensor:
        return self._kappa.tensor

    @property
    def rates(self) -> Tensor:
        kappa = self.kappa
        ones = torch.ones_like(kappa)
        return torch.cat((ones, kappa, ones, ones, kappa, ones), -1)

    def rate_parameter(self) -> Optional[AbstractParameter]:
        return self._kappa

    def handle_model_changed(self, model, obj, index):
        pass

    def handle_parameter_changed(self, variable, index, event):
        self.fire_model_changed()

    def q(self) -> torch.Tensor:
        return exchangeability_rate_matrix(self.rates, self.frequencies)

    @classmethod
    def from_json(cls, data, dic):
        id_ = data['id']
        kappa = process_object(data['kappa'], dic)
        frequencies = process_object(data['frequencies'], dic)
        return cls(id_, kappa, frequencies)


@register_class
class GTR(SymmetricSubstitutionModel):
    r"""General Time Reversible (GTR) model.

    Six exchangeabilities :math:`a, b, c, d, e, f` for AC, AG, AT, CG, CT and
    GT. The last one (GT) is the reference rate and is not free, so GTR exposes
    five rates to the optimizer.
    """

    fixed_rate_count = 1

    def __init__(
        self, id_: ID, rates: AbstractParameter, frequencies: AbstractParameter
    ):
        super().__init__(id_, frequencies)
        self._rates = rates

    @property
    def rates(self) -> Union[Tensor, list[Tensor]]:
        return self._rates.tensor

    def rate_parameter(self) -> Optional[AbstractParameter]:
        return self._rates

    def handle_model_changed(self, model, obj, index):
        pass

    def handle_parameter_changed(self, variable, index, event):
        self.fire_model_changed()

    def q(self) -> torch.Tensor:
        return exchangeability_rate_matrix(self.rates, self.frequencies)

    @classmethod
    def from_json(cls, data, dic):
        id_ = data['id']
        rates = process_object(data['rates'], dic)
        frequencies = process_object(data['frequencies'], dic)
        return cls(id_, rates, frequencies)

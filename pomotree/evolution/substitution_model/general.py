from __future__ import annotations

from typing import Optional

import torch

from ...core.parameter import AbstractParameter, Parameter
from ...core.utils import process_object, register_class
from ...evolution.datatype import DataType, NucleotideDataType
from ...typing import ID
from .abstract import NonSymmetricSubstitutionModel


@register_class
class GeneralNonSymmetricSubstitutionModel(NonSymmetricSubstitutionModel):
    r"""General non-reversible substitution model.

    The model has :math:`K \leq M^2-M` rates :math:`\mathbf{r}`, :math:`M`
    frequencies :math:`\pi` and a mapping :math:`\mathbf{g}` from off-diagonal
    positions to rates:

    .. math::

        Q_{ij} =
        \begin{cases}
        r_{g(i,j)} \pi_j & \text{if } i \neq j \\
        -\sum_{k \neq i} Q_{ik} & \text{if } i = j
        \end{cases}

    The first half of :math:`\mathbf{g}` indexes the upper off-diagonal
    elements row by row, the second half the lower off-diagonal elements
    (transposed, in the same order). With nucleotides and the identity mapping
    the model is the 12-rate UNREST model; its last rate is the fixed reference
    rate.
    """

    fixed_rate_count = 1

    def __init__(
        self,
        id_: ID,
        data_type: DataType,
        mapping: AbstractParameter,
        rates: AbstractParameter,
        frequencies: AbstractParameter,
        normalize: bool = True,
    ) -> None:
        super().__init__(id_, frequencies, normalize)
        self._rates = rates
        self.mapping = mapping
        self.state_count = data_type.state_count
        self.data_type = data_type

    @property
    def rates(self) -> torch.Tensor:
        return self._rates.tensor

    def rate_parameter(self) -> Optional[AbstractParameter]:
        return self._rates

    def handle_model_changed(self, model, obj, index):
        pass

    def handle_parameter_changed(self, variable, index, event):
        self.fire_model_changed()

    def q(self) -> torch.Tensor:
        indices = torch.triu_indices(self.state_count, self.state_count, 1)
        R = torch.zeros(
            self._rates.tensor.shape[:-1] + (self.state_count, self.state_count),
            dtype=self._rates.dtype,
        )
        dim = int(self.mapping.shape[-1] / 2)
        R[..., indices[0], indices[1]] = self.rates[..., self.mapping.tensor[:dim]]
        R[..., indices[1], indices[0]] = self.rates[..., self.mapping.tensor[dim:]]
        Q = R * self.frequencies.unsqueeze(-2)
        return Q - torch.diag_embed(Q.sum(-1))

    @classmethod
    def from_json(cls, data, dic):
        id_ = data['id']
        if 'data_type' in data:
            data_type = process_object(data['data_type'], dic)
        else:
            data_type = NucleotideDataType(None)
        rates = process_object(data['rates'], dic)
        frequencies = process_object(data['frequencies'], dic)
        if 'mapping' not in data:
            mapping_count = data_type.state_count * (data_type.state_count - 1)
            mapping = Parameter(None, torch.arange(mapping_count))
        elif isinstance(data['mapping'], list):
            mapping = Parameter(None, torch.tensor(data['mapping']))
        else:
            mapping = process_object(data['mapping'], dic)
        normalize = data.get('normalize', True)
        return cls(id_, data_type, mapping, rates, frequencies, normalize)

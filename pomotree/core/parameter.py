"""Parameters: named tensors observed by the models that own them."""
from __future__ import annotations

import abc
from typing import Any, Optional

import torch
from torch import Size, Tensor

from pomotree.core.serializable import Identifiable
from pomotree.core.utils import get_class, process_object, register_class


class AbstractParameter(Identifiable, abc.ABC):
    """Abstract base class for parameters.

    Replacing the tensor of a parameter notifies its listeners, usually the
    substitution models that cache a generator computed from it.
    """

    @property
    @abc.abstractmethod
    def tensor(self) -> Tensor:
        """The tensor.

        :getter: Returns the tensor.
        :setter: Sets the tensor and notifies listeners.
        :rtype: Tensor
        """
        ...

    @tensor.setter
    @abc.abstractmethod
    def tensor(self, tensor: Tensor) -> None:
        ...

    @property
    def shape(self) -> Size:
        return self.tensor.shape

    @property
    def dtype(self) -> torch.dtype:
        return self.tensor.dtype

    @abc.abstractmethod
    def add_parameter_listener(self, listener) -> None:
        ...

    @abc.abstractmethod
    def fire_parameter_changed(self, index=None, event=None) -> None:
        ...


@register_class
class Parameter(AbstractParameter):
    """Parameter class.

    :param id_: identifier of Parameter object.
    :type id_: str or None
    :param Tensor tensor: Tensor object.
    """

    def __init__(self, id_: Optional[str], tensor: Tensor) -> None:
        super().__init__(id_)
        self._tensor = tensor
        self.listeners = []

    def __repr__(self):
        id_ = "'" + self._id + "'" if self._id else None
        return f"Parameter(id_={id_}, tensor=torch.{self._tensor})"

    @property
    def tensor(self) -> Tensor:
        return self._tensor

    @tensor.setter
    def tensor(self, tensor: Tensor) -> None:
        self._tensor = tensor
        self.fire_parameter_changed()

    def add_parameter_listener(self, listener) -> None:
        self.listeners.append(listener)

    def fire_parameter_changed(self, index=None, event=None) -> None:
        for listener in self.listeners:
            listener.handle_parameter_changed(self, index, event)

    def clone(self) -> Parameter:
        """Return a copy of the tensor wrapped in an anonymous Parameter
        without listeners."""
        return Parameter(None, self.tensor.clone())

    @classmethod
    def from_json(cls, data: dict[str, Any], dic: dict[str, Any]) -> Parameter:
        r"""Creates a Parameter object from a dictionary.

        **JSON attributes**:

         Only one of ``tensor``, ``full``, ``zeros``, ``ones``, ``zeros_like``
         can be specified.

         - tensor (list): list of scalars.
         - full (int or list): size of the tensor filled with ``value``.
         - zeros (int or list): size of the tensor filled with 0.
         - ones (int or list): size of the tensor filled with 1.
         - zeros_like (str or dict): parameter whose shape is copied.

         Optional:
          - dtype (str): the desired data type of returned tensor
            (default: the default torch dtype).

        **JSON Examples**

        .. code-block:: json

          {
            "id": "rates",
            "type": "Parameter",
            "tensor": [1.0, 2.0, 1.0, 1.0, 2.0, 1.0]
          }

        :example:
        >>> p_dic = {"id": "kappa", "type": "Parameter", "tensor": [2.]}
        >>> parameter = Parameter.from_json(p_dic, {})
        >>> parameter.tensor
        tensor([2.])
        >>> ones = Parameter.from_json({"id": "o", "type": "Parameter", "ones": 3}, {})
        >>> ones.tensor.tolist()
        [1.0, 1.0, 1.0]
        """
        kwargs = {}
        if 'dtype' in data:
            kwargs['dtype'] = get_class(data['dtype'])

        if 'full' in data:
            t = torch.full(
                _size(data['full']), data.get('value', data.get('tensor')), **kwargs
            )
        elif 'zeros' in data:
            t = torch.zeros(_size(data['zeros']), **kwargs)
        elif 'ones' in data:
            t = torch.ones(_size(data['ones']), **kwargs)
        elif 'zeros_like' in data:
            input_param = process_object(data['zeros_like'], dic)
            t = torch.zeros_like(input_param.tensor, **kwargs)
        else:
            t = torch.tensor(data['tensor'], **kwargs)
        return cls(data['id'], t)


def _size(size) -> tuple[int, ...]:
    return (size,) if isinstance(size, int) else tuple(size)

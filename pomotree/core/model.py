from __future__ import annotations

import abc
from collections import OrderedDict
from typing import Optional, Union

import torch

from .parameter import AbstractParameter
from .serializable import Identifiable


class ModelListener(abc.ABC):
    @abc.abstractmethod
    def handle_model_changed(self, model, obj, index) -> None:
        ...


class ParameterListener(abc.ABC):
    @abc.abstractmethod
    def handle_parameter_changed(
        self, variable: AbstractParameter, index, event
    ) -> None:
        ...


class Model(Identifiable, ModelListener, ParameterListener):
    """Identifiable object owning parameters and sub-models.

    Assigning a parameter or a model to an attribute registers it and makes
    this model listen to it, so that a PoMo model hears about changes of its
    mutation model and of its own frequency and theta parameters. Listeners
    added with :meth:`add_model_listener` are notified through
    :meth:`fire_model_changed`.
    """

    def __init__(self, id_: Optional[str]) -> None:
        object.__setattr__(self, '_parameters', OrderedDict())
        object.__setattr__(self, '_models', OrderedDict())
        Identifiable.__init__(self, id_)
        self.listeners = []

    def __getattr__(self, name: str) -> Union[AbstractParameter, Model]:
        for registry in ('_parameters', '_models'):
            owned = self.__dict__.get(registry, {})
            if name in owned:
                return owned[name]
        raise AttributeError(
            "'{}' object has no attribute '{}'".format(type(self).__name__, name)
        )

    def __setattr__(self, name: str, value) -> None:
        if isinstance(value, (AbstractParameter, Model)):
            if '_parameters' not in self.__dict__:
                raise AttributeError(
                    'cannot assign {} before Model.__init__() call'.format(name)
                )
            self.__dict__.pop(name, None)
            self._parameters.pop(name, None)
            self._models.pop(name, None)
            if isinstance(value, AbstractParameter):
                self._parameters[name] = value
                value.add_parameter_listener(self)
            else:
                self._models[name] = value
                value.add_model_listener(self)
        else:
            object.__setattr__(self, name, value)

    def add_model_listener(self, listener: ModelListener) -> None:
        self.listeners.append(listener)

    def fire_model_changed(self, obj=None, index=None) -> None:
        for listener in self.listeners:
            listener.handle_model_changed(self, obj, index)

    @property
    @abc.abstractmethod
    def sample_shape(self) -> torch.Size:
        ...

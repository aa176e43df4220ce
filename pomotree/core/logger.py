from __future__ import annotations

import abc
import sys
from typing import Any, Union

from .model import Model
from .parameter import AbstractParameter
from .parameter_utils import save_state
from .serializable import JSONSerializable
from .utils import process_objects, register_class


class Runnable(abc.ABC):
    """Object executed by the command line once the configuration is built."""

    @abc.abstractmethod
    def run(self) -> None:
        ...


@register_class
class ModelReport(JSONSerializable, Runnable):
    r"""Write the report of models to a file or to the standard output.

    :param models: list of models implementing ``report()``
    :param kwargs: optionals
    """

    def __init__(self, models: list[Model], **kwargs) -> None:
        self.models = models
        self.file_name = kwargs.get('file_name', None)
        self.kwargs = kwargs

    def run(self) -> None:
        if self.file_name is not None:
            f = open(self.file_name, 'w')
        else:
            f = sys.stdout
        for model in self.models:
            f.write(model.report())
            f.write('\n')
        if self.file_name is not None:
            f.close()

    @classmethod
    def from_json(cls, data, dic) -> ModelReport:
        r"""
        Create a ModelReport object.

        :param data: json representation of ModelReport object.
        :type data: dict[str,Any]
        :param dic: dictionary containing additional objects that can be referenced
         in data.
        :type dic: dict[str,Any]

        :return: a :class:`~pomotree.core.logger.ModelReport` object.
        :rtype: ModelReport
        """
        models = process_objects(data['models'], dic)
        if not isinstance(models, list):
            models = [models]
        kwargs = {}
        if 'file_name' in data:
            kwargs['file_name'] = data['file_name']
        return cls(models, **kwargs)


@register_class
class CheckpointWriter(JSONSerializable, Runnable):
    r"""
    Save parameters and model states to a json checkpoint file.

    Models are written with the content of their ``state_dict()`` so that the
    command line can restore them with ``load_state_dict()``.

    :param objs: list of Parameter objects or models with a ``state_dict``
    :param str file_name: checkpoint file
    :param bool safely: keep the previous checkpoint until the new one is written
    """

    def __init__(
        self,
        objs: list[Union[AbstractParameter, Model]],
        file_name: str,
        safely: bool = True,
    ) -> None:
        self.objs = objs
        self.file_name = file_name
        self.safely = safely

    def entries(self) -> list[Any]:
        entries = []
        for obj in self.objs:
            if isinstance(obj, AbstractParameter):
                entries.append(obj)
            else:
                entry = {'id': obj.id, 'type': type(obj).__name__}
                entry.update(obj.state_dict())
                entries.append(entry)
        return entries

    def run(self) -> None:
        save_state(self.file_name, self.entries(), self.safely)

    @classmethod
    def from_json(cls, data, dic) -> CheckpointWriter:
        r"""
        Create a CheckpointWriter object.

        :param data: json representation of CheckpointWriter object.
        :type data: dict[str,Any]
        :param dic: dictionary containing additional objects that can be referenced
         in data.
        :type dic: dict[str,Any]

        :return: a :class:`~pomotree.core.logger.CheckpointWriter` object.
        :rtype: CheckpointWriter
        """
        objs = process_objects(data['objects'], dic)
        if not isinstance(objs, list):
            objs = [objs]
        return cls(objs, data['file_name'], data.get('safely', True))

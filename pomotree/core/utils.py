"""Building objects from JSON configurations and the errors it raises."""
import importlib
import json
import logging
import pkgutil
from enum import Enum
from typing import Any, Type, TypeVar

import torch

REGISTERED_CLASSES = {}

PARAMETER_TYPES = (
    'pomotree.core.parameter.Parameter',
    'pomotree.Parameter',
    'Parameter',
)

E = TypeVar('E', bound=Enum)


class JSONParseError(Exception):
    """Invalid JSON configuration (missing key, unknown ID or type)."""


class ConfigurationError(Exception):
    """Fatal model configuration error.

    Raised when a model cannot be set up with the given options or data (e.g.
    unsupported frequency type or no polymorphism to calibrate theta).
    """


class TensorEncoder(json.JSONEncoder):
    """Encoder writing tensors as ``{"values": [...], "type": dtype}``."""

    def default(self, obj):
        if isinstance(obj, torch.Tensor):
            return {'values': obj.tolist(), 'type': str(obj.dtype)}
        return super().default(obj)


def as_tensor(dct: dict, dtype=torch.float64):
    if str(dct.get('type', '')).startswith('torch') and 'values' in dct:
        return torch.tensor(dct['values'], dtype=dtype)
    return dct


class TensorDecoder(json.JSONDecoder):
    """Decoder turning objects written by :class:`TensorEncoder` back into
    tensors."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, object_hook=as_tensor, **kwargs)


def register_class(_cls, name=None):
    """Make a class usable as a ``type`` in JSON configurations without its
    module path."""
    logging.debug('register_class: {}'.format(_cls))
    REGISTERED_CLASSES[_cls.__name__ if name is None else name] = _cls
    return _cls


def get_class(full_name: str) -> Any:
    """Return a registered class or the attribute named by a dotted path
    (e.g. ``torch.float64``)."""
    try:
        return REGISTERED_CLASSES[full_name]
    except KeyError:
        pass
    module_name, _, attribute = full_name.rpartition('.')
    return getattr(importlib.import_module(module_name), attribute)


def package_contents(package_name: str) -> list[str]:
    """Names of the modules of a package and of its sub-packages."""
    package = importlib.import_module(package_name)
    return [
        module.name
        for module in pkgutil.walk_packages(package.__path__, package_name + '.')
        if not module.name.rpartition('.')[2].startswith('_')
    ]


def enum_from_str(enum_type: Type[E], value) -> E:
    """Return the member of enum_type matching value.

    Matching is case insensitive and accepts either the member name or its
    value.

    :example:
    >>> class Color(Enum):
    ...     RED = 'red'
    >>> enum_from_str(Color, 'RED')
    <Color.RED: 'red'>
    >>> enum_from_str(Color, 'Red')
    <Color.RED: 'red'>
    """
    if isinstance(value, enum_type):
        return value
    for member in enum_type:
        if str(value).lower() in (member.name.lower(), str(member.value).lower()):
            return member
    raise ConfigurationError(
        '{} is not a valid {} (choices: {})'.format(
            value,
            enum_type.__name__,
            ', '.join(str(member.value) for member in enum_type),
        )
    )


def process_objects(data, dic):
    """Build a list of objects or a single object."""
    if isinstance(data, list):
        return [process_object(element, dic) for element in data]
    return process_object(data, dic)


def process_object(data, dic):
    """Build an object from its dictionary or look it up by ID.

    A dictionary needs an ``id`` and a ``type``; the new object is stored in
    dic under its ID. A string is the ID of an object built earlier.

    :raises JSONParseError: unknown or duplicated ID, missing or unknown type
    """
    if isinstance(data, str):
        if data not in dic:
            raise JSONParseError("Object with ID `{}' not found".format(data))
        return dic[data]
    if not isinstance(data, dict):
        raise JSONParseError(
            'Object is not valid (should be str or object)\nProvided: {}'.format(data)
        )

    id_ = data['id']
    if id_ in dic:
        raise JSONParseError("Object with ID `{}' already exists".format(id_))
    if 'type' not in data:
        raise JSONParseError("Object with ID `{}' does not have a type".format(id_))
    try:
        klass = get_class(data['type'])
    except (ModuleNotFoundError, AttributeError, ValueError) as e:
        raise JSONParseError("{} in object with ID '{}'".format(e, id_)) from None

    dic[id_] = klass.from_json_safe(data, dic)
    return dic[id_]


def remove_comments(obj) -> None:
    """Delete, in place, the keys starting with an underscore."""
    if isinstance(obj, dict):
        for key in [key for key in obj if key.startswith('_')]:
            del obj[key]
        children = obj.values()
    elif isinstance(obj, list):
        children = obj
    else:
        return
    for child in children:
        remove_comments(child)


def update_parameters(json_object, parameters) -> None:
    """Replace, in place, the values of the parameters of a configuration.

    Every Parameter dictionary whose ID is a key of parameters keeps its
    ``id``, ``type`` and ``dtype`` and gets the saved ``tensor``.

    :param json_object: json object
    :param parameters: dictionary of parameter dictionaries keyed by ID
    """
    if isinstance(json_object, list):
        for element in json_object:
            update_parameters(element, parameters)
    elif isinstance(json_object, dict):
        if json_object.get('type') not in PARAMETER_TYPES:
            for value in json_object.values():
                update_parameters(value, parameters)
        elif json_object['id'] in parameters:
            for key in [
                key for key in json_object if key not in ('id', 'type', 'dtype')
            ]:
                del json_object[key]
            json_object['tensor'] = parameters[json_object['id']]['tensor']

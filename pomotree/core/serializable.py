"""Interfaces for objects created from, and referenced in, a JSON configuration."""

from __future__ import annotations

import abc
import logging
from typing import Any, Optional

from pomotree.core.utils import JSONParseError


class JSONSerializable(abc.ABC):
    """Interface making an object buildable from a JSON dictionary.

    Subclasses implement :meth:`from_json`; callers go through
    :meth:`from_json_safe` which turns missing keys into readable errors.
    """

    @classmethod
    @abc.abstractmethod
    def from_json(cls, data: dict[str, Any], dic: dict[str, Any]) -> Any:
        """Create an object from its dictionary representation.

        :param dict[str, Any] data: dictionary representation of a pomotree object.
        :param dict[str, Any] dic: objects already built, keyed by their ID.
        :return: pomotree object.
        :rtype: Any
        """
        ...

    @classmethod
    def from_json_safe(cls, data: dict[str, Any], dic: dict[str, Any]) -> Any:
        """Parse dictionary to create object.

        :param dict[str, Any] data: dictionary representation of a pomotree object.
        :param dict[str, Any] dic: objects already built, keyed by their ID.
        :raises JSONParseError: a key is missing or a nested object is invalid
        :return: pomotree object.
        :rtype: Any
        """
        try:
            return cls.from_json(data, dic)
        except KeyError as e:
            type_ = cls.__name__
            key = e.args[0]
            if key == "id" or "id" not in data:
                raise JSONParseError(f"Missing `id' key for object of type `{type_}'")
            else:
                id_ = data["id"]
                raise JSONParseError(
                    f"Missing key `{key}' for object of type `{type_}' with ID `{id_}'"
                )
        except JSONParseError as e:
            logging.error(e)
            raise JSONParseError(
                "Calling object of type `{}' with ID `{}'".format(
                    cls.__name__, data["id"]
                )
            )


class Identifiable(JSONSerializable, abc.ABC):
    """Object that other objects of a configuration can refer to by its ID.

    :param str or None id_: identifier, None for anonymous objects
    """

    def __init__(self, id_: Optional[str]) -> None:
        self._id = id_

    @property
    def id(self) -> Optional[str]:
        return self._id

    def __str__(self) -> str:
        return f"{type(self).__name__}({self._id})"

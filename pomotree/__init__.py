"""This is the root package of the pomotree framework."""
from ._version import __version__
from .core.parameter import Parameter

__all__ = [
    'Parameter',
]

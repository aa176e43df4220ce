r"""Markov substitution processes.

A substitution model is a continuous-time Markov chain described by its rate
matrix :math:`Q`: off-diagonal entries are instantaneous rates, diagonal
entries make every row sum to zero. Transition probabilities over a branch of
length :math:`t` are given by the matrix exponential

.. math::

    P(t) = e^{Qt}

The nucleotide models of this package (JC69, HKY, GTR and the general
non-reversible model) are used as the mutation models of the
polymorphism-aware :class:`~pomotree.evolution.pomo.PoMo` model, whose state
space tracks allele frequencies in a virtual population.
"""
from pomotree.evolution.substitution_model.general import (
    GeneralNonSymmetricSubstitutionModel,
)
from pomotree.evolution.substitution_model.nucleotide import GTR, HKY, JC69

__all__ = [
    'JC69',
    'HKY',
    'GTR',
    'GeneralNonSymmetricSubstitutionModel',
]

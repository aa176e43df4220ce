r"""Eigen decomposition of the PoMo generator.

Reversible generators go through the symmetric similarity transform of
:func:`~pomotree.evolution.substitution_model.eigen.reversible_eigen_system`.
A non-reversible generator is either decomposed with
:func:`torch.linalg.eig` (complex eigen system) or left to
:func:`torch.linalg.matrix_exp`.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

import torch
import torch.linalg
from torch import Tensor

from ...core.utils import ConfigurationError
from ..substitution_model.eigen import (
    EigenSystem,
    general_eigen_system,
    reversible_eigen_system,
)


class MatrixExpTechnique(Enum):
    EIGEN_DECOMPOSITION = 'eigen'
    SCALING_SQUARING = 'scaling_squaring'
    EIGEN3LIB_DECOMPOSITION = 'eigen3lib'
    LIE_MARKOV_DECOMPOSITION = 'lie_markov'


class SpectralDecomposer:
    """Decompose PoMo generators.

    :param bool reversible: whether the mutation model is reversible
    :param MatrixExpTechnique technique: matrix exponential technique used in
        the non-reversible case (ignored otherwise)
    """

    def __init__(
        self,
        reversible: bool,
        technique: MatrixExpTechnique = MatrixExpTechnique.EIGEN_DECOMPOSITION,
    ) -> None:
        if not reversible:
            if technique == MatrixExpTechnique.EIGEN3LIB_DECOMPOSITION:
                raise ConfigurationError(
                    'Eigen3lib decomposition does not work with PoMo'
                )
            elif technique == MatrixExpTechnique.LIE_MARKOV_DECOMPOSITION:
                raise ConfigurationError(
                    'Matrix decomposition in closed form not available for PoMo'
                )
            elif technique not in (
                MatrixExpTechnique.EIGEN_DECOMPOSITION,
                MatrixExpTechnique.SCALING_SQUARING,
            ):
                raise ConfigurationError(
                    'Matrix decomposition method unknown: {}'.format(technique)
                )
        self.reversible = reversible
        self.technique = technique

    @property
    def uses_matrix_exp(self) -> bool:
        return (
            not self.reversible
            and self.technique == MatrixExpTechnique.SCALING_SQUARING
        )

    def decompose(self, Q: Tensor, state_frequencies: Tensor) -> Optional[EigenSystem]:
        """Eigen system of Q, None when the matrix exponential is used."""
        if self.reversible:
            return reversible_eigen_system(Q, state_frequencies)
        if self.uses_matrix_exp:
            return None
        return general_eigen_system(Q)

    def p_t(
        self, Q: Tensor, state_frequencies: Tensor, branch_lengths: Tensor
    ) -> Tensor:
        if self.uses_matrix_exp:
            return torch.linalg.matrix_exp(
                Q * branch_lengths.unsqueeze(-1).unsqueeze(-1)
            )
        return self.decompose(Q, state_frequencies).p_t(branch_lengths)

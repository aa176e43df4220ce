r"""Eigen systems of rate matrices.

A reversible rate matrix :math:`Q` with stationary distribution :math:`\pi`
is similar to the symmetric matrix :math:`S = D^{1/2} Q D^{-1/2}`,
:math:`D = \mathrm{diag}(\pi)`, which is decomposed with
:func:`torch.linalg.eigh`. Any other rate matrix is decomposed with
:func:`torch.linalg.eig` and may have complex eigenvalues.
"""
from __future__ import annotations

from typing import NamedTuple

import torch
import torch.linalg
from torch import Tensor


class EigenSystem(NamedTuple):
    r""":math:`Q = V \mathrm{diag}(\lambda) V^{-1}`.

    The eigenvectors are complex when the rate matrix has complex eigenvalues.
    Every tensor may carry leading batch dimensions.
    """

    eigenvalues: Tensor
    eigenvalues_imag: Tensor
    eigenvectors: Tensor
    inv_eigenvectors: Tensor

    def p_t(self, branch_lengths: Tensor) -> Tensor:
        """Transition probability matrices, one per branch length.

        The leading dimensions of branch_lengths are matched with the batch
        dimensions of the eigen system.

        :param Tensor branch_lengths: branch lengths [..., B]
        :return: matrices [..., B, state_count, state_count]
        """
        if self.eigenvectors.is_complex():
            e = torch.complex(self.eigenvalues, self.eigenvalues_imag)
        else:
            e = self.eigenvalues
        batch_shape = e.shape[:-1] + (1,) * (branch_lengths.dim() - e.dim() + 1)
        V = self.eigenvectors.reshape(batch_shape + self.eigenvectors.shape[-2:])
        V_inv = self.inv_eigenvectors.reshape(
            batch_shape + self.inv_eigenvectors.shape[-2:]
        )
        exp_e = torch.exp(
            e.reshape(batch_shape + e.shape[-1:]) * branch_lengths.unsqueeze(-1)
        )
        P = V @ exp_e.diag_embed() @ V_inv
        return P.real if P.is_complex() else P


def reversible_eigen_system(Q: Tensor, frequencies: Tensor) -> EigenSystem:
    """Eigen system of a rate matrix in detailed balance with frequencies."""
    sqrt_pi = frequencies.sqrt()
    S = sqrt_pi.unsqueeze(-1) * Q / sqrt_pi.unsqueeze(-2)
    S = (S + S.transpose(-2, -1)) / 2.0
    e, v = torch.linalg.eigh(S)
    return EigenSystem(
        e,
        torch.zeros_like(e),
        v / sqrt_pi.unsqueeze(-1),
        v.transpose(-2, -1) * sqrt_pi.unsqueeze(-2),
    )


def general_eigen_system(Q: Tensor) -> EigenSystem:
    e, v = torch.linalg.eig(Q)
    return EigenSystem(e.real, e.imag, v, torch.linalg.inv(v))

import torch
from torch import Tensor


def harmonic(n: int) -> float:
    r"""Harmonic number :math:`H_n = \sum_{k=1}^n 1/k`.

    :param int n: non-negative integer
    :return: :math:`H_n`, 0 when n is 0
    :rtype: float

    :example:
    >>> harmonic(1)
    1.0
    >>> harmonic(3)
    1.8333333333333333
    >>> harmonic(0)
    0.0
    """
    return sum(1.0 / k for k in range(1, n + 1)) if n > 0 else 0.0


def ratios_to_simplex(ratios: Tensor) -> Tensor:
    r"""Map :math:`K-1` positive ratios to the :math:`K`-simplex.

    The last component is the reference with ratio 1.

    :example:
    >>> ratios = torch.tensor([1.0, 1.0, 2.0], dtype=torch.float64)
    >>> ratios_to_simplex(ratios).tolist()
    [0.2, 0.2, 0.4, 0.2]
    """
    weights = torch.cat((ratios, torch.ones_like(ratios[..., :1])), -1)
    return weights / weights.sum(-1, keepdim=True)


def simplex_to_ratios(simplex: Tensor) -> Tensor:
    """Inverse of :func:`ratios_to_simplex`.

    :example:
    >>> simplex = torch.tensor([0.2, 0.2, 0.4, 0.2], dtype=torch.float64)
    >>> simplex_to_ratios(simplex).tolist()
    [1.0, 1.0, 2.0]
    """
    return simplex[..., :-1] / simplex[..., -1:]

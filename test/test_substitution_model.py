import numpy as np
import pytest
import torch

from pomotree import Parameter
from pomotree.evolution.datatype import NucleotideDataType
from pomotree.evolution.substitution_model import (
    GTR,
    HKY,
    JC69,
    GeneralNonSymmetricSubstitutionModel,
)
from pomotree.evolution.substitution_model.abstract import MAX_RATE, MIN_RATE

# r=c(0.060602,0.402732,0.028230,0.047910,0.407249,0.053277)
# f=c(0.479367,0.172572,0.140933,0.207128)
# R=matrix(c(0,r[1],r[2],r[3],
#        r[1],0,r[4],r[5],
#        r[2],r[4],0,r[6],
#        r[3],r[5],r[6],0),nrow=4)
# Q=R %*% diag(f,4,4)
# diag(Q)=-apply(Q, 1, sum)
# Q=-Q/sum(diag(Q)*f)
# e=eigen(Q)
# e$vectors %*% diag(exp(e$values*0.1)) %*% solve(e$vectors)

GTR_RATES = [0.060602, 0.402732, 0.028230, 0.047910, 0.407249, 0.053277]
FREQUENCIES = [0.479367, 0.172572, 0.140933, 0.207128]
GTR_P = [
    [0.93717830, 0.009506685, 0.047505899, 0.005809115],
    [0.02640748, 0.894078744, 0.006448058, 0.073065722],
    [0.16158572, 0.007895626, 0.820605951, 0.009912704],
    [0.01344433, 0.060875872, 0.006744752, 0.918935042],
]


def test_GTR():
    rates = torch.tensor(np.array(GTR_RATES))
    pi = torch.tensor(np.array(FREQUENCIES))
    subst_model = GTR('gtr', Parameter('rates', rates), Parameter('pi', pi))
    P = subst_model.p_t(torch.tensor(np.array([[0.1]])))
    assert torch.allclose(P.squeeze(), torch.tensor(np.array(GTR_P)), rtol=1e-05)

    subst_model = GTR.from_json(
        {
            'id': 'gtr',
            'type': 'GTR',
            'rates': {
                'id': 'rates',
                'type': 'Parameter',
                'tensor': GTR_RATES,
                'dtype': 'torch.float64',
            },
            'frequencies': {
                'id': 'pi',
                'type': 'pomotree.Parameter',
                'tensor': FREQUENCIES,
                'dtype': 'torch.float64',
            },
        },
        {},
    )
    P = subst_model.p_t(torch.tensor([[0.1]], dtype=torch.float64))
    assert torch.allclose(P.squeeze(), torch.tensor(np.array(GTR_P)), rtol=1e-05)


def test_GTR_batch():
    rates = torch.tensor(np.array([GTR_RATES, [1.0, 3.0, 1.0, 1.0, 3.0, 1.0]]))
    pi = torch.tensor(np.array([FREQUENCIES, FREQUENCIES]))
    subst_model = GTR('gtr', Parameter('rates', rates), Parameter('pi', pi))
    P = subst_model.p_t(torch.tensor(np.array([[0.1], [0.001]])))
    P_expected = torch.tensor(
        np.array(
            [
                [GTR_P],
                [
                    [
                        [0.9992649548, 0.0001581235, 0.0003871353, 0.0001897863],
                        [0.0004392323, 0.9988625812, 0.0001291335, 0.0005690531],
                        [0.0013167952, 0.0001581235, 0.9983352949, 0.0001897863],
                        [0.0004392323, 0.0004741156, 0.0001291335, 0.9989575186],
                    ]
                ],
            ]
        )
    )
    assert torch.allclose(P, P_expected, rtol=1e-05)


@pytest.fixture
def hky_fixture():
    kappa = torch.tensor([3.0])
    pi = torch.tensor(FREQUENCIES)
    branch_lengths = torch.tensor([[0.1], [0.001]])
    P_expected = torch.tensor(
        [
            [
                [0.93211187, 0.01511617, 0.03462891, 0.01814305],
                [0.04198939, 0.89405292, 0.01234480, 0.05161289],
                [0.11778615, 0.01511617, 0.84895463, 0.01814305],
                [0.04198939, 0.04300210, 0.01234480, 0.90266370],
            ],
            [
                [0.9992649548, 0.0001581235, 0.0003871353, 0.0001897863],
                [0.0004392323, 0.9988625812, 0.0001291335, 0.0005690531],
                [0.0013167952, 0.0001581235, 0.9983352949, 0.0001897863],
                [0.0004392323, 0.0004741156, 0.0001291335, 0.9989575186],
            ],
        ]
    ).unsqueeze(1)
    return kappa, pi, P_expected, branch_lengths


def test_HKY(hky_fixture):
    # r=c(1,3,1,1,3,1)
    kappa, pi, hky_P_expected, branch_lengths = hky_fixture
    subst_model = HKY('hky', Parameter('kappa', kappa), Parameter('pi', pi))
    P = subst_model.p_t(branch_lengths)
    assert torch.allclose(P, hky_P_expected, atol=1e-06)


def test_HKY_json(hky_fixture):
    kappa, pi, hky_P_expected, branch_lengths = hky_fixture

    subst_model = HKY.from_json(
        {
            'id': 'hky',
            'type': 'HKY',
            'kappa': {
                'id': 'kappa',
                'type': 'Parameter',
                'tensor': kappa.tolist(),
            },
            'frequencies': {
                'id': 'pi',
                'type': 'Parameter',
                'tensor': pi.tolist(),
            },
        },
        {},
    )
    P = subst_model.p_t(branch_lengths)
    assert torch.allclose(P, hky_P_expected, atol=1e-06)


def test_JC69():
    subst_model = JC69('jc')
    assert subst_model.rate_dimension == 0
    assert subst_model.rate_parameter() is None
    P = subst_model.p_t(torch.tensor([[0.1]]))
    p_same = 0.25 + 0.75 * np.exp(-4.0 / 3.0 * 0.1)
    assert P[0, 0, 0, 0].item() == pytest.approx(p_same, rel=1e-5)
    assert P[0, 0, 0, 1].item() == pytest.approx((1.0 - p_same) / 3.0, rel=1e-5)


def test_rate_variables():
    rates = Parameter('rates', torch.tensor(GTR_RATES, dtype=torch.float64))
    subst_model = GTR(
        'gtr', rates, Parameter('pi', torch.tensor(FREQUENCIES, dtype=torch.float64))
    )
    assert subst_model.rate_dimension == 5
    variables = torch.zeros(7, dtype=torch.float64)
    subst_model.set_rate_variables(variables, 1)
    np.testing.assert_allclose(variables[1:6], GTR_RATES[:5])
    assert variables[0].item() == 0.0 and variables[6].item() == 0.0

    assert not subst_model.get_rate_variables(variables, 1)
    variables[2] = 1.5
    assert subst_model.get_rate_variables(variables, 1)
    assert rates.tensor[1].item() == 1.5
    assert rates.tensor[5].item() == GTR_RATES[5]

    lower = torch.zeros(7)
    upper = torch.zeros(7)
    bound_check = torch.ones(7, dtype=torch.bool)
    subst_model.set_rate_bounds(lower, upper, bound_check, 1)
    np.testing.assert_allclose(lower[1:6], np.full(5, MIN_RATE), rtol=1e-6)
    np.testing.assert_allclose(upper[1:6], np.full(5, MAX_RATE))
    assert lower[0].item() == 0.0
    assert bound_check.tolist() == [True, False, False, False, False, False, True]


def test_HKY_rate_variables():
    kappa = Parameter('kappa', torch.tensor([3.0], dtype=torch.float64))
    subst_model = HKY(
        'hky', kappa, Parameter('pi', torch.tensor(FREQUENCIES, dtype=torch.float64))
    )
    assert subst_model.rate_dimension == 1
    assert subst_model.get_rate_variables(torch.tensor([5.0], dtype=torch.float64))
    assert kappa.tensor.item() == 5.0
    np.testing.assert_allclose(
        subst_model.rates, [1.0, 5.0, 1.0, 1.0, 5.0, 1.0]
    )


def test_general_non_symmetric_matches_GTR():
    rates = torch.tensor(GTR_RATES, dtype=torch.float64)
    pi = torch.tensor(FREQUENCIES, dtype=torch.float64)
    mapping = torch.cat((torch.arange(6), torch.arange(6)))
    subst_model = GeneralNonSymmetricSubstitutionModel(
        'gen',
        NucleotideDataType(None),
        Parameter('mapping', mapping),
        Parameter('rates', rates),
        Parameter('pi', pi),
    )
    assert not subst_model.is_reversible
    P = subst_model.p_t(torch.tensor([[0.1]], dtype=torch.float64))
    np.testing.assert_allclose(P.squeeze(), np.array(GTR_P), rtol=1e-05)


def test_general_non_symmetric():
    rates = torch.tensor(
        [0.5, 2.0, 0.8, 1.2, 2.5, 1.0, 0.7, 1.5, 0.9, 1.1, 3.0, 1.0],
        dtype=torch.float64,
    )
    subst_model = GeneralNonSymmetricSubstitutionModel.from_json(
        {
            'id': 'unrest',
            'type': 'GeneralNonSymmetricSubstitutionModel',
            'rates': {'id': 'rates', 'type': 'Parameter', 'tensor': rates.tolist()},
            'frequencies': {
                'id': 'pi',
                'type': 'Parameter',
                'full': [4],
                'value': 0.25,
            },
        },
        {},
    )
    assert subst_model.rate_dimension == 11
    Q = subst_model.q()
    assert not torch.allclose(Q, Q.t())
    np.testing.assert_allclose(Q.sum(-1), np.zeros(4), atol=1e-6)
    P = subst_model.p_t(torch.tensor([[0.5]]))
    np.testing.assert_allclose(P.sum(-1), np.ones((1, 1, 4)), atol=1e-5)


def test_decompose_rate_matrix(gtr_model, unrest_model):
    Q = gtr_model.normalized_q()
    eigen_system = gtr_model.decompose_rate_matrix()
    Q_reconstructed = (
        eigen_system.eigenvectors
        @ eigen_system.eigenvalues.diag_embed()
        @ eigen_system.inv_eigenvectors
    )
    np.testing.assert_allclose(Q_reconstructed, Q, atol=1e-10)
    assert torch.all(eigen_system.eigenvalues_imag == 0.0)

    eigen_system = unrest_model.decompose_rate_matrix()
    P = eigen_system.p_t(torch.tensor([0.0, 0.5], dtype=torch.float64))
    assert P.shape == (2, 4, 4)
    np.testing.assert_allclose(P[0], torch.eye(4, dtype=torch.float64), atol=1e-8)
    np.testing.assert_allclose(P[1].sum(-1), np.ones(4), atol=1e-8)

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, Union

import torch
from torch import Tensor

from ...core.parameter import Parameter
from ...core.utils import (
    ConfigurationError,
    enum_from_str,
    process_object,
    register_class,
)
from ...math import ratios_to_simplex, simplex_to_ratios
from ...typing import ID
from ..substitution_model.abstract import SubstitutionModel
from .boundary_frequencies import (
    MAX_BOUNDARY_FREQ,
    MIN_BOUNDARY_FREQ,
    BoundaryFrequencyEstimator,
)
from .data import PoMoSitePattern, SamplingMethod
from .decomposition import EigenSystem, MatrixExpTechnique, SpectralDecomposer
from .mutation_rates import MutationRateNormalizer, MutationRates
from .rate_matrix import RateMatrixBuilder
from .state_space import ALLELE_COUNT, ALLELE_PAIRS, StateCodec

MIN_THETA = 1e-4
MAX_THETA = 0.1
UNSTABLE_FREQ = 1e-6


class FrequencyType(Enum):
    """Origin of the boundary frequencies."""

    EQUAL = 'FQ'
    EMPIRICAL = 'F'
    ESTIMATE = 'FO'
    USER_DEFINED = 'FU'


def _format(values) -> str:
    return ' '.join('{:.8g}'.format(value) for value in values)


@register_class
class PoMo(SubstitutionModel):
    r"""Polymorphism-aware phylogenetic model.

    The model describes the evolution of allele frequencies in populations of
    virtual size :math:`N` with boundary mutations and genetic drift. Its
    mutation rates are taken from a 4-state nucleotide model and rescaled so
    that the stationary heterozygosity equals :math:`\theta`.

    Free parameters are exposed to optimizers as a flat vector laid out as
    ``[mutation rates..., frequency ratios..., theta]``: the free rates of the
    mutation model (unless ``fixed_rates``), the ratios
    :math:`\pi_A/\pi_T, \pi_C/\pi_T, \pi_G/\pi_T` when the boundary frequencies
    are estimated, and :math:`\theta` when it is not fixed.

    The eigen system of the generator is kept in :attr:`eigen_system`. It is
    set by :meth:`decompose_rate_matrix` only and reset to None whenever the
    generator changes.

    :param id_: identifier
    :param SubstitutionModel mutation_model: 4-state mutation model
    :param PoMoSitePattern site_pattern: allele-count data
    :param FrequencyType frequency_type: origin of the boundary frequencies
    :param theta: None (estimated), ``'EMP'`` (fixed to Watterson's estimate)
        or a fixed value
    :param MatrixExpTechnique technique: matrix exponential technique for
        non-reversible mutation models
    :param bool fixed_rates: mutation rates are not optimized
    """

    def __init__(
        self,
        id_: ID,
        mutation_model: SubstitutionModel,
        site_pattern: PoMoSitePattern,
        frequency_type: FrequencyType = FrequencyType.EMPIRICAL,
        theta: Optional[Union[str, float]] = None,
        technique: MatrixExpTechnique = MatrixExpTechnique.EIGEN_DECOMPOSITION,
        fixed_rates: bool = False,
    ) -> None:
        super().__init__(id_)
        self.mutation_model = mutation_model
        self.site_pattern = site_pattern
        self.codec = StateCodec(site_pattern.virtual_population_size)
        self.frequency_type = frequency_type
        self.fixed_rates = fixed_rates
        self.decomposer = SpectralDecomposer(mutation_model.is_reversible, technique)
        self.normalizer = MutationRateNormalizer(mutation_model, self.codec)
        self.builder = RateMatrixBuilder(self.codec)

        estimator = BoundaryFrequencyEstimator(self.codec, site_pattern)
        self.empirical_frequencies = estimator.estimate_frequencies()
        self.empirical_theta = estimator.estimate_theta()
        self.highest_frequency_state = estimator.highest_frequency_state

        self._boundary_frequencies = Parameter(
            None, self._initial_frequencies(frequency_type)
        )
        self.theta_setting = theta
        self._theta = Parameter(
            None, torch.tensor(self._initial_theta(theta), dtype=torch.float64)
        )

        self._rates: Optional[MutationRates] = None
        self._state_frequencies: Optional[Tensor] = None
        self._Q: Optional[Tensor] = None
        self.eigen_system: Optional[EigenSystem] = None
        self._needs_update = True
        self.decompose_rate_matrix()

        logging.info('Initialized PoMo model {}'.format(self.name))
        logging.info(self.full_name)
        logging.debug(self.info())

    def _initial_frequencies(self, frequency_type: FrequencyType) -> Tensor:
        if frequency_type == FrequencyType.EQUAL:
            return torch.full((ALLELE_COUNT,), 1.0 / ALLELE_COUNT, dtype=torch.float64)
        elif frequency_type in (FrequencyType.EMPIRICAL, FrequencyType.ESTIMATE):
            return self.empirical_frequencies.clone()
        elif frequency_type == FrequencyType.USER_DEFINED:
            frequencies = self.mutation_model.frequencies.detach().to(
                dtype=torch.float64
            )
            if frequencies.sum() <= 0.0 or torch.any(frequencies < 0.0):
                raise ConfigurationError('State frequencies not specified')
            return frequencies / frequencies.sum()
        raise ConfigurationError('Unknown frequency type: {}'.format(frequency_type))

    def _initial_theta(self, theta: Optional[Union[str, float]]) -> float:
        if theta is None:
            if self.empirical_theta <= 0.0:
                logging.warning(
                    'We strongly discourage to use PoMo on data without polymorphisms'
                )
                raise ConfigurationError(
                    'Setting the level of polymorphism without population data is'
                    ' not supported'
                )
            return self.empirical_theta
        if isinstance(theta, str) and theta.upper() == 'EMP':
            value = self.empirical_theta
            logging.info(
                'Level of polymorphism is fixed to the estimate from the data:'
                ' {:.5g}'.format(value)
            )
        else:
            try:
                value = float(theta)
            except ValueError:
                raise ConfigurationError(
                    'Invalid level of polymorphism: {}'.format(theta)
                ) from None
            logging.info(
                'Level of polymorphism is fixed to the value given by the user:'
                ' {:.5g}'.format(value)
            )
        if not value > 0.0:
            raise ConfigurationError(
                'Level of polymorphism must be positive (got {})'.format(value)
            )
        return value

    @property
    def fixed_theta(self) -> bool:
        return self.theta_setting is not None

    @property
    def fixed_theta_emp(self) -> bool:
        return isinstance(self.theta_setting, str) and self.theta_setting.upper() == 'EMP'

    @property
    def theta(self) -> Tensor:
        return self._theta.tensor

    @property
    def boundary_frequencies(self) -> Tensor:
        return self._boundary_frequencies.tensor

    @property
    def sampling_method(self) -> SamplingMethod:
        return self.site_pattern.sampling_method

    @property
    def technique(self) -> MatrixExpTechnique:
        return self.decomposer.technique

    @property
    def is_reversible(self) -> bool:
        return self.mutation_model.is_reversible

    @property
    def state_count(self) -> int:
        return self.codec.state_count

    def update(self) -> None:
        """Normalize the mutation rates and rebuild the generator if needed."""
        if self._needs_update:
            self._rates = self.normalizer.normalize(self.boundary_frequencies, self.theta)
            self._rebuild()

    def _rebuild(self) -> None:
        self._state_frequencies, self._Q = self.builder.build(
            self.boundary_frequencies, self._rates
        )
        self._needs_update = False
        self.eigen_system = None

    @property
    def rates(self) -> MutationRates:
        """Normalized mutation rates."""
        self.update()
        return self._rates

    @property
    def frequencies(self) -> Tensor:
        self.update()
        return self._state_frequencies

    def q(self) -> Tensor:
        self.update()
        return self._Q

    def p_t(self, branch_lengths: Tensor) -> Tensor:
        self.update()
        return self.decomposer.p_t(
            self._Q, self._state_frequencies, branch_lengths.to(dtype=torch.float64)
        )

    def decompose_rate_matrix(self) -> Optional[EigenSystem]:
        """Rebuild the generator and decompose it.

        :return: the eigen system, None with scaling and squaring
        """
        self.update()
        self._rebuild()
        self.eigen_system = self.decomposer.decompose(self._Q, self._state_frequencies)
        return self.eigen_system

    def scale_mutation_rates(self, scale: Union[float, Tensor]) -> None:
        """Multiply the mutation rates by scale and rebuild the generator.

        The rates are not normalized to theta afterwards.
        """
        self.update()
        self._rates = self._rates.scale(scale)
        self._rebuild()
        self.fire_model_changed()

    def is_unstable(self) -> bool:
        return bool(torch.any(self.frequencies < UNSTABLE_FREQ))

    @property
    def rate_dimension(self) -> int:
        return 0 if self.fixed_rates else self.mutation_model.rate_dimension

    @property
    def frequency_dimension(self) -> int:
        return ALLELE_COUNT - 1 if self.frequency_type == FrequencyType.ESTIMATE else 0

    @property
    def free_parameter_count(self) -> int:
        return (
            self.rate_dimension
            + self.frequency_dimension
            + (0 if self.fixed_theta else 1)
        )

    def get_variables(self, variables: Tensor) -> bool:
        """Read the free parameters from variables and recompute the model.

        :return: True if a parameter changed
        """
        changed = False
        offset = 0
        if self.rate_dimension > 0:
            changed |= self.mutation_model.get_rate_variables(variables, offset)
            offset += self.rate_dimension
        if self.frequency_dimension > 0:
            ratios = variables[offset : offset + self.frequency_dimension]
            frequencies = ratios_to_simplex(ratios.to(dtype=torch.float64))
            if not torch.equal(frequencies, self.boundary_frequencies):
                self._boundary_frequencies.tensor = frequencies
                changed = True
            offset += self.frequency_dimension
        if not self.fixed_theta:
            theta = variables[offset].to(dtype=torch.float64)
            if not torch.equal(theta, self.theta):
                self._theta.tensor = theta
                changed = True
        self._needs_update = True
        self.update()
        return changed

    def set_variables(self, variables: Tensor) -> None:
        """Write the free parameters into variables."""
        offset = 0
        if self.rate_dimension > 0:
            self.mutation_model.set_rate_variables(variables, offset)
            offset += self.rate_dimension
        if self.frequency_dimension > 0:
            variables[offset : offset + self.frequency_dimension] = simplex_to_ratios(
                self.boundary_frequencies
            )
            offset += self.frequency_dimension
        if not self.fixed_theta:
            variables[offset] = self.theta

    def set_bounds(self, lower: Tensor, upper: Tensor, bound_check: Tensor) -> None:
        offset = 0
        if self.rate_dimension > 0:
            self.mutation_model.set_rate_bounds(lower, upper, bound_check, offset)
            offset += self.rate_dimension
        if self.frequency_dimension > 0:
            end = offset + self.frequency_dimension
            lower[offset:end] = MIN_BOUNDARY_FREQ / MAX_BOUNDARY_FREQ
            upper[offset:end] = MAX_BOUNDARY_FREQ / MIN_BOUNDARY_FREQ
            bound_check[offset:end] = False
            offset = end
        if not self.fixed_theta:
            lower[offset] = MIN_THETA
            upper[offset] = MAX_THETA
            bound_check[offset] = False

    def handle_model_changed(self, model, obj, index) -> None:
        self._needs_update = True
        self.eigen_system = None
        self.fire_model_changed()

    def handle_parameter_changed(self, variable, index, event) -> None:
        self._needs_update = True
        self.eigen_system = None
        self.fire_model_changed()

    @property
    def sample_shape(self) -> torch.Size:
        return torch.Size([])

    @property
    def name(self) -> str:
        name = type(self.mutation_model).__name__ + '+P'
        if self.fixed_theta:
            name += '{' + str(self.theta_setting) + '}'
        name += '+N{}'.format(self.codec.N)
        name += '+S' if self.sampling_method == SamplingMethod.SAMPLED else '+W'
        return name

    @property
    def full_name(self) -> str:
        return (
            'PoMo with N={} and {} mutation model; Sampling method: {};'
            ' {} states in total.'.format(
                self.codec.N,
                type(self.mutation_model).__name__,
                self.sampling_method.value.capitalize(),
                self.codec.state_count,
            )
        )

    def report_rates(self) -> str:
        M = self.rates.mutation
        rates = [float(M[a, b]) for a, b in ALLELE_PAIRS]
        return 'Mutation rates (in the order AC, AG, AT, CG, CT, GT):\n{}\n'.format(
            _format(rates)
        )

    def report(self) -> str:
        lines = [
            ('Reversible' if self.is_reversible else 'Non-reversible') + ' PoMo.',
            'Virtual population size N: {}'.format(self.codec.N),
            'Sampling method: {}.'.format(self.sampling_method.value.capitalize()),
            '',
            'Estimated quantities',
            '--------------------',
        ]
        if self.frequency_type == FrequencyType.ESTIMATE:
            lines.append('Frequencies of boundary states (in the order A, C, G, T):')
            lines.append(_format(self.boundary_frequencies.tolist()))
        lines.append(self.report_rates().rstrip('\n'))
        if not self.fixed_theta:
            label = 'Estimated heterozygosity'
        elif self.fixed_theta_emp:
            label = 'Empirical heterozygosity'
        else:
            label = 'User-defined heterozygosity'
        lines.append('{}: {:.8g}'.format(label, float(self.theta)))
        lines.extend(
            [
                '',
                'Empirical quantities',
                '--------------------',
                'Frequencies of boundary states (in the order A, C, G, T):',
                _format(self.empirical_frequencies.tolist()),
                "Watterson's Theta: {:.8g}".format(self.empirical_theta),
            ]
        )
        if self.highest_frequency_state is not None:
            lines.append(
                'Most frequent state: {}'.format(
                    self.codec.label(self.highest_frequency_state)
                )
            )
        return '\n'.join(lines) + '\n'

    def info(self) -> str:
        M = self.rates.mutation
        lines = [
            'Frequency of boundary states: '
            + _format(self.boundary_frequencies.tolist()),
            'Mutation rate matrix:',
        ]
        lines.extend(_format(row) for row in M.tolist())
        return '\n'.join(lines) + '\n'

    def state_dict(self) -> dict[str, Optional[Tensor]]:
        """Mutation rates and boundary frequencies of the model."""
        rate_parameter = self.mutation_model.rate_parameter()
        return {
            'rates': None
            if rate_parameter is None
            else rate_parameter.tensor.detach().clone(),
            'frequencies': self.boundary_frequencies.detach().clone(),
        }

    def load_state_dict(self, state: dict[str, Any]) -> None:
        """Restore the mutation rates and boundary frequencies.

        Theta is not part of the state and keeps its current value.
        """
        rate_parameter = self.mutation_model.rate_parameter()
        if state.get('rates') is not None and rate_parameter is not None:
            rate_parameter.tensor = torch.as_tensor(
                state['rates'], dtype=rate_parameter.tensor.dtype
            )
        self._boundary_frequencies.tensor = torch.as_tensor(
            state['frequencies'], dtype=torch.float64
        )
        self._needs_update = True
        self.decompose_rate_matrix()

    @classmethod
    def from_json(cls, data, dic):
        r"""Create a PoMo object from a dictionary.

        **JSON attributes**:

         Mandatory:
          - id (str): identifier of object.
          - mutation_model (SubstitutionModel): 4-state mutation model.
          - site_pattern (PoMoSitePattern): allele-count data.

         Optional:
          - frequencies (str): ``equal``, ``empirical`` (default),
            ``estimate`` or ``user_defined`` (or FQ, F, FO, FU).
          - theta (str or float): ``EMP`` or a fixed value (default: estimated).
          - technique (str): ``eigen`` (default), ``scaling_squaring``.
          - fixed_rates (bool): do not optimize the mutation rates
            (default: false).

        **JSON Examples**

        .. code-block:: json

          {
            "id": "pomo",
            "type": "PoMo",
            "mutation_model": {
              "id": "hky",
              "type": "HKY",
              "kappa": {"id": "kappa", "type": "Parameter", "tensor": [3.0]},
              "frequencies": {"id": "pi", "type": "Parameter", "full": [4],
                              "value": 0.25}
            },
            "site_pattern": "patterns",
            "theta": "EMP"
          }
        """
        id_ = data['id']
        mutation_model = process_object(data['mutation_model'], dic)
        site_pattern = process_object(data['site_pattern'], dic)
        frequency_type = enum_from_str(
            FrequencyType, data.get('frequencies', FrequencyType.EMPIRICAL.name)
        )
        technique = enum_from_str(
            MatrixExpTechnique,
            data.get('technique', MatrixExpTechnique.EIGEN_DECOMPOSITION.value),
        )
        return cls(
            id_,
            mutation_model,
            site_pattern,
            frequency_type,
            data.get('theta', None),
            technique,
            data.get('fixed_rates', False),
        )

"""Polymorphism-aware phylogenetic model (PoMo).

PoMo extends a 4-state nucleotide mutation model to populations: a state is
either a population fixed for one allele (boundary state) or a population
segregating two alleles with a given count (polymorphic state). The generator
combines boundary mutations, whose rates come from the mutation model, and
genetic drift.
"""
from pomotree.evolution.pomo.boundary_frequencies import (
    MAX_BOUNDARY_FREQ,
    MIN_BOUNDARY_FREQ,
    BoundaryFrequencyEstimator,
    clamp_boundary_frequencies,
)
from pomotree.evolution.pomo.data import AlleleCounts, PoMoSitePattern, SamplingMethod
from pomotree.evolution.pomo.decomposition import (
    EigenSystem,
    MatrixExpTechnique,
    SpectralDecomposer,
)
from pomotree.evolution.pomo.model import FrequencyType, PoMo
from pomotree.evolution.pomo.mutation_rates import (
    MutationRateNormalizer,
    MutationRates,
)
from pomotree.evolution.pomo.rate_matrix import (
    Drift,
    Mutation,
    RateMatrixBuilder,
    classify_transition,
)
from pomotree.evolution.pomo.state_space import (
    BoundaryState,
    PolymorphicState,
    StateCodec,
    StateRangeError,
)

__all__ = [
    'AlleleCounts',
    'BoundaryFrequencyEstimator',
    'BoundaryState',
    'Drift',
    'EigenSystem',
    'FrequencyType',
    'MatrixExpTechnique',
    'MAX_BOUNDARY_FREQ',
    'MIN_BOUNDARY_FREQ',
    'Mutation',
    'MutationRateNormalizer',
    'MutationRates',
    'PoMo',
    'PoMoSitePattern',
    'PolymorphicState',
    'RateMatrixBuilder',
    'SamplingMethod',
    'SpectralDecomposer',
    'StateCodec',
    'StateRangeError',
    'classify_transition',
    'clamp_boundary_frequencies',
]

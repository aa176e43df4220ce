import pytest
import torch

from pomotree.core.utils import ConfigurationError, JSONParseError, process_object
from pomotree.evolution.datatype import NucleotideDataType
from pomotree.evolution.pomo import AlleleCounts, PoMoSitePattern, SamplingMethod
from pomotree.evolution.pomo.data import parse_allele_counts


def test_parse_allele_counts():
    nuc = NucleotideDataType(None)
    assert parse_allele_counts({'C': 3, 'A': 7}, nuc) == AlleleCounts(0, 7, 1, 3)
    assert parse_allele_counts({'g': 4, 'T': 0}, nuc) == AlleleCounts(2, 4, 2, 0)
    assert parse_allele_counts(None, nuc) is None
    assert parse_allele_counts({}, nuc) is None
    with pytest.raises(ConfigurationError):
        parse_allele_counts({'A': 1, 'C': 1, 'G': 1}, nuc)
    with pytest.raises(ConfigurationError):
        parse_allele_counts({'N': 1}, nuc)
    with pytest.raises(ConfigurationError):
        parse_allele_counts({'A': -1}, nuc)


def test_from_json():
    dic = {}
    site_pattern = process_object(
        {
            'id': 'patterns',
            'type': 'PoMoSitePattern',
            'virtual_population_size': 10,
            'sampling': 'SAMPLED',
            'seed': 2,
            'patterns': [
                [{'A': 7, 'C': 3}, {'A': 10}],
                [{'G': 4}, None],
            ],
            'weights': [3, 1],
        },
        dic,
    )
    assert dic['patterns'] is site_pattern
    assert site_pattern.sampling_method == SamplingMethod.SAMPLED
    assert site_pattern.virtual_population_size == 10
    assert site_pattern.pattern_count == 2
    codec = site_pattern.codec
    assert site_pattern.states.tolist() == [
        [codec.compose(7, 0, 1), 0],
        [2, codec.state_count],
    ]
    histogram = site_pattern.compute_absolute_state_freq()
    assert histogram[codec.compose(7, 0, 1)].item() == 3
    assert histogram[0].item() == 3
    assert histogram[2].item() == 1
    assert histogram.sum().item() == 7


def test_from_json_defaults():
    site_pattern = PoMoSitePattern.from_json(
        {
            'id': 'patterns',
            'type': 'PoMoSitePattern',
            'virtual_population_size': 4,
            'patterns': [[{'A': 2, 'T': 1}], [{'C': 4}]],
        },
        {},
    )
    assert site_pattern.sampling_method == SamplingMethod.WEIGHTED
    assert site_pattern.weights.tolist() == [1, 1]
    assert list(site_pattern) == [
        ((AlleleCounts(0, 2, 3, 1),), 1),
        ((AlleleCounts(1, 4, 1, 0),), 1),
    ]
    with pytest.raises(ConfigurationError):
        site_pattern.states


def test_missing_key():
    with pytest.raises(JSONParseError):
        process_object(
            {'id': 'patterns', 'type': 'PoMoSitePattern', 'patterns': []}, {}
        )


def test_invalid_weights():
    with pytest.raises(ConfigurationError):
        PoMoSitePattern(None, [[None]], [1, 2], 10)


def test_invalid_sampling():
    with pytest.raises(ConfigurationError):
        PoMoSitePattern.from_json(
            {
                'id': 'patterns',
                'virtual_population_size': 4,
                'sampling': 'random',
                'patterns': [],
            },
            {},
        )


def test_sampled_reproducible():
    patterns = [[AlleleCounts(0, 3, 2, 5), AlleleCounts(1, 1, 3, 2)]] * 10

    def states(seed):
        generator = torch.Generator()
        generator.manual_seed(seed)
        return PoMoSitePattern(
            None, patterns, [1] * 10, 6, SamplingMethod.SAMPLED, generator
        ).states

    assert torch.equal(states(5), states(5))

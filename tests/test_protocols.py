"""Tests for the relaxation configuration and state."""

import json

import numpy as np
import numpy.testing as npt
import pytest

from bodyFitted.ParticleRelax.errors import ConfigurationError
from bodyFitted.ParticleRelax.sph.protocols import RelaxationConfig, RelaxationPhase, RelaxationState


def makeConfig(**overrides):
    values = dict(domainMin=[-5.0, -5.0], domainMax=[5.0, 5.0])
    values.update(overrides)
    return RelaxationConfig(**values)


class TestDerivedQuantities:
    def test_defaults(self):
        config = makeConfig(particleSpacing=0.5)
        assert config.dimensions == 2
        npt.assert_allclose(config.referenceSmoothingLength, 1.15 * 0.5)
        npt.assert_allclose(config.supportRadius, 2.0 * 1.15 * 0.5)
        npt.assert_allclose(config.bandWidth, 0.25)
        npt.assert_allclose(config.targetOffset, -0.25)
        npt.assert_allclose(config.tolerance, 5e-4)
        npt.assert_allclose(config.transition, 4.0 * 0.5 * 2.0)

    def test_explicit_overrides(self):
        config = makeConfig(
            surfaceBandWidth=0.8, surfaceTargetOffset=-0.1,
            boundingTolerance=0.01, transitionWidth=3.0,
        )
        assert (config.bandWidth, config.targetOffset) == (0.8, -0.1)
        assert (config.tolerance, config.transition) == (0.01, 3.0)

    def test_domain_converted_to_arrays(self):
        config = makeConfig()
        assert isinstance(config.domainMin, np.ndarray)
        npt.assert_allclose(config.domainSize, [10.0, 10.0])


class TestValidation:
    def test_valid_returns_self(self):
        config = makeConfig()
        assert config.validate() is config

    @pytest.mark.parametrize('overrides', [
        dict(domainMin=[0.0, 0.0, 0.0]),
        dict(domainMin=[0.0], domainMax=[1.0]),
        dict(domainMax=[5.0, -5.0]),
        dict(particleSpacing=0.0),
        dict(hSpacingRatio=-1.0),
        dict(minRatio=2.0, maxRatio=1.0),
        dict(minRatio=0.0),
        dict(surfaceBandWidth=-0.1),
        dict(boundingTolerance=0.0),
        dict(transitionWidth=0.0),
        dict(kernelType='gaussian'),
        dict(iterations=-1),
        dict(recordInterval=-5),
        dict(jitterFraction=1.0),
        dict(workers=0),
    ])
    def test_rejects_inconsistent_values(self, overrides):
        with pytest.raises(ConfigurationError):
            makeConfig(**overrides).validate()

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            makeConfig(workers=0).validate()


class TestJsonLoading:
    def test_sections(self, tmp_path):
        data = {
            'domain': {'min': [-25, -25, -25], 'max': [25, 25, 25]},
            'particles': {'spacing': 1.0, 'hSpacingRatio': 1.3, 'minRatio': 1.0, 'maxRatio': 1.5,
                          'kernelType': 'wendlandC2'},
            'surface': {'bandWidth': 0.4, 'bounding': False, 'compensation': False},
            'relaxation': {'iterations': 50, 'recordInterval': 10, 'randomSeed': 11, 'workers': 2},
        }
        path = tmp_path / 'relax.json'
        path.write_text(json.dumps(data))

        config = RelaxationConfig.fromJson(str(path))
        assert config.dimensions == 3
        assert config.hSpacingRatio == 1.3
        assert config.maxRatio == 1.5
        assert config.kernelType == 'wendlandC2'
        assert config.bandWidth == 0.4
        assert config.surfaceBounding is False
        assert config.boundaryCompensation is False
        assert config.containExterior is True
        assert (config.iterations, config.recordInterval) == (50, 10)
        assert (config.randomSeed, config.workers) == (11, 2)

    def test_missing_domain(self):
        with pytest.raises(ConfigurationError):
            RelaxationConfig.fromDict({'particles': {'spacing': 1.0}})

    def test_invalid_values_rejected(self):
        with pytest.raises(ConfigurationError):
            RelaxationConfig.fromDict({
                'domain': {'min': [0, 0], 'max': [1, 1]},
                'particles': {'minRatio': 3.0, 'maxRatio': 2.0},
            })


class TestRelaxationState:
    def test_mean_neighbor_count(self):
        state = RelaxationState(neighborCountHistogram=np.array([1, 0, 2, 1]))
        npt.assert_allclose(state.meanNeighborCount, (0 * 1 + 2 * 2 + 3 * 1) / 4)

    def test_empty_histogram(self):
        assert RelaxationState().meanNeighborCount == 0.0

    def test_completion(self):
        assert RelaxationState(iteration=10, iterationBudget=10).isComplete
        assert not RelaxationState(iteration=3, iterationBudget=10).isComplete

    def test_summary_plain_types(self):
        state = RelaxationState(
            iteration=4, nParticles=10, phase=RelaxationPhase.SURFACE_BOUND,
            neighborCountHistogram=np.array([0, 10]),
        )
        summary = state.summary()
        assert summary['iteration'] == 4
        assert summary['meanNeighborCount'] == 1.0
        assert isinstance(summary['nParticles'], int)

    def test_immutable(self):
        with pytest.raises(AttributeError):
            RelaxationState().iteration = 3

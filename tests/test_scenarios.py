"""Tests for the sphere body scenario and the command-line runner."""

import json
import logging

import numpy as np
import numpy.testing as npt
import pytest

from bodyFitted.loggingConfig import setupLogging
from bodyFitted.ParticleRelax.runner import RelaxationRunner, buildParser, main
from bodyFitted.ParticleRelax.scenarios.sphereBody import PRESETS, SphereBodyConfig, createSphereBody


class TestSphereBody:
    def test_presets(self):
        assert set(PRESETS) == {'small2D', 'small3D', 'standard3D'}
        standard = SphereBodyConfig.standard3D()
        assert standard.dimensions == 3
        assert (standard.iterations, standard.recordInterval) == (1000, 100)
        assert standard.domainHalfWidth == 25.0

    def test_create_small_2d(self):
        config, field, particles = createSphereBody(SphereBodyConfig.small2D())
        assert config.dimensions == 2
        npt.assert_allclose(config.domainMin, [-15.0, -15.0])
        assert np.all(field.lower <= config.domainMin)
        assert np.all(field.upper >= config.domainMax)
        assert particles.nParticles > 0
        assert np.all(particles.signedDistances < 0.0)
        assert np.all(np.linalg.norm(particles.positions, axis=1) < 10.0)


class TestRunner:
    def test_parser_defaults(self):
        args = buildParser().parse_args([])
        assert args.preset == 'small2D'
        assert args.config is None
        assert not args.no_export

    def test_run_sphere(self, tmp_path):
        bodyConfig = SphereBodyConfig(
            domainHalfWidth=8.0, bodyRadius=5.0, iterations=4, recordInterval=2, dimensions=2,
        )
        result = RelaxationRunner(showProgress=False).runSphere(
            bodyConfig, exportDir=str(tmp_path), scenarioName='disk',
        )
        assert result['finalState'].iteration == 4
        assert result['nFrames'] == 3
        assert result['exportPath'].endswith('.json')
        assert result['totalVolume'] == pytest.approx(result['particles'].totalVolume())
        assert result['totalVolume'] > 0.0

        with open(result['exportPath']) as f:
            data = json.load(f)
        assert data['levelSet']['shape'] == list(createSphereBody(bodyConfig)[1].shape)
        counts = data['frames'][-1]['cellOccupancy']['counts']
        assert sum(counts) == result['finalState'].nParticles

    def test_main_without_export(self, capsys):
        main(['--preset', 'small2D', '--iterations', '2', '--no-export'])
        out = capsys.readouterr().out
        assert 'RELAXATION SUMMARY' in out
        assert 'EXPORTING' not in out

    def test_run_from_config(self, tmp_path):
        path = tmp_path / 'disk.json'
        path.write_text(
            '{"domain": {"min": [-8, -8], "max": [8, 8]},'
            ' "body": {"radius": 5.0},'
            ' "particles": {"spacing": 1.0, "maxRatio": 1.0},'
            ' "relaxation": {"iterations": 3, "recordInterval": 3}}'
        )
        result = RelaxationRunner(showProgress=False).runFromConfig(str(path), doExport=False)
        assert result['finalState'].iteration == 3
        assert result['exportPath'] is None


class TestLogging:
    def test_setup_logging(self, tmp_path):
        logFile = tmp_path / 'relax.log'
        logger = setupLogging(logging.DEBUG, str(logFile))
        assert logger.name == 'bodyFitted'
        assert len(logger.handlers) == 2

        logger = setupLogging(logging.INFO)
        assert len(logger.handlers) == 1
        assert logger.level == logging.INFO

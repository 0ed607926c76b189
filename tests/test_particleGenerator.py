"""Tests for the body-fitted particle generator."""

import dataclasses

import numpy as np
import numpy.testing as npt
import pytest

from bodyFitted.ParticleRelax.errors import GeometryError
from bodyFitted.ParticleRelax.geometry import SignedDistanceField, Sphere
from bodyFitted.ParticleRelax.sph.particleGenerator import ParticleGenerator, generateParticles


class TestUniformLattice:
    def test_lattice_covers_domain(self, diskConfig, diskField):
        sites = ParticleGenerator(diskConfig, diskField).latticePositions()
        assert sites.shape == (256, 2)
        npt.assert_allclose(sites.min(axis=0), [-7.5, -7.5])
        npt.assert_allclose(sites.max(axis=0), [7.5, 7.5])

    def test_keeps_every_interior_site(self, diskConfig, diskField, disk):
        generator = ParticleGenerator(diskConfig, diskField)
        sites = generator.latticePositions()
        expected = np.sum(disk.signedDistance(sites) < 0.0)

        particles = generator.generate()
        assert particles.nParticles == expected
        assert np.all(particles.signedDistances < 0.0)
        npt.assert_allclose(particles.signedDistances, diskField.distance(particles.positions))

    def test_uniform_attributes(self, diskConfig, diskField):
        particles = generateParticles(diskConfig, diskField)
        npt.assert_allclose(particles.ratios, 1.0)
        npt.assert_allclose(particles.volumes, 1.0)
        npt.assert_allclose(particles.smoothingLengths, 1.15)

    def test_total_volume_matches_body(self, diskConfig, diskField):
        particles = generateParticles(diskConfig, diskField)
        assert particles.totalVolume() == pytest.approx(particles.nParticles)
        assert particles.totalVolume() == pytest.approx(np.pi * 5.0 ** 2, rel=0.1)


class TestMultiResolution:
    @pytest.fixture
    def bigDisk(self):
        return SignedDistanceField.fromShape(Sphere([0.0, 0.0], 14.0), [-20.0, -20.0], [20.0, 20.0], 0.5)

    @pytest.fixture
    def multiConfig(self, diskConfig):
        return dataclasses.replace(
            diskConfig, domainMin=np.array([-16.0, -16.0]), domainMax=np.array([16.0, 16.0]),
            maxRatio=2.0, transitionWidth=4.0,
        )

    def test_ratios_within_bounds(self, multiConfig, bigDisk):
        particles = ParticleGenerator(multiConfig, bigDisk).generate()
        assert np.all(particles.ratios >= 1.0)
        assert np.all(particles.ratios <= 2.0)
        npt.assert_allclose(particles.volumes, particles.ratios ** 2)
        npt.assert_allclose(particles.smoothingLengths, 1.15 * particles.ratios)

    def test_coarse_core_is_thinned(self, multiConfig, bigDisk):
        uniform = dataclasses.replace(multiConfig, maxRatio=1.0)
        nUniform = ParticleGenerator(uniform, bigDisk).generate().nParticles
        particles = ParticleGenerator(multiConfig, bigDisk).generate()
        assert particles.nParticles < 0.8 * nUniform

        # Surface layer keeps the finest resolution
        nearSurface = np.abs(particles.signedDistances) <= multiConfig.bandWidth
        npt.assert_allclose(particles.ratios[nearSurface], 1.0)

    def test_reproducible_with_seed(self, multiConfig, bigDisk):
        first = ParticleGenerator(multiConfig, bigDisk).generate()
        second = ParticleGenerator(multiConfig, bigDisk).generate()
        npt.assert_array_equal(first.positions, second.positions)


class TestFailures:
    def test_body_outside_domain(self, diskConfig):
        field = SignedDistanceField.fromShape(
            Sphere([-30.0, -30.0], 3.0), [-40.0, -40.0], [10.0, 10.0], 0.5
        )
        with pytest.raises(GeometryError):
            ParticleGenerator(diskConfig, field).generate()

    def test_missing_field(self, diskConfig):
        with pytest.raises(GeometryError):
            ParticleGenerator(diskConfig, None)

    def test_dimension_mismatch(self, diskConfig, sphereField):
        with pytest.raises(GeometryError):
            ParticleGenerator(diskConfig, sphereField)

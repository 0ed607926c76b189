"""Tests for the displacement phase of the relaxation loop."""

import dataclasses

import numpy as np
import numpy.testing as npt
import pytest

from bodyFitted.ParticleRelax import constants as const
from bodyFitted.ParticleRelax.sph.cellLinkedList import CellLinkedList
from bodyFitted.ParticleRelax.sph.kernels import createKernel
from bodyFitted.ParticleRelax.sph.neighborRelation import NeighborRelationBuilder
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.protocols import RelaxationPhase, RelaxationState
from bodyFitted.ParticleRelax.sph.relaxationDynamics import RelaxationDisplacement


def displace(config, field, positions):
    particles = ParticleSystem.fromPositions(
        np.array(positions, dtype=float), config.particleSpacing, config.hSpacingRatio
    )
    particles.signedDistances[:] = field.distance(particles.positions)

    kernel = createKernel(config.kernelType, config.dimensions)
    index = CellLinkedList(config.supportRadius, config.dimensions)
    index.build(particles.positions, particles.ratios)
    relation = NeighborRelationBuilder(kernel, config.referenceSmoothingLength).build(particles, index)

    phase = RelaxationDisplacement(config, kernel, field)
    state = phase.compute(particles, relation, RelaxationState())
    return particles, state, phase


class TestPinnedSurfaceLayer:
    @pytest.fixture
    def pushConfig(self, diskConfig):
        return dataclasses.replace(diskConfig, boundaryCompensation=False)

    def test_outward_push_removed_on_target_surface(self, pushConfig, diskField):
        # (4.5, 0) sits on phi = targetOffset; its neighbor pushes it outward
        particles, state, _ = displace(pushConfig, diskField, [[4.5, 0.0], [3.6, 0.0]])
        npt.assert_array_equal(particles.positions[0], [4.5, 0.0])
        assert particles.positions[1, 0] < 3.6
        assert state.phase == RelaxationPhase.COMPUTE_DISPLACEMENT
        assert state.maxDisplacement > 0.0

    def test_outward_push_kept_without_bounding(self, pushConfig, diskField):
        config = dataclasses.replace(pushConfig, surfaceBounding=False)
        particles, _, _ = displace(config, diskField, [[4.5, 0.0], [3.6, 0.0]])
        assert particles.positions[0, 0] > 4.5

    def test_inward_push_kept(self, pushConfig, diskField):
        # Neighbor outside the target surface pushes the pinned particle inward
        particles, _, _ = displace(pushConfig, diskField, [[4.5, 0.0], [5.2, 0.0]])
        assert particles.positions[0, 0] < 4.5

    def test_pinned_mask(self, diskConfig, diskField):
        _, _, phase = displace(diskConfig, diskField, [[0.0, 0.0], [1.0, 0.0]])
        phi = np.array([-3.0, diskConfig.targetOffset, 0.0, 2.0])
        npt.assert_array_equal(phase.pinnedMask(phi), [False, True, True, True])

        inner = dataclasses.replace(diskConfig, containExterior=False)
        _, _, phase = displace(inner, diskField, [[0.0, 0.0], [1.0, 0.0]])
        npt.assert_array_equal(phase.pinnedMask(phi), [False, True, True, False])


class TestPseudoTimeStep:
    @pytest.fixture
    def plainConfig(self, diskConfig):
        return dataclasses.replace(diskConfig, surfaceBounding=False, boundaryCompensation=False)

    def test_weak_residual_gives_small_step(self, plainConfig, diskField):
        # Pair near the edge of the kernel support: tiny repulsion
        particles, state, _ = displace(plainConfig, diskField, [[-1.1, 0.0], [1.1, 0.0]])
        assert 0.0 < state.maxDisplacement < 0.01
        assert particles.positions[1, 0] - particles.positions[0, 0] > 2.2
        npt.assert_allclose(particles.positions[0], -particles.positions[1])

    def test_strong_residual_step_is_bounded(self, plainConfig, diskField):
        particles, state, _ = displace(plainConfig, diskField, [[-0.15, 0.0], [0.15, 0.0]])
        h = plainConfig.referenceSmoothingLength
        bound = 0.5 * const.timeStepFactor * h / const.minDensityRatio
        assert 0.01 < state.maxDisplacement <= bound
        assert particles.positions[1, 0] - particles.positions[0, 0] > 0.3

    def test_uniform_lattice_does_not_move(self, plainConfig, diskField):
        axis = np.arange(-3.0, 3.5, 1.0)
        x, y = np.meshgrid(axis, axis, indexing='ij')
        positions = np.column_stack([x.ravel(), y.ravel()])
        particles, _, _ = displace(plainConfig, diskField, positions)

        # The central particle has a complete, symmetric neighborhood
        center = np.argmin(np.linalg.norm(positions, axis=1))
        npt.assert_allclose(particles.positions[center], [0.0, 0.0], atol=1e-12)

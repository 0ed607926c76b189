# -- Relaxation Dynamics -- #

'''
Displacement computation for level-set guided particle relaxation.

Every particle is driven by a constant pseudo-pressure, so the only
force is a repulsion from its neighbors weighted by their volumes:

    a_i = -2 * sum_j V_j * grad_W_ij

A uniform, fully supported neighborhood sums to zero; any local
crowding produces a push toward emptier space. Near the surface the
neighborhood is one-sided and the sum pushes particles outward. With
boundary compensation enabled the missing exterior contribution is
added from the level set,

    a_i += -2 * integral_{phi > 0} grad_W(r_i - y, h_i) dy

evaluated on a fixed stencil around the particle, which restores the
balance at the surface.

With surface bounding enabled, particles pinned on the target
iso-surface keep only the tangential and inward part of a_i: the
bounding phase would cancel any outward move, so their outward push
neither displaces them nor limits the step of the others.

The pseudo time step is bounded per particle by

    dt_i^2 = C * h_i^2 / (max(max_k(|a_k| h_k), R_min) * sigma_i)

where sigma_i = sum_j V_j W_ij (self included) is the normalized
particle number density, so no particle moves farther than
0.5 * C * h_i / sigma_i in one iteration. Once the largest residual
falls below R_min the step shrinks with it, and the layout settles
instead of oscillating around equilibrium.

All reads in this phase use the positions of the previous phase;
each particle writes only its own row.

References:
-----------
Zhu, Zhang & Hu (2021) -- A CAD-compatible body-fitted particle
    generator for arbitrarily complex geometry
Colagrossi et al. (2012) -- Particle packing algorithm for SPH schemes
'''

from __future__ import annotations

import dataclasses
import itertools
import math

import numpy as np

from bodyFitted.ParticleRelax import constants as const
from bodyFitted.ParticleRelax.geometry.signedDistanceField import SignedDistanceField
from bodyFitted.ParticleRelax.sph.kernels import SphKernel
from bodyFitted.ParticleRelax.sph.neighborRelation import NeighborRelation
from bodyFitted.ParticleRelax.sph.parallel import ParticleExecutor
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.protocols import RelaxationConfig, RelaxationPhase, RelaxationState


######################################################################
# -- One-Time Randomization -- #
######################################################################

def randomizePositions(
    particles: ParticleSystem,
    fraction: float,
    particleSpacing: float,
    rng: np.random.Generator,
) -> float:
    '''
    Jitter every particle by a uniform random offset.

    Each coordinate moves by up to fraction * local spacing, which
    breaks the symmetry of the initial lattice.

    Parameters:
    -----------
    particles : ParticleSystem
        Particles to jitter (modified in place)
    fraction : float
        Maximum offset as a fraction of the local spacing
    particleSpacing : float
        Base spacing dp0 [m]
    rng : np.random.Generator
        Random source

    Returns:
    --------
    float : Largest displacement applied [m]
    '''
    if particles.nParticles == 0 or fraction <= 0.0:
        return 0.0

    localSpacing = particleSpacing * particles.ratios
    offsets = rng.uniform(-1.0, 1.0, size=particles.positions.shape)
    offsets *= (fraction * localSpacing)[:, np.newaxis]
    particles.positions += offsets
    return float(np.max(np.linalg.norm(offsets, axis=1)))


######################################################################
# -- Displacement Phase -- #
######################################################################

class RelaxationDisplacement:
    '''
    COMPUTE_DISPLACEMENT phase of the relaxation loop.

    Parameters:
    -----------
    config : RelaxationConfig
        Relaxation configuration
    kernel : SphKernel
        Smoothing kernel (same as the neighbor relation)
    field : SignedDistanceField
        Level set used for the boundary compensation
    executor : ParticleExecutor | None
        Fan-out over particles (serial if None)
    '''

    def __init__(
        self,
        config: RelaxationConfig,
        kernel: SphKernel,
        field: SignedDistanceField,
        executor: ParticleExecutor | None = None,
    ) -> None:
        self._kernel = kernel
        self._field = field
        self._compensate = config.boundaryCompensation
        self._pinShell = config.surfaceBounding
        self._targetOffset = config.targetOffset
        self._bandWidth = config.bandWidth
        self._containExterior = config.containExterior
        self._shellTolerance = config.tolerance
        self._executor = executor or ParticleExecutor(workers=1)

        self._stencilStep = const.compensationStencilStep
        self._stencil, self._stencilGradients = self._buildCompensationStencil(
            config.dimensions
        )

    ######################################################################
    # -- Phase Entry -- #
    ######################################################################

    def compute(
        self,
        particles: ParticleSystem,
        relation: NeighborRelation,
        state: RelaxationState,
    ) -> RelaxationState:
        '''
        Move every particle to its tentative position.

        Parameters:
        -----------
        particles : ParticleSystem
            Particles (positions updated in place)
        relation : NeighborRelation
            Neighbor relation of the current positions
        state : RelaxationState
            Incoming iteration state

        Returns:
        --------
        RelaxationState : State with the largest displacement
        '''
        nParticles = particles.nParticles
        dimensions = particles.dimensions
        accelerations = np.zeros((nParticles, dimensions))
        densityRatios = np.ones(nParticles)

        # Pass 1: accelerations and number densities
        self._executor.forEachRange(
            nParticles,
            lambda start, stop: self._accumulate(
                particles, relation, accelerations, densityRatios, start, stop
            ),
        )

        # Barrier: the time step needs the global maximum
        scaled = np.linalg.norm(accelerations, axis=1) * particles.smoothingLengths
        maxScaled = float(np.max(scaled)) if nParticles else 0.0
        if maxScaled <= const.tinyValue:
            return dataclasses.replace(
                state, phase=RelaxationPhase.COMPUTE_DISPLACEMENT, maxDisplacement=0.0
            )
        maxScaled = max(maxScaled, const.minResidualScale)

        # Pass 2: integrate over the pseudo time step
        displacementNorms = np.zeros(nParticles)
        self._executor.forEachRange(
            nParticles,
            lambda start, stop: self._integrate(
                particles, accelerations, densityRatios, maxScaled,
                displacementNorms, start, stop,
            ),
        )

        return dataclasses.replace(
            state,
            phase=RelaxationPhase.COMPUTE_DISPLACEMENT,
            maxDisplacement=float(np.max(displacementNorms)),
        )

    ######################################################################
    # -- Per-Range Work -- #
    ######################################################################

    def _accumulate(
        self,
        particles: ParticleSystem,
        relation: NeighborRelation,
        accelerations: np.ndarray,
        densityRatios: np.ndarray,
        start: int,
        stop: int,
    ) -> None:
        '''Repulsion and number density of particles [start, stop).'''
        rows = slice(relation.offsets[start], relation.offsets[stop])
        local = relation.owners[rows] - start
        neighborVolumes = particles.volumes[relation.neighbors[rows]]

        accel = np.zeros((stop - start, particles.dimensions))
        np.add.at(accel, local, neighborVolumes[:, np.newaxis] * relation.gradients[rows])
        accel *= -const.repulsionFactor

        h = particles.smoothingLengths[start:stop]
        sigma = particles.volumes[start:stop] * self._kernel.evaluateBatch(np.zeros(stop - start), h)
        np.add.at(sigma, local, neighborVolumes * relation.weights[rows])

        if self._compensate:
            accel += self._exteriorCompensation(particles, start, stop)

        if self._pinShell:
            self._dropOutwardNormal(particles, accel, start, stop)

        # Isolated particles do not move this iteration
        isolated = np.diff(relation.offsets[start:stop + 1]) == 0
        accel[isolated] = 0.0

        accelerations[start:stop] = accel
        densityRatios[start:stop] = sigma

    def _integrate(
        self,
        particles: ParticleSystem,
        accelerations: np.ndarray,
        densityRatios: np.ndarray,
        maxScaled: float,
        displacementNorms: np.ndarray,
        start: int,
        stop: int,
    ) -> None:
        '''Apply the bounded pseudo time step to particles [start, stop).'''
        h = particles.smoothingLengths[start:stop]
        sigma = np.maximum(densityRatios[start:stop], const.minDensityRatio)
        dtSquare = const.timeStepFactor * h * h / (maxScaled * sigma)

        displacement = 0.5 * accelerations[start:stop] * dtSquare[:, np.newaxis]
        particles.positions[start:stop] += displacement
        displacementNorms[start:stop] = np.linalg.norm(displacement, axis=1)

    def pinnedMask(self, signedDistances: np.ndarray) -> np.ndarray:
        '''
        Particles on or beyond the target iso-surface that surface
        bounding holds in place along the normal.

        Parameters:
        -----------
        signedDistances : np.ndarray
            Cached signed distances [m], shape (N,)

        Returns:
        --------
        np.ndarray : Boolean mask, shape (N,)
        '''
        mask = signedDistances >= self._targetOffset - self._shellTolerance
        if not self._containExterior:
            mask &= signedDistances <= self._bandWidth
        return mask

    def _dropOutwardNormal(
        self, particles: ParticleSystem, accel: np.ndarray, start: int, stop: int
    ) -> None:
        '''Remove the outward normal component of pinned particles [start, stop).'''
        pinned = self.pinnedMask(particles.signedDistances[start:stop])
        if not np.any(pinned):
            return

        normals = self._field.gradient(particles.positions[start:stop][pinned])
        outward = np.maximum(np.einsum('ij,ij->i', accel[pinned], normals), 0.0)
        accel[pinned] -= outward[:, np.newaxis] * normals

    ######################################################################
    # -- Level-Set Boundary Compensation -- #
    ######################################################################

    def _exteriorCompensation(self, particles: ParticleSystem, start: int, stop: int) -> np.ndarray:
        '''
        -2 * integral of grad_W over the exterior region, for particles
        [start, stop) whose support reaches the surface.
        '''
        dimensions = particles.dimensions
        result = np.zeros((stop - start, dimensions))

        h = particles.smoothingLengths[start:stop]
        phi = particles.signedDistances[start:stop]
        near = np.abs(phi) < self._kernel.supportFactor * h
        if not np.any(near):
            return result

        hNear = h[near]
        centers = particles.positions[start:stop][near]
        nNear = centers.shape[0]
        nStencil = self._stencil.shape[0]

        samples = (
            centers[:, np.newaxis, :]
            + self._stencil[np.newaxis, :, :] * hNear[:, np.newaxis, np.newaxis]
        ).reshape(nNear * nStencil, dimensions)
        samplePhi = self._field.distance(samples).reshape(nNear, nStencil)

        # Exterior fraction of each quadrature cell (linear ramp across one cell)
        exterior = np.clip(
            0.5 + samplePhi / (self._stencilStep * hNear[:, np.newaxis]), 0.0, 1.0
        )
        integral = (exterior @ self._stencilGradients) / hNear[:, np.newaxis]

        result[near] = -const.repulsionFactor * integral
        return result

    def _buildCompensationStencil(self, dimensions: int) -> tuple[np.ndarray, np.ndarray]:
        '''
        Quadrature nodes (in units of h) inside the kernel support and
        the kernel gradient at each node for h = 1, pre-multiplied by
        the node volume.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (offsets, shape (M, dim); weighted gradients, shape (M, dim))
        '''
        step = self._stencilStep
        support = self._kernel.supportFactor
        nSide = int(math.floor(support / step))
        ticks = step * np.arange(-nSide, nSide + 1)

        offsets = np.array(list(itertools.product(ticks, repeat=dimensions)))
        radius = np.linalg.norm(offsets, axis=1)
        inside = radius < support
        offsets = offsets[inside]
        radius = radius[inside]

        # grad_W(r_i - y) with r_i - y = -offset * h, evaluated at h = 1
        gradients = self._kernel.gradientBatch(-offsets, radius, 1.0) * step ** dimensions
        return offsets, gradients

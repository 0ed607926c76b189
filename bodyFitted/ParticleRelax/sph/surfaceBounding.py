# -- Level-Set Surface Bounding -- #

'''
Level-set correction of tentative particle positions.

Particles whose signed distance falls inside the near-surface band,
|phi| <= bandWidth, are projected along the field gradient onto the
iso-surface phi = targetOffset. With containExterior enabled, particles
beyond the band on the exterior side (phi > bandWidth) are pulled back
the same way, so no particle can leak through a thin or strongly
curved wall. All other particles keep their tentative position.

Positions are finally clamped to the domain box, and the cached signed
distance of every particle is refreshed for the resolution update.

References:
-----------
Zhu, Zhang & Hu (2021) -- A CAD-compatible body-fitted particle
    generator for arbitrarily complex geometry
'''

from __future__ import annotations

import dataclasses

import numpy as np

from bodyFitted.ParticleRelax.geometry.signedDistanceField import SignedDistanceField
from bodyFitted.ParticleRelax.sph.parallel import ParticleExecutor
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.protocols import RelaxationConfig, RelaxationPhase, RelaxationState


class SurfaceBounding:
    '''
    SURFACE_BOUND phase of the relaxation loop.

    Parameters:
    -----------
    config : RelaxationConfig
        Band width, target offset, tolerance and domain bounds
    field : SignedDistanceField
        Shared read-only distance field
    executor : ParticleExecutor | None
        Fan-out over particles (serial if None)
    '''

    def __init__(
        self,
        config: RelaxationConfig,
        field: SignedDistanceField,
        executor: ParticleExecutor | None = None,
    ) -> None:
        self._field = field
        self._bandWidth = config.bandWidth
        self._targetOffset = config.targetOffset
        self._tolerance = config.tolerance
        self._containExterior = config.containExterior
        self._domainMin = config.domainMin
        self._domainMax = config.domainMax
        self._executor = executor or ParticleExecutor(workers=1)

    def selectBounded(self, signedDistances: np.ndarray) -> np.ndarray:
        '''
        Mask of particles subject to correction.

        Parameters:
        -----------
        signedDistances : np.ndarray
            Signed distances at the tentative positions [m]

        Returns:
        --------
        np.ndarray : Boolean mask, shape (N,)
        '''
        mask = np.abs(signedDistances) <= self._bandWidth
        if self._containExterior:
            mask |= signedDistances > self._bandWidth
        return mask

    def bound(self, particles: ParticleSystem, state: RelaxationState) -> RelaxationState:
        '''
        Correct near-surface particles and refresh signed distances.

        Parameters:
        -----------
        particles : ParticleSystem
            Particles at their tentative positions (modified in place)
        state : RelaxationState
            Incoming iteration state

        Returns:
        --------
        RelaxationState : State with bounding diagnostics
        '''
        nParticles = particles.nParticles
        bounded = np.zeros(nParticles, dtype=bool)

        def boundRange(start: int, stop: int) -> None:
            rows = slice(start, stop)
            positions = particles.positions[rows]
            mask = self.selectBounded(self._field.distance(positions))

            if np.any(mask):
                positions[mask] = self._field.project(
                    positions[mask],
                    targetDistance=self._targetOffset,
                    tolerance=self._tolerance,
                )
            np.clip(positions, self._domainMin, self._domainMax, out=positions)

            particles.signedDistances[rows] = self._field.distance(positions)
            bounded[rows] = mask

        self._executor.forEachRange(nParticles, boundRange)

        surfaceError = np.abs(particles.signedDistances[bounded] - self._targetOffset)
        return dataclasses.replace(
            state,
            phase=RelaxationPhase.SURFACE_BOUND,
            nBounded=int(np.sum(bounded)),
            maxSurfaceError=float(np.max(surfaceError)) if surfaceError.size else 0.0,
            maxExteriorDistance=_maxExterior(particles.signedDistances),
        )

    def refreshDistances(self, particles: ParticleSystem, state: RelaxationState) -> RelaxationState:
        '''
        Clamp to the domain and refresh distances without correcting
        (plain relaxation, surface bounding disabled).
        '''
        def refreshRange(start: int, stop: int) -> None:
            rows = slice(start, stop)
            positions = particles.positions[rows]
            np.clip(positions, self._domainMin, self._domainMax, out=positions)
            particles.signedDistances[rows] = self._field.distance(positions)

        self._executor.forEachRange(particles.nParticles, refreshRange)
        return dataclasses.replace(
            state,
            nBounded=0,
            maxSurfaceError=0.0,
            maxExteriorDistance=_maxExterior(particles.signedDistances),
        )


def _maxExterior(signedDistances: np.ndarray) -> float:
    if signedDistances.size == 0:
        return 0.0
    return float(max(np.max(signedDistances), 0.0))

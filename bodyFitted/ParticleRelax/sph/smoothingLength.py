# -- Smoothing-Length Ratio Controller -- #

'''
Assigns each particle's resolution from its distance to the surface.

Particles inside the near-surface band take the finest ratio. Beyond
the band the ratio blends toward the coarsest one over the transition
width, weighted by the kernel profile:

    s      = max(|phi| - bandWidth, 0)
    w      = W(2 s / transition) / W(0)          (1 at s = 0, 0 at s >= transition)
    ratio  = w * minRatio + (1 - w) * maxRatio

The kernel profile decreases monotonically, so the ratio never
decreases with distance, and the result always lies in
[minRatio, maxRatio]. The smoothing length and reference volume of a
particle follow its ratio.

References:
-----------
Yu, Zhu, Zhang & Hu (2023) -- Level-set based pre-processing
    techniques for particle methods
'''

from __future__ import annotations

import dataclasses

import numpy as np

from bodyFitted.ParticleRelax.sph.kernels import SphKernel
from bodyFitted.ParticleRelax.sph.parallel import ParticleExecutor
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.protocols import RelaxationConfig, RelaxationPhase, RelaxationState


class SmoothingLengthController:
    '''
    Maps signed surface distance to smoothing-length ratio.

    Parameters:
    -----------
    config : RelaxationConfig
        Ratio bounds, band width, transition width and spacing
    kernel : SphKernel
        Kernel whose profile shapes the blend
    executor : ParticleExecutor | None
        Fan-out for the per-particle update (serial if None)
    '''

    def __init__(
        self,
        config: RelaxationConfig,
        kernel: SphKernel,
        executor: ParticleExecutor | None = None,
    ) -> None:
        self._minRatio = config.minRatio
        self._maxRatio = config.maxRatio
        self._bandWidth = config.bandWidth
        self._transition = config.transition
        self._particleSpacing = config.particleSpacing
        self._hRef = config.referenceSmoothingLength
        self._kernel = kernel
        self._executor = executor or ParticleExecutor(workers=1)

    @property
    def isUniform(self) -> bool:
        '''True when all particles share one resolution.'''
        return self._minRatio == self._maxRatio

    def targetRatio(self, signedDistances: np.ndarray) -> np.ndarray:
        '''
        Smoothing-length ratio for the given surface distances.

        Parameters:
        -----------
        signedDistances : np.ndarray
            Signed distances to the surface [m], shape (N,)

        Returns:
        --------
        np.ndarray : Ratios in [minRatio, maxRatio], shape (N,)
        '''
        phi = np.asarray(signedDistances, dtype=float)
        if self.isUniform:
            return np.full(phi.shape, self._minRatio)

        beyondBand = np.maximum(np.abs(phi) - self._bandWidth, 0.0)
        weight = self._kernel.shapeFunction(2.0 * beyondBand / self._transition)
        ratio = weight * self._minRatio + (1.0 - weight) * self._maxRatio
        return np.clip(ratio, self._minRatio, self._maxRatio)

    def apply(self, particles: ParticleSystem, start: int, stop: int) -> None:
        '''Reclassify particles [start, stop) from their cached distances.'''
        rows = slice(start, stop)
        ratios = self.targetRatio(particles.signedDistances[rows])
        spacing = self._particleSpacing * ratios

        particles.ratios[rows] = ratios
        particles.smoothingLengths[rows] = self._hRef * ratios
        particles.volumes[rows] = spacing ** particles.dimensions

    def update(self, particles: ParticleSystem, state: RelaxationState) -> RelaxationState:
        '''
        UPDATE_RESOLUTION phase: reclassify every particle.

        Parameters:
        -----------
        particles : ParticleSystem
            Particles with up-to-date signed distances
        state : RelaxationState
            Incoming iteration state

        Returns:
        --------
        RelaxationState : State with the new ratio range
        '''
        self._executor.forEachRange(
            particles.nParticles,
            lambda start, stop: self.apply(particles, start, stop),
        )

        ratioMin, ratioMax = _ratioRange(particles)
        return dataclasses.replace(
            state,
            phase=RelaxationPhase.UPDATE_RESOLUTION,
            ratioMin=ratioMin,
            ratioMax=ratioMax,
        )


def _ratioRange(particles: ParticleSystem) -> tuple[float, float]:
    if particles.nParticles == 0:
        return (float('nan'), float('nan'))
    return (float(np.min(particles.ratios)), float(np.max(particles.ratios)))

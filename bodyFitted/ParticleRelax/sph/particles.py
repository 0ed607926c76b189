# -- Relaxation Particle System -- #

'''
Dataclass representing the particle state of a relaxation run.

Stores positions, reference volumes, smoothing lengths, resolution
ratios and cached surface distances as contiguous NumPy arrays for
vectorized operations. A particle's identity is its row index, which
is stable for the whole run: the engine never inserts or removes rows.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class ParticleSystem:
    '''
    Particle state mutated in place by the relaxation loop.

    Parameters:
    -----------
    positions : np.ndarray
        Particle positions [m], shape (N, dim)
    volumes : np.ndarray
        Reference volumes [m^dim], shape (N,)
    smoothingLengths : np.ndarray
        Smoothing lengths h_i [m], shape (N,)
    ratios : np.ndarray
        Smoothing-length ratios h_i / h_ref, shape (N,)
    signedDistances : np.ndarray
        Cached signed distance to the body surface [m], shape (N,)
    '''

    positions: np.ndarray
    volumes: np.ndarray
    smoothingLengths: np.ndarray
    ratios: np.ndarray
    signedDistances: np.ndarray

    @property
    def nParticles(self) -> int:
        '''Total number of particles.'''
        return self.positions.shape[0]

    @property
    def dimensions(self) -> int:
        '''Number of spatial dimensions (2 or 3).'''
        return self.positions.shape[1]

    def totalVolume(self) -> float:
        '''Sum of reference volumes [m^dim].'''
        return float(np.sum(self.volumes))

    def copy(self) -> ParticleSystem:
        '''Deep copy of all particle arrays.'''
        return ParticleSystem(
            positions=self.positions.copy(),
            volumes=self.volumes.copy(),
            smoothingLengths=self.smoothingLengths.copy(),
            ratios=self.ratios.copy(),
            signedDistances=self.signedDistances.copy(),
        )

    @classmethod
    def fromPositions(
        cls,
        positions: np.ndarray,
        particleSpacing: float,
        hSpacingRatio: float,
        ratio: float = 1.0,
    ) -> ParticleSystem:
        '''
        Create a single-resolution particle system at given positions.

        Volumes are (particleSpacing * ratio)^dim; signed distances
        are left at zero until a field is evaluated.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, dim)
        particleSpacing : float
            Base spacing dp0 [m]
        hSpacingRatio : float
            Ratio h_ref / dp0
        ratio : float
            Smoothing-length ratio assigned to every particle

        Returns:
        --------
        ParticleSystem : New particle system
        '''
        positions = np.array(positions, dtype=float)
        nParticles, dimensions = positions.shape
        spacing = particleSpacing * ratio

        return cls(
            positions=positions,
            volumes=np.full(nParticles, spacing ** dimensions),
            smoothingLengths=np.full(nParticles, hSpacingRatio * spacing),
            ratios=np.full(nParticles, float(ratio)),
            signedDistances=np.zeros(nParticles),
        )

# -- Sphere Body Scenario -- #

'''
Body-fitted particles for a sphere (a disk in 2D).

The body is described analytically, sampled onto a regular node grid
as a distance image, and filled with particles that are then relaxed
against the sampled field. This mirrors the image-driven workflow:
the relaxation only ever sees the sampled field, never the analytic
shape.

The scenario creates:
1. A Sphere centered in a cubic domain
2. A SignedDistanceField sampled at half the particle spacing, padded
   by the coarsest kernel support so every query near the body is
   interpolated rather than extrapolated
3. Particles from the multi-resolution generator
4. A RelaxationConfig with the scenario's domain and parameters
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from bodyFitted.ParticleRelax import constants as const
from bodyFitted.ParticleRelax.geometry.shapes import Sphere
from bodyFitted.ParticleRelax.geometry.signedDistanceField import SignedDistanceField
from bodyFitted.ParticleRelax.sph.particleGenerator import ParticleGenerator
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.protocols import RelaxationConfig


######################################################################
# -- Sphere Body Configuration -- #
######################################################################

@dataclass
class SphereBodyConfig:
    '''
    Configuration for a sphere body scenario.

    Parameters:
    -----------
    domainHalfWidth : float
        Half edge length of the cubic (square) domain [m]
    bodyRadius : float
        Sphere radius [m]
    particleSpacing : float
        Base particle spacing dp0 [m]
    hSpacingRatio : float
        Ratio h_ref / particleSpacing
    minRatio : float
        Finest smoothing-length ratio (at the surface)
    maxRatio : float
        Coarsest smoothing-length ratio (deep inside)
    iterations : int
        Relaxation iteration budget
    recordInterval : int
        Iterations between snapshots
    fieldSpacingFactor : float
        Distance-image node spacing as a fraction of particleSpacing
    kernelType : str
        Kernel type: 'cubicSpline' or 'wendlandC2'
    dimensions : int
        2 for a disk, 3 for a sphere
    randomSeed : int | None
        Seed for generator acceptance and jitter
    workers : int
        Worker threads for the per-particle phases
    '''

    domainHalfWidth: float = 25.0
    bodyRadius: float = 15.0
    particleSpacing: float = 1.0
    hSpacingRatio: float = const.defaultHSpacingRatio
    minRatio: float = const.defaultMinRatio
    maxRatio: float = const.defaultMaxRatio
    iterations: int = const.defaultIterations
    recordInterval: int = const.defaultRecordInterval
    fieldSpacingFactor: float = 0.5
    kernelType: str = const.defaultKernelType
    dimensions: int = 3
    randomSeed: int | None = 7
    workers: int = 1

    @property
    def center(self) -> np.ndarray:
        '''Body center (the domain center) [m].'''
        return np.zeros(self.dimensions)

    @classmethod
    def small2D(cls) -> SphereBodyConfig:
        '''
        Small 2D disk for quick testing.

        ~300 particles, runs in seconds.
        '''
        return cls(
            domainHalfWidth=15.0,
            bodyRadius=10.0,
            particleSpacing=1.0,
            iterations=200,
            recordInterval=20,
            dimensions=2,
        )

    @classmethod
    def small3D(cls) -> SphereBodyConfig:
        '''
        Small 3D sphere.

        ~1500 particles, runs in under a minute.
        '''
        return cls(
            domainHalfWidth=12.0,
            bodyRadius=8.0,
            particleSpacing=1.0,
            iterations=300,
            recordInterval=50,
            dimensions=3,
        )

    @classmethod
    def standard3D(cls) -> SphereBodyConfig:
        '''
        Standard 3D sphere in a 50 x 50 x 50 domain at unit spacing.

        Multi-resolution (ratio 1 at the surface, 2 in the core),
        1000 iterations with a snapshot every 100.
        '''
        return cls(
            domainHalfWidth=25.0,
            bodyRadius=15.0,
            particleSpacing=1.0,
            iterations=1000,
            recordInterval=100,
            dimensions=3,
        )


PRESETS = {
    'small2D': SphereBodyConfig.small2D,
    'small3D': SphereBodyConfig.small3D,
    'standard3D': SphereBodyConfig.standard3D,
}


######################################################################
# -- Scenario Construction -- #
######################################################################

def createRelaxationConfig(bodyConfig: SphereBodyConfig) -> RelaxationConfig:
    '''Relaxation configuration for the scenario's cubic domain.'''
    halfWidth = bodyConfig.domainHalfWidth
    dim = bodyConfig.dimensions

    return RelaxationConfig(
        domainMin=np.full(dim, -halfWidth),
        domainMax=np.full(dim, halfWidth),
        particleSpacing=bodyConfig.particleSpacing,
        hSpacingRatio=bodyConfig.hSpacingRatio,
        minRatio=bodyConfig.minRatio,
        maxRatio=bodyConfig.maxRatio,
        kernelType=bodyConfig.kernelType,
        iterations=bodyConfig.iterations,
        recordInterval=bodyConfig.recordInterval,
        randomSeed=bodyConfig.randomSeed,
        workers=bodyConfig.workers,
    ).validate()


def createSphereBody(
    bodyConfig: SphereBodyConfig,
) -> tuple[RelaxationConfig, SignedDistanceField, ParticleSystem]:
    '''
    Create a sphere body relaxation from configuration.

    Parameters:
    -----------
    bodyConfig : SphereBodyConfig
        Scenario configuration

    Returns:
    --------
    tuple[RelaxationConfig, SignedDistanceField, ParticleSystem] :
        Ready-to-run configuration, sampled distance field and the
        generated (unrelaxed) particles
    '''
    config = createRelaxationConfig(bodyConfig)
    sphere = Sphere(bodyConfig.center, bodyConfig.bodyRadius)

    # Pad the image by the coarsest support so kernel-range queries stay on the grid
    margin = config.supportRadius * config.maxRatio
    field = SignedDistanceField.fromShape(
        sphere,
        lower=config.domainMin - margin,
        upper=config.domainMax + margin,
        spacing=bodyConfig.fieldSpacingFactor * bodyConfig.particleSpacing,
    )

    particles = ParticleGenerator(config, field).generate()
    return config, field, particles

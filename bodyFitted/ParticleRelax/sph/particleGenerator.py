# -- Body-Fitted Particle Generator -- #

'''
Seeds the initial particles of a body from its distance field.

Lattice sites are laid out at the finest spacing over the domain box
and kept where the field is negative (inside the solid). With a
multi-resolution configuration each site is accepted with probability

    P = (minRatio / ratio)^dim

where ratio is the target ratio at the site, so the expected number
density follows the local spacing. Accepted particles receive the
matching smoothing length and reference volume (dp0 * ratio)^dim.
With minRatio == maxRatio every interior site is kept and the result
is a plain lattice.
'''

from __future__ import annotations

import logging

import numpy as np

from bodyFitted.ParticleRelax.errors import GeometryError
from bodyFitted.ParticleRelax.geometry.signedDistanceField import SignedDistanceField
from bodyFitted.ParticleRelax.sph.kernels import SphKernel, createKernel
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.protocols import RelaxationConfig
from bodyFitted.ParticleRelax.sph.smoothingLength import SmoothingLengthController

logger = logging.getLogger(__name__)


class ParticleGenerator:
    '''
    Lattice-based particle generator with random multi-resolution
    thinning.

    Parameters:
    -----------
    config : RelaxationConfig
        Domain, spacing and resolution settings
    field : SignedDistanceField
        Distance field of the body
    kernel : SphKernel | None
        Kernel shaping the resolution blend (defaults to config.kernelType)
    '''

    def __init__(
        self,
        config: RelaxationConfig,
        field: SignedDistanceField,
        kernel: SphKernel | None = None,
    ) -> None:
        config.validate()
        if field is None:
            raise GeometryError('Particle generation needs a signed-distance field')
        if field.dimensions != config.dimensions:
            raise GeometryError(
                f'{field.dimensions}D field does not match the {config.dimensions}D domain'
            )

        self._config = config
        self._field = field
        kernel = kernel or createKernel(config.kernelType, config.dimensions)
        self._controller = SmoothingLengthController(config, kernel)
        self._rng = np.random.default_rng(config.randomSeed)

    def latticePositions(self) -> np.ndarray:
        '''
        Cell-centered lattice at the finest spacing over the domain.

        Returns:
        --------
        np.ndarray : Lattice sites, shape (M, dim)
        '''
        config = self._config
        spacing = config.finestSpacing

        axes = []
        for d in range(config.dimensions):
            axes.append(np.arange(
                config.domainMin[d] + spacing / 2.0,
                config.domainMax[d],
                spacing,
            ))

        mesh = np.meshgrid(*axes, indexing='ij')
        return np.column_stack([m.ravel() for m in mesh])

    def generate(self) -> ParticleSystem:
        '''
        Generate the particles inside the body.

        Returns:
        --------
        ParticleSystem : Particles with positions, volumes, ratios and
            cached signed distances

        Raises:
        -------
        GeometryError : If no lattice site lies inside the body
        '''
        config = self._config
        sites = self.latticePositions()
        phi = self._field.distance(sites) if sites.size else np.zeros(0)

        inside = phi < 0.0
        sites = sites[inside]
        phi = phi[inside]
        ratios = self._controller.targetRatio(phi)

        if not self._controller.isUniform and sites.shape[0] > 0:
            acceptance = (config.minRatio / ratios) ** config.dimensions
            accepted = self._rng.random(sites.shape[0]) < acceptance
            sites, phi, ratios = sites[accepted], phi[accepted], ratios[accepted]

        if sites.shape[0] == 0:
            raise GeometryError(
                'No particles generated: the body does not intersect the domain '
                f'{config.domainMin} - {config.domainMax}'
            )

        localSpacing = config.particleSpacing * ratios
        particles = ParticleSystem(
            positions=sites.copy(),
            volumes=localSpacing ** config.dimensions,
            smoothingLengths=config.referenceSmoothingLength * ratios,
            ratios=ratios.copy(),
            signedDistances=phi.copy(),
        )

        logger.info(
            'Generated %d particles (ratio %.3g - %.3g)',
            particles.nParticles, float(np.min(ratios)), float(np.max(ratios)),
        )
        return particles


def generateParticles(config: RelaxationConfig, field: SignedDistanceField) -> ParticleSystem:
    '''Generate the particles of a body with the default kernel.'''
    return ParticleGenerator(config, field).generate()

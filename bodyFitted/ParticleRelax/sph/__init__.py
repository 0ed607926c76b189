# -- Relaxation Engine Package -- #

'''
Core particle relaxation engine.

Provides kernel functions, the particle system, the multi-resolution
spatial index, neighbor relations, the particle generator, surface
bounding, smoothing-length adaptation and the relaxation solver.
'''

from bodyFitted.ParticleRelax.sph.protocols import (
    RelaxationConfig,
    RelaxationPhase,
    RelaxationState,
    Recorder,
)
from bodyFitted.ParticleRelax.sph.kernels import CubicSplineKernel, WendlandC2Kernel, createKernel
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.cellLinkedList import CellLinkedList
from bodyFitted.ParticleRelax.sph.neighborRelation import NeighborRelation, NeighborRelationBuilder
from bodyFitted.ParticleRelax.sph.particleGenerator import ParticleGenerator, generateParticles
from bodyFitted.ParticleRelax.sph.relaxationSolver import RelaxationSolver

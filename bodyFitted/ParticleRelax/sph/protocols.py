# -- Particle Relaxation Protocols -- #

'''
Configuration, state and protocol definitions for particle relaxation.

Defines the configuration surface injected at construction
(RelaxationConfig), the explicit iteration state threaded through
every phase of the loop (RelaxationState), and the narrow recording
and solver protocols the host driver interacts with.
'''

from __future__ import annotations

import enum
import json
import math
from dataclasses import dataclass, field
from typing import Protocol

import numpy as np

from bodyFitted.ParticleRelax import constants as const
from bodyFitted.ParticleRelax.errors import ConfigurationError
from bodyFitted.ParticleRelax.sph.kernels import KERNEL_TYPES


######################################################################
# -- Relaxation Configuration -- #
######################################################################

@dataclass
class RelaxationConfig:
    '''
    Configuration for a body-fitted particle relaxation.

    Resolution is expressed through a per-particle smoothing-length
    ratio: particle i has local spacing particleSpacing * ratio_i and
    smoothing length hSpacingRatio * particleSpacing * ratio_i. The
    finest resolution is minRatio, the coarsest maxRatio.

    Parameters:
    -----------
    domainMin : np.ndarray
        Lower corner of the particle domain [m]
    domainMax : np.ndarray
        Upper corner of the particle domain [m]
    particleSpacing : float
        Base particle spacing dp0 [m]
    hSpacingRatio : float
        Ratio h_ref / particleSpacing
    minRatio : float
        Finest smoothing-length ratio (near the surface)
    maxRatio : float
        Coarsest smoothing-length ratio (far from the surface)
    surfaceBandWidth : float | None
        Half width of the near-surface band [m]
        (default 0.5 * finest spacing)
    surfaceTargetOffset : float | None
        Signed distance that bounded particles are moved to [m]
        (default -0.5 * finest spacing, i.e. half a spacing inside)
    boundingTolerance : float | None
        Accepted error on the target offset after bounding [m]
        (default 1e-3 * particleSpacing)
    transitionWidth : float | None
        Distance beyond the band over which the ratio blends from
        finest to coarsest [m] (default 4 * coarsest spacing)
    kernelType : str
        Kernel type: 'cubicSpline' or 'wendlandC2'
    iterations : int
        Relaxation iteration budget
    recordInterval : int
        Iterations between calls to the recorder (0 disables)
    jitterFraction : float
        One-time random displacement before the first iteration,
        as a fraction of the local spacing (0 disables)
    randomSeed : int | None
        Seed for generator acceptance and jitter
    surfaceBounding : bool
        Enable the SURFACE_BOUND stage (level-set correction)
    boundaryCompensation : bool
        Add the kernel-gradient integral over the exterior region to
        the repulsion of near-surface particles
    containExterior : bool
        Also bound particles lying beyond the band outside the solid
    workers : int
        Worker threads for the per-particle phases (1 = serial loop)
    '''

    domainMin: np.ndarray
    domainMax: np.ndarray
    particleSpacing: float = 1.0
    hSpacingRatio: float = const.defaultHSpacingRatio
    minRatio: float = const.defaultMinRatio
    maxRatio: float = const.defaultMaxRatio
    surfaceBandWidth: float | None = None
    surfaceTargetOffset: float | None = None
    boundingTolerance: float | None = None
    transitionWidth: float | None = None
    kernelType: str = const.defaultKernelType
    iterations: int = const.defaultIterations
    recordInterval: int = const.defaultRecordInterval
    jitterFraction: float = const.defaultJitterFraction
    randomSeed: int | None = None
    surfaceBounding: bool = True
    boundaryCompensation: bool = True
    containExterior: bool = True
    workers: int = 1

    def __post_init__(self) -> None:
        self.domainMin = np.asarray(self.domainMin, dtype=float)
        self.domainMax = np.asarray(self.domainMax, dtype=float)

    ######################################################################
    # -- Derived Quantities -- #
    ######################################################################

    @property
    def dimensions(self) -> int:
        '''Number of spatial dimensions (2 or 3).'''
        return self.domainMin.shape[0]

    @property
    def domainSize(self) -> np.ndarray:
        '''Domain extent in each dimension [m].'''
        return self.domainMax - self.domainMin

    @property
    def referenceSmoothingLength(self) -> float:
        '''Smoothing length at ratio 1: h_ref = hSpacingRatio * dp0 [m].'''
        return self.hSpacingRatio * self.particleSpacing

    @property
    def supportRadius(self) -> float:
        '''
        Kernel support radius at ratio 1 [m].

        Both kernels vanish beyond 2h; the cutoff of a pair (i, j) is
        supportRadius * max(ratio_i, ratio_j).
        '''
        return 2.0 * self.referenceSmoothingLength

    @property
    def finestSpacing(self) -> float:
        return self.particleSpacing * self.minRatio

    @property
    def coarsestSpacing(self) -> float:
        return self.particleSpacing * self.maxRatio

    @property
    def bandWidth(self) -> float:
        '''Near-surface band half width [m].'''
        if self.surfaceBandWidth is not None:
            return self.surfaceBandWidth
        return const.surfaceBandFactor * self.finestSpacing

    @property
    def targetOffset(self) -> float:
        '''Signed distance bounded particles are placed at [m].'''
        if self.surfaceTargetOffset is not None:
            return self.surfaceTargetOffset
        return const.surfaceOffsetFactor * self.finestSpacing

    @property
    def tolerance(self) -> float:
        '''Bounding tolerance [m].'''
        if self.boundingTolerance is not None:
            return self.boundingTolerance
        return const.boundingToleranceFactor * self.particleSpacing

    @property
    def transition(self) -> float:
        '''Finest-to-coarsest blend width [m].'''
        if self.transitionWidth is not None:
            return self.transitionWidth
        return const.transitionWidthFactor * self.coarsestSpacing

    ######################################################################
    # -- Validation -- #
    ######################################################################

    def validate(self) -> RelaxationConfig:
        '''
        Check the configuration for consistency.

        Returns:
        --------
        RelaxationConfig : self, for chaining

        Raises:
        -------
        ConfigurationError : On the first inconsistent value found
        '''
        if self.domainMin.shape != self.domainMax.shape or self.dimensions not in (2, 3):
            raise ConfigurationError(
                f'Domain corners must both be 2D or 3D, got '
                f'{self.domainMin.shape} and {self.domainMax.shape}'
            )
        if np.any(self.domainMax <= self.domainMin):
            raise ConfigurationError(f'Empty domain {self.domainMin} - {self.domainMax}')
        if not self.particleSpacing > 0.0:
            raise ConfigurationError(f'particleSpacing must be positive, got {self.particleSpacing}')
        if not self.hSpacingRatio > 0.0:
            raise ConfigurationError(f'hSpacingRatio must be positive, got {self.hSpacingRatio}')
        if not 0.0 < self.minRatio <= self.maxRatio:
            raise ConfigurationError(
                f'Ratio bounds must satisfy 0 < minRatio <= maxRatio, '
                f'got [{self.minRatio}, {self.maxRatio}]'
            )
        if self.bandWidth < 0.0:
            raise ConfigurationError(f'surfaceBandWidth must be non-negative, got {self.bandWidth}')
        if not self.tolerance > 0.0:
            raise ConfigurationError(f'boundingTolerance must be positive, got {self.tolerance}')
        if not self.transition > 0.0:
            raise ConfigurationError(f'transitionWidth must be positive, got {self.transition}')
        if self.kernelType not in KERNEL_TYPES:
            raise ConfigurationError(f'Unknown kernel type: {self.kernelType}')
        if self.iterations < 0:
            raise ConfigurationError(f'iterations must be >= 0, got {self.iterations}')
        if self.recordInterval < 0:
            raise ConfigurationError(f'recordInterval must be >= 0, got {self.recordInterval}')
        if not 0.0 <= self.jitterFraction < 1.0:
            raise ConfigurationError(f'jitterFraction must lie in [0, 1), got {self.jitterFraction}')
        if self.workers < 1:
            raise ConfigurationError(f'workers must be >= 1, got {self.workers}')
        return self

    ######################################################################
    # -- JSON Loading -- #
    ######################################################################

    @classmethod
    def fromJson(cls, configPath: str) -> RelaxationConfig:
        '''
        Load configuration from a JSON file.

        Reads the 'domain', 'particles', 'surface' and 'relaxation'
        sections. Missing keys fall back to the defaults.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file

        Returns:
        --------
        RelaxationConfig : Loaded (and validated) configuration
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        return cls.fromDict(data)

    @classmethod
    def fromDict(cls, data: dict) -> RelaxationConfig:
        '''Build a configuration from the parsed JSON sections.'''
        domainSection = data.get('domain', {})
        particleSection = data.get('particles', {})
        surfaceSection = data.get('surface', {})
        relaxSection = data.get('relaxation', {})

        if 'min' not in domainSection or 'max' not in domainSection:
            raise ConfigurationError("Config section 'domain' needs 'min' and 'max'")

        config = cls(
            domainMin=np.array(domainSection['min'], dtype=float),
            domainMax=np.array(domainSection['max'], dtype=float),
            particleSpacing=particleSection.get('spacing', 1.0),
            hSpacingRatio=particleSection.get('hSpacingRatio', const.defaultHSpacingRatio),
            minRatio=particleSection.get('minRatio', const.defaultMinRatio),
            maxRatio=particleSection.get('maxRatio', const.defaultMaxRatio),
            kernelType=particleSection.get('kernelType', const.defaultKernelType),
            surfaceBandWidth=surfaceSection.get('bandWidth'),
            surfaceTargetOffset=surfaceSection.get('targetOffset'),
            boundingTolerance=surfaceSection.get('tolerance'),
            transitionWidth=surfaceSection.get('transitionWidth'),
            surfaceBounding=surfaceSection.get('bounding', True),
            boundaryCompensation=surfaceSection.get('compensation', True),
            containExterior=surfaceSection.get('containExterior', True),
            iterations=relaxSection.get('iterations', const.defaultIterations),
            recordInterval=relaxSection.get('recordInterval', const.defaultRecordInterval),
            jitterFraction=relaxSection.get('jitterFraction', const.defaultJitterFraction),
            randomSeed=relaxSection.get('randomSeed'),
            workers=relaxSection.get('workers', 1),
        )
        return config.validate()


######################################################################
# -- Relaxation State -- #
######################################################################

class RelaxationPhase(enum.Enum):
    '''Phases of the per-iteration state machine, in execution order.'''

    GENERATED = 'generated'
    RANDOMIZE = 'randomize'
    BUILD_INDEX = 'buildIndex'
    BUILD_NEIGHBORS = 'buildNeighbors'
    COMPUTE_DISPLACEMENT = 'computeDisplacement'
    SURFACE_BOUND = 'surfaceBound'
    UPDATE_RESOLUTION = 'updateResolution'


@dataclass(frozen=True, eq=False)
class RelaxationState:
    '''
    Iteration state and quality diagnostics of a relaxation run.

    Immutable: every phase returns an updated copy, so the state is
    passed explicitly through the loop instead of living in globals.

    Parameters:
    -----------
    iteration : int
        Completed iterations
    iterationBudget : int
        Configured number of iterations
    nParticles : int
        Particle count (constant over the run)
    phase : RelaxationPhase
        Last completed phase
    cellSize : float
        Spatial index cell size of the current iteration [m]
    neighborCountHistogram : np.ndarray
        histogram[k] = number of particles with k neighbors
    nDegenerate : int
        Particles without any neighbor
    maxDisplacement : float
        Largest displacement of the last COMPUTE_DISPLACEMENT [m]
    nBounded : int
        Particles corrected by the last SURFACE_BOUND
    maxSurfaceError : float
        Largest |phi - targetOffset| over bounded particles [m]
    maxExteriorDistance : float
        Largest positive signed distance over all particles [m]
    nearestSpacingMean : float
        Mean nearest-neighbor distance / local spacing
    nearestSpacingStd : float
        Standard deviation of nearest-neighbor distance / local spacing
    ratioMin : float
        Smallest smoothing-length ratio present
    ratioMax : float
        Largest smoothing-length ratio present
    '''

    iteration: int = 0
    iterationBudget: int = 0
    nParticles: int = 0
    phase: RelaxationPhase = RelaxationPhase.GENERATED
    cellSize: float = 0.0
    neighborCountHistogram: np.ndarray = field(
        default_factory=lambda: np.zeros(0, dtype=np.int64)
    )
    nDegenerate: int = 0
    maxDisplacement: float = 0.0
    nBounded: int = 0
    maxSurfaceError: float = 0.0
    maxExteriorDistance: float = 0.0
    nearestSpacingMean: float = math.nan
    nearestSpacingStd: float = math.nan
    ratioMin: float = math.nan
    ratioMax: float = math.nan

    @property
    def meanNeighborCount(self) -> float:
        '''Average number of neighbors per particle.'''
        total = int(np.sum(self.neighborCountHistogram))
        if total == 0:
            return 0.0
        counts = np.arange(len(self.neighborCountHistogram))
        return float(np.sum(counts * self.neighborCountHistogram) / total)

    @property
    def isComplete(self) -> bool:
        '''True once the iteration budget is exhausted.'''
        return self.iteration >= self.iterationBudget

    def summary(self) -> dict:
        '''Plain-type diagnostics for logging and export.'''
        return {
            'iteration': self.iteration,
            'nParticles': self.nParticles,
            'cellSize': round(self.cellSize, 9),
            'meanNeighborCount': round(self.meanNeighborCount, 4),
            'nDegenerate': self.nDegenerate,
            'maxDisplacement': self.maxDisplacement,
            'nBounded': self.nBounded,
            'maxSurfaceError': self.maxSurfaceError,
            'maxExteriorDistance': self.maxExteriorDistance,
            'nearestSpacingMean': self.nearestSpacingMean,
            'nearestSpacingStd': self.nearestSpacingStd,
            'ratioMin': self.ratioMin,
            'ratioMax': self.ratioMax,
        }


######################################################################
# -- Recorder Protocol -- #
######################################################################

class Recorder(Protocol):
    '''Host-side snapshot writer called at a caller-chosen cadence.'''

    def record(self, iterationIndex: int) -> None:
        '''Take a snapshot after iteration iterationIndex.'''
        ...

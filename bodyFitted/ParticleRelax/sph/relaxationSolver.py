# -- Particle Relaxation Solver -- #

'''
Control loop of the body-fitted particle relaxation.

Drives a fixed number of iterations of the per-iteration state
machine

    BUILD_INDEX -> BUILD_NEIGHBORS -> COMPUTE_DISPLACEMENT
                -> SURFACE_BOUND -> UPDATE_RESOLUTION

preceded by an optional one-time RANDOMIZE jitter. Every phase reads
only what the previous phase finalized and returns an updated
RelaxationState; the state is passed explicitly, never kept in
globals. SURFACE_BOUND is an independently selectable stage: with it
disabled the loop is a plain repulsive relaxation.

There is no convergence detector: the loop stops when the iteration
budget is exhausted. A host that wants to stop early inspects the
snapshots and simply stops iterating on an iteration boundary.

Algorithm per iteration:
    1. Bucket particles into cells sized to the coarsest ratio
    2. Build neighbor lists with kernel weights (max-ratio cutoff)
    3. Compute repulsive displacement over a bounded pseudo time step
    4. Project near-surface particles onto the target iso-surface
    5. Reclassify smoothing-length ratios from the surface distance
'''

from __future__ import annotations

import dataclasses
import logging
from typing import Iterator

import numpy as np

from bodyFitted.ParticleRelax.errors import GeometryError
from bodyFitted.ParticleRelax.geometry.signedDistanceField import SignedDistanceField
from bodyFitted.ParticleRelax.sph.cellLinkedList import CellLinkedList
from bodyFitted.ParticleRelax.sph.kernels import SphKernel, createKernel
from bodyFitted.ParticleRelax.sph.neighborRelation import NeighborRelation, NeighborRelationBuilder
from bodyFitted.ParticleRelax.sph.parallel import ParticleExecutor
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.protocols import (
    RelaxationConfig,
    RelaxationPhase,
    RelaxationState,
    Recorder,
)
from bodyFitted.ParticleRelax.sph.relaxationDynamics import RelaxationDisplacement, randomizePositions
from bodyFitted.ParticleRelax.sph.smoothingLength import SmoothingLengthController
from bodyFitted.ParticleRelax.sph.surfaceBounding import SurfaceBounding

logger = logging.getLogger(__name__)


class RelaxationSolver:
    '''
    Level-set guided particle relaxation.

    Owns the spatial index, the neighbor relation and the phase
    objects; the particle arrays are borrowed from the caller and
    mutated in place, and are the caller's again when the loop ends.

    Usage:
        with RelaxationSolver(config, field) as solver:
            solver.initialize(particles)
            finalState = solver.run(recorder=recorder)

    Parameters:
    -----------
    config : RelaxationConfig
        Relaxation configuration (validated here)
    field : SignedDistanceField
        Shared read-only distance field of the body
    kernel : SphKernel | None
        Smoothing kernel (defaults to config.kernelType)
    '''

    def __init__(
        self,
        config: RelaxationConfig,
        field: SignedDistanceField,
        kernel: SphKernel | None = None,
    ) -> None:
        config.validate()
        if field is None:
            raise GeometryError('Relaxation needs a signed-distance field')
        if field.dimensions != config.dimensions:
            raise GeometryError(
                f'{field.dimensions}D field does not match the {config.dimensions}D domain'
            )

        self._config = config
        self._field = field
        self._kernel = kernel or createKernel(config.kernelType, config.dimensions)
        self._executor = ParticleExecutor(workers=config.workers)
        self._rng = np.random.default_rng(config.randomSeed)

        self._index = CellLinkedList(config.supportRadius, config.dimensions)
        self._relationBuilder = NeighborRelationBuilder(
            self._kernel, config.referenceSmoothingLength, self._executor
        )
        self._displacement = RelaxationDisplacement(
            config, self._kernel, field, self._executor
        )
        self._bounding = SurfaceBounding(config, field, self._executor)
        self._resolution = SmoothingLengthController(config, self._kernel, self._executor)

        self._particles: ParticleSystem | None = None
        self._relation: NeighborRelation | None = None
        self._state = RelaxationState(iterationBudget=config.iterations)
        self._lastDegenerate = 0

    ######################################################################
    # -- Initialization -- #
    ######################################################################

    def initialize(self, particles: ParticleSystem, randomize: bool = True) -> RelaxationState:
        '''
        Take the particles and run the one-time setup.

        Caches the signed distance of every particle and, when the
        configured jitter fraction is positive and randomize is set,
        runs the RANDOMIZE pre-step (jitter, then surface bounding and
        resolution update so the jittered layout starts consistent).

        Parameters:
        -----------
        particles : ParticleSystem
            Generated particles
        randomize : bool
            Apply the one-time jitter

        Returns:
        --------
        RelaxationState : Initial state (iteration 0)
        '''
        if particles.dimensions != self._config.dimensions:
            raise GeometryError(
                f'{particles.dimensions}D particles do not match the '
                f'{self._config.dimensions}D domain'
            )

        self._particles = particles
        self._relation = None
        particles.signedDistances[:] = self._field.distance(particles.positions)

        state = RelaxationState(
            iteration=0,
            iterationBudget=self._config.iterations,
            nParticles=particles.nParticles,
            ratioMin=float(np.min(particles.ratios)) if particles.nParticles else float('nan'),
            ratioMax=float(np.max(particles.ratios)) if particles.nParticles else float('nan'),
        )

        if randomize and self._config.jitterFraction > 0.0:
            state = self._randomize(state)

        self._state = state
        logger.info(
            'Relaxation initialized: %d particles, %dD, budget %d iterations',
            particles.nParticles, particles.dimensions, self._config.iterations,
        )
        return state

    ######################################################################
    # -- Main Iteration -- #
    ######################################################################

    def step(self) -> RelaxationState:
        '''
        Run one complete relaxation iteration.

        Returns:
        --------
        RelaxationState : State after the iteration
        '''
        if self._particles is None:
            raise RuntimeError('RelaxationSolver.initialize() must be called before step()')

        p = self._particles
        state = self._state

        # 1. Spatial index
        state = self._buildIndex(p, state)

        # 2. Neighbor relation
        state = self._buildNeighbors(p, state)

        # 3. Displacement (tentative positions)
        state = self._displacement.compute(p, self._relation, state)

        # 4. Surface bounding (level-set correction)
        if self._config.surfaceBounding:
            state = self._bounding.bound(p, state)
        else:
            state = self._bounding.refreshDistances(p, state)

        # 5. Resolution update
        state = self._resolution.update(p, state)

        state = dataclasses.replace(state, iteration=state.iteration + 1)
        self._state = state

        logger.debug(
            'Iteration %d: max displacement %.3e, bounded %d, neighbors %.2f',
            state.iteration, state.maxDisplacement, state.nBounded, state.meanNeighborCount,
        )
        return state

    def iterate(
        self,
        iterations: int | None = None,
        recorder: Recorder | None = None,
        recordInterval: int | None = None,
    ) -> Iterator[RelaxationState]:
        '''
        Run iterations one at a time, yielding the state after each.

        The recorder is called with the iteration index whenever it is
        a multiple of the record interval, including the starting
        iteration (so a run from scratch records iteration 0).

        Parameters:
        -----------
        iterations : int | None
            Iterations to run (default: the configured budget)
        recorder : Recorder | None
            Snapshot collaborator
        recordInterval : int | None
            Iterations between snapshots (default: configured, 0 = never)

        Yields:
        -------
        RelaxationState : State after each iteration
        '''
        if self._particles is None:
            raise RuntimeError('RelaxationSolver.initialize() must be called before iterate()')

        budget = self._config.iterations if iterations is None else int(iterations)
        interval = self._config.recordInterval if recordInterval is None else int(recordInterval)
        self._state = dataclasses.replace(
            self._state, iterationBudget=self._state.iteration + budget
        )

        if recorder is not None and interval > 0 and self._state.iteration % interval == 0:
            recorder.record(self._state.iteration)

        for _ in range(budget):
            state = self.step()
            if recorder is not None and interval > 0 and state.iteration % interval == 0:
                recorder.record(state.iteration)
            yield state

    def run(
        self,
        iterations: int | None = None,
        recorder: Recorder | None = None,
        recordInterval: int | None = None,
    ) -> RelaxationState:
        '''
        Run the whole iteration budget.

        Returns:
        --------
        RelaxationState : Final state
        '''
        for _ in self.iterate(iterations, recorder, recordInterval):
            pass
        return self._state

    ######################################################################
    # -- Phases -- #
    ######################################################################

    def _randomize(self, state: RelaxationState) -> RelaxationState:
        '''RANDOMIZE pre-step: jitter, bound and reclassify once.'''
        p = self._particles
        maxJitter = randomizePositions(
            p, self._config.jitterFraction, self._config.particleSpacing, self._rng
        )
        if self._config.surfaceBounding:
            state = self._bounding.bound(p, state)
        else:
            state = self._bounding.refreshDistances(p, state)
        state = self._resolution.update(p, state)
        return dataclasses.replace(
            state, phase=RelaxationPhase.RANDOMIZE, maxDisplacement=maxJitter
        )

    def _buildIndex(self, p: ParticleSystem, state: RelaxationState) -> RelaxationState:
        self._index.build(p.positions, p.ratios)
        return dataclasses.replace(
            state, phase=RelaxationPhase.BUILD_INDEX, cellSize=self._index.cellSize
        )

    def _buildNeighbors(self, p: ParticleSystem, state: RelaxationState) -> RelaxationState:
        self._relation = self._relationBuilder.build(p, self._index)
        relation = self._relation

        nDegenerate = int(np.sum(relation.degenerateMask()))
        if nDegenerate and nDegenerate != self._lastDegenerate:
            logger.warning(
                '%d isolated particle(s) without neighbors at iteration %d',
                nDegenerate, state.iteration,
            )
        self._lastDegenerate = nDegenerate

        spacing = relation.nearestDistances() / (self._config.particleSpacing * p.ratios)
        spacing = spacing[np.isfinite(spacing)]

        return dataclasses.replace(
            state,
            phase=RelaxationPhase.BUILD_NEIGHBORS,
            neighborCountHistogram=relation.countHistogram(),
            nDegenerate=nDegenerate,
            nearestSpacingMean=float(np.mean(spacing)) if spacing.size else float('nan'),
            nearestSpacingStd=float(np.std(spacing)) if spacing.size else float('nan'),
        )

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def state(self) -> RelaxationState:
        '''Current relaxation state.'''
        return self._state

    @property
    def particles(self) -> ParticleSystem:
        '''Access the particle system.'''
        return self._particles

    @property
    def relation(self) -> NeighborRelation | None:
        '''Neighbor relation of the last iteration.'''
        return self._relation

    @property
    def index(self) -> CellLinkedList:
        return self._index

    @property
    def kernel(self) -> SphKernel:
        return self._kernel

    @property
    def field(self) -> SignedDistanceField:
        return self._field

    @property
    def config(self) -> RelaxationConfig:
        return self._config

    def close(self) -> None:
        '''Release the worker pool.'''
        self._executor.close()

    def __enter__(self) -> RelaxationSolver:
        return self

    def __exit__(self, excType, excValue, traceback) -> None:
        self.close()

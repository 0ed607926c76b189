# -- Relaxation Snapshot Recorder -- #

'''
Collects relaxation snapshots and exports them as JSON.

The solver calls record(iterationIndex) at the host's chosen cadence;
the recorder copies the particle arrays it was given at construction
(they are mutated in place by the solver) together with the current
diagnostics, and writes everything to a single JSON document after
the run.

Two optional sources extend the document: the sampled level set of
the body (written once) and the occupancy of the spatial index at
every snapshot. The index is rebuilt at the start of each iteration,
so a frame's occupancy belongs to the positions before that
iteration's displacement; it is empty before the first iteration.

Output JSON format:
{
    "meta": { "type": "bodyFittedRelaxation", "dimensions": 3, "created": "...", ... },
    "config": { "particleSpacing": 1.0, "minRatio": 1.0, ... },
    "levelSet": { "origin": [...], "spacing": 0.5, "shape": [...], "values": [...] },
    "frames": [
        {
            "iteration": 0,
            "positions": [[x0, y0, z0], ...],
            "ratios": [...],
            "signedDistances": [...],
            "diagnostics": { "nearestSpacingStd": ..., ... },
            "cellOccupancy": { "cellSize": 2.3, "cells": [[i, j, k], ...], "counts": [...] }
        },
        ...
    ]
}
'''

from __future__ import annotations

import json
import os
from datetime import datetime
from typing import Callable

import numpy as np

from bodyFitted.ParticleRelax.geometry.signedDistanceField import SignedDistanceField
from bodyFitted.ParticleRelax.sph.cellLinkedList import CellLinkedList
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem
from bodyFitted.ParticleRelax.sph.protocols import RelaxationConfig, RelaxationState


class SnapshotRecorder:
    '''
    In-memory snapshot store implementing the Recorder protocol.

    Usage:
        recorder = SnapshotRecorder(
            particles,
            stateSource=lambda: solver.state,
            field=field,
            indexSource=lambda: solver.index,
        )
        solver.run(recorder=recorder)
        recorder.export(config, outputDir='output')

    Parameters:
    -----------
    particles : ParticleSystem
        Particle system being relaxed
    stateSource : Callable[[], RelaxationState] | None
        Returns the current diagnostics at record time
    field : SignedDistanceField | None
        Level set written alongside the frames
    indexSource : Callable[[], CellLinkedList] | None
        Returns the spatial index whose occupancy is recorded per frame
    '''

    def __init__(
        self,
        particles: ParticleSystem,
        stateSource: Callable[[], RelaxationState] | None = None,
        field: SignedDistanceField | None = None,
        indexSource: Callable[[], CellLinkedList] | None = None,
    ) -> None:
        self._particles = particles
        self._stateSource = stateSource
        self._field = field
        self._indexSource = indexSource
        self._frames: list[dict] = []

    @property
    def nFrames(self) -> int:
        '''Number of collected snapshots.'''
        return len(self._frames)

    @property
    def iterations(self) -> list[int]:
        '''Iteration index of every snapshot, in recording order.'''
        return [frame['iteration'] for frame in self._frames]

    def record(self, iterationIndex: int) -> None:
        '''
        Store a copy of the current particle state.

        Parameters:
        -----------
        iterationIndex : int
            Completed iterations at the time of the snapshot
        '''
        p = self._particles
        frame = {
            'iteration': int(iterationIndex),
            'positions': p.positions.copy(),
            'ratios': p.ratios.copy(),
            'signedDistances': p.signedDistances.copy(),
            'diagnostics': self._stateSource().summary() if self._stateSource else {},
        }

        if self._indexSource is not None:
            index = self._indexSource()
            cells, counts = index.occupancy()
            frame['cellOccupancy'] = {
                'cellSize': index.cellSize,
                'cells': cells,
                'counts': counts,
            }

        self._frames.append(frame)

    def positionsAt(self, iterationIndex: int) -> np.ndarray:
        '''Positions stored for one iteration (KeyError if not recorded).'''
        return self._frameAt(iterationIndex)['positions']

    def occupancyAt(self, iterationIndex: int) -> tuple[np.ndarray, np.ndarray]:
        '''Cell keys and counts stored for one iteration (KeyError if not recorded).'''
        frame = self._frameAt(iterationIndex)
        if 'cellOccupancy' not in frame:
            raise KeyError(f'No cell occupancy recorded for iteration {iterationIndex}')
        occupancy = frame['cellOccupancy']
        return occupancy['cells'], occupancy['counts']

    def export(
        self,
        config: RelaxationConfig,
        outputDir: str = 'output',
        scenarioName: str = 'body',
    ) -> str:
        '''
        Write all collected snapshots to a JSON file.

        Parameters:
        -----------
        config : RelaxationConfig
            Relaxation configuration for metadata
        outputDir : str
            Output directory path (created if missing)
        scenarioName : str
            Scenario name for the filename

        Returns:
        --------
        str : Path to the exported JSON file
        '''
        os.makedirs(outputDir, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        filename = f'relaxation_{scenarioName}_{timestamp}.json'
        filepath = os.path.join(outputDir, filename)

        output = {
            'meta': {
                'type': 'bodyFittedRelaxation',
                'dimensions': config.dimensions,
                'nFrames': len(self._frames),
                'nParticles': self._particles.nParticles,
                'created': datetime.now().isoformat(),
            },
            'config': {
                'domainMin': config.domainMin.tolist(),
                'domainMax': config.domainMax.tolist(),
                'particleSpacing': config.particleSpacing,
                'hSpacingRatio': config.hSpacingRatio,
                'minRatio': config.minRatio,
                'maxRatio': config.maxRatio,
                'bandWidth': config.bandWidth,
                'targetOffset': config.targetOffset,
                'kernelType': config.kernelType,
                'surfaceBounding': config.surfaceBounding,
            },
        }

        if self._field is not None:
            output['levelSet'] = {
                'origin': self._field.lower.tolist(),
                'spacing': self._field.spacing,
                'shape': list(self._field.shape),
                'values': np.round(self._field.values, 6).tolist(),
            }

        output['frames'] = [self._serializeFrame(frame) for frame in self._frames]

        with open(filepath, 'w') as f:
            json.dump(output, f, indent=None, separators=(',', ':'))

        return filepath

    ######################################################################
    # -- Internals -- #
    ######################################################################

    def _frameAt(self, iterationIndex: int) -> dict:
        for frame in self._frames:
            if frame['iteration'] == iterationIndex:
                return frame
        raise KeyError(f'No snapshot for iteration {iterationIndex}')

    @staticmethod
    def _serializeFrame(frame: dict) -> dict:
        serialized = {
            'iteration': frame['iteration'],
            'positions': np.round(frame['positions'], 6).tolist(),
            'ratios': np.round(frame['ratios'], 6).tolist(),
            'signedDistances': np.round(frame['signedDistances'], 6).tolist(),
            'diagnostics': frame['diagnostics'],
        }
        if 'cellOccupancy' in frame:
            occupancy = frame['cellOccupancy']
            serialized['cellOccupancy'] = {
                'cellSize': occupancy['cellSize'],
                'cells': occupancy['cells'].tolist(),
                'counts': occupancy['counts'].tolist(),
            }
        return serialized

# -- Particle Relaxation Runner -- #

'''
Command-line entry point for body-fitted particle relaxation.

Builds the body scenario, generates the particles, runs the
relaxation with a progress bar and a periodic diagnostics table,
and optionally exports the recorded snapshots as JSON.

Usage:
    python -m bodyFitted.ParticleRelax                          # Small 2D disk
    python -m bodyFitted.ParticleRelax --preset standard3D      # 50^3 domain sphere
    python -m bodyFitted.ParticleRelax --config configs/sphere.json
    python -m bodyFitted.ParticleRelax --iterations 200 --workers 4 --no-export
'''

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import time as timeModule

from tqdm import tqdm

from bodyFitted.loggingConfig import setupLogging
from bodyFitted.ParticleRelax.export.snapshotRecorder import SnapshotRecorder
from bodyFitted.ParticleRelax.scenarios.sphereBody import PRESETS, SphereBodyConfig, createSphereBody
from bodyFitted.ParticleRelax.sph.protocols import RelaxationConfig, RelaxationState
from bodyFitted.ParticleRelax.sph.relaxationSolver import RelaxationSolver


#--------------------------------------------------------------------#
# -- CLI Argument Parser -- #
#--------------------------------------------------------------------#

def buildParser() -> argparse.ArgumentParser:
    '''Build the CLI argument parser.'''
    parser = argparse.ArgumentParser(
        description='ParticleRelax -- body-fitted particle generation and relaxation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        '--config', type=str, default=None,
        help='Path to JSON configuration file',
    )
    parser.add_argument(
        '--preset', type=str, default='small2D',
        choices=sorted(PRESETS),
        help='Scenario preset (default: small2D)',
    )
    parser.add_argument(
        '--iterations', type=int, default=None,
        help='Override the iteration budget',
    )
    parser.add_argument(
        '--workers', type=int, default=None,
        help='Worker threads for the per-particle phases',
    )
    parser.add_argument(
        '--no-export', action='store_true',
        help='Skip snapshot export',
    )
    parser.add_argument(
        '--output-dir', type=str, default='output',
        help='Output directory for exported snapshots (default: output)',
    )
    parser.add_argument(
        '--log-level', type=str, default='WARNING',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Library log level (default: WARNING)',
    )

    return parser


#--------------------------------------------------------------------#
# -- Runner Class -- #
#--------------------------------------------------------------------#

class RelaxationRunner:
    '''
    Runs a body-fitted relaxation and stores results.

    Handles the full pipeline: scenario setup, relaxation loop with
    progress reporting, and optional snapshot export.

    Parameters:
    -----------
    showProgress : bool
        Display a tqdm progress bar over the iterations
    '''

    def __init__(self, showProgress: bool = True) -> None:
        self._showProgress = showProgress
        self._recorder: SnapshotRecorder | None = None

    @property
    def recorder(self) -> SnapshotRecorder | None:
        '''Snapshots of the last run.'''
        return self._recorder

    def runFromConfig(
        self,
        configPath: str,
        doExport: bool = True,
        exportDir: str = 'output',
    ) -> dict:
        '''
        Run a sphere body relaxation from a JSON configuration file.

        The 'body' section holds the sphere radius and field spacing;
        the remaining sections are read by RelaxationConfig.fromDict.

        Parameters:
        -----------
        configPath : str
            Path to the JSON configuration file
        doExport : bool
            Whether to export the snapshots
        exportDir : str
            Output directory for snapshot export

        Returns:
        --------
        dict : Relaxation results summary
        '''
        with open(configPath, 'r') as f:
            data = json.load(f)

        config = RelaxationConfig.fromDict(data)
        bodySection = data.get('body', {})

        halfWidth = float(min(-config.domainMin.min(), config.domainMax.max()))
        bodyConfig = SphereBodyConfig(
            domainHalfWidth=halfWidth,
            bodyRadius=bodySection.get('radius', 0.6 * halfWidth),
            particleSpacing=config.particleSpacing,
            hSpacingRatio=config.hSpacingRatio,
            minRatio=config.minRatio,
            maxRatio=config.maxRatio,
            iterations=config.iterations,
            recordInterval=config.recordInterval,
            fieldSpacingFactor=bodySection.get('fieldSpacingFactor', 0.5),
            kernelType=config.kernelType,
            dimensions=config.dimensions,
            randomSeed=config.randomSeed,
            workers=config.workers,
        )

        return self.runSphere(bodyConfig, doExport=doExport, exportDir=exportDir)

    def runSphere(
        self,
        bodyConfig: SphereBodyConfig,
        doExport: bool = True,
        exportDir: str = 'output',
        scenarioName: str = 'sphere',
    ) -> dict:
        '''
        Run a sphere body relaxation.

        Parameters:
        -----------
        bodyConfig : SphereBodyConfig
            Sphere body configuration
        doExport : bool
            Whether to export the snapshots
        exportDir : str
            Output directory for snapshot export
        scenarioName : str
            Scenario name for the export filename

        Returns:
        --------
        dict : Relaxation results summary
        '''
        print()
        print('=' * 62)
        print('  PARTICLERELAX -- BODY-FITTED PARTICLE RELAXATION')
        print('=' * 62)
        print()

        #--------------------------------------------------------------------#
        # Scenario Setup
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  SCENARIO SETUP')
        print('-' * 62)

        config, field, particles = createSphereBody(bodyConfig)

        print(f'  Dimensions:        {config.dimensions:8d}D')
        print(f'  Domain Half Width: {bodyConfig.domainHalfWidth:8.3f} m')
        print(f'  Body Radius:       {bodyConfig.bodyRadius:8.3f} m')
        print(f'  Particle Spacing:  {config.particleSpacing:8.4f} m')
        print(f'  Smoothing Length:  {config.referenceSmoothingLength:8.4f} m')
        print(f'  Ratio Range:       {config.minRatio:8.2f} - {config.maxRatio:.2f}')
        print(f'  Field Grid:        {"x".join(str(n) for n in field.shape):>8s}')
        print(f'  Particles:         {particles.nParticles:8d}')
        print(f'  Iterations:        {config.iterations:8d}')
        print(f'  Workers:           {config.workers:8d}')
        print()

        #--------------------------------------------------------------------#
        # Relaxation Loop
        #--------------------------------------------------------------------#
        print('-' * 62)
        print('  RUNNING RELAXATION')
        print('-' * 62)
        print()

        rows: list[RelaxationState] = []
        wallClockStart = timeModule.time()

        with RelaxationSolver(config, field) as solver:
            solver.initialize(particles)
            self._recorder = SnapshotRecorder(
                particles,
                stateSource=lambda: solver.state,
                field=field,
                indexSource=lambda: solver.index,
            )

            iterator = solver.iterate(recorder=self._recorder)
            if self._showProgress:
                iterator = tqdm(iterator, total=config.iterations, desc='  Relaxing', unit='it')

            for state in iterator:
                if config.recordInterval and state.iteration % config.recordInterval == 0:
                    rows.append(state)

            finalState = solver.state

        wallClockSeconds = timeModule.time() - wallClockStart

        print()
        print(f'  {"Iter":>6}  {"MaxDisp":>10}  {"Bounded":>8}  {"SurfErr":>10}  {"NNStd":>8}  {"Nbrs":>6}')
        print(f'  {"":>6}  {"(m)":>10}  {"":>8}  {"(m)":>10}  {"":>8}  {"":>6}')
        print('  ' + '-' * 58)
        for state in rows:
            print(
                f'  {state.iteration:6d}  {state.maxDisplacement:10.3e}  {state.nBounded:8d}  '
                f'{state.maxSurfaceError:10.3e}  {state.nearestSpacingStd:8.4f}  '
                f'{state.meanNeighborCount:6.2f}'
            )

        print()
        print(f'  Relaxation complete.')
        print(f'  Total iterations:  {finalState.iteration:8d}')
        print(f'  Wall-clock time:   {wallClockSeconds:8.1f} s')
        print(f'  Snapshots:         {self._recorder.nFrames:8d}')
        print()

        #--------------------------------------------------------------------#
        # Export
        #--------------------------------------------------------------------#
        exportPath = None
        if doExport:
            print('-' * 62)
            print('  EXPORTING SNAPSHOTS')
            print('-' * 62)

            exportPath = self._recorder.export(
                config=config,
                outputDir=exportDir,
                scenarioName=scenarioName,
            )
            print(f'  Exported to: {exportPath}')
            print()

        #--------------------------------------------------------------------#
        # Summary
        #--------------------------------------------------------------------#
        print('=' * 62)
        print('  RELAXATION SUMMARY')
        print('=' * 62)
        print(f'  Particles:         {finalState.nParticles:8d}')
        print(f'  Particle Volume:   {particles.totalVolume():10.3e} m^{config.dimensions}')
        print(f'  NN Spacing Mean:   {finalState.nearestSpacingMean:8.4f}')
        print(f'  NN Spacing Std:    {finalState.nearestSpacingStd:8.4f}')
        print(f'  Max Exterior Dist: {finalState.maxExteriorDistance:10.3e} m')
        print(f'  Isolated:          {finalState.nDegenerate:8d}')
        print(f'  Ratio Range:       {finalState.ratioMin:8.3f} - {finalState.ratioMax:.3f}')
        print('=' * 62)
        print()

        return {
            'finalState': finalState,
            'particles': particles,
            'totalVolume': particles.totalVolume(),
            'wallClockSeconds': wallClockSeconds,
            'nFrames': self._recorder.nFrames,
            'exportPath': exportPath,
        }


#--------------------------------------------------------------------#
# -- CLI Entry Point -- #
#--------------------------------------------------------------------#

def main(argv: list[str] | None = None) -> None:
    '''CLI entry point.'''
    parser = buildParser()
    args = parser.parse_args(argv)

    setupLogging(getattr(logging, args.log_level))
    runner = RelaxationRunner()

    if args.config:
        runner.runFromConfig(args.config, doExport=not args.no_export, exportDir=args.output_dir)
        return

    bodyConfig = PRESETS[args.preset]()
    if args.iterations is not None:
        bodyConfig = dataclasses.replace(bodyConfig, iterations=args.iterations)
    if args.workers is not None:
        bodyConfig = dataclasses.replace(bodyConfig, workers=args.workers)

    runner.runSphere(
        bodyConfig,
        doExport=not args.no_export,
        exportDir=args.output_dir,
        scenarioName=args.preset,
    )


if __name__ == '__main__':
    main()

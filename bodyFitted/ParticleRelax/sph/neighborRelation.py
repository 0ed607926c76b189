# -- Neighbor Relation -- #

'''
Per-particle neighbor lists with kernel weights and gradients.

The relation is stored in compressed-row form: the entries of
particle i occupy rows offsets[i]:offsets[i+1] of the entry arrays,
ordered by ascending neighbor index. Every entry holds the neighbor
index, the separation, the kernel weight W_ij and the kernel gradient
grad_W_ij evaluated with the pair smoothing length

    h_ij = h_ref * max(ratio_i, ratio_j)

which makes W_ij = W_ji and grad_W_ij = -grad_W_ji.

A relation is valid for a single iteration only; it is rebuilt from
scratch after the particles move.
'''

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from bodyFitted.ParticleRelax.sph.cellLinkedList import NeighborSearch
from bodyFitted.ParticleRelax.sph.kernels import SphKernel
from bodyFitted.ParticleRelax.sph.parallel import ParticleExecutor
from bodyFitted.ParticleRelax.sph.particles import ParticleSystem


######################################################################
# -- Neighbor Relation (CSR) -- #
######################################################################

@dataclass
class NeighborRelation:
    '''
    Neighbor lists of all particles for the current iteration.

    Parameters:
    -----------
    offsets : np.ndarray
        Row offsets, shape (N + 1,)
    owners : np.ndarray
        Owning particle i of each entry, shape (P,)
    neighbors : np.ndarray
        Neighbor particle j of each entry, shape (P,)
    distances : np.ndarray
        |r_i - r_j| [m], shape (P,)
    displacements : np.ndarray
        r_i - r_j [m], shape (P, dim)
    weights : np.ndarray
        W_ij [1/m^dim], shape (P,)
    gradients : np.ndarray
        grad_W_ij [1/m^(dim+1)], shape (P, dim)
    '''

    offsets: np.ndarray
    owners: np.ndarray
    neighbors: np.ndarray
    distances: np.ndarray
    displacements: np.ndarray
    weights: np.ndarray
    gradients: np.ndarray

    @property
    def nParticles(self) -> int:
        return self.offsets.shape[0] - 1

    @property
    def nEntries(self) -> int:
        return self.neighbors.shape[0]

    def neighborCounts(self) -> np.ndarray:
        '''Number of neighbors of each particle, shape (N,).'''
        return np.diff(self.offsets)

    def neighborsOf(self, index: int) -> np.ndarray:
        '''Neighbor indices of one particle, ascending.'''
        return self.neighbors[self.offsets[index]:self.offsets[index + 1]]

    def entriesOf(self, index: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        '''(neighbor indices, weights, gradients) of one particle.'''
        rows = slice(self.offsets[index], self.offsets[index + 1])
        return self.neighbors[rows], self.weights[rows], self.gradients[rows]

    def degenerateMask(self) -> np.ndarray:
        '''True for particles without any neighbor.'''
        return self.neighborCounts() == 0

    def countHistogram(self) -> np.ndarray:
        '''histogram[k] = number of particles with exactly k neighbors.'''
        return np.bincount(self.neighborCounts(), minlength=1)

    def nearestDistances(self) -> np.ndarray:
        '''
        Distance to the nearest neighbor of each particle.

        Returns:
        --------
        np.ndarray : Shape (N,), NaN for particles without neighbors
        '''
        nearest = np.full(self.nParticles, np.inf)
        np.minimum.at(nearest, self.owners, self.distances)
        nearest[np.isinf(nearest)] = np.nan
        return nearest


######################################################################
# -- Relation Builder -- #
######################################################################

class NeighborRelationBuilder:
    '''
    Builds the neighbor relation of all particles from a spatial index.

    Parameters:
    -----------
    kernel : SphKernel
        Smoothing kernel
    referenceSmoothingLength : float
        Smoothing length at ratio 1 [m]
    executor : ParticleExecutor | None
        Fan-out for the kernel evaluation (serial if None)
    '''

    def __init__(
        self,
        kernel: SphKernel,
        referenceSmoothingLength: float,
        executor: ParticleExecutor | None = None,
    ) -> None:
        self._kernel = kernel
        self._hRef = float(referenceSmoothingLength)
        self._executor = executor or ParticleExecutor(workers=1)

    def build(self, particles: ParticleSystem, index: NeighborSearch) -> NeighborRelation:
        '''
        Enumerate candidates, keep pairs within the cutoff and evaluate
        the kernel for every directed entry.

        Parameters:
        -----------
        particles : ParticleSystem
            Particles the index was built from
        index : NeighborSearch
            Spatial index built for the current positions

        Returns:
        --------
        NeighborRelation : Relation valid for the current iteration
        '''
        nParticles = particles.nParticles
        dimensions = particles.dimensions
        positions = particles.positions
        ratios = particles.ratios

        iPairs, jPairs = index.queryPairs()

        # Each unordered pair becomes two directed entries, sorted by
        # owner and then by neighbor index
        owners = np.concatenate([iPairs, jPairs]).astype(np.int64)
        neighbors = np.concatenate([jPairs, iPairs]).astype(np.int64)
        order = np.lexsort((neighbors, owners))
        owners = owners[order]
        neighbors = neighbors[order]

        counts = np.bincount(owners, minlength=nParticles)
        offsets = np.zeros(nParticles + 1, dtype=np.int64)
        np.cumsum(counts, out=offsets[1:])

        nEntries = owners.shape[0]
        distances = np.zeros(nEntries)
        displacements = np.zeros((nEntries, dimensions))
        weights = np.zeros(nEntries)
        gradients = np.zeros((nEntries, dimensions))

        kernel = self._kernel
        hRef = self._hRef

        def evaluateEntries(start: int, stop: int) -> None:
            rows = slice(start, stop)
            ownerRows = owners[rows]
            neighborRows = neighbors[rows]
            dr = positions[ownerRows] - positions[neighborRows]
            dist = np.linalg.norm(dr, axis=1)
            hPair = hRef * np.maximum(ratios[ownerRows], ratios[neighborRows])

            displacements[rows] = dr
            distances[rows] = dist
            weights[rows] = kernel.evaluateBatch(dist, hPair)
            gradients[rows] = kernel.gradientBatch(dr, dist, hPair)

        self._executor.forEachRange(nEntries, evaluateEntries)

        return NeighborRelation(
            offsets=offsets,
            owners=owners,
            neighbors=neighbors,
            distances=distances,
            displacements=displacements,
            weights=weights,
            gradients=gradients,
        )

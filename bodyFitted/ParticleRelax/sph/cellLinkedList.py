# -- Multi-Resolution Cell Linked List -- #

'''
Uniform-grid spatial index for neighbor search with per-particle
resolution.

Particles carry different smoothing-length ratios, so the interaction
cutoff of a pair depends on both particles. The index sizes its cells
to the coarsest ratio present,

    cellSize = supportRadius * max_k ratio_k

and a pair (i, j) interacts when

    |r_i - r_j| < supportRadius * max(ratio_i, ratio_j)

Because the pairwise maximum is symmetric in i and j, j is found from
i exactly when i is found from j, and every such pair lies within one
cell of each other (9 cells searched in 2D, 27 in 3D).

The index is rebuilt wholesale from current positions and ratios at
the start of every iteration; it is never patched incrementally.

References:
-----------
Ihmsen et al. (2011) -- Parallel Neighbor-Search for SPH
Zhang, Rezavand & Hu (2021) -- A multi-resolution SPH method for
    fluid-structure interactions
'''

from __future__ import annotations

import itertools
from typing import Protocol

import numpy as np


#--------------------------------------------------------------------#
# -- Neighbor Search Protocol -- #
#--------------------------------------------------------------------#

class NeighborSearch(Protocol):
    '''Protocol for variable-cutoff neighbor search structures.'''

    def build(self, positions: np.ndarray, ratios: np.ndarray) -> None:
        '''Bucket particles from their positions and resolution ratios.'''
        ...

    def queryPairs(self) -> tuple[np.ndarray, np.ndarray]:
        '''
        Find all interacting particle pairs.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (iIndices, jIndices), each pair once with i < j.
        '''
        ...

    def neighborsOf(self, index: int) -> np.ndarray:
        '''Sorted indices of the particles interacting with one particle.'''
        ...


#--------------------------------------------------------------------#
# -- Cell Linked List -- #
#--------------------------------------------------------------------#

class CellLinkedList:
    '''
    Cell-bucket spatial index with a max-ratio pair cutoff.

    Parameters:
    -----------
    supportRadius : float
        Kernel support radius at ratio 1 [m]
    dimensions : int
        Number of spatial dimensions (2 or 3)
    '''

    def __init__(self, supportRadius: float, dimensions: int = 2) -> None:
        self._supportRadius = float(supportRadius)
        self._dimensions = dimensions
        self._cellSize = self._supportRadius
        self._positions: np.ndarray | None = None
        self._ratios: np.ndarray | None = None
        self._cellIndices: np.ndarray | None = None
        self._cells: dict[tuple, np.ndarray] = {}

        self._fullStencil = list(itertools.product((-1, 0, 1), repeat=dimensions))
        self._halfStencil = self._computeHalfStencil()

    ######################################################################
    # -- Build -- #
    ######################################################################

    def build(self, positions: np.ndarray, ratios: np.ndarray) -> None:
        '''
        Bucket all particles into cells.

        Parameters:
        -----------
        positions : np.ndarray
            Particle positions [m], shape (N, dim)
        ratios : np.ndarray
            Smoothing-length ratios, shape (N,)
        '''
        self._positions = positions
        self._ratios = ratios
        self._cells = {}

        if positions.shape[0] == 0:
            self._cellIndices = np.zeros((0, self._dimensions), dtype=np.int64)
            return

        self._cellSize = self._supportRadius * float(np.max(ratios))
        self._cellIndices = np.floor(positions / self._cellSize).astype(np.int64)

        # Group particle indices by cell; the stable sort keeps
        # indices ascending inside each bucket
        keys, inverse = np.unique(self._cellIndices, axis=0, return_inverse=True)
        inverse = inverse.reshape(-1)
        order = np.argsort(inverse, kind='stable')
        counts = np.bincount(inverse, minlength=len(keys))
        buckets = np.split(order, np.cumsum(counts)[:-1])

        self._cells = {tuple(int(c) for c in key): bucket for key, bucket in zip(keys, buckets)}

    ######################################################################
    # -- Queries -- #
    ######################################################################

    def queryPairs(self) -> tuple[np.ndarray, np.ndarray]:
        '''
        Find all unique interacting pairs (i, j) with i < j.

        Uses half-stencil traversal so each cell pair is visited once.
        Distance checks are vectorized within each cell-pair group.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (iIndices, jIndices) arrays of neighbor pair indices
        '''
        empty = (np.array([], dtype=np.int64), np.array([], dtype=np.int64))
        if self._positions is None or not self._cells:
            return empty

        iChunks: list[np.ndarray] = []
        jChunks: list[np.ndarray] = []

        for cellKey, cellParticles in self._cells.items():
            # --- Pairs within the same cell --- #
            if len(cellParticles) > 1:
                rowIdx, colIdx = np.triu_indices(len(cellParticles), k=1)
                self._collect(
                    cellParticles[rowIdx], cellParticles[colIdx], iChunks, jChunks
                )

            # --- Cross-pairs with neighbor cells (half-stencil only) --- #
            for offset in self._halfStencil:
                neighborKey = tuple(cellKey[d] + offset[d] for d in range(self._dimensions))
                neighborParticles = self._cells.get(neighborKey)
                if neighborParticles is None:
                    continue

                localI, localJ = np.meshgrid(
                    np.arange(len(cellParticles)),
                    np.arange(len(neighborParticles)),
                    indexing='ij',
                )
                self._collect(
                    cellParticles[localI.ravel()],
                    neighborParticles[localJ.ravel()],
                    iChunks, jChunks,
                )

        if not iChunks:
            return empty

        return (np.concatenate(iChunks), np.concatenate(jChunks))

    def neighborsOf(self, index: int) -> np.ndarray:
        '''
        Particles interacting with one particle (self excluded).

        Searches the particle's cell and all adjacent cells.

        Parameters:
        -----------
        index : int
            Particle index

        Returns:
        --------
        np.ndarray : Sorted neighbor indices
        '''
        if self._positions is None or self._cellIndices is None or not self._cells:
            return np.array([], dtype=np.int64)

        home = self._cellIndices[index]
        candidates = []
        for offset in self._fullStencil:
            key = tuple(int(home[d]) + offset[d] for d in range(self._dimensions))
            bucket = self._cells.get(key)
            if bucket is not None:
                candidates.append(bucket)

        candidates = np.concatenate(candidates)
        candidates = candidates[candidates != index]

        dist = np.linalg.norm(self._positions[candidates] - self._positions[index], axis=1)
        cutoff = self._supportRadius * np.maximum(self._ratios[candidates], self._ratios[index])
        return np.sort(candidates[dist < cutoff])

    def particlesInCell(self, cellKey: tuple) -> np.ndarray:
        '''Indices of the particles in one cell (empty if unoccupied).'''
        return self._cells.get(tuple(cellKey), np.array([], dtype=np.int64))

    def occupancy(self) -> tuple[np.ndarray, np.ndarray]:
        '''
        Occupied cells and their particle counts, keys in lexicographic order.

        Returns:
        --------
        tuple[np.ndarray, np.ndarray] :
            (cell keys, shape (M, dim); particle counts, shape (M,))
        '''
        if not self._cells:
            return (
                np.zeros((0, self._dimensions), dtype=np.int64),
                np.zeros(0, dtype=np.int64),
            )

        keys = sorted(self._cells)
        counts = np.array([len(self._cells[key]) for key in keys], dtype=np.int64)
        return np.array(keys, dtype=np.int64), counts

    def cellOf(self, point: np.ndarray) -> tuple:
        '''Integer cell coordinate containing a point.'''
        return tuple(int(c) for c in np.floor(np.asarray(point) / self._cellSize))

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def cellSize(self) -> float:
        '''Current cell size [m].'''
        return self._cellSize

    @property
    def nCells(self) -> int:
        '''Number of occupied cells.'''
        return len(self._cells)

    @property
    def supportRadius(self) -> float:
        return self._supportRadius

    ######################################################################
    # -- Internals -- #
    ######################################################################

    def _collect(
        self,
        globalI: np.ndarray,
        globalJ: np.ndarray,
        iChunks: list[np.ndarray],
        jChunks: list[np.ndarray],
    ) -> None:
        '''Keep candidate pairs within their max-ratio cutoff, ordered i < j.'''
        diff = self._positions[globalI] - self._positions[globalJ]
        distSq = np.sum(diff * diff, axis=1)
        cutoff = self._supportRadius * np.maximum(self._ratios[globalI], self._ratios[globalJ])
        within = distSq < cutoff * cutoff
        if not np.any(within):
            return

        pairI = globalI[within]
        pairJ = globalJ[within]
        iChunks.append(np.minimum(pairI, pairJ))
        jChunks.append(np.maximum(pairI, pairJ))

    def _computeHalfStencil(self) -> list[tuple[int, ...]]:
        '''
        Neighbor offsets that avoid double-counting cell pairs.

        Keeps the offsets lexicographically greater than (0, ..., 0):
        4 of the 8 neighbors in 2D, 13 of the 26 in 3D.

        Returns:
        --------
        list[tuple[int, ...]] : Half-stencil offsets
        '''
        origin = (0,) * self._dimensions
        return [offset for offset in self._fullStencil if offset > origin]

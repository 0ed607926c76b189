# -- Sampled Signed-Distance Field -- #

'''
Read-only level-set field sampled on a uniform node grid.

The field is the only view of the geometry the relaxation engine
consumes. Distances are interpolated linearly between grid nodes;
gradients come from second-order finite differences of the samples,
interpolated the same way and normalized to unit length.

Queries outside the sampled box never fail: interpolation uses the
nearest valid sample along each axis (scipy.ndimage 'nearest' mode),
so a stray query degrades instead of aborting the relaxation loop.

The field is built once (from an analytic shape or a voxelized
distance image), its arrays are frozen, and it is then shared by all
particles and worker threads.

References:
-----------
Osher & Fedkiw (2003) -- Level Set Methods and Dynamic Implicit Surfaces
'''

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import ndimage

from bodyFitted.ParticleRelax import constants as const
from bodyFitted.ParticleRelax.errors import GeometryError
from bodyFitted.ParticleRelax.geometry.shapes import ImplicitShape

logger = logging.getLogger(__name__)


class SignedDistanceField:
    '''
    Signed distance samples on a uniform 2D/3D node grid.

    values[i, j(, k)] is the signed distance at
    origin + spacing * (i, j(, k)); negative inside the solid.

    Parameters:
    -----------
    values : np.ndarray
        Node samples, shape (n0, n1) or (n0, n1, n2)
    origin : array-like
        Position of node (0, 0(, 0)) [m]
    spacing : float
        Uniform node spacing [m]

    Raises:
    -------
    GeometryError : If the samples cannot describe a solid body
    '''

    def __init__(self, values: np.ndarray, origin, spacing: float) -> None:
        values = np.array(values, dtype=float)
        origin = np.asarray(origin, dtype=float).reshape(-1)

        if values.ndim not in (2, 3):
            raise GeometryError(f'Distance grid must be 2D or 3D, got {values.ndim}D')
        if origin.shape[0] != values.ndim:
            raise GeometryError(
                f'Origin has {origin.shape[0]} components for a {values.ndim}D grid'
            )
        if min(values.shape) < 2:
            raise GeometryError(f'Distance grid needs >= 2 nodes per axis, got {values.shape}')
        if not (spacing > 0.0 and math.isfinite(spacing)):
            raise GeometryError(f'Grid spacing must be positive, got {spacing}')
        if not np.all(np.isfinite(values)):
            raise GeometryError('Distance grid contains non-finite samples')
        if not np.any(values < 0.0):
            raise GeometryError('Distance grid has no interior (no negative samples)')

        self._values = values
        self._origin = origin
        self._spacing = float(spacing)

        # Central differences inside, one-sided at the grid faces
        self._gradients = [np.asarray(g) for g in np.gradient(values, self._spacing)]

        self._values.setflags(write=False)
        self._origin.setflags(write=False)
        for g in self._gradients:
            g.setflags(write=False)

        logger.debug(
            'Distance field %s nodes, spacing %.4g, bounds %s - %s',
            values.shape, self._spacing, self.lower, self.upper,
        )

    ######################################################################
    # -- Construction -- #
    ######################################################################

    @classmethod
    def fromShape(
        cls,
        shape: ImplicitShape | None,
        lower,
        upper,
        spacing: float,
    ) -> SignedDistanceField:
        '''
        Sample an analytic shape on a node grid covering [lower, upper].

        Parameters:
        -----------
        shape : ImplicitShape
            Geometry to sample
        lower : array-like
            Lower corner of the sampled box [m]
        upper : array-like
            Upper corner of the sampled box [m]
        spacing : float
            Node spacing [m]

        Returns:
        --------
        SignedDistanceField : Sampled field

        Raises:
        -------
        GeometryError : If the shape is missing or the box is empty
        '''
        if shape is None:
            raise GeometryError('No geometry given')

        lower = np.asarray(lower, dtype=float)
        upper = np.asarray(upper, dtype=float)
        if lower.shape != upper.shape or lower.shape[0] != shape.dimensions:
            raise GeometryError('Sampling box does not match the shape dimension')
        if np.any(upper <= lower):
            raise GeometryError(f'Empty sampling box {lower} - {upper}')
        if not spacing > 0.0:
            raise GeometryError(f'Grid spacing must be positive, got {spacing}')

        nNodes = np.ceil((upper - lower) / spacing - 1e-9).astype(int) + 1
        axes = [lower[d] + spacing * np.arange(nNodes[d]) for d in range(len(nNodes))]
        mesh = np.meshgrid(*axes, indexing='ij')
        points = np.column_stack([m.ravel() for m in mesh])

        values = shape.signedDistance(points).reshape(tuple(nNodes))
        return cls(values, lower, spacing)

    @classmethod
    def fromVoxels(cls, values: np.ndarray, origin, spacing: float) -> SignedDistanceField:
        '''
        Wrap an already voxelized distance image.

        Parameters:
        -----------
        values : np.ndarray
            Distance samples, shape (n0, n1(, n2)), axis order x, y(, z)
        origin : array-like
            Position of the first voxel [m]
        spacing : float
            Voxel size [m]

        Returns:
        --------
        SignedDistanceField : Field over the image
        '''
        if values is None:
            raise GeometryError('No distance image given')
        return cls(values, origin, spacing)

    ######################################################################
    # -- Properties -- #
    ######################################################################

    @property
    def dimensions(self) -> int:
        return self._values.ndim

    @property
    def spacing(self) -> float:
        return self._spacing

    @property
    def shape(self) -> tuple[int, ...]:
        return self._values.shape

    @property
    def values(self) -> np.ndarray:
        '''Read-only node samples.'''
        return self._values

    @property
    def lower(self) -> np.ndarray:
        '''Lower corner of the sampled box [m].'''
        return self._origin.copy()

    @property
    def upper(self) -> np.ndarray:
        '''Upper corner of the sampled box [m].'''
        return self._origin + self._spacing * (np.array(self._values.shape) - 1)

    ######################################################################
    # -- Queries -- #
    ######################################################################

    def distance(self, points: np.ndarray) -> np.ndarray | float:
        '''
        Interpolated signed distance.

        Parameters:
        -----------
        points : np.ndarray
            A point, shape (dim,), or points, shape (N, dim)

        Returns:
        --------
        np.ndarray | float : Distances, shape (N,), or a float for one point
        '''
        pts, single = self._asPoints(points)
        phi = self._interpolate(self._values, pts)
        return float(phi[0]) if single else phi

    def gradient(self, points: np.ndarray) -> np.ndarray:
        '''
        Unit gradient of the distance (outward surface normal).

        Where the finite-difference gradient vanishes (e.g. the medial
        axis of a symmetric body) the zero vector is returned.

        Parameters:
        -----------
        points : np.ndarray
            A point, shape (dim,), or points, shape (N, dim)

        Returns:
        --------
        np.ndarray : Unit vectors, shape (dim,) or (N, dim)
        '''
        pts, single = self._asPoints(points)
        grad = np.column_stack([self._interpolate(g, pts) for g in self._gradients])

        norm = np.linalg.norm(grad, axis=1)
        valid = norm > const.tinyValue
        grad[valid] /= norm[valid, np.newaxis]
        grad[~valid] = 0.0

        return grad[0] if single else grad

    normal = gradient

    def contains(self, points: np.ndarray) -> np.ndarray | bool:
        '''True where the point lies inside the solid (distance < 0).'''
        return self.distance(points) < 0.0

    def project(
        self,
        points: np.ndarray,
        targetDistance: float = 0.0,
        tolerance: float | None = None,
        maxIterations: int = const.maxProjectionIterations,
    ) -> np.ndarray:
        '''
        Move points along the gradient onto an iso-surface.

        Repeats x <- x - (phi(x) - target) * n(x) until every point is
        within tolerance of the target distance or the iteration limit
        is reached. The input array is not modified.

        Parameters:
        -----------
        points : np.ndarray
            A point, shape (dim,), or points, shape (N, dim)
        targetDistance : float
            Iso-value to reach; 0 is the surface itself
        tolerance : float | None
            Convergence tolerance [m] (default 1e-3 * grid spacing)
        maxIterations : int
            Iteration limit

        Returns:
        --------
        np.ndarray : Projected points, same shape as the input
        '''
        pts, single = self._asPoints(points)
        pts = pts.copy()
        tol = tolerance if tolerance is not None else 1.0e-3 * self._spacing

        active = np.arange(pts.shape[0])
        for _ in range(maxIterations):
            if active.size == 0:
                break
            sub = pts[active]
            error = self._interpolate(self._values, sub) - targetDistance
            moving = np.abs(error) > tol
            if not np.any(moving):
                break
            active = active[moving]
            sub = sub[moving]
            pts[active] = sub - error[moving, np.newaxis] * self.gradient(sub)

        return pts[0] if single else pts

    ######################################################################
    # -- Internals -- #
    ######################################################################

    def _asPoints(self, points: np.ndarray) -> tuple[np.ndarray, bool]:
        pts = np.asarray(points, dtype=float)
        single = pts.ndim == 1
        pts = np.atleast_2d(pts)
        if pts.shape[1] != self.dimensions:
            raise GeometryError(
                f'Expected points of dimension {self.dimensions}, got {pts.shape[1]}'
            )
        return pts, single

    def _interpolate(self, grid: np.ndarray, points: np.ndarray) -> np.ndarray:
        '''Linear interpolation with nearest-sample extrapolation.'''
        if points.shape[0] == 0:
            return np.zeros(0)
        coords = ((points - self._origin) / self._spacing).T
        return ndimage.map_coordinates(grid, coords, order=1, mode='nearest')

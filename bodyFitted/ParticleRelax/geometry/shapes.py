# -- Analytic Implicit Shapes -- #

'''
Primitive implicit shapes and their composition into one body.

Each shape maps an array of points, shape (N, dim), to signed
distances, shape (N,), negative inside the solid. A ComplexShape
combines members by union (minimum of distances) and difference,
so arbitrary bodies are assembled from a flat list of primitives
rather than a class hierarchy.

References:
-----------
Quilez -- Distance functions (iquilezles.org/articles/distfunctions)
Hart (1996) -- Sphere tracing: a geometric method for the
    antialiased ray tracing of implicit surfaces
'''

from __future__ import annotations

from typing import Protocol

import numpy as np

from bodyFitted.ParticleRelax.errors import GeometryError


######################################################################
# -- Shape Protocol -- #
######################################################################

class ImplicitShape(Protocol):
    '''Protocol for geometry described by a signed distance function.'''

    def signedDistance(self, points: np.ndarray) -> np.ndarray:
        '''
        Signed distance from each point to the shape surface.

        Parameters:
        -----------
        points : np.ndarray
            Query points, shape (N, dim)

        Returns:
        --------
        np.ndarray : Signed distances, shape (N,), negative inside
        '''
        ...

    @property
    def dimensions(self) -> int:
        '''Number of spatial dimensions (2 or 3).'''
        ...


def _asPoints(points: np.ndarray, dimensions: int) -> np.ndarray:
    '''Coerce a point or point array to shape (N, dim).'''
    pts = np.atleast_2d(np.asarray(points, dtype=float))
    if pts.shape[1] != dimensions:
        raise GeometryError(
            f'Expected points of dimension {dimensions}, got {pts.shape[1]}'
        )
    return pts


######################################################################
# -- Primitives -- #
######################################################################

class Sphere:
    '''
    Ball of given radius (a disk in 2D).

    Parameters:
    -----------
    center : array-like
        Center point, length dim
    radius : float
        Radius [m]
    '''

    def __init__(self, center, radius: float) -> None:
        self._center = np.asarray(center, dtype=float)
        self._radius = float(radius)
        if self._radius <= 0.0:
            raise GeometryError(f'Sphere radius must be positive, got {radius}')

    @property
    def dimensions(self) -> int:
        return self._center.shape[0]

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def center(self) -> np.ndarray:
        return self._center

    def signedDistance(self, points: np.ndarray) -> np.ndarray:
        pts = _asPoints(points, self.dimensions)
        return np.linalg.norm(pts - self._center, axis=1) - self._radius


class Box:
    '''
    Axis-aligned box.

    Parameters:
    -----------
    center : array-like
        Box center, length dim
    halfSize : array-like
        Half extent along each axis, length dim
    '''

    def __init__(self, center, halfSize) -> None:
        self._center = np.asarray(center, dtype=float)
        self._halfSize = np.asarray(halfSize, dtype=float)
        if self._halfSize.shape != self._center.shape:
            raise GeometryError('Box center and halfSize must have the same length')
        if np.any(self._halfSize <= 0.0):
            raise GeometryError(f'Box half sizes must be positive, got {halfSize}')

    @property
    def dimensions(self) -> int:
        return self._center.shape[0]

    def signedDistance(self, points: np.ndarray) -> np.ndarray:
        pts = _asPoints(points, self.dimensions)
        q = np.abs(pts - self._center) - self._halfSize
        outside = np.linalg.norm(np.maximum(q, 0.0), axis=1)
        inside = np.minimum(np.max(q, axis=1), 0.0)
        return outside + inside


class Cylinder:
    '''
    Capped circular cylinder in 3D.

    Parameters:
    -----------
    center : array-like
        Cylinder center, length 3
    radius : float
        Radius [m]
    halfLength : float
        Half length along the axis [m]
    axis : int
        Index of the cylinder axis (0, 1 or 2)
    '''

    def __init__(self, center, radius: float, halfLength: float, axis: int = 2) -> None:
        self._center = np.asarray(center, dtype=float)
        if self._center.shape != (3,):
            raise GeometryError('Cylinder is only defined in 3D')
        if radius <= 0.0 or halfLength <= 0.0:
            raise GeometryError('Cylinder radius and halfLength must be positive')
        if axis not in (0, 1, 2):
            raise GeometryError(f'Cylinder axis must be 0, 1 or 2, got {axis}')
        self._radius = float(radius)
        self._halfLength = float(halfLength)
        self._axis = axis

    @property
    def dimensions(self) -> int:
        return 3

    def signedDistance(self, points: np.ndarray) -> np.ndarray:
        pts = _asPoints(points, 3) - self._center
        axial = np.abs(pts[:, self._axis]) - self._halfLength
        radialAxes = [d for d in range(3) if d != self._axis]
        radial = np.linalg.norm(pts[:, radialAxes], axis=1) - self._radius

        # 2D box distance in the (radial, axial) half plane
        q = np.column_stack([radial, axial])
        outside = np.linalg.norm(np.maximum(q, 0.0), axis=1)
        inside = np.minimum(np.max(q, axis=1), 0.0)
        return outside + inside


######################################################################
# -- Composite Shape -- #
######################################################################

class ComplexShape:
    '''
    Body assembled from primitive shapes.

    Added members form a union (distance = minimum over members);
    subtracted members are cut away afterwards:

        d(p) = max(min_k d_add_k(p), -min_m d_sub_m(p))

    Usage:
        body = ComplexShape('hull').add(Sphere(c, 1.0)).subtract(Box(c, h))

    Parameters:
    -----------
    name : str
        Body name used in diagnostics
    '''

    def __init__(self, name: str = 'ComplexShape') -> None:
        self.name = name
        self._added: list[ImplicitShape] = []
        self._subtracted: list[ImplicitShape] = []

    @property
    def dimensions(self) -> int:
        if not self._added:
            raise GeometryError(f'{self.name} has no shapes')
        return self._added[0].dimensions

    @property
    def nShapes(self) -> int:
        return len(self._added) + len(self._subtracted)

    def add(self, shape: ImplicitShape) -> ComplexShape:
        '''Union a shape into the body. Returns self for chaining.'''
        self._checkDimensions(shape)
        self._added.append(shape)
        return self

    def subtract(self, shape: ImplicitShape) -> ComplexShape:
        '''Cut a shape out of the body. Returns self for chaining.'''
        self._checkDimensions(shape)
        self._subtracted.append(shape)
        return self

    def signedDistance(self, points: np.ndarray) -> np.ndarray:
        if not self._added:
            raise GeometryError(f'{self.name} has no shapes')

        distance = self._added[0].signedDistance(points)
        for shape in self._added[1:]:
            distance = np.minimum(distance, shape.signedDistance(points))
        for shape in self._subtracted:
            distance = np.maximum(distance, -shape.signedDistance(points))
        return distance

    def _checkDimensions(self, shape: ImplicitShape) -> None:
        members = self._added + self._subtracted
        if members and shape.dimensions != members[0].dimensions:
            raise GeometryError(
                f'{self.name}: cannot mix {members[0].dimensions}D '
                f'and {shape.dimensions}D shapes'
            )

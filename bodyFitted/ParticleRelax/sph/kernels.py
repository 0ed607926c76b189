# -- SPH Smoothing Kernels -- #

'''
Smoothing kernel functions for particle interaction weights.

Implements the cubic spline (M4) and Wendland C2 kernels in 2D/3D
with their gradients. Both have compact support at q = r/h = 2.

All batch operations accept either a scalar smoothing length or a
per-pair array of smoothing lengths, so pairs of particles carrying
different resolutions are evaluated in one vectorized call.

Key properties of a valid SPH kernel:
- Normalization: integral of W over the domain = 1
- Compact support: W = 0 for r >= support radius
- Positivity: W >= 0 within support
- Radial symmetry: grad_W_ij = -grad_W_ji

References:
-----------
Monaghan (1992) -- Smoothed Particle Hydrodynamics
Wendland (1995) -- Piecewise polynomial, positive definite and
    compactly supported radial functions of minimal degree
'''

from __future__ import annotations

import math
from typing import Protocol

import numpy as np

from bodyFitted.ParticleRelax import constants as const


######################################################################
# -- Kernel Protocol -- #
######################################################################

class SphKernel(Protocol):
    '''Protocol for SPH smoothing kernel functions.'''

    @property
    def dimensions(self) -> int:
        '''Number of spatial dimensions (2 or 3).'''
        ...

    @property
    def supportFactor(self) -> float:
        '''Support radius in units of h.'''
        ...

    def evaluate(self, r: float, h: float) -> float:
        '''Kernel value W(r, h) [1/m^dim].'''
        ...

    def evaluateBatch(self, distances: np.ndarray, h: np.ndarray | float) -> np.ndarray:
        '''Kernel values for an array of distances.'''
        ...

    def gradientMagnitudeBatch(self, distances: np.ndarray, h: np.ndarray | float) -> np.ndarray:
        '''dW/dr for an array of distances.'''
        ...

    def gradientBatch(
        self, drVecs: np.ndarray, distances: np.ndarray, h: np.ndarray | float
    ) -> np.ndarray:
        '''Gradient vectors grad_W for an array of pairs.'''
        ...

    def shapeFunction(self, q: np.ndarray) -> np.ndarray:
        '''Dimensionless profile W(q) / W(0), 1 at q = 0, 0 beyond support.'''
        ...


######################################################################
# -- Shared Compact-Support Machinery -- #
######################################################################

class _CompactKernel:
    '''
    Shared batch evaluation for radially symmetric kernels with
    support q < 2. Subclasses provide the normalization constants
    and the polynomial profile f(q) with its derivative f'(q):

        W(r, h) = sigma(h) * f(r / h)
        dW/dr   = sigma(h) * f'(r / h) / h

    Parameters:
    -----------
    dimensions : int
        Number of spatial dimensions (2 or 3)
    '''

    # Normalization coefficients: sigma = coeff / h^dim
    _sigma2D: float = 1.0
    _sigma3D: float = 1.0

    def __init__(self, dimensions: int = 2) -> None:
        if dimensions not in (2, 3):
            raise ValueError(f'Kernel dimensions must be 2 or 3, got {dimensions}')
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def supportFactor(self) -> float:
        return 2.0

    def _normalization(self, h):
        '''sigma for scalar or array h.'''
        if self._dimensions == 2:
            return self._sigma2D / (h * h)
        return self._sigma3D / (h * h * h)

    def _profile(self, q: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def _profileDerivative(self, q: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def evaluate(self, r: float, h: float) -> float:
        '''
        Evaluate W(r, h) for a single distance.

        Parameters:
        -----------
        r : float
            Distance between particles [m]
        h : float
            Smoothing length [m]

        Returns:
        --------
        float : Kernel value [1/m^dim]
        '''
        return float(self.evaluateBatch(np.array([r], dtype=float), h)[0])

    def evaluateBatch(self, distances: np.ndarray, h: np.ndarray | float) -> np.ndarray:
        '''
        Evaluate W(r, h) for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Distances [m], shape (N,)
        h : np.ndarray | float
            Smoothing length(s) [m], scalar or shape (N,)

        Returns:
        --------
        np.ndarray : Kernel values, shape (N,)
        '''
        q = distances / h
        sigma = np.broadcast_to(self._normalization(h), q.shape)

        result = np.zeros_like(q)
        active = q < self.supportFactor
        result[active] = sigma[active] * self._profile(q[active])
        return result

    def gradientMagnitudeBatch(self, distances: np.ndarray, h: np.ndarray | float) -> np.ndarray:
        '''
        Compute dW/dr for an array of distances.

        Parameters:
        -----------
        distances : np.ndarray
            Distances [m], shape (N,)
        h : np.ndarray | float
            Smoothing length(s) [m], scalar or shape (N,)

        Returns:
        --------
        np.ndarray : dW/dr values (non-positive), shape (N,)
        '''
        q = distances / h
        sigma = np.broadcast_to(self._normalization(h), q.shape)
        hArr = np.broadcast_to(h, q.shape)

        result = np.zeros_like(q)
        # Gradient vanishes at r = 0 by symmetry
        active = (q > const.tinyValue) & (q < self.supportFactor)
        result[active] = sigma[active] * self._profileDerivative(q[active]) / hArr[active]
        return result

    def gradientBatch(
        self, drVecs: np.ndarray, distances: np.ndarray, h: np.ndarray | float
    ) -> np.ndarray:
        '''
        Kernel gradient vectors for an array of particle pairs.

        grad_W_k = (dW/dr)_k * (dr_k / |dr_k|)

        Parameters:
        -----------
        drVecs : np.ndarray
            Displacement vectors r_i - r_j, shape (N, dim)
        distances : np.ndarray
            Distances |dr|, shape (N,)
        h : np.ndarray | float
            Smoothing length(s) [m], scalar or shape (N,)

        Returns:
        --------
        np.ndarray : Gradient vectors, shape (N, dim)
        '''
        dwdr = self.gradientMagnitudeBatch(distances, h)
        safeDistances = np.where(distances > const.tinyValue, distances, 1.0)
        gradients = (dwdr / safeDistances)[:, np.newaxis] * drVecs
        gradients[distances <= const.tinyValue] = 0.0
        return gradients

    def shapeFunction(self, q: np.ndarray) -> np.ndarray:
        '''
        Dimensionless kernel profile W(q) / W(0).

        Monotonically decreasing from 1 at q = 0 to 0 at the support
        radius; used as a smooth blending weight.

        Parameters:
        -----------
        q : np.ndarray
            Normalized distances r / h

        Returns:
        --------
        np.ndarray : Profile values in [0, 1]
        '''
        q = np.abs(np.asarray(q, dtype=float))
        result = np.zeros_like(q)
        active = q < self.supportFactor
        result[active] = self._profile(q[active]) / self._profile(np.zeros(1))[0]
        return result


######################################################################
# -- Cubic Spline Kernel (M4) -- #
######################################################################

class CubicSplineKernel(_CompactKernel):
    '''
    Cubic spline (M4) smoothing kernel.

    W(q) = sigma * {
        1 - (3/2)*q^2 + (3/4)*q^3    for 0 <= q < 1
        (1/4)*(2 - q)^3               for 1 <= q < 2
        0                              for q >= 2
    }

    Normalization constants (sigma):
        2D: sigma = 10 / (7 * pi * h^2)
        3D: sigma = 1 / (pi * h^3)
    '''

    _sigma2D = 10.0 / (7.0 * math.pi)
    _sigma3D = 1.0 / math.pi

    def _profile(self, q: np.ndarray) -> np.ndarray:
        twoMinusQ = 2.0 - q
        return np.where(
            q < 1.0,
            1.0 - 1.5 * q * q + 0.75 * q * q * q,
            0.25 * twoMinusQ * twoMinusQ * twoMinusQ,
        )

    def _profileDerivative(self, q: np.ndarray) -> np.ndarray:
        twoMinusQ = 2.0 - q
        return np.where(
            q < 1.0,
            -3.0 * q + 2.25 * q * q,
            -0.75 * twoMinusQ * twoMinusQ,
        )


######################################################################
# -- Wendland C2 Kernel -- #
######################################################################

class WendlandC2Kernel(_CompactKernel):
    '''
    Wendland C2 smoothing kernel.

    W(q) = sigma * (1 - q/2)^4 * (2*q + 1)  for 0 <= q < 2

    dW/dq = -5 * sigma * q * (1 - q/2)^3

    No pairing instability, which keeps relaxed particle layouts
    free of clumps at large neighbor counts.

    Normalization constants (sigma):
        2D: sigma = 7 / (4 * pi * h^2)
        3D: sigma = 21 / (16 * pi * h^3)
    '''

    _sigma2D = 7.0 / (4.0 * math.pi)
    _sigma3D = 21.0 / (16.0 * math.pi)

    def _profile(self, q: np.ndarray) -> np.ndarray:
        oneMinusHalfQ = 1.0 - 0.5 * q
        return (oneMinusHalfQ ** 4) * (2.0 * q + 1.0)

    def _profileDerivative(self, q: np.ndarray) -> np.ndarray:
        oneMinusHalfQ = 1.0 - 0.5 * q
        return -5.0 * q * (oneMinusHalfQ ** 3)


######################################################################
# -- Kernel Factory -- #
######################################################################

KERNEL_TYPES = ('cubicSpline', 'wendlandC2')


def createKernel(kernelType: str, dimensions: int = 2) -> SphKernel:
    '''
    Create a kernel instance by type name.

    Parameters:
    -----------
    kernelType : str
        Kernel type: 'cubicSpline' or 'wendlandC2'
    dimensions : int
        Number of spatial dimensions (2 or 3)

    Returns:
    --------
    SphKernel : Kernel instance

    Raises:
    -------
    ValueError : If kernel type is unknown
    '''
    if kernelType == 'cubicSpline':
        return CubicSplineKernel(dimensions)
    elif kernelType == 'wendlandC2':
        return WendlandC2Kernel(dimensions)
    else:
        raise ValueError(f'Unknown kernel type: {kernelType}')

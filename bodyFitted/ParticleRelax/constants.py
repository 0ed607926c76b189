# -- Numerical Constants for Particle Relaxation -- #

'''
Numerical constants for level-set guided particle relaxation.
Lengths are expressed relative to the base particle spacing or the
local smoothing length unless otherwise noted.

References:
-----------
Zhu, Zhang & Hu (2021) -- A CAD-compatible body-fitted particle
    generator for arbitrarily complex geometry and its application
    to wave-structure interaction
Yu, Zhu, Zhang & Hu (2023) -- Level-set based pre-processing
    techniques for particle methods
'''

#--------------------------------------------------------------------#
# -- Resolution Defaults -- #
#--------------------------------------------------------------------#

# Smoothing length to particle spacing ratio
# h_ref = hSpacingRatio * particleSpacing
defaultHSpacingRatio: float = 1.15

# Smoothing-length ratio bounds (finest, coarsest)
# h_i = h_ref * ratio_i, local spacing = particleSpacing * ratio_i
defaultMinRatio: float = 1.0
defaultMaxRatio: float = 2.0

# Near-surface band half width and target offset, in units of the
# finest spacing. Negative offset places particles inside the solid.
surfaceBandFactor: float = 0.5
surfaceOffsetFactor: float = -0.5

# Blend width (beyond the band) from finest to coarsest ratio,
# in units of the coarsest spacing
transitionWidthFactor: float = 4.0

# Default smoothing kernel ('cubicSpline' or 'wendlandC2')
defaultKernelType: str = 'wendlandC2'

# Projection convergence tolerance, in units of the base spacing
boundingToleranceFactor: float = 1.0e-3

#--------------------------------------------------------------------#
# -- Relaxation Loop -- #
#--------------------------------------------------------------------#

# Default iteration budget and snapshot cadence
defaultIterations: int = 1000
defaultRecordInterval: int = 100

# One-time jitter amplitude, fraction of the local spacing
defaultJitterFraction: float = 0.25

# Pseudo time-step factor
# dt_i^2 = timeStepFactor * h_i^2 / (max(max_k |a_k| h_k, minResidualScale) * sigma_i)
# Bounds the step of any particle to 0.5 * timeStepFactor * h_i / sigma_i
timeStepFactor: float = 0.125

# Lower clamp on the normalized particle number density sigma_i
# used in the time-step criterion (sparse particles near the surface)
minDensityRatio: float = 0.5

# Lower clamp on max_k |a_k| h_k in the time-step criterion
# Below it displacements scale with the residual itself
minResidualScale: float = 0.5

# Repulsion prefactor: a_i = -repulsionFactor * sum_j V_j grad_W_ij
repulsionFactor: float = 2.0

#--------------------------------------------------------------------#
# -- Level-Set Queries -- #
#--------------------------------------------------------------------#

# Maximum Newton-style iterations when projecting onto an iso-surface
maxProjectionIterations: int = 20

# Quadrature step of the boundary compensation stencil, in units of h
compensationStencilStep: float = 0.5

# Threshold below which a distance or gradient norm counts as zero
tinyValue: float = 1.0e-12

#--------------------------------------------------------------------#
# -- Parallel Execution -- #
#--------------------------------------------------------------------#

# Minimum number of items handed to one worker thread
minChunkSize: int = 512

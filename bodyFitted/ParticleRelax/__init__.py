# -- ParticleRelax Package -- #

'''
Body-fitted particle generation and relaxation.

Fills a solid described by a signed-distance field with particles
and relaxes them into a uniform, surface-conforming arrangement
using SPH kernel repulsion with level-set surface bounding.
'''

__version__ = '0.1.0'

from bodyFitted.ParticleRelax.errors import GeometryError, ConfigurationError
from bodyFitted.ParticleRelax.geometry import SignedDistanceField, Sphere, Box, Cylinder, ComplexShape
from bodyFitted.ParticleRelax.sph import RelaxationConfig, RelaxationState, RelaxationSolver, ParticleGenerator
from bodyFitted.ParticleRelax.export.snapshotRecorder import SnapshotRecorder
from bodyFitted.ParticleRelax.scenarios.sphereBody import SphereBodyConfig, createSphereBody

# -- Geometry Package -- #

'''
Implicit geometry: analytic shapes and the sampled signed-distance
field consumed by the relaxation engine.
'''

from bodyFitted.ParticleRelax.geometry.shapes import ImplicitShape, Sphere, Box, Cylinder, ComplexShape
from bodyFitted.ParticleRelax.geometry.signedDistanceField import SignedDistanceField

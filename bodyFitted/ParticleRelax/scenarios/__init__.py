# -- Relaxation Scenarios Package -- #

'''
Pre-configured bodies for particle relaxation.

Each scenario provides the body geometry (as a sampled distance
field), the generated particles and the relaxation configuration.
'''

from bodyFitted.ParticleRelax.scenarios.sphereBody import (
    PRESETS,
    SphereBodyConfig,
    createRelaxationConfig,
    createSphereBody,
)

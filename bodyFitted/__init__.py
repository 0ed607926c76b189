# -- Body-Fitted Particles Package -- #

'''
Master package for body-fitted particle generation.

Domain-specific sub-packages:
    - ParticleRelax: Level-set guided particle generation and relaxation

Shared tools:
    - loggingConfig: Logger setup for the bodyFitted namespace
'''

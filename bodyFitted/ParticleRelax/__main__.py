# -- ParticleRelax Entry Point -- #

'''Allows running as: python -m bodyFitted.ParticleRelax'''

from bodyFitted.ParticleRelax.runner import main

main()

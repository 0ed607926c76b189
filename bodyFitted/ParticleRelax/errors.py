# -- Particle Relaxation Errors -- #

'''
Exception types raised at the construction boundary.

Once the relaxation loop has started nothing in the engine raises;
every failure originates while building geometry or validating the
configuration.
'''


class GeometryError(ValueError):
    '''Source geometry is missing or malformed; no field can be built.'''


class ConfigurationError(ValueError):
    '''Relaxation configuration values are inconsistent.'''

# -- Export Package -- #

'''
Snapshot recording and JSON export of relaxation runs.
'''

from bodyFitted.ParticleRelax.export.snapshotRecorder import SnapshotRecorder

"""
Backends for the hybrid smoother.

`gtsam` builds nonlinear and hybrid nonlinear measurement factors with GTSAM.
"""

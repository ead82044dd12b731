"""
The pyro incompressible solver on a block-structured AMR hierarchy.
This implements a second-order approximate projection method with
subcycling in time.  Each level is advanced with a Godunov method for
the advective terms, an implicit (Crank-Nicolson) treatment of the
viscous terms, and MAC and nodal projections.  After the finer levels
catch up, the levels are synchronized by refluxing and by the MAC and
nodal sync projections.
"""

__all__ = ["simulation"]

from .simulation import Simulation

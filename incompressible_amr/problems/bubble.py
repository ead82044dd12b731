"""
A light bubble rising through a heavier fluid in a box with walls.
The bubble is a circle of radius r_pert centered on (x_pert, y_pert)
whose density is dens_base/dens_ratio, smoothed over a few zones.  The
tracer marks the bubble fluid.  Gravity comes from ns.gravity (negative
is downward).
"""

import numpy as np

import mesh.patch as patch
from util import msg


def init_data(my_data, rp):
    """ initialize the bubble problem on one patch """

    # make sure that we are passed a valid patch object
    if not isinstance(my_data, patch.CellCenterData2d):
        print(my_data.__class__)
        msg.fail("ERROR: patch invalid in bubble.py")

    dens_base = rp.get_param("bubble.dens_base")
    dens_ratio = rp.get_param("bubble.dens_ratio")

    x_pert = rp.get_param("bubble.x_pert")
    y_pert = rp.get_param("bubble.y_pert")
    r_pert = rp.get_param("bubble.r_pert")
    width = rp.get_param("bubble.width")

    if dens_ratio <= 0.0:
        msg.fail("ERROR: bubble.dens_ratio must be positive")

    xvel = my_data.get_var("x-velocity")
    yvel = my_data.get_var("y-velocity")
    dens = my_data.get_var("density")

    myg = my_data.grid

    xvel.d[:, :] = 0.0
    yvel.d[:, :] = 0.0

    dist = np.sqrt((myg.x2d - x_pert)**2 + (myg.y2d - y_pert)**2)

    # 1 inside the bubble, 0 outside
    inside = 0.5*(1.0 - np.tanh((dist - r_pert)/width))

    dens.d[:, :] = dens_base*(1.0 - inside*(1.0 - 1.0/dens_ratio))

    for name in my_data.names[3:]:
        s = my_data.get_var(name)
        s.d[:, :] = inside


def finalize():
    """ print out any information to the user at the end of the run """
    pass

"""
Initialize the doubly periodic shear layer (see, for example, Martin
and Colella, 2000, JCP, 163, 271).  This is run in a unit square
domain, with periodic boundary conditions on all sides.  Here, the
initial velocity is

              / tanh(rho_s (y-0.25))   if y <= 0.5
u(x,y,t=0) = <
              \\ tanh(rho_s (0.75-y))   if y > 0.5


v(x,y,t=0) = delta_s sin(2 pi x)

The tracer marks the fluid that starts in the middle of the domain.
"""

import numpy as np

import mesh.patch as patch
from util import msg


def init_data(my_data, rp):
    """ initialize the incompressible shear problem on one patch """

    # make sure that we are passed a valid patch object
    if not isinstance(my_data, patch.CellCenterData2d):
        print(my_data.__class__)
        msg.fail("ERROR: patch invalid in shear.py")

    # get the necessary runtime parameters
    rho_s = rp.get_param("shear.rho_s")
    delta_s = rp.get_param("shear.delta_s")
    dens_base = rp.get_param("shear.dens_base")

    u = my_data.get_var("x-velocity")
    v = my_data.get_var("y-velocity")
    dens = my_data.get_var("density")

    myg = my_data.grid

    if (rp.get_param("mesh.xmin") != 0 or rp.get_param("mesh.xmax") != 1 or
            rp.get_param("mesh.ymin") != 0 or rp.get_param("mesh.ymax") != 1):
        msg.fail("ERROR: domain should be a unit square")

    y_half = 0.5

    u.d[:, :] = np.where(myg.y2d <= y_half,
                         np.tanh(rho_s*(myg.y2d - 0.25)),
                         np.tanh(rho_s*(0.75 - myg.y2d)))

    v.d[:, :] = delta_s*np.sin(2.0*np.pi*myg.x2d)

    dens.d[:, :] = dens_base

    for name in my_data.names[3:]:
        s = my_data.get_var(name)
        s.d[:, :] = np.where(np.abs(myg.y2d - y_half) < 0.25, 1.0, 0.0)


def finalize():
    """ print out any information to the user at the end of the run """
    pass

"""
Initialize a smooth incompressible convergence test.  Here, the
velocities are initialized as

u(x,y) = 1 - 2 cos(2 pi x) sin(2 pi y)
v(x,y) = 1 + 2 sin(2 pi x) cos(2 pi y)

and the exact solution at some later time t is then

u(x,y,t) = 1 - 2 cos(2 pi (x - t)) sin(2 pi (y - t))
v(x,y,t) = 1 + 2 sin(2 pi (x - t)) cos(2 pi (y - t))
p(x,y,t) = -cos(4 pi (x - t)) - cos(4 pi (y - t))

The numerical solution can be compared to the exact solution to
measure the convergence rate of the algorithm.
"""

import math

import numpy as np

import mesh.patch as patch
from util import msg


def exact(x, y, t):
    """the exact velocity and pressure at time t"""
    u = 1.0 - 2.0*np.cos(2.0*math.pi*(x - t))*np.sin(2.0*math.pi*(y - t))
    v = 1.0 + 2.0*np.sin(2.0*math.pi*(x - t))*np.cos(2.0*math.pi*(y - t))
    p = -np.cos(4.0*math.pi*(x - t)) - np.cos(4.0*math.pi*(y - t))
    return u, v, p


def init_data(my_data, rp):
    """ initialize the incompressible converge problem on one patch """

    # make sure that we are passed a valid patch object
    if not isinstance(my_data, patch.CellCenterData2d):
        print(my_data.__class__)
        msg.fail("ERROR: patch invalid in converge.py")

    u = my_data.get_var("x-velocity")
    v = my_data.get_var("y-velocity")
    dens = my_data.get_var("density")

    myg = my_data.grid

    if (rp.get_param("mesh.xmin") != 0 or rp.get_param("mesh.xmax") != 1 or
            rp.get_param("mesh.ymin") != 0 or rp.get_param("mesh.ymax") != 1):
        msg.fail("ERROR: domain should be a unit square")

    u.d[:, :], v.d[:, :], _ = exact(myg.x2d, myg.y2d, 0.0)

    dens.d[:, :] = rp.get_param("converge.dens_base")

    for name in my_data.names[3:]:
        s = my_data.get_var(name)
        s.d[:, :] = np.sin(2.0*math.pi*myg.x2d)*np.sin(2.0*math.pi*myg.y2d)


def finalize():
    """ print out any information to the user at the end of the run """

    ostr = """
          Comparisons to the analytic solution can be made with
          incompressible_amr.problems.converge.exact(x, y, t)
          """

    print(ostr)

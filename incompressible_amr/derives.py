"""
Derived variables.  These are registered on each patch with
add_derived(), so that get_var() of a patch can return them as if they
were state variables.  The ghost cells of the patch must be filled.
"""

import numpy as np

import multigrid.masked_cg as masked_cg

STATE_DERIVES = ["vorticity", "mag_vort", "mag_vel", "kinetic_energy", "divu"]
PRESSURE_DERIVES = ["gradpx", "gradpy", "avg_pressure"]


def _wanted(varnames):
    if isinstance(varnames, str):
        return [varnames]
    return list(varnames)


def derive_primitives(myd, varnames):
    """
    the derived quantities of the cell-centered state:

    vorticity : dv/dx - du/dy
    mag_vort : |dv/dx - du/dy|
    mag_vel : sqrt(u**2 + v**2)
    kinetic_energy : rho (u**2 + v**2)/2
    divu : du/dx + dv/dy (centered differences)
    """

    wanted = _wanted(varnames)
    if not all(var in STATE_DERIVES for var in wanted):
        return None

    myg = myd.grid

    u = myd.get_var("x-velocity")
    v = myd.get_var("y-velocity")

    derived_vars = []

    for var in wanted:

        q = myg.scratch_array()

        if var in ["vorticity", "mag_vort"]:
            q.v()[:, :] = 0.5*(v.ip(1) - v.ip(-1))/myg.dx - \
                0.5*(u.jp(1) - u.jp(-1))/myg.dy
            if var == "mag_vort":
                q.d[:, :] = np.abs(q.d)

        elif var == "mag_vel":
            q.d[:, :] = np.sqrt(u**2 + v**2)

        elif var == "kinetic_energy":
            rho = myd.get_var("density")
            q.d[:, :] = 0.5*rho*(u**2 + v**2)

        elif var == "divu":
            q.v()[:, :] = 0.5*(u.ip(1) - u.ip(-1))/myg.dx + \
                0.5*(v.jp(1) - v.jp(-1))/myg.dy

        derived_vars.append(q)

    if len(derived_vars) > 1:
        return derived_vars
    return derived_vars[0]


def derive_pressure(myd, varnames):
    """
    cell-centered quantities from the node-centered pressure: the
    components of its gradient (gradpx, gradpy) and the average of the
    four corner values (avg_pressure)
    """

    wanted = _wanted(varnames)
    if not all(var in PRESSURE_DERIVES for var in wanted):
        return None

    myg = myd.grid
    p = np.asarray(myd.get_var("pressure"))

    gx, gy = masked_cg.nodal_gradient(p, myg.dx, myg.dy)

    derived_vars = []
    for var in wanted:
        q = myg.scratch_array()
        if var == "gradpx":
            q.d[:, :] = gx
        elif var == "gradpy":
            q.d[:, :] = gy
        else:
            q.d[:, :] = 0.25*(p[:-1, :-1] + p[1:, :-1] + p[:-1, 1:] + p[1:, 1:])
        derived_vars.append(q)

    if len(derived_vars) > 1:
        return derived_vars
    return derived_vars[0]

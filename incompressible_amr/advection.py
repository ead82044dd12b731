"""
Explicit advection of one patch: turn the Godunov face states into
fluxes and the advective operator Aofs.

The fluxes are the edge velocity times the edge state times the face
area.  Aofs is the advective term as it appears on the right of the
update, S^{n+1} = S^n - dt Aofs, and it comes in two forms:

  conservative:      Aofs = sum over faces (flux) / volume = div (U s)

  non-conservative:  Aofs = sum_d 0.5 (u_lo + u_hi) (s_hi - s_lo) / dx_d
                          = U . grad s

For a uniform, divergence-free flow the two agree.
"""

import incompressible_amr.godunov as godunov


def compute_fluxes(myg, u_MAC, v_MAC, q_xint, q_yint):
    """
    the advective fluxes through the x- and y-faces of the patch.  Only
    the faces of the valid cells are set.
    """

    flux_x = myg.scratch_array()
    flux_y = myg.scratch_array()

    b = (0, 1, 0, 0)
    flux_x.v(buf=b)[:, :] = u_MAC.v(buf=b)*q_xint.v(buf=b)*myg.dy

    b = (0, 0, 0, 1)
    flux_y.v(buf=b)[:, :] = v_MAC.v(buf=b)*q_yint.v(buf=b)*myg.dx

    return flux_x, flux_y


def compute_aofs(myg, u_MAC, v_MAC, q_xint, q_yint, flux_x=None, flux_y=None,
                 conservative=True):
    """
    the advective operator on the valid cells of the patch

    Parameters
    ----------
    myg : Grid2d object
        the patch grid
    u_MAC, v_MAC : ArrayIndexer
        the face velocities
    q_xint, q_yint : ArrayIndexer
        the face states
    flux_x, flux_y : ArrayIndexer, optional
        the fluxes, if they were already computed
    conservative : bool
        the form of the operator

    Returns
    -------
    aofs : ArrayIndexer
    """

    aofs = myg.scratch_array()

    if conservative:
        if flux_x is None:
            flux_x, flux_y = compute_fluxes(myg, u_MAC, v_MAC, q_xint, q_yint)

        vol = myg.dx*myg.dy
        aofs.v()[:, :] = (flux_x.ip(1) - flux_x.v() +
                          flux_y.jp(1) - flux_y.v())/vol

    else:
        # we want u_MAC q_x + v_MAC q_y
        aofs.v()[:, :] = \
            0.5*(u_MAC.v() + u_MAC.ip(1))*(q_xint.ip(1) - q_xint.v())/myg.dx + \
            0.5*(v_MAC.v() + v_MAC.jp(1))*(q_yint.jp(1) - q_yint.v())/myg.dy

    return aofs


def advect_state(myg, dt, scheme, q, u, v, u_MAC, v_MAC, tforce, bc,
                 conservative=False, use_forces_in_trans=False,
                 kinds=("scalar", "scalar")):
    """
    advect a single component: predict its edge states, then form the
    fluxes and Aofs.

    Returns
    -------
    aofs, flux_x, flux_y, q_xint, q_yint : ArrayIndexer
    """

    q_xint, q_yint = godunov.edge_states(myg, dt, scheme, q, u, v,
                                         u_MAC, v_MAC, tforce, bc,
                                         conservative=conservative,
                                         use_forces_in_trans=use_forces_in_trans,
                                         kinds=kinds)

    flux_x, flux_y = compute_fluxes(myg, u_MAC, v_MAC, q_xint, q_yint)

    aofs = compute_aofs(myg, u_MAC, v_MAC, q_xint, q_yint,
                        flux_x=flux_x, flux_y=flux_y, conservative=conservative)

    return aofs, flux_x, flux_y, q_xint, q_yint


def advect_scalars(myg, dt, scheme, my_data, names, forms, u_MAC, v_MAC,
                   tforces, use_forces_in_trans=False):
    """
    advect a range of state components of one patch.

    Parameters
    ----------
    my_data : CellCenterData2d
        the patch state, with ghost cells filled
    names : list of str
        the components to advect
    forms : list of str
        the advection form of each component
    tforces : dict
        the forcing of each component (or None)

    Returns
    -------
    results : dict
        for each name, the tuple (aofs, flux_x, flux_y, q_xint, q_yint)
    """

    u = my_data.get_var("x-velocity")
    v = my_data.get_var("y-velocity")

    results = {}
    for name, form in zip(names, forms):
        q = my_data.get_var(name)
        results[name] = advect_state(myg, dt, scheme, q, u, v, u_MAC, v_MAC,
                                     tforces.get(name), my_data.BCs[name],
                                     conservative=(form == "conservative"),
                                     use_forces_in_trans=use_forces_in_trans)

    return results

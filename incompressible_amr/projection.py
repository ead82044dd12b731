"""
The projections.  Each routine works on level canvases (full-domain
arrays with ghost cells) and leaves the scattering back to the patches
to the caller.

MAC projection: the face-centered advective velocities are made
discretely divergence free.  We solve

    D (1/rho) G phi = D U* / dt

with phi cell-centered, and set U = U* - dt (1/rho) G phi on the faces.

Level (nodal) projection: the cell-centered velocity after the update
is projected with a node-centered phi,

    D (1/rho) G phi = D U*,    U = U* - (1/rho) G phi

where G takes node data to cells and D takes cell data to nodes, and
the pressure is incremented by phi/dt.

The sync projections are the same two operators applied to the
mismatch that the coarse/fine interfaces leave behind.
"""

import numpy as np

import incompressible_amr.elliptic as elliptic
import mesh.boundary as bnd
import mesh.array_indexer as ai
import multigrid.masked_cg as masked_cg
from util import msg


def check_solve(converged, residual, what, level, time, abort_on_fail):
    """report a solve that did not reach its tolerance"""
    if converged:
        return

    err = "{} did not converge on level {} at t = {}: residual = {}".format(
        what, level, time, residual)

    if abort_on_fail:
        msg.fail("ERROR: " + err)
    else:
        msg.warning("warning: " + err)


def rhs_floor(grid, vel_scale, npts):
    """
    the norm of a divergence righthand side on npts points that is
    round-off for velocities of size vel_scale
    """
    return np.sqrt(npts)*vel_scale/min(grid.dx, grid.dy)


def face_average(grid, c):
    """
    a cell-centered canvas quantity averaged to the x- and y-faces,
    including the faces one zone into the ghost cells
    """
    c = ai.ArrayIndexer(np.asarray(c), grid=grid)

    cx = grid.scratch_array()
    cy = grid.scratch_array()

    b = (2, 3, 2, 2)
    cx.v(buf=b)[:, :] = 0.5*(c.ip(-1, buf=b) + c.v(buf=b))

    b = (2, 2, 2, 3)
    cy.v(buf=b)[:, :] = 0.5*(c.jp(-1, buf=b) + c.v(buf=b))

    return cx, cy


def mac_divergence(grid, u_MAC, v_MAC):
    """the divergence of face velocities, on the valid cells of the canvas"""
    div = grid.scratch_array()
    div.v()[:, :] = (u_MAC.ip(1) - u_MAC.v())/grid.dx + \
        (v_MAC.jp(1) - v_MAC.v())/grid.dy
    return div


def mac_project(grid, phys_bcs, rho, u_MAC, v_MAC, dt, mask=None,
                rtol=1.e-10, max_iter=2000, verbose=0):
    """
    make the MAC velocities divergence free, in place.

    Parameters
    ----------
    grid : Grid2d
        the level canvas grid
    phys_bcs : list of str
        the physical boundary types of the level
    rho : ndarray
        the density on the canvas (ghost cells filled)
    u_MAC, v_MAC : ArrayIndexer
        the face velocities on the canvas
    dt : float
        timestep
    mask : ndarray of bool, optional
        the valid cells, when the level does not cover its domain.
        phi = 0 is used on the cells outside.

    Returns
    -------
    phi : ArrayIndexer
    converged : bool
    residual : float
    """

    bc_types = bnd.projection_bc_types(phys_bcs)

    coeff = 1.0/np.asarray(rho)

    # -D (1/rho) G phi = -D U* / dt
    div = mac_divergence(grid, u_MAC, v_MAC)
    f = grid.scratch_array()
    f.v()[:, :] = -div.v()/dt

    vel_scale = max(np.max(np.abs(u_MAC.v(buf=(0, 1, 0, 0)))),
                    np.max(np.abs(v_MAC.v(buf=(0, 0, 0, 1)))))
    npts = grid.nx*grid.ny if mask is None else np.count_nonzero(mask)

    phi, converged, residual = elliptic.solve_cell(grid, bc_types, coeff, f.d,
                                                   mask=mask, rtol=rtol,
                                                   max_iter=max_iter,
                                                   verbose=verbose,
                                                   bfloor=rhs_floor(grid, vel_scale, npts)/dt)

    mac_correct(grid, coeff, phi, u_MAC, v_MAC, dt)

    return phi, converged, residual


def mac_correct(grid, coeff, phi, u_MAC, v_MAC, scale):
    """U = U - scale coeff G phi on the faces (including one ghost face)"""

    cx, cy = face_average(grid, coeff)

    b = (1, 2, 1, 1)
    u_MAC.v(buf=b)[:, :] -= scale*cx.v(buf=b)*(phi.v(buf=b) - phi.ip(-1, buf=b))/grid.dx

    b = (1, 1, 1, 2)
    v_MAC.v(buf=b)[:, :] -= scale*cy.v(buf=b)*(phi.v(buf=b) - phi.jp(-1, buf=b))/grid.dy


def mac_sync_solve(grid, phys_bcs, rho, rhs, mask=None, rtol=1.e-10,
                   max_iter=2000, verbose=0, vel_scale=0.0):
    """
    solve for the MAC sync correction.  rhs is minus the composite
    divergence of the MAC velocities, and vel_scale the size of those
    velocities.  Returns phi and the face correction
    Usync = -(1/rho) G phi, which removes that divergence.
    """

    bc_types = bnd.projection_bc_types(phys_bcs)
    coeff = 1.0/np.asarray(rho)

    npts = grid.nx*grid.ny if mask is None else np.count_nonzero(mask)

    phi, converged, residual = elliptic.solve_cell(grid, bc_types, coeff, rhs,
                                                   mask=mask, rtol=rtol, max_iter=max_iter,
                                                   verbose=verbose,
                                                   bfloor=rhs_floor(grid, vel_scale, npts))

    u_sync = grid.scratch_array()
    v_sync = grid.scratch_array()
    mac_correct(grid, coeff, phi, u_sync, v_sync, 1.0)

    return phi, u_sync, v_sync, converged, residual


#-----------------------------------------------------------------------------
# nodal projections
#-----------------------------------------------------------------------------

def nodal_divergence(grid, u, v, cell_weight):
    """
    the divergence at the nodes of the canvas of the cell velocity,
    counting only the cells with nonzero weight.  On a wall this is the
    node's control-volume fraction times the reflected divergence.
    """
    w = np.asarray(cell_weight)
    return masked_cg.nodal_divergence(w*np.asarray(u), w*np.asarray(v),
                                      grid.dx, grid.dy)


def level_project(grid, phys_bcs, periodic, valid, rho, u, v,
                  rtol=1.e-10, max_iter=2000, verbose=0):
    """
    project the cell-centered velocity on the canvas, in place on the
    valid cells.  The nodes on the boundary of the valid region (other
    than physical walls) are held at phi = 0.

    Parameters
    ----------
    grid : Grid2d
        the level canvas grid
    phys_bcs : list of str
        the physical boundary types
    periodic : tuple of bool
        periodicity of the level
    valid : ndarray of bool
        the valid cells of the level
    rho : ndarray
        density on the canvas
    u, v : ArrayIndexer
        the velocity on the canvas, ghost cells filled

    Returns
    -------
    phi : ArrayIndexer
        node-centered
    converged : bool
    residual : float
    """

    cw = elliptic.cell_weights(grid, valid, periodic)
    unknown = elliptic.unknown_nodes(grid, cw, phys_bcs, periodic)

    sigma = 1.0/np.asarray(rho)

    # -D sigma G phi = -D U*
    rhs = -nodal_divergence(grid, u, v, cw)

    vel_scale = max(np.max(np.abs(u.d[valid])), np.max(np.abs(v.d[valid])))
    bfloor = rhs_floor(grid, vel_scale, np.count_nonzero(unknown))

    phi, converged, residual = elliptic.solve_node(grid, phys_bcs, unknown,
                                                   sigma, cw, rhs, rtol=rtol,
                                                   max_iter=max_iter,
                                                   verbose=verbose, bfloor=bfloor)

    gx, gy = masked_cg.nodal_gradient(phi, grid.dx, grid.dy)

    u.d[valid] -= sigma[valid]*gx[valid]
    v.d[valid] -= sigma[valid]*gy[valid]

    return phi, converged, residual


def level_sync_project(grid, phys_bcs, periodic, valid, rho, rhs,
                       rtol=1.e-10, max_iter=2000, verbose=0, vel_scale=0.0):
    """
    the nodal sync projection: solve D (1/rho) G phi = rhs, with rhs
    given per node in reflected (unweighted) form.  vel_scale is the
    size of the velocities whose divergence rhs is.

    Returns
    -------
    phi : ArrayIndexer
        node-centered
    corr_x, corr_y : ndarray
        the velocity correction (1/rho) G phi on the canvas cells
    converged : bool
    residual : float
    """

    cw = elliptic.cell_weights(grid, valid, periodic)
    unknown = elliptic.unknown_nodes(grid, cw, phys_bcs, periodic)

    sigma = 1.0/np.asarray(rho)

    w = elliptic.node_weights(grid, periodic)

    phi, converged, residual = elliptic.solve_node(grid, phys_bcs, unknown,
                                                   sigma, cw, -w*np.asarray(rhs),
                                                   rtol=rtol, max_iter=max_iter,
                                                   verbose=verbose,
                                                   bfloor=rhs_floor(grid, vel_scale,
                                                                    np.count_nonzero(unknown)))

    gx, gy = masked_cg.nodal_gradient(phi, grid.dx, grid.dy)

    return phi, sigma*gx, sigma*gy, converged, residual

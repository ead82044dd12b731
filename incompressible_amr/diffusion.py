"""
Implicit diffusion of velocity and scalars.

The time discretization is the theta-scheme (theta = 1/2 is
Crank-Nicolson, theta = 1 backward Euler), which gives a Helmholtz
equation for the new-time value

    (alpha - theta dt k L) s^{n+1} = alpha s* + (1 - theta) dt k L s^n

with L the Laplacian, alpha 1 (or the density for a quantity that is
not density weighted), and s* the explicitly updated value.  This is
the same form as the viscous Burgers solver, generalized to variable
alpha and to levels that only partly cover their domain.
"""

import numpy as np

import incompressible_amr.elliptic as elliptic
import incompressible_amr.params as ns_params
import incompressible_amr.projection as projection
from util import msg


def calc_viscosity(params):
    """the dynamic viscosity"""
    mu = params.visc_coef
    if mu < 0.0:
        msg.fail("ERROR: negative viscosity {}".format(mu))
    return mu


def calc_diffusivity(params, name):
    """the diffusion coefficient of the scalar name.  Density does not diffuse."""
    if name == "density":
        return 0.0
    if name in ("x-velocity", "y-velocity"):
        return calc_viscosity(params)

    k = params.scal_diff_coef
    if k < 0.0:
        msg.fail("ERROR: negative diffusivity {} for {}".format(k, name))
    return k


def is_diffusive(params, name):
    return calc_diffusivity(params, name) > 0.0


def center_to_edge_plain(grid, c):
    """the plain (arithmetic) average of cell data to the faces"""
    return projection.face_average(grid, c)


def get_visc_terms(q, coef, buf=2):
    """
    k L q, with L the 5-point Laplacian, on the valid region of q's
    grid plus buf ghost cells
    """
    myg = q.g
    visc = myg.scratch_array()
    if coef > 0.0:
        visc.v(buf=buf)[:, :] = coef*q.lap(buf=buf)
    return visc


def diffuse(grid, bc, rhs, alpha, coef, dt, theta, mask=None, bndry=None,
            x0=None, rtol=1.e-10, verbose=0):
    """
    solve (alpha - theta dt coef L) s = rhs on a level canvas.

    Parameters
    ----------
    grid : Grid2d
        the canvas grid
    bc : BC object
        the boundary conditions of the quantity
    rhs : ndarray
        the righthand side on the canvas
    alpha : float or ndarray
        the alpha term
    coef : float
        the diffusion coefficient
    mask : ndarray of bool, optional
        the valid cells of the level
    bndry : ndarray, optional
        the values to hold fixed outside of the mask

    Returns
    -------
    s : ArrayIndexer
    converged : bool
    residual : float
    """

    bc_types = [bc.xlb, bc.xrb, bc.ylb, bc.yrb]

    c = np.full((grid.qx, grid.qy), theta*dt*coef)

    return elliptic.solve_cell(grid, bc_types, c, rhs, alpha=alpha, mask=mask,
                               bndry=bndry, x0=x0, rtol=rtol, verbose=verbose)


def viscous_fluxes(s_old, s_new, coef, theta):
    """
    the diffusive fluxes through the faces of the canvas,
    F = -k (theta grad s^{n+1} + (1 - theta) grad s^n) area, with the
    same sign convention as the advective fluxes
    """
    myg = s_new.g

    flux_x = myg.scratch_array()
    flux_y = myg.scratch_array()

    b = (0, 1, 0, 0)
    flux_x.v(buf=b)[:, :] = -coef*myg.dy*(
        theta*(s_new.v(buf=b) - s_new.ip(-1, buf=b)) +
        (1.0 - theta)*(s_old.v(buf=b) - s_old.ip(-1, buf=b)))/myg.dx

    b = (0, 0, 0, 1)
    flux_y.v(buf=b)[:, :] = -coef*myg.dx*(
        theta*(s_new.v(buf=b) - s_new.jp(-1, buf=b)) +
        (1.0 - theta)*(s_old.v(buf=b) - s_old.jp(-1, buf=b)))/myg.dy

    return flux_x, flux_y


def diffusion_alpha(params, name, rho_half):
    """the alpha of the diffusion solve for component name"""
    n = params.state_names.index(name)
    if n in (ns_params.XVEL, ns_params.YVEL):
        return rho_half
    if params.advection_forms[n] == "conservative":
        return 1.0
    return rho_half

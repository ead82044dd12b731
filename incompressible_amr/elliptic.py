"""
The elliptic solves of the projections and of the implicit diffusion,
all on a level canvas.

Cell-centered problems have the form

    alpha phi - div (c grad phi) = f

on the cells of a mask (the valid region of the level).  Cells outside
of the mask are held at fixed values (zero unless bndry is given).  A
level that covers its whole (square, power of 2) domain is solved with
the variable-coefficient multigrid; anything else with the masked
conjugate gradient solver.

Node-centered problems have the form

    -D (sigma G phi) = f

on the unknown nodes, and are always solved with conjugate gradients.

Every solve returns (solution, converged, residual): the caller
decides what an unconverged solve means.
"""

import numpy as np

import mesh.boundary as bnd
import mesh.patch as patch
import multigrid.edge_coeffs as ec
import multigrid.masked_cg as masked_cg
import multigrid.variable_coeff_MG as vcMG


def _is_pow2(n):
    return n > 0 and (n & (n - 1)) == 0


def coeff_bc(bc_types):
    """the ghost cell fill for the coefficients of a problem with bc_types"""
    types = ["periodic" if b == "periodic" else "neumann" for b in bc_types]
    return bnd.BC(xlb=types[0], xrb=types[1], ylb=types[2], yrb=types[3])


def is_singular(bc_types, alpha):
    """is this a pure Neumann / periodic problem with no alpha term?"""
    if "dirichlet" in bc_types or "reflect-odd" in bc_types:
        return False
    return np.all(np.asarray(alpha) == 0.0)


def _fill(a, grid, bc):
    patch.fill_ghost(a.d, grid, bc)


def solve_cell(grid, bc_types, coeff, rhs, alpha=0.0, mask=None, bndry=None,
               x0=None, rtol=1.e-10, max_iter=2000, verbose=0, bfloor=0.0):
    """
    solve alpha phi - div (c grad phi) = rhs on a level canvas

    Parameters
    ----------
    grid : Grid2d
        the canvas grid (covers the whole level domain)
    bc_types : list of str
        the ghost fill types of phi on the -x, +x, -y, +y boundaries
    coeff : ndarray
        c, cell-centered on the canvas (valid on the cells next to the
        mask as well)
    rhs : ndarray
        the righthand side on the canvas
    alpha : float or ndarray
        the alpha term
    mask : ndarray of bool, optional
        the cells that are unknowns.  Defaults to the whole level
    bndry : ndarray, optional
        the values of phi on the cells outside of the mask
    x0 : ndarray, optional
        initial guess
    bfloor : float, optional
        the norm of a righthand side that is round-off for this
        problem: the residual is measured against the larger of it and
        the norm of rhs

    Returns
    -------
    phi : ArrayIndexer
        the solution on the canvas, ghost cells filled
    converged : bool
    residual : float
        the final relative residual
    """

    bc = bnd.BC(xlb=bc_types[0], xrb=bc_types[1],
                ylb=bc_types[2], yrb=bc_types[3])

    valid = np.zeros((grid.qx, grid.qy), dtype=bool)
    valid[grid.ilo:grid.ihi+1, grid.jlo:grid.jhi+1] = True

    if mask is None:
        mask = valid
    full = np.array_equal(mask, valid)

    a = grid.scratch_array()
    a.d[:, :] = alpha

    c = grid.scratch_array()
    c.d[:, :] = coeff
    _fill(c, grid, coeff_bc(bc_types))

    f = grid.scratch_array()
    f.d[:, :] = rhs
    f.d[~mask] = 0.0

    singular = full and is_singular(bc_types, a.v())

    if singular:
        # the righthand side has to be in the range of the operator
        f.v()[:, :] -= np.mean(f.v())

    phi = grid.scratch_array()

    fnorm = np.sqrt(np.sum(f.d[mask]**2))

    if bndry is None and fnorm <= rtol*bfloor:
        # nothing to solve for
        converged = True
        residual = fnorm/bfloor if bfloor > 0.0 else 0.0

    elif full and grid.nx == grid.ny and _is_pow2(grid.nx) and grid.nx >= 2:

        mg = vcMG.VarCoeffCCMG2d(grid.nx, grid.ny,
                                 xl_BC_type=bc.xlb, xr_BC_type=bc.xrb,
                                 yl_BC_type=bc.ylb, yr_BC_type=bc.yrb,
                                 xmin=grid.xmin, xmax=grid.xmax,
                                 ymin=grid.ymin, ymax=grid.ymax,
                                 coeffs=c, coeffs_bc=coeff_bc(bc_types),
                                 alphas=a, verbose=verbose, nsmooth=10)

        mg_rhs = mg.soln_grid.scratch_array()
        mg_rhs.v()[:, :] = f.v()
        mg.init_RHS(mg_rhs)

        if x0 is not None:
            guess = mg.soln_grid.scratch_array()
            guess.v()[:, :] = np.asarray(x0)[grid.ilo:grid.ihi+1, grid.jlo:grid.jhi+1]
            mg.init_solution(guess)
        else:
            mg.init_zeros()

        converged = mg.solve(rtol=rtol)
        residual = mg.residual_error

        phi.v()[:, :] = mg.get_solution().v()

    else:

        eta = ec.EdgeCoeffs(grid, c)

        if bndry is not None:
            b = grid.scratch_array()
            b.d[:, :] = bndry
            b.d[mask] = 0.0
            f.d[:, :] -= masked_cg.cell_operator(b.d, grid, bc, None,
                                                 a.d, eta.x, eta.y)
            f.d[~mask] = 0.0

        x, converged, residual = masked_cg.cell_solve(grid, bc, mask, a.d,
                                                      eta.x, eta.y, f.d,
                                                      x0=x0, rtol=rtol,
                                                      max_iter=max_iter,
                                                      verbose=verbose,
                                                      bfloor=bfloor,
                                                      singular=singular)
        phi.d[:, :] = x

        if bndry is not None:
            outside = np.logical_and(valid, ~mask)
            phi.d[outside] = np.asarray(bndry)[outside]

    if singular:
        phi.v()[:, :] -= np.mean(phi.v())

    _fill(phi, grid, bc)

    return phi, converged, residual


def node_bc(phys_bcs):
    """the ghost node fill of a nodal projection potential"""
    types = ["periodic" if b == "periodic" else "neumann" for b in phys_bcs]
    return bnd.BC(xlb=types[0], xrb=types[1], ylb=types[2], yrb=types[3])


def node_weights(grid, periodic):
    """
    the fraction of the control volume of each node that lies inside
    the domain: 1/2 on a non-periodic edge, 1/4 in a non-periodic corner
    """
    w = np.ones((grid.qx+1, grid.qy+1))
    if not periodic[0]:
        w[grid.ilo, :] *= 0.5
        w[grid.ihi+1, :] *= 0.5
    if not periodic[1]:
        w[:, grid.jlo] *= 0.5
        w[:, grid.jhi+1] *= 0.5
    return w


def cell_weights(grid, valid, periodic):
    """
    1 on the cells that contribute to the nodal operator: the valid
    cells and, in periodic directions, their ghost images
    """
    w = np.zeros((grid.qx, grid.qy))
    w[valid] = 1.0

    # the periodic images of the valid cells
    wi = w.copy()
    if periodic[0]:
        wi[:grid.ilo, :] = w[grid.ihi-grid.ng+1:grid.ihi+1, :]
        wi[grid.ihi+1:, :] = w[grid.ilo:grid.ilo+grid.ng, :]
    w = wi.copy()
    if periodic[1]:
        w[:, :grid.jlo] = wi[:, grid.jhi-grid.ng+1:grid.jhi+1]
        w[:, grid.jhi+1:] = wi[:, grid.jlo:grid.jlo+grid.ng]
    return w


def unknown_nodes(grid, cell_weight, phys_bcs, periodic):
    """
    the nodes of a nodal projection that are unknowns: every node whose
    in-domain neighbor cells all contribute, minus the Dirichlet nodes
    on an outflow boundary and the duplicate high-side periodic nodes
    """
    w = np.asarray(cell_weight)

    # the cells touching each node that are inside the domain
    inside = np.zeros((grid.qx, grid.qy), dtype=bool)
    inside[grid.ilo:grid.ihi+1, grid.jlo:grid.jhi+1] = True
    if periodic[0]:
        inside[:, grid.jlo:grid.jhi+1] = True
    if periodic[1]:
        inside[grid.ilo:grid.ihi+1, :] = True
    if periodic[0] and periodic[1]:
        inside[:, :] = True

    missing = np.logical_and(inside, w == 0.0).astype(np.float64)
    present = np.logical_and(inside, w > 0.0).astype(np.float64)

    def _around(a):
        s = np.zeros((grid.qx+1, grid.qy+1))
        s[1:-1, 1:-1] = a[1:, 1:] + a[1:, :-1] + a[:-1, 1:] + a[:-1, :-1]
        return s

    unknown = np.logical_and(_around(missing) == 0.0, _around(present) > 0.0)

    # only the valid nodes of the canvas
    valid_nodes = np.zeros_like(unknown)
    valid_nodes[grid.ilo:grid.ihi+2, grid.jlo:grid.jhi+2] = True
    unknown = np.logical_and(unknown, valid_nodes)

    if periodic[0]:
        unknown[grid.ihi+1, :] = False
    else:
        if phys_bcs[0] == "outflow":
            unknown[grid.ilo, :] = False
        if phys_bcs[1] == "outflow":
            unknown[grid.ihi+1, :] = False

    if periodic[1]:
        unknown[:, grid.jhi+1] = False
    else:
        if phys_bcs[2] == "outflow":
            unknown[:, grid.jlo] = False
        if phys_bcs[3] == "outflow":
            unknown[:, grid.jhi+1] = False

    return unknown


def solve_node(grid, phys_bcs, unknown, sigma, cell_weight, rhs, x0=None,
               rtol=1.e-10, max_iter=2000, verbose=0, bfloor=0.0):
    """
    solve -D (sigma G phi) = rhs on the unknown nodes of a node canvas.
    rhs is already weighted by the node control volumes.  phi is zero
    on every other node.  On a closed or periodic level the operator
    is singular: the parts of rhs and phi in its null space (the
    constant, and the checkerboard when it is null too) are removed.

    Returns
    -------
    phi : ArrayIndexer
        node-centered, ghost nodes filled
    converged : bool
    residual : float
    """

    bc = node_bc(phys_bcs)

    b = np.array(rhs, dtype=np.float64)
    b[~unknown] = 0.0

    x, converged, residual = masked_cg.nodal_solve(grid, bc, unknown, sigma,
                                                   cell_weight, b, x0=x0,
                                                   rtol=rtol, max_iter=max_iter,
                                                   verbose=verbose, bfloor=bfloor)

    phi = grid.node_scratch_array()
    phi.d[:, :] = x

    return phi, converged, residual

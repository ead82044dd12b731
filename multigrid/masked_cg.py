"""
Jacobi-preconditioned conjugate gradient solvers for the elliptic
problems that the multigrid solver cannot handle: levels that only
cover part of their domain, or whose size is not a power of 2.

Both solvers work on a level "canvas" -- an array covering the whole
level domain, with ghost cells -- together with a mask that marks the
points that are unknowns.  Every other point is held at zero, which is
a homogeneous Dirichlet condition there.  Inhomogeneous Dirichlet
values are handled by the caller, by moving the operator applied to
them over to the righthand side.

There are two operators:

- the cell-centered operator  A phi = alpha phi - div (eta grad phi)
  with eta given on the faces (already scaled by 1/dx**2, as in
  EdgeCoeffs).  Physical boundaries are handled through ghost cells,
  using the BC object.

- the node-centered operator  A phi = -D (sigma G phi), with G the
  cell-centered gradient of node data and D the node-centered
  divergence of cell data.  Only cells with a nonzero weight
  contribute, which gives the natural (Neumann) condition at walls.
"""

import numpy as np

import mesh.patch as patch


def _masked_dot(a, b, mask):
    return np.sum(np.asarray(a)[mask]*np.asarray(b)[mask])


def orthonormal_basis(modes, mask, tol=1.e-8):
    """
    Gram-Schmidt on the masked parts of modes.  A mode that is (nearly)
    a combination of the ones before it is dropped.
    """
    basis = []
    for m in modes:
        v = np.where(mask, np.asarray(m, dtype=np.float64), 0.0)
        mnorm = np.sqrt(_masked_dot(v, v, mask))
        if mnorm == 0.0:
            continue
        for q in basis:
            v -= _masked_dot(v, q, mask)*q
        vnorm = np.sqrt(_masked_dot(v, v, mask))
        if vnorm > tol*mnorm:
            basis.append(v/vnorm)
    return basis


def deflate(a, basis, mask):
    """remove the components along an orthonormal basis from a, in place"""
    for q in basis:
        a[mask] -= _masked_dot(a, q, mask)*q[mask]
    return a


def pcg(apply_A, b, x, diag, mask, rtol=1.e-10, max_iter=1000, verbose=0,
        bfloor=0.0, null_space=None):
    """
    solve A x = b for the points where mask is True, with a Jacobi
    preconditioner.

    Parameters
    ----------
    apply_A : function
        returns A x for a canvas-shaped array x (zero off the mask)
    b : ndarray
        the righthand side
    x : ndarray
        the initial guess, updated in place
    diag : ndarray
        the diagonal of A, for the preconditioner
    mask : ndarray of bool
        the unknowns
    rtol : float
        stop when |r| < rtol max(|b|, bfloor)
    max_iter : int
        the maximum number of iterations
    bfloor : float
        the size of a righthand side that is round-off for this
        problem.  A righthand side smaller than this is not solved to
        rtol of itself.
    null_space : list of ndarray, optional
        an orthonormal basis of the null space of A.  b, the residual
        and the solution are kept orthogonal to it.

    Returns
    -------
    x : ndarray
        the solution
    converged : bool
        did we reach the tolerance
    residual : float
        the final |r| / max(|b|, bfloor)
    """

    if null_space is None:
        null_space = []

    x = np.asarray(x)
    b = np.array(b, dtype=np.float64)

    x[~mask] = 0.0
    b[~mask] = 0.0
    deflate(b, null_space, mask)

    bnorm = max(np.sqrt(_masked_dot(b, b, mask)), bfloor)
    if bnorm == 0.0:
        x[mask] = 0.0
        return x, True, 0.0

    inv_diag = np.zeros_like(b)
    inv_diag[mask] = 1.0/np.asarray(diag)[mask]

    r = b - apply_A(x)
    r[~mask] = 0.0
    deflate(r, null_space, mask)

    z = deflate(inv_diag*r, null_space, mask)
    p = z.copy()
    rz = _masked_dot(r, z, mask)

    residual = np.sqrt(_masked_dot(r, r, mask))/bnorm
    converged = residual < rtol

    it = 0
    while not converged and it < max_iter:

        Ap = apply_A(p)
        pAp = _masked_dot(p, Ap, mask)
        if pAp <= 0.0:
            break

        a = rz/pAp
        x[mask] += a*p[mask]
        r[mask] -= a*Ap[mask]
        deflate(r, null_space, mask)

        residual = np.sqrt(_masked_dot(r, r, mask))/bnorm
        converged = residual < rtol

        if verbose > 1:
            print("  CG iteration {}: residual = {}".format(it, residual))

        z = deflate(inv_diag*r, null_space, mask)
        rz_new = _masked_dot(r, z, mask)

        p = z + (rz_new/rz)*p
        p[~mask] = 0.0
        rz = rz_new

        it += 1

    deflate(x, null_space, mask)

    if verbose > 0:
        print("  CG: {} iterations, residual = {}".format(it, residual))

    return x, converged, residual


#-----------------------------------------------------------------------------
# cell-centered operator
#-----------------------------------------------------------------------------

def cell_operator(x, grid, bc, mask, alpha, eta_x, eta_y):
    """
    return alpha x - div (eta grad x) on the masked cells of a canvas.
    x is not modified -- a copy gets the ghost cell fill.  With mask =
    None, x is used as is and the operator is returned on every valid
    cell.
    """

    y = grid.scratch_array()
    y.d[:, :] = x
    if mask is not None:
        y.d[~mask] = 0.0

    patch.fill_ghost(y.d, grid, bc)

    Ax = grid.scratch_array()
    Ax.v()[:, :] = np.asarray(alpha)[grid.ilo:grid.ihi+1, grid.jlo:grid.jhi+1]*y.v() - (
        eta_x.ip(1)*(y.ip(1) - y.v()) - eta_x.v()*(y.v() - y.ip(-1)) +
        eta_y.jp(1)*(y.jp(1) - y.v()) - eta_y.v()*(y.v() - y.jp(-1)))

    if mask is not None:
        Ax.d[~mask] = 0.0

    return Ax.d


def cell_diagonal(grid, alpha, eta_x, eta_y):
    """the diagonal of the cell operator, ignoring boundary corrections"""
    diag = grid.scratch_array()
    diag.v()[:, :] = np.asarray(alpha)[grid.ilo:grid.ihi+1, grid.jlo:grid.jhi+1] + \
        eta_x.ip(1) + eta_x.v() + eta_y.jp(1) + eta_y.v()
    return diag.d


def cell_solve(grid, bc, mask, alpha, eta_x, eta_y, rhs, x0=None,
               rtol=1.e-10, max_iter=2000, verbose=0, bfloor=0.0,
               singular=False):
    """
    solve alpha phi - div (eta grad phi) = rhs on the masked cells of a
    canvas, with phi = 0 on the cells outside of the mask.  For a
    singular problem the constant is removed from rhs and phi.
    """

    if x0 is None:
        x = np.zeros((grid.qx, grid.qy))
    else:
        x = np.array(x0, dtype=np.float64)

    def apply_A(p):
        return cell_operator(p, grid, bc, mask, alpha, eta_x, eta_y)

    diag = cell_diagonal(grid, alpha, eta_x, eta_y)

    null_space = None
    if singular:
        null_space = orthonormal_basis([np.ones_like(x)], mask)

    return pcg(apply_A, np.asarray(rhs), x, diag, mask,
               rtol=rtol, max_iter=max_iter, verbose=verbose,
               bfloor=bfloor, null_space=null_space)


#-----------------------------------------------------------------------------
# node-centered operator
#-----------------------------------------------------------------------------

def nodal_gradient(phi, dx, dy):
    """
    the gradient of node data in every cell: cell i, j has the nodes
    i, j (lower left) through i+1, j+1 (upper right) as corners
    """
    p = np.asarray(phi)

    gx = 0.5*(p[1:, :-1] + p[1:, 1:] - p[:-1, :-1] - p[:-1, 1:])/dx
    gy = 0.5*(p[:-1, 1:] + p[1:, 1:] - p[:-1, :-1] - p[1:, :-1])/dy

    return gx, gy


def nodal_divergence(u, v, dx, dy):
    """
    the divergence of cell data at every node that has four cells
    around it.  The outermost ring of nodes is left as zero.
    """
    u = np.asarray(u)
    v = np.asarray(v)

    qx, qy = u.shape
    div = np.zeros((qx+1, qy+1))

    div[1:-1, 1:-1] = \
        ((u[1:, 1:] + u[1:, :-1]) - (u[:-1, 1:] + u[:-1, :-1]))/(2.0*dx) + \
        ((v[1:, 1:] + v[:-1, 1:]) - (v[1:, :-1] + v[:-1, :-1]))/(2.0*dy)

    return div


def nodal_operator(phi, grid, bc, unknown, sigma, cell_weight):
    """
    return -D (sigma G phi) at the unknown nodes of a node canvas.  Nodes
    that are not unknowns are zero (apart from periodic images, which
    are filled from the nodes they duplicate).
    """

    y = np.array(phi, dtype=np.float64)
    y[~unknown] = 0.0
    patch.fill_node_ghost(y, grid, bc)

    gx, gy = nodal_gradient(y, grid.dx, grid.dy)

    w = np.asarray(sigma)*np.asarray(cell_weight)

    Ax = -nodal_divergence(w*gx, w*gy, grid.dx, grid.dy)
    Ax[~unknown] = 0.0

    return Ax


def nodal_diagonal(grid, sigma, cell_weight):
    s = 0.25*np.asarray(sigma)*np.asarray(cell_weight)*(1.0/grid.dx**2 + 1.0/grid.dy**2)

    diag = np.zeros((grid.qx+1, grid.qy+1))
    diag[1:-1, 1:-1] = s[1:, 1:] + s[1:, :-1] + s[:-1, 1:] + s[:-1, :-1]

    # a node with no contributing cells is decoupled
    diag[diag == 0.0] = 1.0
    return diag


def nodal_null_space(grid, bc, unknown, sigma, cell_weight, tol=1.e-8):
    """
    an orthonormal basis of the null space of the nodal operator.

    G only sees the differences across the diagonals of a cell, so a
    mode can only be null if it is constant on each of the two
    diagonal sublattices (i + j even and odd) of the unknown nodes.
    With no Dirichlet nodes both the constant and the checkerboard
    (-1)**(i+j) are null; on a periodic direction with an odd number of
    zones only the constant is.  We test the candidate combinations
    with the operator itself.
    """

    i, j = np.indices(np.shape(unknown))
    even = np.logical_and(unknown, (i + j) % 2 == 0).astype(np.float64)
    odd = np.logical_and(unknown, (i + j) % 2 == 1).astype(np.float64)

    diag = nodal_diagonal(grid, sigma, cell_weight)

    null = []
    for m in [even + odd, even - odd, even, odd]:
        mnorm = np.sqrt(_masked_dot(diag*m, diag*m, unknown))
        if mnorm == 0.0:
            continue
        Am = nodal_operator(m, grid, bc, unknown, sigma, cell_weight)
        if np.sqrt(_masked_dot(Am, Am, unknown)) <= tol*mnorm:
            null.append(m)

    return orthonormal_basis(null, unknown)


def nodal_solve(grid, bc, unknown, sigma, cell_weight, rhs, x0=None,
                rtol=1.e-10, max_iter=2000, verbose=0, bfloor=0.0):
    """
    solve -D (sigma G phi) = rhs on the unknown nodes of a node canvas,
    with phi = 0 on every other node.  The part of rhs in the null
    space of the operator is dropped, and phi has no null space part.
    After the solve the ghost nodes of phi are filled.
    """

    if x0 is None:
        x = np.zeros((grid.qx+1, grid.qy+1))
    else:
        x = np.array(x0, dtype=np.float64)

    def apply_A(p):
        return nodal_operator(p, grid, bc, unknown, sigma, cell_weight)

    diag = nodal_diagonal(grid, sigma, cell_weight)
    null_space = nodal_null_space(grid, bc, unknown, sigma, cell_weight)

    x, converged, residual = pcg(apply_A, np.asarray(rhs), x, diag, unknown,
                                 rtol=rtol, max_iter=max_iter, verbose=verbose,
                                 bfloor=bfloor, null_space=null_space)

    patch.fill_node_ghost(x, grid, bc)

    return x, converged, residual

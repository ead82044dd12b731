"""
The multigrid module provides a framework for solving elliptic
problems.  A multigrid object is just a list of grids, from the finest
mesh down (by factors of two) to a 2 x 2 grid (each grid has
the same number of guardcells).

The main multigrid class is setup to solve a constant-coefficient
Helmholtz equation::

   (alpha - beta L) phi = f

where L is the Laplacian and alpha and beta are constants.  If alpha =
0 and beta = -1, then this is the Poisson equation.

We support Dirichlet or Neumann BCs, or a periodic domain.

The general usage is as follows::

   a = multigrid.CellCenterMG2d(nx, ny, verbose=1, alpha=alpha, beta=beta)

this creates the multigrid object a, with a finest grid of nx x ny
zones and the default boundary condition types.  alpha and beta are
the coefficients of the Helmholtz equation.  Setting verbose = 1
causing debugging information to be output, so you can see the
residual errors in each of the V-cycles.

Initialization is done as::

   a.init_zeros()

this initializes the solution vector with zeros (this is not necessary
if you just created the multigrid object, but it can be used to reset
the solution between runs on the same object).

Next::

   a.init_RHS(zeros((nx, ny), numpy.float64))

this initializes the RHS on the finest grid to 0 (Laplace's equation).
Any RHS can be set by passing through an array of (nx, ny) values here.

Then to solve, you just do::

   a.solve(rtol = 1.e-10)

where rtol is the desired tolerance (residual norm / source norm)

to access the final solution, use the get_solution method::

   v = a.get_solution()

For convenience, the grid information on the solution level is
available as attributes to the class,

a.ilo, a.ihi, a.jlo, a.jhi are the indices bounding the interior
of the solution array (i.e. excluding the guardcells).

a.x and a.y are the coordinate arrays
a.dx and a.dy are the grid spacings
"""

import numpy as np

import mesh.boundary as bnd
import mesh.patch as patch
from util import msg


class CellCenterMG2d(object):
    """
    The main multigrid class for cell-centered data.

    We require that nx = ny be a power of 2 for simplicity
    """

    def __init__(self, nx, ny, ng=1,
                 xmin=0.0, xmax=1.0, ymin=0.0, ymax=1.0,
                 xl_BC_type="dirichlet", xr_BC_type="dirichlet",
                 yl_BC_type="dirichlet", yr_BC_type="dirichlet",
                 alpha=0.0, beta=-1.0,
                 nsmooth=10, nsmooth_bottom=50,
                 verbose=0,
                 aux_field=None, aux_bc=None,
                 true_function=None):
        """
        Create the CellCenterMG2d object.  Note that this requires a
        grid to be a power of 2 in size and square.

        Parameters
        ----------
        nx : int
            number of cells in x-direction
        ny : int
            number of cells in y-direction.
        xmin : float, optional
            minimum physical coordinate in x-direction
        xmax : float, optional
            maximum physical coordinate in x-direction
        ymin : float, optional
            minimum physical coordinate in y-direction
        ymax : float, optional
            maximum physical coordinate in y-direction
        xl_BC_type : {'neumann', 'dirichlet', 'periodic'}, optional
            boundary condition to enforce on lower x face
        xr_BC_type : {'neumann', 'dirichlet', 'periodic'}, optional
            boundary condition to enforce on upper x face
        yl_BC_type : {'neumann', 'dirichlet', 'periodic'}, optional
            boundary condition to enforce on lower y face
        yr_BC_type : {'neumann', 'dirichlet', 'periodic'}, optional
            boundary condition to enforce on upper y face
        alpha : float, optional
            coefficient in Helmholtz equation (alpha - beta L) phi = f
        beta : float, optional
            coefficient in Helmholtz equation (alpha - beta L) phi = f
        nsmooth : int, optional
            number of smoothing iterations to be done at each intermediate
            level in the V-cycle (up and down)
        nsmooth_bottom : int, optional
            number of smoothing iterations to be done during the bottom
            solve
        verbose : int, optional
            if > 0, then print diagnostic information about the V-cycles
        aux_field : list of str, optional
            extra fields to define and carry at each level.
        aux_bc : list of BC objects, optional
            the boundary conditions corresponding to the extra fields
        true_function : function, optional
            a function (of x,y) that provides the exact solution to
            the elliptic problem we are solving.  This is used only
            for visualization and diagnostics.
        """

        if nx != ny:
            msg.fail("ERROR: multigrid currently requires nx = ny")

        if nx <= 1 or (nx & (nx - 1)) != 0:
            msg.fail("ERROR: multigrid requires nx to be a power of 2")

        self.nx = nx
        self.ny = ny

        self.ng = ng

        self.xmin = xmin
        self.xmax = xmax

        self.ymin = ymin
        self.ymax = ymax

        self.alpha = alpha
        self.beta = beta

        self.nsmooth = nsmooth
        self.nsmooth_bottom = nsmooth_bottom

        self.max_cycles = 100

        self.verbose = verbose

        self.true_function = true_function

        # a small number used in computing the error, so we don't divide by 0
        self.small = 1.e-16

        # keep track of whether we've initialized the RHS
        self.initialized_RHS = 0

        self.nlevels = int(self.nx).bit_length() - 1

        # the coarsest grid has 2 x 2 zones
        nx_t = ny_t = 2

        if aux_field is None:
            aux_field = []
            aux_bc = []

        # create the boundary condition object
        bc = bnd.BC(xlb=xl_BC_type, xrb=xr_BC_type,
                    ylb=yl_BC_type, yrb=yr_BC_type)

        self.grids = []

        for i in range(self.nlevels):

            # create the grid
            my_grid = patch.Grid2d(nx_t, ny_t, ng=self.ng,
                                   xmin=xmin, xmax=xmax, ymin=ymin, ymax=ymax)

            # add a CellCenterData2d object for this level to our list
            self.grids.append(patch.CellCenterData2d(my_grid, dtype=np.float64))

            # the solution, source and residual all use the same
            # homogeneous BCs
            self.grids[i].register_var("v", bc)
            self.grids[i].register_var("f", bc)
            self.grids[i].register_var("r", bc)

            for f, b in zip(aux_field, aux_bc):
                self.grids[i].register_var(f, b)

            self.grids[i].create()

            if self.verbose > 1:
                print(self.grids[i])

            nx_t = nx_t*2
            ny_t = ny_t*2

        # provide coordinate and indexing information for the solution mesh
        soln_grid = self.grids[self.nlevels-1].grid

        self.ilo = soln_grid.ilo
        self.ihi = soln_grid.ihi
        self.jlo = soln_grid.jlo
        self.jhi = soln_grid.jhi

        self.x = soln_grid.x
        self.dx = soln_grid.dx
        self.x2d = soln_grid.x2d

        self.y = soln_grid.y
        self.dy = soln_grid.dy
        self.y2d = soln_grid.y2d

        self.soln_grid = soln_grid

        # store the source norm
        self.source_norm = 0.0

        # after solving, keep track of the number of cycles taken, the
        # relative error from the previous cycle, and the residual error
        # (normalized to the source norm)
        self.num_cycles = 0
        self.residual_error = 1.e33
        self.relative_error = 1.e33
        self.converged = False

    def get_solution(self, grid=None):
        """
        Return the solution after doing the MG solve

        If a grid object is passed in, then the solution is put on that
        grid -- not the passed in grid must have the same dx and dy

        Returns
        -------
        out : ndarray

        """

        v = self.grids[self.nlevels-1].get_var("v")

        if grid is None:
            return v.copy()

        if not (grid.dx == self.soln_grid.dx and grid.dy == self.soln_grid.dy):
            msg.fail("ERROR: grid spacing does not match the solution grid")

        sol = grid.scratch_array()
        sol.v(buf=1)[:, :] = v.v(buf=1)
        return sol

    def init_solution(self, data):
        """
        Initialize the solution to the elliptic problem by passing in
        a value for all defined zones

        Parameters
        ----------
        data : ndarray
            An array (of the same size as the finest MG level) with the
            values to initialize the solution to the elliptic problem.

        """

        v = self.grids[self.nlevels-1].get_var("v")
        v.d[:, :] = data.copy()

    def init_zeros(self):
        """
        Set the initial solution to zero
        """
        v = self.grids[self.nlevels-1].get_var("v")
        v.d[:, :] = 0.0

    def init_RHS(self, data):
        """
        Initialize the right hand side, f, of the Helmholtz equation
        (alpha - beta L) phi = f

        Parameters
        ----------
        data : ndarray
            An array (of the same size as the finest MG level) with the
            values to initialize the solution to the elliptic problem.

        """

        f = self.grids[self.nlevels-1].get_var("f")
        f.d[:, :] = data.copy()

        # store the source norm
        self.source_norm = f.norm()

        if self.verbose > 0:
            print("Source norm = ", self.source_norm)

        self.initialized_RHS = 1

    def _compute_residual(self, level):
        """ compute the residual and store it in the r variable"""

        v = self.grids[level].get_var("v")
        f = self.grids[level].get_var("f")
        r = self.grids[level].get_var("r")

        myg = self.grids[level].grid

        # compute the residual
        # r = f - alpha phi + beta L phi
        r.v()[:, :] = f.v()[:, :] - self.alpha*v.v()[:, :] + \
            self.beta*((v.ip(-1) + v.ip(1) - 2*v.v())/myg.dx**2 +
                       (v.jp(-1) + v.jp(1) - 2*v.v())/myg.dy**2)

    def smooth(self, level, nsmooth):
        """
        Use red-black Gauss-Seidel iterations to smooth the solution
        at a given level.  This is used at each stage of the V-cycle
        (up and down) in the MG solution, but it can also be called
        directly to solve the elliptic problem (although it will take
        many more iterations).

        Parameters
        ----------
        level : int
            The level in the MG hierarchy to smooth the solution
        nsmooth : int
            The number of r-b Gauss-Seidel smoothing iterations to perform

        """

        v = self.grids[level].get_var("v")
        f = self.grids[level].get_var("f")

        myg = self.grids[level].grid

        self.grids[level].fill_BC("v")

        xcoeff = self.beta/myg.dx**2
        ycoeff = self.beta/myg.dy**2

        # do red-black G-S
        for _ in range(nsmooth):

            # do the red black updating in four decoupled groups
            #
            #
            #        |       |       |
            #      --+-------+-------+--
            #        |       |       |
            #        |   4   |   3   |
            #        |       |       |
            #      --+-------+-------+--
            #        |       |       |
            #   jlo  |   1   |   2   |
            #        |       |       |
            #      --+-------+-------+--
            #        |  ilo  |       |
            #
            # groups 1 and 3 are done together, then we need to
            # fill ghost cells, and then groups 2 and 4

            for n, (ix, iy) in enumerate([(0, 0), (1, 1), (1, 0), (0, 1)]):

                v.ip_jp(ix, iy, s=2)[:, :] = (f.ip_jp(ix, iy, s=2) +
                    xcoeff*(v.ip_jp(1+ix, iy, s=2) + v.ip_jp(-1+ix, iy, s=2)) +
                    ycoeff*(v.ip_jp(ix, 1+iy, s=2) + v.ip_jp(ix, -1+iy, s=2))) / \
                    (self.alpha + 2.0*xcoeff + 2.0*ycoeff)

                if n == 1 or n == 3:
                    self.grids[level].fill_BC("v")

    def solve(self, rtol=1.e-11):
        """
        The main driver for the multigrid solution of the Helmholtz
        equation.  This controls the V-cycles, smoothing at each
        step of the way and uses simple smoothing at the coarsest
        level to perform the bottom solve.

        Parameters
        ----------
        rtol : float
            The relative tolerance (residual norm / source norm) to
            solve to.  Note that if the source norm is 0 (e.g. the
            righthand side of our equation is 0), then we just use
            the norm of the residual.

        """

        # start by making sure that we've initialized the RHS
        if not self.initialized_RHS:
            msg.fail("ERROR: RHS not initialized")

        if self.verbose > 0:
            print("source norm = ", self.source_norm)

        old_solution = self.grids[self.nlevels-1].get_var("v").copy()

        residual_error = 1.e33
        cycle = 1

        self.converged = False

        while not self.converged and cycle <= self.max_cycles:

            self.v_cycle()

            # compute the error with respect to the previous solution
            # this is for diagnostic purposes only -- it is not used to
            # determine convergence
            solnP = self.grids[self.nlevels-1]

            diff = solnP.grid.scratch_array()
            diff.v()[:, :] = (solnP.get_var("v").v() - old_solution.v()) / \
                (solnP.get_var("v").v() + self.small)

            relative_error = solnP.grid.norm(diff)

            old_solution = solnP.get_var("v").copy()

            # compute the residual error, relative to the source norm
            self._compute_residual(self.nlevels-1)
            r = solnP.get_var("r")

            if self.source_norm != 0.0:
                residual_error = r.norm()/self.source_norm
            else:
                residual_error = r.norm()

            self.num_cycles = cycle
            self.relative_error = relative_error
            self.residual_error = residual_error

            if residual_error < rtol:
                self.converged = True
                solnP.fill_BC("v")

            if self.verbose > 0:
                print("cycle {}: relative err = {}, residual err = {}".format(
                    cycle, relative_error, residual_error))

            cycle += 1

        return self.converged

    def v_cycle(self):
        """ a single V-cycle, starting and ending on the finest level """

        # zero out the solution on all but the finest grid
        for level in range(self.nlevels-1):
            self.grids[level].zero("v")

        # descending part
        for level in range(self.nlevels-1, 0, -1):

            fP = self.grids[level]
            cP = self.grids[level-1]

            # smooth on the current level
            self.smooth(level, self.nsmooth)

            # compute the residual
            self._compute_residual(level)

            if self.verbose > 1:
                print("  level: {}, grid: {} x {}, after G-S, residual L2: {}".format(
                    level, fP.grid.nx, fP.grid.ny, fP.get_var("r").norm()))

            # restrict the residual down to the RHS of the coarser level
            f_coarse = cP.get_var("f")
            f_coarse.v()[:, :] = fP.restrict("r").v()

        # solve the discrete coarse problem.  We could use any number of
        # different matrix solvers here (like CG), but since we are 2x2
        # by design at this point, we will just smooth
        self.smooth(0, self.nsmooth_bottom)

        self.grids[0].fill_BC("v")

        # ascending part
        for level in range(1, self.nlevels):

            fP = self.grids[level]
            cP = self.grids[level-1]

            # prolong the error up from the coarse grid
            e = cP.prolong("v")

            # correct the solution on the current grid
            v = fP.get_var("v")
            v.v()[:, :] += e.v()

            fP.fill_BC("v")

            # smooth
            self.smooth(level, self.nsmooth)

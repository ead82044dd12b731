"""
The patch module defines the classes necessary to describe the
data on a single rectangular patch of a level.

There are several main objects here:

- Grid2d: this is the main grid object.  It describes the
  cell-centered grid with ghost cells.  Each grid also knows the index
  box it covers, in the global index space of its level, and the
  level's domain box -- this is what lets many patches tile one level.

- CellCenterData2d: this holds the cell-centered data on a grid.  To
  create a CellCenterData2d object you pass in a grid object.  You then
  register different variables and the BC object for each.  When you
  are done registering, you call create(), which allocates the storage.

- NodeData2d: the same, but for data that lives on the cell corners
  (the level-projection pressure).

The grid is a standard pyro-style grid:

      |     |      |     X     |     |      |     |     X     |      |     |
      +--*--+- // -+--*--X--*--+--*--+- // -+--*--+--*--X--*--+- // -+--*--+
         0          ng-1    ng   ng+1         ... ng+nx-1 ng+nx      2ng+nx-1

                           ilo                      ihi

      |<- ng ghostcells->|<---- nx interior zones ----->|<- ng ghostcells->|

The '*' marks the data locations.  Node data is stored on an array one
larger in each direction; node i sits at the left edge of cell i.

Face data (MAC velocities, fluxes, edge states) is stored on
cell-shaped scratch arrays, with index i holding the face at i-1/2.
"""

import numpy as np

import mesh.array_indexer as ai
from mesh.box import Box
from util import msg


class Grid2d(object):
    """
    the 2-d grid class.  The grid object will contain the coordinate
    information (at various centerings).

    A basic (1-d) representation of the layout is::

       |     |      |     X     |     |      |     |     X     |      |     |
       +--*--+- // -+--*--X--*--+--*--+- // -+--*--+--*--X--*--+- // -+--*--+
          0          ng-1    ng   ng+1         ... ng+nx-1 ng+nx      2ng+nx-1

                            ilo                      ihi

       |<- ng guardcells->|<---- nx interior zones ----->|<- ng guardcells->|

    The '*' marks the data locations.
    """

    def __init__(self, nx, ny, ng=1,
                 xmin=0.0, xmax=1.0, ymin=0.0, ymax=1.0,
                 box=None, domain=None):
        """
        Create a Grid2d object.

        The only data that we require is the number of points that
        make up the mesh in each direction.  Optionally we take the
        extrema of the domain (default is [0,1]x[0,1]) and number of
        ghost cells (default is 1).

        Note that the Grid2d object only defines the discretization,
        it does not know about the boundary conditions, as these can
        vary depending on the variable.

        Parameters
        ----------
        nx : int
            Number of zones in the x-direction
        ny : int
            Number of zones in the y-direction
        ng : int, optional
            Number of ghost cells
        xmin : float, optional
            Physical coordinate at the lower x boundary
        xmax : float, optional
            Physical coordinate at the upper x boundary
        ymin : float, optional
            Physical coordinate at the lower y boundary
        ymax : float, optional
            Physical coordinate at the upper y boundary
        box : Box, optional
            the global index box these cells cover (defaults to
            (0, 0) -- (nx-1, ny-1))
        domain : Box, optional
            the index box of the whole level (defaults to box)
        """

        # size of grid
        self.nx = int(nx)
        self.ny = int(ny)
        self.ng = int(ng)

        self.qx = int(2*ng + nx)
        self.qy = int(2*ng + ny)

        # domain extrema
        self.xmin = xmin
        self.xmax = xmax

        self.ymin = ymin
        self.ymax = ymax

        if box is None:
            box = Box((0, 0), (self.nx-1, self.ny-1))
        if box.shape != (self.nx, self.ny):
            msg.fail("ERROR: box {} does not match grid size {} x {}".format(box, nx, ny))

        self.box = box

        if domain is None:
            domain = box
        self.domain = domain

        # compute the indices of the block interior (excluding guardcells)
        self.ilo = self.ng
        self.ihi = self.ng + self.nx-1

        self.jlo = self.ng
        self.jhi = self.ng + self.ny-1

        # center of the grid (for convenience)
        self.ic = self.ilo + self.nx//2 - 1
        self.jc = self.jlo + self.ny//2 - 1

        # define the coordinate information at the left, center, and right
        # zone coordinates
        self.dx = (xmax - xmin)/nx

        self.xl = (np.arange(self.qx) - ng)*self.dx + xmin
        self.xr = (np.arange(self.qx) + 1.0 - ng)*self.dx + xmin
        self.x = 0.5*(self.xl + self.xr)

        self.dy = (ymax - ymin)/ny

        self.yl = (np.arange(self.qy) - ng)*self.dy + ymin
        self.yr = (np.arange(self.qy) + 1.0 - ng)*self.dy + ymin
        self.y = 0.5*(self.yl + self.yr)

        # 2-d versions of the zone coordinates (replace with meshgrid?)
        x2d = np.repeat(self.x, self.qy)
        x2d.shape = (self.qx, self.qy)
        self.x2d = x2d

        y2d = np.repeat(self.y, self.qx)
        y2d.shape = (self.qy, self.qx)
        y2d = np.transpose(y2d)
        self.y2d = y2d

    def scratch_array(self, nvar=1):
        """
        return a standard numpy array dimensioned to have the size
        and number of ghostcells as the parent grid
        """
        if nvar == 1:
            _tmp = np.zeros((self.qx, self.qy), dtype=np.float64)
        else:
            _tmp = np.zeros((self.qx, self.qy, nvar), dtype=np.float64)
        return ai.ArrayIndexer(d=_tmp, grid=self)

    def node_scratch_array(self):
        """
        return an array for node-centered data: one point larger than
        a cell array in each direction
        """
        _tmp = np.zeros((self.qx+1, self.qy+1), dtype=np.float64)
        return ai.ArrayIndexer(d=_tmp, grid=self, centering="node")

    def coarse_like(self, N):
        """
        return a new grid object coarsened by a factor n, but with
        all the other properties the same
        """
        return Grid2d(self.nx//N, self.ny//N, ng=self.ng,
                      xmin=self.xmin, xmax=self.xmax,
                      ymin=self.ymin, ymax=self.ymax)

    def fine_like(self, N):
        """
        return a new grid object finer by a factor n, but with
        all the other properties the same
        """
        return Grid2d(self.nx*N, self.ny*N, ng=self.ng,
                      xmin=self.xmin, xmax=self.xmax,
                      ymin=self.ymin, ymax=self.ymax)

    def sub_grid(self, box, ng=None):
        """
        return the grid describing the cells of box (given in our global
        index space), with the same spacing as us
        """
        if not self.domain.contains(box):
            raise ValueError("{} is not inside the domain {}".format(box, self.domain))

        if ng is None:
            ng = self.ng

        ioff = box.lo[0] - self.box.lo[0]
        joff = box.lo[1] - self.box.lo[1]

        xmin = self.xmin + ioff*self.dx
        ymin = self.ymin + joff*self.dy

        return Grid2d(box.nx, box.ny, ng=ng,
                      xmin=xmin, xmax=xmin + box.nx*self.dx,
                      ymin=ymin, ymax=ymin + box.ny*self.dy,
                      box=box, domain=self.domain)

    def local_index(self, i, j):
        """convert a global index into an index into our arrays"""
        return (i - self.box.lo[0] + self.ng, j - self.box.lo[1] + self.ng)

    def on_physical_boundary(self, idir, iside):
        """does the low (iside = 0) or high side of our box in idir touch the
        edge of the level's domain?"""
        if iside == 0:
            return self.box.lo[idir] == self.domain.lo[idir]
        return self.box.hi[idir] == self.domain.hi[idir]

    def norm(self, d):
        """
        find the norm of the quantity d defined on the same grid, in the
        domain's valid region
        """
        return np.sqrt(self.dx * self.dy *
                       np.sum((d[self.ilo:self.ihi+1, self.jlo:self.jhi+1]**2).flat))

    def __str__(self):
        """ print out some basic information about the grid object """
        return "2-d grid: nx = {}, ny = {}, ng = {}, box = {}".format(
            self.nx, self.ny, self.ng, self.box)

    def __eq__(self, other):
        """ are two grids equivalent? """
        result = (self.nx == other.nx and self.ny == other.ny and
                  self.ng == other.ng and
                  self.xmin == other.xmin and self.xmax == other.xmax and
                  self.ymin == other.ymin and self.ymax == other.ymax and
                  self.box == other.box)

        return result


def box_view(d, grid, box):
    """
    return the part of the array d (cell- or node-centered on grid) that
    covers the global index box.  The box may extend into the ghost
    cells, but not past the end of the array.
    """

    ilo, jlo = grid.local_index(box.lo[0], box.lo[1])
    iend = ilo + box.nx
    jend = jlo + box.ny

    if ilo < 0 or jlo < 0 or iend > d.shape[0] or jend > d.shape[1]:
        raise ValueError("box {} is outside of the array of shape {}".format(box, d.shape))

    return np.asarray(d)[ilo:iend, jlo:jend]


def fill_ghost(d, grid, bc):
    """
    fill the ghost cells of a single cell-centered array d on grid,
    using the ghost fill types in the BC object.  Only the sides of
    the grid that sit on the edge of the domain are touched.
    """

    ng = grid.ng

    # -x boundary
    if grid.on_physical_boundary(0, 0):
        if bc.xlb in ["outflow", "neumann"]:
            for i in range(grid.ilo):
                d[i, :] = d[grid.ilo, :]

        elif bc.xlb == "reflect-even":
            for i in range(grid.ilo):
                d[i, :] = d[2*ng-i-1, :]

        elif bc.xlb in ["reflect-odd", "dirichlet"]:
            for i in range(grid.ilo):
                d[i, :] = -d[2*ng-i-1, :]

        elif bc.xlb == "periodic":
            for i in range(grid.ilo):
                d[i, :] = d[grid.ihi-ng+i+1, :]

    # +x boundary
    if grid.on_physical_boundary(0, 1):
        if bc.xrb in ["outflow", "neumann"]:
            for i in range(grid.ihi+1, grid.nx+2*ng):
                d[i, :] = d[grid.ihi, :]

        elif bc.xrb == "reflect-even":
            for i in range(ng):
                i_bnd = grid.ihi+1+i
                i_src = grid.ihi-i
                d[i_bnd, :] = d[i_src, :]

        elif bc.xrb in ["reflect-odd", "dirichlet"]:
            for i in range(ng):
                i_bnd = grid.ihi+1+i
                i_src = grid.ihi-i
                d[i_bnd, :] = -d[i_src, :]

        elif bc.xrb == "periodic":
            for i in range(grid.ihi+1, 2*ng + grid.nx):
                d[i, :] = d[i-grid.ihi-1+ng, :]

    # -y boundary
    if grid.on_physical_boundary(1, 0):
        if bc.ylb in ["outflow", "neumann"]:
            for j in range(grid.jlo):
                d[:, j] = d[:, grid.jlo]

        elif bc.ylb == "reflect-even":
            for j in range(grid.jlo):
                d[:, j] = d[:, 2*ng-j-1]

        elif bc.ylb in ["reflect-odd", "dirichlet"]:
            for j in range(grid.jlo):
                d[:, j] = -d[:, 2*ng-j-1]

        elif bc.ylb == "periodic":
            for j in range(grid.jlo):
                d[:, j] = d[:, grid.jhi-ng+j+1]

    # +y boundary
    if grid.on_physical_boundary(1, 1):
        if bc.yrb in ["outflow", "neumann"]:
            for j in range(grid.jhi+1, grid.ny+2*ng):
                d[:, j] = d[:, grid.jhi]

        elif bc.yrb == "reflect-even":
            for j in range(ng):
                j_bnd = grid.jhi+1+j
                j_src = grid.jhi-j
                d[:, j_bnd] = d[:, j_src]

        elif bc.yrb in ["reflect-odd", "dirichlet"]:
            for j in range(ng):
                j_bnd = grid.jhi+1+j
                j_src = grid.jhi-j
                d[:, j_bnd] = -d[:, j_src]

        elif bc.yrb == "periodic":
            for j in range(grid.jhi+1, 2*ng + grid.ny):
                d[:, j] = d[:, j-grid.jhi-1+ng]


def fill_node_ghost(d, grid, bc):
    """
    fill the ghost nodes of a node-centered array.  Reflection is about
    the boundary node itself; for periodic data the last node is the
    same point as the first.
    """

    ng = grid.ng
    ilo, jlo = grid.ilo, grid.jlo
    iend, jend = grid.ihi + 1, grid.jhi + 1

    for idir in range(2):
        for iside in range(2):
            if not grid.on_physical_boundary(idir, iside):
                continue

            bctype = bc.side(idir, iside)
            sign = -1.0 if bctype in ["reflect-odd", "dirichlet"] else 1.0

            lo = ilo if idir == 0 else jlo
            end = iend if idir == 0 else jend

            for k in range(1, ng+1):
                if iside == 0:
                    dst = lo - k
                    if bctype == "periodic":
                        src = end - k
                        s = 1.0
                    else:
                        src = lo + k
                        s = sign
                else:
                    dst = end + k
                    if bctype == "periodic":
                        src = lo + k
                        s = 1.0
                    else:
                        src = end - k
                        s = sign

                if idir == 0:
                    d[dst, :] = s*d[src, :]
                else:
                    d[:, dst] = s*d[:, src]

            if bctype == "periodic" and iside == 1:
                if idir == 0:
                    d[end, :] = d[lo, :]
                else:
                    d[:, end] = d[:, lo]


class CellCenterData2d(object):
    """
    A class to define cell-centered data that lives on a grid.  A
    CellCenterData2d object is built in a multi-step process before
    it can be used.

    -- Create the object.  We pass in a grid object to describe where
       the data lives::

         my_data = patch.CellCenterData2d(myGrid)

    -- Register any variables that we expect to live on this patch.
       Here BC describes the boundary conditions for that variable::

         my_data.register_var('density', BC)
         my_data.register_var('x-velocity', BC)
         ...

    -- Finally, finish the initialization of the patch::

         my_data.create()

    This last step actually allocates the storage for the state
    variables.  Once this is done, the patch is considered to be
    locked.  New variables cannot be added.
    """

    centering = "cell"

    def __init__(self, grid, dtype=np.float64):

        """
        Initialize the CellCenterData2d object.

        Parameters
        ----------
        grid : Grid2d object
            The grid upon which the data will live
        dtype : NumPy data type, optional
            The datatype of the data we wish to create (defaults to
            np.float64
        """

        self.grid = grid

        self.dtype = dtype
        self.data = None

        self.names = []
        self.nvar = 0

        self.BCs = {}

        # functions that compute derived variables
        self.derives = []

        # time
        self.t = -1.0

        self.initialized = 0

    def register_var(self, name, bc):
        """
        Register a variable with CellCenterData2d object.

        Parameters
        ----------
        name : str
            The variable name
        bc : BC object
            The boundary conditions that describe the actions to take
            for this variable at the physical domain boundaries.
        """

        if self.initialized == 1:
            msg.fail("ERROR: grid already initialized")

        self.names.append(name)
        self.nvar += 1

        self.BCs[name] = bc

    def add_derived(self, func):
        """
        Register a function that computes derived variables.  func(data,
        name) returns the derived array, or None if it does not know
        about name.
        """
        self.derives.append(func)

    def _shape(self):
        return (self.grid.qx, self.grid.qy, self.nvar)

    def create(self):
        """
        Called after all the variables are registered and allocates
        the storage for the state data.
        """

        if self.initialized == 1:
            msg.fail("ERROR: grid already initialized")

        self.data = np.zeros(self._shape(), dtype=self.dtype)
        self.initialized = 1

    def __str__(self):
        """ print out some basic information about the CellCenterData2d
            object """

        if self.initialized == 0:
            my_str = "CellCenterData2d object not yet initialized"
            return my_str

        my_str = "cc data: nx = {}, ny = {}, ng = {}\n".format(
            self.grid.nx, self.grid.ny, self.grid.ng)
        my_str += "         nvars = {}\n".format(self.nvar)
        my_str += "         variables:\n"

        for n in range(self.nvar):
            my_str += "%16s: min: %15.10f    max: %15.10f\n" % \
                (self.names[n], self.min(self.names[n]), self.max(self.names[n]))
            my_str += "%16s  BCs: -x: %-12s +x: %-12s -y: %-12s +y: %-12s\n" %\
                (" ", self.BCs[self.names[n]].xlb,
                 self.BCs[self.names[n]].xrb,
                 self.BCs[self.names[n]].ylb,
                 self.BCs[self.names[n]].yrb)

        return my_str

    def get_var(self, name):
        """
        Return a data array for the variable described by name.  Any
        changes made to this are automatically reflected in the
        CellCenterData2d object.

        Parameters
        ----------
        name : str
            The name of the variable to access

        Returns
        -------
        out : ndarray
            The array of data corresponding to the variable name

        """
        try:
            n = self.names.index(name)
        except ValueError:
            for func in self.derives:
                var = func(self, name)
                if var is not None:
                    return var
            msg.fail("ERROR: variable {} not registered".format(name))
            return None

        return self.get_var_by_index(n)

    def get_var_by_index(self, n):
        """
        Return a data array for the variable with index n in the
        data array.  Any changes made to this are automatically
        reflected in the CellCenterData2d object.
        """
        return ai.ArrayIndexer(d=self.data[:, :, n], grid=self.grid,
                               centering=self.centering)

    def zero(self, name):
        """
        Zero out the data array associated with variable name.
        """
        n = self.names.index(name)
        self.data[:, :, n] = 0.0

    def fill_BC(self, name):
        """
        Fill the boundary conditions.  This operates on a single state
        variable at a time, to allow for maximum flexibility.

        We do periodic, reflect-even, reflect-odd, and outflow

        Each variable name has a corresponding BC stored in the
        CellCenterData2d object -- we refer to this to figure out the
        action to take at each boundary.
        """

        n = self.names.index(name)
        fill_ghost(self.data[:, :, n], self.grid, self.BCs[name])

    def min(self, name, ng=0):
        """
        return the minimum of the variable name in the domain's valid region
        """
        n = self.names.index(name)
        return np.min(self.get_var_by_index(n).v(buf=ng))

    def max(self, name, ng=0):
        """
        return the maximum of the variable name in the domain's valid region
        """
        n = self.names.index(name)
        return np.max(self.get_var_by_index(n).v(buf=ng))

    def restrict(self, varname, N=2):
        """
        Restrict the variable varname to a coarser grid (factor of N
        coarser) and return an array with the resulting data (and same
        number of ghostcells)
        """

        fine_data = self.get_var(varname)
        fG = self.grid

        # allocate an array for the coarsely gridded data
        cG = fG.coarse_like(N)
        cdata = cG.scratch_array()

        # fill the coarse array with the restricted data -- just
        # average the N x N fine cells into the corresponding coarse cell
        for ii in range(N):
            for jj in range(N):
                cdata.v()[:, :] += fine_data.ip_jp(ii, jj, s=N)

        cdata.v()[:, :] /= N*N

        return cdata

    def prolong(self, varname):
        """
        Prolong the data in the current (coarse) grid to a finer
        (factor of 2 finer) grid.  Return an array with the resulting
        data (and same number of ghostcells).  Only the data for the
        variable varname will be operated upon.

        We will reconstruct the data in the zone from the
        zone-averaged variables using the same limited slopes as in
        the advection routines.  Note: this requires that the ghost
        cells have been filled first.

        In 2-d, each coarse cell produces 4 fine cells
        """

        coarse_data = self.get_var(varname)

        # allocate an array for the coarsely gridded data
        fG = self.grid.fine_like(2)
        fine_data = fG.scratch_array()

        # slopes for the coarse data
        m_x = self.grid.scratch_array()
        m_x.v()[:, :] = 0.5*(coarse_data.ip(1) - coarse_data.ip(-1))

        m_y = self.grid.scratch_array()
        m_y.v()[:, :] = 0.5*(coarse_data.jp(1) - coarse_data.jp(-1))

        # fill the children
        fine_data.v(s=2)[:, :] = coarse_data.v() - 0.25*m_x.v() - 0.25*m_y.v()     # 1 lower left
        fine_data.ip(1, s=2)[:, :] = coarse_data.v() + 0.25*m_x.v() - 0.25*m_y.v()  # 2 lower right
        fine_data.jp(1, s=2)[:, :] = coarse_data.v() - 0.25*m_x.v() + 0.25*m_y.v()  # 3 upper left
        fine_data.ip_jp(1, 1, s=2)[:, :] = coarse_data.v() + 0.25*m_x.v() + 0.25*m_y.v()  # 4 upper right

        return fine_data


class NodeData2d(CellCenterData2d):
    """
    node-centered data on a grid.  The valid nodes run from ilo to
    ihi+1 (and jlo to jhi+1): the corners of the valid cells.
    """

    centering = "node"

    def _shape(self):
        return (self.grid.qx+1, self.grid.qy+1, self.nvar)

    def fill_BC(self, name):
        n = self.names.index(name)
        fill_node_ghost(self.data[:, :, n], self.grid, self.BCs[name])

    def restrict(self, varname, N=2):
        msg.fail("ERROR: restrict is not defined for node data")

    def prolong(self, varname):
        msg.fail("ERROR: prolong is not defined for node data")

"""
Data that lives on all of the patches of a level, and the operations
that move data between patches, levels and times.

- Geometry: the index domain and physical extent of a level.

- MultiPatch: one CellCenterData2d (or NodeData2d) per box of a
  level's BoxArray.  Data can be gathered onto a "canvas" -- a single
  array covering the whole level domain with ghost cells -- and
  scattered back.  The canvas is how ghost cells are exchanged between
  neighboring patches and how the level talks to the elliptic solvers.

- StateData: an old / new pair of MultiPatch objects with time stamps.

- fill_patch: build a level canvas at a given time, with coarse data
  (interpolated in space and time) wherever the level has no patch,
  and physical boundary conditions applied.  Each patch's ghost cells
  can then be filled from it.

- average_down, inject_nodes: restrict fine data onto the coarse cells
  (nodes) they cover.
"""

import numpy as np

import mesh.patch as patch
from mesh.box import Box
from util import msg


class Geometry(object):
    """
    the index domain, physical extent and periodicity of a single level
    """

    def __init__(self, domain, xmin=0.0, xmax=1.0, ymin=0.0, ymax=1.0,
                 periodic=(False, False)):
        self.domain = domain
        self.xmin = xmin
        self.xmax = xmax
        self.ymin = ymin
        self.ymax = ymax
        self.periodic = tuple(periodic)

        self.dx = (xmax - xmin)/domain.nx
        self.dy = (ymax - ymin)/domain.ny

    def refine(self, r):
        return Geometry(self.domain.refine(r), self.xmin, self.xmax,
                        self.ymin, self.ymax, self.periodic)

    def coarsen(self, r):
        return Geometry(self.domain.coarsen(r), self.xmin, self.xmax,
                        self.ymin, self.ymax, self.periodic)

    def is_periodic(self, idir):
        return self.periodic[idir]

    def grid(self, ng):
        """a Grid2d that covers the entire domain of this level"""
        return patch.Grid2d(self.domain.nx, self.domain.ny, ng=ng,
                            xmin=self.xmin, xmax=self.xmax,
                            ymin=self.ymin, ymax=self.ymax,
                            box=self.domain, domain=self.domain)

    def volume(self):
        return self.dx*self.dy

    def area(self, idir):
        """the area of a face normal to idir (in 2-d, a length)"""
        if idir == 0:
            return self.dy
        return self.dx

    def __str__(self):
        return "geometry: domain = {}, dx = {}, dy = {}, periodic = {}".format(
            self.domain, self.dx, self.dy, self.periodic)


class MultiPatch(object):
    """
    data on every patch of a level.  The patches all share the same
    variable names and boundary conditions.
    """

    def __init__(self, geom, grids, ng, names, bcs, centering="cell"):
        """
        Parameters
        ----------
        geom : Geometry object
            the level geometry
        grids : BoxArray
            the cell boxes that make up the level
        ng : int
            number of ghost cells on each patch
        names : list of str
            the variable names
        bcs : dict
            the BC object for each variable name
        centering : {'cell', 'node'}
            where the data lives
        """

        self.geom = geom
        self.grids = grids
        self.ng = ng
        self.names = list(names)
        self.bcs = bcs
        self.centering = centering

        self.canvas_grid = geom.grid(ng)

        self.patches = []
        for box in grids:
            myg = self.canvas_grid.sub_grid(box)
            if centering == "node":
                my_data = patch.NodeData2d(myg)
            else:
                my_data = patch.CellCenterData2d(myg)

            for name in self.names:
                my_data.register_var(name, bcs[name])
            my_data.create()

            self.patches.append(my_data)

    def __len__(self):
        return len(self.patches)

    def __iter__(self):
        return iter(self.patches)

    def __getitem__(self, n):
        return self.patches[n]

    def get_var(self, name):
        """the list of per-patch arrays for variable name"""
        return [p.get_var(name) for p in self.patches]

    def set_val(self, val, name=None):
        for p in self.patches:
            if name is None:
                p.data[:, :, :] = val
            else:
                p.get_var(name).d[:, :] = val

    def copy_from(self, other, names=None):
        """copy the data (valid and ghost) of other into us"""
        if names is None:
            for p, q in zip(self.patches, other.patches):
                p.data[:, :, :] = q.data[:, :, :]
        else:
            for name in names:
                for p, q in zip(self.patches, other.patches):
                    p.get_var(name).d[:, :] = q.get_var(name).d

    def like(self, names=None):
        """a new MultiPatch with the same layout, zero filled"""
        if names is None:
            names = self.names
        return MultiPatch(self.geom, self.grids, self.ng, names,
                          {n: self.bcs[n] for n in names}, self.centering)

    def canvas_scratch(self):
        if self.centering == "node":
            return self.canvas_grid.node_scratch_array()
        return self.canvas_grid.scratch_array()

    def _valid_box(self, box):
        if self.centering == "node":
            return box.surrounding_nodes()
        return box

    def gather(self, name, canvas=None):
        """
        copy the valid data of every patch into a level canvas and
        return it.  Parts of the canvas not covered by a patch are left
        alone (zero for a fresh canvas).
        """
        if canvas is None:
            canvas = self.canvas_scratch()

        for box, p in zip(self.grids, self.patches):
            vbox = self._valid_box(box)
            patch.box_view(canvas, self.canvas_grid, vbox)[:, :] = \
                patch.box_view(p.get_var(name), p.grid, vbox)

        return canvas

    def scatter(self, canvas, name, buf=0):
        """
        copy a level canvas back into each patch, including buf ghost
        cells around each patch
        """
        for box, p in zip(self.grids, self.patches):
            vbox = self._valid_box(box).grow(buf)
            patch.box_view(p.get_var(name), p.grid, vbox)[:, :] = \
                patch.box_view(canvas, self.canvas_grid, vbox)

    def canvas_data(self, names=None):
        """
        a CellCenterData2d (or NodeData2d) covering the whole level with
        our BCs, so that fill_BC can be used on the canvas
        """
        if names is None:
            names = self.names

        if self.centering == "node":
            cd = patch.NodeData2d(self.canvas_grid)
        else:
            cd = patch.CellCenterData2d(self.canvas_grid)

        for name in names:
            cd.register_var(name, self.bcs[name])
        cd.create()

        return cd

    def valid_mask(self):
        """boolean canvas-shaped array that is True on our valid cells"""
        mask = np.zeros((self.canvas_grid.qx, self.canvas_grid.qy), dtype=bool)
        for box in self.grids:
            patch.box_view(mask, self.canvas_grid, box)[:, :] = True
        return mask

    def max(self, name, mask=None):
        """
        the maximum of name over the valid region.  If mask (a canvas
        shaped boolean array) is given, only cells where it is True count
        """
        canvas = self.gather(name)
        valid = self.valid_mask()
        if mask is not None:
            valid = np.logical_and(valid, mask)
        if not valid.any():
            return -np.inf
        return np.max(np.asarray(canvas)[valid])

    def min(self, name, mask=None):
        canvas = self.gather(name)
        valid = self.valid_mask()
        if mask is not None:
            valid = np.logical_and(valid, mask)
        if not valid.any():
            return np.inf
        return np.min(np.asarray(canvas)[valid])

    def sum(self, name, mask=None):
        canvas = self.gather(name)
        valid = self.valid_mask()
        if mask is not None:
            valid = np.logical_and(valid, mask)
        return np.sum(np.asarray(canvas)[valid])

    def norm(self, name):
        """the L2 norm over the valid region of the level"""
        total = 0.0
        for p in self.patches:
            total += p.get_var(name).norm()**2
        return np.sqrt(total)


class StateData(object):
    """
    an old / new pair of MultiPatch data with the times they are valid at.
    New data becomes old data only through swap_time_levels.
    """

    def __init__(self, name, geom, grids, ng, names, bcs, centering="cell"):
        self.name = name
        self.old = MultiPatch(geom, grids, ng, names, bcs, centering)
        self.new = MultiPatch(geom, grids, ng, names, bcs, centering)
        self.t_old = 0.0
        self.t_new = 0.0

    def set_time(self, time):
        self.t_old = time
        self.t_new = time

    def swap_time_levels(self, dt):
        """the new data becomes the old data, and new starts as a copy"""
        self.old, self.new = self.new, self.old
        self.t_old = self.t_new
        self.t_new = self.t_old + dt
        self.new.copy_from(self.old)

    def time_weights(self, time):
        """the weights of the old and new data that give the state at time"""
        eps = 1.e-10*max(abs(self.t_new - self.t_old), 1.e-300, abs(self.t_new))

        if abs(time - self.t_new) <= eps:
            return 0.0, 1.0
        if abs(time - self.t_old) <= eps:
            return 1.0, 0.0

        if self.t_new == self.t_old:
            msg.fail("ERROR: cannot interpolate {} to t = {}: only t = {} is available".format(
                self.name, time, self.t_new))

        w_new = (time - self.t_old)/(self.t_new - self.t_old)
        if w_new < -1.e-8 or w_new > 1.0 + 1.e-8:
            msg.warning("warning: extrapolating {} to t = {} (t_old = {}, t_new = {})".format(
                self.name, time, self.t_old, self.t_new))

        return 1.0 - w_new, w_new

    def gather_at_time(self, time, name, canvas=None):
        """gather the valid data at time (linear in time) onto a canvas"""
        w_old, w_new = self.time_weights(time)

        if canvas is None:
            canvas = self.new.canvas_scratch()

        if w_old == 0.0:
            return self.new.gather(name, canvas)
        if w_new == 0.0:
            return self.old.gather(name, canvas)

        c_old = self.old.gather(name)
        c_new = self.new.gather(name)
        interp = w_old*np.asarray(c_old) + w_new*np.asarray(c_new)

        for box in self.new.grids:
            vbox = self.new._valid_box(box)
            patch.box_view(canvas, self.new.canvas_grid, vbox)[:, :] = \
                patch.box_view(interp, self.new.canvas_grid, vbox)

        return canvas


#-----------------------------------------------------------------------------
# interpolation between levels
#-----------------------------------------------------------------------------

def _mc_slopes(c, axis):
    """monotonized central slopes of c along axis (zero on the array edge)"""
    s = np.zeros_like(c)
    if axis == 0:
        dl = c[1:-1, :] - c[:-2, :]
        dr = c[2:, :] - c[1:-1, :]
        target = s[1:-1, :]
    else:
        dl = c[:, 1:-1] - c[:, :-2]
        dr = c[:, 2:] - c[:, 1:-1]
        target = s[:, 1:-1]

    dc = 0.5*(dl + dr)
    lim = np.minimum(np.abs(dc), np.minimum(2.0*np.abs(dl), 2.0*np.abs(dr)))
    target[:, :] = np.where(dl*dr > 0.0, lim*np.sign(dc), 0.0)
    return s


def prolong_cells(crse, crse_grid, fine_grid, r):
    """
    conservative, limited linear interpolation of a coarse canvas onto
    every cell (including ghost cells) of a fine canvas that is r times
    finer.  The average of the r x r children equals the coarse value.
    """

    crse = np.asarray(crse)

    sx = _mc_slopes(crse, 0)
    sy = _mc_slopes(crse, 1)

    fi = np.arange(fine_grid.qx) - fine_grid.ng + fine_grid.box.lo[0]
    fj = np.arange(fine_grid.qy) - fine_grid.ng + fine_grid.box.lo[1]

    ci = fi // r
    cj = fj // r

    # offset of the fine cell center from the coarse cell center, in
    # units of the coarse cell width
    xoff = (fi - ci*r + 0.5)/r - 0.5
    yoff = (fj - cj*r + 0.5)/r - 0.5

    li = ci - crse_grid.box.lo[0] + crse_grid.ng
    lj = cj - crse_grid.box.lo[1] + crse_grid.ng

    if li.min() < 0 or lj.min() < 0 or li.max() >= crse.shape[0] or lj.max() >= crse.shape[1]:
        raise ValueError("coarse canvas does not cover the fine canvas")

    idx = np.ix_(li, lj)

    return crse[idx] + xoff[:, np.newaxis]*sx[idx] + yoff[np.newaxis, :]*sy[idx]


def prolong_nodes(crse, crse_grid, fine_grid, r):
    """
    bilinear interpolation of coarse node data onto every node of a fine
    canvas that is r times finer.  Fine nodes that coincide with coarse
    nodes get the coarse value exactly.
    """

    crse = np.asarray(crse)

    fi = np.arange(fine_grid.qx + 1) - fine_grid.ng + fine_grid.box.lo[0]
    fj = np.arange(fine_grid.qy + 1) - fine_grid.ng + fine_grid.box.lo[1]

    ci = fi // r
    cj = fj // r

    fx = (fi - ci*r)/float(r)
    fy = (fj - cj*r)/float(r)

    li = ci - crse_grid.box.lo[0] + crse_grid.ng
    lj = cj - crse_grid.box.lo[1] + crse_grid.ng

    # the +1 neighbor is only used with a nonzero weight
    li1 = np.minimum(li + 1, crse.shape[0] - 1)
    lj1 = np.minimum(lj + 1, crse.shape[1] - 1)

    if li.min() < 0 or lj.min() < 0 or li.max() >= crse.shape[0] or lj.max() >= crse.shape[1]:
        raise ValueError("coarse canvas does not cover the fine canvas")

    fx = fx[:, np.newaxis]
    fy = fy[np.newaxis, :]

    return (1.0 - fx)*(1.0 - fy)*crse[np.ix_(li, lj)] + \
        fx*(1.0 - fy)*crse[np.ix_(li1, lj)] + \
        (1.0 - fx)*fy*crse[np.ix_(li, lj1)] + \
        fx*fy*crse[np.ix_(li1, lj1)]


def fill_patch(states, lev, time, name, ratio):
    """
    build the canvas for level lev at time for variable name.  The
    level's own patches supply their valid data; everywhere else comes
    from the next coarser level (recursively), interpolated in space;
    then physical boundary conditions are applied.

    Parameters
    ----------
    states : list of StateData
        the state of this variable type on levels 0 .. lev
    lev : int
        the level to fill
    time : float
        the time to fill at
    name : str
        the variable name
    ratio : int
        the refinement ratio between levels

    Returns
    -------
    cd : CellCenterData2d or NodeData2d
        the filled canvas data
    """

    sd = states[lev]
    cd = sd.new.canvas_data([name])
    arr = cd.get_var(name)

    if lev > 0:
        crse_cd = fill_patch(states, lev-1, time, name, ratio)
        if sd.new.centering == "node":
            arr.d[:, :] = prolong_nodes(crse_cd.get_var(name), crse_cd.grid, cd.grid, ratio)
        else:
            arr.d[:, :] = prolong_cells(crse_cd.get_var(name), crse_cd.grid, cd.grid, ratio)

    sd.gather_at_time(time, name, canvas=arr)
    cd.fill_BC(name)

    return cd


def fill_ghost_cells(states, lev, time, names, ratio, target=None):
    """
    fill the ghost cells of every patch on level lev (of target, which
    defaults to the new data) from the level canvas at time
    """
    if target is None:
        target = states[lev].new

    for name in names:
        cd = fill_patch(states, lev, time, name, ratio)
        canvas = cd.get_var(name)
        for box, p in zip(target.grids, target.patches):
            vbox = target._valid_box(box).grow(target.ng)
            patch.box_view(p.get_var(name), p.grid, vbox)[:, :] = \
                patch.box_view(canvas, cd.grid, vbox)


def average_down(fine, crse, r, names):
    """
    replace the coarse data under each fine patch with the average of
    the r x r fine cells it covers
    """
    for name in names:
        canvas = crse.gather(name)
        for fbox, fp in zip(fine.grids, fine.patches):
            cbox = fbox.coarsen(r)
            fdata = fp.get_var(name).v()
            avg = fdata.reshape(cbox.nx, r, cbox.ny, r).mean(axis=(1, 3))
            patch.box_view(canvas, crse.canvas_grid, cbox)[:, :] = avg

        # write back only the covered coarse cells
        for cbox_f in fine.grids.coarsen(r):
            for n, isect in crse.grids.intersections(cbox_f):
                cp = crse.patches[n]
                patch.box_view(cp.get_var(name), cp.grid, isect)[:, :] = \
                    patch.box_view(canvas, crse.canvas_grid, isect)


def inject_nodes(fine, crse, r, names):
    """
    copy fine node data onto the coarse nodes they coincide with, for
    every coarse node on or inside a fine patch
    """
    for name in names:
        for fbox, fp in zip(fine.grids, fine.patches):
            cnodes = fbox.coarsen(r).surrounding_nodes()
            fvals = fp.get_var(name).v()[::r, ::r]
            for box, cp in zip(crse.grids, crse.patches):
                isect = box.surrounding_nodes() & cnodes
                if not isect.ok():
                    continue
                sl = isect.slices(cnodes)
                patch.box_view(cp.get_var(name), cp.grid, isect)[:, :] = fvals[sl]


def covered_mask(crse_geom, fine_grids, r, ng):
    """
    boolean canvas-shaped array (with ng ghost cells) on the coarse level
    that is True where a coarse cell is covered by the coarsened fine grids
    """
    cgrids = fine_grids.coarsen(r)
    return cgrids.cell_mask(crse_geom.domain, crse_geom.periodic, ng=ng).astype(bool)


def domain_box(nx, ny):
    return Box((0, 0), (nx-1, ny-1))

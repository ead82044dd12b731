"""
The sync register collects the divergence mismatch of the nodal level
projections at the coarse nodes on the boundary of a fine level.

After the coarse level projection, the coarse nodes on the coarse/fine
interface only see the coarse half of their control volume.  After the
last fine subcycle, the fine level's projection left a residual on its
boundary nodes that only sees the fine half.  The register sums the two
(the fine residual restricted to the coarse nodes with a tent-shaped
weighting) to give the composite divergence at those nodes, which is
then the righthand side of the sync projection.

Each entry is the plane of coarse nodes on one side of one fine box,
together with a mask that is 0 at nodes that are entirely surrounded
by fine cells (they are not on the coarse/fine interface) and 1
elsewhere.
"""

import numpy as np

import mesh.patch as patch


def tent_weights(r):
    """the 1-d tent weights (r - |m|)/r for m = -(r-1) .. r-1"""
    m = np.arange(-(r-1), r)
    return (r - np.abs(m))/float(r)


class SyncEntry(object):
    """the coarse nodes on one side of one fine box"""

    def __init__(self, idir, iside, n, nodes):
        self.idir = idir
        self.iside = iside
        self.n = n
        self.nodes = nodes
        self.data = np.zeros(nodes.shape)
        self.mask = np.ones(nodes.shape)


class SyncRegister(object):
    """
    the composite nodal divergence on the coarse nodes that bound a
    fine level
    """

    def __init__(self, fine_grids, crse_geom, ratio):
        self.fine_grids = fine_grids
        self.crse_geom = crse_geom
        self.ratio = ratio

        self.entries = []
        for n, fbox in enumerate(fine_grids):
            cbox = fbox.coarsen(ratio)
            for idir in range(2):
                for iside in range(2):
                    self.entries.append(SyncEntry(idir, iside, n,
                                                  cbox.face_slab(idir, iside)))

        self.make_mask()
        self.convert_mask()

    def _on_wall(self, idir, index):
        """is the coarse node index (along idir) on a non-periodic domain edge?"""
        if self.crse_geom.is_periodic(idir):
            return np.zeros_like(index, dtype=bool)
        domain = self.crse_geom.domain
        return np.logical_or(index == domain.lo[idir], index == domain.hi[idir] + 1)

    def _node_indices(self, nodes):
        ii = np.arange(nodes.lo[0], nodes.hi[0] + 1)[:, np.newaxis]*np.ones((1, nodes.ny), dtype=int)
        jj = np.arange(nodes.lo[1], nodes.hi[1] + 1)[np.newaxis, :]*np.ones((nodes.nx, 1), dtype=int)
        return ii, jj

    def make_mask(self):
        """
        count the covered coarse cells around each register node
        (periodic images included), doubling the count for each
        non-periodic domain edge the node lies on
        """

        domain = self.crse_geom.domain
        covered = self.fine_grids.coarsen(self.ratio).cell_mask(
            domain, self.crse_geom.periodic, ng=1)

        for e in self.entries:
            ii, jj = self._node_indices(e.nodes)

            # cell (i, j) lives at covered[i - lo + 1, j - lo + 1]; node (i, j)
            # is surrounded by cells i-1 .. i, j-1 .. j
            a = ii - domain.lo[0]
            b = jj - domain.lo[1]
            count = (covered[a, b] + covered[a+1, b] +
                     covered[a, b+1] + covered[a+1, b+1]).astype(np.float64)

            for idir, index in [(0, ii), (1, jj)]:
                count[self._on_wall(idir, index)] *= 2.0

            e.mask[:, :] = count

    def convert_mask(self):
        """a count above 3.5 means the node is interior to the fine level: 0, else 1"""
        for e in self.entries:
            e.mask[:, :] = np.where(e.mask > 3.5, 0.0, 1.0)

    def set_val(self, val=0.0):
        for e in self.entries:
            e.data[:, :] = val

    def crse_init(self, resid, grid, mult=1.0):
        """
        zero the register and then set it to mult times the coarse
        residual on the register nodes

        Parameters
        ----------
        resid : ndarray
            node-centered residual on the coarse level canvas
        grid : Grid2d
            the coarse canvas grid
        """
        for e in self.entries:
            e.data[:, :] = mult*patch.box_view(resid, grid, e.nodes)

    def comp_add(self, resid, grid, pgrids=None, mult=1.0):
        """
        add the fine residual, first zeroing the fine nodes inside the
        next finer level's boxes (pgrids, in fine index space)
        """
        r = np.array(resid, dtype=np.float64)
        if pgrids is not None:
            for pbox in pgrids:
                inner = pbox.surrounding_nodes().grow(-1)
                if inner.ok():
                    patch.box_view(r, grid, inner)[:, :] = 0.0

        self.fine_add(r, grid, mult)

    def _wrap_fine(self, resid, grid):
        """
        a copy of the fine node canvas with the ghost nodes zeroed, or
        (in periodic directions) filled with the periodic images
        """
        r = np.array(resid, dtype=np.float64)

        ilo, jlo = grid.ilo, grid.jlo
        iend, jend = grid.ihi + 1, grid.jhi + 1

        r[:ilo, :] = 0.0
        r[iend+1:, :] = 0.0
        r[:, :jlo] = 0.0
        r[:, jend+1:] = 0.0

        ng = grid.ng
        if self.crse_geom.is_periodic(0):
            for k in range(1, ng+1):
                r[ilo-k, :] = r[iend-k, :]
                r[iend+k, :] = r[ilo+k, :]
        if self.crse_geom.is_periodic(1):
            for k in range(1, ng+1):
                r[:, jlo-k] = r[:, jend-k]
                r[:, jend+k] = r[:, jlo+k]

        return r

    def restrict_residual(self, fine, grid, nodes):
        """
        the tent-weighted restriction of the fine node data onto the
        coarse nodes of the node box nodes
        """
        r = self.ratio
        w = tent_weights(r)

        ii, jj = self._node_indices(nodes)
        fi, fj = grid.local_index(r*ii, r*jj)

        acc = np.zeros(nodes.shape)
        for a, wa in enumerate(w):
            for b, wb in enumerate(w):
                acc += wa*wb*fine[fi + a - (r-1), fj + b - (r-1)]
        acc /= r*r

        for idir, index in [(0, ii), (1, jj)]:
            acc[self._on_wall(idir, index)] *= 2.0

        return acc

    def fine_add(self, resid, grid, mult=1.0):
        """
        add the fine residual restricted to the coarse register nodes:
        a tent-weighted sum of the (2r-1) x (2r-1) fine nodes around
        each coarse node, divided by r^2, and doubled for each
        non-periodic domain edge the node lies on

        Parameters
        ----------
        resid : ndarray
            node-centered residual on the fine level canvas
        grid : Grid2d
            the fine canvas grid
        """

        r = self.ratio
        if r - 1 > grid.ng:
            raise ValueError("the fine canvas needs {} ghost nodes".format(r - 1))

        fine = self._wrap_fine(resid, grid)

        contributions = []
        for e in self.entries:
            contributions.append((e, mult*self.restrict_residual(fine, grid, e.nodes)))

        for e, c in contributions:
            e.data[:, :] += c

    def init_rhs(self, grid, phys_bcs):
        """
        the righthand side of the sync projection on the coarse node
        canvas: the register values, zero on outflow boundaries, and
        zero at the nodes that are interior to the fine level
        """

        rhs = grid.node_scratch_array()
        written = np.zeros(rhs.shape, dtype=bool)

        for e in self.entries:
            patch.box_view(rhs, grid, e.nodes)[:, :] = e.data*e.mask
            patch.box_view(written, grid, e.nodes)[:, :] = True

        # a register node on the high side of a periodic domain is the
        # same node as the one on the low side
        ilo, jlo = grid.ilo, grid.jlo
        iend, jend = grid.ihi + 1, grid.jhi + 1
        if self.crse_geom.is_periodic(0):
            hi = written[iend, :]
            rhs.d[ilo, hi] = rhs.d[iend, hi]
        if self.crse_geom.is_periodic(1):
            hi = written[:, jend]
            rhs.d[hi, jlo] = rhs.d[hi, jend]

        if phys_bcs[0] == "outflow":
            rhs.d[ilo, :] = 0.0
        if phys_bcs[1] == "outflow":
            rhs.d[iend, :] = 0.0
        if phys_bcs[2] == "outflow":
            rhs.d[:, jlo] = 0.0
        if phys_bcs[3] == "outflow":
            rhs.d[:, jend] = 0.0

        return rhs

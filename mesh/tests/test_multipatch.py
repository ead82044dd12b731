import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

import mesh.boundary as bnd
import mesh.multipatch as multipatch
from mesh.box import Box, BoxArray


def periodic_bcs(names):
    bc = bnd.BC(xlb="periodic", xrb="periodic", ylb="periodic", yrb="periodic")
    return {n: bc for n in names}


class TestMultiPatch(object):

    def setup_method(self):
        """ this is run before each test """
        self.geom = multipatch.Geometry(multipatch.domain_box(8, 8),
                                        periodic=(True, True))
        self.grids = BoxArray([Box((0, 0), (3, 7)), Box((4, 0), (7, 7))])
        self.sd = multipatch.StateData("test", self.geom, self.grids, 2,
                                       ["a"], periodic_bcs(["a"]))

        # each patch holds the x coordinate of its cells
        for p in self.sd.new:
            p.get_var("a").d[:, :] = p.grid.x2d

    def teardown_method(self):
        """ this is run after each test """
        self.sd = None

    def test_gather(self):
        canvas = self.sd.new.gather("a")
        cg = self.sd.new.canvas_grid

        assert canvas.shape == (12, 12)
        assert_allclose(canvas.v(), cg.x2d[cg.ilo:cg.ihi+1, cg.jlo:cg.jhi+1])

        # the ghost cells of a fresh canvas are untouched
        assert canvas.d[0, 5] == 0.0

    def test_scatter(self):
        canvas = self.sd.new.canvas_scratch()
        canvas.d[:, :] = 3.0

        self.sd.new.scatter(canvas, "a")

        for p in self.sd.new:
            a = p.get_var("a")
            assert_array_equal(a.v(), 3.0)

            # ghost cells were not written
            assert a.d[0, 0] != 3.0

    def test_fill_ghost_cells(self):
        multipatch.fill_ghost_cells([self.sd], 0, 0.0, ["a"], 2)

        p0 = self.sd.new[0]
        a = p0.get_var("a")
        dx = self.geom.dx

        # the first ghost cell to the right of patch 0 is the first
        # cell of patch 1
        assert_allclose(a.d[p0.grid.ihi+1, p0.grid.jlo], 4.5*dx)

        # to the left it wraps around to the end of the domain
        assert_allclose(a.d[p0.grid.ilo-1, p0.grid.jlo], 7.5*dx)

    def test_valid_mask(self):
        mask = self.sd.new.valid_mask()
        assert mask.sum() == 64
        assert not mask[0, :].any()

    def test_reductions(self):
        dx = self.geom.dx
        assert_allclose(self.sd.new.max("a"), 7.5*dx)
        assert_allclose(self.sd.new.min("a"), 0.5*dx)

        mask = np.zeros((12, 12), dtype=bool)
        assert self.sd.new.max("a", mask=mask) == -np.inf
        assert self.sd.new.min("a", mask=mask) == np.inf

        assert_allclose(self.sd.new.sum("a"), 256.0*dx)
        assert_allclose(self.sd.new.norm("a"), np.sqrt(8.0*170.0*dx**4))

    def test_time_weights(self):
        self.sd.set_time(0.0)
        self.sd.swap_time_levels(1.0)

        assert self.sd.t_old == 0.0
        assert self.sd.t_new == 1.0

        assert self.sd.time_weights(1.0) == (0.0, 1.0)
        assert self.sd.time_weights(0.0) == (1.0, 0.0)
        assert_allclose(self.sd.time_weights(0.25), (0.75, 0.25))

    def test_gather_at_time(self):
        self.sd.set_time(0.0)
        self.sd.swap_time_levels(0.5)
        self.sd.old.set_val(1.0, name="a")
        self.sd.new.set_val(3.0, name="a")

        canvas = self.sd.gather_at_time(0.25, "a")
        assert_allclose(canvas.v(), 2.0)


class TestLevels(object):

    def setup_method(self):
        """ this is run before each test """
        self.cgeom = multipatch.Geometry(multipatch.domain_box(8, 8))
        self.fgeom = self.cgeom.refine(2)

        self.cgrids = BoxArray([self.cgeom.domain])
        self.fgrids = BoxArray([Box((4, 4), (11, 11))])

        bcs = {"a": bnd.BC()}
        self.crse = multipatch.MultiPatch(self.cgeom, self.cgrids, 4, ["a"], bcs)
        self.fine = multipatch.MultiPatch(self.fgeom, self.fgrids, 4, ["a"], bcs)

    def teardown_method(self):
        """ this is run after each test """
        self.crse = None
        self.fine = None

    def test_geometry(self):
        assert self.fgeom.dx == 0.5*self.cgeom.dx
        assert self.fgeom.domain == Box((0, 0), (15, 15))
        assert self.fgeom.coarsen(2).domain == self.cgeom.domain

    def test_average_down(self):
        for p in self.fine:
            p.get_var("a").d[:, :] = p.grid.x2d + 2.0*p.grid.y2d

        multipatch.average_down(self.fine, self.crse, 2, ["a"])

        c = self.crse[0]
        a = c.get_var("a")
        g = c.grid

        # the average of a linear function over the children is its
        # value at the parent center
        covered = np.s_[g.ilo+2:g.ilo+6, g.jlo+2:g.jlo+6]
        assert_allclose(a.d[covered], (g.x2d + 2.0*g.y2d)[covered])

        # the rest is left alone
        assert a.d[g.ilo, g.jlo] == 0.0
        assert a.d[g.ilo+6, g.jlo+3] == 0.0

    def test_prolong_cells_conservative(self):
        cg = self.cgeom.grid(4)
        fg = self.fgeom.grid(4)

        crse = cg.scratch_array()
        crse.d[:, :] = np.random.RandomState(12345).rand(cg.qx, cg.qy)

        fine = multipatch.prolong_cells(crse, cg, fg, 2)
        assert fine.shape == (fg.qx, fg.qy)

        f = fine[fg.ilo:fg.ihi+1, fg.jlo:fg.jhi+1]
        avg = f.reshape(8, 2, 8, 2).mean(axis=(1, 3))

        assert_allclose(avg, crse.v(), rtol=1.e-12, atol=1.e-14)

    def test_prolong_cells_linear(self):
        cg = self.cgeom.grid(4)
        fg = self.fgeom.grid(4)

        crse = cg.scratch_array()
        crse.d[:, :] = 3.0*cg.x2d - cg.y2d

        fine = multipatch.prolong_cells(crse, cg, fg, 2)

        # limited slopes reproduce a linear profile away from the edge
        # of the coarse array
        assert_allclose(fine[fg.ilo:fg.ihi+1, fg.jlo:fg.jhi+1],
                        (3.0*fg.x2d - fg.y2d)[fg.ilo:fg.ihi+1, fg.jlo:fg.jhi+1])

    def test_prolong_nodes(self):
        cg = self.cgeom.grid(4)
        fg = self.fgeom.grid(4)

        xc = (np.arange(cg.qx+1) - cg.ng)*cg.dx
        yc = (np.arange(cg.qy+1) - cg.ng)*cg.dy
        crse = 2.0*xc[:, np.newaxis] + 3.0*yc[np.newaxis, :]

        fine = multipatch.prolong_nodes(crse, cg, fg, 2)

        xf = (np.arange(fg.qx+1) - fg.ng)*fg.dx
        yf = (np.arange(fg.qy+1) - fg.ng)*fg.dy

        # bilinear interpolation is exact for a linear function
        assert_allclose(fine, 2.0*xf[:, np.newaxis] + 3.0*yf[np.newaxis, :],
                        atol=1.e-12)

        # and coincident nodes are copied
        assert_array_equal(fine[fg.ng:fg.ng+17:2, fg.ng:fg.ng+17:2],
                           crse[cg.ng:cg.ng+9, cg.ng:cg.ng+9])

    def test_inject_nodes(self):
        crse = multipatch.MultiPatch(self.cgeom, self.cgrids, 4, ["p"],
                                     {"p": bnd.BC()}, centering="node")
        fine = multipatch.MultiPatch(self.fgeom, self.fgrids, 4, ["p"],
                                     {"p": bnd.BC()}, centering="node")

        fine.set_val(5.0, name="p")
        multipatch.inject_nodes(fine, crse, 2, ["p"])

        p = crse[0].get_var("p")
        g = crse[0].grid

        # coarse nodes 2 .. 6 sit on the fine patch
        assert_array_equal(p.d[g.ilo+2:g.ilo+7, g.jlo+2:g.jlo+7], 5.0)
        assert p.d[g.ilo+1, g.jlo+2] == 0.0

    def test_covered_mask(self):
        mask = multipatch.covered_mask(self.cgeom, self.fgrids, 2, 4)
        assert mask.shape == (16, 16)
        assert mask.sum() == 16
        assert mask[6:10, 6:10].all()

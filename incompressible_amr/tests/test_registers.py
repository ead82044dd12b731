import numpy as np
from numpy.testing import assert_allclose, assert_array_equal

import mesh.boundary as bnd
import mesh.multipatch as multipatch
from incompressible_amr.flux_register import FluxRegister
from incompressible_amr.sync_register import SyncRegister, tent_weights
from mesh.box import Box, BoxArray


class TestFluxRegister(object):

    def setup_method(self):
        """ this is run before each test """
        self.cgeom = multipatch.Geometry(multipatch.domain_box(8, 8))
        self.fgeom = self.cgeom.refine(2)
        self.fgrids = BoxArray([Box((4, 4), (11, 11))])

        self.reg = FluxRegister(self.fgrids, self.cgeom, 2, ["a"])

        self.cg = self.cgeom.grid(4)
        self.fg = self.fgeom.grid(4)

    def teardown_method(self):
        """ this is run after each test """
        self.reg = None

    def _flux(self, grid, val):
        f = grid.scratch_array()
        f.d[:, :] = val
        return f

    def test_entries(self):
        # one entry per side of the fine box
        assert len(self.reg.entries) == 4
        shapes = sorted(e.crse_faces.shape for e in self.reg.entries)
        assert shapes == [(1, 4), (1, 4), (4, 1), (4, 1)]

    def test_matching_fluxes(self):
        """the same flux density on both levels leaves nothing to reflux"""

        dt_c = 0.2
        for idir in range(2):
            # the face area of the coarse level is twice the fine one
            self.reg.crse_init([self._flux(self.cg, 2.0)], idir, -dt_c, "a")
            for _ in range(2):
                self.reg.fine_add([self._flux(self.fg, 1.0)], idir, 0.5*dt_c, "a")

        for e in self.reg.entries:
            assert_allclose(e.data["a"], 0.0, atol=1.e-15)

    def test_reflux(self):
        for idir in range(2):
            self.reg.crse_init([self._flux(self.cg, 0.0)], idir, -1.0, "a")
            self.reg.fine_add([self._flux(self.fg, 1.0)], idir, 1.0, "a")

        for e in self.reg.entries:
            assert_array_equal(e.data["a"], 2.0)

        target = multipatch.MultiPatch(self.cgeom, BoxArray([self.cgeom.domain]), 4,
                                       ["a"], {"a": bnd.BC()})
        self.reg.reflux(target, 1.0)

        a = target[0].get_var("a")
        g = target[0].grid
        vol = self.cgeom.volume()

        # the coarse cells just outside of the fine box, low and high sides
        assert_allclose(a.d[g.ilo+1, g.jlo+2:g.jlo+6], -2.0/vol)
        assert_allclose(a.d[g.ilo+6, g.jlo+2:g.jlo+6], 2.0/vol)
        assert_allclose(a.d[g.ilo+2:g.ilo+6, g.jlo+1], -2.0/vol)
        assert_allclose(a.d[g.ilo+2:g.ilo+6, g.jlo+6], 2.0/vol)

        # corners and the covered cells are not touched
        assert a.d[g.ilo+1, g.jlo+1] == 0.0
        assert a.d[g.ilo+3, g.jlo+3] == 0.0

        # the same thing on a canvas
        canvas = self.cg.scratch_array()
        self.reg.reflux_canvas(canvas, self.cg, 1.0, "a")
        assert_allclose(canvas.v(), a.v())

    def test_physical_boundary(self):
        """faces on a wall carry no mismatch and get no entry"""
        reg = FluxRegister(BoxArray([Box((0, 4), (7, 11))]), self.cgeom, 2, ["a"])
        assert len(reg.entries) == 3

        geom = multipatch.Geometry(multipatch.domain_box(8, 8), periodic=(True, True))
        reg = FluxRegister(BoxArray([Box((0, 4), (7, 11))]), geom, 2, ["a"])
        assert len(reg.entries) == 4


class TestSyncRegister(object):

    def setup_method(self):
        """ this is run before each test """
        self.cgeom = multipatch.Geometry(multipatch.domain_box(8, 8))
        self.fgeom = self.cgeom.refine(2)

        self.cg = self.cgeom.grid(4)
        self.fg = self.fgeom.grid(4)

    def teardown_method(self):
        """ this is run after each test """
        self.cgeom = None

    def test_tent_weights(self):
        assert_allclose(tent_weights(2), [0.5, 1.0, 0.5])
        assert_allclose(tent_weights(4).sum(), 4.0)

    def test_mask(self):
        # two fine boxes that touch: the nodes they share inside the
        # fine region are not on the coarse/fine interface
        reg = SyncRegister(BoxArray([Box((4, 4), (7, 11)), Box((8, 4), (11, 11))]),
                           self.cgeom, 2)

        e = [e for e in reg.entries if e.n == 0 and e.idir == 0 and e.iside == 1][0]
        assert e.nodes == Box((4, 2), (4, 6), (1, 1))
        assert_array_equal(e.mask[0, :], [1.0, 0.0, 0.0, 0.0, 1.0])

        e = [e for e in reg.entries if e.n == 0 and e.idir == 0 and e.iside == 0][0]
        assert_array_equal(e.mask, 1.0)

    def test_uniform(self):
        reg = SyncRegister(BoxArray([Box((4, 4), (11, 11))]), self.cgeom, 2)

        crse = self.cg.node_scratch_array()
        crse.d[:, :] = 2.0
        reg.crse_init(crse, self.cg, mult=-1.0)

        fine = self.fg.node_scratch_array()
        fine.d[:, :] = 1.0
        reg.fine_add(fine, self.fg)

        # the tent weights of a uniform field sum to r^2
        for e in reg.entries:
            assert_allclose(e.data, -1.0)

        rhs = reg.init_rhs(self.cg, ["slipwall"]*4)
        i0, j0 = self.cg.local_index(2, 2)

        assert_allclose(rhs.d[i0:i0+5, j0], -1.0)
        assert_allclose(rhs.d[i0+1:i0+4, j0+1:j0+4], 0.0)
        assert rhs.d.sum() == -16.0

    def test_comp_add(self):
        reg = SyncRegister(BoxArray([Box((4, 4), (11, 11))]), self.cgeom, 2)

        fine = self.fg.node_scratch_array()
        fine.d[:, :] = 1.0

        # the residual under a finer level, well inside of the fine
        # level, does not reach the register
        reg.comp_add(fine, self.fg, pgrids=BoxArray([Box((6, 6), (9, 9))]))

        for e in reg.entries:
            assert_allclose(e.data, 1.0)

        assert_array_equal(fine.d, 1.0)

    def test_init_rhs_idempotent(self):
        reg = SyncRegister(BoxArray([Box((4, 4), (11, 11))]), self.cgeom, 2)

        crse = self.cg.node_scratch_array()
        crse.d[:, :] = np.random.RandomState(2).rand(*crse.d.shape)
        reg.crse_init(crse, self.cg, mult=-1.0)

        rhs1 = reg.init_rhs(self.cg, ["slipwall"]*4)
        rhs2 = reg.init_rhs(self.cg, ["slipwall"]*4)

        assert_array_equal(rhs1.d, rhs2.d)

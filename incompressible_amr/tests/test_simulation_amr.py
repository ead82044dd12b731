import os

import numpy as np
from numpy.testing import assert_allclose
import pytest

import incompressible_amr.elliptic as elliptic
import incompressible_amr.projection as projection
import incompressible_amr.simulation as sim
import incompressible_amr.sync as sync
from mesh.box import Box
from simulation_null import geometry_setup

pyro_home = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def setup_rp(rp):
    rp.params["driver.verbose"] = 0
    rp.params["mesh.nx"] = 16
    rp.params["mesh.ny"] = 16
    rp.params["amr.max_level"] = 1
    rp.params["amr.max_grid_size"] = 16
    return rp


def test_hierarchy(rp):
    rp = setup_rp(rp)
    rp.params["amr.max_level"] = 2
    rp.params["amr.max_grid_size"] = 8

    levels = sim.hierarchy_setup(rp, geometry_setup(rp))

    assert len(levels) == 3

    geom, grids = levels[0]
    assert len(grids) == 4
    assert geom.domain == Box((0, 0), (15, 15))

    geom, grids = levels[1]
    assert geom.domain == Box((0, 0), (31, 31))
    assert grids.minimal_box() == Box((8, 8), (23, 23))

    geom, grids = levels[2]
    assert grids.minimal_box() == Box((24, 24), (39, 39))


@pytest.mark.parametrize("key, value", [("amr.ref_ratio", 1),
                                        ("amr.max_grid_size", 15),
                                        ("amr.refine_xmax", 0.25)])
def test_hierarchy_invalid(rp, key, value):
    rp = setup_rp(rp)
    rp.params[key] = value

    with pytest.raises(SystemExit):
        sim.hierarchy_setup(rp, geometry_setup(rp))


class TestSimulation(object):

    @pytest.fixture(autouse=True)
    def setup_sim(self, rp):
        """ this is run before each test """
        self.sim = sim.Simulation("incompressible_amr", "converge", setup_rp(rp))
        self.sim.initialize()
        yield
        self.sim = None

    def test_initialize(self):
        assert len(self.sim.levels) == 2

        fine = self.sim.levels[1]
        assert fine.coarser is self.sim.levels[0]
        assert self.sim.levels[0].finer is fine
        assert self.sim.ratio(1) == 2

        d = np.asarray(fine.derive("density"))
        assert_allclose(d[fine.valid_mask()], 1.0)

        # the middle of level 0 is covered by level 1
        assert self.sim.levels[0].uncovered_mask().sum() == 16*16 - 8*8
        assert fine.uncovered_mask().sum() == 16*16

        assert_allclose(self.sim.max_val("density"), 1.0)

    def test_preevolve(self):
        self.sim.preevolve()

        assert self.sim.dt > 0.0

        for lev in self.sim.levels:
            p = np.asarray(lev.derive("avg_pressure"))
            assert np.all(np.isfinite(p[lev.valid_mask()]))

    def test_evolve(self):
        self.sim.preevolve()
        dt = self.sim.dt

        self.sim.evolve()

        assert self.sim.n == 1
        assert_allclose(self.sim.t, dt)

        # a uniform density stays uniform in a divergence-free flow
        for lev in self.sim.levels:
            d = np.asarray(lev.derive("density"))
            assert_allclose(d[lev.valid_mask()], 1.0, atol=1.e-6)

        q = self.sim.sum_integrated_quantities()
        assert set(q.keys()) == {"mass", "kinetic_energy", "max_vorticity"}
        assert_allclose(q["mass"], 1.0, rtol=1.e-6)
        assert q["kinetic_energy"] > 0.0

    def test_comp_dt_test(self):
        lev = self.sim.levels[0]

        # no flow lets the step grow by change_max
        lev.state.old.set_val(0.0, name="x-velocity")
        lev.state.old.set_val(0.0, name="y-velocity")
        assert_allclose(lev.comp_dt_test(0.1), 0.1*1.1)

        # otherwise the CFL number of the old velocities bounds it
        lev.state.old.set_val(2.0, name="x-velocity")
        lev.state.old.set_val(1.0, name="y-velocity")
        cflmax = 0.1*2.0*16
        assert_allclose(lev.comp_dt_test(0.1), 0.1*0.5/cflmax)

    def test_est_time_step(self):
        for lev in self.sim.levels:
            lev.state.new.set_val(2.0, name="x-velocity")
            lev.state.new.set_val(1.0, name="y-velocity")
            lev.press.new.set_val(0.0)

        crse, fine = self.sim.levels
        assert_allclose(crse.est_time_step(), 0.5*(1.0/16)/2.0)
        assert_allclose(fine.est_time_step(), 0.5*(1.0/32)/2.0)

    def test_nonfinite_scalar_aborts(self):
        lev = self.sim.levels[0]

        lev.aofs = []
        for p in lev.state.new:
            a = p.grid.scratch_array()
            a.d[:, :] = np.nan
            lev.aofs.append({"density": a})

        with pytest.raises(SystemExit, match="non-finite density on level 0"):
            lev.scalar_update(0.1, ["density"])

    def test_reflux_zeroes_covered(self):
        self.sim.preevolve()

        crse, fine = self.sim.levels
        t = self.sim.t
        dt = self.sim.dt

        crse.advance(t, dt, 1, 1)
        for k in range(1, 3):
            fine.advance(t + (k-1)*0.5*dt, 0.5*dt, k, 2)

        sync.reflux(crse)

        covered = crse.covered_mask()
        assert covered.sum() == 64

        for mp in [crse.Vsync, crse.Ssync]:
            for name in mp.names:
                c = np.asarray(mp.gather(name))
                assert np.all(c[covered] == 0.0)


def test_single_level(rp):
    """one step on a single box keeps the velocity divergence free and the density constant"""

    rp = setup_rp(rp)
    rp.params["amr.max_level"] = 0

    s = sim.Simulation("incompressible_amr", "converge", rp)
    s.initialize()
    s.preevolve()
    s.evolve()

    lev = s.levels[0]
    assert len(lev.grids) == 1

    lev.fill_ghosts("state", s.t)
    p = lev.state.new[0]
    g = p.grid

    u = p.get_var("x-velocity")
    v = p.get_var("y-velocity")

    valid = np.zeros((g.qx, g.qy), dtype=bool)
    valid[g.ilo:g.ihi+1, g.jlo:g.jhi+1] = True

    cw = elliptic.cell_weights(g, valid, (True, True))
    unknown = elliptic.unknown_nodes(g, cw, ["periodic"]*4, (True, True))

    div = projection.nodal_divergence(g, u, v, cw)
    assert np.abs(div[unknown]).max() < 1.e-6

    assert_allclose(p.get_var("density").v(), 1.0, atol=1.e-8)


@pytest.mark.parametrize("do_mom_diff", [0, 1])
def test_closed_box_two_levels(rp, do_mom_diff):
    """a heavy-light interface across the coarse-fine boundary of a closed box"""

    rp = setup_rp(rp)
    rp.load_params(os.path.join(pyro_home, "incompressible_amr", "problems",
                                "_bubble.defaults"))
    for side in ["xl", "xr", "yl", "yr"]:
        rp.params["mesh.{}boundary".format(side)] = "slipwall"
    rp.params["ns.gravity"] = -1.0
    rp.params["ns.visc_coef"] = 1.e-3
    rp.params["ns.do_mom_diff"] = do_mom_diff

    s = sim.Simulation("incompressible_amr", "bubble", rp)
    s.initialize()
    s.preevolve()

    mass0 = s.sum_integrated_quantities()["mass"]

    for _ in range(2):
        s.evolve()

    assert s.n == 2

    for lev in s.levels:
        valid = lev.valid_mask()
        for name in ["x-velocity", "y-velocity", "density"]:
            d = np.asarray(lev.derive(name))
            assert np.all(np.isfinite(d[valid]))

    # the walls have no flux, and refluxing and the MAC sync keep the
    # composite mass
    assert_allclose(s.sum_integrated_quantities()["mass"], mass0, rtol=1.e-9)


def test_conservative_tracer_sync(rp):
    """a conservative tracer proportional to the density stays proportional through the sync diffusion"""

    rp = setup_rp(rp)
    rp.params["ns.tracer_advection"] = "conservative"
    rp.params["ns.scal_diff_coef"] = 0.05

    s = sim.Simulation("incompressible_amr", "converge", rp)
    s.initialize()

    for lev in s.levels:
        for mp in [lev.state.old, lev.state.new]:
            for p in mp:
                p.get_var("tracer").d[:, :] = 0.5*p.get_var("density").d

    s.preevolve()
    s.evolve()

    for lev in s.levels:
        valid = lev.valid_mask()
        d = np.asarray(lev.derive("density"))
        t = np.asarray(lev.derive("tracer"))
        assert_allclose(t[valid], 0.5*d[valid], atol=1.e-8)

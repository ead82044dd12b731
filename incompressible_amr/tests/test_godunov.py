import numpy as np
from numpy.testing import assert_allclose, assert_array_equal
import pytest

import incompressible_amr.godunov as godunov
import incompressible_amr.params as ns_params
import mesh.boundary as bnd
import mesh.patch as patch


def constant(myg, val):
    a = myg.scratch_array()
    a.d[:, :] = val
    return a


class TestRiemann(object):

    def setup_method(self):
        """ this is run before each test """
        self.g = patch.Grid2d(4, 1, ng=1)

    def teardown_method(self):
        """ this is run after each test """
        self.g = None

    def _states(self, left, right):
        q_l = self.g.scratch_array()
        q_r = self.g.scratch_array()
        q_l.d[:, 1] = left
        q_r.d[:, 1] = right
        return q_l, q_r

    def test_riemann(self):
        q_l, q_r = self._states([1.0, -1.0, -1.0, 1.0, 0.0, 0.0],
                                [2.0, 1.0, -2.0, -2.0, 0.0, 0.0])

        s = godunov.riemann(self.g, q_l, q_r)

        # right-moving, rarefaction, left-moving, left-moving shock
        assert_array_equal(s.d[:4, 1], [1.0, 0.0, -2.0, -2.0])

    def test_upwind(self):
        q_l, q_r = self._states([1.0, 1.0, 1.0, 1.0, 0.0, 0.0],
                                [3.0, 3.0, 3.0, 3.0, 0.0, 0.0])
        s = self.g.scratch_array()
        s.d[:4, 1] = [1.0, -1.0, 0.0, 1.0]

        q = godunov.upwind(self.g, q_l, q_r, s)
        assert_array_equal(q.d[:4, 1], [1.0, 3.0, 2.0, 1.0])

        # a sign change of the normal velocity across the face is a
        # stagnation point
        u_l, u_r = self._states([1.0, 1.0, 1.0, -1.0, 0.0, 0.0],
                                [1.0, 1.0, 1.0, 1.0, 0.0, 0.0])
        q = godunov.upwind(self.g, q_l, q_r, s, u_l=u_l, u_r=u_r)
        assert_array_equal(q.d[:4, 1], [1.0, 3.0, 2.0, 2.0])

    def test_floor_small(self):
        q = self.g.scratch_array()
        q.d[:, :] = 1.e-25
        q.d[0, 0] = 1.0

        f = godunov.floor_small(q)
        assert f.d.sum() == 1.0
        assert q.d[1, 1] == 1.e-25


@pytest.mark.parametrize("scheme", ["plm", "ppm"])
@pytest.mark.parametrize("limiter", [0, 1, 2])
def test_uniform_flow(rp, scheme, limiter):
    """a uniform state in a uniform flow stays uniform on the faces"""

    rp.params["godunov.scheme"] = scheme
    rp.params["godunov.limiter"] = limiter
    params = ns_params.make_params(rp)

    sch = godunov.make_scheme(params)
    assert sch.name == scheme

    ng = godunov.hypgrow(scheme, limiter)
    myg = patch.Grid2d(8, 8, ng=ng)
    bc = bnd.BC(xlb="periodic", xrb="periodic", ylb="periodic", yrb="periodic")

    u = constant(myg, 1.0)
    v = constant(myg, 0.5)
    q = constant(myg, 2.0)

    dt = 0.05

    u_MAC, v_MAC = godunov.extrap_vel_to_faces(myg, dt, sch, u, v, None, None, bc)

    assert_allclose(u_MAC.v(buf=1), 1.0)
    assert_allclose(v_MAC.v(buf=1), 0.5)

    for conservative in [False, True]:
        q_x, q_y = godunov.edge_states(myg, dt, sch, q, u, v, u_MAC, v_MAC,
                                       None, bc, conservative=conservative)

        assert_allclose(q_x.v(buf=(0, 1, 0, 0)), 2.0)
        assert_allclose(q_y.v(buf=(0, 0, 0, 1)), 2.0)


def test_forcing(rp):
    """a constant force moves every face state by dt/2 of it"""

    params = ns_params.make_params(rp)
    sch = godunov.make_scheme(params)

    myg = patch.Grid2d(8, 8, ng=4)
    bc = bnd.BC(xlb="periodic", xrb="periodic", ylb="periodic", yrb="periodic")

    u = constant(myg, 1.0)
    v = constant(myg, 1.0)
    q = constant(myg, 2.0)
    f = constant(myg, 3.0)

    dt = 0.1
    for trans in [False, True]:
        q_x, q_y = godunov.edge_states(myg, dt, sch, q, u, v, u, v, f, bc,
                                       use_forces_in_trans=trans)
        assert_allclose(q_x.v(), 2.0 + 0.5*dt*3.0)
        assert_allclose(q_y.v(), 2.0 + 0.5*dt*3.0)


def test_wall_bcs():
    myg = patch.Grid2d(4, 4, ng=4)
    bc = bnd.BC(xlb="slipwall", xrb="slipwall", ylb="noslipwall", yrb="outflow")

    q_l = constant(myg, 1.0)
    q_r = constant(myg, 2.0)

    q = constant(myg, 5.0)
    godunov.apply_edge_bcs(myg, bc, q_l, q_r, q, 0, "normal")
    assert_array_equal(q.d[myg.ilo, myg.jlo:myg.jhi+1], 0.0)
    assert_array_equal(q.d[myg.ihi+1, myg.jlo:myg.jhi+1], 0.0)
    assert q.d[myg.ilo+1, myg.jlo] == 5.0

    # the tangential velocity only vanishes at a no-slip wall; at the
    # outflow boundary we take the state from inside
    q = constant(myg, 5.0)
    godunov.apply_edge_bcs(myg, bc, q_l, q_r, q, 1, "tangential")
    assert_array_equal(q.d[myg.ilo:myg.ihi+1, myg.jlo], 0.0)
    assert_array_equal(q.d[myg.ilo:myg.ihi+1, myg.jhi+1], 1.0)

    # a scalar at a slip wall takes the state from inside
    q = constant(myg, 5.0)
    godunov.apply_edge_bcs(myg, bc, q_l, q_r, q, 0, "scalar")
    assert_array_equal(q.d[myg.ilo, myg.jlo:myg.jhi+1], 2.0)
    assert_array_equal(q.d[myg.ihi+1, myg.jlo:myg.jhi+1], 1.0)


def test_invalid_scheme(rp):
    params = ns_params.make_params(rp)._replace(scheme="weno")
    with pytest.raises(SystemExit):
        godunov.make_scheme(params)


def test_estdt():
    myg = patch.Grid2d(8, 8, ng=4)
    u = constant(myg, 2.0)
    v = constant(myg, -1.0)

    assert_allclose(godunov.estdt(myg, u, v, None, None, 0.5), 0.5*myg.dx/2.0)

    # a strong force limits the step
    tf = constant(myg, 1.e4)
    assert_allclose(godunov.estdt(myg, u, v, tf, tf, 1.0), np.sqrt(2.0*myg.dx/1.e4))

    # no flow and no force
    zero = constant(myg, 0.0)
    assert godunov.estdt(myg, zero, zero, None, None, 0.5) == 0.5*1.e20


def test_umac_cfl():
    myg = patch.Grid2d(8, 8, ng=4)
    u_MAC = constant(myg, 2.0)
    v_MAC = constant(myg, 0.0)

    assert_allclose(godunov.test_umac_rho(myg, u_MAC, v_MAC, 0.1), 0.1*2.0/myg.dx)


def test_force_sums():
    myg = patch.Grid2d(4, 4, ng=4)

    tf = constant(myg, 2.0)
    gp = constant(myg, 1.0)
    visc = constant(myg, 0.5)
    rho = constant(myg, 2.0)

    godunov.sum_tf_gp_visc(tf, gp, visc, rho)
    assert_allclose(tf.v(buf=2), 0.75)

    s = constant(myg, 3.0)
    divu = constant(myg, 0.1)

    tf = constant(myg, 2.0)
    godunov.sum_tf_divu_visc(tf, divu, visc, rho, s, True)
    assert_allclose(tf.v(buf=2), 2.5 - 0.3)

    tf = constant(myg, 2.0)
    godunov.sum_tf_divu_visc(tf, divu, visc, rho, s, False)
    assert_allclose(tf.v(buf=2), 1.25)

    rho.d[myg.ilo, myg.jlo] = 0.0
    with pytest.raises(SystemExit):
        godunov.sum_tf_gp_visc(tf, gp, visc, rho)


def test_form_queries():
    forms = ["nonconservative", "nonconservative", "conservative",
             "nonconservative", "conservative"]

    assert godunov.are_any(forms, "conservative", ns_params.FIRST_TRACER, 2)
    assert not godunov.are_any(forms, "conservative", ns_params.FIRST_TRACER, 1)

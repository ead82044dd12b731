import math

import numpy as np
from numpy.testing import assert_allclose

import incompressible_amr.advection as advection
import incompressible_amr.godunov as godunov
import incompressible_amr.params as ns_params
import mesh.boundary as bnd
import mesh.patch as patch


def constant(myg, val):
    a = myg.scratch_array()
    a.d[:, :] = val
    return a


def test_fluxes_and_aofs():
    myg = patch.Grid2d(8, 4, ng=4, ymax=0.5)

    u_MAC = constant(myg, 2.0)
    v_MAC = constant(myg, 0.0)

    q_x = myg.scratch_array()
    q_x.d[:, :] = np.random.RandomState(3).rand(myg.qx)[:, np.newaxis]
    q_y = constant(myg, 1.0)

    flux_x, flux_y = advection.compute_fluxes(myg, u_MAC, v_MAC, q_x, q_y)

    assert_allclose(flux_x.v(buf=(0, 1, 0, 0)), 2.0*q_x.v(buf=(0, 1, 0, 0))*myg.dy)
    assert_allclose(flux_y.v(buf=(0, 0, 0, 1)), 0.0)

    # in a 1-d uniform flow the two forms of the operator agree
    cons = advection.compute_aofs(myg, u_MAC, v_MAC, q_x, q_y, conservative=True)
    noncons = advection.compute_aofs(myg, u_MAC, v_MAC, q_x, q_y, conservative=False)

    assert_allclose(cons.v(), 2.0*(q_x.ip(1) - q_x.v())/myg.dx)
    assert_allclose(cons.v(), noncons.v(), rtol=1.e-12, atol=1.e-12)


def test_advect_state(rp):
    params = ns_params.make_params(rp)
    sch = godunov.make_scheme(params)

    myg = patch.Grid2d(16, 16, ng=4)
    bc = bnd.BC(xlb="periodic", xrb="periodic", ylb="periodic", yrb="periodic")

    u = constant(myg, 1.0)
    v = constant(myg, 0.5)

    q = myg.scratch_array()
    q.d[:, :] = np.sin(2.0*math.pi*myg.x2d)*np.cos(2.0*math.pi*myg.y2d)

    dt = 0.01

    results = []
    for conservative in [True, False]:
        results.append(advection.advect_state(myg, dt, sch, q, u, v, u, v, None, bc,
                                              conservative=conservative))

    # in a uniform flow the conservative and advective forms are the same
    assert_allclose(results[0][0].v(), results[1][0].v(), rtol=1.e-12, atol=1.e-12)

    # the advected profile keeps its mean
    assert abs(np.sum(results[0][0].v())) < 1.e-10


def test_advect_scalars(rp):
    params = ns_params.make_params(rp)
    sch = godunov.make_scheme(params)

    myg = patch.Grid2d(8, 8, ng=4)
    bc = bnd.BC(xlb="periodic", xrb="periodic", ylb="periodic", yrb="periodic")

    my_data = patch.CellCenterData2d(myg)
    for name in params.state_names:
        my_data.register_var(name, bc)
    my_data.create()

    my_data.get_var("x-velocity").d[:, :] = 1.0
    my_data.get_var("density").d[:, :] = 1.0
    my_data.get_var("tracer").d[:, :] = 3.0

    u_MAC = constant(myg, 1.0)
    v_MAC = constant(myg, 0.0)

    names = list(params.state_names[ns_params.DENS:])
    forms = list(params.advection_forms[ns_params.DENS:])

    results = advection.advect_scalars(myg, 0.05, sch, my_data, names, forms,
                                       u_MAC, v_MAC, {})

    assert sorted(results.keys()) == ["density", "tracer"]

    aofs, flux_x, _, q_x, _ = results["tracer"]
    assert_allclose(aofs.v(), 0.0, atol=1.e-14)
    assert_allclose(q_x.v(), 3.0)
    assert_allclose(flux_x.v(), 3.0*myg.dy)

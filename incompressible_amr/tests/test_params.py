import pytest

import incompressible_amr.params as ns_params


def test_defaults(rp):
    p = ns_params.make_params(rp)

    assert p.scheme == "plm"
    assert p.be_cn_theta == 0.5
    assert p.state_names == ("x-velocity", "y-velocity", "density", "tracer")
    assert p.advection_forms == ("nonconservative", "nonconservative",
                                 "conservative", "nonconservative")


def test_tracer_names(rp):
    rp.params["ns.num_tracers"] = 3
    rp.params["ns.tracer_advection"] = "conservative"

    p = ns_params.make_params(rp)

    assert p.state_names[ns_params.FIRST_TRACER:] == ("tracer-0", "tracer-1", "tracer-2")
    assert p.advection_forms[ns_params.DENS:] == ("conservative",)*4

    rp.params["ns.num_tracers"] = 0
    assert ns_params.make_params(rp).state_names == ("x-velocity", "y-velocity", "density")


@pytest.mark.parametrize("key, value", [("ns.density_advection", "nonconservative"),
                                        ("ns.tracer_advection", "upwind"),
                                        ("godunov.scheme", "weno"),
                                        ("godunov.limiter", 3),
                                        ("ns.visc_coef", -1.0),
                                        ("ns.be_cn_theta", 0.25),
                                        ("ns.num_tracers", -1)])
def test_invalid(rp, key, value):
    rp.params[key] = value
    with pytest.raises(SystemExit):
        ns_params.make_params(rp)

import importlib
import os

import numpy as np
from numpy.testing import assert_allclose
import pytest

import mesh.boundary as bnd
import mesh.patch as patch
from util import runparams

pyro_home = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def load_rp(problem_name):
    rp = runparams.RuntimeParameters()
    rp.load_params(os.path.join(pyro_home, "_defaults"))
    rp.load_params(os.path.join(pyro_home, "incompressible_amr", "_defaults"))
    rp.load_params(os.path.join(pyro_home, "incompressible_amr", "problems",
                                "_{}.defaults".format(problem_name)))
    return rp


def make_data():
    myg = patch.Grid2d(16, 16, ng=4)
    bc = bnd.BC(xlb="periodic", xrb="periodic", ylb="periodic", yrb="periodic")

    my_data = patch.CellCenterData2d(myg)
    for name in ["x-velocity", "y-velocity", "density", "tracer"]:
        my_data.register_var(name, bc)
    my_data.create()
    return my_data


@pytest.mark.parametrize("problem_name", ["converge", "shear", "bubble"])
def test_init_data(problem_name):
    rp = load_rp(problem_name)
    problem = importlib.import_module("incompressible_amr.problems.{}".format(problem_name))

    my_data = make_data()
    problem.init_data(my_data, rp)

    for name in my_data.names:
        assert np.all(np.isfinite(my_data.get_var(name).d))

    assert my_data.min("density") > 0.0


def test_bubble():
    rp = load_rp("bubble")
    my_data = make_data()

    import incompressible_amr.problems.bubble as bubble
    bubble.init_data(my_data, rp)

    # the bubble center is light, the far corner is not
    myg = my_data.grid
    dens = my_data.get_var("density")
    i = np.argmin(np.abs(myg.x - 0.5))
    j = np.argmin(np.abs(myg.y - 0.3))

    assert dens.d[i, j] < 0.6
    assert_allclose(dens.d[myg.ihi, myg.jhi], 1.0)

    tracer = my_data.get_var("tracer")
    assert tracer.d[i, j] > 0.9

    rp.params["bubble.dens_ratio"] = 0.0
    with pytest.raises(SystemExit):
        bubble.init_data(make_data(), rp)


def test_unit_square():
    rp = load_rp("shear")
    rp.params["mesh.xmax"] = 2.0

    import incompressible_amr.problems.shear as shear
    with pytest.raises(SystemExit):
        shear.init_data(make_data(), rp)

import os

import pytest

from util import runparams

pyro_home = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture
def rp():
    """the driver, solver and converge problem defaults"""
    params = runparams.RuntimeParameters()
    params.load_params(os.path.join(pyro_home, "_defaults"))
    params.load_params(os.path.join(pyro_home, "incompressible_amr", "_defaults"))
    params.load_params(os.path.join(pyro_home, "incompressible_amr", "problems",
                                    "_converge.defaults"))
    return params

import numpy as np
from numpy.testing import assert_allclose

import incompressible_amr.derives as derives
import mesh.boundary as bnd
import mesh.patch as patch


class TestDerives(object):

    def setup_method(self):
        """ this is run before each test """
        self.g = patch.Grid2d(8, 8, ng=4)
        bc = bnd.BC(xlb="periodic", xrb="periodic", ylb="periodic", yrb="periodic")

        self.state = patch.CellCenterData2d(self.g)
        for name in ["x-velocity", "y-velocity", "density"]:
            self.state.register_var(name, bc)
        self.state.create()
        self.state.add_derived(derives.derive_primitives)

        self.press = patch.NodeData2d(self.g)
        self.press.register_var("pressure", bc)
        self.press.create()
        self.press.add_derived(derives.derive_pressure)

        # solid body rotation about the center of the domain
        self.omega = 3.0
        u = self.state.get_var("x-velocity")
        v = self.state.get_var("y-velocity")
        u.d[:, :] = -self.omega*(self.g.y2d - 0.5)
        v.d[:, :] = self.omega*(self.g.x2d - 0.5)

        rho = self.state.get_var("density")
        rho.d[:, :] = 2.0

    def teardown_method(self):
        """ this is run after each test """
        self.state = None
        self.press = None

    def test_vorticity(self):
        w = self.state.get_var("vorticity")
        assert_allclose(w.v(), 2.0*self.omega)

        self.state.get_var("x-velocity").d[:, :] *= -1.0
        self.state.get_var("y-velocity").d[:, :] *= -1.0
        w = self.state.get_var("mag_vort")
        assert_allclose(w.v(), 2.0*self.omega)

    def test_divu(self):
        assert_allclose(self.state.get_var("divu").v(), 0.0, atol=1.e-12)

    def test_velocity_and_energy(self):
        magvel, ke = derives.derive_primitives(self.state, ["mag_vel", "kinetic_energy"])

        r2 = (self.g.x2d - 0.5)**2 + (self.g.y2d - 0.5)**2
        assert_allclose(magvel.d, self.omega*np.sqrt(r2))
        assert_allclose(ke.d, 0.5*2.0*self.omega**2*r2)

    def test_unknown(self):
        assert derives.derive_primitives(self.state, "pressure") is None
        assert derives.derive_pressure(self.press, "vorticity") is None

    def test_pressure(self):
        g = self.g
        xn = (np.arange(g.qx+1) - g.ng)*g.dx
        yn = (np.arange(g.qy+1) - g.ng)*g.dy

        p = self.press.get_var("pressure")
        p.d[:, :] = 3.0*xn[:, np.newaxis] + 2.0*yn[np.newaxis, :]

        assert_allclose(self.press.get_var("gradpx").d, 3.0)
        assert_allclose(self.press.get_var("gradpy").d, 2.0)

        # the corner average of a linear function is its center value
        avg = self.press.get_var("avg_pressure")
        assert_allclose(avg.d, 3.0*g.x2d + 2.0*g.y2d)

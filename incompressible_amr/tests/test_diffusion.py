import numpy as np
from numpy.testing import assert_allclose
import pytest

import incompressible_amr.diffusion as diffusion
import incompressible_amr.params as ns_params
import mesh.boundary as bnd
import mesh.patch as patch


def test_coefficients(rp):
    rp.params["ns.visc_coef"] = 0.01
    rp.params["ns.scal_diff_coef"] = 0.002
    p = ns_params.make_params(rp)

    assert diffusion.calc_diffusivity(p, "density") == 0.0
    assert diffusion.calc_diffusivity(p, "x-velocity") == 0.01
    assert diffusion.calc_diffusivity(p, "tracer") == 0.002

    assert diffusion.is_diffusive(p, "y-velocity")
    assert not diffusion.is_diffusive(p, "density")

    with pytest.raises(SystemExit):
        diffusion.calc_viscosity(p._replace(visc_coef=-1.0))


def test_diffusion_alpha(rp):
    p = ns_params.make_params(rp)
    rho = 2.0

    assert diffusion.diffusion_alpha(p, "x-velocity", rho) == rho
    assert diffusion.diffusion_alpha(p, "density", rho) == 1.0
    assert diffusion.diffusion_alpha(p, "tracer", rho) == rho

    rp.params["ns.tracer_advection"] = "conservative"
    p = ns_params.make_params(rp)
    assert diffusion.diffusion_alpha(p, "tracer", rho) == 1.0


def test_visc_terms():
    myg = patch.Grid2d(8, 8, ng=4)

    q = myg.scratch_array()
    q.d[:, :] = myg.x2d**2 + myg.y2d**2

    # the 5-point Laplacian is exact for a quadratic
    visc = diffusion.get_visc_terms(q, 0.1)
    assert_allclose(visc.v(buf=2), 0.4)
    assert np.all(visc.d[0, :] == 0.0)

    visc = diffusion.get_visc_terms(q, 0.0)
    assert np.all(visc.d == 0.0)


def test_viscous_fluxes():
    myg = patch.Grid2d(8, 8, ng=4)

    s = myg.scratch_array()
    s.d[:, :] = myg.x2d

    for theta in [0.5, 1.0]:
        flux_x, flux_y = diffusion.viscous_fluxes(s, s, 0.3, theta)
        assert_allclose(flux_x.v(buf=(0, 1, 0, 0)), -0.3*myg.dy)
        assert_allclose(flux_y.v(buf=(0, 0, 0, 1)), 0.0, atol=1.e-14)


def test_center_to_edge_plain():
    myg = patch.Grid2d(8, 8, ng=4)

    c = myg.scratch_array()
    c.d[:, :] = myg.x2d + 2.0*myg.y2d

    cx, cy = diffusion.center_to_edge_plain(myg, c)

    # a linear function averages to its value on the face
    assert_allclose(cx.v(), myg.x2d[myg.ilo:myg.ihi+1, myg.jlo:myg.jhi+1] - 0.5*myg.dx +
                    2.0*myg.y2d[myg.ilo:myg.ihi+1, myg.jlo:myg.jhi+1])
    assert_allclose(cy.v(), myg.x2d[myg.ilo:myg.ihi+1, myg.jlo:myg.jhi+1] +
                    2.0*(myg.y2d[myg.ilo:myg.ihi+1, myg.jlo:myg.jhi+1] - 0.5*myg.dy))


class TestDiffuse(object):

    def setup_method(self):
        """ this is run before each test """
        self.g = patch.Grid2d(16, 16, ng=4)
        self.bc = bnd.BC(xlb="periodic", xrb="periodic",
                         ylb="periodic", yrb="periodic")

        # a discrete eigenfunction of the periodic Laplacian
        k = 2.0*np.pi
        self.s = self.g.scratch_array()
        self.s.d[:, :] = np.sin(k*self.g.x2d)
        self.lam = -(2.0 - 2.0*np.cos(k*self.g.dx))/self.g.dx**2

        self.coef = 1.0
        self.dt = 0.01
        self.theta = 0.5

        c = self.theta*self.dt*self.coef
        self.rhs = self.g.scratch_array()
        self.rhs.d[:, :] = (1.0 - c*self.lam)*self.s.d

    def teardown_method(self):
        """ this is run after each test """
        self.g = None

    def test_full_level(self):
        s, converged, residual = diffusion.diffuse(self.g, self.bc, self.rhs.d, 1.0,
                                                   self.coef, self.dt, self.theta)

        assert converged
        assert_allclose(s.v(), self.s.v(), atol=1.e-7)

    def test_masked(self):
        g = self.g

        mask = np.zeros((g.qx, g.qy), dtype=bool)
        mask[g.ilo:g.ihi+1, g.jlo:g.jhi+1] = True
        mask[g.ilo+4:g.ilo+8, g.jlo+4:g.jlo+8] = False

        s, converged, residual = diffusion.diffuse(g, self.bc, self.rhs.d, 1.0,
                                                   self.coef, self.dt, self.theta,
                                                   mask=mask, bndry=self.s.d,
                                                   rtol=1.e-12)

        assert converged
        assert_allclose(s.v(), self.s.v(), atol=1.e-8)

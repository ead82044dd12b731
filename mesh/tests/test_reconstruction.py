import numpy as np
from numpy.testing import assert_allclose
import pytest

import mesh.patch as patch
import mesh.reconstruction as reconstruction


class TestReconstruction(object):

    def setup_method(self):
        """ this is run before each test """
        self.g = patch.Grid2d(8, 8, ng=4)

        self.a = self.g.scratch_array()
        self.a.d[:, :] = 2.0*self.g.x2d + self.g.y2d

    def teardown_method(self):
        """ this is run after each test """
        self.g = None

    @pytest.mark.parametrize("limiter", [0, 1, 2])
    def test_linear_slopes(self, limiter):
        func = reconstruction.get_limiter(limiter)

        ldx = func(1, self.a, self.g)
        ldy = func(2, self.a, self.g)

        assert_allclose(ldx.v(buf=2), 2.0*self.g.dx)
        assert_allclose(ldy.v(buf=2), self.g.dy)

    def test_extremum(self):
        a = self.g.scratch_array()
        a.d[self.g.ilo+3, :] = 1.0

        lda = reconstruction.limit2(1, a, self.g)
        assert np.all(lda.d[self.g.ilo+3, :] == 0.0)

        lda = reconstruction.limit4(1, a, self.g)
        assert np.all(lda.d[self.g.ilo+3, :] == 0.0)

        # the unlimited slope does not see the extremum
        lda = reconstruction.nolimit(1, a, self.g)
        assert lda.d[self.g.ilo+2, self.g.jlo] == 0.5

    def test_invalid(self):
        with pytest.raises(ValueError):
            reconstruction.get_limiter(3)

    def test_ppm_linear(self):
        am, ap = reconstruction.ppm_interfaces(1, self.a, self.g)

        assert_allclose(am.v(buf=2), self.a.v(buf=2) - self.g.dx)
        assert_allclose(ap.v(buf=2), self.a.v(buf=2) + self.g.dx)

        am, ap = reconstruction.ppm_interfaces(2, self.a, self.g)

        assert_allclose(am.v(buf=2), self.a.v(buf=2) - 0.5*self.g.dy)
        assert_allclose(ap.v(buf=2), self.a.v(buf=2) + 0.5*self.g.dy)

    def test_ppm_flat_extremum(self):
        a = self.g.scratch_array()
        a.d[self.g.ilo+3, :] = 1.0

        am, ap = reconstruction.ppm_interfaces(1, a, self.g)

        i = self.g.ilo+3
        assert np.all(am.d[i, self.g.jlo:self.g.jhi+1] == 1.0)
        assert np.all(ap.d[i, self.g.jlo:self.g.jhi+1] == 1.0)

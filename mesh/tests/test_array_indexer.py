import numpy as np
from numpy.testing import assert_array_equal
import pytest

import mesh.patch as patch
from mesh.box import Box


class TestArrayIndexer(object):

    def setup_method(self):
        """ this is run before each test """
        self.g = patch.Grid2d(4, 6, ng=2)

    def teardown_method(self):
        """ this is run after each test """
        self.g = None

    def test_views(self):
        a = self.g.scratch_array()
        a.d[:, :] = np.arange(self.g.qx*self.g.qy).reshape(self.g.qx, self.g.qy)

        assert a.v().shape == (4, 6)
        assert a.v(buf=1).shape == (6, 8)
        assert_array_equal(a.ip(1), a.d[3:7, 2:8])
        assert_array_equal(a.jp(-1), a.d[2:6, 1:7])
        assert_array_equal(a.ip_jp(-2, 2), a.d[0:4, 4:10])

    def test_buffer_too_big(self):
        a = self.g.scratch_array()
        with pytest.raises(ValueError):
            a.v(buf=3)

    def test_shift_off_the_end(self):
        a = self.g.scratch_array()
        a.ip(2)
        with pytest.raises(ValueError):
            a.ip(3)
        with pytest.raises(ValueError):
            a.jp(-1, buf=2)

    def test_node_centered(self):
        n = self.g.node_scratch_array()
        assert n.shape == (self.g.qx+1, self.g.qy+1)
        assert n.v().shape == (5, 7)

    def test_lap(self):
        a = self.g.scratch_array()
        a.d[:, :] = self.g.x2d**2 + self.g.y2d**2

        # exact for a quadratic
        assert np.abs(a.lap() - 4.0).max() < 1.e-10

    def test_copy(self):
        a = self.g.scratch_array()
        b = a.copy()
        b.d[:, :] = 1.0

        assert a.d.max() == 0.0
        assert b.g is self.g


def test_box_view():
    g = patch.Grid2d(4, 4, ng=2, box=Box((8, 4), (11, 7)))
    a = g.scratch_array()

    v = patch.box_view(a, g, Box((8, 4), (9, 4)))
    v[:, :] = 1.0
    assert a.d[2:4, 2].sum() == 2.0
    assert a.sum() == 2.0

    # ghost cells are fine, past the array is not
    patch.box_view(a, g, Box((6, 2), (13, 9)))
    with pytest.raises(ValueError):
        patch.box_view(a, g, Box((5, 4), (9, 4)))

import numpy as np
from numpy.testing import assert_array_equal

from mesh.box import Box, BoxArray


def test_shape():
    b = Box((2, 3), (5, 9))
    assert b.ok()
    assert b.shape == (4, 7)
    assert b.numpts() == 28

    assert not Box((2, 3), (1, 9)).ok()
    assert Box((2, 3), (1, 9)).numpts() == 0


def test_intersection():
    a = Box((0, 0), (7, 7))
    b = Box((4, 6), (12, 12))

    assert a & b == Box((4, 6), (7, 7))
    assert a.intersects(b)
    assert not a.intersects(Box((8, 0), (9, 7)))


def test_refine_coarsen():
    b = Box((2, 3), (5, 6))

    f = b.refine(2)
    assert f == Box((4, 6), (11, 13))
    assert f.coarsen(2) == b

    # negative indices coarsen with floor division
    assert Box((-3, -1), (0, 0)).coarsen(2) == Box((-2, -1), (0, 0))

    # node boxes map node i to node r*i
    n = b.surrounding_nodes()
    assert n == Box((2, 3), (6, 7), (1, 1))
    assert n.refine(2) == Box((4, 6), (12, 14), (1, 1))
    assert n.enclosed_cells() == b


def test_faces():
    b = Box((2, 3), (5, 6))

    assert b.surrounding_nodes(idir=0) == Box((2, 3), (6, 6), (1, 0))
    assert b.face_cells(0, 1) == Box((6, 3), (6, 6), (1, 0))
    assert b.face_cells(1, 0) == Box((2, 3), (5, 3), (0, 1))
    assert b.face_slab(1, 1) == Box((2, 7), (6, 7), (1, 1))


def test_mixed_types():
    try:
        Box((0, 0), (3, 3)) & Box((0, 0), (3, 3), (1, 1))
    except ValueError:
        pass
    else:
        assert False, "intersection of a cell and a node box should fail"


def test_chop():
    b = Box((0, 0), (9, 5))
    pieces = b.chop(4)

    assert len(pieces) == 3*2
    assert sum(p.numpts() for p in pieces) == b.numpts()
    assert all(p.nx <= 4 and p.ny <= 4 for p in pieces)
    assert BoxArray(pieces).is_disjoint()


def test_slices():
    outer = Box((2, 2), (9, 9))
    inner = Box((4, 5), (6, 5))

    a = np.arange(64).reshape(8, 8)
    assert_array_equal(a[inner.slices(outer)], a[2:5, 3:4])


def test_boxarray_contains():
    ba = BoxArray([Box((0, 0), (3, 7)), Box((4, 0), (7, 3))])

    assert ba.contains(Box((2, 1), (5, 3)))
    assert not ba.contains(Box((2, 1), (5, 4)))

    assert len(ba.intersections(Box((3, 3), (4, 4)))) == 2


def test_cell_mask_periodic():
    domain = Box((0, 0), (7, 7))
    ba = BoxArray([Box((0, 2), (1, 5))])

    mask = ba.cell_mask(domain, periodic=(True, False), ng=2)
    assert mask.shape == (12, 12)

    # the valid cells, offset by the ghost cells
    assert mask[2:4, 4:8].all()

    # the periodic image appears in the high-x ghost cells
    assert mask[10:12, 4:8].all()

    # but not in y, which is not periodic
    assert mask.sum() == 2*(2*4)

    mask = ba.cell_mask(domain, ng=2)
    assert mask.sum() == 2*4

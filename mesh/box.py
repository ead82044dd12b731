"""
Integer index boxes and box arrays for a block-structured hierarchy.

A Box is an inclusive index range lo..hi in two dimensions, together
with an index type in each direction: 0 for cell-centered, 1 for
node-centered.  A cell box with lo = (0, 0) and hi = (nx-1, ny-1)
covers a whole level; its surrounding nodes run from (0, 0) to
(nx, ny).

A BoxArray is an ordered list of disjoint boxes that make up the valid
region of one level.

All of the routines here are pure index bookkeeping -- they do not know
anything about the physical coordinates.
"""

import numpy as np


def _coarsen_index(i, r):
    """floor division that also works for negative indices"""
    return i // r


class Box(object):
    """
    an inclusive 2-d index box

    Parameters
    ----------
    lo : tuple of int
        the low corner (i, j)
    hi : tuple of int
        the high corner (i, j), inclusive
    ixtype : tuple of int, optional
        0 = cell-centered, 1 = node-centered, in each direction
    """

    def __init__(self, lo, hi, ixtype=(0, 0)):
        self.lo = (int(lo[0]), int(lo[1]))
        self.hi = (int(hi[0]), int(hi[1]))
        self.ixtype = (int(ixtype[0]), int(ixtype[1]))

    def ok(self):
        """is this a non-empty box?"""
        return self.hi[0] >= self.lo[0] and self.hi[1] >= self.lo[1]

    @property
    def shape(self):
        return (self.hi[0] - self.lo[0] + 1, self.hi[1] - self.lo[1] + 1)

    @property
    def nx(self):
        return self.hi[0] - self.lo[0] + 1

    @property
    def ny(self):
        return self.hi[1] - self.lo[1] + 1

    def numpts(self):
        if not self.ok():
            return 0
        return self.nx*self.ny

    def _same_type(self, other):
        if self.ixtype != other.ixtype:
            raise ValueError("boxes have different index types: {} {}".format(self, other))

    def __eq__(self, other):
        return isinstance(other, Box) and self.lo == other.lo and \
            self.hi == other.hi and self.ixtype == other.ixtype

    def __ne__(self, other):
        return not self.__eq__(other)

    def __hash__(self):
        return hash((self.lo, self.hi, self.ixtype))

    def __repr__(self):
        return "Box({}, {}, ixtype={})".format(self.lo, self.hi, self.ixtype)

    def __and__(self, other):
        """intersection -- may return an empty box"""
        self._same_type(other)
        lo = (max(self.lo[0], other.lo[0]), max(self.lo[1], other.lo[1]))
        hi = (min(self.hi[0], other.hi[0]), min(self.hi[1], other.hi[1]))
        return Box(lo, hi, self.ixtype)

    def intersects(self, other):
        return (self & other).ok()

    def contains(self, other):
        """
        does this box contain another box (of the same type) or a
        point (i, j)?
        """
        if isinstance(other, Box):
            self._same_type(other)
            if not other.ok():
                return True
            return (self.lo[0] <= other.lo[0] and other.hi[0] <= self.hi[0] and
                    self.lo[1] <= other.lo[1] and other.hi[1] <= self.hi[1])

        i, j = other
        return (self.lo[0] <= i <= self.hi[0] and self.lo[1] <= j <= self.hi[1])

    def shift(self, idir, n):
        """return a copy shifted by n in direction idir (0 = x, 1 = y)"""
        lo = list(self.lo)
        hi = list(self.hi)
        lo[idir] += n
        hi[idir] += n
        return Box(lo, hi, self.ixtype)

    def shift_vect(self, iv):
        return Box((self.lo[0] + iv[0], self.lo[1] + iv[1]),
                   (self.hi[0] + iv[0], self.hi[1] + iv[1]), self.ixtype)

    def grow(self, n, idir=None):
        """grow the box by n zones on every side (or only along idir)"""
        lo = list(self.lo)
        hi = list(self.hi)
        for d in range(2):
            if idir is None or d == idir:
                lo[d] -= n
                hi[d] += n
        return Box(lo, hi, self.ixtype)

    def refine(self, r):
        """
        refine by the integer ratio r.  Cell boxes map cell i to cells
        r*i .. r*i + r - 1; node boxes map node i to node r*i.
        """
        lo = [self.lo[d]*r for d in range(2)]
        hi = [self.hi[d]*r + (r - 1 if self.ixtype[d] == 0 else 0)
              for d in range(2)]
        return Box(lo, hi, self.ixtype)

    def coarsen(self, r):
        """coarsen by the integer ratio r (cells round outward)"""
        lo = [_coarsen_index(self.lo[d], r) for d in range(2)]
        hi = []
        for d in range(2):
            if self.ixtype[d] == 0:
                hi.append(_coarsen_index(self.hi[d], r))
            else:
                # a node box coarsens to the coarse nodes that enclose it
                hi.append(-_coarsen_index(-self.hi[d], r))
        return Box(lo, hi, self.ixtype)

    def surrounding_nodes(self, idir=None):
        """
        convert a cell box to the nodes (or, with idir, the faces normal
        to idir) that bound it
        """
        if idir is None:
            if self.ixtype != (0, 0):
                raise ValueError("surrounding_nodes needs a cell box: {}".format(self))
            return Box(self.lo, (self.hi[0] + 1, self.hi[1] + 1), (1, 1))

        hi = list(self.hi)
        hi[idir] += 1
        ixtype = [0, 0]
        ixtype[idir] = 1
        return Box(self.lo, hi, ixtype)

    def enclosed_cells(self):
        """convert a node box to the cells it encloses"""
        hi = [self.hi[d] - self.ixtype[d] for d in range(2)]
        return Box(self.lo, hi, (0, 0))

    def face_slab(self, idir, side):
        """
        the plane of nodes on the low (side = 0) or high (side = 1)
        face normal to idir of a cell box
        """
        nodes = self.surrounding_nodes()
        lo = list(nodes.lo)
        hi = list(nodes.hi)
        if side == 0:
            hi[idir] = lo[idir]
        else:
            lo[idir] = hi[idir]
        return Box(lo, hi, (1, 1))

    def face_cells(self, idir, side):
        """
        the faces normal to idir on the low or high side of a cell box,
        returned as the box of face indices (face i sits at i-1/2)
        """
        faces = self.surrounding_nodes(idir=idir)
        lo = list(faces.lo)
        hi = list(faces.hi)
        if side == 0:
            hi[idir] = lo[idir]
        else:
            lo[idir] = hi[idir]
        return Box(lo, hi, faces.ixtype)

    def chop(self, max_size):
        """split this box into pieces no larger than max_size in each direction"""
        if max_size <= 0:
            return [Box(self.lo, self.hi, self.ixtype)]

        pieces = []
        for i0 in range(self.lo[0], self.hi[0] + 1, max_size):
            i1 = min(i0 + max_size - 1, self.hi[0])
            for j0 in range(self.lo[1], self.hi[1] + 1, max_size):
                j1 = min(j0 + max_size - 1, self.hi[1])
                pieces.append(Box((i0, j0), (i1, j1), self.ixtype))
        return pieces

    def slices(self, other):
        """
        the numpy slices that address this box inside an array whose
        element (0, 0) corresponds to index other.lo
        """
        if not other.contains(self):
            raise ValueError("{} is not inside {}".format(self, other))
        return (slice(self.lo[0] - other.lo[0], self.hi[0] - other.lo[0] + 1),
                slice(self.lo[1] - other.lo[1], self.hi[1] - other.lo[1] + 1))


class BoxArray(object):
    """
    the disjoint boxes that make up the valid region of one level
    """

    def __init__(self, boxes=None):
        self.boxes = []
        if boxes is not None:
            for b in boxes:
                self.boxes.append(b)

    def __len__(self):
        return len(self.boxes)

    def __iter__(self):
        return iter(self.boxes)

    def __getitem__(self, n):
        return self.boxes[n]

    def __repr__(self):
        return "BoxArray({})".format(self.boxes)

    def refine(self, r):
        return BoxArray([b.refine(r) for b in self.boxes])

    def coarsen(self, r):
        return BoxArray([b.coarsen(r) for b in self.boxes])

    def grow(self, n):
        return BoxArray([b.grow(n) for b in self.boxes])

    def surrounding_nodes(self):
        return BoxArray([b.surrounding_nodes() for b in self.boxes])

    def max_size(self, n):
        """chop every box so that no side is longer than n"""
        new_boxes = []
        for b in self.boxes:
            new_boxes += b.chop(n)
        return BoxArray(new_boxes)

    def is_disjoint(self):
        for n, b in enumerate(self.boxes):
            for m in range(n+1, len(self.boxes)):
                if b.intersects(self.boxes[m]):
                    return False
        return True

    def minimal_box(self):
        lo = (min(b.lo[0] for b in self.boxes), min(b.lo[1] for b in self.boxes))
        hi = (max(b.hi[0] for b in self.boxes), max(b.hi[1] for b in self.boxes))
        return Box(lo, hi, self.boxes[0].ixtype)

    def intersections(self, box):
        """return a list of (index, intersection) for every overlapping box"""
        isects = []
        for n, b in enumerate(self.boxes):
            isect = b & box
            if isect.ok():
                isects.append((n, isect))
        return isects

    def contains(self, box):
        """is box completely covered by the union of our boxes?"""
        if not box.ok():
            return True
        covered = 0
        for _, isect in self.intersections(box):
            covered += isect.numpts()
        return covered == box.numpts()

    def cell_mask(self, domain, periodic=(False, False), ng=0):
        """
        return an integer array over domain (grown by ng) that is 1 where a
        cell is covered by one of our boxes, including periodic images
        """
        region = domain.grow(ng)
        mask = np.zeros(region.shape, dtype=np.int32)

        for b in self.boxes:
            for shift in periodic_shifts(domain, region, b, periodic):
                sb = b.shift_vect(shift)
                isect = sb & region
                if isect.ok():
                    mask[isect.slices(region)] = 1

        return mask


def periodic_shifts(domain, target, box, periodic):
    """
    the integer shifts (including (0, 0)) that move box onto a periodic
    image that touches target
    """
    shifts = []
    nx, ny = domain.shape
    xs = [0]
    ys = [0]
    if periodic[0]:
        xs = [-nx, 0, nx]
    if periodic[1]:
        ys = [-ny, 0, ny]

    for sx in xs:
        for sy in ys:
            if (box.shift_vect((sx, sy)) & target).ok():
                shifts.append((sx, sy))

    return shifts

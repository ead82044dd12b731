"""
A flux register holds, for every coarse face on the boundary of a fine
level, the difference between the time- and area-integrated fine flux
through that face and the coarse flux that was actually used.  Adding
that difference back to the coarse cell just outside of the fine level
("refluxing") restores conservation across the coarse/fine interface.

The register is built from the boxes of the fine level and lives in
the coarse index space.  It has one entry for each side of each fine
box (a row or column of coarse faces).  Faces that lie on a
non-periodic physical boundary carry no flux mismatch and are left out.

The usual protocol within a coarse timestep is

  crse_init(coarse fluxes, mult = -dt_crse)     (once, overwrites)
  fine_add(fine fluxes, mult = dt_fine)         (every fine subcycle)
  reflux(target, scale = 1/dt_crse)

so that the register holds sum(dt_f F_f) - dt_c F_c.
"""

import numpy as np

import mesh.patch as patch
from mesh.box import Box


class RegisterEntry(object):
    """the register faces on one side of one fine box"""

    def __init__(self, idir, iside, n, crse_faces, fine_faces, names):
        self.idir = idir
        self.iside = iside
        self.n = n
        self.crse_faces = crse_faces
        self.fine_faces = fine_faces
        self.data = {}
        for name in names:
            self.data[name] = np.zeros(crse_faces.shape)

    def __str__(self):
        return "register entry: idir = {}, iside = {}, box {}: {}".format(
            self.idir, self.iside, self.n, self.crse_faces)


def extract_faces(fluxes, faces, idir):
    """
    copy the face data of a list of arrays onto the face box faces.  Each
    array supplies the faces of the valid cells of its grid.  Every face
    of the box must be supplied.
    """

    result = np.zeros(faces.shape)
    found = np.zeros(faces.shape, dtype=bool)

    for f in fluxes:
        src = f.g.box.surrounding_nodes(idir)
        isect = src & faces
        if not isect.ok():
            continue
        sl = isect.slices(faces)
        result[sl] = patch.box_view(f, f.g, isect)
        found[sl] = True

    if not found.all():
        raise ValueError("the fluxes do not cover the faces {}".format(faces))

    return result


def sum_fine_faces(fine, idir, r):
    """sum each group of r fine faces that make up one coarse face"""
    if idir == 0:
        return fine.reshape(fine.shape[0], -1, r).sum(axis=2)
    return fine.reshape(-1, r, fine.shape[1]).sum(axis=1)


class FluxRegister(object):
    """
    the flux mismatch on the coarse faces surrounding a fine level, for
    a set of named components
    """

    def __init__(self, fine_grids, crse_geom, ratio, names):
        """
        Parameters
        ----------
        fine_grids : BoxArray
            the boxes of the fine level
        crse_geom : Geometry
            the coarse level geometry
        ratio : int
            the refinement ratio
        names : list of str
            the components held
        """

        self.fine_grids = fine_grids
        self.crse_geom = crse_geom
        self.ratio = ratio
        self.names = list(names)

        domain = crse_geom.domain

        self.entries = []
        for n, fbox in enumerate(fine_grids):
            cbox = fbox.coarsen(ratio)
            for idir in range(2):
                for iside in range(2):
                    crse_faces = cbox.face_cells(idir, iside)

                    if not crse_geom.is_periodic(idir):
                        if iside == 0 and cbox.lo[idir] == domain.lo[idir]:
                            continue
                        if iside == 1 and cbox.hi[idir] == domain.hi[idir]:
                            continue

                    fine_faces = fbox.face_cells(idir, iside)
                    self.entries.append(RegisterEntry(idir, iside, n,
                                                      crse_faces, fine_faces,
                                                      self.names))

    def set_val(self, val=0.0, name=None):
        for e in self.entries:
            for key in e.data:
                if name is None or key == name:
                    e.data[key][:, :] = val

    def crse_init(self, fluxes, idir, mult, name):
        """
        overwrite the register with mult times the coarse fluxes
        through the register faces normal to idir.  fluxes is a list of
        face arrays (one per coarse patch, or a single level canvas).
        """
        for e in self.entries:
            if e.idir != idir:
                continue
            e.data[name][:, :] = mult*extract_faces(fluxes, e.crse_faces, idir)

    def fine_add(self, fluxes, idir, mult, name):
        """
        add mult times the fine fluxes, summed over the fine faces that
        make up each coarse face
        """
        contributions = []
        for e in self.entries:
            if e.idir != idir:
                continue
            fine = extract_faces(fluxes, e.fine_faces, idir)
            contributions.append((e, mult*sum_fine_faces(fine, idir, self.ratio)))

        for e, c in contributions:
            e.data[name][:, :] += c

    def _outside_cells(self, e):
        """the coarse cells just outside the fine box, across the register faces"""
        cells = Box(e.crse_faces.lo, e.crse_faces.hi, (0, 0))
        if e.iside == 0:
            cells = cells.shift(e.idir, -1)

        domain = self.crse_geom.domain
        if self.crse_geom.is_periodic(e.idir):
            n = domain.shape[e.idir]
            if cells.lo[e.idir] < domain.lo[e.idir]:
                cells = cells.shift(e.idir, n)
            elif cells.hi[e.idir] > domain.hi[e.idir]:
                cells = cells.shift(e.idir, -n)

        return cells

    def reflux(self, target, scale, names=None, target_names=None):
        """
        add the register into the coarse cells outside of the fine level:
        -scale reg/vol across a low-side face, +scale reg/vol across a
        high-side face.

        Parameters
        ----------
        target : MultiPatch
            the coarse level data to correct
        scale : float
            multiplies the register
        names : list of str, optional
            the register components to use (defaults to all)
        target_names : list of str, optional
            the matching components of target (defaults to names)
        """

        if names is None:
            names = self.names
        if target_names is None:
            target_names = names

        vol = self.crse_geom.volume()

        increments = []
        for e in self.entries:
            sign = -1.0 if e.iside == 0 else 1.0
            cells = self._outside_cells(e)
            for name, tname in zip(names, target_names):
                increments.append((cells, tname, sign*scale*e.data[name]/vol))

        for cells, tname, incr in increments:
            for n, isect in target.grids.intersections(cells):
                p = target.patches[n]
                patch.box_view(p.get_var(tname), p.grid, isect)[:, :] += \
                    incr[isect.slices(cells)]

    def reflux_canvas(self, canvas, grid, scale, name):
        """reflux component name into a level canvas instead of patches"""
        vol = self.crse_geom.volume()
        for e in self.entries:
            sign = -1.0 if e.iside == 0 else 1.0
            cells = self._outside_cells(e)
            patch.box_view(canvas, grid, cells)[:, :] += sign*scale*e.data[name]/vol

"""
An array class that knows the grid it lives on.  This lets us write
stencil operations in a compact form, e.g. a[i+1,j] over the valid
region is a.ip(1).

Every view that is handed out is checked against the extent of the
underlying buffer: asking for more ghost cells than the grid has, or
for a shift that runs off the end of the array, raises a ValueError
instead of silently wrapping or truncating.
"""

import numpy as np


def _buf_split(b):
    """
    take an integer or iterable and break it into a -x, +x, -y, +y
    value representing a ghost cell buffer
    """
    try:
        bxlo, bxhi, bylo, byhi = b
    except (ValueError, TypeError):
        try:
            blo, bhi = b
        except (ValueError, TypeError):
            blo = b
            bhi = b
        bxlo = bylo = blo
        bxhi = byhi = bhi
    return bxlo, bxhi, bylo, byhi


class ArrayIndexer(np.ndarray):
    """ a class that wraps the data region of a single array (d)
        and allows us to easily do array operations like d[i+1,j]
        using the ip() method.  The data can be cell-centered (the
        default) or node-centered, in which case the valid region
        runs one point further in each direction. """

    def __new__(cls, d, grid=None, centering="cell"):
        obj = np.asarray(d).view(cls)
        obj.g = grid
        obj.centering = centering
        return obj

    def __array_finalize__(self, obj):
        if obj is None:
            return
        self.g = getattr(obj, "g", None)
        self.centering = getattr(obj, "centering", "cell")

    @property
    def d(self):
        """the raw numpy array (a view, so writes go to our data)"""
        return np.asarray(self)

    def _extent(self):
        if self.centering == "node":
            return self.g.ihi + 1, self.g.jhi + 1
        return self.g.ihi, self.g.jhi

    def v(self, buf=0, n=0, s=1):
        """return a view of the valid data region for component n, with
        stride s, and a buffer of ghost cells given by buf"""
        return self.ip_jp(0, 0, buf=buf, n=n, s=s)

    def ip(self, shift, buf=0, n=0, s=1):
        """return a view of the valid data region for component n, with
        stride s, and a buffer of ghost cells given by buf, shifted in
        the x-direction by shift"""
        return self.ip_jp(shift, 0, buf=buf, n=n, s=s)

    def jp(self, shift, buf=0, n=0, s=1):
        """return a view of the valid data region for component n, with
        stride s, and a buffer of ghost cells given by buf, shifted in
        the y-direction by shift"""
        return self.ip_jp(0, shift, buf=buf, n=n, s=s)

    def ip_jp(self, ishift, jshift, buf=0, n=0, s=1):
        """return a view of the data shifted by ishift in x and jshift
        in y.  By default the view is the same size as the valid region,
        but the buf can specify how many ghost cells on each side to
        include.  The component is n and s is the stride"""

        bxlo, bxhi, bylo, byhi = _buf_split(buf)

        if max(bxlo, bxhi, bylo, byhi) > self.g.ng:
            raise ValueError("requested buffer {} exceeds the {} ghost cells".format(buf, self.g.ng))

        ihi, jhi = self._extent()

        ilo = self.g.ilo - bxlo + ishift
        iend = ihi + 1 + bxhi + ishift
        jlo = self.g.jlo - bylo + jshift
        jend = jhi + 1 + byhi + jshift

        # with a stride, the last point touched can be short of the end
        ilast = ilo + s*((iend - ilo - 1)//s)
        jlast = jlo + s*((jend - jlo - 1)//s)

        if ilo < 0 or jlo < 0 or ilast >= self.shape[0] or jlast >= self.shape[1]:
            raise ValueError("view [{}:{}, {}:{}] runs outside of array of shape {}".format(
                ilo, iend, jlo, jend, self.shape))

        if self.ndim == 2:
            return np.asarray(self[ilo:iend:s, jlo:jend:s])

        return np.asarray(self[ilo:iend:s, jlo:jend:s, n])

    def lap(self, n=0, buf=0):
        """return the 5-point Laplacian"""
        l = (self.ip(-1, n=n, buf=buf) - 2*self.v(n=n, buf=buf) + self.ip(1, n=n, buf=buf))/self.g.dx**2 + \
            (self.jp(-1, n=n, buf=buf) - 2*self.v(n=n, buf=buf) + self.jp(1, n=n, buf=buf))/self.g.dy**2
        return l

    def norm(self, n=0):
        """
        find the norm of the quantity (index n) defined on the same grid,
        in the domain's valid region
        """
        return np.sqrt(self.g.dx * self.g.dy *
                       np.sum((self.v(n=n)**2).flat))

    def copy(self):
        """make a copy of the array, defined on the same grid"""
        return ArrayIndexer(np.asarray(self).copy(), grid=self.g,
                            centering=self.centering)

"""
this library implements the limiting functions used in the
reconstruction, along with the piecewise parabolic (PPM) interface
values.

All of the routines take the direction (1 = x-direction, else =
y-direction), the data array and the grid it lives on, and return a
new array with the same shape.  The results are only defined as far
into the ghost cells as the stencil allows; everything else is zero.
"""

import numpy as np

import mesh.array_indexer as ai


def _indexer(a, myg):
    return ai.ArrayIndexer(np.asarray(a), grid=myg)


def _shift(idir):
    if idir == 1:
        return (1, 0)
    return (0, 1)


#-----------------------------------------------------------------------------
# nolimit
#-----------------------------------------------------------------------------
def nolimit(idir, a, myg):
    """
    just to a centered difference -- no limiting

    Parameters
    ----------
    idir : int
        direction (1 = x-direction, else = y-direction)
    a : float array
        array to be limited
    myg : Grid2d object
        grid on which data lives

    Returns
    -------
    lda : float array
        limited array
    """

    a = _indexer(a, myg)
    lda = myg.scratch_array()
    b = myg.ng - 1
    si, sj = _shift(idir)

    lda.v(buf=b)[:, :] = 0.5*(a.ip_jp(si, sj, buf=b) - a.ip_jp(-si, -sj, buf=b))

    return lda


#----------------------------------------------------------------------------
# limit2
#-----------------------------------------------------------------------------
def limit2(idir, a, myg):

    """
    2nd order limited centered difference (monotonized central)

    Parameters
    ----------
    idir : int
        direction (1 = x-direction, else = y-direction)
    a : float array
        array to be limited
    myg : Grid2d object
        grid on which data lives

    Returns
    -------
    lda : float array
        limited array
    """

    a = _indexer(a, myg)
    lda = myg.scratch_array()
    b = myg.ng - 1
    si, sj = _shift(idir)

    dc = 0.5*(a.ip_jp(si, sj, buf=b) - a.ip_jp(-si, -sj, buf=b))
    dl = a.v(buf=b) - a.ip_jp(-si, -sj, buf=b)
    dr = a.ip_jp(si, sj, buf=b) - a.v(buf=b)

    # test whether we are at an extremum
    test = dl*dr

    lim = np.minimum(np.abs(dc), np.minimum(2.0*np.abs(dl), 2.0*np.abs(dr)))

    lda.v(buf=b)[:, :] = np.where(test > 0.0, lim*np.sign(dc), 0.0)

    return lda


#-----------------------------------------------------------------------------
# limit4
#-----------------------------------------------------------------------------
def limit4(idir, a, myg):

    """
    4th order limited centered difference

    See Colella (1985) Eq. 2.5 and 2.6, Colella (1990) page 191 (with
    the delta a terms all equal) or Saltzman 1994, page 156

    Parameters
    ----------
    idir : int
        direction (1 = x-direction, else = y-direction)
    a : float array
        array to be limited
    myg : Grid2d object
        grid on which data lives

    Returns
    -------
    lda : float array
        limited array
    """

    # first get the 2nd order estimate
    temp = limit2(idir, a, myg)

    a = _indexer(a, myg)
    lda = myg.scratch_array()
    b = myg.ng - 2
    si, sj = _shift(idir)

    dl = a.v(buf=b) - a.ip_jp(-si, -sj, buf=b)
    dr = a.ip_jp(si, sj, buf=b) - a.v(buf=b)

    # test whether we are at an extremum
    test = dl*dr

    d4 = (2./3.)*(a.ip_jp(si, sj, buf=b) - a.ip_jp(-si, -sj, buf=b) -
                  0.25*(temp.ip_jp(si, sj, buf=b) + temp.ip_jp(-si, -sj, buf=b)))

    lim = np.minimum(np.abs(d4), np.minimum(2.0*np.abs(dl), 2.0*np.abs(dr)))

    lda.v(buf=b)[:, :] = np.where(test > 0.0,
                                  lim*np.sign(a.ip_jp(si, sj, buf=b) -
                                              a.ip_jp(-si, -sj, buf=b)),
                                  0.0)

    return lda


def get_limiter(limiter):
    """
    return the slope routine for the integer limiter code:
    0 = no limiting, 1 = 2nd order MC, 2 = 4th order MC
    """
    if limiter == 0:
        return nolimit
    elif limiter == 1:
        return limit2
    elif limiter == 2:
        return limit4

    raise ValueError("invalid limiter {}".format(limiter))


#-----------------------------------------------------------------------------
# ppm_interfaces
#-----------------------------------------------------------------------------
def ppm_interfaces(idir, a, myg):
    """
    construct the limited parabolic profile in each zone, following
    Colella & Woodward (1984).  The interface values are built from the
    4th-order interpolant with monotonized central slopes (CW Eq. 1.6)
    and then adjusted so that the parabola introduces no new extrema
    (CW Eq. 1.10).

    Parameters
    ----------
    idir : int
        direction (1 = x-direction, else = y-direction)
    a : float array
        the zone averages
    myg : Grid2d object
        grid on which data lives

    Returns
    -------
    am, ap : float array
        the value of the parabola at the left and right edge of
        each zone
    """

    dA = limit2(idir, a, myg)

    a = _indexer(a, myg)
    si, sj = _shift(idir)

    # a_{i+1/2} lives in the zone i slot, and needs slopes in i and i+1.
    # We need one extra edge on the low side to get a_{i-1/2}
    bp = myg.ng - 2
    if idir == 1:
        b = (bp+1, bp, bp, bp)
    else:
        b = (bp, bp, bp+1, bp)

    edge = myg.scratch_array()
    edge.v(buf=b)[:, :] = 0.5*(a.v(buf=b) + a.ip_jp(si, sj, buf=b)) - \
        (1.0/6.0)*(dA.ip_jp(si, sj, buf=b) - dA.v(buf=b))

    ap = myg.scratch_array()
    am = myg.scratch_array()

    ap.v(buf=bp)[:, :] = edge.v(buf=bp)
    am.v(buf=bp)[:, :] = edge.ip_jp(-si, -sj, buf=bp)

    ac = a.v(buf=bp)
    _ap = ap.v(buf=bp)
    _am = am.v(buf=bp)

    # local extrema get a flat profile
    flat = (_ap - ac)*(ac - _am) <= 0.0
    _ap[flat] = ac[flat]
    _am[flat] = ac[flat]

    # steep profiles are adjusted so the parabola stays monotone
    da = _ap - _am
    a6 = 6.0*(ac - 0.5*(_am + _ap))

    fix_m = da*a6 > da*da
    _am[fix_m] = 3.0*ac[fix_m] - 2.0*_ap[fix_m]

    da = _ap - _am
    a6 = 6.0*(ac - 0.5*(_am + _ap))

    fix_p = -da*da > da*a6
    _ap[fix_p] = 3.0*ac[fix_p] - 2.0*_am[fix_p]

    return am, ap

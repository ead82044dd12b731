"""
The Godunov predictor: time-centered, upwinded face states for the
velocity and the transported scalars of a single patch.

This follows the unsplit method of the pyro incompressible and low
Mach solvers (Bell, Colella & Glaz 1989; Almgren, Bell & Szymczak
1996).  A face state is built in two stages:

1. the normal predictor -- the "hat" states -- extrapolates from the
   cell center to each of its faces, using only the derivatives normal
   to the face.  This is the part that differs between the PLM and
   PPM schemes, and it lives in the scheme objects below.

2. the transverse correction adds the derivatives tangential to the
   face, computed from the upwinded hat states.  This is shared by
   both schemes.

Face arrays are cell-shaped: index i holds the face at i-1/2.  A left
state at face i+1/2 is built from cell i and stored in slot i+1.
"""

import numpy as np

import mesh.reconstruction as reconstruction
from util import msg

SMALL = 1.e-20


def floor_small(q, small=SMALL):
    """return a copy of q where values smaller than small are zero"""
    f = q.copy()
    f.d[np.abs(f.d) < small] = 0.0
    return f


def upwind(myg, q_l, q_r, s, u_l=None, u_r=None):
    """
    Upwind the left and right states based on the specified input
    velocity, s.  The resulting interface state is q_int

    Parameters
    ----------
    myg : Grid2d object
        grid on which data lives
    q_l : float array
        left state
    q_r : float array
        right state
    s : float array
        specified input velocity
    u_l, u_r : float array, optional
        the left and right normal velocities.  Where they differ in
        sign we are at a stagnation point and take the average.

    Returns
    -------
    q_int : float array
        State predicted to interface
    """

    q_int = myg.scratch_array()

    q_int.d[:, :] = np.where(s.d > 0.0, q_l.d,
                             np.where(s.d < 0.0, q_r.d, 0.5*(q_l.d + q_r.d)))

    if u_l is not None and u_r is not None:
        stag = u_l.d*u_r.d < 0.0
        q_int.d[stag] = 0.5*(q_l.d[stag] + q_r.d[stag])

    return q_int


def riemann(myg, q_l, q_r):
    """
    Solve the Burger's Riemann problem given the input left and right
    states and return the state on the interface.

    This uses the expressions from Almgren, Bell, and Szymczak 1996.

    Parameters
    ----------
    myg : Grid2d object
        grid on which data lives
    q_l : float array
        left state
    q_r : float array
        right state

    Returns
    -------
    s : float array
        state found at interface by solving Riemann problem
    """

    s = myg.scratch_array()

    s.d[:, :] = np.where(np.logical_and(q_l.d > 0.0, q_l.d + q_r.d > 0.0), q_l.d,
                         np.where(np.logical_and(q_l.d <= 0.0, q_r.d >= 0.0), 0.0,
                                  q_r.d))

    return s


def riemann_and_upwind(myg, q_l, q_r):
    """
    First solve the Riemann problem given q_l and q_r to give the
    velocity on the interface and then use this velocity to upwind to
    determine the state (q_l, q_r, or a mix) on the interface).

    This differs from upwind, above, in that we don't take in a
    velocity to upwind with.
    """

    s = riemann(myg, q_l, q_r)
    return upwind(myg, q_l, q_r, s)


#-----------------------------------------------------------------------------
# normal predictor schemes
#-----------------------------------------------------------------------------

def _tracing_velocities(u, umac, idir):
    """
    the velocities used to trace the left (from cell i to face i+1/2)
    and right (from cell i to face i-1/2) states, over the hat buffer
    """
    if umac is None:
        return u.v(buf=2), u.v(buf=2)
    if idir == 1:
        return umac.ip(1, buf=2), umac.v(buf=2)
    return umac.jp(1, buf=2), umac.v(buf=2)


class PLMScheme(object):
    """
    piecewise linear reconstruction with limited slopes and
    Taylor extrapolation in space and time
    """

    name = "plm"

    def __init__(self, params):
        self.limiter = reconstruction.get_limiter(params.limiter)

    def compute_face_states(self, myg, dt, q, u, v, umac=None, vmac=None):
        """
        predict q to the faces using only the normal derivatives

        Parameters
        ----------
        myg : Grid2d object
            grid on which data lives
        dt : float
            timestep
        q : ArrayIndexer
            the cell-centered quantity (ghost cells filled)
        u, v : ArrayIndexer
            the cell-centered velocity
        umac, vmac : ArrayIndexer, optional
            face velocities to trace with instead of the cell velocity

        Returns
        -------
        q_xl, q_xr, q_yl, q_yr : ArrayIndexer
            the left and right states on the x- and y-faces
        """

        q = floor_small(q)

        ldelta_x = self.limiter(1, q, myg)
        ldelta_y = self.limiter(2, q, myg)

        dtdx = dt/myg.dx
        dtdy = dt/myg.dy

        q_xl = myg.scratch_array()
        q_xr = myg.scratch_array()
        q_yl = myg.scratch_array()
        q_yr = myg.scratch_array()

        ul, ur = _tracing_velocities(u, umac, 1)
        vl, vr = _tracing_velocities(v, vmac, 2)

        # q on x-edges
        q_xl.ip(1, buf=2)[:, :] = q.v(buf=2) + \
            0.5*(1.0 - dtdx*ul)*ldelta_x.v(buf=2)

        q_xr.v(buf=2)[:, :] = q.v(buf=2) - \
            0.5*(1.0 + dtdx*ur)*ldelta_x.v(buf=2)

        # q on y-edges
        q_yl.jp(1, buf=2)[:, :] = q.v(buf=2) + \
            0.5*(1.0 - dtdy*vl)*ldelta_y.v(buf=2)

        q_yr.v(buf=2)[:, :] = q.v(buf=2) - \
            0.5*(1.0 + dtdy*vr)*ldelta_y.v(buf=2)

        return q_xl, q_xr, q_yl, q_yr


class PPMScheme(object):
    """
    piecewise parabolic reconstruction (Colella & Woodward 1984) with
    characteristic tracing of the parabola over the part of the zone
    that reaches the face in dt/2
    """

    name = "ppm"

    def __init__(self, params):
        self.limiter = params.limiter

    @staticmethod
    def _trace(q, am, ap, sl, sr, dtdn):
        """trace the parabolas to the high (left state) and low (right state) faces"""

        a6 = 6.0*(q - 0.5*(am + ap))

        sigma = np.abs(sl)*dtdn
        q_left = np.where(sl > 0.0,
                          ap - 0.5*sigma*(ap - am - (1.0 - 2.0*sigma/3.0)*a6),
                          q)

        sigma = np.abs(sr)*dtdn
        q_right = np.where(sr < 0.0,
                           am + 0.5*sigma*(ap - am + (1.0 - 2.0*sigma/3.0)*a6),
                           q)

        return q_left, q_right

    def compute_face_states(self, myg, dt, q, u, v, umac=None, vmac=None):
        """
        predict q to the faces using only the normal derivatives.  The
        arguments and return values are the same as PLMScheme's.
        """

        q = floor_small(q)

        q_xl = myg.scratch_array()
        q_xr = myg.scratch_array()
        q_yl = myg.scratch_array()
        q_yr = myg.scratch_array()

        am, ap = reconstruction.ppm_interfaces(1, q, myg)
        ul, ur = _tracing_velocities(u, umac, 1)

        left, right = self._trace(q.v(buf=2), am.v(buf=2), ap.v(buf=2),
                                  ul, ur, dt/myg.dx)
        q_xl.ip(1, buf=2)[:, :] = left
        q_xr.v(buf=2)[:, :] = right

        am, ap = reconstruction.ppm_interfaces(2, q, myg)
        vl, vr = _tracing_velocities(v, vmac, 2)

        left, right = self._trace(q.v(buf=2), am.v(buf=2), ap.v(buf=2),
                                  vl, vr, dt/myg.dy)
        q_yl.jp(1, buf=2)[:, :] = left
        q_yr.v(buf=2)[:, :] = right

        return q_xl, q_xr, q_yl, q_yr


def make_scheme(params):
    """return the normal predictor selected by godunov.scheme"""
    if params.scheme == "plm":
        return PLMScheme(params)
    elif params.scheme == "ppm":
        return PPMScheme(params)

    msg.fail("ERROR: godunov.scheme = {} invalid".format(params.scheme))


def hypgrow(scheme, limiter):
    """the number of ghost cells the predictor needs"""
    if scheme == "plm" and limiter < 2:
        return 3
    return 4


#-----------------------------------------------------------------------------
# transverse corrections
#-----------------------------------------------------------------------------

def _add_force(myg, dt, q_xl, q_xr, q_yl, q_yr, tforce, buf):
    """add dt/2 of the force to all four states"""
    if tforce is None:
        return

    f = 0.5*dt*tforce.v(buf=buf)

    q_xl.ip(1, buf=buf)[:, :] += f
    q_xr.v(buf=buf)[:, :] += f
    q_yl.jp(1, buf=buf)[:, :] += f
    q_yr.v(buf=buf)[:, :] += f


def transverse_correct(myg, dt, q, q_xl, q_xr, q_yl, q_yr, uadv, vadv,
                       conservative=False, uadv_lr=None, vadv_lr=None):
    """
    add the transverse derivatives to the hat states, in place.  The
    upwinded hat states provide the tangential derivative.  uadv_lr and
    vadv_lr are the left and right states of the normal velocities, if
    we are predicting the velocity itself: where they change sign the
    hat state is the average.

    For a quantity advected in non-conservative form the correction on
    the x-faces is -dt/2 v dq/dy.  In conservative form it is
    -dt/2 [ (q v)_y + q u_x ]: the transverse flux difference plus the
    part of the normal divergence the normal predictor did not include.
    """

    ux_l, ux_r = uadv_lr if uadv_lr is not None else (None, None)
    vy_l, vy_r = vadv_lr if vadv_lr is not None else (None, None)

    q_xint = upwind(myg, q_xl, q_xr, uadv, u_l=ux_l, u_r=ux_r)
    q_yint = upwind(myg, q_yl, q_yr, vadv, u_l=vy_l, u_r=vy_r)

    dtdx = dt/myg.dx
    dtdy = dt/myg.dy

    if not conservative:
        ubar = 0.5*(uadv.v(buf=1) + uadv.ip(1, buf=1))
        vbar = 0.5*(vadv.v(buf=1) + vadv.jp(1, buf=1))

        # v dq/dy is the transverse term for the states on x-interfaces
        vq_y = vbar*(q_yint.jp(1, buf=1) - q_yint.v(buf=1))

        q_xl.ip(1, buf=1)[:, :] += -0.5*dtdy*vq_y
        q_xr.v(buf=1)[:, :] += -0.5*dtdy*vq_y

        # u dq/dx is the transverse term for the states on y-interfaces
        uq_x = ubar*(q_xint.ip(1, buf=1) - q_xint.v(buf=1))

        q_yl.jp(1, buf=1)[:, :] += -0.5*dtdx*uq_x
        q_yr.v(buf=1)[:, :] += -0.5*dtdx*uq_x

    else:
        u_x = (uadv.ip(1, buf=1) - uadv.v(buf=1))/myg.dx
        v_y = (vadv.jp(1, buf=1) - vadv.v(buf=1))/myg.dy

        # (q v)_y is the transverse term for the x-interfaces
        # q u_x is the non-advective piece for the x-interfaces
        qv_y = (q_yint.jp(1, buf=1)*vadv.jp(1, buf=1) -
                q_yint.v(buf=1)*vadv.v(buf=1))/myg.dy

        q_xl.ip(1, buf=1)[:, :] -= 0.5*dt*(qv_y + q.v(buf=1)*u_x)
        q_xr.v(buf=1)[:, :] -= 0.5*dt*(qv_y + q.v(buf=1)*u_x)

        # (q u)_x is the transverse term for the y-interfaces
        # q v_y is the non-advective piece for the y-interfaces
        qu_x = (q_xint.ip(1, buf=1)*uadv.ip(1, buf=1) -
                q_xint.v(buf=1)*uadv.v(buf=1))/myg.dx

        q_yl.jp(1, buf=1)[:, :] -= 0.5*dt*(qu_x + q.v(buf=1)*v_y)
        q_yr.v(buf=1)[:, :] -= 0.5*dt*(qu_x + q.v(buf=1)*v_y)


#-----------------------------------------------------------------------------
# physical boundaries
#-----------------------------------------------------------------------------

_walls = ["slipwall", "reflect", "noslipwall"]


def apply_edge_bcs(myg, bc, q_l, q_r, q_int, idir, kind):
    """
    replace the face state on the physical boundaries of the patch.

    Parameters
    ----------
    myg : Grid2d object
        the patch grid
    bc : BC object
        boundary conditions (we use the physical types)
    q_l, q_r, q_int : ArrayIndexer
        the left, right and upwinded states on the faces normal to idir
    idir : int
        0 for x-faces, 1 for y-faces
    kind : {'normal', 'tangential', 'scalar'}
        what the quantity is with respect to the faces
    """

    for iside in range(2):
        if not myg.on_physical_boundary(idir, iside):
            continue

        phys = bc.phys_side(idir, iside)

        if phys == "periodic":
            continue

        if idir == 0:
            idx = myg.ilo if iside == 0 else myg.ihi + 1
            sl = (idx, slice(myg.jlo, myg.jhi + 1))
        else:
            idx = myg.jlo if iside == 0 else myg.jhi + 1
            sl = (slice(myg.ilo, myg.ihi + 1), idx)

        if phys in _walls:
            if kind == "normal" or (kind == "tangential" and phys == "noslipwall"):
                q_int.d[sl] = 0.0
                continue

        if phys in _walls or phys == "outflow":
            # take the extrapolation from inside the domain
            if iside == 0:
                q_int.d[sl] = q_r.d[sl]
            else:
                q_int.d[sl] = q_l.d[sl]
            continue

        msg.fail("ERROR: unknown boundary type {} for edge states".format(phys))


#-----------------------------------------------------------------------------
# the predictors
#-----------------------------------------------------------------------------

def extrap_vel_to_faces(myg, dt, scheme, u, v, tfx, tfy, bc,
                        use_forces_in_trans=False):
    """
    predict the normal velocities to the faces at t^{n+1/2}: the
    (not yet divergence free) MAC velocities.

    Parameters
    ----------
    myg : Grid2d object
        the patch grid
    dt : float
        timestep
    scheme : PLMScheme or PPMScheme
        the normal predictor
    u, v : ArrayIndexer
        cell-centered velocity with ghost cells filled
    tfx, tfy : ArrayIndexer
        the velocity forcing (force - grad p + viscous terms)/rho
    bc : BC object
        for the physical boundary types

    Returns
    -------
    u_MAC, v_MAC : ArrayIndexer
        the normal velocity on the x- and y-faces
    """

    u_xl, u_xr, u_yl, u_yr = scheme.compute_face_states(myg, dt, u, u, v)
    v_xl, v_xr, v_yl, v_yr = scheme.compute_face_states(myg, dt, v, u, v)

    if use_forces_in_trans:
        _add_force(myg, dt, u_xl, u_xr, u_yl, u_yr, tfx, 2)
        _add_force(myg, dt, v_xl, v_xr, v_yl, v_yr, tfy, 2)

    # now get the normal advective velocities on the interfaces by solving
    # the Riemann problem
    uhat_adv = riemann(myg, u_xl, u_xr)
    vhat_adv = riemann(myg, v_yl, v_yr)

    # the left and right normal states are copied, since the transverse
    # correction of u updates u_xl and u_xr in place
    uhat_lr = (u_xl.copy(), u_xr.copy())
    vhat_lr = (v_yl.copy(), v_yr.copy())

    transverse_correct(myg, dt, u, u_xl, u_xr, u_yl, u_yr, uhat_adv, vhat_adv,
                       uadv_lr=uhat_lr, vadv_lr=vhat_lr)
    transverse_correct(myg, dt, v, v_xl, v_xr, v_yl, v_yr, uhat_adv, vhat_adv,
                       uadv_lr=uhat_lr, vadv_lr=vhat_lr)

    if not use_forces_in_trans:
        _add_force(myg, dt, u_xl, u_xr, u_yl, u_yr, tfx, 1)
        _add_force(myg, dt, v_xl, v_xr, v_yl, v_yr, tfy, 1)

    # Riemann problem -- this follows Burger's equation.  We don't use
    # any input velocity for the upwinding.  Also, we only care about
    # the normal states here (u on x and v on y)
    u_MAC = riemann_and_upwind(myg, u_xl, u_xr)
    v_MAC = riemann_and_upwind(myg, v_yl, v_yr)

    apply_edge_bcs(myg, bc, u_xl, u_xr, u_MAC, 0, "normal")
    apply_edge_bcs(myg, bc, v_yl, v_yr, v_MAC, 1, "normal")

    return u_MAC, v_MAC


def edge_states(myg, dt, scheme, q, u, v, u_MAC, v_MAC, tforce, bc,
                conservative=False, use_forces_in_trans=False,
                kinds=("scalar", "scalar")):
    """
    predict a transported quantity q to the faces, upwinding with the
    MAC velocities.

    Parameters
    ----------
    myg : Grid2d object
        the patch grid
    dt : float
        timestep
    scheme : PLMScheme or PPMScheme
        the normal predictor
    q : ArrayIndexer
        the quantity with ghost cells filled
    u, v : ArrayIndexer
        the cell-centered velocity
    u_MAC, v_MAC : ArrayIndexer
        the face velocities
    tforce : ArrayIndexer or None
        the forcing for q
    bc : BC object
        the boundary conditions of q
    conservative : bool
        is q advected in conservative form
    kinds : tuple of str
        what q is on the x- and y-faces ('normal', 'tangential',
        'scalar'), for the boundary values

    Returns
    -------
    q_xint, q_yint : ArrayIndexer
        q on the x- and y-faces
    """

    q_xl, q_xr, q_yl, q_yr = scheme.compute_face_states(myg, dt, q, u, v,
                                                        umac=u_MAC, vmac=v_MAC)

    if use_forces_in_trans:
        _add_force(myg, dt, q_xl, q_xr, q_yl, q_yr, tforce, 2)

    transverse_correct(myg, dt, q, q_xl, q_xr, q_yl, q_yr, u_MAC, v_MAC,
                       conservative=conservative)

    if not use_forces_in_trans:
        _add_force(myg, dt, q_xl, q_xr, q_yl, q_yr, tforce, 1)

    q_xint = upwind(myg, q_xl, q_xr, u_MAC)
    q_yint = upwind(myg, q_yl, q_yr, v_MAC)

    apply_edge_bcs(myg, bc, q_xl, q_xr, q_xint, 0, kinds[0])
    apply_edge_bcs(myg, bc, q_yl, q_yr, q_yint, 1, kinds[1])

    return q_xint, q_yint


#-----------------------------------------------------------------------------
# timestep and force helpers
#-----------------------------------------------------------------------------

def estdt(myg, u, v, tfx, tfy, cfl, small_vel=1.e-10):
    """
    the advective timestep of a patch: cfl times the time for the
    fastest velocity to cross a zone.  Where the forcing could
    accelerate the flow across a zone faster than that, the forcing
    limits the step instead.
    """

    dt = 1.e20

    umax = np.max(np.abs(u.v()))
    vmax = np.max(np.abs(v.v()))

    if umax > small_vel:
        dt = min(dt, myg.dx/umax)
    if vmax > small_vel:
        dt = min(dt, myg.dy/vmax)

    if tfx is not None:
        fx = np.max(np.abs(tfx.v()))
        fy = np.max(np.abs(tfy.v()))
        if fx > small_vel:
            dt = min(dt, np.sqrt(2.0*myg.dx/fx))
        if fy > small_vel:
            dt = min(dt, np.sqrt(2.0*myg.dy/fy))

    return cfl*dt


def test_umac_rho(myg, u_MAC, v_MAC, dt, verbose=0):
    """the CFL number of the MAC velocities on the faces of the patch"""

    ucfl = dt*np.max(np.abs(u_MAC.v(buf=(0, 1, 0, 0))))/myg.dx
    vcfl = dt*np.max(np.abs(v_MAC.v(buf=(0, 0, 0, 1))))/myg.dy

    cflmax = max(ucfl, vcfl)

    if cflmax > 1.0 and verbose > 0:
        msg.warning("warning: MAC velocity CFL = {}".format(cflmax))

    return cflmax


def sum_tf_gp_visc(tforce, gradp, visc_terms, rho):
    """the velocity forcing (force - grad p + viscous terms)/rho, in place"""
    if np.any(rho.v(buf=2) <= 0.0):
        msg.fail("ERROR: non-positive density in the velocity forcing")
    tforce.v(buf=2)[:, :] = (tforce.v(buf=2) - gradp.v(buf=2) +
                             visc_terms.v(buf=2))/rho.v(buf=2)
    return tforce


def sum_tf_divu_visc(tforce, divu, visc_terms, rho, s, conservative):
    """
    the scalar forcing, in place.  A conservative scalar picks up
    -s div u; a non-conservative one is divided by density.
    """
    if conservative:
        tforce.v(buf=2)[:, :] = tforce.v(buf=2) + visc_terms.v(buf=2) - \
            s.v(buf=2)*divu.v(buf=2)
    else:
        if np.any(rho.v(buf=2) <= 0.0):
            msg.fail("ERROR: non-positive density in the scalar forcing")
        tforce.v(buf=2)[:, :] = (tforce.v(buf=2) + visc_terms.v(buf=2))/rho.v(buf=2)
    return tforce


def are_any(forms, form, start, num):
    """are any of the components start .. start+num-1 advected in this form?"""
    return any(f == form for f in forms[start:start+num])

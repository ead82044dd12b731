"""
The synchronization of a coarse level with its finer levels, done
once the finer levels have caught up with it in time (post_timestep).

Advancing the levels independently leaves three mismatches on the
coarse/fine interface:

- the coarse cells next to a fine level were updated with coarse
  fluxes instead of the time-averaged fine fluxes.  reflux collects
  the difference into the sync sources Vsync and Ssync.

- the coarse MAC velocities do not agree with the averaged fine MAC
  velocities, so the composite MAC velocity field has a divergence
  there.  mac_sync finds the correction Usync that removes it and
  advects the state with Usync (using the edge states from the
  advance), adding the result to Vsync and Ssync.  The scalar part is
  applied to the new state right away.

- the level projections of the two levels each see only their side of
  the interface nodes.  level_sync projects dt Vsync together with the
  composite nodal divergence collected in the sync register, and
  corrects the velocity and pressure of the coarse level and of every
  finer level.

avg_down makes the covered coarse data consistent with the fine data.
"""

import numpy as np

import incompressible_amr.diffusion as diffusion
import incompressible_amr.elliptic as elliptic
import incompressible_amr.advection as advection
import incompressible_amr.godunov as godunov
import incompressible_amr.params as ns_params
import incompressible_amr.projection as projection
import mesh.multipatch as multipatch
import mesh.patch as patch
import multigrid.masked_cg as masked_cg

VELOCITIES = ["x-velocity", "y-velocity"]


def zero_covered(lev, mp):
    """zero every component of mp in the cells covered by the next finer level"""
    fine = lev.finer
    for cbox in fine.grids.coarsen(fine.ratio):
        for n, isect in mp.grids.intersections(cbox):
            p = mp.patches[n]
            for name in mp.names:
                patch.box_view(p.get_var(name), p.grid, isect)[:, :] = 0.0


def _divide_by_density(mp, names, rho):
    for pm, pr in zip(mp, rho):
        r = pr.get_var("density").v()
        for name in names:
            pm.get_var(name).v()[:, :] /= r


def _velocity_scale(lev):
    """the largest velocity component of the new state of lev"""
    return max(max(abs(lev.state.new.max(name)), abs(lev.state.new.min(name)))
               for name in VELOCITIES)


def _sync_canvas(lev, mp, name):
    """a level canvas of one sync component, with its ghost cells filled"""
    cd = mp.canvas_data([name])
    mp.gather(name, cd.get_var(name))
    cd.fill_BC(name)
    return cd


def reflux(lev):
    """
    turn the flux registers of the next finer level into the sync
    sources of the coarse level lev
    """

    fine = lev.finer
    p = lev.params
    scale = 1.0/lev.dt

    nonconservative = [name for name, form in zip(lev.scalars, lev.forms[2:])
                       if form == "nonconservative"]

    if diffusion.calc_viscosity(p) > 0.0 or p.scal_diff_coef > 0.0:
        fine.viscflux_reg.reflux(lev.Vsync, scale, names=VELOCITIES)
        fine.viscflux_reg.reflux(lev.Ssync, scale, names=lev.scalars)

    if p.do_mom_diff == 0:
        _divide_by_density(lev.Vsync, VELOCITIES, lev.rho_half)

    _divide_by_density(lev.Ssync, nonconservative, lev.rho_half)

    fine.advflux_reg.reflux(lev.Vsync, scale, names=VELOCITIES)
    fine.advflux_reg.reflux(lev.Ssync, scale, names=lev.scalars)

    zero_covered(lev, lev.Vsync)
    zero_covered(lev, lev.Ssync)


def avg_down(lev, initial=False):
    """
    average the state of the next finer level down onto lev, inject the
    fine pressure (its time average, or the new pressure on the initial
    step), and average divu and dsdt
    """

    fine = lev.finer
    r = fine.ratio

    multipatch.average_down(fine.state.new, lev.state.new, r, lev.names)

    if initial:
        source = fine.press.new
    else:
        source = fine.p_avg
    multipatch.inject_nodes(source, lev.press.new, r, ["pressure"])

    multipatch.average_down(fine.divu.new, lev.divu.new, r, ["divu"])
    multipatch.average_down(fine.dsdt.new, lev.dsdt.new, r, ["dsdt"])

    for l in [lev] + lev.finer_levels():
        l.make_rho_curr_time()


def mac_sync_compute(lev, u_sync, v_sync):
    """
    advect the state with the sync velocities, using the edge states
    of the advance, and subtract the result from the sync sources.  If
    lev is itself a fine level the sync fluxes go into its advective
    register.
    """

    p = lev.params
    cg = lev.canvas_grid()

    fluxes = {name: ([], []) for name in lev.names}

    for n, (box, pv, ps) in enumerate(zip(lev.grids, lev.Vsync, lev.Ssync)):
        myg = pv.grid

        us = myg.scratch_array()
        vs = myg.scratch_array()
        for a, c, idir in [(us, u_sync, 0), (vs, v_sync, 1)]:
            fbox = box.surrounding_nodes(idir)
            patch.box_view(a, myg, fbox)[:, :] = patch.box_view(c, cg, fbox)

        for name, form in zip(lev.names, lev.forms):
            q_xint, q_yint = lev.edges[n][name]

            if name in VELOCITIES:
                conservative = p.do_mom_diff == 1
                target = pv.get_var(name)
            else:
                conservative = form == "conservative"
                target = ps.get_var(name)

            flux_x, flux_y = advection.compute_fluxes(myg, us, vs, q_xint, q_yint)
            sync_aofs = advection.compute_aofs(myg, us, vs, q_xint, q_yint,
                                               flux_x=flux_x, flux_y=flux_y,
                                               conservative=conservative)
            target.v()[:, :] -= sync_aofs.v()

            fluxes[name][0].append(flux_x)
            fluxes[name][1].append(flux_y)

    if lev.level > 0 and p.do_reflux:
        for name, (fxs, fys) in fluxes.items():
            lev.advflux_reg.fine_add(fxs, 0, lev.dt, name)
            lev.advflux_reg.fine_add(fys, 1, lev.dt, name)


def _diffuse_sync(lev, mp, name, coef, alpha, mult):
    """
    implicit diffusion of one sync component: (alpha - theta dt k L) S' = alpha S.
    The diffusive fluxes of S' go into lev's viscous register (times mult)
    when lev is itself a fine level.
    """

    p = lev.params
    cg = lev.canvas_grid()
    theta = p.be_cn_theta
    dt = lev.dt

    sync = _sync_canvas(lev, mp, name).get_var(name)

    rhs = cg.scratch_array()
    rhs.d[:, :] = np.asarray(alpha)*sync

    mask = None
    if lev.level > 0:
        mask = lev.valid_mask()

    s_new, converged, residual = diffusion.diffuse(
        cg, mp.bcs[name], rhs, alpha, coef, dt, theta, mask=mask,
        x0=sync, rtol=p.diff_rtol, verbose=lev.verbose-1)
    projection.check_solve(converged, residual, "sync diffusion of {}".format(name),
                           lev.level, lev.state.t_new, p.diff_abort_on_fail)

    mp.scatter(s_new, name)

    if lev.level > 0 and p.do_reflux:
        flux_x, flux_y = diffusion.viscous_fluxes(cg.scratch_array(), s_new, coef, theta)
        lev.viscflux_reg.fine_add([flux_x], 0, mult, name)
        lev.viscflux_reg.fine_add([flux_y], 1, mult, name)


def interp_sync_to_finer(lev, mp, names):
    """
    interpolate the sync increments of lev onto every finer level and
    add them to the new state there

    Returns
    -------
    interps : dict
        for each finer level number, the MultiPatch of interpolated increments
    """

    interps = {}

    canvases = {name: _sync_canvas(lev, mp, name) for name in names}
    crse_grid = lev.canvas_grid()

    for f in lev.finer_levels():
        fg = f.canvas_grid()
        incr = f.Ssync.like(names)

        new_canvases = {}
        for name in names:
            cd = canvases[name]
            fd = incr.canvas_data([name])
            fd.get_var(name).d[:, :] = multipatch.prolong_cells(
                cd.get_var(name), crse_grid, fg, f.ratio)
            incr.scatter(fd.get_var(name), name)
            new_canvases[name] = fd

            for pi, ps in zip(incr, f.state.new):
                ps.get_var(name).v()[:, :] += pi.get_var(name).v()

        interps[f.level] = incr
        canvases = new_canvases
        crse_grid = fg

    return interps


def mac_sync(lev):
    """
    the MAC sync: remove the composite divergence of the MAC
    velocities on lev and apply the resulting scalar changes
    """

    fine = lev.finer
    p = lev.params
    dt = lev.dt
    cg = lev.canvas_grid()
    t_new = lev.state.t_new

    if lev.verbose > 1:
        print("  MAC sync on level {}".format(lev.level))

    # minus the composite divergence, from the MAC register
    rhs = cg.scratch_array()
    fine.mac_reg.reflux_canvas(rhs, cg, 1.0, "mac")
    rhs.d[lev.covered_mask()] = 0.0

    rho = lev.fill_canvas("state", 0.5*(lev.state.t_old + t_new),
                          "density").get_var("density")

    mask = None
    if lev.level > 0:
        mask = lev.valid_mask()

    phi, u_sync, v_sync, converged, residual = projection.mac_sync_solve(
        cg, lev.phys_bcs, rho, rhs.d, mask=mask, rtol=p.proj_rtol,
        max_iter=p.proj_max_iter, verbose=lev.verbose-1,
        vel_scale=_velocity_scale(lev))
    projection.check_solve(converged, residual, "MAC sync projection",
                           lev.level, t_new, p.proj_abort_on_fail)

    mac_sync_compute(lev, u_sync, v_sync)

    # Ssync is now an increment rather than a rate
    for ps in lev.Ssync:
        ps.data[:, :, :] *= dt

    # the part of a conservative scalar's sync that only comes from
    # the density sync is held out of the diffusion
    delta = {}
    held_out = []
    if godunov.are_any(lev.forms, "conservative", ns_params.FIRST_TRACER, p.num_tracers):
        held_out = [name for name, form in zip(lev.scalars[1:], lev.forms[3:])
                    if form == "conservative"]

    for name in held_out:
        delta[name] = []
        for ps, pn in zip(lev.Ssync, lev.state.new):
            ds = pn.get_var(name).v()/pn.get_var("density").v()*ps.get_var("density").v()
            ps.get_var(name).v()[:, :] -= ds
            delta[name].append(ds)

    if p.do_mom_diff == 1:
        _divide_by_density(lev.Vsync, VELOCITIES, lev.rho_ctime)

    mu = diffusion.calc_viscosity(p)
    if mu > 0.0:
        rho_half = lev.rho_half.gather("density")
        for name in VELOCITIES:
            _diffuse_sync(lev, lev.Vsync, name, mu, rho_half, dt)

    for name in lev.scalars:
        k = diffusion.calc_diffusivity(p, name)
        if k > 0.0:
            alpha = diffusion.diffusion_alpha(p, name, lev.rho_half.gather("density"))
            _diffuse_sync(lev, lev.Ssync, name, k, alpha, 1.0)

    for name, ds_list in delta.items():
        for ps, ds in zip(lev.Ssync, ds_list):
            ps.get_var(name).v()[:, :] += ds

    for ps, pn in zip(lev.Ssync, lev.state.new):
        for name in lev.scalars:
            pn.get_var(name).v()[:, :] += ps.get_var(name).v()

    lev.make_rho_curr_time()
    if lev.level > 0:
        lev.incr_rho_avg(1.0, source=lev.Ssync)

    interps = interp_sync_to_finer(lev, lev.Ssync, lev.scalars)
    for f in lev.finer_levels():
        f.make_rho_curr_time()
        f.incr_rho_avg(1.0, source=interps[f.level])


def level_sync(lev):
    """
    the nodal sync projection of lev: project dt Vsync together with
    the composite divergence on the coarse/fine interface, and correct
    the velocity and pressure on lev and all of the finer levels
    """

    fine = lev.finer
    p = lev.params
    dt = lev.dt
    cg = lev.canvas_grid()
    t_new = lev.state.t_new
    periodic = lev.geom.periodic

    if lev.verbose > 1:
        print("  level sync on level {}".format(lev.level))

    valid = lev.valid_mask()
    covered = lev.covered_mask()

    rhs = fine.sync_reg.init_rhs(cg, lev.phys_bcs)

    dv = []
    for name in VELOCITIES:
        c = _sync_canvas(lev, lev.Vsync, name).get_var(name)
        d = cg.scratch_array()
        d.d[:, :] = dt*c
        d.d[covered] = 0.0
        dv.append(d)

    cw = elliptic.cell_weights(cg, valid, periodic)
    rhs.d[:, :] += projection.nodal_divergence(cg, dv[0], dv[1], cw) / \
        elliptic.node_weights(cg, periodic)

    rho = lev.fill_canvas("state", 0.5*(lev.state.t_old + t_new),
                          "density").get_var("density")

    phi, corr_x, corr_y, converged, residual = projection.level_sync_project(
        cg, lev.phys_bcs, periodic, valid, rho, rhs, rtol=p.proj_rtol,
        max_iter=p.proj_max_iter, verbose=lev.verbose-1,
        vel_scale=_velocity_scale(lev))
    projection.check_solve(converged, residual, "level sync projection",
                           lev.level, t_new, p.proj_abort_on_fail)

    for name, corr in zip(VELOCITIES, [corr_x, corr_y]):
        vs = lev.Vsync.gather(name)
        u = lev.state.new.gather(name)
        u.d[:, :] += dt*vs - corr
        lev.state.new.scatter(u, name)

    pres = lev.press.new.gather("pressure")
    pres.d[:, :] += phi/dt
    lev.press.new.scatter(pres, "pressure")

    # the finer levels get the interpolated correction
    phi_c = phi
    crse_grid = cg
    for f in lev.finer_levels():
        fg = f.canvas_grid()
        phi_f = multipatch.prolong_nodes(phi_c, crse_grid, fg, f.ratio)
        gx, gy = masked_cg.nodal_gradient(phi_f, fg.dx, fg.dy)

        rho_avg = np.asarray(f.rho_avg.gather("density"))
        fvalid = f.valid_mask()

        for name, g in zip(VELOCITIES, [gx, gy]):
            u = f.state.new.gather(name)
            u.d[fvalid] -= g[fvalid]/rho_avg[fvalid]
            f.state.new.scatter(u, name)

        pres = f.press.new.gather("pressure")
        pres.d[:, :] += phi_f/dt
        f.press.new.scatter(pres, "pressure")

        phi_c = phi_f
        crse_grid = fg


def post_timestep(lev):
    """
    bring lev and its finer levels back in sync after the finer levels
    completed their subcycles: reflux, average down, MAC sync, level sync
    """

    if lev.finer is None:
        return

    p = lev.params

    tm_sync = lev.tc.timer("sync")
    tm_sync.begin()

    if lev.verbose > 0:
        print("synchronizing level {} with level {}".format(lev.level, lev.finer.level))

    if p.do_reflux:
        reflux(lev)

    avg_down(lev)

    if p.do_sync_proj:
        if p.do_reflux:
            mac_sync(lev)
        level_sync(lev)

    for l in [lev] + lev.finer_levels():
        l.fill_ghosts("state", l.state.t_new)
        l.fill_ghosts("press", l.press.t_new)

    tm_sync.end()

"""
One level of the incompressible, variable-density Navier-Stokes
solver.  The level owns its state (velocity, density, tracers), its
node-centered pressure, and the registers that connect it to the next
coarser level.

A level timestep (advance) is the approximate projection method of
Almgren, Bell, Colella, Howell & Welcome (1998):

  1. predict the normal velocities to the faces at the half time
  2. MAC-project them so they are discretely divergence free
  3. advect the velocity and the scalars with the MAC velocities
  4. update density and scalars (with implicit diffusion)
  5. update the velocity (with implicit viscosity), using the
     lagged pressure gradient
  6. project the new velocity with the nodal projection, which also
     gives the new pressure

All of the per-patch work (the Godunov predictions) is done patch by
patch; the elliptic solves are done on a level canvas, gathered from
the patches and scattered back.
"""

import numpy as np

import incompressible_amr.advection as advection
import incompressible_amr.derives as derives
import incompressible_amr.diffusion as diffusion
import incompressible_amr.elliptic as elliptic
import incompressible_amr.godunov as godunov
import incompressible_amr.projection as projection
import mesh.array_indexer as ai
import mesh.boundary as bnd
import mesh.multipatch as multipatch
import mesh.patch as patch
import multigrid.masked_cg as masked_cg
from incompressible_amr.flux_register import FluxRegister
from incompressible_amr.sync_register import SyncRegister
from util import msg, profile


def scal_minmax(s_old, s_new):
    """
    clamp the new scalar to the extrema of the old scalar over the 3x3
    neighborhood of each zone
    """
    stencil = [s_old.ip_jp(i, j) for i in (-1, 0, 1) for j in (-1, 0, 1)]
    smin = np.min(stencil, axis=0)
    smax = np.max(stencil, axis=0)
    s_new.v()[:, :] = np.clip(s_new.v(), smin, smax)


class NavierStokesLevel(object):
    """the data and the single-level advance of one AMR level"""

    def __init__(self, level, geom, grids, params, phys_bcs, ratio=2,
                 timers=None):
        """
        Parameters
        ----------
        level : int
            the level number (0 is the coarsest)
        geom : Geometry
            the level geometry
        grids : BoxArray
            the boxes of the level
        params : NSParams
            the solver parameters
        phys_bcs : list of str
            the physical boundary types [xlb, xrb, ylb, yrb]
        ratio : int
            the refinement ratio to the next coarser level
        timers : TimerCollection, optional
        """

        self.level = level
        self.geom = geom
        self.grids = grids
        self.params = params
        self.phys_bcs = list(phys_bcs)
        self.ratio = ratio

        if timers is None:
            self.tc = profile.TimerCollection()
        else:
            self.tc = timers

        self.verbose = params.verbose

        self.scheme = godunov.make_scheme(params)
        self.ng = max(4, godunov.hypgrow(params.scheme, params.limiter))

        self.coarser = None
        self.finer = None

        self.names = list(params.state_names)
        self.forms = list(params.advection_forms)
        self.scalars = self.names[2:]

        xlb, xrb, ylb, yrb = self.phys_bcs
        bc = bnd.BC(xlb=xlb, xrb=xrb, ylb=ylb, yrb=yrb)
        bc_xodd = bnd.BC(xlb=xlb, xrb=xrb, ylb=ylb, yrb=yrb, odd_reflect_dir="x")
        bc_yodd = bnd.BC(xlb=xlb, xrb=xrb, ylb=ylb, yrb=yrb, odd_reflect_dir="y")

        self.bcs = {"x-velocity": bc_xodd, "y-velocity": bc_yodd}
        for name in self.scalars:
            self.bcs[name] = bc

        ng = self.ng

        self.state = multipatch.StateData("state", geom, grids, ng,
                                          self.names, self.bcs)
        self.press = multipatch.StateData("pressure", geom, grids, ng,
                                          ["pressure"], {"pressure": bc},
                                          centering="node")
        self.divu = multipatch.StateData("divu", geom, grids, ng,
                                         ["divu"], {"divu": bc})
        self.dsdt = multipatch.StateData("dsdt", geom, grids, ng,
                                         ["dsdt"], {"dsdt": bc})

        for sd, func in [(self.state, derives.derive_primitives),
                         (self.press, derives.derive_pressure)]:
            for p in list(sd.old) + list(sd.new):
                p.add_derived(func)

        self.rho_half = multipatch.MultiPatch(geom, grids, ng, ["density"],
                                              {"density": bc})
        self.rho_ctime = self.rho_half.like()
        self.rho_avg = self.rho_half.like()
        self.p_avg = multipatch.MultiPatch(geom, grids, ng, ["pressure"],
                                           {"pressure": bc}, centering="node")

        self.Vsync = multipatch.MultiPatch(geom, grids, ng,
                                           ["x-velocity", "y-velocity"],
                                           self.bcs)
        self.Ssync = multipatch.MultiPatch(geom, grids, ng, self.scalars, self.bcs)

        # the registers on our boundary with the next coarser level
        self.advflux_reg = None
        self.viscflux_reg = None
        self.mac_reg = None
        self.sync_reg = None

        self.dt = 0.0
        self.iteration = 1
        self.ncycle = 1

        # per-step face data, one entry per patch
        self.u_mac = []
        self.v_mac = []
        self.aofs = []
        self.edges = []

    def __str__(self):
        return "level {}: {} boxes, {}".format(self.level, len(self.grids), self.geom)

    #-------------------------------------------------------------------------
    # hierarchy bookkeeping
    #-------------------------------------------------------------------------

    def link(self, coarser):
        """make coarser the next coarser level, and build our registers"""
        self.coarser = coarser
        coarser.finer = self

        cgeom = coarser.geom
        self.advflux_reg = FluxRegister(self.grids, cgeom, self.ratio, self.names)
        self.viscflux_reg = FluxRegister(self.grids, cgeom, self.ratio, self.names)
        self.mac_reg = FluxRegister(self.grids, cgeom, self.ratio, ["mac"])
        self.sync_reg = SyncRegister(self.grids, cgeom, self.ratio)

    def chain(self):
        """the levels 0 .. us"""
        levels = [self]
        lev = self
        while lev.coarser is not None:
            lev = lev.coarser
            levels.insert(0, lev)
        return levels

    def finer_levels(self):
        levels = []
        lev = self.finer
        while lev is not None:
            levels.append(lev)
            lev = lev.finer
        return levels

    def canvas_grid(self):
        return self.state.new.canvas_grid

    def valid_mask(self):
        return self.state.new.valid_mask()

    def covered_mask(self):
        """True on the cells of the level canvas that a finer level covers"""
        cg = self.canvas_grid()
        if self.finer is None:
            return np.zeros((cg.qx, cg.qy), dtype=bool)
        return multipatch.covered_mask(self.geom, self.finer.grids,
                                       self.finer.ratio, cg.ng)

    def fill_canvas(self, state_type, time, name):
        """the level canvas of one component at time, coarse data outside of us"""
        states = [getattr(lev, state_type) for lev in self.chain()]
        return multipatch.fill_patch(states, self.level, time, name, self.ratio)

    def fill_ghosts(self, state_type, time, names=None, target=None):
        """fill the ghost cells of our patches of one state type"""
        sd = getattr(self, state_type)
        if names is None:
            names = sd.new.names
        states = [getattr(lev, state_type) for lev in self.chain()]
        multipatch.fill_ghost_cells(states, self.level, time, names,
                                    self.ratio, target=target)

    def _gather(self, arrays, node=False):
        """copy per-patch arrays (valid region) onto a level canvas"""
        cg = self.canvas_grid()
        if node:
            canvas = cg.node_scratch_array()
        else:
            canvas = cg.scratch_array()
        for box, a in zip(self.grids, arrays):
            vbox = box.surrounding_nodes() if node else box
            patch.box_view(canvas, cg, vbox)[:, :] = patch.box_view(a, a.g, vbox)
        return canvas

    def _gather_faces(self, arrays, idir, buf=1):
        """
        copy per-patch face arrays onto a level canvas.  The faces
        within buf of each patch go first, so that the valid faces of a
        neighbor take precedence over them.
        """
        cg = self.canvas_grid()
        canvas = cg.scratch_array()
        for grow in (buf, 0):
            for box, a in zip(self.grids, arrays):
                fbox = box.surrounding_nodes(idir).grow(grow)
                patch.box_view(canvas, cg, fbox)[:, :] = patch.box_view(a, a.g, fbox)
        return canvas

    def _scatter_faces(self, canvas, arrays, idir, buf=1):
        cg = self.canvas_grid()
        for box, a in zip(self.grids, arrays):
            fbox = box.surrounding_nodes(idir).grow(buf)
            patch.box_view(a, a.g, fbox)[:, :] = patch.box_view(canvas, cg, fbox)

    #-------------------------------------------------------------------------
    # time-centered density and pressure
    #-------------------------------------------------------------------------

    def make_rho_prev_time(self):
        self.rho_half.copy_from(self.state.old, ["density"])

    def make_rho_curr_time(self):
        """rho_ctime is the density at the new time"""
        self.rho_ctime.copy_from(self.state.new, ["density"])

    def make_rho_half(self):
        """the average of the old and new density"""
        for ph, po, pn in zip(self.rho_half, self.state.old, self.state.new):
            ph.get_var("density").d[:, :] = 0.5*(po.get_var("density").d +
                                                 pn.get_var("density").d)

    def init_rho_avg(self, alpha):
        for pa, po in zip(self.rho_avg, self.state.old):
            pa.get_var("density").d[:, :] = alpha*po.get_var("density").d

    def incr_rho_avg(self, alpha, source=None):
        """
        add alpha times rho_ctime (or times the density component of
        source, a MultiPatch) to the time-averaged density
        """
        if source is None:
            source = self.rho_ctime
        for pa, ps in zip(self.rho_avg, source):
            pa.get_var("density").d[:, :] += alpha*ps.get_var("density").d

    def incr_p_avg(self):
        for pa, pn in zip(self.p_avg, self.press.new):
            pa.get_var("pressure").d[:, :] += pn.get_var("pressure").d/self.ncycle

    def pressure_gradient(self, pp):
        """the cell-centered gradient of the node pressure of one patch"""
        myg = pp.grid
        gx, gy = masked_cg.nodal_gradient(pp.get_var("pressure"), myg.dx, myg.dy)
        return ai.ArrayIndexer(gx, grid=myg), ai.ArrayIndexer(gy, grid=myg)

    def get_force(self, myg, rho):
        """the body force on the momentum: gravity in y"""
        fx = myg.scratch_array()
        fy = myg.scratch_array()
        fy.d[:, :] = self.params.gravity*np.asarray(rho)
        return fx, fy

    def velocity_forcing(self, p, pp, include_visc=True):
        """
        the velocity forcing (force - grad p + mu L U)/rho on one patch

        Parameters
        ----------
        p : CellCenterData2d
            the patch state, with ghost cells filled
        pp : NodeData2d
            the patch pressure, with ghost nodes filled
        """
        myg = p.grid
        rho = p.get_var("density")

        tfx, tfy = self.get_force(myg, rho)
        gpx, gpy = self.pressure_gradient(pp)

        mu = diffusion.calc_viscosity(self.params) if include_visc else 0.0
        vx = diffusion.get_visc_terms(p.get_var("x-velocity"), mu)
        vy = diffusion.get_visc_terms(p.get_var("y-velocity"), mu)

        godunov.sum_tf_gp_visc(tfx, gpx, vx, rho)
        godunov.sum_tf_gp_visc(tfy, gpy, vy, rho)

        return tfx, tfy

    #-------------------------------------------------------------------------
    # the advance
    #-------------------------------------------------------------------------

    def advance(self, time, dt, iteration=1, ncycle=1, initial_step=False):
        """
        advance the level from time to time + dt.

        Parameters
        ----------
        time : float
            the starting time
        dt : float
            the level timestep
        iteration : int
            which subcycle of the coarser level's step this is (1-based)
        ncycle : int
            the number of subcycles
        initial_step : bool
            skip the level projection (used by the initial pressure
            iterations)

        Returns
        -------
        dt_test : float
            the timestep the CFL condition suggests for the next step
        """

        tm_advance = self.tc.timer("advance")
        tm_advance.begin()

        if self.verbose > 0:
            print("advancing level {}, t = {}, dt = {}, iteration {} of {}".format(
                self.level, time, dt, iteration, ncycle))

        self.advance_setup(time, dt, iteration, ncycle)

        dt_test = self.comp_dt_test(dt)

        self.predict_velocity(dt)
        self.mac_project(time, dt)

        if self.params.do_mom_diff == 0:
            self.velocity_advection(dt)

        self.scalar_advection(dt)
        self.scalar_update(dt, ["density"])
        self.make_rho_curr_time()
        self.make_rho_half()

        if self.params.do_mom_diff == 1:
            self.velocity_advection(dt)

        self.scalar_update(dt, self.scalars[1:])

        self.calc_divu()
        self.calc_dsdt()

        self.velocity_update(dt)

        if not initial_step:
            if self.level > 0:
                w = 0.5 if iteration == ncycle else 1.0
                self.incr_rho_avg(w/ncycle)

            self.level_projector(dt, time, iteration)

            if self.level > 0:
                if iteration == 1:
                    self.p_avg.set_val(0.0)
                self.incr_p_avg()

        self.advance_cleanup()

        tm_advance.end()

        return dt_test

    def advance_setup(self, time, dt, iteration, ncycle):
        self.dt = dt
        self.iteration = iteration
        self.ncycle = ncycle

        for sd in [self.state, self.press, self.divu, self.dsdt]:
            sd.swap_time_levels(dt)

        self.fill_ghosts("state", time, target=self.state.old)
        self.fill_ghosts("press", time, target=self.press.old)

        if self.finer is not None:
            self.Vsync.set_val(0.0)
            self.Ssync.set_val(0.0)
            for reg in [self.finer.advflux_reg, self.finer.viscflux_reg,
                        self.finer.mac_reg]:
                reg.set_val(0.0)

        self.make_rho_prev_time()
        self.rho_ctime.copy_from(self.state.old, ["density"])

        if self.level > 0 and iteration == 1:
            self.init_rho_avg(0.5/ncycle)

        self.u_mac = []
        self.v_mac = []
        self.aofs = [dict() for _ in self.grids]
        self.edges = [dict() for _ in self.grids]

    def comp_dt_test(self, dt):
        """dt times the factor the old velocities allow the step to change by"""
        cflmax = 0.0
        for p in self.state.old:
            myg = p.grid
            u = p.get_var("x-velocity")
            v = p.get_var("y-velocity")
            cflmax = max(cflmax, dt*np.max(np.abs(u.v()))/myg.dx,
                         dt*np.max(np.abs(v.v()))/myg.dy)

        if cflmax == 0.0:
            return dt*self.params.change_max
        return dt*min(self.params.change_max, self.params.cfl/cflmax)

    def predict_velocity(self, dt):
        """predict the normal velocities to the faces at the half time"""
        if self.verbose > 1:
            print("  making MAC velocities")

        cflmax = 0.0
        for p, pp in zip(self.state.old, self.press.old):
            myg = p.grid
            tfx, tfy = self.velocity_forcing(p, pp)
            u_MAC, v_MAC = godunov.extrap_vel_to_faces(
                myg, dt, self.scheme,
                p.get_var("x-velocity"), p.get_var("y-velocity"),
                tfx, tfy, p.BCs["density"],
                use_forces_in_trans=self.params.use_forces_in_trans)
            self.u_mac.append(u_MAC)
            self.v_mac.append(v_MAC)

            cflmax = max(cflmax, godunov.test_umac_rho(myg, u_MAC, v_MAC, dt,
                                                      verbose=self.verbose))

        return cflmax

    def mac_project(self, time, dt):
        """
        project the predicted face velocities on the level canvas, and
        record the MAC fluxes in the MAC registers
        """
        if self.verbose > 1:
            print("  MAC projection")

        cg = self.canvas_grid()

        u_c = self._gather_faces(self.u_mac, 0)
        v_c = self._gather_faces(self.v_mac, 1)

        rho = self.fill_canvas("state", time, "density").get_var("density")

        mask = None
        if self.level > 0:
            mask = self.valid_mask()

        p = self.params
        phi, converged, residual = projection.mac_project(
            cg, self.phys_bcs, rho, u_c, v_c, dt, mask=mask,
            rtol=p.proj_rtol, max_iter=p.proj_max_iter, verbose=self.verbose-1)
        projection.check_solve(converged, residual, "MAC projection",
                               self.level, time, p.proj_abort_on_fail)

        self._scatter_faces(u_c, self.u_mac, 0)
        self._scatter_faces(v_c, self.v_mac, 1)

        if p.do_reflux:
            for idir, vel in [(0, u_c), (1, v_c)]:
                flux = cg.scratch_array()
                flux.d[:, :] = vel*self.geom.area(idir)
                if self.finer is not None:
                    self.finer.mac_reg.crse_init([flux], idir, -1.0, "mac")
                if self.level > 0:
                    self.mac_reg.fine_add([flux], idir, 1.0/self.ncycle, "mac")

    def record_fluxes(self, reg_name, name, fluxes_x, fluxes_y, dt):
        """
        put our fluxes of component name into the registers: the
        finer level's (as its coarse fluxes) and our own (as fine fluxes)
        """
        if not self.params.do_reflux:
            return

        if self.finer is not None:
            reg = getattr(self.finer, reg_name)
            reg.crse_init(fluxes_x, 0, -dt, name)
            reg.crse_init(fluxes_y, 1, -dt, name)

        if self.level > 0:
            reg = getattr(self, reg_name)
            reg.fine_add(fluxes_x, 0, dt, name)
            reg.fine_add(fluxes_y, 1, dt, name)

    def _store(self, n, name, result):
        aofs, flux_x, flux_y, q_xint, q_yint = result
        self.aofs[n][name] = aofs
        self.edges[n][name] = (q_xint, q_yint)
        return flux_x, flux_y

    def velocity_advection(self, dt):
        """the advective term of the velocity (or momentum) on each patch"""
        if self.verbose > 1:
            print("  making u, v edge states")

        fluxes = {"x-velocity": ([], []), "y-velocity": ([], [])}

        for n, (p, pp) in enumerate(zip(self.state.old, self.press.old)):
            myg = p.grid
            u = p.get_var("x-velocity")
            v = p.get_var("y-velocity")
            rho = p.get_var("density")

            tfx, tfy = self.velocity_forcing(p, pp)

            for name, q, tf, kinds in [("x-velocity", u, tfx, ("normal", "tangential")),
                                       ("y-velocity", v, tfy, ("tangential", "normal"))]:

                if self.params.do_mom_diff == 0:
                    result = advection.advect_state(
                        myg, dt, self.scheme, q, u, v, self.u_mac[n], self.v_mac[n],
                        tf, p.BCs[name], conservative=False,
                        use_forces_in_trans=self.params.use_forces_in_trans,
                        kinds=kinds)
                else:
                    mom = myg.scratch_array()
                    mom.d[:, :] = rho*q
                    mom_force = myg.scratch_array()
                    mom_force.d[:, :] = rho*tf
                    result = advection.advect_state(
                        myg, dt, self.scheme, mom, u, v, self.u_mac[n], self.v_mac[n],
                        mom_force, p.BCs[name], conservative=True,
                        use_forces_in_trans=self.params.use_forces_in_trans,
                        kinds=kinds)

                fx, fy = self._store(n, name, result)
                fluxes[name][0].append(fx)
                fluxes[name][1].append(fy)

        for name, (fxs, fys) in fluxes.items():
            self.record_fluxes("advflux_reg", name, fxs, fys, dt)

    def scalar_advection(self, dt):
        """the advective term of density and the tracers on each patch"""
        if self.verbose > 1:
            print("  making scalar edge states")

        fluxes = {name: ([], []) for name in self.scalars}

        for n, (p, pd) in enumerate(zip(self.state.old, self.divu.old)):
            myg = p.grid
            rho = p.get_var("density")
            divu = pd.get_var("divu")

            tforces = {}
            for name, form in zip(self.scalars, self.forms[2:]):
                s = p.get_var(name)
                k = diffusion.calc_diffusivity(self.params, name)
                visc = diffusion.get_visc_terms(s, k)
                tf = myg.scratch_array()
                godunov.sum_tf_divu_visc(tf, divu, visc, rho, s,
                                         form == "conservative")
                tforces[name] = tf

            results = advection.advect_scalars(
                myg, dt, self.scheme, p, self.scalars, self.forms[2:],
                self.u_mac[n], self.v_mac[n], tforces,
                use_forces_in_trans=self.params.use_forces_in_trans)

            for name in self.scalars:
                fx, fy = self._store(n, name, results[name])
                fluxes[name][0].append(fx)
                fluxes[name][1].append(fy)

        for name, (fxs, fys) in fluxes.items():
            self.record_fluxes("advflux_reg", name, fxs, fys, dt)

    def scalar_update(self, dt, names):
        """
        the new density and tracers: S^{n+1} = S^n - dt Aofs, followed
        by the implicit diffusion solve for diffusive tracers
        """
        if self.verbose > 1:
            print("  updating {}".format(", ".join(names)))

        for name in names:
            for n, (po, pn) in enumerate(zip(self.state.old, self.state.new)):
                so = po.get_var(name)
                sn = pn.get_var(name)
                sn.v()[:, :] = so.v() - dt*self.aofs[n][name].v()

            if diffusion.is_diffusive(self.params, name):
                self.diffuse_scalar(name, dt)

            do_minmax = self.params.do_denminmax if name == "density" \
                else self.params.do_scalminmax

            for n, (po, pn) in enumerate(zip(self.state.old, self.state.new)):
                sn = pn.get_var(name)
                if do_minmax:
                    scal_minmax(po.get_var(name), sn)

                if not np.all(np.isfinite(sn.v())):
                    msg.fail("ERROR: non-finite {} on level {} at t = {} in patch {}".format(
                        name, self.level, self.state.t_new, n))

    def _diffusion_solve(self, name, rhs, alpha, coef, dt, x0):
        """the Helmholtz solve of component name on the level canvas"""
        cg = self.canvas_grid()
        p = self.params

        mask = None
        bndry = None
        if self.level > 0:
            mask = self.valid_mask()
            bndry = self.fill_canvas("state", self.state.t_new, name).get_var(name)

        s_new, converged, residual = diffusion.diffuse(
            cg, self.bcs[name], rhs, alpha, coef, dt, p.be_cn_theta,
            mask=mask, bndry=bndry, x0=x0, rtol=p.diff_rtol,
            verbose=self.verbose-1)

        projection.check_solve(converged, residual, "diffusion of {}".format(name),
                               self.level, self.state.t_new, p.diff_abort_on_fail)

        return s_new

    def diffuse_scalar(self, name, dt):
        """
        (alpha - theta dt k L) s^{n+1} = alpha s* + (1 - theta) dt k L s^n
        on the level canvas, with s* the explicit update already in the
        new state
        """
        cg = self.canvas_grid()
        k = diffusion.calc_diffusivity(self.params, name)
        theta = self.params.be_cn_theta

        s_old = self.fill_canvas("state", self.state.t_old, name).get_var(name)
        s_star = self.state.new.gather(name)

        rho_half = self.rho_half.gather("density")
        alpha = diffusion.diffusion_alpha(self.params, name, rho_half)

        rhs = cg.scratch_array()
        rhs.v()[:, :] = np.asarray(alpha*s_star)[cg.ilo:cg.ihi+1, cg.jlo:cg.jhi+1] + \
            (1.0 - theta)*dt*k*s_old.lap()

        s_new = self._diffusion_solve(name, rhs, alpha, k, dt, s_star)
        self.state.new.scatter(s_new, name)

        flux_x, flux_y = diffusion.viscous_fluxes(s_old, s_new, k, theta)
        self.record_fluxes("viscflux_reg", name, [flux_x], [flux_y], dt)

    def calc_divu(self):
        """the flow is incompressible: no volume sources"""
        self.divu.new.set_val(0.0)

    def calc_dsdt(self):
        self.dsdt.new.set_val(0.0)

    def velocity_update(self, dt):
        """
        the new velocity from the advective term, the lagged pressure
        gradient, the force and the (implicit) viscous terms
        """
        if self.verbose > 1:
            print("  doing provisional update of u, v")

        cg = self.canvas_grid()
        p = self.params
        theta = p.be_cn_theta
        mu = diffusion.calc_viscosity(p)

        pres = self.fill_canvas("press", self.press.t_old, "pressure").get_var("pressure")
        gx, gy = masked_cg.nodal_gradient(pres, cg.dx, cg.dy)

        rho_half = ai.ArrayIndexer(np.asarray(self.rho_half.gather("density")), grid=cg)

        if p.do_mom_diff == 0:
            rho_o = rho_half
            alpha = rho_half
        else:
            rho_o = self.fill_canvas("state", self.state.t_old, "density").get_var("density")
            alpha = ai.ArrayIndexer(np.asarray(self.state.new.gather("density")), grid=cg)

        fx, fy = self.get_force(cg, rho_half)

        for name, gp, force in [("x-velocity", gx, fx), ("y-velocity", gy, fy)]:
            U_old = self.fill_canvas("state", self.state.t_old, name).get_var(name)
            aofs = self._gather([a[name] for a in self.aofs])

            rhs = cg.scratch_array()
            rhs.v()[:, :] = rho_o.v()*U_old.v() + dt*(
                -gp[cg.ilo:cg.ihi+1, cg.jlo:cg.jhi+1] + force.v())

            if p.do_mom_diff == 0:
                rhs.v()[:, :] -= dt*rho_half.v()*aofs.v()
            else:
                rhs.v()[:, :] -= dt*aofs.v()

            if mu > 0.0:
                rhs.v()[:, :] += (1.0 - theta)*dt*mu*U_old.lap()
                U_new = self._diffusion_solve(name, rhs, alpha, mu, dt,
                                              self.state.new.gather(name))

                flux_x, flux_y = diffusion.viscous_fluxes(U_old, U_new, mu, theta)
                self.record_fluxes("viscflux_reg", name, [flux_x], [flux_y], dt)
            else:
                U_new = cg.scratch_array()
                np.divide(rhs.v(), alpha.v(), out=U_new.v(), where=alpha.v() > 0.0)

            self.state.new.scatter(U_new, name)

    def level_projector(self, dt, time, iteration):
        """
        the nodal projection of the new velocity, which also updates
        the pressure, and the sync register contributions
        """
        if self.verbose > 1:
            print("  level projection")

        cg = self.canvas_grid()
        p = self.params
        t_new = self.state.t_new
        periodic = self.geom.periodic

        valid = self.valid_mask()

        u_cd = self.fill_canvas("state", t_new, "x-velocity")
        v_cd = self.fill_canvas("state", t_new, "y-velocity")
        u = u_cd.get_var("x-velocity")
        v = v_cd.get_var("y-velocity")

        rho = self.fill_canvas("state", 0.5*(self.state.t_old + t_new),
                               "density").get_var("density")

        phi, converged, residual = projection.level_project(
            cg, self.phys_bcs, periodic, valid, rho, u, v,
            rtol=p.proj_rtol, max_iter=p.proj_max_iter, verbose=self.verbose-1)
        projection.check_solve(converged, residual, "level projection",
                               self.level, t_new, p.proj_abort_on_fail)

        self.state.new.scatter(u, "x-velocity")
        self.state.new.scatter(v, "y-velocity")

        pres = self.press.new.gather("pressure")
        pres.d[:, :] += phi/dt
        self.press.new.scatter(pres, "pressure")

        if p.do_sync_proj:
            u_cd.fill_BC("x-velocity")
            v_cd.fill_BC("y-velocity")

            if self.finer is not None:
                uncovered = np.logical_and(valid, ~self.covered_mask())
                cw = elliptic.cell_weights(cg, uncovered, periodic)
                resid = projection.nodal_divergence(cg, u, v, cw) / \
                    elliptic.node_weights(cg, periodic)
                self.finer.sync_reg.crse_init(resid, cg, 1.0)

            if self.level > 0 and iteration == self.ncycle:
                cw = elliptic.cell_weights(cg, valid, periodic)
                resid = projection.nodal_divergence(cg, u, v, cw)
                pgrids = None
                if self.finer is not None:
                    pgrids = self.finer.grids.coarsen(self.finer.ratio)
                self.sync_reg.comp_add(resid, cg, pgrids, 1.0)

    def advance_cleanup(self):
        """drop the advective terms and refresh the ghost cells of the new data"""
        self.aofs = [dict() for _ in self.grids]
        self.fill_ghosts("state", self.state.t_new)
        self.fill_ghosts("press", self.press.t_new)

    #-------------------------------------------------------------------------
    # the initial projections
    #-------------------------------------------------------------------------

    def initial_velocity_project(self):
        """project the initial velocity field.  The pressure is not touched."""
        cg = self.canvas_grid()
        p = self.params
        t = self.state.t_new

        u = self.fill_canvas("state", t, "x-velocity").get_var("x-velocity")
        v = self.fill_canvas("state", t, "y-velocity").get_var("y-velocity")
        rho = self.fill_canvas("state", t, "density").get_var("density")

        phi, converged, residual = projection.level_project(
            cg, self.phys_bcs, self.geom.periodic, self.valid_mask(), rho, u, v,
            rtol=p.proj_rtol, max_iter=p.proj_max_iter, verbose=self.verbose-1)
        projection.check_solve(converged, residual, "initial velocity projection",
                               self.level, t, p.proj_abort_on_fail)

        self.state.new.scatter(u, "x-velocity")
        self.state.new.scatter(v, "y-velocity")
        self.fill_ghosts("state", t)

    def initial_pressure_project(self, dt):
        """
        after an initial step, project the acceleration
        (U^{n+1} - U^n)/dt; the potential is the pressure increment
        """
        cg = self.canvas_grid()
        p = self.params
        t_new = self.state.t_new

        w = []
        for name in ["x-velocity", "y-velocity"]:
            un = self.fill_canvas("state", t_new, name).get_var(name)
            uo = self.fill_canvas("state", self.state.t_old, name).get_var(name)
            wc = cg.scratch_array()
            wc.d[:, :] = (un - uo)/dt
            w.append(wc)

        rho = self.fill_canvas("state", 0.5*(self.state.t_old + t_new),
                               "density").get_var("density")

        phi, converged, residual = projection.level_project(
            cg, self.phys_bcs, self.geom.periodic, self.valid_mask(), rho,
            w[0], w[1], rtol=p.proj_rtol, max_iter=p.proj_max_iter,
            verbose=self.verbose-1)
        projection.check_solve(converged, residual, "initial pressure projection",
                               self.level, t_new, p.proj_abort_on_fail)

        pres = self.press.old.gather("pressure")
        pres.d[:, :] += phi
        self.press.new.scatter(pres, "pressure")

    #-------------------------------------------------------------------------
    # timestep
    #-------------------------------------------------------------------------

    def est_time_step(self):
        """the CFL-limited timestep of the new data on this level"""
        self.fill_ghosts("state", self.state.t_new)
        self.fill_ghosts("press", self.press.t_new)

        dt = 1.e20
        for p, pp in zip(self.state.new, self.press.new):
            tfx, tfy = self.velocity_forcing(p, pp, include_visc=False)
            dt = min(dt, godunov.estdt(p.grid, p.get_var("x-velocity"),
                                       p.get_var("y-velocity"), tfx, tfy,
                                       self.params.cfl))
        return dt

    #-------------------------------------------------------------------------
    # diagnostics
    #-------------------------------------------------------------------------

    def derive(self, name):
        """
        a state variable or derived quantity of the new data, on the
        valid cells of the level canvas
        """
        if name in derives.PRESSURE_DERIVES:
            mp = self.press.new
        else:
            mp = self.state.new
        return self._gather([p.get_var(name) for p in mp])

    def uncovered_mask(self):
        """the valid cells that no finer level covers"""
        return np.logical_and(self.valid_mask(), ~self.covered_mask())

    def max_val(self, name):
        """the maximum of name over the cells of this level that are not covered"""
        canvas = np.asarray(self.derive(name))
        mask = self.uncovered_mask()
        if not mask.any():
            return -np.inf
        return np.max(canvas[mask])

    def volume_sum(self, name):
        """the volume integral of name over the uncovered cells of this level"""
        canvas = np.asarray(self.derive(name))
        return np.sum(canvas[self.uncovered_mask()])*self.geom.volume()

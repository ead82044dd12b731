"""
The AMR driver for the incompressible solver: it builds the (fixed)
level hierarchy, initializes the problem, finds the initial pressure,
and then evolves the hierarchy with subcycling in time, synchronizing
each level with the finer ones once they catch up to it.
"""

import importlib

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle

import incompressible_amr.params as ns_params
import incompressible_amr.sync as sync
from incompressible_amr.navier_stokes import NavierStokesLevel
from mesh.box import Box, BoxArray
from simulation_null import NullSimulation, geometry_setup, phys_bc_setup
from util import msg


def _region_box(geom, region):
    """the cells of geom that overlap the physical region [x0, x1] x [y0, y1]"""
    x0, x1, y0, y1 = region
    ilo = int(np.floor((x0 - geom.xmin)/geom.dx + 1.e-10))
    ihi = int(np.ceil((x1 - geom.xmin)/geom.dx - 1.e-10)) - 1
    jlo = int(np.floor((y0 - geom.ymin)/geom.dy + 1.e-10))
    jhi = int(np.ceil((y1 - geom.ymin)/geom.dy - 1.e-10)) - 1
    return Box((ilo, jlo), (ihi, jhi)) & geom.domain


def hierarchy_setup(rp, geom):
    """
    the geometry and boxes of every level.  Level 1 covers the region
    given by the amr.refine_* parameters; each deeper level covers the
    middle half (in each direction) of the one above it.

    Returns
    -------
    levels : list of (Geometry, BoxArray)
    """

    max_level = rp.get_param("amr.max_level")
    r = rp.get_param("amr.ref_ratio")
    max_grid_size = rp.get_param("amr.max_grid_size")

    if r < 2:
        msg.fail("ERROR: amr.ref_ratio must be at least 2")

    if max_grid_size % r != 0:
        msg.fail("ERROR: amr.max_grid_size must be a multiple of amr.ref_ratio")

    region = [rp.get_param("amr.refine_xmin"), rp.get_param("amr.refine_xmax"),
              rp.get_param("amr.refine_ymin"), rp.get_param("amr.refine_ymax")]

    levels = [(geom, BoxArray([geom.domain]).max_size(max_grid_size))]

    for lev in range(1, max_level+1):
        cgeom, cgrids = levels[-1]

        if lev > 1:
            xc = 0.5*(region[0] + region[1])
            yc = 0.5*(region[2] + region[3])
            hx = 0.25*(region[1] - region[0])
            hy = 0.25*(region[3] - region[2])
            region = [xc - hx, xc + hx, yc - hy, yc + hy]

        cbox = _region_box(cgeom, region)
        if not cbox.ok():
            msg.fail("ERROR: the refined region of level {} is empty".format(lev))

        # the fine level must be surrounded by at least one cell of the
        # coarse level, except at the domain boundary
        if lev > 1 and not cgrids.contains(cbox.grow(1) & cgeom.domain):
            msg.fail("ERROR: level {} is not properly nested in level {}".format(lev, lev-1))

        fgeom = cgeom.refine(r)
        fgrids = BoxArray([cbox.refine(r)]).max_size(max_grid_size)

        levels.append((fgeom, fgrids))

    return levels


class Simulation(NullSimulation):

    def initialize(self):
        """
        Build the levels and set the initial conditions for the chosen
        problem on every patch.
        """

        self.params = ns_params.make_params(self.rp)

        phys_bcs = phys_bc_setup(self.rp)
        geom = geometry_setup(self.rp)
        r = self.rp.get_param("amr.ref_ratio")

        self.levels = []
        for l, (g, grids) in enumerate(hierarchy_setup(self.rp, geom)):
            lev = NavierStokesLevel(l, g, grids, self.params, phys_bcs,
                                    ratio=r, timers=self.tc)
            if l > 0:
                lev.link(self.levels[-1])
            self.levels.append(lev)

        self.dt_test = 1.e20

        # now set the initial conditions for the problem
        problem = importlib.import_module(
            "incompressible_amr.problems.{}".format(self.problem_name))

        for lev in self.levels:
            for my_data in lev.state.new:
                problem.init_data(my_data, self.rp)

            for sd in [lev.state, lev.press, lev.divu, lev.dsdt]:
                sd.set_time(self.t)
                sd.old.copy_from(sd.new)

            lev.make_rho_curr_time()
            lev.fill_ghosts("state", self.t)

        if self.verbose > 0:
            for lev in self.levels:
                print(lev)

    def ratio(self, l):
        """the refinement of level l relative to level 0"""
        r = 1
        for lev in self.levels[1:l+1]:
            r *= lev.ratio
        return r

    def _avg_down_all(self, initial=False):
        for lev in reversed(self.levels[:-1]):
            sync.avg_down(lev, initial=initial)

    def preevolve(self):
        """
        project the initial velocity, then iterate for the initial
        pressure
        """

        tm_init = self.tc.timer("post_init")
        tm_init.begin()

        for lev in self.levels:
            lev.initial_velocity_project()
        self._avg_down_all()

        for lev in self.levels:
            lev.fill_ghosts("state", self.t)
            lev.make_rho_curr_time()
            for sd in [lev.state, lev.press]:
                sd.old.copy_from(sd.new)

        self.compute_timestep()

        if self.params.init_iter > 0:
            self.post_init_press(self.dt)

        tm_init.end()

    def post_init_press(self, dt):
        """
        find the initial pressure: take a step without the level
        projection, project the resulting acceleration to get the
        pressure, and then throw away everything but the pressure.
        This is done init_iter times.
        """

        saved = []
        for lev in self.levels:
            s = lev.state.new.like()
            s.copy_from(lev.state.new)
            saved.append(s)

        for it in range(self.params.init_iter):

            if self.verbose > 0:
                msg.bold("initial pressure iteration {} of {}".format(it+1, self.params.init_iter))

            for l, lev in enumerate(self.levels):
                lev.advance(self.t, dt/self.ratio(l), 1, 1, initial_step=True)

            self._avg_down_all(initial=True)

            for l, lev in enumerate(self.levels):
                lev.initial_pressure_project(dt/self.ratio(l))

            for lev, s in zip(self.levels, saved):
                lev.state.new.copy_from(s)
                lev.state.old.copy_from(s)
                lev.press.old.copy_from(lev.press.new)
                for sd in [lev.state, lev.press, lev.divu, lev.dsdt]:
                    sd.set_time(self.t)

            for lev in self.levels:
                lev.make_rho_curr_time()
                lev.fill_ghosts("state", self.t)
                lev.fill_ghosts("press", self.t)

    def method_compute_timestep(self):
        """
        The timestep is the smallest CFL step over the levels (in
        units of the level 0 step), shrunk on the first step and
        limited in how fast it can grow.
        """

        p = self.params

        dt = 1.e20
        for l, lev in enumerate(self.levels):
            dt = min(dt, lev.est_time_step()*self.ratio(l))

        if self.n == 0:
            dt *= p.init_shrink
        else:
            dt = min(dt, p.change_max*self.old_dt, self.dt_test)

        self.dt = dt

    def _timestep(self, l, time, dt, iteration, ncycle):
        """advance level l, then subcycle the finer levels and sync with them"""
        lev = self.levels[l]

        dt_test = lev.advance(time, dt, iteration, ncycle)
        self.dt_test = min(self.dt_test, dt_test*self.ratio(l))

        if lev.finer is not None:
            r = lev.finer.ratio
            for k in range(1, r+1):
                self._timestep(l+1, time + (k-1)*dt/r, dt/r, k, r)

            sync.post_timestep(lev)

    def evolve(self):
        """
        Evolve the hierarchy through one level 0 timestep
        """

        tm_evolve = self.tc.timer("evolve")
        tm_evolve.begin()

        self.dt_test = 1.e20
        self._timestep(0, self.t, self.dt, 1, 1)

        self.t += self.dt
        self.n += 1

        if self.verbose > 0:
            print("{:5d} {:10.5f} {:10.5f}".format(self.n, self.t, self.dt))
            self.sum_integrated_quantities()

        tm_evolve.end()

    def max_val(self, name):
        """the maximum of name over the hierarchy, each cell counted on its finest level"""
        return max(lev.max_val(name) for lev in self.levels)

    def sum_integrated_quantities(self):
        """
        the total mass and kinetic energy, and the largest vorticity
        magnitude, over the hierarchy
        """
        mass = sum(lev.volume_sum("density") for lev in self.levels)
        ke = sum(lev.volume_sum("kinetic_energy") for lev in self.levels)
        max_vort = self.max_val("mag_vort")

        if self.verbose > 0:
            print("  TIME = {}  MASS = {}  KE = {}  MAX(|VORT|) = {}".format(
                self.t, mass, ke, max_vort))

        return {"mass": mass, "kinetic_energy": ke, "max_vorticity": max_vort}

    def dovis(self):
        """
        Do runtime visualization
        """
        plt.clf()

        plt.rc("font", size=10)

        _, axes = plt.subplots(nrows=2, ncols=2, num=1)
        plt.subplots_adjust(hspace=0.25)

        field_names = ["density", "vorticity", "mag_vel", "avg_pressure"]
        titles = [r"$\rho$", r"$\nabla \times U$", r"$|U|$", r"$p$"]

        for n, ax in enumerate(axes.flat):
            name = field_names[n]

            canvases = [lev.derive(name) for lev in self.levels]
            valid = [np.asarray(c)[lev.valid_mask()] for c, lev in zip(canvases, self.levels)]
            vmin = min(np.min(v) for v in valid)
            vmax = max(np.max(v) for v in valid)

            if name == "vorticity":
                cmap = plt.cm.seismic
                vmax = max(abs(vmin), abs(vmax))
                vmin = -vmax
            else:
                cmap = plt.cm.viridis

            for lev, canvas in zip(self.levels, canvases):
                cg = lev.canvas_grid()
                for box in lev.grids:
                    myg = cg.sub_grid(box)
                    i0, j0 = cg.local_index(box.lo[0], box.lo[1])
                    f = np.asarray(canvas)[i0:i0+box.nx, j0:j0+box.ny]

                    img = ax.imshow(np.transpose(f),
                                    interpolation="nearest", origin="lower",
                                    extent=[myg.xmin, myg.xmax, myg.ymin, myg.ymax],
                                    cmap=cmap, vmin=vmin, vmax=vmax)

                    if lev.level > 0:
                        ax.add_patch(Rectangle((myg.xmin, myg.ymin),
                                               myg.xmax - myg.xmin, myg.ymax - myg.ymin,
                                               fill=False, lw=0.5, ec="k"))

            g0 = self.levels[0].geom
            ax.set_xlim(g0.xmin, g0.xmax)
            ax.set_ylim(g0.ymin, g0.ymax)

            ax.set_xlabel("$x$")
            ax.set_ylabel("$y$")
            ax.set_title(titles[n])

            plt.colorbar(img, ax=ax)

        plt.figtext(0.05, 0.0125, "n: %4d,   t = %10.5f" % (self.n, self.t))

        plt.draw()

    def finalize(self):
        """
        Do any final clean-ups for the simulation and call the problem's
        finalize() method.
        """
        problem = importlib.import_module(
            "incompressible_amr.problems.{}".format(self.problem_name))
        problem.finalize()

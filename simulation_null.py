import mesh.boundary as bnd
import mesh.multipatch as multipatch
from util import msg, profile


def geometry_setup(rp):
    """the Geometry of the coarsest level"""

    phys_bcs = phys_bc_setup(rp)

    domain = multipatch.domain_box(rp.get_param("mesh.nx"),
                                   rp.get_param("mesh.ny"))

    return multipatch.Geometry(domain,
                               xmin=rp.get_param("mesh.xmin"),
                               xmax=rp.get_param("mesh.xmax"),
                               ymin=rp.get_param("mesh.ymin"),
                               ymax=rp.get_param("mesh.ymax"),
                               periodic=(phys_bcs[0] == "periodic",
                                         phys_bcs[2] == "periodic"))


def phys_bc_setup(rp):
    """the physical boundary types [xlb, xrb, ylb, yrb] from the mesh parameters"""

    phys_bcs = [rp.get_param("mesh.xlboundary"),
                rp.get_param("mesh.xrboundary"),
                rp.get_param("mesh.ylboundary"),
                rp.get_param("mesh.yrboundary")]

    for b in phys_bcs:
        if b not in bnd.physical_types:
            msg.fail("ERROR: boundary type {} not valid".format(b))

    return phys_bcs


class NullSimulation(object):

    def __init__(self, solver_name, problem_name, rp, timers=None):
        """
        Initialize the Simulation object

        Parameters
        ----------
        solver_name : str
            The name of the solver we are using
        problem_name : str
            The descriptive name for the problem (used in output)
        rp : RuntimeParameters object
            The runtime parameters for the simulation
        timers : TimerCollection object, optional
            The timers used for profiling this simulation
        """

        self.n = 0
        self.t = 0.0
        self.dt = -1.e33
        self.old_dt = -1.e33

        self.tmax = rp.get_param("driver.tmax")
        self.max_steps = rp.get_param("driver.max_steps")

        self.rp = rp

        self.SMALL = 1.e-12

        self.solver_name = solver_name
        self.problem_name = problem_name

        if timers is None:
            self.tc = profile.TimerCollection()
        else:
            self.tc = timers

        self.verbose = rp.get_param("driver.verbose")

    def finished(self):
        """
        is the simulation finished based on time or the number of steps
        """
        return self.t >= self.tmax or self.n >= self.max_steps

    def method_compute_timestep(self):
        """
        the method-specific timestep code
        """
        pass

    def compute_timestep(self):
        """
        a generic wrapper for computing the timestep that respects the
        driver parameters on timestepping
        """

        fix_dt = self.rp.get_param("driver.fix_dt")

        # get the timestep
        if fix_dt > 0.0:
            self.dt = fix_dt
        else:
            self.method_compute_timestep()

        self.old_dt = self.dt

        if self.t + self.dt > self.tmax:
            self.dt = self.tmax - self.t

    def preevolve(self):
        """
        Do any necessary evolution before the main evolve loop
        """
        pass

    def evolve(self):
        msg.fail("ERROR: evolve() is not defined for the null simulation")

    def dovis(self):
        pass

    def finalize(self):
        """
        Do any final clean-ups for the simulation
        """
        pass

#!/usr/bin/env python3

import argparse
import importlib
import os

import matplotlib.pyplot as plt

import util.msg as msg
import util.profile as profile
import util.runparams as runparams

valid_solvers = ["incompressible_amr"]


def doit(solver_name, problem_name, param_file,
         other_commands=None, make_plots=True):
    """
    The main driver to run pyro_amr.

    Parameters
    ----------
    solver_name : str
        the solver package to use
    problem_name : str
        the problem module (under the solver's problems/)
    param_file : str
        the inputs file.  If it is not found as given, we look for it
        in the solver's problems/ directory
    other_commands : list of str, optional
        runtime parameter overrides of the form section.option=value
    make_plots : bool, optional
        allow runtime visualization

    Returns
    -------
    sim : Simulation object
    """

    msg.bold('pyro_amr ...')

    tc = profile.TimerCollection()
    tm_main = tc.timer("main")
    tm_main.begin()

    # import desired solver under "solver" namespace
    solver = importlib.import_module(solver_name)

    pyro_home = os.path.dirname(os.path.realpath(__file__)) + '/'

    # read in the runtime parameters
    rp = runparams.RuntimeParameters()

    # the default parameters are read first: the driver's, the
    # solver's, and the problem's
    rp.load_params(pyro_home + "_defaults")
    rp.load_params(pyro_home + solver_name + "/_defaults")
    rp.load_params(pyro_home + solver_name + "/problems/_" + problem_name + ".defaults")

    # now read in the inputs file
    if not os.path.isfile(param_file):
        # check if the param file lives in the solver's problems directory
        param_file = pyro_home + solver_name + "/problems/" + param_file
        if not os.path.isfile(param_file):
            msg.fail("ERROR: inputs file does not exist")

    rp.load_params(param_file, no_new=1)

    # and any commandline overrides
    if other_commands is not None:
        rp.command_line_params(other_commands)

    # write out the inputs.auto
    rp.print_paramfile()

    # set up the simulation
    sim = solver.Simulation(solver_name, problem_name, rp, timers=tc)
    sim.initialize()
    sim.preevolve()

    dovis = rp.get_param("vis.dovis") and make_plots
    vis_interval = rp.get_param("vis.vis_interval")
    store_images = rp.get_param("vis.store_images")
    basename = rp.get_param("io.basename")

    if dovis:
        plt.ion()
        plt.figure(num=1, figsize=(8, 6), dpi=100, facecolor='w')
        sim.dovis()

    # evolve
    while not sim.finished():

        # fill boundary conditions and get the timestep
        sim.compute_timestep()

        # evolve for a single timestep
        sim.evolve()

        # visualization
        if dovis and sim.n % vis_interval == 0:
            tm_vis = tc.timer("vis")
            tm_vis.begin()

            sim.dovis()
            if store_images == 1:
                plt.savefig(basename + "%4.4d" % (sim.n) + ".png")

            plt.pause(0.001)

            tm_vis.end()

    tm_main.end()

    msg.success("pyro_amr: {} steps to t = {}".format(sim.n, sim.t))

    # final reports
    if sim.verbose > 0:
        rp.print_unused_params()

    sim.finalize()

    tc.report()

    return sim


if __name__ == "__main__":

    p = argparse.ArgumentParser()

    p.add_argument("solver", metavar="solver-name", type=str, nargs=1,
                   help="name of the solver to use", choices=valid_solvers)
    p.add_argument("problem", metavar="problem-name", type=str, nargs=1,
                   help="name of the problem to run")
    p.add_argument("param", metavar="inputs-file", type=str, nargs=1,
                   help="name of the inputs file")

    p.add_argument("other", metavar="runtime-parameters", type=str, nargs="*",
                   help="additional runtime parameters that override the inputs file "
                   "in the format section.option=value")

    args = p.parse_args()

    doit(args.solver[0], args.problem[0], args.param[0],
         other_commands=args.other)

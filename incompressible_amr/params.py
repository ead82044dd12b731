"""
The runtime parameters that the level advance needs, collected once
from the RuntimeParameters object into an immutable namedtuple.  Every
component receives the same NSParams at construction.
"""

from collections import namedtuple

from util import msg

NSParams = namedtuple("NSParams",
                      ["verbose",
                       "cfl", "init_shrink", "change_max", "init_iter",
                       "do_mom_diff", "be_cn_theta",
                       "visc_coef", "scal_diff_coef", "gravity",
                       "do_reflux", "do_sync_proj",
                       "do_denminmax", "do_scalminmax",
                       "num_tracers", "state_names", "advection_forms",
                       "scheme", "limiter", "use_forces_in_trans",
                       "proj_rtol", "proj_max_iter", "proj_abort_on_fail",
                       "diff_rtol", "diff_abort_on_fail"])

_forms = ["conservative", "nonconservative"]

# indices into the state
XVEL = 0
YVEL = 1
DENS = 2
FIRST_TRACER = 3


def state_names(num_tracers):
    """the component names of the state, in order"""
    names = ["x-velocity", "y-velocity", "density"]
    if num_tracers == 1:
        names.append("tracer")
    else:
        names += ["tracer-{}".format(n) for n in range(num_tracers)]
    return names


def make_params(rp):
    """
    build the NSParams from the runtime parameters, checking them as we
    go.  Any inconsistency is fatal.
    """

    num_tracers = rp.get_param("ns.num_tracers")
    if num_tracers < 0:
        msg.fail("ERROR: ns.num_tracers must be >= 0")

    dens_form = rp.get_param("ns.density_advection")
    if dens_form != "conservative":
        msg.fail("ERROR: density must be advected in conservative form, not {}".format(dens_form))

    tracer_form = rp.get_param("ns.tracer_advection")
    if tracer_form not in _forms:
        msg.fail("ERROR: ns.tracer_advection = {} invalid".format(tracer_form))

    # velocity is always advected in convective form
    forms = ("nonconservative", "nonconservative", dens_form) + \
        (tracer_form,)*num_tracers

    scheme = rp.get_param("godunov.scheme")
    if scheme not in ["plm", "ppm"]:
        msg.fail("ERROR: godunov.scheme = {} invalid".format(scheme))

    limiter = rp.get_param("godunov.limiter")
    if limiter not in [0, 1, 2]:
        msg.fail("ERROR: godunov.limiter = {} invalid".format(limiter))

    visc_coef = rp.get_param("ns.visc_coef")
    scal_diff_coef = rp.get_param("ns.scal_diff_coef")
    if visc_coef < 0.0 or scal_diff_coef < 0.0:
        msg.fail("ERROR: negative viscosity or diffusivity")

    theta = rp.get_param("ns.be_cn_theta")
    if theta < 0.5 or theta > 1.0:
        msg.fail("ERROR: ns.be_cn_theta must be in [0.5, 1]")

    return NSParams(verbose=rp.get_param("driver.verbose"),
                    cfl=rp.get_param("ns.cfl"),
                    init_shrink=rp.get_param("ns.init_shrink"),
                    change_max=rp.get_param("ns.change_max"),
                    init_iter=rp.get_param("ns.init_iter"),
                    do_mom_diff=rp.get_param("ns.do_mom_diff"),
                    be_cn_theta=theta,
                    visc_coef=visc_coef,
                    scal_diff_coef=scal_diff_coef,
                    gravity=rp.get_param("ns.gravity"),
                    do_reflux=rp.get_param("ns.do_reflux"),
                    do_sync_proj=rp.get_param("ns.do_sync_proj"),
                    do_denminmax=rp.get_param("ns.do_denminmax"),
                    do_scalminmax=rp.get_param("ns.do_scalminmax"),
                    num_tracers=num_tracers,
                    state_names=tuple(state_names(num_tracers)),
                    advection_forms=forms,
                    scheme=scheme,
                    limiter=limiter,
                    use_forces_in_trans=rp.get_param("godunov.use_forces_in_trans"),
                    proj_rtol=rp.get_param("proj.rtol"),
                    proj_max_iter=rp.get_param("proj.max_iter"),
                    proj_abort_on_fail=rp.get_param("proj.abort_on_fail"),
                    diff_rtol=rp.get_param("diffusion.rtol"),
                    diff_abort_on_fail=rp.get_param("diffusion.abort_on_fail"))

"""
Methods to manage boundary conditions.

There are two kinds of boundary names in use.  The physical boundary
types are what the user specifies in the inputs file:

  periodic, outflow, slipwall (or reflect), noslipwall

Each variable then turns these into a ghost cell fill type, which is
what fill_BC() actually knows how to do:

  periodic, outflow, neumann, reflect-even, reflect-odd, dirichlet

A velocity component normal to a slip wall is reflect-odd, everything
else at a slip wall is reflect-even.  At a no-slip wall both velocity
components are reflect-odd.
"""

from util import msg

# the physical boundary types the user can ask for
physical_types = ["periodic", "outflow", "slipwall", "reflect", "noslipwall"]

# the ghost cell fill types that fill_BC understands
fill_types = ["periodic", "outflow", "neumann",
              "reflect-even", "reflect-odd", "dirichlet"]

# keep track of whether the BCs are solid walls (passed into the
# Godunov edge state routines).
bc_solid = {"periodic": False,
            "outflow": False,
            "slipwall": True,
            "reflect": True,
            "noslipwall": True}

# walls that also hold the tangential velocity to zero
bc_noslip = {"periodic": False,
             "outflow": False,
             "slipwall": False,
             "reflect": False,
             "noslipwall": True}


def _set_reflect(odd_reflect_dir, dir_string, phys):
    if phys == "noslipwall" and odd_reflect_dir != "":
        return "reflect-odd"
    if odd_reflect_dir == dir_string:
        return "reflect-odd"
    return "reflect-even"


class BC(object):
    """Boundary condition container -- hold the BCs on each boundary
    for a single variable.  Only homogeneous Neumann and Dirichlet
    conditions are supported.
    """

    def __init__(self,
                 xlb="outflow", xrb="outflow",
                 ylb="outflow", yrb="outflow",
                 odd_reflect_dir=""):
        """
        Create the BC object.

        Parameters
        ----------
        xlb : {'outflow', 'periodic', 'slipwall', 'reflect', 'noslipwall',
               'neumann', 'dirichlet', 'reflect-even', 'reflect-odd'}
            The type of boundary condition on the lower x boundary
        xrb : as xlb
            The type of boundary condition on the upper x boundary
        ylb : as xlb
            The type of boundary condition on the lower y boundary
        yrb : as xlb
            The type of boundary condition on the upper y boundary
        odd_reflect_dir : {'x', 'y'}, optional
            The direction along which reflection should be odd
            (sign changes).  If not specified, a boundary condition of
            'reflect' will always be set to 'reflect-even'
        """

        valid = physical_types + fill_types

        # the physical type is kept around for the edge state routines
        self.phys = {}

        for name, value, dir_string in [("xlb", xlb, "x"), ("xrb", xrb, "x"),
                                        ("ylb", ylb, "y"), ("yrb", yrb, "y")]:

            if value not in valid:
                msg.fail("ERROR: {} = {} invalid BC".format(name, value))

            self.phys[name] = value

            if value in ["slipwall", "reflect", "noslipwall"]:
                value = _set_reflect(odd_reflect_dir, dir_string, value)

            setattr(self, name, value)

        # periodic checks
        if ((xlb == "periodic" and xrb != "periodic") or
                (xrb == "periodic" and xlb != "periodic")):
            msg.fail("ERROR: both xlb and xrb must be periodic")

        if ((ylb == "periodic" and yrb != "periodic") or
                (yrb == "periodic" and ylb != "periodic")):
            msg.fail("ERROR: both ylb and yrb must be periodic")

    def is_periodic(self, idir):
        if idir == 0:
            return self.xlb == "periodic"
        return self.ylb == "periodic"

    def side(self, idir, iside):
        """the ghost fill type on the low (iside = 0) or high side of idir"""
        return [[self.xlb, self.xrb], [self.ylb, self.yrb]][idir][iside]

    def phys_side(self, idir, iside):
        """the physical type on the low (iside = 0) or high side of idir"""
        key = [["xlb", "xrb"], ["ylb", "yrb"]][idir][iside]
        return self.phys[key]

    def __str__(self):
        """ print out some basic information about the BC object """

        string = "BCs: -x: {}  +x: {}  -y: {}  +y: {}".format(
            self.xlb, self.xrb, self.ylb, self.yrb)

        return string


def projection_bc_types(phys_bcs):
    """
    given the physical boundary types [xlb, xrb, ylb, yrb], return the
    ghost fill types for the cell-centered projection potential: walls
    are Neumann (dphi/dn = 0), outflow is Dirichlet (phi = 0) so we do
    not introduce any tangential acceleration, periodic stays periodic
    """

    bcs = []
    for bc in phys_bcs:
        if bc == "periodic":
            bctype = "periodic"
        elif bc in ["reflect", "slipwall", "noslipwall"]:
            bctype = "neumann"
        elif bc == "outflow":
            bctype = "dirichlet"
        else:
            msg.fail("ERROR: boundary type {} not valid for a projection".format(bc))
        bcs.append(bctype)

    return bcs

"""
basic syntax of the parameter file is:

# simple parameter file

[driver]
max_steps = 100        ; comment
tmax = 0.2

[ns]
cfl = 0.5

The recommended way to use this is for the code to have a master list
of parameters and their defaults (e.g. _defaults), and then the
user can override these defaults at runtime through an inputs file.
These two files have the same format.

The calling sequence would then be:

  rp = RuntimeParameters()
  rp.load_params("_defaults")
  rp.load_params("inputs", no_new=1)

The parser will determine what datatype the parameter is (string,
integer, float), and store it in a RuntimeParameters object.  If a
parameter that already exists is encountered a second time (e.g.,
there is a default value in _defaults and the user specifies a new
value in inputs), then the second instance replaces the first.

Runtime parameters can then be accessed via any module through the
get_param method:

  cfl = rp.get_param('ns.cfl')

If the optional flag no_new=1 is set, then the load_params function
will not define any new parameters, but only overwrite existing ones.
This is useful for reading in an inputs file that overrides
previously read default values.
"""

import os
import re

from util import msg


def _get_val(value):
    """
    Convert a string to an int, float, or stripped string, in that
    order of preference.
    """
    try:
        return int(value)
    except ValueError:
        try:
            return float(value)
        except ValueError:
            return value.strip()


class RuntimeParameters(object):

    def __init__(self):
        """
        Initialize a collection of runtime parameters.  This class
        holds a dictionary of the parameters, their comments, and keeps
        track of which parameters were actually used.
        """

        # keep track of the parameters and their comments
        self.params = {}
        self.param_comments = {}

        # for debugging -- keep track of which parameters were
        # actually looked-up
        self.used_params = []

    def load_params(self, pfile, no_new=0):
        """
        Reads line from file and makes dictionary pairs from the data
        to store.

        Parameters
        ----------
        pfile : str
            The name of the file to parse
        no_new : int, optional
            If no_new = 1, then we don't add any new paramters to the
            dictionary of runtime parameters, but instead just override
            the values of existing ones.
        """

        # check to see whether the file exists
        if not os.path.isfile(pfile):
            msg.fail("ERROR: parameter file does not exist: {}".format(pfile))
            return

        # we could use the ConfigParser, but we actually want to
        # have our configuration files be self-documenting, of the
        # format key = value ; comment
        sec = re.compile(r'^\[(.*)\]')
        eq = re.compile(r'^([^=#]+)=([^;]+);{0,1}(.*)')

        section = None

        with open(pfile, 'r') as f:
            for line in f.readlines():

                if sec.search(line):
                    _, section, _ = sec.split(line)
                    section = section.strip().lower()

                elif eq.search(line):
                    _, item, value, comment, _ = eq.split(line)
                    item = item.strip().lower()

                    if section is None:
                        msg.fail("ERROR: parameter {} is outside of a section in {}".format(item, pfile))
                        return

                    # define the key
                    key = section + "." + item

                    # if we have no_new = 1, then we only want to override
                    # existing key/values
                    if no_new:
                        if key not in self.params:
                            msg.warning("warning, key: {} not defined".format(key))
                            continue

                    self.params[key] = _get_val(value)

                    # if the comment already exists (i.e. from reading in
                    # _defaults) and we are just resetting the value of
                    # the parameter (i.e. from reading in inputs), then we
                    # don't want to destroy the comment
                    if comment.strip() == "":
                        comment = self.param_comments.get(key, "")

                    self.param_comments[key] = comment.strip()

    def command_line_params(self, cmd_strings):
        """
        finds dictionary pairs from a string that came from the
        commandline.  Stores the parameters in only if they
        already exist.

        we expect things in the string in the form:
         ["sec.opt=value",  "sec.opt=value"]
        with each opt an element in the list

        Parameters
        ----------
        cmd_strings : list
            The list of strings containing runtime parameter pairs
        """

        for item in cmd_strings:

            # break it apart
            key, value = item.split("=")

            # we only want to override existing keys/values
            if key not in self.params:
                msg.warning("warning, key: {} not defined".format(key))
                continue

            # check in turn whether this is an interger, float, or string
            self.params[key] = _get_val(value)

    def get_param(self, key):
        """
        returns the value of the runtime parameter corresponding to the
        input key
        """

        if self.params == {}:
            msg.warning("WARNING: runtime parameters not yet initialized")

        # debugging
        if key not in self.used_params:
            self.used_params.append(key)

        if key in self.params:
            return self.params[key]

        msg.fail("ERROR: runtime parameter {} not found".format(key))

    def print_unused_params(self):
        """
        Print out the list of parameters that were defined by never used
        """
        for key in self.params:
            if key not in self.used_params:
                msg.warning("parameter {} never used".format(key))

    def __str__(self):
        ostr = ""
        for key in sorted(self.params.keys()):
            ostr += "{} = {}\n".format(key, self.params[key])

        return ostr

    def print_paramfile(self):
        """
        Create a file, inputs.auto, that has the structure of a pyro
        inputs file, with all known parameters and values
        """

        all_keys = list(self.params.keys())

        try:
            f = open('inputs.auto', 'w')
        except IOError:
            msg.fail("ERROR: unable to open inputs.auto")
            return

        f.write('# automagically generated parameter file\n')

        # find all the sections
        secs = set([q for (q, _) in [k.split(".") for k in all_keys]])

        for sec in sorted(secs):
            keys = [q for q in all_keys if q.startswith("{}.".format(sec))]

            f.write("\n[{}]\n".format(sec))

            for key in sorted(keys):
                _, option = key.split('.')

                value = self.params[key]

                if self.param_comments[key] != '':
                    f.write("{} = {}       ; {}\n".format(option, value, self.param_comments[key]))
                else:
                    f.write("{} = {}\n".format(option, value))

        f.close()

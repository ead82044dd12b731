import pytest

from util import runparams


def write_params(path, text):
    path.write_text(text)
    return str(path)


class TestRuntimeParameters(object):

    def setup_method(self):
        """ this is run before each test """
        self.rp = runparams.RuntimeParameters()

    def teardown_method(self):
        """ this is run after each test """
        self.rp = None

    def test_load_types(self, tmp_path):
        pfile = write_params(tmp_path / "_defaults",
                             "[driver]\n"
                             "max_steps = 100   ; number of steps\n"
                             "tmax = 0.25\n"
                             "\n"
                             "[ns]\n"
                             "scheme = plm      ; the predictor\n")

        self.rp.load_params(pfile)

        assert self.rp.get_param("driver.max_steps") == 100
        assert isinstance(self.rp.get_param("driver.max_steps"), int)
        assert self.rp.get_param("driver.tmax") == 0.25
        assert self.rp.get_param("ns.scheme") == "plm"
        assert self.rp.param_comments["driver.max_steps"] == "number of steps"

    def test_no_new(self, tmp_path):
        defaults = write_params(tmp_path / "_defaults",
                                "[driver]\ntmax = 1.0   ; stop time\n")
        inputs = write_params(tmp_path / "inputs.test",
                              "[driver]\ntmax = 2.0\nmax_steps = 5\n")

        self.rp.load_params(defaults)
        self.rp.load_params(inputs, no_new=1)

        assert self.rp.get_param("driver.tmax") == 2.0
        assert "driver.max_steps" not in self.rp.params

        # the comment survives the override
        assert self.rp.param_comments["driver.tmax"] == "stop time"

    def test_command_line(self):
        self.rp.params["mesh.nx"] = 16
        self.rp.params["ns.cfl"] = 0.5

        self.rp.command_line_params(["mesh.nx=64", "ns.cfl=0.8", "ns.junk=1"])

        assert self.rp.get_param("mesh.nx") == 64
        assert self.rp.get_param("ns.cfl") == 0.8
        assert "ns.junk" not in self.rp.params

    def test_used_params(self):
        self.rp.params["mesh.nx"] = 16
        self.rp.params["mesh.ny"] = 16

        self.rp.get_param("mesh.nx")

        assert self.rp.used_params == ["mesh.nx"]

    def test_missing(self):
        self.rp.params["mesh.nx"] = 16

        with pytest.raises(SystemExit):
            self.rp.get_param("mesh.nz")

    def test_missing_file(self, tmp_path):
        with pytest.raises(SystemExit):
            self.rp.load_params(str(tmp_path / "nothing_here"))

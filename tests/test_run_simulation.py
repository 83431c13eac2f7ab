"""
tests/test_run_simulation.py - the command line entry point.
"""
import os

import pytest

from RunSimulation import build_parser, main, options_from_args, split_path
from SimOptions import SimOptionsEnum

FAST_ARGS = ["--seed", "5", "--node-count", "20", "--hide-transfers", "--round-delay", "50"]


class TestParser:

    def test_flags_set_options(self):
        args = build_parser().parse_args(["--node-count", "40", "--average-degree", "6", "--relay-percentage", "25",
                                          "--pull-budget", "5", "--hide-transfers"])
        sim_options = options_from_args(args)
        assert sim_options.get(SimOptionsEnum.NODE_COUNT) == 40
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 6
        assert sim_options.get(SimOptionsEnum.RELAY_PERCENTAGE) == 25
        assert sim_options.get(SimOptionsEnum.LEAF_PERCENTAGE) == 75
        assert sim_options.get(SimOptionsEnum.PULL_BUDGET) == 5
        assert sim_options.get(SimOptionsEnum.SHOW_TRANSFERS) is False

    def test_unset_flags_keep_defaults(self):
        sim_options = options_from_args(build_parser().parse_args([]))
        assert sim_options.get(SimOptionsEnum.NODE_COUNT) == 50
        assert sim_options.get(SimOptionsEnum.SHOW_TRANSFERS) is True

    def test_preset_then_flags(self):
        args = build_parser().parse_args(["--preset", "FAST_SIMULATION", "--round-delay", "200"])
        sim_options = options_from_args(args)
        assert sim_options.get(SimOptionsEnum.SHOW_TRANSFERS) is False
        assert sim_options.get(SimOptionsEnum.ROUND_DELAY) == 200

    def test_unknown_preset_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--preset", "NOPE"])

    def test_split_path(self):
        assert split_path("options.csv") == (".", "options.csv")
        assert split_path(os.path.join("a", "b.csv")) == ("a", "b.csv")


class TestMain:

    def test_run_and_save_options(self, tmp_path, capsys):
        options_path = str(tmp_path / "options.csv")
        assert main(FAST_ARGS + ["--save-options", options_path]) == 0
        assert os.path.isfile(options_path)
        assert "Message reduction" in capsys.readouterr().out

    def test_load_options(self, tmp_path):
        options_path = str(tmp_path / "options.csv")
        options_from_args(build_parser().parse_args(["--node-count", "24", "--save-options", options_path]))
        sim_options = options_from_args(build_parser().parse_args(["--load-options", options_path]))
        assert sim_options.get(SimOptionsEnum.NODE_COUNT) == 24

    def test_no_comparison_exit_code(self):
        assert main(FAST_ARGS + ["--relay-percentage", "0"]) == 1

    def test_plot_outputs(self, tmp_path):
        assert main(FAST_ARGS + ["--plot", "--save-folder", str(tmp_path)]) == 0
        run_folders = os.listdir(tmp_path)
        assert len(run_folders) == 1
        assert "history_flooding.json" in os.listdir(tmp_path / run_folders[0])

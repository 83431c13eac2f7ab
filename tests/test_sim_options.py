"""
tests/test_sim_options.py - clamped settings, derived counts, presets and CSV files.
"""
import pytest

from SimOptions import PRESET_SETTINGS, SimOptions, SimOptionsEnum, from_preset


class TestDefaults:

    def test_default_values(self):
        sim_options = SimOptions()
        assert sim_options.get(SimOptionsEnum.NODE_COUNT) == 50
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 4
        assert sim_options.get(SimOptionsEnum.RELAY_PERCENTAGE) == 20
        assert sim_options.get(SimOptionsEnum.LEAF_PERCENTAGE) == 80
        assert sim_options.get(SimOptionsEnum.PUSH_BUDGET) == 2
        assert sim_options.get(SimOptionsEnum.GOSSIP_BUDGET) == 3
        assert sim_options.get(SimOptionsEnum.PULL_BUDGET) == 3
        assert sim_options.get(SimOptionsEnum.ROUND_DELAY) == 500
        assert sim_options.get(SimOptionsEnum.MAX_ROUNDS) == 100
        assert sim_options.get(SimOptionsEnum.MALICIOUS_PERCENTAGE) == 0
        assert sim_options.get(SimOptionsEnum.SHOW_TRANSFERS) is True
        assert sim_options.get(SimOptionsEnum.USEFUL_CONTACT_RATIO) == pytest.approx(1 / 3)

    def test_derived_counts(self):
        sim_options = SimOptions()
        assert sim_options.relay_count() == 10
        assert sim_options.leaf_count() == 40

    def test_relay_count_floors(self):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.NODE_COUNT, 13)
        sim_options.set(SimOptionsEnum.RELAY_PERCENTAGE, 25)
        assert sim_options.relay_count() == 3
        assert sim_options.leaf_count() == 10


class TestClamping:

    @pytest.mark.parametrize("value,expected", [(5, 10), (500, 100), (42, 42)])
    def test_node_count_range(self, value, expected):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.NODE_COUNT, value)
        assert sim_options.get(SimOptionsEnum.NODE_COUNT) == expected

    def test_budgets_range(self):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.PUSH_BUDGET, 0)
        sim_options.set(SimOptionsEnum.PULL_BUDGET, 99)
        assert sim_options.get(SimOptionsEnum.PUSH_BUDGET) == 1
        assert sim_options.get(SimOptionsEnum.PULL_BUDGET) == 10

    def test_delay_and_rounds_range(self):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.ROUND_DELAY, 1)
        sim_options.set(SimOptionsEnum.MAX_ROUNDS, 5000)
        assert sim_options.get(SimOptionsEnum.ROUND_DELAY) == 50
        assert sim_options.get(SimOptionsEnum.MAX_ROUNDS) == 1000

    def test_node_count_reclamps_degree(self):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.AVERAGE_DEGREE, 40)
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 40
        sim_options.set(SimOptionsEnum.NODE_COUNT, 20)
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 19

    def test_degree_upper_bound_follows_node_count(self):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.NODE_COUNT, 80)
        sim_options.set(SimOptionsEnum.AVERAGE_DEGREE, 79)
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 79
        sim_options.set(SimOptionsEnum.AVERAGE_DEGREE, 1)
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 2

    def test_relay_rewrites_leaf(self):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.RELAY_PERCENTAGE, 30)
        assert sim_options.get(SimOptionsEnum.LEAF_PERCENTAGE) == 70

    def test_leaf_rewrites_relay(self):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.LEAF_PERCENTAGE, 60)
        assert sim_options.get(SimOptionsEnum.RELAY_PERCENTAGE) == 40
        assert sim_options.get(SimOptionsEnum.LEAF_PERCENTAGE) == 60

    def test_percentages_clamped(self):
        sim_options = SimOptions()
        sim_options.set(SimOptionsEnum.RELAY_PERCENTAGE, 150)
        sim_options.set(SimOptionsEnum.MALICIOUS_PERCENTAGE, -10)
        assert sim_options.get(SimOptionsEnum.RELAY_PERCENTAGE) == 100
        assert sim_options.get(SimOptionsEnum.LEAF_PERCENTAGE) == 0
        assert sim_options.get(SimOptionsEnum.MALICIOUS_PERCENTAGE) == 0

    def test_apply_sets_node_count_first(self):
        sim_options = SimOptions()
        sim_options.apply({SimOptionsEnum.AVERAGE_DEGREE: 70, SimOptionsEnum.NODE_COUNT: 90})
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 70


class TestPresets:

    def test_every_preset_builds(self):
        for preset_name in PRESET_SETTINGS:
            sim_options = from_preset(preset_name)
            assert sim_options.name == preset_name

    def test_large_network_clamps_node_count(self):
        sim_options = from_preset("LARGE_NETWORK")
        assert sim_options.get(SimOptionsEnum.NODE_COUNT) == 100
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 6

    def test_fast_simulation_hides_transfers(self):
        sim_options = from_preset("FAST_SIMULATION")
        assert sim_options.get(SimOptionsEnum.SHOW_TRANSFERS) is False
        assert sim_options.get(SimOptionsEnum.ROUND_DELAY) == 100

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            from_preset("NOT_A_PRESET")


class TestFiles:

    def test_save_and_load(self, tmp_path):
        sim_options = SimOptions()
        sim_options.apply({SimOptionsEnum.NODE_COUNT: 30, SimOptionsEnum.AVERAGE_DEGREE: 25,
                           SimOptionsEnum.RELAY_PERCENTAGE: 35, SimOptionsEnum.SHOW_TRANSFERS: False})
        filepath = sim_options.save("options", str(tmp_path))
        assert filepath.endswith("options.csv")

        loaded = SimOptions()
        loaded.load("options.csv", str(tmp_path))
        assert loaded.get(SimOptionsEnum.NODE_COUNT) == 30
        assert loaded.get(SimOptionsEnum.AVERAGE_DEGREE) == 25
        assert loaded.get(SimOptionsEnum.RELAY_PERCENTAGE) == 35
        assert loaded.get(SimOptionsEnum.LEAF_PERCENTAGE) == 65
        assert loaded.get(SimOptionsEnum.SHOW_TRANSFERS) is False

    def test_load_ignores_unknown_and_clamps(self, tmp_path):
        (tmp_path / "hand.csv").write_text("Option,Value\n"
                                           "AVERAGE_DEGREE,25\n"
                                           "BOGUS,3\n"
                                           "NODE_COUNT,20\n"
                                           "PULL_BUDGET,not a number\n"
                                           "MAX_ROUNDS,99999\n")
        sim_options = SimOptions()
        sim_options.load("hand.csv", str(tmp_path))
        assert sim_options.get(SimOptionsEnum.NODE_COUNT) == 20
        assert sim_options.get(SimOptionsEnum.AVERAGE_DEGREE) == 19
        assert sim_options.get(SimOptionsEnum.PULL_BUDGET) == 3
        assert sim_options.get(SimOptionsEnum.MAX_ROUNDS) == 1000

    def test_description(self):
        description = SimOptions().get_description()
        assert "N=50" in description
        assert "K=4" in description

import csv
import math
import os
from enum import Enum, auto

from MathUtils import clamp, round_half_up


class ProtocolType(Enum):
    FLOODING = "flooding"
    HIERARCHICAL = "hierarchical"


class SimOptionsEnum(Enum):

    # Network topology
    NODE_COUNT = auto()
    AVERAGE_DEGREE = auto()

    # Node distribution, leaf percentage is always 100 - relay percentage
    RELAY_PERCENTAGE = auto()
    LEAF_PERCENTAGE = auto()

    # Three-stage budgets
    PUSH_BUDGET = auto()
    GOSSIP_BUDGET = auto()
    PULL_BUDGET = auto()

    # Scheduling
    ROUND_DELAY = auto()
    MAX_ROUNDS = auto()
    TRANSFER_DURATION = auto()
    ANIMATION_SPEED = auto()
    SHOW_TRANSFERS = auto()

    # Fault injection
    MALICIOUS_PERCENTAGE = auto()

    # Share of a flooding node's contacts reserved for uninformed neighbors
    USEFUL_CONTACT_RATIO = auto()


class SingleSimOption:
    """
    One clamped configuration value.
    """

    def __init__(self, name, short_name, option, min_value=None, max_value=None, value_type=int):
        self.name: SimOptionsEnum = name
        self.short_name: str = short_name
        self.value_type = value_type
        self.min_value = min_value
        self.max_value = max_value
        self.option = None
        self.set(option)

    def get(self):
        return self.option

    def set(self, value):
        if self.value_type is bool:
            self.option = bool(value)
            return
        if self.value_type is int:
            value = round_half_up(float(value))
        else:
            value = float(value)
        if self.min_value is not None and self.max_value is not None:
            value = clamp(value, self.min_value, self.max_value)
        self.option = self.value_type(value)

    def set_bounds(self, min_value, max_value):
        self.min_value = min_value
        self.max_value = max_value
        self.set(self.option)

    def change_to_this(self, text):
        if self.value_type is bool:
            self.set(text.strip().lower() in ("true", "1", "yes"))
        else:
            self.set(float(text))


class SimOptions:
    """
    Settings store of the simulation. Every setter clamps to the valid range and
    re-derives the options that depend on it, so the store is never invalid.
    """

    name = ""

    def __init__(self):
        self.all_options = {}
        self.set_all_options()

    def get(self, enum_key):
        return self.all_options[enum_key].get()

    def set(self, enum_key, value):
        single_option = self.all_options[enum_key]

        if enum_key == SimOptionsEnum.LEAF_PERCENTAGE:
            self.set(SimOptionsEnum.RELAY_PERCENTAGE, 100 - clamp(float(value), 0, 100))
            return

        single_option.set(value)

        if enum_key == SimOptionsEnum.NODE_COUNT:
            # average degree must stay below the node count
            self.all_options[SimOptionsEnum.AVERAGE_DEGREE].set_bounds(2, single_option.get() - 1)
        elif enum_key == SimOptionsEnum.RELAY_PERCENTAGE:
            self.all_options[SimOptionsEnum.LEAF_PERCENTAGE].set(100 - single_option.get())

    def relay_count(self):
        return int(math.floor(self.get(SimOptionsEnum.NODE_COUNT) * self.get(SimOptionsEnum.RELAY_PERCENTAGE) / 100))

    def leaf_count(self):
        return self.get(SimOptionsEnum.NODE_COUNT) - self.relay_count()

    def apply(self, values: dict):
        # NODE_COUNT first so the degree bound is known
        for key in sorted(values, key=lambda k: k != SimOptionsEnum.NODE_COUNT):
            self.set(key, values[key])

    def save(self, filename: str, foldername: str):
        if not filename.endswith('.csv'):
            filename += '.csv'
        os.makedirs(foldername, exist_ok=True)
        filepath = os.path.join(foldername, filename)

        with open(filepath, 'w', newline='') as file:
            writer = csv.writer(file)
            writer.writerow(['Option', 'Value'])
            for key, single_option in self.all_options.items():
                writer.writerow([key.name, single_option.option])
        return filepath

    def load(self, filename: str, foldername: str):

        self.name = filename

        filepath = os.path.join(foldername, filename)

        loaded = {}
        with open(filepath, 'r') as file:
            reader = csv.DictReader(file)
            for row in reader:
                option_key_name = row['Option']
                if option_key_name not in SimOptionsEnum.__members__:
                    continue
                option_key = SimOptionsEnum[option_key_name]
                loaded[option_key] = row['Value']

        # LEAF_PERCENTAGE is derived from RELAY_PERCENTAGE
        loaded.pop(SimOptionsEnum.LEAF_PERCENTAGE, None)
        if SimOptionsEnum.NODE_COUNT in loaded:
            self.all_options[SimOptionsEnum.NODE_COUNT].change_to_this(loaded.pop(SimOptionsEnum.NODE_COUNT))
            self.set(SimOptionsEnum.NODE_COUNT, self.get(SimOptionsEnum.NODE_COUNT))
        for option_key, option_value in loaded.items():
            single_option = self.all_options[option_key]
            try:
                single_option.change_to_this(option_value)
            except ValueError:
                continue
            self.set(option_key, single_option.get())

    def get_description(self):
        result = " "
        for i, key in enumerate(self.all_options):
            single_option: SingleSimOption = self.all_options[key]
            if i % 5 == 0:
                result += "\n"
            value = single_option.option
            if isinstance(value, float):
                value = round(value, 3)
            result += f"{single_option.short_name}={value},"
        return result

    def set_all_options(self):
        """_______________________________________________________________"""

        temp_enum = SimOptionsEnum.NODE_COUNT
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="N",
                                                      option=50, min_value=10, max_value=100)

        temp_enum = SimOptionsEnum.AVERAGE_DEGREE
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="K",
                                                      option=4, min_value=2, max_value=49)

        temp_enum = SimOptionsEnum.RELAY_PERCENTAGE
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="REL%",
                                                      option=20, min_value=0, max_value=100,
                                                      value_type=float)

        temp_enum = SimOptionsEnum.LEAF_PERCENTAGE
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="LEAF%",
                                                      option=80, min_value=0, max_value=100,
                                                      value_type=float)

        temp_enum = SimOptionsEnum.PUSH_BUDGET
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="PUSH",
                                                      option=2, min_value=1, max_value=10)

        temp_enum = SimOptionsEnum.GOSSIP_BUDGET
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="GOS",
                                                      option=3, min_value=1, max_value=10)

        temp_enum = SimOptionsEnum.PULL_BUDGET
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="PULL",
                                                      option=3, min_value=1, max_value=10)

        temp_enum = SimOptionsEnum.ROUND_DELAY
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="DLY",
                                                      option=500, min_value=50, max_value=5000,
                                                      value_type=float)

        temp_enum = SimOptionsEnum.MAX_ROUNDS
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="MAXR",
                                                      option=100, min_value=10, max_value=1000)

        temp_enum = SimOptionsEnum.TRANSFER_DURATION
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="TDUR",
                                                      option=1000, min_value=50, max_value=5000,
                                                      value_type=float)

        temp_enum = SimOptionsEnum.ANIMATION_SPEED
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="SPD",
                                                      option=1.0, min_value=0.1, max_value=10,
                                                      value_type=float)

        temp_enum = SimOptionsEnum.SHOW_TRANSFERS
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="SHOWT",
                                                      option=True, value_type=bool)

        temp_enum = SimOptionsEnum.MALICIOUS_PERCENTAGE
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="MAL%",
                                                      option=0, min_value=0, max_value=100,
                                                      value_type=float)

        temp_enum = SimOptionsEnum.USEFUL_CONTACT_RATIO
        self.all_options[temp_enum] = SingleSimOption(name=temp_enum, short_name="USE",
                                                      option=1.0 / 3.0, min_value=0.0, max_value=1.0,
                                                      value_type=float)


PRESET_SETTINGS = {
    "DEFAULT": {},
    "SMALL_NETWORK": {
        SimOptionsEnum.NODE_COUNT: 20,
        SimOptionsEnum.AVERAGE_DEGREE: 3,
        SimOptionsEnum.ANIMATION_SPEED: 0.5,
    },
    "LARGE_NETWORK": {
        SimOptionsEnum.NODE_COUNT: 200,
        SimOptionsEnum.AVERAGE_DEGREE: 6,
        SimOptionsEnum.ANIMATION_SPEED: 2,
    },
    "FAST_SIMULATION": {
        SimOptionsEnum.ANIMATION_SPEED: 4,
        SimOptionsEnum.ROUND_DELAY: 100,
        SimOptionsEnum.SHOW_TRANSFERS: False,
    },
    "TGL_OPTIMIZED": {
        SimOptionsEnum.RELAY_PERCENTAGE: 25,
        SimOptionsEnum.PUSH_BUDGET: 4,
        SimOptionsEnum.PULL_BUDGET: 4,
    },
}


def from_preset(preset_name: str) -> SimOptions:
    if preset_name not in PRESET_SETTINGS:
        raise ValueError(f"Unknown preset: {preset_name}")
    sim_options = SimOptions()
    sim_options.name = preset_name
    sim_options.apply(PRESET_SETTINGS[preset_name])
    return sim_options

import copy
import datetime as datetime
import logging
import os
from enum import Enum, auto

import matplotlib
import networkx as nx
import numpy as np

from Behavior import DEFAULT_BEHAVIOR
from Data import Data, HistoricalMetrics, SavingsTracker, compare_runs, network_metrics, speed_gain
from MathUtils import spawn_rngs
from NetworkState import NetworkState, SimulationStage, empty_state
from Propagation import advance_round, advance_stage
from SimOptions import ProtocolType, SimOptions, SimOptionsEnum
from Topology import TopologyError, build_flooding_topology, build_hierarchical_topology, now_ms, to_graph
from TransferTracker import clear_transfers, has_transfers_in_flight, tick_transfers
from VisOptions import VisOptions

matplotlib.use('Agg')
import matplotlib.pyplot as plt

VERSION = "v1_tgl_compare"


class RunOptionsEnum(Enum):
    SAVE_FOLDER = auto()
    PLOTTING = auto()
    LOG_FILE = auto()
    SEED = auto()
    FRAME_MS = auto()
    MAX_FRAMES = auto()
    ANGLE = auto()


def default_run_options():
    return {
        RunOptionsEnum.SAVE_FOLDER: "outputs",
        RunOptionsEnum.PLOTTING: False,
        RunOptionsEnum.LOG_FILE: None,
        RunOptionsEnum.SEED: None,
        RunOptionsEnum.FRAME_MS: 16,
        RunOptionsEnum.MAX_FRAMES: 100000,
        RunOptionsEnum.ANGLE: 0.35,
    }


class Simulation:
    """
    Drives a flooding run and a hierarchical run side by side on the same settings.
    The engine functions are pure, this class owns the current snapshots, the random
    streams and the scheduling, and tells its observers about every new snapshot.
    """

    sim_options_original: SimOptions = None
    sim_options: SimOptions = None
    vis_options: VisOptions = None

    name: str = None
    flooding_state: NetworkState = None
    hierarchical_state: NetworkState = None

    def __init__(self, sim_options: SimOptions, run_options_dict: dict = None, behavior=None):
        """
        :param sim_options: settings of both runs, copied so later changes need a reset
        :param run_options_dict: RunOptionsEnum keyed run settings, missing keys use the defaults
        :param behavior: forwarding behavior of the nodes, malicious nodes drop by default
        """
        self.run_options_dict = default_run_options()
        if run_options_dict is not None:
            self.run_options_dict.update(run_options_dict)

        self.sim_options_original = sim_options
        self.sim_options = copy.deepcopy(self.sim_options_original)
        self.behavior = DEFAULT_BEHAVIOR if behavior is None else behavior
        self.vis_options = VisOptions()

        self.name = f"{VERSION}_" + datetime.datetime.now().strftime("%Y_%m_%d_%H_%M_%S_%f")
        self.path = os.path.join(self.run_options_dict[RunOptionsEnum.SAVE_FOLDER], self.name)
        self.current_plot = 0
        self.paused = False

        self.observers = []
        self.data = {ProtocolType.FLOODING: Data(ProtocolType.FLOODING),
                     ProtocolType.HIERARCHICAL: Data(ProtocolType.HIERARCHICAL)}
        self.savings = SavingsTracker()
        self.historical_metrics = {ProtocolType.FLOODING: HistoricalMetrics(),
                                   ProtocolType.HIERARCHICAL: HistoricalMetrics()}

        log_path = self.run_options_dict[RunOptionsEnum.LOG_FILE]
        if self.run_options_dict[RunOptionsEnum.PLOTTING]:
            os.makedirs(self.path, exist_ok=True)
            self.sim_options.save(self.name, self.path)
            if log_path is None:
                log_path = os.path.join(self.path, "log")

        if log_path is not None:
            logger = logging.getLogger(log_path)
            logger.setLevel(logging.DEBUG)
            if not logger.handlers:
                handler = logging.FileHandler(log_path, mode='a')  # append mode
                formatter = logging.Formatter('%(asctime)s,%(msecs)d %(name)s %(levelname)s %(message)s',
                                              '%H:%M:%S')
                handler.setFormatter(formatter)
                logger.addHandler(handler)

            # This prevents the log messages from being duplicated in the python output
            logger.propagate = False
            self.logger = logger
        else:
            self.logger = logging.getLogger(__name__)

        self.reset()

    def subscribe(self, callback):
        """
        callback(protocol, state) is called after every new snapshot.
        :return: function that removes the callback again
        """
        self.observers.append(callback)

        def unsubscribe():
            if callback in self.observers:
                self.observers.remove(callback)
        return unsubscribe

    def notify(self, protocol: ProtocolType, state: NetworkState):
        for callback in list(self.observers):
            callback(protocol, state)

    def get_state(self, protocol: ProtocolType) -> NetworkState:
        if protocol is ProtocolType.FLOODING:
            return self.flooding_state
        return self.hierarchical_state

    def set_state(self, protocol: ProtocolType, state: NetworkState):
        if protocol is ProtocolType.FLOODING:
            self.flooding_state = state
        else:
            self.hierarchical_state = state
        self.notify(protocol, state)

    def build(self, protocol: ProtocolType) -> NetworkState:
        """
        Initial snapshot of one protocol from the current settings. A topology that
        cannot be built gives an empty, completed snapshot in the ERROR stage.
        """
        malicious_percentage = self.sim_options.get(SimOptionsEnum.MALICIOUS_PERCENTAGE)
        try:
            if protocol is ProtocolType.FLOODING:
                return build_flooding_topology(node_count=self.sim_options.get(SimOptionsEnum.NODE_COUNT),
                                               degree=self.sim_options.get(SimOptionsEnum.AVERAGE_DEGREE),
                                               malicious_percentage=malicious_percentage,
                                               rng=self.rngs[protocol], now=self.clock_ms)
            return build_hierarchical_topology(relay_count=self.sim_options.relay_count(),
                                               leaf_count=self.sim_options.leaf_count(),
                                               push_budget=self.sim_options.get(SimOptionsEnum.PUSH_BUDGET),
                                               malicious_percentage=malicious_percentage,
                                               rng=self.rngs[protocol], now=self.clock_ms)
        except TopologyError as e:
            self.logger.error(f"could not build {protocol.value} topology: {e}")
            return empty_state(protocol, SimulationStage.ERROR)

    def reset(self):
        """
        Rebuilds both topologies from the current settings with fresh random streams.
        :return: (flooding state, hierarchical state)
        """
        seed = self.run_options_dict[RunOptionsEnum.SEED]
        rng_flooding, rng_hierarchical = spawn_rngs(seed, 2)
        self.rngs = {ProtocolType.FLOODING: rng_flooding, ProtocolType.HIERARCHICAL: rng_hierarchical}
        self.clock_ms = now_ms()
        self.elapsed = {ProtocolType.FLOODING: 0.0, ProtocolType.HIERARCHICAL: 0.0}
        self.paused = False
        self.savings.reset()

        for protocol in ProtocolType:
            self.data[protocol].reset()
            self.set_state(protocol, self.build(protocol))

        self.logger.info(f"reset: behavior {self.behavior.name},{self.sim_options.get_description()}")
        return self.flooding_state, self.hierarchical_state

    def apply_options(self, values: dict):
        """
        Changes settings of the running simulation and rebuilds both runs.
        """
        self.sim_options.apply(values)
        return self.reset()

    def pause(self):
        self.paused = True
        for protocol in ProtocolType:
            state = self.get_state(protocol)
            if not state.is_complete:
                self.set_state(protocol, state.replace(stage=SimulationStage.PAUSED))

    def resume(self):
        self.paused = False
        for protocol in ProtocolType:
            state = self.get_state(protocol)
            if state.stage is SimulationStage.PAUSED:
                self.set_state(protocol, state.replace(stage=SimulationStage.RUNNING))

    def is_complete(self) -> bool:
        return self.flooding_state.is_complete and self.hierarchical_state.is_complete

    def step(self, protocol: ProtocolType) -> NetworkState:
        """
        One round (flooding) or one stage (hierarchical), ignoring the scheduling gates.
        """
        state = self.get_state(protocol)
        if state.is_complete:
            return state

        max_rounds = self.sim_options.get(SimOptionsEnum.MAX_ROUNDS)
        if protocol is ProtocolType.FLOODING:
            new_state = advance_round(state, self.rngs[protocol],
                                      degree=self.sim_options.get(SimOptionsEnum.AVERAGE_DEGREE),
                                      useful_ratio=self.sim_options.get(SimOptionsEnum.USEFUL_CONTACT_RATIO),
                                      behavior=self.behavior, max_rounds=max_rounds,
                                      now=self.clock_ms, logger=self.logger)
        else:
            new_state = advance_stage(state, self.rngs[protocol],
                                      push_budget=self.sim_options.get(SimOptionsEnum.PUSH_BUDGET),
                                      gossip_budget=self.sim_options.get(SimOptionsEnum.GOSSIP_BUDGET),
                                      pull_budget=self.sim_options.get(SimOptionsEnum.PULL_BUDGET),
                                      behavior=self.behavior, max_rounds=max_rounds,
                                      now=self.clock_ms, logger=self.logger)

        if not self.sim_options.get(SimOptionsEnum.SHOW_TRANSFERS):
            new_state = clear_transfers(new_state)

        self.data[protocol].record(new_state)
        if new_state.is_complete:
            self.historical_metrics[protocol].add(self.metrics(protocol, new_state))
        self.set_state(protocol, new_state)
        self.savings.update(self.comparison())
        return new_state

    def update(self, delta_ms: float):
        """
        One frame of the scheduler. Transfers move every frame, a run advances once
        ROUND_DELAY has passed and none of its transfers is still in flight.
        """
        if self.paused:
            return
        self.clock_ms += delta_ms
        transfer_delta = delta_ms * self.sim_options.get(SimOptionsEnum.ANIMATION_SPEED)
        transfer_duration = self.sim_options.get(SimOptionsEnum.TRANSFER_DURATION)
        round_delay = self.sim_options.get(SimOptionsEnum.ROUND_DELAY)

        for protocol in ProtocolType:
            state = self.get_state(protocol)
            if len(state.transfers) > 0:
                state = tick_transfers(state, transfer_delta, transfer_duration)
                self.set_state(protocol, state)
            if state.is_complete:
                continue

            self.elapsed[protocol] += delta_ms
            if self.elapsed[protocol] >= round_delay and not has_transfers_in_flight(state):
                self.elapsed[protocol] = 0.0
                self.step(protocol)

    def metrics(self, protocol: ProtocolType, state: NetworkState = None):
        if state is None:
            state = self.get_state(protocol)
        average_degree = 0
        if protocol is ProtocolType.FLOODING:
            average_degree = self.sim_options.get(SimOptionsEnum.AVERAGE_DEGREE)
        return network_metrics(state, average_degree=average_degree,
                               peak_messages_per_round=self.data[protocol].peak_messages_per_round)

    def comparison(self):
        return compare_runs(self.flooding_state, self.hierarchical_state,
                            average_degree=self.sim_options.get(SimOptionsEnum.AVERAGE_DEGREE))

    def run_main_loop(self, frame_ms: float = None, max_frames: int = None):
        """
        Headless main loop, runs both protocols to completion.
        :param frame_ms: simulated time per frame
        :param max_frames: safety cap of frames
        :return: comparison of the two runs, None if it is undefined
        """
        if frame_ms is None:
            frame_ms = self.run_options_dict[RunOptionsEnum.FRAME_MS]
        if max_frames is None:
            max_frames = self.run_options_dict[RunOptionsEnum.MAX_FRAMES]

        print("Settings:", self.sim_options.get_description().replace("\n", ", "))

        frames = 0
        while not self.is_complete() and frames < max_frames:
            self.update(frame_ms)
            frames += 1

        if not self.is_complete():
            self.logger.warning(f"stopped after {frames} frames before both runs completed")

        for protocol in ProtocolType:
            state = self.get_state(protocol)
            termination = state.termination.value if state.termination is not None else state.stage.value
            print(protocol.value, "rounds", state.round, ", messages", state.total_messages_sent,
                  ", coverage", round(state.coverage, 2), ",", termination)

        comparison = self.comparison()
        if comparison is not None:
            print("Message reduction", round(comparison.message_reduction, 2),
                  ", Round difference", comparison.round_difference,
                  ", Efficiency improvement", round(comparison.efficiency_improvement, 2),
                  ", Speed gain", speed_gain(comparison))

        if self.run_options_dict[RunOptionsEnum.PLOTTING]:
            self.plot_network()
            for protocol in ProtocolType:
                self.data[protocol].save_json(os.path.join(self.path, f"history_{protocol.value}.json"))
        return comparison

    def project(self, state: NetworkState):
        """
        Rotates the 3D layout around the y axis and projects it onto the xy plane.
        :return: projected positions by node id, depth in [-1, 1] by node id
        """
        angle = self.run_options_dict[RunOptionsEnum.ANGLE]
        c, s = np.cos(angle), np.sin(angle)
        rotation_matrix = np.array([[c, 0, -s], [0, 1.0, 0], [s, 0, c]])

        projected_pos = {}
        depth = {}
        for cur_node in state.nodes:
            new_coord = np.matmul(rotation_matrix, np.array(cur_node.position.as_tuple()) / 100.0)
            projected_pos[cur_node.id] = new_coord[0:2]
            depth[cur_node.id] = min(max(new_coord[-1], -1.0), 1.0)
        return projected_pos, depth

    def draw_state(self, state: NetworkState, ax):
        g = to_graph(state)
        projected_pos, depth = self.project(state)
        nodes_by_id = state.node_index()

        node_list = sorted(g.nodes, key=lambda node_id: depth[node_id])
        options_node = {
            'nodelist': node_list,
            'node_shape': "o",
            'node_size': [self.vis_options.node_size(nodes_by_id[node_id], depth[node_id]) for node_id in node_list],
            'node_color': [self.vis_options.node_color(nodes_by_id[node_id]) for node_id in node_list],
            'edgecolors': [self.vis_options.malicious_edgecolor if nodes_by_id[node_id].is_malicious
                           else self.vis_options.backgroundcolor for node_id in node_list],
            'linewidths': 1.0,
        }
        edge_list = [(cur_edge.source_id, cur_edge.target_id) for cur_edge in state.edges]
        options_edge = {
            'edgelist': edge_list,
            'width': [self.vis_options.edge_width(cur_edge) for cur_edge in state.edges],
            'edge_color': [self.vis_options.active_edge_color if cur_edge.active else self.vis_options.edge_color
                           for cur_edge in state.edges],
        }
        if len(edge_list) > 0:
            nx.draw_networkx_edges(G=g, pos=projected_pos, ax=ax, **options_edge)
        if len(node_list) > 0:
            nx.draw_networkx_nodes(G=g, pos=projected_pos, ax=ax, **options_node)

        ax.set_title(f"{state.protocol.value}, round {state.round}, coverage {round(state.coverage, 1)}%, "
                     f"messages {state.total_messages_sent}")
        ax.set_axis_off()
        lim = 1.2
        ax.set_xlim(-lim, lim)
        ax.set_ylim(-lim, lim)

    def plot_network(self, filename: str = None):
        """
        Saves a PNG with both networks, nodes colored by state, and the coverage curves.
        :param filename: target file, a numbered file in the run folder when omitted
        :return: path of the written image
        """
        if filename is None:
            os.makedirs(self.path, exist_ok=True)
            filename = os.path.join(self.path, f"Plot {int(self.current_plot)}.png")
        self.current_plot += 1

        self.vis_options.apply_style()
        fig = plt.figure(figsize=(16, 9), dpi=100)
        ax1 = plt.subplot2grid((3, 2), (0, 0), rowspan=2)
        ax2 = plt.subplot2grid((3, 2), (0, 1), rowspan=2)
        ax3 = plt.subplot2grid((3, 2), (2, 0), colspan=2)

        self.draw_state(self.flooding_state, ax1)
        self.draw_state(self.hierarchical_state, ax2)

        for protocol in ProtocolType:
            cur_data = self.data[protocol]
            x_iter = np.arange(cur_data.first_index(), cur_data.advances)
            ax3.plot(x_iter, cur_data.coverage_history, color=self.vis_options.protocol_colors[protocol.value],
                     label=protocol.value)
        ax3.set_title("Coverage per advance")
        ax3.set_ylim(0, 105)
        ax3.grid(axis="y")
        ax3.legend(loc="lower right")

        fig.suptitle(f"{self.name}, {self.sim_options.get_description()}", fontsize=8)
        plt.savefig(filename, facecolor=self.vis_options.backgroundcolor, edgecolor='none')
        plt.close(fig)
        return filename

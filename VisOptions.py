from matplotlib import style

from Node import NodeState


class VisOptions:

    backgroundcolor = (0.1, 0.1, 0.1, 1)
    linecolor = "white"

    state_colors = {
        NodeState.IDLE: (0.45, 0.45, 0.5, 1),
        NodeState.ACTIVE: (0.2, 0.85, 0.45, 1),
        NodeState.SENDING: (0.3, 0.6, 1.0, 1),
        NodeState.RECEIVING: (1.0, 0.8, 0.2, 1),
        NodeState.COMPLETED: (0.6, 0.4, 1.0, 1),
        NodeState.FAILED: (1.0, 0.25, 0.25, 1),
    }
    malicious_edgecolor = (1.0, 0.1, 0.1, 1)
    edge_color = (0.6, 0.6, 0.6, 0.35)
    active_edge_color = (1.0, 0.85, 0.3, 0.9)
    protocol_colors = {"flooding": "tab:orange", "hierarchical": "tab:cyan"}

    max_size_edge = 2.5
    min_size_edge = 0.6
    max_size_node = 120
    min_size_node = 40
    relay_size_factor = 1.6

    def __init__(self):
        self.min_size_node = self.max_size_node*self.min_size_edge/self.max_size_edge

    def node_color(self, node):
        return self.state_colors[node.state]

    def node_size(self, node, depth):
        """
        depth in [-1, 1], nodes closer to the viewer are drawn larger
        """
        size = self.min_size_node + (self.max_size_node - self.min_size_node) * (depth + 1) / 2
        if node.is_relay:
            size *= self.relay_size_factor
        return size

    def edge_width(self, edge):
        return self.max_size_edge if edge.active else self.min_size_edge

    def apply_style(self):
        if self.backgroundcolor[0] < 0.5:
            style.use('dark_background')
            self.linecolor = "white"
        else:
            style.use('default')
            self.linecolor = "black"

from Node import Node


class Behavior:
    """
    Decides whether a node passes on what it received. Fault injection plugs in here,
    the propagation engine itself has a single code path.
    """

    name = "cooperative"

    def forwards(self, node: Node) -> bool:
        return True


class MaliciousDropBehavior(Behavior):
    """
    Nodes flagged malicious silently drop every outgoing message.
    """

    name = "malicious_drop"

    def forwards(self, node: Node) -> bool:
        return not node.is_malicious


DEFAULT_BEHAVIOR = MaliciousDropBehavior()

import threading

from poemeter.models import PointsHistoryNode


class RecordStore:
    """
    RecordStore: Is a thread-safe in-memory store of fetched
    points history nodes, keyed by node id.

    It doubles as the duplicate check for incremental syncs: a
    sync stops at the first node whose id is already stored.

    Supports time-based eviction via evict_before() to prevent
    unbounded memory growth.
    """

    def __init__(self) -> "None":
        self._lock: "threading.Lock" = threading.Lock()
        self._nodes: "dict[str, PointsHistoryNode]" = {}

    def __len__(self) -> "int":
        with self._lock:
            return len(self._nodes)

    def contains(self, node_id: "str") -> "bool":
        with self._lock:
            return node_id in self._nodes

    def upsert(self, node: "PointsHistoryNode") -> "bool":
        """
        stores the node, replacing any node with the same id.
        Returns True if the node was new.
        """
        with self._lock:
            is_new = node.id not in self._nodes
            self._nodes[node.id] = node
            return is_new

    def latest(self, limit: "int" = 20) -> "list[PointsHistoryNode]":
        """
        returns the most recent nodes, newest first.
        """
        with self._lock:
            nodes = list(self._nodes.values())
        nodes.sort(key=lambda n: n.creation_time, reverse=True)
        return nodes[: max(limit, 0)]

    def in_range(
        self,
        start_time: "int",
        end_time: "int",
    ) -> "list[PointsHistoryNode]":
        """
        returns nodes with start_time <= creation_time < end_time
        (microseconds), oldest first.
        """
        with self._lock:
            nodes = [
                n
                for n in self._nodes.values()
                if start_time <= n.creation_time < end_time
            ]
        nodes.sort(key=lambda n: n.creation_time)
        return nodes

    def all(self) -> "list[PointsHistoryNode]":
        with self._lock:
            nodes = list(self._nodes.values())
        nodes.sort(key=lambda n: n.creation_time)
        return nodes

    def evict_before(self, cutoff: "int") -> "int":
        """
        removes all nodes created before cutoff (microseconds).
        Returns the number of evicted nodes.
        """
        with self._lock:
            to_remove = [k for k, n in self._nodes.items() if n.creation_time < cutoff]
            for k in to_remove:
                del self._nodes[k]
            return len(to_remove)

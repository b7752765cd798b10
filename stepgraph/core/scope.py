from typing import Optional

from stepgraph.core import graph as graph_lib


class Scope:
    """ A naming context of a graph.

    A scope has a name prefix, and every op name it hands out is unique within the whole graph. Sub scopes
    reserve their own name in the graph too, so `scope.new_sub_scope("x")` never clashes with an op named "x".

    Notes:
        Scopes share the graph's naming state, building from multiple threads must be synchronized by the caller.

    """

    def __init__(self, graph: graph_lib.Graph, prefix: str = "", op_name: Optional[str] = None):
        self._graph = graph
        self._prefix = prefix
        self._op_name = op_name

    @classmethod
    def new_root_scope(cls) -> "Scope":
        return cls(graph_lib.Graph())

    @property
    def graph(self) -> graph_lib.Graph:
        return self._graph

    @property
    def name(self) -> str:
        return self._prefix.rstrip("/")

    def get_unique_name_for_op(self, default_name: str) -> str:
        """The `with_op_name` override wins over `default_name`."""
        base = self._op_name if self._op_name is not None else default_name
        return self._graph.unique_name(self._prefix + base)

    def new_sub_scope(self, name: str) -> "Scope":
        if not name:
            return Scope(self._graph, self._prefix)
        full_name = self._graph.unique_name(self._prefix + name)
        return Scope(self._graph, full_name + "/")

    def with_op_name(self, op_name: str) -> "Scope":
        return Scope(self._graph, self._prefix, op_name)

    def scope_of(self, op_name: str) -> "Scope":
        """A scope nested under an already unique op name, used to name the helper ops of that op."""
        return Scope(self._graph, op_name + "/")

    def __repr__(self):
        return f"Scope({self.name!r})"

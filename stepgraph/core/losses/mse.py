from stepgraph.core import graph
from stepgraph.core import scope as scope_lib
from stepgraph.core.ops import math


def mse(scope: scope_lib.Scope, output: graph.OutputLike, label: graph.OutputLike) -> graph.Operation:
    """mean((output - label)^2), a scalar."""
    scope = scope.new_sub_scope("mse")
    return math.reduce_mean(scope, math.square(scope, math.sub(scope, output, label)))

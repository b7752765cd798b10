import logging
from typing import List, Dict, Optional, Sequence, Set

from stepgraph.core import errors
from stepgraph.core import graph
from stepgraph.core import scope as scope_lib
from stepgraph.core.ops import math

_loger = logging.getLogger(__name__)


def _mark_grad_path(g: graph.Graph, ys: Sequence[graph.Output], xs: Sequence[graph.Output]) -> Set[graph.Operation]:
    """Ops that depend on some x and that some y depends on."""
    from_xs: Set[graph.Operation] = {x.operation for x in xs}
    for op in g.operations():
        if any(i.operation in from_xs for i in op.inputs):
            from_xs.add(op)

    on_path: Set[graph.Operation] = set()
    stack = [y.operation for y in ys]
    while stack:
        op = stack.pop()
        if op in on_path or op not in from_xs:
            continue
        on_path.add(op)
        stack.extend(i.operation for i in op.inputs)
    return on_path


def _aggregate(scope: scope_lib.Scope, contributions: List[graph.Output]) -> Optional[graph.Output]:
    if not contributions:
        return None
    if len(contributions) == 1:
        return contributions[0]
    return math.add_n(scope, contributions).output(0)


def add_gradients(g: graph.Graph,
                  ys: Sequence[graph.OutputLike],
                  xs: Sequence[graph.OutputLike],
                  dxs: Optional[Sequence[graph.OutputLike]] = None,
                  prefix: Optional[str] = None) -> List[Optional[graph.Output]]:
    """See `Graph.add_gradients`."""
    ys = [graph.as_output(y) for y in ys]
    xs = [graph.as_output(x) for x in xs]
    for y in ys:
        g._check_owned(y.operation, "gradient target")
    for x in xs:
        g._check_owned(x.operation, "gradient source")
    if dxs is not None:
        dxs = [graph.as_output(d) for d in dxs]
        if len(dxs) != len(ys):
            raise errors.InvalidArgumentError(f"Got {len(dxs)} initial gradients for {len(ys)} outputs")

    on_path = _mark_grad_path(g, ys, xs)
    if not any(x.operation in on_path for x in xs):
        _loger.warning(f"No gradient computed, none of {xs} is used to compute {ys}.")
        return [None] * len(xs)

    scope = scope_lib.Scope(g).new_sub_scope(prefix or "gradients")
    pending: Dict[graph.Output, List[graph.Output]] = {}
    for i, y in enumerate(ys):
        seed = dxs[i] if dxs is not None else math.ones_like(scope, y).output(0)
        pending.setdefault(y, []).append(seed)

    # creation order is a topological order, so walking it backwards sees every user before its inputs
    done: Dict[graph.Output, Optional[graph.Output]] = {}
    for op in reversed([op for op in g.operations() if op in on_path]):
        out_grads = []
        for out in op.outputs:
            out_grads.append(_aggregate(scope, pending.pop(out, [])))
            done[out] = out_grads[-1]
        if all(gr is None for gr in out_grads):
            continue
        # sources such as the variables themselves, nothing to propagate
        if not any(i.operation in on_path for i in op.inputs):
            continue
        op_kernel = op.kernel
        if not op_kernel.has_gradient():
            raise errors.InvalidArgumentError(f"No gradient defined for op {op.name} of type {op.op_type}")
        in_grads = op_kernel.gradient(scope, op, out_grads)
        assert len(in_grads) == len(op.inputs), "Gradient rule must return one entry per input"
        for inp, in_grad in zip(op.inputs, in_grads):
            if in_grad is None or inp.operation not in on_path:
                continue
            pending.setdefault(inp, []).append(graph.as_output(in_grad))

    return [done.get(x) for x in xs]

import logging
from typing import List, Dict, Optional, Sequence, Any

import numpy as np

from stepgraph import common
from stepgraph.core import errors
from stepgraph.core import graph

_loger = logging.getLogger(__name__)


class VariableRef:
    """Mutable handle of one variable's storage, passed to kernels for their ref inputs."""

    def __init__(self, session: "Session", name: str, dtype: common.DataType):
        self._session = session
        self.name = name
        self.dtype = dtype

    def is_initialized(self) -> bool:
        return self.name in self._session._variables

    def read(self) -> np.ndarray:
        if not self.is_initialized():
            raise errors.FailedPreconditionError(f"Attempting to use uninitialized value {self.name}")
        return self._session._variables[self.name]

    @property
    def shape(self) -> common.Shape:
        return self.read().shape

    def assign(self, value: Any) -> None:
        self._session._variables[self.name] = np.asarray(value, dtype=self.dtype)


class _Run:
    """ State of one evaluation phase of `Session.run`.

    Operations are executed in graph creation order, which is a topological order, so no recursion is needed
    however deep the graph is.

    """

    def __init__(self, session: "Session", feeds: Dict[graph.Output, np.ndarray]):
        self.session = session
        self.feeds = feeds
        self.cache: Dict[graph.Operation, List[np.ndarray]] = {}
        self._order = {op: i for i, op in enumerate(session.graph.operations())}

    def value_of(self, output: graph.Output) -> np.ndarray:
        if output in self.feeds:
            return self.feeds[output]
        op = output.operation
        if op in self.cache:
            return self.cache[op][output.index]
        if not op.kernel.CACHEABLE:
            return self._compute(op)[output.index]
        return self.execute(op)[output.index]

    def execute(self, op: graph.Operation) -> List[np.ndarray]:
        """Run `op` after everything it depends on that has not run yet."""
        for pending in self._schedule(op):
            self.cache[pending] = self._compute(pending)
        if op in self.cache:
            return self.cache[op]
        return self._compute(op)

    def _schedule(self, root: graph.Operation) -> List[graph.Operation]:
        # non cacheable ops are left out, they are computed when their value is used
        seen = {root}
        stack = [root]
        ret = []
        while stack:
            op = stack.pop()
            if op.kernel.CACHEABLE:
                ret.append(op)
            deps = list(op.control_inputs)
            ref_inputs = op.kernel.REF_INPUTS
            for i, inp in enumerate(op.inputs):
                if i not in ref_inputs and inp not in self.feeds:
                    deps.append(inp.operation)
            for dep in deps:
                if dep not in seen and dep not in self.cache:
                    seen.add(dep)
                    stack.append(dep)
        return sorted(ret, key=self._order.__getitem__)

    def _compute(self, op: graph.Operation) -> List[np.ndarray]:
        op_kernel = op.kernel
        inputs = []
        for i, inp in enumerate(op.inputs):
            if i in op_kernel.REF_INPUTS:
                inputs.append(self.session.variable(inp.operation.name))
            else:
                inputs.append(self.value_of(inp))
        outputs = op_kernel.compute(self.session, op, inputs)
        if len(outputs) != op_kernel.NUM_OUTPUTS:
            raise errors.InvalidArgumentError(
                f"Kernel of {op.op_type} returned {len(outputs)} outputs, expected {op_kernel.NUM_OUTPUTS}")
        return outputs


class Session:
    """ Executes operations of a graph, and owns the values of the graph's variables.

    Notes:
        1. Targets are run first, then fetches are evaluated from scratch, so fetching a loss or a variable
           together with a training step target returns the value after the step.
        2. Within the targets, and within the fetches, every operation is executed at most once, except variable
           reads which always return the current value.

    """

    def __init__(self, graph_: graph.Graph):
        self.graph = graph_
        self._variables: Dict[str, np.ndarray] = {}

    def variable(self, name: str) -> VariableRef:
        op = self.graph.operation_by_name(name)
        if op.op_type != "VariableV2":
            raise errors.InvalidArgumentError(f"{name} is a {op.op_type}, not a variable")
        return VariableRef(self, name, op.get_attr("dtype"))

    def run(self,
            fetches: Sequence[graph.OutputLike] = (),
            targets: Sequence[graph.Operation] = (),
            feed_dict: Optional[Dict[graph.OutputLike, common.ArrayLike]] = None) -> List[np.ndarray]:
        """ Run `targets`, then evaluate `fetches`.

        Args:
            fetches: outputs (or operations, meaning their first output) to evaluate.
            targets: operations to run, their outputs are not returned.
            feed_dict: values replacing outputs, placeholders must be fed here.

        Returns:
            A copy of the value of every fetch, in order.

        """
        feeds = {}
        for k, v in (feed_dict or {}).items():
            out = graph.as_output(k)
            self.graph._check_owned(out.operation, "fed output")
            feeds[out] = np.asarray(v)
        target_run = _Run(self, feeds)
        for t in targets:
            if not isinstance(t, graph.Operation):
                raise TypeError(f"Run target must be an Operation, got {type(t)}")
            self.graph._check_owned(t, "run target")
            target_run.execute(t)
        fetch_run = _Run(self, feeds)
        ret = []
        for f in fetches:
            out = graph.as_output(f)
            self.graph._check_owned(out.operation, "fetch")
            ret.append(np.array(fetch_run.value_of(out), copy=True))
        executed = len(target_run.cache) + len(fetch_run.cache)
        _loger.debug(f"Run {len(targets)} targets, {len(fetches)} fetches, {executed} operations cached")
        return ret

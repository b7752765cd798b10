import logging
from typing import List, Union, Dict, Optional, Sequence, Any, NamedTuple, Iterator, Tuple

from stepgraph.core import errors
from stepgraph.core import kernel

_loger = logging.getLogger(__name__)


class Output(NamedTuple):
    """One output slot of an operation. Cheap to copy, does not own anything."""
    operation: "Operation"
    index: int = 0

    @property
    def graph(self) -> "Graph":
        return self.operation.graph

    def __repr__(self):
        return f"{self.operation.name}:{self.index}"


OutputLike = Union[Output, "Operation"]


def as_output(value: OutputLike) -> Output:
    """Operations are accepted wherever an Output is expected, and mean their first output."""
    if isinstance(value, Output):
        return value
    if isinstance(value, Operation):
        return value.output(0)
    raise TypeError(f"Expected an Output or an Operation, got {type(value)}")


class Operation:
    """ A finished, immutable node of a Graph.

    Operations are only created by `OperationDescription.finish`, they are compared by identity.

    """

    def __init__(self,
                 graph: "Graph",
                 name: str,
                 op_type: str,
                 inputs: Sequence[Output],
                 control_inputs: Sequence["Operation"],
                 attrs: Dict[str, Any]):
        self.graph = graph
        self.name = name
        self.op_type = op_type
        self.inputs: Tuple[Output, ...] = tuple(inputs)
        self.control_inputs: Tuple[Operation, ...] = tuple(control_inputs)
        self.attrs: Dict[str, Any] = dict(attrs)

    @property
    def kernel(self) -> "kernel.OpKernel":
        return kernel.lookup(self.op_type)

    @property
    def num_outputs(self) -> int:
        return self.kernel.NUM_OUTPUTS

    def output(self, index: int = 0) -> Output:
        if index < 0 or index >= self.num_outputs:
            raise errors.InvalidArgumentError(
                f"Operation {self.name} has {self.num_outputs} outputs, index {index} is out of range")
        return Output(self, index)

    @property
    def outputs(self) -> List[Output]:
        return [Output(self, i) for i in range(self.num_outputs)]

    def get_attr(self, name: str, default: Any = None) -> Any:
        return self.attrs.get(name, default)

    def __repr__(self):
        args = ' , '.join([repr(i) for i in self.inputs])
        ret = f"{self.name} = {self.op_type}({args})"
        if self.control_inputs:
            ret += f" ^[{' , '.join([c.name for c in self.control_inputs])}]"
        return ret


class OperationDescription:
    """Builder of a single Operation, obtained from `Graph.new_operation`."""

    def __init__(self, graph: "Graph", op_type: str, name: str):
        self._graph = graph
        self._op_type = op_type
        self._name = name
        self._inputs: List[Output] = []
        self._control_inputs: List[Operation] = []
        self._attrs: Dict[str, Any] = {}
        self._finished = False

    @property
    def op_type(self) -> str:
        return self._op_type

    @property
    def name(self) -> str:
        return self._name

    @property
    def inputs(self) -> List[Output]:
        return self._inputs

    @property
    def control_inputs(self) -> List[Operation]:
        return self._control_inputs

    @property
    def attrs(self) -> Dict[str, Any]:
        return self._attrs

    def add_input(self, value: OutputLike) -> "OperationDescription":
        output = as_output(value)
        self._graph._check_owned(output.operation, f"input {len(self._inputs)} of {self._name}")
        self._inputs.append(output)
        return self

    def add_input_list(self, values: Sequence[OutputLike]) -> "OperationDescription":
        for v in values:
            self.add_input(v)
        return self

    def add_control_input(self, op: "Operation") -> "OperationDescription":
        if not isinstance(op, Operation):
            raise TypeError(f"Control input must be an Operation, got {type(op)}")
        self._graph._check_owned(op, f"control input of {self._name}")
        self._control_inputs.append(op)
        return self

    def set_attr(self, name: str, value: Any) -> "OperationDescription":
        self._attrs[name] = value
        return self

    def finish(self) -> Operation:
        if self._finished:
            raise errors.InvalidArgumentError(f"Operation {self._name} has already been finished")
        op_kernel = kernel.lookup(self._op_type)
        expected = op_kernel.NUM_INPUTS
        if expected is not None and len(self._inputs) != expected:
            raise errors.InvalidArgumentError(
                f"{self._op_type} expects {expected} inputs, {self._name} got {len(self._inputs)}")
        for i in op_kernel.REF_INPUTS:
            if i < len(self._inputs) and self._inputs[i].operation.op_type != "VariableV2":
                raise errors.InvalidArgumentError(
                    f"Input {i} of {self._name} ({self._op_type}) must be a variable, "
                    f"got {self._inputs[i].operation.op_type}")
        op_kernel.validate(self)
        op = self._graph._add_operation(self)
        self._finished = True
        return op


class Graph:
    """ A computation graph, owns every operation created in it.

    Operations are stored in creation order, and since an input must be finished before it can be used,
    creation order is always a topological order.

    """

    def __init__(self):
        self._operations: List[Operation] = []
        self._by_name: Dict[str, Operation] = {}
        self._used_names: Dict[str, int] = {}

    def unique_name(self, name: str) -> str:
        """Reserve and return `name`, or `name_N` with the smallest free N when `name` is taken."""
        if name not in self._used_names:
            self._used_names[name] = 0
            return name
        i = self._used_names[name]
        while True:
            i += 1
            candidate = f"{name}_{i}"
            if candidate not in self._used_names:
                break
        self._used_names[name] = i
        self._used_names[candidate] = 0
        return candidate

    def new_operation(self, op_type: str, name: str) -> OperationDescription:
        kernel.lookup(op_type)
        if name in self._by_name:
            raise errors.AlreadyExistsError(f"Operation named {name} already exists")
        self._used_names.setdefault(name, 0)
        return OperationDescription(self, op_type, name)

    def _add_operation(self, desc: OperationDescription) -> Operation:
        if desc.name in self._by_name:
            raise errors.AlreadyExistsError(f"Operation named {desc.name} already exists")
        op = Operation(self, desc.name, desc.op_type, desc.inputs, desc.control_inputs, desc.attrs)
        self._operations.append(op)
        self._by_name[op.name] = op
        _loger.debug(f"Add operation {op}")
        return op

    def _check_owned(self, op: Operation, what: str):
        if op.graph is not self:
            raise errors.InvalidArgumentError(f"The {what} ({op.name}) belongs to another graph")

    def operations(self) -> Iterator[Operation]:
        return iter(list(self._operations))

    def operation_by_name(self, name: str) -> Operation:
        if name not in self._by_name:
            raise errors.NotFoundError(f"No operation named {name}")
        return self._by_name[name]

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self):
        return len(self._operations)

    def add_gradients(self,
                      ys: Sequence[OutputLike],
                      xs: Sequence[OutputLike],
                      dxs: Optional[Sequence[OutputLike]] = None,
                      prefix: Optional[str] = None) -> List[Optional[Output]]:
        """ Add the symbolic partial derivatives of sum(ys) with respect to each of xs.

        Args:
            ys: outputs to differentiate.
            xs: outputs to differentiate against.
            dxs: initial gradients of ys, default to ones.
            prefix: name prefix of all created nodes, default to a unique "gradients".

        Returns:
            One entry per x, None when no y depends on that x.

        """
        from stepgraph.core import gradients
        return gradients.add_gradients(self, ys, xs, dxs, prefix)

    def dump(self):
        for op in self._operations:
            print(op)

import io
import unittest
from contextlib import redirect_stdout

import numpy as np

from stepgraph.core import errors
from stepgraph.core import graph
from stepgraph.core import kernel
from stepgraph.core import scope as scope_lib
from stepgraph.core import session as session_lib
from stepgraph.core import variable
from stepgraph.core.ops import common as common_ops
from stepgraph.core.ops import math
from stepgraph.core.ops import state


class _Double(kernel.OpKernel):
    OP_TYPE = "TestDouble"
    NUM_INPUTS = 1

    def compute(self, ctx, op, inputs):
        return [inputs[0] * 2]


class ScopeTest(unittest.TestCase):

    def test_unique_op_names(self):
        scope = scope_lib.Scope.new_root_scope()
        self.assertEqual(scope.get_unique_name_for_op("Const"), "Const")
        self.assertEqual(scope.get_unique_name_for_op("Const"), "Const_1")
        self.assertEqual(scope.get_unique_name_for_op("Const"), "Const_2")

    def test_sub_scope_names(self):
        scope = scope_lib.Scope.new_root_scope()
        layer = scope.new_sub_scope("layer")
        self.assertEqual(layer.name, "layer")
        self.assertEqual(layer.get_unique_name_for_op("Mul"), "layer/Mul")
        self.assertEqual(scope.new_sub_scope("layer").name, "layer_1")
        self.assertEqual(layer.new_sub_scope("inner").get_unique_name_for_op("Add"), "layer/inner/Add")

    def test_sub_scope_does_not_reuse_op_name(self):
        scope = scope_lib.Scope.new_root_scope()
        c = common_ops.constant(scope.with_op_name("x"), 1.0)
        self.assertEqual(c.name, "x")
        self.assertEqual(scope.new_sub_scope("x").name, "x_1")

    def test_with_op_name(self):
        scope = scope_lib.Scope.new_root_scope()
        c = common_ops.constant(scope.with_op_name("lr"), 0.1)
        self.assertEqual(c.name, "lr")
        c2 = common_ops.constant(scope.with_op_name("lr"), 0.1)
        self.assertEqual(c2.name, "lr_1")

    def test_name_taken_by_suffixed_op(self):
        scope = scope_lib.Scope.new_root_scope()
        scope.graph.new_operation("Const", "c_1").set_attr("value", np.array(1.0)).finish()
        self.assertEqual(scope.get_unique_name_for_op("c"), "c")
        self.assertEqual(scope.get_unique_name_for_op("c"), "c_2")


class GraphTest(unittest.TestCase):

    def setUp(self):
        self.scope = scope_lib.Scope.new_root_scope()
        self.g = self.scope.graph

    def test_build_operation(self):
        a = common_ops.constant(self.scope, 2.0)
        b = common_ops.constant(self.scope, 3.0)
        desc = self.g.new_operation("Mul", "product")
        desc.add_input(a).add_input(b.output(0))
        op = desc.finish()
        self.assertEqual(op.name, "product")
        self.assertEqual(op.op_type, "Mul")
        self.assertEqual(op.inputs, (a.output(0), b.output(0)))
        self.assertEqual(op.num_outputs, 1)
        self.assertIs(self.g.operation_by_name("product"), op)
        self.assertIn("product", self.g)
        self.assertEqual([o.name for o in self.g.operations()], ["Const", "Const_1", "product"])

    def test_duplicate_name(self):
        common_ops.constant(self.scope.with_op_name("c"), 1.0)
        with self.assertRaises(errors.AlreadyExistsError):
            self.g.new_operation("Const", "c")

    def test_unknown_op_type(self):
        with self.assertRaises(errors.NotFoundError):
            self.g.new_operation("NoSuchOp", "n")

    def test_unknown_op_name(self):
        with self.assertRaises(errors.NotFoundError):
            self.g.operation_by_name("missing")

    def test_wrong_input_count(self):
        a = common_ops.constant(self.scope, 1.0)
        desc = self.g.new_operation("Mul", "m")
        desc.add_input(a)
        with self.assertRaises(errors.InvalidArgumentError):
            desc.finish()

    def test_finish_twice(self):
        desc = self.g.new_operation("NoOp", "n")
        desc.finish()
        with self.assertRaises(errors.InvalidArgumentError):
            desc.finish()

    def test_input_from_another_graph(self):
        other = scope_lib.Scope.new_root_scope()
        foreign = common_ops.constant(other, 1.0)
        desc = self.g.new_operation("Neg", "neg")
        with self.assertRaises(errors.InvalidArgumentError):
            desc.add_input(foreign)

    def test_control_input_from_another_graph(self):
        other = scope_lib.Scope.new_root_scope()
        foreign = common_ops.NoOp().build(other)
        with self.assertRaises(errors.InvalidArgumentError):
            common_ops.NoOp().add_control_input(foreign).build(self.scope)

    def test_ref_input_must_be_variable(self):
        a = common_ops.constant(self.scope, 1.0)
        b = common_ops.constant(self.scope, 2.0)
        with self.assertRaises(errors.InvalidArgumentError):
            state.assign(self.scope, a, b)

    def test_output_index_out_of_range(self):
        a = common_ops.constant(self.scope, 1.0)
        with self.assertRaises(errors.InvalidArgumentError):
            a.output(1)
        no_op = common_ops.NoOp().build(self.scope)
        self.assertEqual(no_op.outputs, [])

    def test_as_output(self):
        a = common_ops.constant(self.scope, 1.0)
        self.assertEqual(graph.as_output(a), graph.Output(a, 0))
        self.assertEqual(graph.as_output(a.output(0)), graph.Output(a, 0))
        with self.assertRaises(TypeError):
            graph.as_output(1.0)

    def test_const_needs_value(self):
        with self.assertRaises(errors.InvalidArgumentError):
            self.g.new_operation("Const", "c").finish()

    def test_no_op_join(self):
        a = common_ops.constant(self.scope, 1.0)
        b = common_ops.constant(self.scope, 2.0)
        join = common_ops.NoOp().add_control_input(a).add_control_input(b).build(self.scope)
        self.assertEqual(join.op_type, "NoOp")
        self.assertEqual(join.control_inputs, (a, b))
        self.assertEqual(join.inputs, ())

    def test_custom_kernel(self):
        a = common_ops.constant(self.scope, 4.0)
        d = common_ops.build_op(self.scope, "TestDouble", [a])
        self.assertEqual(d.name, "TestDouble")
        value, = session_lib.Session(self.g).run([d])
        self.assertEqual(float(value), 8.0)

    def test_dump(self):
        x = variable.Variable.builder().const_initial_value(3.0).build(self.scope.with_op_name("x"))
        math.multiply(self.scope, x.output, x.output)
        buf = io.StringIO()
        with redirect_stdout(buf):
            self.g.dump()
        lines = buf.getvalue().splitlines()
        self.assertEqual(len(lines), len(self.g))
        self.assertEqual(lines[-1], "Mul = Mul(x:0 , x:0)")


if __name__ == "__main__":
    unittest.main()

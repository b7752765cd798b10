import unittest

import numpy as np

from stepgraph.core import errors
from stepgraph.core import optimizer
from stepgraph.core import scope as scope_lib
from stepgraph.core import session as session_lib
from stepgraph.core import variable
from stepgraph.core.ops import common as common_ops
from stepgraph.core.ops import math
from stepgraph.core.ops import state
from stepgraph.core.ops import training
from stepgraph.core.optimizers import gd


class SessionTest(unittest.TestCase):

    def setUp(self):
        self.scope = scope_lib.Scope.new_root_scope()
        self.session = session_lib.Session(self.scope.graph)

    def test_const_defaults_to_float32(self):
        c = common_ops.constant(self.scope, 0.1)
        value, = self.session.run([c])
        self.assertEqual(value.dtype, np.float32)
        self.assertTrue(np.allclose(value, 0.1))

    def test_const_keeps_array_dtype(self):
        c = common_ops.constant(self.scope, np.ones((2, 2)))
        value, = self.session.run([c])
        self.assertEqual(value.dtype, np.float64)
        self.assertEqual(value.shape, (2, 2))

    def test_elementwise(self):
        a = common_ops.constant(self.scope, np.array([1.0, 4.0, 9.0]))
        b = common_ops.constant(self.scope, 2.0, np.float64)
        fetches = [math.add(self.scope, a, b), math.sub(self.scope, a, b), math.multiply(self.scope, a, b),
                   math.div(self.scope, a, b), math.neg(self.scope, a), math.square(self.scope, a),
                   math.sqrt(self.scope, a), math.reduce_sum(self.scope, a), math.reduce_mean(self.scope, a),
                   math.add_n(self.scope, [a, a, a])]
        add, sub, mul, div, neg, sq, sqrt, rsum, rmean, addn = self.session.run(fetches)
        self.assertTrue(np.allclose(add, [3, 6, 11]))
        self.assertTrue(np.allclose(sub, [-1, 2, 7]))
        self.assertTrue(np.allclose(mul, [2, 8, 18]))
        self.assertTrue(np.allclose(div, [0.5, 2, 4.5]))
        self.assertTrue(np.allclose(neg, [-1, -4, -9]))
        self.assertTrue(np.allclose(sq, [1, 16, 81]))
        self.assertTrue(np.allclose(sqrt, [1, 2, 3]))
        self.assertTrue(np.allclose(rsum, 14))
        self.assertTrue(np.allclose(rmean, 14 / 3))
        self.assertTrue(np.allclose(addn, [3, 12, 27]))

    def test_matmul(self):
        a = common_ops.constant(self.scope, np.arange(6.0).reshape((2, 3)))
        b = common_ops.constant(self.scope, np.arange(12.0).reshape((3, 4)))
        ab, atb = self.session.run([math.matmul(self.scope, a, b),
                                    math.matmul(self.scope, a, a, transpose_a=True)])
        self.assertTrue(np.allclose(ab, np.arange(6.0).reshape((2, 3)) @ np.arange(12.0).reshape((3, 4))))
        self.assertEqual(atb.shape, (3, 3))
        bad = math.matmul(self.scope, a, a)
        with self.assertRaises(errors.InvalidArgumentError):
            self.session.run([bad])

    def test_placeholder(self):
        p = common_ops.placeholder(self.scope, np.float32, (2,))
        doubled = math.add(self.scope, p, p)
        value, = self.session.run([doubled], feed_dict={p: [1.0, 2.0]})
        self.assertTrue(np.allclose(value, [2.0, 4.0]))
        with self.assertRaises(errors.InvalidArgumentError):
            self.session.run([doubled])

    def test_feed_replaces_any_output(self):
        a = common_ops.constant(self.scope, 1.0)
        b = math.neg(self.scope, a)
        value, = self.session.run([b], feed_dict={a.output(0): 5.0})
        self.assertEqual(float(value), -5.0)

    def test_uninitialized_variable(self):
        x = variable.Variable.builder().const_initial_value(3.0).build(self.scope.with_op_name("x"))
        with self.assertRaises(errors.FailedPreconditionError):
            self.session.run([x.output])
        self.session.run(targets=[x.initializer])
        value, = self.session.run([x.output])
        self.assertEqual(float(value), 3.0)
        self.assertEqual(value.dtype, np.float32)

    def test_assign_checks_shape(self):
        x = variable.Variable.builder().const_initial_value(np.zeros(3)).build(self.scope)
        bad = state.assign(self.scope, x.output, common_ops.constant(self.scope, np.zeros(2)))
        with self.assertRaises(errors.InvalidArgumentError):
            self.session.run(targets=[bad])

    def test_assign_casts_to_variable_dtype(self):
        x = variable.Variable.builder().const_initial_value(np.zeros(2, dtype=np.float32)).build(self.scope)
        set_x = state.assign(self.scope, x.output, common_ops.constant(self.scope, np.array([1.5, 2.5])))
        value, = self.session.run([x.output], targets=[set_x])
        self.assertEqual(value.dtype, np.float32)
        self.assertTrue(np.allclose(value, [1.5, 2.5]))

    def test_operation_runs_once_per_run(self):
        x = variable.Variable.builder().const_initial_value(3.0).build(self.scope.with_op_name("x"))
        lr = common_ops.constant(self.scope, 1.0)
        grad = common_ops.constant(self.scope, 1.0)
        update = training.apply_gradient_descent(self.scope, x.output, lr, grad)
        join1 = common_ops.NoOp().add_control_input(update).build(self.scope)
        join2 = common_ops.NoOp().add_control_input(update).build(self.scope)
        self.session.run(targets=[x.initializer])
        value, = self.session.run([x.output], targets=[join1, join2])
        self.assertEqual(float(value), 2.0)
        value, = self.session.run([x.output], targets=[join1])
        self.assertEqual(float(value), 1.0)

    def test_control_inputs_run_first(self):
        x = variable.Variable.builder().const_initial_value(3.0).build(self.scope.with_op_name("x"))
        zeros = math.zeros_like(self.scope, x.output, control_inputs=[x.initializer])
        value, = self.session.run([zeros])
        self.assertEqual(float(value), 0.0)
        value, = self.session.run([x.output])
        self.assertEqual(float(value), 3.0)

    def test_fetch_after_step(self):
        x = variable.Variable.builder().const_initial_value(3.0).build(self.scope.with_op_name("x"))
        loss = math.square(self.scope, x.output)
        _, step = gd.GradientDescentOptimizer(0.1).minimize(self.scope, loss, optimizer.MinimizeOptions([x]))
        self.session.run(targets=[x.initializer])
        loss_value, x_value = self.session.run([loss, x.output], targets=[step])
        self.assertAlmostEqual(float(x_value), 2.4, places=5)
        self.assertAlmostEqual(float(loss_value), 5.76, places=5)

    def test_deep_graph(self):
        x = variable.Variable.builder().const_initial_value(np.array(1.0)).build(self.scope.with_op_name("x"))
        y = x.output
        for _ in range(1500):
            y = math.add(self.scope, y, x.output)
        _, step = gd.GradientDescentOptimizer(0.001).minimize(self.scope, y, optimizer.MinimizeOptions([x]))
        self.session.run(targets=[x.initializer])
        before, = self.session.run([y])
        self.assertAlmostEqual(float(before), 1501.0)
        y_value, x_value = self.session.run([y, x.output], targets=[step])
        # d/dx = 1501
        self.assertAlmostEqual(float(x_value), 1 - 0.001 * 1501, places=5)
        self.assertAlmostEqual(float(y_value), 1501 * float(x_value), places=5)

    def test_fetch_is_a_copy(self):
        x = variable.Variable.builder().const_initial_value(np.ones(2)).build(self.scope)
        self.session.run(targets=[x.initializer])
        value, = self.session.run([x.output])
        value[:] = 7
        again, = self.session.run([x.output])
        self.assertTrue(np.allclose(again, 1))

    def test_gradient_shape_must_match(self):
        x = variable.Variable.builder().const_initial_value(np.ones(2)).build(self.scope)
        update = training.apply_gradient_descent(self.scope, x.output, common_ops.constant(self.scope, 0.1),
                                                 common_ops.constant(self.scope, np.ones(3)))
        self.session.run(targets=[x.initializer])
        with self.assertRaises(errors.InvalidArgumentError):
            self.session.run(targets=[update])

    def test_graph_mismatch(self):
        other = scope_lib.Scope.new_root_scope()
        c = common_ops.constant(other, 1.0)
        with self.assertRaises(errors.InvalidArgumentError):
            self.session.run([c])


if __name__ == "__main__":
    unittest.main()

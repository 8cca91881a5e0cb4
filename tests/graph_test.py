import math
import os
import tempfile
import unittest

from dgraph import graph as dgraph_graph
from dgraph import nodes
from dgraph.errors import StructuralError, UsageError
from dgraph.native_graphs import sigmoid_graph


def build_neuron():
    g = dgraph_graph.Graph("neuron")
    x = nodes.InputNode(name="x")
    w = nodes.ParamNode(0.7, name="w")
    b = nodes.ParamNode(-0.3, name="b")
    s = nodes.WeightedSumNode([x], [w], b, name="s")
    out = nodes.SigmoidNode(s, name="out")
    g.add_input_nodes(x)
    g.add_param_nodes(w, b)
    g.set_outputs(out)
    return g


class GraphTest(unittest.TestCase):
    def setUp(self):
        self.maxDiff = None

    def testEvaluationOrder(self):
        g = build_neuron()
        order = [n.name for n in g.evaluation_order()]
        self.assertEqual(order, ["x", "w", "b", "s", "out"])
        self.assertEqual(list(g.nodes.keys()), ["x", "w", "b", "s", "out"])
        self.assertTrue(g.is_valid())
        self.assertTrue(g.check_consistency())
        self.assertFalse(g.has_loops())

    def testTraverse(self):
        g = build_neuron()
        g.set_inputs([2.0])
        g.traverse()
        expected = nodes.SigmoidNode.function(0.7 * 2.0 - 0.3)
        self.assertAlmostEqual(g.get_output(0), expected)
        self.assertEqual(g.find_node("s").y, 0.7 * 2.0 - 0.3)

    def testForwardDeterminism(self):
        g = build_neuron()
        g.set_inputs([1.25])
        g.traverse()
        first = g.get_output(0)
        g.set_inputs([1.25])
        g.traverse()
        self.assertEqual(g.get_output(0), first)

    def testBackProp(self):
        g = build_neuron()
        g.set_inputs([2.0])
        g.traverse()
        g.back_prop(0, 1.0)

        y = g.get_output(0)
        dy = y * (1 - y)
        self.assertEqual(g.find_node("out").get_derivative(0), 1.0)
        self.assertAlmostEqual(g.find_node("s").get_derivative(0), dy)
        self.assertAlmostEqual(g.param_at(0).get_derivative(0), dy * 2.0)
        self.assertAlmostEqual(g.param_at(1).get_derivative(0), dy)
        self.assertAlmostEqual(g.input_nodes[0].get_derivative(0), dy * 0.7)

    def testSeedLinearity(self):
        g = build_neuron()
        g.set_inputs([0.4])
        g.traverse()
        g.back_prop(0, 1.5)
        base = [p.get_derivative(0) for p in g.param_nodes]
        g.back_prop(0, 3 * 1.5)
        scaled = [p.get_derivative(0) for p in g.param_nodes]
        for b, s in zip(base, scaled):
            self.assertAlmostEqual(s, 3 * b)

    def testBackPropResets(self):
        g = build_neuron()
        g.set_inputs([-1.0])
        g.traverse()
        g.back_prop(0, 0.5)
        first = {name: n.get_derivative(0) for name, n in g.nodes.items()}
        g.back_prop(0, 0.5)
        second = {name: n.get_derivative(0) for name, n in g.nodes.items()}
        self.assertEqual(first, second)

    def testSigmoidGraph(self):
        g = sigmoid_graph.build()
        g.set_inputs([0.0])
        g.traverse()
        self.assertAlmostEqual(g.get_output(0), 0.5, delta=1e-7)
        g.back_prop(0, 1.0)
        self.assertEqual(g.find_node("sigmoid").get_derivative(0), 1.0)
        self.assertEqual(g.find_node("x").get_derivative(0), 0.25)

    def testMultipleOutputs(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode(name="x")
        w = nodes.ParamNode(2.0, name="w")
        s = nodes.WeightedSumNode([x], [w], name="s")
        out = nodes.SigmoidNode(s, name="out")
        g.add_input_nodes(x)
        g.add_param_nodes(w)
        # s is both an output and a predecessor of the other output
        g.set_outputs(out, s)
        self.assertEqual(g.output_count(), 2)

        g.set_inputs([3.0])
        g.traverse()
        self.assertEqual(g.get_output(1), 6.0)

        g.back_prop(1, 1.0)
        self.assertEqual(w.get_derivative(1), 3.0)
        self.assertEqual(out.get_derivative(1), 0.0)
        self.assertEqual(w.get_derivative(0), 0.0)

        g.back_prop(0, 1.0)
        y = g.get_output(0)
        self.assertAlmostEqual(w.get_derivative(0), y * (1 - y) * 3.0)
        self.assertEqual(w.get_derivative(1), 0.0)

    def testSetInputsShapeMismatch(self):
        g = build_neuron()
        with self.assertRaises(StructuralError):
            g.set_inputs([1.0, 2.0])
        with self.assertRaises(StructuralError):
            g.set_inputs([])

    def testUsageErrors(self):
        g = build_neuron()
        with self.assertRaises(UsageError):
            g.get_output(0)
        g.set_inputs([1.0])
        with self.assertRaises(UsageError):
            g.back_prop(0, 1.0)
        g.traverse()
        g.get_output(0)
        g.back_prop(0, 1.0)

        # New inputs invalidate the cached values
        g.set_inputs([2.0])
        with self.assertRaises(UsageError):
            g.get_output(0)
        with self.assertRaises(UsageError):
            g.back_prop(0, 1.0)

    def testTraverseWithoutOutputs(self):
        g = dgraph_graph.Graph()
        g.add_input_nodes(nodes.InputNode())
        with self.assertRaises(UsageError):
            g.traverse()

    def testIndexOutOfRange(self):
        g = build_neuron()
        g.set_inputs([1.0])
        g.traverse()
        with self.assertRaises(StructuralError):
            g.get_output(1)
        with self.assertRaises(StructuralError):
            g.back_prop(1, 1.0)
        with self.assertRaises(StructuralError):
            g.param_at(2)
        with self.assertRaises(StructuralError):
            g.param_at(-1)

    def testUnregisteredParam(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode(name="x")
        w = nodes.ParamNode(name="w")
        g.add_input_nodes(x)
        g.set_outputs(nodes.WeightedSumNode([x], [w]))
        self.assertFalse(g.check_consistency())
        with self.assertRaises(StructuralError):
            g.traverse()

    def testUnregisteredInput(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode(name="x")
        g.set_outputs(nodes.SigmoidNode(x))
        with self.assertRaises(StructuralError):
            g.evaluation_order()

    def testLateParamRegistration(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode(name="x")
        w = nodes.ParamNode(4.0, name="w")
        g.add_input_nodes(x)
        g.set_outputs(nodes.WeightedSumNode([x], [w]))
        g.add_param_nodes(w)
        g.set_inputs([0.5])
        g.traverse()
        self.assertEqual(g.get_output(0), 2.0)

    def testRegistrationAfterTraversal(self):
        g = build_neuron()
        g.set_inputs([1.0])
        g.traverse()
        with self.assertRaises(UsageError):
            g.add_param_nodes(nodes.ParamNode())
        with self.assertRaises(UsageError):
            g.add_input_nodes(nodes.InputNode())
        with self.assertRaises(UsageError):
            g.set_outputs(g.find_node("s"))

    def testInvalidRegistration(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode()
        p = nodes.ParamNode()
        with self.assertRaises(StructuralError):
            g.add_param_nodes(x)
        with self.assertRaises(StructuralError):
            g.add_input_nodes(p)
        g.add_input_nodes(x)
        with self.assertRaises(StructuralError):
            g.add_input_nodes(x)
        with self.assertRaises(StructuralError):
            g.set_outputs()

    def testNodeOwnedByAnotherGraph(self):
        g1 = build_neuron()
        g2 = dgraph_graph.Graph()
        with self.assertRaises(StructuralError):
            g2.add_input_nodes(g1.input_nodes[0])
        with self.assertRaises(StructuralError):
            g2.set_outputs(g1.output_nodes[0])

    def testLoop(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode(name="x")
        a = nodes.SigmoidNode(x, name="a")
        b = nodes.SigmoidNode(a, name="b")
        a.inputs[0] = b
        g.add_input_nodes(x)
        with self.assertRaises(StructuralError):
            g.set_outputs(b)
        self.assertTrue(g.has_loops())
        self.assertFalse(g.is_valid())

    def testDuplicateNames(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode(name="n")
        s = nodes.SigmoidNode(x, name="n")
        g.add_input_nodes(x)
        g.set_outputs(s)
        with self.assertRaises(StructuralError):
            g.traverse()

    def testAnonymousNodes(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode()
        w = nodes.ParamNode()
        unused = nodes.ParamNode()
        s = nodes.WeightedSumNode([x], [w])
        g.add_input_nodes(x)
        g.add_param_nodes(w, unused)
        g.set_outputs(s)
        g.evaluation_order()
        self.assertEqual(
            list(g.nodes.keys()), ["input_0", "param_1", "weighted_sum_2", "param_3"]
        )
        self.assertEqual(g.find_nodes("param_*"), [w, unused])
        self.assertEqual(g.find_node("*", op_type="weighted_sum"), s)
        self.assertIsNone(g.find_node("missing"))
        self.assertEqual(g.find_nodes(op_type="param"), [w, unused])
        self.assertEqual(g.find_nodes("param_*", op_type="input"), [])
        with self.assertRaises(ValueError):
            g.find_nodes()

        # Parameters outside of the fanin of the outputs get a zero derivative
        g.set_inputs([1.0])
        g.traverse()
        g.back_prop(0, 1.0)
        self.assertEqual(unused.get_derivative(0), 0.0)
        self.assertEqual(w.get_derivative(0), 1.0)

    def testFindNodesByPattern(self):
        g = dgraph_graph.Graph()
        x = nodes.InputNode(name="x")
        w = nodes.ParamNode(name="layer.w0")
        b = nodes.ParamNode(name="layerxb0")
        s = nodes.WeightedSumNode([x], [w], b, name="layer.sum0")
        g.add_input_nodes(x)
        g.add_param_nodes(w, b)
        g.set_outputs(s)
        # Lookup compiles the graph when needed
        self.assertEqual(g.find_nodes("layer.*"), [w, s])
        self.assertEqual(g.find_node("layer.*", op_type="weighted_sum"), s)
        self.assertEqual(g.find_nodes("layer*0", max_nodes=2), [w, b])

    def testDeepChain(self):
        g = dgraph_graph.Graph("chain")
        x = nodes.InputNode(name="x")
        n = x
        for _ in range(2000):
            n = nodes.TanhNode(n)
        g.add_input_nodes(x)
        g.set_outputs(n)

        order = g.evaluation_order()
        self.assertEqual(len(order), 2001)
        self.assertIs(order[0], x)
        self.assertIs(order[-1], n)

        g.set_inputs([0.5])
        g.traverse()
        g.back_prop(0, 1.0)

        y = 0.5
        dy = 1.0
        for _ in range(2000):
            y = math.tanh(y)
            dy *= 1.0 - y * y
        self.assertAlmostEqual(g.get_output(0), y)
        self.assertAlmostEqual(x.get_derivative(0), dy)

    def testParamValues(self):
        g = build_neuron()
        self.assertEqual(g.param_count(), 2)
        self.assertEqual(g.input_count(), 1)
        self.assertEqual(g.param_values(), [0.7, -0.3])
        g.set_param_values([1.0, 2.0])
        self.assertEqual(g.param_at(0).get_value(), 1.0)
        self.assertEqual(g.param_at(1).get_value(), 2.0)
        with self.assertRaises(StructuralError):
            g.set_param_values([1.0])

    def testDump(self):
        g = build_neuron()
        dot = g.dump()
        print(dot)
        self.assertTrue(dot.startswith("digraph {"))
        self.assertIn("\tx -> s\n", dot)
        self.assertIn("\tw -> s\n", dot)
        self.assertIn("\tb -> s\n", dot)
        self.assertIn("\ts -> out\n", dot)
        self.assertIn("(weighted_sum)", dot)

        with tempfile.TemporaryDirectory() as tmp:
            filename = os.path.join(tmp, "neuron.dot")
            self.assertEqual(g.dump(filename), filename)
            with open(filename) as f:
                self.assertEqual(f.read(), dot)

    def testRepr(self):
        g = build_neuron()
        g.evaluation_order()
        self.assertEqual(
            str(g),
            "x (input)\nw (param)\nb (param)\ns (weighted_sum)\nout (sigmoid)\n",
        )

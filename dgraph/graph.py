# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import logging
import re
from typing import List

import networkx as nx
from graphviz import Digraph

from dgraph.errors import StructuralError, UsageError
from dgraph.nodes import InputNode, Node, ParamNode

logger = logging.getLogger(__name__)


def _flatten(nodes):
    # Accept both add_param_nodes(a, b) and add_param_nodes([a, b])
    flat = []
    for n in nodes:
        if isinstance(n, (list, tuple)):
            flat.extend(n)
        else:
            flat.append(n)
    return flat


# A directed acyclic graph of scalar nodes. The graph records which nodes are
# fed from the input vector, which ones are learnable parameters and which
# ones are the outputs. Every other node must be reachable from an output
# through predecessor edges. The evaluation order is computed once, when the
# outputs are set, and is reused by every forward and backward pass.
class Graph:
    def __init__(self, name=""):
        self.name = name
        self.input_nodes = []
        self.param_nodes = []
        self.output_nodes = []
        # Every node of the graph keyed by name, filled in by compile()
        self.nodes = {}
        self._order = None
        self._stale = True
        self._started = False
        self._traversed = False

    # Registration

    def add_input_nodes(self, *nodes):
        nodes = _flatten(nodes)
        self._register(nodes, self.input_nodes, InputNode, "input")

    def add_param_nodes(self, *nodes):
        nodes = _flatten(nodes)
        self._register(nodes, self.param_nodes, ParamNode, "parameter")

    def set_outputs(self, *nodes):
        nodes = _flatten(nodes)
        self._check_not_started()
        if len(nodes) == 0:
            raise StructuralError("A graph needs at least one output node")
        for n in nodes:
            self._claim(n)
        self.output_nodes = nodes
        self._stale = True
        # Registration of the leaves is checked when the graph is compiled
        self._compute_order()

    def _register(self, nodes, role, node_class, role_name):
        self._check_not_started()
        for n in nodes:
            if not isinstance(n, node_class):
                raise StructuralError(
                    f"{n!r} cannot be registered as {role_name} node"
                )
            if n in self.input_nodes or n in self.param_nodes:
                raise StructuralError(f"Node {n} is already registered")
            self._claim(n)
            role.append(n)
        self._stale = True

    def _claim(self, node):
        if not isinstance(node, Node):
            raise StructuralError(f"{node!r} is not a graph node")
        if node.graph is not None and node.graph is not self:
            raise StructuralError(f"Node {node} belongs to another graph")
        node.graph = self

    def _check_not_started(self):
        if self._started:
            raise UsageError("Nodes can't be registered once traversal has started")

    # Evaluation order

    def _collect_closure(self):
        closure = []
        seen = set()
        stack = list(reversed(self.output_nodes))
        while stack:
            n = stack.pop()
            if n in seen:
                continue
            seen.add(n)
            closure.append(n)
            for src in n.inputs:
                if src not in seen:
                    stack.append(src)
        return closure

    def _build_nx_graph(self, closure):
        G = nx.DiGraph()
        for n in closure:
            G.add_node(n)
        for n in closure:
            for src in n.inputs:
                G.add_edge(src, n)
        return G

    def _order_fanin_of_vertex_topologically(self, root, visited, ordering):
        # Depth first over the fanin with an explicit stack, so that deep
        # chains don't hit the interpreter recursion limit. Predecessors are
        # visited in the order of `inputs`.
        visited.add(root)
        stack = [(root, iter(root.inputs))]
        while stack:
            n, fanin = stack[-1]
            for src in fanin:
                if src not in visited:
                    visited.add(src)
                    stack.append((src, iter(src.inputs)))
                    break
            else:
                stack.pop()
                ordering.append(n)

    def compute_topological_ordering(self):
        visited = set()
        ordering = []
        for n in self.output_nodes:
            if n not in visited:
                self._order_fanin_of_vertex_topologically(n, visited, ordering)
        return ordering

    def _compute_order(self):
        closure = self._collect_closure()
        G = self._build_nx_graph(closure)
        if not nx.is_directed_acyclic_graph(G):
            cycle = nx.find_cycle(G)
            raise StructuralError(
                "Graph has a loop through " + ", ".join(str(u) for u, _ in cycle)
            )
        self._order = self.compute_topological_ordering()
        return self._order

    def compile(self):
        if not self.output_nodes:
            raise UsageError("The outputs of the graph haven't been set")

        order = self._compute_order()

        registered = set(self.input_nodes) | set(self.param_nodes)
        for n in order:
            if n.graph is not None and n.graph is not self:
                raise StructuralError(f"Node {n} belongs to another graph")
            if n.is_leaf() and n not in registered:
                if isinstance(n, ParamNode):
                    raise StructuralError(f"Parameter node {n} isn't registered")
                raise StructuralError(
                    f"Leaf node {n} is neither a registered input nor a parameter"
                )

        # Registered leaves that no output depends on still belong to the graph
        in_order = set(order)
        unused = [n for n in self.input_nodes + self.param_nodes if n not in in_order]

        # Name anonymous nodes after their position in the evaluation order
        nodes = {}
        for i, n in enumerate(order + unused):
            n.graph = self
            if n.name is None:
                n.name = f"{n.op_type}_{i}"
            if n.name in nodes:
                raise StructuralError(f"Duplicate node name {n.name}")
            nodes[n.name] = n
        self.nodes = nodes

        for n in self.nodes.values():
            n.allocate_derivatives(len(self.output_nodes))

        self._stale = False
        logger.debug(
            f"Compiled graph {self.name!r}: {len(order)} nodes in evaluation "
            f"order, {len(self.input_nodes)} inputs, {len(self.param_nodes)} params, "
            f"{len(self.output_nodes)} outputs"
        )
        return order

    def evaluation_order(self) -> List[Node]:
        if self._stale:
            self.compile()
        return list(self._order)

    # Execution

    def set_inputs(self, values):
        values = list(values)
        if len(values) != len(self.input_nodes):
            raise StructuralError(
                f"Expected {len(self.input_nodes)} input value(s), got {len(values)}"
            )
        for node, value in zip(self.input_nodes, values):
            node.set_value(value)
        self._traversed = False

    def traverse(self):
        if self._stale:
            self.compile()
        self._started = True
        for n in self._order:
            n.forward()
        self._traversed = True

    def get_output(self, i=0):
        self._check_output_index(i)
        if not self._traversed:
            raise UsageError("get_output() requires a preceding traverse()")
        return self.output_nodes[i].y

    def back_prop(self, output_index=0, seed=1.0):
        self._check_output_index(output_index)
        if not self._traversed:
            raise UsageError("back_prop() requires a preceding traverse()")

        for n in self.nodes.values():
            n.reset_derivatives()

        self.output_nodes[output_index].add_derivative(output_index, seed)
        for n in reversed(self._order):
            n.accumulate_derivative(output_index, n.get_derivative(output_index))

    def _check_output_index(self, i):
        if i < 0 or i >= len(self.output_nodes):
            raise StructuralError(
                f"Output index {i} out of range ({len(self.output_nodes)} outputs)"
            )

    # Accessors

    def input_count(self):
        return len(self.input_nodes)

    def output_count(self):
        return len(self.output_nodes)

    def param_count(self):
        return len(self.param_nodes)

    def param_at(self, k) -> ParamNode:
        if k < 0 or k >= len(self.param_nodes):
            raise StructuralError(
                f"Parameter index {k} out of range ({len(self.param_nodes)} params)"
            )
        return self.param_nodes[k]

    def param_values(self):
        return [p.get_value() for p in self.param_nodes]

    def set_param_values(self, values):
        values = list(values)
        if len(values) != len(self.param_nodes):
            raise StructuralError(
                f"Expected {len(self.param_nodes)} parameter value(s), got {len(values)}"
            )
        for p, v in zip(self.param_nodes, values):
            p.set_value(v)

    def find_node(self, name: str = None, op_type: str = None) -> Node:
        nodes = self.find_nodes(name, op_type, max_nodes=1)
        if len(nodes) > 0:
            return nodes[0]
        return None

    def find_nodes(
        self, name: str = None, op_type: str = None, max_nodes: int = None
    ) -> List[Node]:
        """
        Nodes of the compiled graph whose op_type is `op_type` and whose name
        matches the `name` pattern, where `*` matches any sequence of
        characters. Either criterion may be omitted, but not both. Results
        follow the evaluation order, unused registered leaves last.
        """
        if not name and not op_type:
            raise ValueError("Either a name or an op_type must be provided")
        if self._stale and self.output_nodes:
            self.compile()

        candidates = self.nodes.values()
        if op_type:
            candidates = [n for n in candidates if n.op_type == op_type]
        if name:
            regex = re.compile("^" + ".*".join(map(re.escape, name.split("*"))) + "$")
            candidates = [n for n in candidates if regex.match(n.name)]
        return list(candidates)[:max_nodes]

    # Checks

    def check_consistency(self, verbose=False):
        if set(self.input_nodes) & set(self.param_nodes):
            if verbose:
                logger.info("Some nodes are registered both as input and parameter")
            return False

        registered = set(self.input_nodes) | set(self.param_nodes)
        for n in self._collect_closure():
            if n.is_leaf() and n not in registered:
                if verbose:
                    logger.info(f"Leaf node {n.name} isn't registered")
                return False
            if n.graph is not None and n.graph is not self:
                if verbose:
                    logger.info(f"Node {n.name} belongs to another graph")
                return False
            if n.arity is not None and len(n.inputs) != n.arity:
                if verbose:
                    logger.info(f"Node {n.name} has {len(n.inputs)} inputs")
                return False

        return True

    def has_loops(self, verbose=False):
        G = self._build_nx_graph(self._collect_closure())
        if nx.is_directed_acyclic_graph(G):
            return False
        if verbose:
            logger.info(f"Found loop {nx.find_cycle(G)}")
        return True

    def is_valid(self, verbose=False):
        return not self.has_loops(verbose) and self.check_consistency(verbose)

    def dump(self, filename=None, format="canon"):
        order = self.evaluation_order()
        dot = Digraph(format=format)

        if self.name:
            dot.attr("graph", label=self.name)
        dot.attr("node", shape="record")

        for node in order:
            label = node.name
            if node.op_type:
                label += f" ({node.op_type})"
            if self._traversed:
                label += f" [{node.y:.4}]"
            dot.node(node.name, label=label)

        for node in order:
            for src in node.inputs:
                dot.edge(src.name, node.name)

        if filename and format == "canon":
            with open(filename, "w") as f:
                for line in dot:
                    f.write(line)
                    if not line.endswith("\n"):
                        f.write("\n")
            return filename
        elif filename:
            dot.render(filename=filename, format=format)
            return filename
        elif format == "canon":
            result = ""
            for line in dot:
                result += line
                if not line.endswith("\n"):
                    result += "\n"
            return result
        else:
            return dot.pipe().decode("utf-8")

    def __repr__(self):
        result = ""
        for v in self.nodes.values():
            result += str(v) + "\n"
        return result

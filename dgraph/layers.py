# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

from dgraph.errors import StructuralError
from dgraph.nodes import InputNode, ParamNode, SigmoidNode, WeightedSumNode


# A group of leaf nodes created in bulk, typically the inputs of a network.
class NodeSet:
    def __init__(self, count, node_class=InputNode, prefix=None):
        self.nodes = [
            node_class(name=None if prefix is None else f"{prefix}{i}")
            for i in range(count)
        ]

    def __len__(self):
        return len(self.nodes)

    def get_inputs(self):
        return list(self.nodes)

    def get_nodes(self, begin, end):
        if begin < 0 or end > len(self.nodes) or begin > end:
            raise StructuralError(
                f"Range [{begin}, {end}) out of bounds for {len(self.nodes)} nodes"
            )
        return self.nodes[begin:end]


# A dense layer: each of the `width` outputs is an activation node fronted by
# a weighted sum over all the predecessors plus a bias. Each row owns m + 1
# parameter nodes, the bias being the last one. The parameters are not
# registered with any graph: pass get_weight_nodes() to add_param_nodes().
class Layer:
    def __init__(self, predecessors, width, activation=SigmoidNode, name=None):
        predecessors = list(predecessors)
        if len(predecessors) == 0:
            raise StructuralError("A layer needs at least one predecessor")
        if width <= 0:
            raise StructuralError(f"Invalid layer width {width}")

        self.name = name
        self.fanin = len(predecessors)
        self.rows = []
        self.sum_nodes = []
        self.output_nodes = []

        for i in range(width):
            weights = [
                ParamNode(name=self._node_name(f"w{i}_{j}"))
                for j in range(self.fanin)
            ]
            bias = ParamNode(name=self._node_name(f"b{i}"))
            weighted_sum = WeightedSumNode(
                predecessors, weights, bias, name=self._node_name(f"sum{i}")
            )
            self.rows.append(weights + [bias])
            self.sum_nodes.append(weighted_sum)
            if activation is None:
                self.output_nodes.append(weighted_sum)
            else:
                self.output_nodes.append(
                    activation(weighted_sum, name=self._node_name(f"out{i}"))
                )

    def _node_name(self, suffix):
        if self.name is None:
            return None
        return f"{self.name}.{suffix}"

    @property
    def width(self):
        return len(self.output_nodes)

    def set_weights(self, output_index, values):
        if output_index < 0 or output_index >= len(self.rows):
            raise StructuralError(
                f"Row {output_index} out of range for a layer of width {self.width}"
            )
        values = list(values)
        row = self.rows[output_index]
        if len(values) != len(row):
            raise StructuralError(
                f"Expected {len(row)} weights (bias last), got {len(values)}"
            )
        for param, value in zip(row, values):
            param.set_value(value)

    def get_output_nodes(self):
        return list(self.output_nodes)

    def get_sum_nodes(self):
        return list(self.sum_nodes)

    def get_weight_nodes(self):
        return [p for row in self.rows for p in row]

    def get_bias_node(self, output_index):
        return self.rows[output_index][-1]

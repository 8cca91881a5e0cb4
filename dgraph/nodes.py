# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import math

from dgraph.errors import StructuralError


# Each node is a scalar computation in the graph. A node reads the cached
# output `y` of its predecessors (its fanin) and caches its own `y`. During the
# backward pass each node pushes its derivative slot, scaled by its local
# partials, into the derivative slots of its predecessors.
class Node:
    op_type = None
    # Number of predecessors required by the node type, None if variable.
    arity = None

    def __init__(self, inputs=(), name=None):
        self.name = name
        self.inputs = list(inputs)
        if self.arity is not None and len(self.inputs) != self.arity:
            raise StructuralError(
                f"{type(self).__name__} expects {self.arity} input(s), "
                f"got {len(self.inputs)}"
            )
        for node in self.inputs:
            if not isinstance(node, Node):
                raise StructuralError(f"{node!r} is not a graph node")
        self.y = 0.0
        self.derivatives = [0.0]
        self.graph = None

    def __repr__(self):
        return str(self.name) + " (" + str(self.op_type) + ")"

    def is_leaf(self):
        return len(self.inputs) == 0

    def allocate_derivatives(self, count):
        self.derivatives = [0.0] * max(1, count)

    def reset_derivatives(self):
        for i in range(len(self.derivatives)):
            self.derivatives[i] = 0.0

    def get_derivative(self, output_index=0):
        self._check_slot(output_index)
        return self.derivatives[output_index]

    def add_derivative(self, output_index, value):
        self._check_slot(output_index)
        self.derivatives[output_index] += value

    def forward(self):
        raise NotImplementedError

    def local_derivatives(self):
        """
        Partial derivatives of `y` with respect to the `y` of each
        predecessor, in the order of `self.inputs`.
        """
        raise NotImplementedError

    def accumulate_derivative(self, output_index, upstream):
        for node, partial in zip(self.inputs, self.local_derivatives()):
            node.add_derivative(output_index, upstream * partial)

    def _check_slot(self, output_index):
        if output_index < 0 or output_index >= len(self.derivatives):
            raise StructuralError(
                f"Derivative slot {output_index} out of range for node {self}"
            )


# Leaf node whose value is written from outside the graph.
class LeafNode(Node):
    arity = 0

    def __init__(self, value=0.0, name=None):
        super().__init__(name=name)
        self.y = float(value)

    def forward(self):
        pass

    def local_derivatives(self):
        return []

    def accumulate_derivative(self, output_index, upstream):
        pass

    def get_value(self):
        return self.y

    def set_value(self, value):
        self.y = float(value)


# Set by the graph from the input vector before each forward pass.
class InputNode(LeafNode):
    op_type = "input"


# Learnable scalar, updated by the optimizer.
class ParamNode(LeafNode):
    op_type = "param"


class ActivationNode(Node):
    """
    Unary node applying a fixed differentiable function to its single
    predecessor. The local derivative is computed from the cached output,
    so `forward()` must have run before the backward pass.
    """

    arity = 1

    def __init__(self, source, name=None):
        super().__init__([source], name=name)

    @staticmethod
    def function(x):
        raise NotImplementedError

    @staticmethod
    def derivative_from_output(y):
        raise NotImplementedError

    def forward(self):
        self.y = self.function(self.inputs[0].y)

    def local_derivatives(self):
        return [self.derivative_from_output(self.y)]


class SigmoidNode(ActivationNode):
    op_type = "sigmoid"

    @staticmethod
    def function(x):
        # Both branches only take exp of a non-positive number.
        if x >= 0:
            return 1.0 / (1.0 + math.exp(-x))
        z = math.exp(x)
        return z / (1.0 + z)

    @staticmethod
    def derivative_from_output(y):
        return y * (1.0 - y)


class TanhNode(ActivationNode):
    op_type = "tanh"

    @staticmethod
    def function(x):
        return math.tanh(x)

    @staticmethod
    def derivative_from_output(y):
        return 1.0 - y * y


# Affine combination sum_i(v_i * w_i) + b, the building block of a dense
# layer. The predecessors are stored interleaved as [v0, w0, v1, w1, ...]
# followed by the bias, if any.
class WeightedSumNode(Node):
    op_type = "weighted_sum"

    def __init__(self, values, weights, bias=None, name=None):
        values = list(values)
        weights = list(weights)
        if len(values) != len(weights):
            raise StructuralError(
                f"Weighted sum needs one weight per value, got {len(values)} "
                f"value(s) and {len(weights)} weight(s)"
            )
        inputs = []
        for v, w in zip(values, weights):
            inputs.append(v)
            inputs.append(w)
        if bias is not None:
            inputs.append(bias)
        super().__init__(inputs, name=name)
        self.pairs = list(zip(values, weights))
        self.bias = bias

    def forward(self):
        total = 0.0
        for v, w in self.pairs:
            total += v.y * w.y
        if self.bias is not None:
            total += self.bias.y
        self.y = total

    def local_derivatives(self):
        partials = []
        for v, w in self.pairs:
            partials.append(w.y)
            partials.append(v.y)
        if self.bias is not None:
            partials.append(1.0)
        return partials

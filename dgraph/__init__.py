# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

from dgraph.errors import GraphError, StructuralError, UsageError
from dgraph.graph import Graph
from dgraph.layers import Layer, NodeSet
from dgraph.losses import SquareLoss
from dgraph.nodes import (
    ActivationNode,
    InputNode,
    Node,
    ParamNode,
    SigmoidNode,
    TanhNode,
    WeightedSumNode,
)
from dgraph.optimizer import BatchOptimizer, GradientDescent, batch_gradient_descent

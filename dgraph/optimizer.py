# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import logging

import numpy as np

from dgraph.errors import StructuralError, UsageError
from dgraph.losses import SquareLoss

logger = logging.getLogger(__name__)


class BatchOptimizer:
    """
    Batch optimizer driving a graph over a whole training set per epoch.

    Each epoch runs a forward and a backward pass for every example, sums the
    derivatives of the first output with respect to each registered parameter
    (in registration order), then lets the subclass update the parameters
    once through `update_params()`.

    The learning rate is halved whenever the loss of an epoch exceeds the loss
    of the previous one. The previous loss starts at 0, so the first epoch
    with a non zero loss always halves the learning rate.

    The training set is borrowed: the optimizer keeps references to the
    caller's input vectors and expected outputs and reads them on every
    epoch, so they must not be mutated while training.
    """

    def __init__(self, loss=SquareLoss, learning_rate=0.2):
        self.loss = loss
        self.learning_rate = learning_rate
        self.last_error = 0.0
        self.epochs_run = 0
        self.graph = None
        self.inputs = None
        self.outputs = None
        self.set_size = 0
        self.n_params = 0
        self.param_derivs = np.zeros(0)

    def set_graph(self, graph):
        self.graph = graph
        self._sync_params()

    def _sync_params(self):
        # Parameters may still be registered after set_graph()
        n_params = self.graph.param_count()
        if n_params != self.n_params or len(self.param_derivs) != n_params:
            self.n_params = n_params
            self.param_derivs = np.zeros(n_params)

    def set_training_set(self, inputs, outputs, size=None):
        if size is None:
            if len(inputs) != len(outputs):
                raise StructuralError(
                    f"{len(inputs)} input vector(s) for {len(outputs)} expected output(s)"
                )
            size = len(outputs)
        elif size < 0 or size > len(inputs) or size > len(outputs):
            raise StructuralError(f"Training set size {size} exceeds the data")
        self.inputs = inputs
        self.outputs = outputs
        self.set_size = size

    def set_learning_rate(self, rate):
        self.learning_rate = rate

    def forward_pass(self, j):
        self.graph.set_inputs(self.inputs[j])
        self.graph.traverse()
        return self.graph.get_output(0)

    def run_epochs(self, iterations):
        for _ in range(iterations):
            self.run_epoch()

    def run_epoch(self):
        if self.graph is None:
            raise UsageError("No graph to optimize, call set_graph() first")
        if self.inputs is None:
            raise UsageError("No training set, call set_training_set() first")
        if type(self).update_params is BatchOptimizer.update_params:
            raise NotImplementedError(
                f"{type(self).__name__} doesn't implement update_params()"
            )

        self._sync_params()
        self.param_derivs.fill(0.0)
        overall_error = 0.0

        # compute summed derivative
        for j in range(self.set_size):
            output = self.forward_pass(j)

            overall_error += self.loss.loss(output, self.outputs[j])
            base_deriv = self.loss.derivative(output, self.outputs[j])

            self.graph.back_prop(0, base_deriv)

            for k in range(self.n_params):
                self.param_derivs[k] += self.graph.param_at(k).get_derivative(0)

        if overall_error > self.last_error:
            self.learning_rate /= 2
            logger.info(
                f"Epoch {self.epochs_run}: loss went up from {self.last_error} to "
                f"{overall_error}, learning rate lowered to {self.learning_rate}"
            )

        self.last_error = overall_error
        logger.debug(f"Epoch {self.epochs_run}: loss {overall_error}")

        self.update_params()
        self.epochs_run += 1
        return overall_error

    def update_params(self):
        raise NotImplementedError


class GradientDescent(BatchOptimizer):
    def update_params(self):
        for k in range(self.n_params):
            p = self.graph.param_at(k)
            w = p.get_value()
            p.set_value(w - self.learning_rate * self.param_derivs[k])


def batch_gradient_descent(
    graph, inputs, expected_outputs, iterations, loss=SquareLoss, learning_rate=0.2
):
    optimizer = GradientDescent(loss=loss, learning_rate=learning_rate)
    optimizer.set_graph(graph)
    optimizer.set_training_set(inputs, expected_outputs)
    optimizer.run_epochs(iterations)
    return optimizer

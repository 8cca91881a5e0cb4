# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.

import argparse
import logging

from dgraph import GradientDescent, SquareLoss
from dgraph.native_graphs import xor_graph

# fmt: off
parser = argparse.ArgumentParser(description="Train a 2-2-1 sigmoid network on XOR")
parser.add_argument("-e", "--epochs", type=int, default=10000)
parser.add_argument("-l", "--learning-rate", type=float, default=0.2, help="Initial learning rate")
parser.add_argument("--dump", default=None, help="Write the graph in dot format to this file")
parser.add_argument(
    '-d', '--debug',
    help="Log debugging statements",
    action="store_const", dest="log_level", const=logging.DEBUG,
    default=logging.WARNING,
)
parser.add_argument(
    '-v', '--verbose',
    help="Log verbose info",
    action="store_const", dest="log_level", const=logging.INFO,
)
# fmt: on

if __name__ == "__main__":
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level)

    graph = xor_graph.build()

    optimizer = GradientDescent(loss=SquareLoss)
    optimizer.set_graph(graph)
    optimizer.set_training_set(xor_graph.training_inputs, xor_graph.training_outputs)
    optimizer.set_learning_rate(args.learning_rate)
    optimizer.run_epochs(args.epochs)

    for x in xor_graph.training_inputs:
        graph.set_inputs(x)
        graph.traverse()
        print(f"XOR({x[0]:g},{x[1]:g}) = {graph.get_output(0)}")

    if args.dump:
        graph.dump(args.dump)

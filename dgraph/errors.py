# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.


class GraphError(Exception):
    pass


# Wiring or registration inconsistency, shape mismatch on the inputs, or an
# out-of-range output/parameter index.
class StructuralError(GraphError, ValueError):
    pass


# Operation invoked out of sequence, e.g. reading an output before the graph
# was traversed.
class UsageError(GraphError, RuntimeError):
    pass

# Copyright (c) Meta Platforms, Inc. and affiliates.

# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.


# A loss is any object providing the two pure functions below. The optimizer
# only ever calls them through the class, so static methods are enough.
class SquareLoss:
    @staticmethod
    def loss(y_out, y_expected):
        x = y_out - y_expected
        return x * x

    @staticmethod
    def derivative(y_out, y_expected):
        return 2 * (y_out - y_expected)

import unittest

from dgraph.losses import SquareLoss


class LossesTest(unittest.TestCase):
    def testSquareLoss(self):
        self.assertEqual(SquareLoss.loss(3.0, 1.0), 4.0)
        self.assertEqual(SquareLoss.loss(1.0, 3.0), 4.0)
        self.assertEqual(SquareLoss.loss(0.5, 0.5), 0.0)

    def testSquareLossDerivative(self):
        self.assertEqual(SquareLoss.derivative(3.0, 1.0), 4.0)
        self.assertEqual(SquareLoss.derivative(1.0, 3.0), -4.0)
        self.assertEqual(SquareLoss.derivative(0.5, 0.5), 0.0)

    def testDerivativeMatchesFiniteDifference(self):
        eps = 1e-6
        for y_out, y_expected in [(0.2, 1.0), (-1.5, 0.3), (2.0, 2.5)]:
            numeric = (
                SquareLoss.loss(y_out + eps, y_expected)
                - SquareLoss.loss(y_out - eps, y_expected)
            ) / (2 * eps)
            self.assertAlmostEqual(
                SquareLoss.derivative(y_out, y_expected), numeric, places=6
            )

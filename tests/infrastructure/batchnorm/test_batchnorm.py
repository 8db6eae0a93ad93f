import unittest

import numpy as np

from seqgrad.domain._errors import ShapeError, StateError
from seqgrad.infrastructure.layers import BatchNorm1d, BatchNorm2d, BatchNorm3d
from seqgrad.infrastructure.tensor import Tensor


def _axes(ndim):
    return (0,) + tuple(range(2, ndim))


def _bcast(v, ndim):
    return v.reshape((1, -1) + (1,) * (ndim - 2))


def _bn_reference(x, gamma, beta, dy, eps=1e-5):
    """
    Float64 reference forward/backward for batch normalization.
    """
    x = x.astype(np.float64)
    dy = dy.astype(np.float64)
    axes = _axes(x.ndim)
    count = x.size // x.shape[1]

    mean = x.mean(axis=axes)
    var = x.var(axis=axes)
    inv_std = 1.0 / np.sqrt(var + eps)
    x_hat = (x - _bcast(mean, x.ndim)) * _bcast(inv_std, x.ndim)
    y = _bcast(gamma, x.ndim) * x_hat + _bcast(beta, x.ndim)

    sum_dy = dy.sum(axis=axes)
    sum_dy_xhat = (dy * x_hat).sum(axis=axes)
    dx = _bcast(gamma * inv_std, x.ndim) * (
        dy
        - _bcast(sum_dy, x.ndim) / count
        - x_hat * _bcast(sum_dy_xhat, x.ndim) / count
    )
    return y, dx, sum_dy_xhat, sum_dy, mean, var


def _run(bn, x_np, dy_np):
    x = Tensor.from_numpy(x_np)
    y = bn.forward(x)
    y.resize_grad()
    y.grad[...] = dy_np.astype(np.float32).reshape(-1)
    gx = Tensor()
    bn.backward(y, gx)
    return y, gx


class TestBatchNormConstruction(unittest.TestCase):
    def test_parameters_and_buffers(self):
        bn = BatchNorm1d(8, rng=0)
        self.assertEqual(bn.gamma.shape, (8,))
        self.assertEqual(bn.beta.shape, (8,))
        self.assertTrue(np.all(bn.gamma.data >= 0.9))
        self.assertTrue(np.all(bn.gamma.data < 1.1))
        np.testing.assert_array_equal(bn.beta.data, np.zeros(8, dtype=np.float32))
        np.testing.assert_array_equal(bn.gamma.grad, np.zeros(8, dtype=np.float32))
        np.testing.assert_array_equal(bn.beta.grad, np.zeros(8, dtype=np.float32))
        np.testing.assert_array_equal(bn.running_mean.data, np.zeros(8))
        np.testing.assert_array_equal(bn.running_var.data, np.zeros(8))
        params = bn.parameters()
        self.assertIs(params[0], bn.gamma)
        self.assertIs(params[1], bn.beta)

    def test_non_affine_has_no_parameters(self):
        bn = BatchNorm2d(4, affine=False)
        self.assertIsNone(bn.gamma)
        self.assertIsNone(bn.beta)
        self.assertEqual(bn.parameters(), [])

    def test_untracked_has_no_running_stats(self):
        bn = BatchNorm3d(2, track_running_stats=False, rng=0)
        self.assertIsNone(bn.running_mean)
        self.assertIsNone(bn.running_var)
        bn.forward(Tensor.from_numpy(np.ones((2, 2, 1, 2, 2))))
        self.assertEqual(bn.num_batches_tracked, 0)
        self.assertEqual(list(bn.named_buffers()), [])

    def test_describe(self):
        self.assertEqual(BatchNorm1d(64).describe(), "BatchNorm1d(64)")
        self.assertEqual(BatchNorm2d(32).describe(), "BatchNorm2d(32)")
        self.assertEqual(BatchNorm3d(16).describe(), "BatchNorm3d(16)")

    def test_rejects_non_positive_num_features(self):
        with self.assertRaises(ValueError):
            BatchNorm1d(0)


class TestBatchNormConstantInput(unittest.TestCase):
    def _assert_constant_channels_give_zero(self, bn, shape):
        x_np = np.empty(shape, dtype=np.float32)
        for c in range(shape[1]):
            x_np[:, c, ...] = 0.5 + c
        y = bn.forward(Tensor.from_numpy(x_np))
        np.testing.assert_allclose(y.to_numpy(), np.zeros(shape), atol=1e-4)

    def test_batchnorm1d(self):
        self._assert_constant_channels_give_zero(BatchNorm1d(3, rng=0), (4, 3))

    def test_batchnorm2d(self):
        self._assert_constant_channels_give_zero(BatchNorm2d(2, rng=0), (2, 2, 3, 3))

    def test_batchnorm3d(self):
        self._assert_constant_channels_give_zero(
            BatchNorm3d(2, rng=0), (2, 2, 2, 3, 3)
        )


class TestBatchNormNumerics(unittest.TestCase):
    def _check_against_reference(self, bn, shape, seed):
        rng = np.random.default_rng(seed)
        x_np = rng.standard_normal(shape).astype(np.float32) * 2.0 + 0.5
        dy_np = rng.standard_normal(shape).astype(np.float32)

        y, gx = _run(bn, x_np, dy_np)
        y_ref, dx_ref, dgamma, dbeta, _, _ = _bn_reference(
            x_np, bn.gamma.data.astype(np.float64), bn.beta.data.astype(np.float64), dy_np
        )

        self.assertEqual(gx.shape, shape)
        np.testing.assert_allclose(y.to_numpy(), y_ref, atol=1e-4)
        np.testing.assert_allclose(gx.grad_to_numpy(), dx_ref, atol=1e-4)
        np.testing.assert_allclose(bn.gamma.grad, dgamma, atol=1e-3)
        np.testing.assert_allclose(bn.beta.grad, dbeta, atol=1e-4)

    def test_batchnorm1d_matches_reference(self):
        self._check_against_reference(BatchNorm1d(5, rng=0), (6, 5), seed=0)

    def test_batchnorm2d_matches_reference(self):
        self._check_against_reference(BatchNorm2d(3, rng=1), (2, 3, 4, 5), seed=1)

    def test_batchnorm3d_matches_reference(self):
        self._check_against_reference(BatchNorm3d(2, rng=2), (2, 2, 3, 2, 4), seed=2)

    def test_non_affine_output_is_x_hat(self):
        rng = np.random.default_rng(3)
        x_np = rng.standard_normal((8, 4)).astype(np.float32)
        dy_np = rng.standard_normal((8, 4)).astype(np.float32)
        bn = BatchNorm1d(4, affine=False)
        y, gx = _run(bn, x_np, dy_np)
        y_ref, dx_ref, _, _, _, _ = _bn_reference(x_np, np.ones(4), np.zeros(4), dy_np)
        np.testing.assert_allclose(y.to_numpy(), y_ref, atol=1e-4)
        np.testing.assert_allclose(gx.grad_to_numpy(), dx_ref, atol=1e-4)

    def test_input_gradient_matches_finite_differences(self):
        rng = np.random.default_rng(4)
        x_np = rng.standard_normal((4, 3)).astype(np.float64)
        dy_np = rng.standard_normal((4, 3)).astype(np.float64)
        bn = BatchNorm1d(3, rng=4)

        _, gx = _run(bn, x_np.astype(np.float32), dy_np)

        def loss(xv):
            out = bn.forward(Tensor.from_numpy(xv.astype(np.float32)))
            return float((out.to_numpy().astype(np.float64) * dy_np).sum())

        h = 1e-2
        numeric = np.zeros_like(x_np)
        for idx in np.ndindex(*x_np.shape):
            xp = x_np.copy()
            xm = x_np.copy()
            xp[idx] += h
            xm[idx] -= h
            numeric[idx] = (loss(xp) - loss(xm)) / (2 * h)

        np.testing.assert_allclose(gx.grad_to_numpy(), numeric, atol=5e-3)

    def test_parameter_gradients_accumulate(self):
        rng = np.random.default_rng(5)
        x_np = rng.standard_normal((4, 2)).astype(np.float32)
        bn = BatchNorm1d(2, rng=5)
        x = Tensor.from_numpy(x_np)
        y = bn.forward(x)
        y.fill_grad(1.0)

        bn.backward(y, x)
        first_gamma = bn.gamma.grad.copy()
        first_beta = bn.beta.grad.copy()
        bn.backward(y, x)

        np.testing.assert_allclose(bn.beta.grad, 2 * first_beta, atol=1e-5)
        np.testing.assert_allclose(bn.gamma.grad, 2 * first_gamma, atol=1e-5)
        np.testing.assert_allclose(first_beta, [4.0, 4.0], atol=1e-5)

        bn.zero_grad()
        np.testing.assert_array_equal(bn.beta.grad, np.zeros(2, dtype=np.float32))


class TestBatchNormRunningStats(unittest.TestCase):
    def test_first_forward_sets_then_later_forwards_blend(self):
        rng = np.random.default_rng(6)
        a = rng.standard_normal((5, 3)).astype(np.float32)
        b = rng.standard_normal((5, 3)).astype(np.float32) + 2.0
        bn = BatchNorm1d(3, momentum=0.1, rng=6)

        bn.forward(Tensor.from_numpy(a))
        np.testing.assert_allclose(bn.running_mean.data, a.mean(axis=0), atol=1e-5)
        np.testing.assert_allclose(bn.running_var.data, a.var(axis=0), atol=1e-5)
        self.assertEqual(bn.num_batches_tracked, 1)

        bn.forward(Tensor.from_numpy(b))
        np.testing.assert_allclose(
            bn.running_mean.data, 0.9 * a.mean(axis=0) + 0.1 * b.mean(axis=0), atol=1e-5
        )
        np.testing.assert_allclose(
            bn.running_var.data, 0.9 * a.var(axis=0) + 0.1 * b.var(axis=0), atol=1e-5
        )
        self.assertEqual(bn.num_batches_tracked, 2)

    def test_running_stats_per_channel_for_2d(self):
        rng = np.random.default_rng(7)
        x_np = rng.standard_normal((2, 3, 4, 4)).astype(np.float32)
        bn = BatchNorm2d(3, rng=7)
        bn.forward(Tensor.from_numpy(x_np))
        np.testing.assert_allclose(
            bn.running_mean.data, x_np.mean(axis=(0, 2, 3)), atol=1e-5
        )
        np.testing.assert_allclose(
            bn.running_var.data, x_np.var(axis=(0, 2, 3)), atol=1e-5
        )

    def test_reset_running_stats_rearms_first_update(self):
        bn = BatchNorm1d(2, rng=0)
        bn.forward(Tensor.from_numpy(np.array([[1.0, 2.0], [3.0, 6.0]])))
        bn.reset_running_stats()
        np.testing.assert_array_equal(bn.running_mean.data, np.zeros(2))
        self.assertEqual(bn.num_batches_tracked, 0)

        bn.forward(Tensor.from_numpy(np.array([[5.0, 1.0], [7.0, 1.0]])))
        np.testing.assert_allclose(bn.running_mean.data, [6.0, 1.0], atol=1e-6)
        np.testing.assert_allclose(bn.running_var.data, [1.0, 0.0], atol=1e-6)


class TestBatchNormErrors(unittest.TestCase):
    def test_forward_rejects_wrong_rank(self):
        with self.assertRaises(ShapeError):
            BatchNorm1d(3).forward(Tensor.from_numpy(np.ones((2, 3, 1))))
        with self.assertRaises(ShapeError):
            BatchNorm2d(3).forward(Tensor.from_numpy(np.ones((2, 3))))
        with self.assertRaises(ShapeError):
            BatchNorm3d(3).forward(Tensor.from_numpy(np.ones((2, 3, 2, 2))))

    def test_forward_rejects_wrong_channel_count(self):
        with self.assertRaises(ShapeError):
            BatchNorm1d(4).forward(Tensor.from_numpy(np.ones((2, 3))))
        with self.assertRaises(ShapeError):
            BatchNorm2d(4).forward(Tensor.from_numpy(np.ones((2, 3, 2, 2))))

    def test_forward_rejects_bad_data_length(self):
        x = Tensor(shape=(2, 3), data=[1.0, 2.0, 3.0])
        with self.assertRaises(ShapeError):
            BatchNorm1d(3).forward(x)

    def test_backward_before_forward_raises_state_error(self):
        bn = BatchNorm2d(2)
        g = Tensor.zeros((1, 2, 2, 2))
        g.fill_grad(1.0)
        with self.assertRaises(StateError):
            bn.backward(g, Tensor())

    def test_backward_rejects_grad_with_wrong_channels(self):
        bn = BatchNorm1d(3, rng=0)
        bn.forward(Tensor.from_numpy(np.ones((2, 3))))
        g = Tensor.zeros((2, 4))
        g.fill_grad(1.0)
        with self.assertRaises(ShapeError):
            bn.backward(g, Tensor())

    def test_backward_requires_gradient_buffer(self):
        bn = BatchNorm1d(3, rng=0)
        y = bn.forward(Tensor.from_numpy(np.ones((2, 3))))
        with self.assertRaises(ShapeError):
            bn.backward(y, Tensor())

    def test_backward_with_stale_cache_raises_state_error(self):
        bn = BatchNorm1d(3, rng=0)
        bn.forward(Tensor.from_numpy(np.ones((4, 3))))
        g = Tensor.zeros((2, 3))
        g.fill_grad(1.0)
        with self.assertRaises(StateError):
            bn.backward(g, Tensor())


class TestBatchNormConfig(unittest.TestCase):
    def test_config_roundtrip(self):
        bn = BatchNorm2d(6, eps=1e-3, momentum=0.2, affine=False, track_running_stats=False)
        clone = BatchNorm2d.from_config(bn.get_config())
        self.assertEqual(clone.get_config(), bn.get_config())
        self.assertIsInstance(clone, BatchNorm2d)


if __name__ == "__main__":
    unittest.main()

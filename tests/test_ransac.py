import numpy as np
import pytest

from trackcal.estimation.ransac import RansacParameter, ransac, required_iterations


class LineEstimator:
    """y = a x + b through the samples (least squares), None if x is constant."""

    def __init__(self):
        self.calls = 0

    def estimate(self, samples):
        self.calls += 1
        pts = np.asarray(samples, dtype=np.float64)
        if np.ptp(pts[:, 0]) < 1e-12:
            return None
        A = np.stack([pts[:, 0], np.ones(len(pts))], axis=1)
        (a, b), *_ = np.linalg.lstsq(A, pts[:, 1], rcond=None)
        return float(a), float(b)


class LineEvaluator:
    def evaluate(self, model, datum):
        a, b = model
        return abs(datum[1] - (a * datum[0] + b))


class LineRansac:
    def __init__(self):
        self.estimator = LineEstimator()
        self.evaluator = LineEvaluator()


class CountingEstimator:
    """Returns the call index as the model; every model explains all data."""

    def __init__(self):
        self.calls = 0

    def estimate(self, samples):
        self.calls += 1
        return self.calls


class AcceptAll:
    def evaluate(self, model, datum):
        return 0.0


class CountingStrategy:
    def __init__(self):
        self.estimator = CountingEstimator()
        self.evaluator = AcceptAll()


class NeverEstimates:
    def __init__(self):
        self.estimator = self
        self.evaluator = AcceptAll()

    def estimate(self, samples):
        return None


def _line_data(rng, n_in=40, n_out=20):
    x = rng.uniform(-10, 10, size=n_in)
    inliers = np.stack([x, 2.0 * x - 1.0 + rng.normal(0, 0.05, size=n_in)], axis=1)
    outliers = rng.uniform(-30, 30, size=(n_out, 2))
    return np.vstack([inliers, outliers])


def test_fits_line_with_outliers(rng):
    data = _line_data(rng)
    params = RansacParameter(threshold=0.3, set_size=2, min_inlier=30, max_iterations=200)
    res = ransac(data, LineRansac(), params, seed=3)

    assert res.success
    a, b = res.model
    assert a == pytest.approx(2.0, abs=0.02)
    assert b == pytest.approx(-1.0, abs=0.05)
    assert res.inlier_mask[:40].all()
    assert res.num_inliers == int(res.inlier_mask.sum())
    assert res.iterations == 200


def test_same_seed_same_result(rng):
    data = _line_data(rng)
    params = RansacParameter(threshold=0.3, set_size=2, min_inlier=30, max_iterations=50)
    r1 = ransac(data, LineRansac(), params, seed=11)
    r2 = ransac(data, LineRansac(), params, rng=np.random.default_rng(11))

    assert r1.model == r2.model
    assert r1.num_inliers == r2.num_inliers
    np.testing.assert_array_equal(r1.inlier_mask, r2.inlier_mask)


def test_too_few_data_gives_no_model():
    params = RansacParameter(threshold=1.0, set_size=3, min_inlier=1, max_iterations=10)
    strategy = CountingStrategy()
    res = ransac([1.0, 2.0], strategy, params, seed=0)

    assert res.model is None
    assert res.num_inliers == 0
    assert res.inlier_mask.shape == (2,)
    assert strategy.estimator.calls == 0


def test_insufficient_consensus_gives_no_model(rng):
    data = _line_data(rng, n_in=10, n_out=30)
    params = RansacParameter(threshold=0.3, set_size=2, min_inlier=25, max_iterations=100)
    res = ransac(data, LineRansac(), params, seed=0)

    assert not res.success
    assert res.model is None
    assert res.num_inliers == 0
    assert not res.inlier_mask.any()


def test_stop_on_consensus_ends_early():
    data = np.arange(20.0)
    params = RansacParameter(
        threshold=0.0, set_size=2, min_inlier=5, max_iterations=100,
        stop_on_consensus=True, refine=False,
    )
    strategy = CountingStrategy()
    res = ransac(data, strategy, params, seed=0)

    assert res.iterations == 1
    assert strategy.estimator.calls == 1
    assert res.num_inliers == 20


def test_ties_keep_first_model():
    data = np.arange(20.0)
    params = RansacParameter(threshold=0.0, set_size=2, min_inlier=5, max_iterations=30, refine=False)
    strategy = CountingStrategy()
    res = ransac(data, strategy, params, seed=0)

    assert strategy.estimator.calls == 30
    assert res.iterations == 30
    assert res.model == 1


def test_refit_on_inliers():
    data = np.arange(20.0)
    params = RansacParameter(threshold=0.0, set_size=2, min_inlier=5, max_iterations=30, refine=True)
    strategy = CountingStrategy()
    res = ransac(data, strategy, params, seed=0)

    # one extra estimate on the 20 inliers, accepted since it explains as many
    assert strategy.estimator.calls == 31
    assert res.model == 31


def test_degenerate_samples_only():
    params = RansacParameter(threshold=1.0, set_size=2, min_inlier=1, max_iterations=25)
    res = ransac(np.arange(10.0), NeverEstimates(), params, seed=0)
    assert res.model is None
    assert res.iterations == 25


def test_nan_residuals_are_never_inliers():
    class NanEvaluator:
        def evaluate(self, model, datum):
            return float("nan")

    strategy = CountingStrategy()
    strategy.evaluator = NanEvaluator()
    params = RansacParameter(threshold=1.0, set_size=1, min_inlier=1, max_iterations=5)
    assert not ransac(np.arange(5.0), strategy, params, seed=0).success


def test_required_iterations():
    assert required_iterations(8, 0.5, 0.99) == 1177
    assert required_iterations(3, 0.0, 0.99) == 1
    assert required_iterations(3, 0.5, 0.99) == 35

    with pytest.raises(ValueError):
        required_iterations(3, 1.0, 0.99)
    with pytest.raises(ValueError):
        required_iterations(3, 0.5, 1.0)


def test_parameters_from_confidence():
    p = RansacParameter.from_confidence(0.5, 8, 20, outlier_ratio=0.5, confidence=0.99, stop_on_consensus=True)
    assert p.max_iterations == 1177
    assert p.stop_on_consensus


@pytest.mark.parametrize("kwargs", [
    dict(threshold=-1.0, set_size=2, min_inlier=1, max_iterations=1),
    dict(threshold=1.0, set_size=0, min_inlier=1, max_iterations=1),
    dict(threshold=1.0, set_size=2, min_inlier=0, max_iterations=1),
    dict(threshold=1.0, set_size=2, min_inlier=1, max_iterations=0),
])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        RansacParameter(**kwargs)

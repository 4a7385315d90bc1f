import io
import math
import random
import unittest
from concurrent.futures import ThreadPoolExecutor
from contextlib import redirect_stderr
from unittest import mock

import numpy as np

from hwcast import (
    BestResult,
    FitConfig,
    InsufficientDataError,
    InvalidParameterError,
    InvalidPeriodError,
    NotTrainedError,
    TripleExponentialSmoothing,
    build_grid,
    fit_parameters,
)
from hwcast.holt_winters._optimization import recenter_box

SERIES = [362, 385, 432, 341, 382, 409, 498, 387, 473, 513,
          582, 474, 544, 582, 681, 557, 628, 707, 773, 592, 627, 725,
          854, 661]

THREADS = FitConfig(executor="thread", max_workers=4)


def trial_mse(series, period, alpha, beta, gamma):
    model = TripleExponentialSmoothing(period)
    model.train(series, alpha, beta, gamma)
    return model.score(series)


class TestGrid(unittest.TestCase):
    def test_unit_box(self):
        grid = build_grid(((0.0, 1.0), (0.0, 1.0), (0.0, 1.0)), 0.1)
        self.assertEqual(grid.shape, (1331, 3))
        np.testing.assert_array_equal(grid[0], [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(grid[1], [0.0, 0.0, 0.1])
        np.testing.assert_array_equal(grid[11], [0.0, 0.1, 0.0])
        np.testing.assert_array_equal(grid[-1], [1.0, 1.0, 1.0])
        self.assertIn(0.3, grid[:, 2])

    def test_bounds_are_inclusive(self):
        grid = build_grid(((0.0, 0.2), (0.3, 0.5), (0.9, 1.0)), 0.1)
        self.assertEqual(grid.shape, (18, 3))
        self.assertEqual(grid[:, 0].min(), 0.0)
        self.assertEqual(grid[:, 0].max(), 0.2)
        self.assertEqual(grid[:, 1].min(), 0.3)
        self.assertEqual(grid[:, 2].max(), 1.0)

    def test_partial_step_keeps_upper_bound(self):
        grid = build_grid(((0.0, 0.15), (0.5, 0.5), (1.0, 1.0)), 0.1)
        np.testing.assert_allclose(np.unique(grid[:, 0]), [0.0, 0.1, 0.15])
        self.assertEqual(len(grid), 3)

    def test_recenter_clamps(self):
        box = recenter_box((0.0, 0.5, 1.0), 0.1)
        self.assertEqual(box[0], (0.0, 0.1))
        self.assertAlmostEqual(box[1][0], 0.4)
        self.assertAlmostEqual(box[1][1], 0.6)
        self.assertEqual(box[2][1], 1.0)


class TestBestResult(unittest.TestCase):
    def test_first_offer_wins(self):
        best = BestResult()
        self.assertTrue(best.empty)
        self.assertTrue(best.offer((0.1, 0.2, 0.3), float("nan"), (0, 5)))
        self.assertFalse(best.empty)
        self.assertEqual((best.alpha, best.beta, best.gamma), (0.1, 0.2, 0.3))

    def test_nan_never_beats_number(self):
        best = BestResult()
        best.offer((0.1, 0.1, 0.1), float("inf"), (0, 3))
        self.assertFalse(best.offer((0.2, 0.2, 0.2), float("nan"), (0, 0)))
        self.assertEqual(best.mse, float("inf"))
        self.assertTrue(best.offer((0.3, 0.3, 0.3), 5.0, (0, 9)))
        self.assertFalse(best.offer((0.4, 0.4, 0.4), float("nan"), (1, 0)))
        self.assertEqual(best.mse, 5.0)

    def test_number_replaces_nan(self):
        best = BestResult()
        best.offer((0.1, 0.1, 0.1), float("nan"), (0, 0))
        self.assertTrue(best.offer((0.2, 0.2, 0.2), 100.0, (0, 1)))
        self.assertEqual(best.alpha, 0.2)

    def test_strictly_smaller(self):
        best = BestResult()
        best.offer((0.1, 0.1, 0.1), 2.0, (0, 0))
        self.assertFalse(best.offer((0.2, 0.2, 0.2), 3.0, (0, 1)))
        self.assertTrue(best.offer((0.3, 0.3, 0.3), 1.0, (0, 2)))
        self.assertEqual(best.mse, 1.0)

    def test_tie_goes_to_lower_index_in_round(self):
        best = BestResult()
        best.offer((0.5, 0.5, 0.5), 1.0, (0, 7))
        self.assertTrue(best.offer((0.2, 0.2, 0.2), 1.0, (0, 3)))
        self.assertFalse(best.offer((0.9, 0.9, 0.9), 1.0, (0, 4)))
        self.assertEqual(best.order, (0, 3))

    def test_tie_keeps_earlier_round(self):
        best = BestResult()
        best.offer((0.5, 0.5, 0.5), 1.0, (0, 7))
        self.assertFalse(best.offer((0.2, 0.2, 0.2), 1.0, (1, 0)))
        self.assertEqual(best.order, (0, 7))

    def test_concurrent_offers_are_order_independent(self):
        scores = [float(v) for v in np.random.default_rng(3).integers(0, 50, 2000)]
        scores[100] = float("nan")
        expected_index = min(i for i, s in enumerate(scores) if s == min(x for x in scores if not math.isnan(x)))

        order = list(range(len(scores)))
        random.Random(11).shuffle(order)
        best = BestResult()

        def offer(i):
            best.offer((i / 2000, 0.0, 0.0), scores[i], (0, i))

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(offer, order))

        self.assertEqual(best.order, (0, expected_index))
        self.assertEqual(best.mse, scores[expected_index])


class TestFit(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.result = fit_parameters(SERIES, 4, 1e-3, THREADS)

    def test_rounds(self):
        rounds = self.result.rounds
        self.assertEqual(len(rounds), 3)
        np.testing.assert_allclose([r.step for r in rounds], [0.1, 0.01, 0.001])
        self.assertEqual(rounds[0].trials, 1331)
        self.assertEqual(rounds[0].box, ((0.0, 1.0), (0.0, 1.0), (0.0, 1.0)))

    def test_rounds_never_get_worse(self):
        scores = [r.mse for r in self.result.rounds]
        for before, after in zip(scores, scores[1:]):
            self.assertLessEqual(after, before)
        self.assertEqual(scores[-1], self.result.mse)

    def test_parameters_in_range(self):
        for value in self.result.params:
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 1.0)

    def test_unpacking(self):
        alpha, beta, gamma, score = self.result
        self.assertEqual((alpha, beta, gamma), self.result.params)
        self.assertEqual(score, self.result.mse)

    def test_mse_matches_trial(self):
        alpha, beta, gamma, score = self.result
        self.assertAlmostEqual(trial_mse(SERIES, 4, alpha, beta, gamma), score)

    def test_not_worse_than_coarse_grid_point(self):
        self.assertLessEqual(self.result.mse, trial_mse(SERIES, 4, 0.5, 0.4, 0.6))
        self.assertLessEqual(self.result.mse, trial_mse(SERIES, 4, 0.1, 0.9, 0.0))

    def test_lower_tolerance_does_not_increase_mse(self):
        finer = fit_parameters(SERIES, 4, 1e-4, THREADS)
        self.assertEqual(len(finer.rounds), 4)
        self.assertLessEqual(finer.mse, self.result.mse)

    def test_single_round_when_tolerance_exceeds_step(self):
        result = fit_parameters(SERIES, 4, 0.5, THREADS)
        self.assertEqual(len(result.rounds), 1)

    def test_repeatable(self):
        again = fit_parameters(SERIES, 4, 1e-3, FitConfig(executor="thread", max_workers=2, chunksize=17))
        self.assertEqual(tuple(again), tuple(self.result))

    def test_process_executor_matches_threads(self):
        config = FitConfig(executor="process", max_workers=2)
        threaded = fit_parameters(SERIES, 4, 0.01, THREADS)
        processed = fit_parameters(SERIES, 4, 0.01, config)
        self.assertEqual(tuple(processed), tuple(threaded))


class TestFitDegenerate(unittest.TestCase):
    def test_zero_observation_never_wins_with_nan(self):
        y = list(SERIES)
        y[9] = 0
        result = fit_parameters(y, 4, 0.01, THREADS)
        self.assertTrue(math.isfinite(result.mse))
        self.assertLess(result.beta, 1.0)

    def test_all_trials_nan(self):
        y = [0, 0, 0, 0] + SERIES[4:]
        result = fit_parameters(y, 4, 0.01, THREADS)
        self.assertTrue(math.isnan(result.mse))
        for value in result.params:
            self.assertTrue(0.0 <= value <= 1.0)


class TestFitValidation(unittest.TestCase):
    def test_insufficient_data(self):
        with self.assertRaises(InsufficientDataError):
            fit_parameters([1.0, 2.0, 3.0, 4.0], 2, 0.01, THREADS)
        with self.assertRaises(InsufficientDataError):
            fit_parameters([1.0, 2.0, 3.0], 1, 0.01, THREADS)

    def test_too_short_for_period(self):
        with self.assertRaises(InvalidPeriodError):
            fit_parameters(SERIES[:7], 4, 0.01, THREADS)

    def test_tolerance(self):
        for tolerance in (0, -0.1, float("nan")):
            with self.assertRaises(InvalidParameterError):
                fit_parameters(SERIES, 4, tolerance, THREADS)

    def test_config(self):
        with self.assertRaises(InvalidParameterError):
            FitConfig(executor="gpu")
        with self.assertRaises(InvalidParameterError):
            FitConfig(initial_step=0)
        with self.assertRaises(InvalidParameterError):
            FitConfig(max_workers=0)
        with self.assertRaises(InvalidParameterError):
            FitConfig(chunksize=0)

    def test_config_types(self):
        for kwargs in ({"initial_step": "0.1"}, {"initial_step": None}, {"initial_step": True},
                       {"chunksize": "256"}, {"chunksize": 2.5}, {"max_workers": "4"}, {"max_workers": 1.5}):
            with self.assertRaises(InvalidParameterError) as ctx:
                FitConfig(**kwargs)
            self.assertEqual(ctx.exception.field, next(iter(kwargs)))


class TestModelFit(unittest.TestCase):
    def test_fit_then_train(self):
        model = TripleExponentialSmoothing(4)
        model.train(SERIES, 0.5, 0.4, 0.6)
        result = model.fit(SERIES, 0.01, THREADS)

        self.assertEqual((model.alpha, model.beta, model.gamma, model.mse), tuple(result))
        self.assertIs(model.fit_result, result)
        self.assertFalse(model.is_trained)
        with self.assertRaises(NotTrainedError):
            model.forecast(4)

        model.train(SERIES, model.alpha, model.beta, model.gamma)
        self.assertTrue(np.all(np.isfinite(model.forecast(4))))
        self.assertAlmostEqual(model.score(SERIES), model.mse)


class TestFitExecution(unittest.TestCase):
    def test_progress_bars(self):
        config = FitConfig(executor="thread", max_workers=2, show_progress=True)
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            result = fit_parameters(SERIES, 4, 0.01, config)
        self.assertEqual(tuple(result), tuple(fit_parameters(SERIES, 4, 0.01, THREADS)))
        output = stderr.getvalue()
        self.assertIn("Round 0", output)
        self.assertIn("Round 1", output)

    def test_failing_trial_reaches_caller(self):
        model = TripleExponentialSmoothing(4)
        with mock.patch("hwcast.holt_winters._optimization._score_chunk",
                        side_effect=RuntimeError("trial failed")) as score_chunk:
            with self.assertRaises(RuntimeError) as ctx:
                model.fit(SERIES, 0.01, THREADS)
        self.assertEqual(str(ctx.exception), "trial failed")
        self.assertTrue(score_chunk.called)
        self.assertIsNone(model.alpha)
        self.assertIsNone(model.mse)
        self.assertIsNone(model.fit_result)


if __name__ == '__main__':
    unittest.main()

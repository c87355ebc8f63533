import unittest
from unittest.mock import MagicMock
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from gauntlet.config import load_config
from gauntlet.errors import SessionError
from gauntlet.load import LoadAssessor
from gauntlet.models import ConcurrencyMode, NetworkError, ServerError, Session, Success, Timeout
from gauntlet.throttler import paced

QUIET = {
    "rate_limit": {"cooldown_ms": 0},
    "stress": {"settle_ms": 0, "pacing_ms": 0, "response_time_delay_ms": 0},
}


def ok(status=200, latency_ms=12.0):
    return Success(status=status, body_snippet="", headers={}, latency_ms=latency_ms)


def scripted_dispatcher(responder):
    dispatcher = MagicMock()
    dispatcher.dispatch.side_effect = responder
    dispatcher.dispatch_batch.side_effect = lambda probes, mode=ConcurrencyMode.CONCURRENT, pacing_ms=0: [
        responder(p) for p in probes
    ]
    return dispatcher


def limiter(limit):
    """Answers 200 until `limit` requests were seen, then 429."""
    seen = []

    def responder(probe):
        seen.append(probe)
        return ok(200) if len(seen) <= limit else ok(429)
    return responder


class TestRateLimit(unittest.TestCase):
    def setUp(self):
        self.config = load_config(overrides=QUIET)
        self.session = Session(bearer_token="tok", identity="t@example.com", verified=True)

    def test_enforced_public_limit_is_working(self):
        dispatcher = scripted_dispatcher(limiter(100))
        result = LoadAssessor(dispatcher, self.config).rate_limit_public()

        self.assertEqual(result.tested, 120)
        self.assertEqual(result.metrics["blocked"], 20)
        self.assertTrue(result.metrics["working"])
        self.assertEqual(result.score, 15)

    def test_small_overshoot_within_tolerance_is_working(self):
        result = LoadAssessor(scripted_dispatcher(limiter(110)), self.config).rate_limit_public()
        self.assertEqual(result.metrics["blocked"], 10)
        self.assertTrue(result.metrics["working"])

    def test_overshoot_beyond_tolerance_is_not_working(self):
        result = LoadAssessor(scripted_dispatcher(limiter(112)), self.config).rate_limit_public()
        self.assertEqual(result.metrics["blocked"], 8)
        self.assertFalse(result.metrics["working"])
        self.assertEqual(result.score, 0)

    def test_never_blocking_server_is_not_working(self):
        result = LoadAssessor(scripted_dispatcher(lambda p: ok(200)), self.config).rate_limit_public()
        self.assertEqual(result.metrics["blocked"], 0)
        self.assertFalse(result.metrics["working"])
        self.assertEqual(result.score, 0)

    def test_public_probes_are_concurrent_against_health(self):
        dispatcher = scripted_dispatcher(lambda p: ok(200))
        LoadAssessor(dispatcher, self.config).rate_limit_public()

        probes = dispatcher.dispatch_batch.call_args.args[0]
        self.assertTrue(all(p.path == "/health" for p in probes))
        self.assertEqual(dispatcher.dispatch_batch.call_args.kwargs["mode"], ConcurrencyMode.CONCURRENT)

    def test_authenticated_limit_is_capped_and_carries_token(self):
        dispatcher = scripted_dispatcher(lambda p: ok(200))
        result = LoadAssessor(dispatcher, self.config, self.session).rate_limit_authenticated()

        probes = dispatcher.dispatch_batch.call_args.args[0]
        self.assertEqual(len(probes), 200)
        self.assertTrue(all(p.headers["Authorization"] == "Bearer tok" for p in probes))
        self.assertTrue(result.metrics["working"])
        self.assertEqual(result.score, 15)

    def test_authenticated_limit_no_higher_than_public_is_not_working(self):
        result = LoadAssessor(scripted_dispatcher(limiter(100)), self.config, self.session).rate_limit_authenticated()
        self.assertEqual(result.metrics["successful"], 100)
        self.assertFalse(result.metrics["working"])

    def test_authenticated_limit_requires_session(self):
        with self.assertRaises(SessionError):
            LoadAssessor(scripted_dispatcher(lambda p: ok()), self.config).rate_limit_authenticated()


class TestPerformance(unittest.TestCase):
    def setUp(self):
        self.config = load_config(overrides=QUIET)

    def test_healthy_burst_scores_full(self):
        result = LoadAssessor(scripted_dispatcher(lambda p: ok(200, 120.0)), self.config).concurrency_burst()
        self.assertEqual(result.tested, 50)
        self.assertEqual(result.flagged, 0)
        self.assertEqual(result.score, 30)
        self.assertEqual(result.metrics["avg_ms"], 120.0)

    def test_degraded_burst_buckets(self):
        outcomes = iter([ok(200, 800.0)] * 45 + [ServerError(status=503, latency_ms=800.0)] * 5)
        result = LoadAssessor(scripted_dispatcher(lambda p: next(outcomes)), self.config).concurrency_burst()

        self.assertEqual(result.metrics["success_rate"], 90.0)
        self.assertEqual(result.flagged, 5)
        self.assertEqual(result.score, 15 + 7)

    def test_burst_without_any_latency(self):
        result = LoadAssessor(scripted_dispatcher(lambda p: NetworkError(reason="refused")),
                              self.config).concurrency_burst()
        self.assertEqual(result.score, 0)
        self.assertIsNone(result.metrics["avg_ms"])

    def test_throughput_requests_per_second(self):
        clock = iter([10.0, 12.0])
        dispatcher = scripted_dispatcher(lambda p: ok(200))
        result = LoadAssessor(dispatcher, self.config, clock=lambda: next(clock)).throughput()

        self.assertEqual(result.tested, 100)
        self.assertEqual(result.metrics["requests_per_second"], 50.0)
        self.assertEqual(result.score, 10)
        self.assertEqual(dispatcher.dispatch.call_count, 100)
        self.assertTrue(all(c.args[0].path == "/" for c in dispatcher.dispatch.call_args_list))

    def test_slow_throughput(self):
        clock = iter([0.0, 8.0])
        result = LoadAssessor(scripted_dispatcher(lambda p: ok(200)), self.config,
                              clock=lambda: next(clock)).throughput()
        self.assertEqual(result.metrics["requests_per_second"], 12.5)
        self.assertEqual(result.score, 3)

    def test_throughput_pauses_every_ten_requests(self):
        config = load_config(overrides={"stress": {"pacing_every": 10, "pacing_ms": 25}})
        clock = iter([0.0, 2.0])
        sleep = MagicMock()
        dispatcher = scripted_dispatcher(lambda p: ok(200))

        result = LoadAssessor(dispatcher, config, clock=lambda: next(clock), sleep=sleep).throughput()

        self.assertEqual(result.tested, 100)
        self.assertEqual(sleep.call_count, 10)
        sleep.assert_called_with(0.025)

    def test_packet_loss_counts_timeouts_and_network_errors(self):
        outcomes = iter([ok(200)] * 95 + [ok(404)] + [ServerError(status=502)]
                        + [Timeout(latency_ms=5000.0)] * 2 + [NetworkError(reason="reset")])
        dispatcher = scripted_dispatcher(lambda p: next(outcomes))
        result = LoadAssessor(dispatcher, self.config).packet_loss()

        probes = dispatcher.dispatch_batch.call_args.args[0]
        self.assertTrue(all(p.timeout_ms == 5000 for p in probes))
        self.assertEqual(result.metrics["timeouts"], 2)
        self.assertEqual(result.metrics["network_errors"], 1)
        self.assertEqual(result.metrics["server_errors"], 1)
        self.assertEqual(result.metrics["client_errors"], 1)
        self.assertEqual(result.metrics["loss_rate"], 3.0)
        self.assertEqual(result.flagged, 3)
        self.assertEqual(result.score, 15)

    def test_no_loss_scores_full(self):
        result = LoadAssessor(scripted_dispatcher(lambda p: ok(200)), self.config).packet_loss()
        self.assertEqual(result.score, 20)

    def test_response_time_profile_is_unscored(self):
        dispatcher = scripted_dispatcher(lambda p: ok(401, 30.0))
        result = LoadAssessor(dispatcher, self.config).response_time_profile()

        self.assertEqual(result.score, 0)
        self.assertEqual(set(result.metrics["endpoints"]), {"/", "/health", "/api/auth/login"})
        self.assertEqual(result.metrics["endpoints"]["/health"]["median_ms"], 30.0)
        for call in dispatcher.dispatch_batch.call_args_list:
            self.assertEqual(call.kwargs["mode"], ConcurrencyMode.SEQUENTIAL)


class TestLoadPhase(unittest.TestCase):
    def test_combined_score_sums_scored_components(self):
        config = load_config(overrides=QUIET)
        session = Session(bearer_token="tok")
        assessor = LoadAssessor(scripted_dispatcher(lambda p: ok(200)), config, session, clock=lambda: 0.0)
        result = assessor.run_all()

        # public limiter absent (0) + auth 15 + burst 30 + throughput 10 + no loss 20
        self.assertEqual(result.score, 75)
        self.assertIn("response_time", result.components)
        self.assertEqual(result.components["rate_limit_public"].score, 0)
        self.assertLessEqual(result.score, 100)


class TestPaced(unittest.TestCase):
    def test_pauses_after_first_item_of_each_block(self):
        sleep = MagicMock()
        seen = []
        for item in paced(range(25), every=10, delay_ms=10, sleep=sleep):
            seen.append((item, sleep.call_count))

        self.assertEqual([i for i, _ in seen], list(range(25)))
        self.assertEqual(sleep.call_count, 3)
        sleep.assert_called_with(0.01)
        # the pause lands right after items 0, 10 and 20 are yielded
        self.assertEqual(seen[1][1], 1)
        self.assertEqual(seen[11][1], 2)
        self.assertEqual(seen[21][1], 3)

    def test_zero_delay_never_sleeps(self):
        sleep = MagicMock()
        self.assertEqual(list(paced("abc", every=1, delay_ms=0, sleep=sleep)), ["a", "b", "c"])
        sleep.assert_not_called()


if __name__ == '__main__':
    unittest.main()

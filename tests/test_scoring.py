import itertools
import unittest
import sys
import os

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from gauntlet import scoring
from gauntlet.models import Category, Classification, PhaseResult


def campaign(category, flagged=0, tested=10, **metrics):
    return PhaseResult(name=category.value, tested=tested, flagged=flagged,
                       score=scoring.campaign_score(tested, flagged), metrics=metrics)


class TestComposite(unittest.TestCase):
    def test_always_integer_within_bounds(self):
        values = [0, 1, 33, 50, 89, 90, 99, 100]
        for size in range(0, 4):
            for combo in itertools.product(values, repeat=size):
                score = scoring.composite_score(combo)
                self.assertIsInstance(score, int)
                self.assertGreaterEqual(score, 0)
                self.assertLessEqual(score, 100)

    def test_no_completed_phase_is_zero(self):
        self.assertEqual(scoring.composite_score([]), 0)
        self.assertEqual(scoring.classify(0), Classification.CRITICAL)

    def test_mean_rounds_half_up(self):
        self.assertEqual(scoring.composite_score([80, 85]), 83)
        self.assertEqual(scoring.composite_score([100, 75, 60]), 78)

    def test_classification_thresholds(self):
        self.assertEqual(scoring.classify(90), Classification.EXCELLENT)
        self.assertEqual(scoring.classify(89), Classification.GOOD)
        self.assertEqual(scoring.classify(75), Classification.GOOD)
        self.assertEqual(scoring.classify(60), Classification.AVERAGE)
        self.assertEqual(scoring.classify(40), Classification.POOR)
        self.assertEqual(scoring.classify(39), Classification.CRITICAL)


class TestSecurityScore(unittest.TestCase):
    def test_clean_run_is_100(self):
        campaigns = {c: campaign(c) for c in Category}
        self.assertEqual(scoring.security_score(campaigns), 100)

    def test_fixed_deductions_ignore_finding_count(self):
        campaigns = {c: campaign(c) for c in Category}
        campaigns[Category.SQLI] = campaign(Category.SQLI, flagged=7)
        campaigns[Category.HEADER_INJECTION] = campaign(Category.HEADER_INJECTION, flagged=1)
        self.assertEqual(scoring.security_score(campaigns), 70)

    def test_rate_limited_brute_force_bonus(self):
        campaigns = {c: campaign(c) for c in Category}
        campaigns[Category.XSS] = campaign(Category.XSS, flagged=2)
        campaigns[Category.BRUTE_FORCE] = campaign(Category.BRUTE_FORCE, rate_limited=3)
        self.assertEqual(scoring.security_score(campaigns), 90)

    def test_clamped_at_zero_and_hundred(self):
        everything = {c: campaign(c, flagged=1, rate_limited=1) for c in Category}
        self.assertEqual(scoring.security_score(everything), 0)

        bonus_only = {Category.BRUTE_FORCE: campaign(Category.BRUTE_FORCE, rate_limited=1)}
        self.assertEqual(scoring.security_score(bonus_only), 100)


class TestBuckets(unittest.TestCase):
    def test_concurrency(self):
        self.assertEqual(scoring.concurrency_points(100, 120), 30)
        self.assertEqual(scoring.concurrency_points(94.9, 999), 15 + 7)
        self.assertEqual(scoring.concurrency_points(70, 4999), 5 + 2)
        self.assertEqual(scoring.concurrency_points(69.9, 5000), 0)
        self.assertEqual(scoring.concurrency_points(0, None), 0)

    def test_throughput(self):
        self.assertEqual(scoring.throughput_points(50), 10)
        self.assertEqual(scoring.throughput_points(29.99), 5)
        self.assertEqual(scoring.throughput_points(9.9), 0)

    def test_packet_loss_bounds_are_inclusive(self):
        self.assertEqual(scoring.packet_loss_points(0), 20)
        self.assertEqual(scoring.packet_loss_points(1), 20)
        self.assertEqual(scoring.packet_loss_points(3), 15)
        self.assertEqual(scoring.packet_loss_points(5), 10)
        self.assertEqual(scoring.packet_loss_points(10), 5)
        self.assertEqual(scoring.packet_loss_points(10.01), 0)

    def test_load_score_excludes_informational_components(self):
        components = {
            "rate_limit_public": PhaseResult("rate_limit_public", 120, 20, 15),
            "rate_limit_authenticated": PhaseResult("rate_limit_authenticated", 200, 0, 15),
            "concurrency": PhaseResult("concurrency", 50, 0, 30),
            "throughput": PhaseResult("throughput", 100, 0, 10),
            "packet_loss": PhaseResult("packet_loss", 100, 0, 20),
            "response_time": PhaseResult("response_time", 30, 0, 50),
        }
        self.assertEqual(scoring.load_score(components), 90)

    def test_campaign_score(self):
        self.assertEqual(scoring.campaign_score(0, 0), 100)
        self.assertEqual(scoring.campaign_score(40, 1), 98)
        self.assertEqual(scoring.campaign_score(3, 3), 0)


class TestPhaseResultInvariants(unittest.TestCase):
    def test_flagged_cannot_exceed_tested(self):
        with self.assertRaises(ValueError):
            PhaseResult("x", tested=1, flagged=2, score=0)

    def test_score_must_be_bounded(self):
        with self.assertRaises(ValueError):
            PhaseResult("x", tested=1, flagged=0, score=101)


class TestRecommendations(unittest.TestCase):
    def test_good_run_gets_single_note(self):
        self.assertEqual(len(scoring.recommendations({}, 95)), 1)

    def test_flagged_campaigns_are_named(self):
        security = PhaseResult("security", tested=20, flagged=1, score=80, components={
            "sql_injection": PhaseResult("sql_injection", 10, 1, 90),
            "brute_force": PhaseResult("brute_force", 10, 0, 100, metrics={"rate_limited": 0}),
        })
        recs = scoring.recommendations({"security": security}, 60)
        self.assertTrue(any("parameterized" in r for r in recs))
        self.assertTrue(any("Rate-limit the login" in r for r in recs))


if __name__ == '__main__':
    unittest.main()

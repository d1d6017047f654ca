import unittest
from datetime import date

from cpmkit.models import Activity, Relationship, ScheduledActivity
from cpmkit.scenarios import simulate
from cpmkit.summary import classify_float, float_distribution, summarize


def scheduled(act_id, total_float, duration=1, milestone=False):
    return ScheduledActivity(
        id=act_id,
        name=str(act_id),
        duration=duration,
        early_start=date(2025, 1, act_id),
        early_finish=date(2025, 1, act_id + 1),
        late_start=None,
        late_finish=None,
        total_float=total_float,
        free_float=0,
        is_milestone=milestone,
    )


class TestClassifyFloat(unittest.TestCase):
    def test_buckets(self):
        self.assertEqual(classify_float(0), "critical")
        self.assertEqual(classify_float(-2), "critical")
        self.assertEqual(classify_float(3), "near")
        self.assertEqual(classify_float(5), "near")
        self.assertEqual(classify_float(6), "non")
        self.assertEqual(classify_float(6, threshold=10), "near")
        self.assertEqual(classify_float(None), "non")


class TestSummarize(unittest.TestCase):
    def test_kpis(self):
        records = [
            scheduled(1, 0),
            scheduled(2, 3),
            scheduled(3, 12),
            scheduled(4, 0, duration=0),
            scheduled(5, 7, milestone=True),
        ]
        kpis = summarize(records)
        self.assertEqual(kpis.total, 5)
        self.assertEqual(kpis.critical, 2)
        self.assertEqual(kpis.near_critical, 1)
        self.assertEqual(kpis.milestones, 2)
        self.assertEqual(kpis.start, date(2025, 1, 1))
        self.assertEqual(kpis.finish, date(2025, 1, 6))
        self.assertEqual(summarize(records, near_critical_threshold=10).near_critical, 2)

    def test_empty(self):
        kpis = summarize([])
        self.assertEqual((kpis.total, kpis.critical, kpis.start), (0, 0, None))

    def test_snapshot(self):
        acts = [Activity(1, "A", 5, early_start=date(2025, 2, 3)), Activity(2, "B", 0)]
        kpis = summarize(simulate(acts, [Relationship(1, 2)]))
        self.assertEqual((kpis.total, kpis.critical, kpis.milestones), (2, 2, 1))
        self.assertEqual(kpis.finish, date(2025, 2, 8))


class TestFloatDistribution(unittest.TestCase):
    def test_overflow_bucket_last(self):
        records = [scheduled(i, tf) for i, tf in enumerate([0, 0, 4, 25, 2, 30, 4], start=1)]
        self.assertEqual(
            float_distribution(records),
            [("0", 2), ("2", 1), ("4", 2), (">20", 2)],
        )

    def test_custom_cap(self):
        records = [scheduled(1, 3), scheduled(2, 11)]
        self.assertEqual(float_distribution(records, cap=10), [("3", 1), (">10", 1)])

    def test_empty(self):
        self.assertEqual(float_distribution([]), [])


if __name__ == "__main__":
    unittest.main()

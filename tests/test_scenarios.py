import unittest
from datetime import date, datetime, timedelta

from cpmkit.models import Activity, Relationship, ScenarioImpact
from cpmkit.scenarios import ScenarioLibrary, simulate, validate_impact

D0 = date(2025, 3, 3)


def day(n):
    return D0 + timedelta(days=n)


class TestSimulate(unittest.TestCase):
    def setUp(self):
        self.acts = [Activity(1, "A", 5, early_start=D0), Activity(2, "B", 3)]
        self.edges = [Relationship(1, 2)]

    def test_baseline(self):
        snap = simulate(self.acts, self.edges)
        a, b = snap.activities
        self.assertEqual(a.early_finish, day(5))
        self.assertEqual((b.early_start, b.early_finish), (day(5), day(8)))
        self.assertEqual((a.total_float, b.total_float), (0, 0))
        self.assertEqual(snap.project_finish, day(8))

    def test_delay_ripples_through(self):
        snap = simulate(self.acts, self.edges, ScenarioImpact(1, 4))
        a, b = snap.activities
        self.assertEqual(a.duration, 9)
        self.assertEqual(a.early_finish, day(9))
        self.assertEqual((b.early_start, b.early_finish), (day(9), day(12)))
        self.assertEqual(snap.project_finish, day(12))
        self.assertEqual(snap.impact, ScenarioImpact(1, 4))

    def test_duration_clamped_at_zero(self):
        snap = simulate(self.acts, self.edges, ScenarioImpact(1, -10))
        a, b = snap.activities
        self.assertEqual(a.duration, 0)
        self.assertTrue(a.is_milestone)
        self.assertEqual(b.early_start, D0)

    def test_baseline_not_mutated(self):
        simulate(self.acts, self.edges, ScenarioImpact(1, 4))
        self.assertEqual(self.acts[0].duration, 5)

    def test_unknown_target_is_ignored(self):
        snap = simulate(self.acts, self.edges, ScenarioImpact(99, 4))
        self.assertEqual(snap.project_finish, day(8))
        self.assertIsNone(snap.impact)
        self.assertEqual(snap, simulate(self.acts, self.edges))

    def test_non_finite_delta_is_ignored(self):
        for delta in (float("nan"), float("inf")):
            snap = simulate(self.acts, self.edges, ScenarioImpact(1, delta))
            self.assertIsNone(snap.impact)
            self.assertEqual(snap.get(1).duration, 5)
            self.assertEqual(snap, simulate(self.acts, self.edges))

    def test_deterministic(self):
        first = simulate(self.acts, self.edges)
        second = simulate(self.acts, self.edges)
        self.assertEqual(first, second)
        self.assertEqual(first.to_records(), second.to_records())
        self.assertEqual(list(first.calculation_log), list(second.calculation_log))

    def test_delta_monotonic_on_critical_activity(self):
        acts = [
            Activity(1, "A", 5, early_start=D0),
            Activity(2, "B", 3),
            Activity(3, "C", 2, early_start=D0),
            Activity(4, "D", 1),
        ]
        edges = [Relationship(1, 2), Relationship(3, 4), Relationship(2, 4)]
        baseline = simulate(acts, edges)
        critical = [act.id for act in baseline if act.total_float == 0]
        self.assertIn(1, critical)

        for act_id in critical:
            finishes = [
                simulate(acts, edges, ScenarioImpact(act_id, delta)).project_finish
                for delta in range(0, 6)
            ]
            self.assertEqual(finishes, sorted(finishes))

    def test_records_pass_through_when_not_in_network(self):
        acts = [
            Activity(1, "A", 5, early_start=D0),
            Activity(1, "dup", 2, early_start=day(20), late_start=day(22)),
        ]
        snap = simulate(acts, [])
        self.assertEqual(len(snap), 2)
        self.assertEqual(snap.activities[1].early_start, day(20))
        self.assertEqual(snap.activities[1].total_float, 2)


class TestValidateImpact(unittest.TestCase):
    def test_validation(self):
        acts = [Activity(1, "A", 5)]
        self.assertTrue(validate_impact(acts, None)[0])
        self.assertTrue(validate_impact(acts, ScenarioImpact(1, -2))[0])

        ok, msg = validate_impact(acts, ScenarioImpact(7, 1))
        self.assertFalse(ok)
        self.assertIn("not found", msg)

        for bad in (float("nan"), float("inf"), "soon"):
            ok, msg = validate_impact(acts, ScenarioImpact(1, bad))
            self.assertFalse(ok)
            self.assertIn("finite", msg)


class TestScenarioLibrary(unittest.TestCase):
    def setUp(self):
        self.acts = [Activity(1, "A", 5, early_start=D0), Activity(2, "B", 3)]
        self.edges = [Relationship(1, 2)]
        self.library = ScenarioLibrary(
            self.acts, self.edges, timestamp=lambda: datetime(2025, 3, 1, 9, 30)
        )

    def test_save_and_describe(self):
        ok, msg = self.library.save("Late steel", 1, 4, scenario_id="s1")
        self.assertTrue(ok, msg)
        scenario = self.library.get("s1")
        self.assertEqual(
            scenario.to_dict(),
            {
                "id": "s1",
                "title": "Late steel",
                "activityId": 1,
                "deltaDays": 4,
                "createdAt": "2025-03-01T09:30:00",
            },
        )

    def test_generated_id_and_title(self):
        ok, _ = self.library.save("", 2, -1)
        self.assertTrue(ok)
        scenario = self.library.scenarios[0]
        self.assertTrue(scenario.id.startswith("scn-"))
        self.assertEqual(scenario.title, "Activity 2 -1d")

    def test_capacity(self):
        for i in range(10):
            ok, _ = self.library.save(f"S{i}", 1, i)
            self.assertTrue(ok)
        ok, msg = self.library.save("one too many", 1, 1)
        self.assertFalse(ok)
        self.assertIn("full", msg)
        self.assertEqual(len(self.library), 10)
        self.assertEqual([s.title for s in self.library.scenarios], [f"S{i}" for i in range(10)])

    def test_invalid_request_leaves_library_untouched(self):
        ok, _ = self.library.save("ghost", 42, 3)
        self.assertFalse(ok)
        ok, _ = self.library.save("nan", 1, float("nan"))
        self.assertFalse(ok)
        self.assertEqual(len(self.library), 0)

    def test_duplicate_id(self):
        self.library.save("first", 1, 1, scenario_id="x")
        ok, msg = self.library.save("second", 1, 2, scenario_id="x")
        self.assertFalse(ok)
        self.assertIn("already exists", msg)

    def test_activate_and_reset(self):
        self.library.save("Late steel", 1, 4, scenario_id="s1")
        self.assertIs(self.library.active_schedule, self.library.baseline)

        ok, _ = self.library.activate("s1")
        self.assertTrue(ok)
        self.assertEqual(self.library.active_scenario.id, "s1")
        self.assertEqual(self.library.active_schedule.project_finish, day(12))

        self.library.reset()
        self.assertIsNone(self.library.active_scenario)
        self.assertEqual(self.library.active_schedule.project_finish, day(8))

    def test_reset_matches_fresh_baseline(self):
        self.assertEqual(simulate(self.acts, self.edges, None), self.library.baseline)

    def test_activate_unknown(self):
        ok, msg = self.library.activate("missing")
        self.assertFalse(ok)
        self.assertIn("not found", msg)

    def test_remove_active_scenario(self):
        self.library.save("Late steel", 1, 4, scenario_id="s1")
        self.library.activate("s1")
        ok, _ = self.library.remove("s1")
        self.assertTrue(ok)
        self.assertIsNone(self.library.active_scenario)
        self.assertIs(self.library.active_schedule, self.library.baseline)
        self.assertFalse(self.library.remove("s1")[0])

    def test_finish_delta_and_precompute(self):
        self.library.save("Late steel", 1, 4, scenario_id="s1")
        self.library.save("Quick fit-out", 2, -1, scenario_id="s2")
        self.assertEqual(self.library.finish_delta("s1"), 4)
        self.assertEqual(self.library.finish_delta("s2"), -1)
        self.assertIsNone(self.library.finish_delta("nope"))

        results = self.library.precompute()
        self.assertEqual(list(results), ["s1", "s2"])
        self.assertEqual(results["s1"].project_finish, day(12))
        self.assertEqual(results["s2"].project_finish, day(7))


if __name__ == "__main__":
    unittest.main()

"""
Tests for the nutrition insight generator.

Rules are evaluated in a fixed order; fallback rules only run when no
today-specific rule fired. All tests pass an explicit `as_of`.
"""
from datetime import date, datetime, time, timedelta

from fixtures.log_store_fixtures import USER_ID, meal, water
from services.analytics_types import DailySnapshot, LogKind
from services.nutrition_insights import (
    _InsightList,
    generate_insights,
    trailing_averages,
)

TODAY = date(2026, 3, 10)
MORNING = datetime(2026, 3, 10, 9, 0)
AFTERNOON = datetime(2026, 3, 10, 16, 0)


def _ids(insights):
    return [i.id for i in insights]


def _history(store, days, calories, protein_g):
    for offset in range(1, days + 1):
        store.add(meal(TODAY - timedelta(days=offset), calories=calories, protein_g=protein_g))


class TestCalorieProgress:
    """Calorie progress rule"""

    def test_scenario_breakfast_and_lunch_not_near_goal(self, store):
        store.add(
            meal(TODAY, calories=500, protein_g=30, at=time(8, 0), meal_type="breakfast"),
            meal(TODAY, calories=700, protein_g=40, at=time(12, 30), meal_type="lunch"),
        )
        ids = _ids(generate_insights(store, USER_ID, as_of=AFTERNOON))

        assert "nutrition-calories-near-goal" not in ids
        assert "nutrition-protein-low" in ids

    def test_near_goal(self, store):
        store.add(meal(TODAY, calories=2000, protein_g=100), water(TODAY, 2000))
        insights = generate_insights(store, USER_ID, as_of=AFTERNOON)

        near = next(i for i in insights if i.id == "nutrition-calories-near-goal")
        assert near.priority == "high"
        assert near.data == {"current": 2000, "goal": 2200.0, "progress": 91}

    def test_good_pace(self, store):
        store.add(meal(TODAY, calories=1700, protein_g=100), water(TODAY, 2000))
        insights = generate_insights(store, USER_ID, as_of=AFTERNOON)

        assert _ids(insights)[0] == "nutrition-calories-good-pace"
        assert insights[0].priority == "low"

    def test_scenario_above_trailing_average(self, store):
        _history(store, 7, calories=2000, protein_g=130)
        store.add(meal(TODAY, calories=2600, protein_g=130), water(TODAY, 2000))

        insights = generate_insights(store, USER_ID, as_of=AFTERNOON)
        ids = _ids(insights)

        assert "nutrition-calories-above-average" in ids
        assert "nutrition-calories-near-goal" not in ids
        above = insights[ids.index("nutrition-calories-above-average")]
        assert above.priority == "medium"
        assert above.data == {"current": 2600, "average": 2000}

    def test_no_above_average_without_history(self, store):
        # With no history the average equals today, so today can't exceed it.
        store.add(meal(TODAY, calories=1500, protein_g=100), water(TODAY, 2000))
        ids = _ids(generate_insights(store, USER_ID, as_of=AFTERNOON))

        assert not any(i.startswith("nutrition-calories") for i in ids)

    def test_custom_calorie_goal(self, store):
        store.set_goal("daily_calories", 1300)
        store.add(meal(TODAY, calories=1200, protein_g=100), water(TODAY, 2000))

        assert "nutrition-calories-near-goal" in _ids(generate_insights(store, USER_ID, as_of=AFTERNOON))


class TestProteinProgress:
    """Protein progress rule"""

    def test_strong_protein(self, store):
        store.add(meal(TODAY, calories=1000, protein_g=125), water(TODAY, 2000))
        insights = generate_insights(store, USER_ID, as_of=AFTERNOON)

        assert _ids(insights) == ["nutrition-protein-good"]
        assert insights[0].data["progress"] == 83

    def test_middle_band_emits_nothing(self, store):
        store.add(meal(TODAY, calories=1000, protein_g=100), water(TODAY, 2000))
        ids = _ids(generate_insights(store, USER_ID, as_of=AFTERNOON))

        assert "nutrition-protein-low" not in ids
        assert "nutrition-protein-good" not in ids


class TestMealTiming:
    """Meal timing rule"""

    def test_missed_lunch(self, store):
        ids = _ids(generate_insights(store, USER_ID, as_of=datetime(2026, 3, 10, 13, 0)))

        assert ids == ["nutrition-missed-lunch"]

    def test_dinner_time_with_one_meal(self, store):
        store.add(meal(TODAY, calories=600, protein_g=100), water(TODAY, 2000))
        insights = generate_insights(store, USER_ID, as_of=datetime(2026, 3, 10, 19, 30))

        dinner = next(i for i in insights if i.id == "nutrition-dinner-time")
        assert dinner.priority == "medium"
        assert dinner.message.startswith("You've had 1 meal today.")
        assert dinner.data == {"meals_today": 1}

    def test_no_dinner_nudge_after_two_meals(self, store):
        store.add(meal(TODAY, protein_g=60), meal(TODAY, protein_g=60), water(TODAY, 2000))
        ids = _ids(generate_insights(store, USER_ID, as_of=datetime(2026, 3, 10, 19, 30)))

        assert "nutrition-dinner-time" not in ids


class TestHydrationCrossCheck:
    """Hydration reminder"""

    def test_reminder_when_meals_but_little_water(self, store):
        store.add(meal(TODAY, calories=1000, protein_g=100), water(TODAY, 800))
        insights = generate_insights(store, USER_ID, as_of=AFTERNOON)

        assert _ids(insights) == ["nutrition-hydration-reminder"]
        assert insights[0].data == {"hydration_today": 800}

    def test_no_reminder_without_meals(self, store):
        store.add(water(TODAY, 100))
        assert "nutrition-hydration-reminder" not in _ids(generate_insights(store, USER_ID, as_of=AFTERNOON))

    def test_no_reminder_at_exactly_1500ml(self, store):
        store.add(meal(TODAY, calories=1000, protein_g=100), water(TODAY, 1000), water(TODAY, 500))
        assert "nutrition-hydration-reminder" not in _ids(generate_insights(store, USER_ID, as_of=AFTERNOON))

    def test_reminder_just_below_1500ml(self, store):
        store.add(meal(TODAY, calories=1000, protein_g=100), water(TODAY, 1499))
        assert _ids(generate_insights(store, USER_ID, as_of=AFTERNOON)) == ["nutrition-hydration-reminder"]

    def test_unavailable_hydration_counts_as_zero(self, store):
        store.add(meal(TODAY, calories=1000, protein_g=100))
        store.unavailable.add(LogKind.HYDRATION)

        insights = generate_insights(store, USER_ID, as_of=AFTERNOON)

        assert _ids(insights) == ["nutrition-hydration-reminder"]
        assert insights[0].data == {"hydration_today": 0}


class TestFallback:
    """General rules only run when nothing today-specific fired"""

    def test_start_day_when_no_meals(self, store):
        insights = generate_insights(store, USER_ID, as_of=MORNING)

        assert _ids(insights) == ["nutrition-start-day"]
        assert insights[0].priority == "high"

    def test_general_protein_from_history(self, store):
        _history(store, 5, calories=1000, protein_g=60)
        store.add(meal(TODAY, calories=1000, protein_g=100), water(TODAY, 2000))

        insights = generate_insights(store, USER_ID, as_of=AFTERNOON)

        assert _ids(insights) == ["nutrition-general-protein"]
        assert insights[0].data == {"average": 60, "goal": 150.0}

    def test_no_fallback_when_today_rule_fired(self, store):
        store.add(
            meal(TODAY, calories=500, protein_g=30, meal_type="breakfast"),
            meal(TODAY, calories=700, protein_g=40),
        )
        ids = _ids(generate_insights(store, USER_ID, as_of=AFTERNOON))

        assert ids == ["nutrition-protein-low", "nutrition-hydration-reminder"]
        assert "nutrition-start-day" not in ids
        assert "nutrition-general-protein" not in ids


class TestInsightOutput:
    """Output shape and ordering"""

    def test_created_at_is_as_of(self, store):
        insights = generate_insights(store, USER_ID, as_of=MORNING)
        assert all(i.created_at == MORNING for i in insights)

    def test_to_dict_omits_missing_data(self, store):
        data = generate_insights(store, USER_ID, as_of=MORNING)[0].to_dict()

        assert data["id"] == "nutrition-start-day"
        assert data["created_at"] == MORNING.isoformat()
        assert "data" not in data

    def test_duplicate_ids_dropped(self):
        out = _InsightList(created_at=MORNING)
        out.add("nutrition-start-day", "high", "a", "b", "c")
        out.add("nutrition-start-day", "high", "a", "b", "c")

        assert len(out) == 1


class TestTrailingAverages:
    """Test trailing_averages()"""

    def test_excludes_zero_meal_days(self):
        today = DailySnapshot(date=TODAY, calories=900, protein_g=50, meal_count=1)
        history = [
            DailySnapshot(date=TODAY - timedelta(days=1), calories=2000, protein_g=100, meal_count=3),
            DailySnapshot(date=TODAY - timedelta(days=2)),
            DailySnapshot(date=TODAY - timedelta(days=3), calories=1000, protein_g=80, meal_count=2),
        ]
        avg = trailing_averages(history, today)

        assert avg.calories == 1500
        assert avg.protein_g == 90
        assert avg.days == 2

    def test_falls_back_to_today(self):
        today = DailySnapshot(date=TODAY, calories=900, protein_g=50, meal_count=1)
        avg = trailing_averages([DailySnapshot(date=TODAY - timedelta(days=1))], today)

        assert (avg.calories, avg.protein_g, avg.days) == (900, 50, 0)

    def test_history_window_excludes_today(self, store):
        _history(store, 7, calories=2000, protein_g=130)
        # Eighth day back is outside the window and must not drag the average.
        store.add(meal(TODAY - timedelta(days=8), calories=100, protein_g=5))
        store.add(meal(TODAY, calories=2600, protein_g=130), water(TODAY, 2000))

        insights = generate_insights(store, USER_ID, as_of=AFTERNOON)
        above = next(i for i in insights if i.id == "nutrition-calories-above-average")

        assert above.data["average"] == 2000

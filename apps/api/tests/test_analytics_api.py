"""
API tests for the log/goal write path and the analytics endpoints.

Requests share the test's SQLite session; Redis is patched out unless the
test asks for the fake client.
"""
import pytest
from datetime import date, timedelta
from unittest.mock import patch

from core.cache import invalidate_snapshot_cache, snapshot_cache_key
from core.security import create_access_token
from fixtures.log_store_fixtures import USER_ID, coffee, meal, sleep
from routers.analytics import correlation_strength, habit_severity
from services.analytics_types import DateRange
from services.log_store import SqlLogStore
from services.nutrition_aggregator import aggregate_cached

TODAY = date.today()


def _seed(db_session, *entries):
    store = SqlLogStore(db_session)
    for entry in entries:
        store.add_entry(entry)


class TestHealthAndAuth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_missing_token_is_401(self, client):
        assert client.get("/v1/analytics/habits").status_code == 401

    def test_bad_token_is_401(self, client):
        response = client.get("/v1/goals", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_expired_token_is_401(self, client):
        token = create_access_token(USER_ID, expires_delta=timedelta(minutes=-5))
        response = client.get("/v1/goals", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_other_users_data_not_visible(self, client, auth_headers, db_session):
        _seed(db_session, meal(TODAY, calories=900, user_id="someone-else"))
        params = {"start": TODAY.isoformat(), "end": TODAY.isoformat()}

        body = client.get("/v1/analytics/snapshots", params=params, headers=auth_headers).json()
        assert body["snapshots"][0]["meal_count"] == 0


class TestLogEndpoints:

    def test_create_entry(self, client, auth_headers):
        response = client.post(
            "/v1/logs",
            json={
                "kind": "meal",
                "entry_date": TODAY.isoformat(),
                "entry_time": "12:30:00",
                "meal_type": "lunch",
                "calories": 650,
                "protein_g": 42,
            },
            headers=auth_headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["kind"] == "meal"
        assert body["calories"] == 650
        assert body["id"]

    def test_other_kinds_fields_dropped(self, client, auth_headers):
        body = client.post(
            "/v1/logs",
            json={"kind": "meal", "entry_date": TODAY.isoformat(), "calories": 400, "volume_ml": 500, "amount_mg": 95},
            headers=auth_headers,
        ).json()

        assert body["calories"] == 400
        assert body["volume_ml"] == 0
        assert body["amount_mg"] == 0

    def test_unknown_kind_rejected(self, client, auth_headers):
        response = client.post(
            "/v1/logs",
            json={"kind": "mood", "entry_date": TODAY.isoformat()},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_body_weight_requires_weight(self, client, auth_headers):
        response = client.post(
            "/v1/logs",
            json={"kind": "body_weight", "entry_date": TODAY.isoformat()},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_delete_entry(self, client, auth_headers):
        created = client.post(
            "/v1/logs",
            json={"kind": "hydration", "entry_date": TODAY.isoformat(), "volume_ml": 500},
            headers=auth_headers,
        ).json()

        assert client.delete(f"/v1/logs/{created['id']}", headers=auth_headers).status_code == 204
        assert client.delete(f"/v1/logs/{created['id']}", headers=auth_headers).status_code == 404

    def test_write_and_delete_invalidate_snapshot_cache(self, client, auth_headers, fake_redis):
        params = {"start": TODAY.isoformat(), "end": TODAY.isoformat()}
        key = snapshot_cache_key(USER_ID, TODAY)

        created = client.post(
            "/v1/logs",
            json={"kind": "meal", "entry_date": TODAY.isoformat(), "calories": 800},
            headers=auth_headers,
        ).json()
        first = client.get("/v1/analytics/snapshots", params=params, headers=auth_headers).json()
        assert first["snapshots"][0]["calories"] == 800
        assert key in fake_redis.store

        client.delete(f"/v1/logs/{created['id']}", headers=auth_headers)
        assert key not in fake_redis.store

        second = client.get("/v1/analytics/snapshots", params=params, headers=auth_headers).json()
        assert second["snapshots"][0]["calories"] == 0

    def test_writes_commit_before_invalidating(self, client, auth_headers, db_session, fake_redis):
        params = {"start": TODAY.isoformat(), "end": TODAY.isoformat()}
        created = client.post(
            "/v1/logs",
            json={"kind": "meal", "entry_date": TODAY.isoformat(), "calories": 900},
            headers=auth_headers,
        ).json()
        client.get("/v1/analytics/snapshots", params=params, headers=auth_headers)

        open_transaction = []

        def _racing_read_then_invalidate(user_id, day):
            # A dashboard read landing right before the cache is dropped.
            open_transaction.append(db_session.in_transaction())
            aggregate_cached(SqlLogStore(db_session), user_id, DateRange(day, day))
            return invalidate_snapshot_cache(user_id, day)

        with patch("routers.logs.invalidate_snapshot_cache", side_effect=_racing_read_then_invalidate):
            assert client.delete(f"/v1/logs/{created['id']}", headers=auth_headers).status_code == 204

        assert open_transaction == [False]
        body = client.get("/v1/analytics/snapshots", params=params, headers=auth_headers).json()
        assert body["snapshots"][0]["meal_count"] == 0


class TestGoalEndpoints:

    def test_defaults(self, client, auth_headers):
        goals = client.get("/v1/goals", headers=auth_headers).json()["goals"]
        assert goals == {
            "daily_calories": 2200.0,
            "protein_target": 150.0,
            "carb_target": 250.0,
            "fat_target": 70.0,
        }

    def test_upsert(self, client, auth_headers):
        response = client.put("/v1/goals/protein_target", json={"target_value": 180}, headers=auth_headers)
        assert response.status_code == 200

        goals = client.get("/v1/goals", headers=auth_headers).json()["goals"]
        assert goals["protein_target"] == 180

    def test_unknown_goal_type(self, client, auth_headers):
        response = client.put("/v1/goals/sodium_limit", json={"target_value": 2300}, headers=auth_headers)
        assert response.status_code == 422

    def test_non_positive_target(self, client, auth_headers):
        response = client.put("/v1/goals/fat_target", json={"target_value": 0}, headers=auth_headers)
        assert response.status_code == 422


class TestAnalyticsEndpoints:

    def test_snapshots_cover_range(self, client, auth_headers, db_session):
        _seed(db_session, meal(TODAY, calories=500, user_id=USER_ID))
        params = {"start": (TODAY - timedelta(days=2)).isoformat(), "end": TODAY.isoformat()}

        body = client.get("/v1/analytics/snapshots", params=params, headers=auth_headers).json()

        assert [s["date"] for s in body["snapshots"]] == [
            (TODAY - timedelta(days=2)).isoformat(),
            (TODAY - timedelta(days=1)).isoformat(),
            TODAY.isoformat(),
        ]
        assert body["snapshots"][-1]["meal_count"] == 1

    def test_snapshot_range_limit(self, client, auth_headers):
        params = {"start": (TODAY - timedelta(days=400)).isoformat(), "end": TODAY.isoformat()}
        assert client.get("/v1/analytics/snapshots", params=params, headers=auth_headers).status_code == 422

    def test_insights(self, client, auth_headers):
        as_of = f"{TODAY.isoformat()}T09:00:00"
        body = client.get("/v1/analytics/insights", params={"as_of": as_of}, headers=auth_headers).json()

        assert body["count"] == 1
        assert body["insights"][0]["id"] == "nutrition-start-day"

    def test_habits_carry_severity(self, client, auth_headers, db_session):
        _seed(db_session, *[coffee(TODAY - timedelta(days=i), 500) for i in range(3)])

        body = client.get("/v1/analytics/habits", params={"days": 7}, headers=auth_headers).json()
        patterns = {p["pattern_type"]: p for p in body["patterns"]}

        assert patterns["high_caffeine"]["frequency_score"] == 100
        assert patterns["high_caffeine"]["severity"] == "high"
        assert patterns["late_night_eating"]["severity"] == "negligible"

    def test_correlation_with_strength(self, client, auth_headers, db_session):
        for i, hours in enumerate([6, 7, 8, 5, 9]):
            day = TODAY - timedelta(days=i)
            _seed(db_session, sleep(day, hours), meal(day, calories=hours * 300))

        response = client.get(
            "/v1/analytics/correlations",
            params={"metric_a": "sleep_duration", "metric_b": "daily_calories", "days": 7},
            headers=auth_headers,
        )
        body = response.json()

        assert response.status_code == 200
        assert body["status"] == "ok"
        assert body["correlation_coefficient"] == pytest.approx(1.0)
        assert body["strength"] == "very strong"
        assert body["direction"] == "positive"
        assert body["sample_size"] == 5

    def test_correlation_insufficient_data(self, client, auth_headers):
        response = client.get(
            "/v1/analytics/correlations",
            params={"metric_a": "sleep_duration", "metric_b": "daily_calories"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "insufficient_data"
        assert response.json()["sample_size"] == 0

    def test_correlation_unknown_metric(self, client, auth_headers):
        response = client.get(
            "/v1/analytics/correlations",
            params={"metric_a": "sleep_duration", "metric_b": "mood"},
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_discover(self, client, auth_headers, db_session):
        for i, hours in enumerate([6, 7, 8, 5, 9]):
            day = TODAY - timedelta(days=i)
            _seed(db_session, sleep(day, hours), meal(day, calories=hours * 300))

        body = client.get("/v1/analytics/correlations/discover", headers=auth_headers).json()

        assert body["count"] == len(body["correlations"])
        first = body["correlations"][0]
        assert (first["primary_metric"], first["secondary_metric"]) == ("sleep_duration", "daily_calories")
        assert first["strength"] == "very strong"

    def test_weekly_summary(self, client, auth_headers, db_session):
        _seed(db_session, meal(TODAY, calories=1800), meal(TODAY - timedelta(days=1), calories=2000))

        body = client.get("/v1/analytics/weekly-summary", headers=auth_headers).json()

        assert body["days_logged"] == 2
        assert body["streaks"]["meal_logging"] == 2
        assert body["end_date"] == TODAY.isoformat()


class TestPresentationBands:

    @pytest.mark.parametrize("score,expected", [
        (100, "high"), (80, "high"), (79, "medium"), (60, "medium"),
        (59, "low"), (40, "low"), (39, "negligible"), (0, "negligible"),
    ])
    def test_habit_severity(self, score, expected):
        assert habit_severity(score) == expected

    @pytest.mark.parametrize("r,expected", [
        (0.0, "very weak"), (0.19, "very weak"), (-0.2, "weak"), (0.39, "weak"),
        (0.4, "moderate"), (-0.6, "strong"), (0.79, "strong"), (0.8, "very strong"), (-1.0, "very strong"),
    ])
    def test_correlation_strength(self, r, expected):
        assert correlation_strength(r) == expected

"""Tests for the batch runner, rate limiter, quota budget and YouTube catalog adapter."""

from datetime import date

import pytest
import requests

from backend.src.curator.services.catalog.errors import (
    CatalogError,
    QuotaExhaustedError,
    create_error_response,
)
from backend.src.curator.services.catalog.youtube import YouTubeCatalog
from backend.src.curator.services.quota_manager import QuotaBudget
from backend.src.curator.services.task_runner import (
    BatchRunner,
    HaltBatch,
    RateLimiter,
)


class TestBatchRunner:
    def test_folds_outcomes(self):
        def handler(item):
            if item == "boom":
                raise ValueError("bad item")
            return item

        result = BatchRunner().run([None, "ok", "duplicate", "boom"], handler, label="t")

        assert result.processed == 4
        assert result.succeeded == 2
        assert result.skipped == {"duplicate": 1}
        assert result.failed == 1
        assert result.errors == ["boom: bad item"]
        assert result.halted is False

    def test_halt_stops_remaining_items(self):
        seen = []

        def handler(item):
            seen.append(item)
            if item == 2:
                raise HaltBatch("quota")

        result = BatchRunner().run([1, 2, 3], handler)

        assert seen == [1, 2]
        assert result.halted is True
        assert result.halt_reason == "quota"
        assert result.processed == 1

    def test_quota_error_is_a_halt(self):
        def handler(item):
            raise QuotaExhaustedError()

        result = BatchRunner().run(["a", "b"], handler)

        assert result.halted is True
        assert result.failed == 0

    def test_delay_between_items_not_before_first(self):
        sleeps = []

        BatchRunner(delay_seconds=0.5, sleep=sleeps.append).run(
            [1, 2, 3], lambda item: None
        )

        assert sleeps == [0.5, 0.5]

    def test_limiter_acquired_per_item(self):
        acquired = []

        class CountingLimiter:
            def acquire(self):
                acquired.append(1)

        BatchRunner(limiter=CountingLimiter()).run([1, 2, 3], lambda item: None)

        assert len(acquired) == 3

    def test_to_dict(self):
        result = BatchRunner().run(["x"], lambda item: "skip", label="lbl")

        assert result.to_dict() == {
            "label": "lbl",
            "processed": 1,
            "succeeded": 0,
            "failed": 0,
            "skipped": {"skip": 1},
            "errors": [],
            "halted": False,
            "halt_reason": None,
        }


class TestRateLimiter:
    def test_waits_for_token(self):
        now = [0.0]
        sleeps = []

        def sleep(seconds):
            sleeps.append(seconds)
            now[0] += seconds

        limiter = RateLimiter(rate=2, capacity=1, clock=lambda: now[0], sleep=sleep)
        limiter.acquire()
        limiter.acquire()

        assert sleeps == [pytest.approx(0.5)]

    def test_burst_up_to_capacity(self):
        sleeps = []
        limiter = RateLimiter(rate=1, capacity=3, clock=lambda: 0.0, sleep=sleeps.append)

        for _ in range(3):
            limiter.acquire()

        assert sleeps == []

    def test_rate_must_be_positive(self):
        with pytest.raises(ValueError):
            RateLimiter(rate=0)


class TestQuotaBudget:
    def test_charges_known_costs(self):
        budget = QuotaBudget(daily_limit=1000)

        budget.charge("search")
        budget.charge("videos_list")

        assert budget.units_used == 101
        assert budget.remaining() == 899
        assert budget.status()["calls"] == {"search": 1, "videos_list": 1}

    def test_exhaustion_raises(self):
        budget = QuotaBudget(daily_limit=250)
        budget.charge("search")
        budget.charge("search")

        with pytest.raises(QuotaExhaustedError):
            budget.charge("search")

        assert budget.exhausted is True
        assert budget.units_used == 200
        assert budget.can_afford("videos_list") is False

    def test_resets_on_new_day(self):
        day = [date(2026, 1, 1)]
        budget = QuotaBudget(daily_limit=100, today=lambda: day[0])
        budget.charge("search")
        assert budget.can_afford("search") is False

        day[0] = date(2026, 1, 2)

        assert budget.can_afford("search") is True
        assert budget.remaining() == 100

    def test_mark_exhausted(self):
        budget = QuotaBudget(daily_limit=10000)

        budget.mark_exhausted()

        assert budget.remaining() == 0
        assert budget.status()["exhausted"] is True


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class TestYouTubeCatalog:
    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            YouTubeCatalog("")

    def test_search_parses_items(self):
        session = FakeSession(
            FakeResponse(
                payload={
                    "items": [
                        {
                            "id": {"videoId": "abc"},
                            "snippet": {
                                "title": "Knee Cut Pass",
                                "channelTitle": "Lachlan Giles",
                                "publishedAt": "2024-03-01T10:00:00Z",
                            },
                        },
                        {"id": {}, "snippet": {"title": "Channel result"}},
                    ]
                }
            )
        )
        budget = QuotaBudget(daily_limit=1000)
        catalog = YouTubeCatalog("key", budget=budget, session=session)

        items = catalog.search("knee cut", 100)

        assert [i.external_id for i in items] == ["abc"]
        assert items[0].channel_name == "Lachlan Giles"
        assert items[0].published_at.year == 2024
        assert session.calls[0][1]["maxResults"] == 50
        assert budget.units_used == 100

    def test_get_duration(self):
        session = FakeSession(
            FakeResponse(payload={"items": [{"contentDetails": {"duration": "PT4M13S"}}]})
        )

        assert YouTubeCatalog("key", session=session).get_duration("abc") == 253

    def test_unknown_video(self):
        session = FakeSession(FakeResponse(payload={"items": []}))

        with pytest.raises(CatalogError) as exc:
            YouTubeCatalog("key", session=session).get_duration("nope")

        assert exc.value.error_code == "not_found"

    def test_quota_403_marks_budget_exhausted(self):
        session = FakeSession(
            FakeResponse(
                403, {"error": {"errors": [{"reason": "quotaExceeded"}]}}
            )
        )
        budget = QuotaBudget(daily_limit=10000)

        with pytest.raises(QuotaExhaustedError):
            YouTubeCatalog("key", budget=budget, session=session).search("q")

        assert budget.exhausted is True

    def test_other_http_error_is_catalog_error(self):
        session = FakeSession(
            FakeResponse(403, {"error": {"errors": [{"reason": "forbidden"}]}})
        )

        with pytest.raises(CatalogError) as exc:
            YouTubeCatalog("key", session=session).search("q")

        assert not isinstance(exc.value, QuotaExhaustedError)
        assert exc.value.error_code == "api_error"

    def test_rate_limit_403_is_not_quota(self):
        session = FakeSession(
            FakeResponse(403, {"error": {"errors": [{"reason": "rateLimitExceeded"}]}})
        )
        budget = QuotaBudget(daily_limit=10000)

        with pytest.raises(CatalogError) as exc:
            YouTubeCatalog("key", budget=budget, session=session).search("q")

        assert not isinstance(exc.value, QuotaExhaustedError)
        assert budget.exhausted is False
        assert budget.remaining() == 9900

    def test_limiter_acquired_per_request(self):
        acquired = []

        class CountingLimiter:
            def acquire(self):
                acquired.append(1)

        session = FakeSession(
            FakeResponse(payload={"items": []}),
            FakeResponse(payload={"items": [{"contentDetails": {"duration": "PT2M"}}]}),
        )
        catalog = YouTubeCatalog("key", session=session, limiter=CountingLimiter())

        catalog.search("q")
        catalog.get_duration("abc")

        assert len(acquired) == 2

    def test_network_error(self):
        session = FakeSession(requests.ConnectionError("reset"))

        with pytest.raises(CatalogError) as exc:
            YouTubeCatalog("key", session=session).get_duration("abc")

        assert exc.value.error_code == "network_error"

    def test_exhausted_budget_blocks_request(self):
        session = FakeSession()
        budget = QuotaBudget(daily_limit=50)

        with pytest.raises(QuotaExhaustedError):
            YouTubeCatalog("key", budget=budget, session=session).search("q")

        assert session.calls == []


class TestErrorHelpers:
    def test_error_response_envelope(self):
        response = create_error_response(QuotaExhaustedError())

        assert response == {
            "error": {
                "code": "quota_exhausted",
                "message": "Catalog quota exhausted",
                "type": "QuotaExhaustedError",
            },
            "status": "error",
        }

    def test_unexpected_error_hidden(self):
        response = create_error_response(RuntimeError("secret"))

        assert response["error"]["code"] == "internal_error"
        assert "secret" not in response["error"]["message"]

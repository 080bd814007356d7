"""Tests for the targeted acquisition pipeline."""

import pytest
from sqlalchemy import func

from conftest import FakeCatalog, catalog_items, network_error

from backend.src.curator.database.models.video import Video, VideoTechniqueTag
from backend.src.curator.ml.content_analysis.tag_generation import TaxonomyTagger
from backend.src.curator.services.acquisition import (
    AcquisitionPipeline,
    get_search_queries,
    queries_for_instructors,
    SEARCH_QUERIES,
)
from backend.src.curator.services.catalog.base import CatalogItem
from backend.src.curator.services.catalog.errors import QuotaExhaustedError


@pytest.fixture
def catalog():
    return FakeCatalog()


@pytest.fixture
def pipeline(catalog, seeded_store, runner):
    return AcquisitionPipeline(
        catalog,
        TaxonomyTagger(seeded_store),
        runner=runner,
        max_results=25,
        min_duration_seconds=70,
        default_score=75.0,
    )


def video_count(db):
    return db.query(func.count(Video.id)).scalar()


class TestAcquisitionRun:
    def test_counts_added_duplicates_and_too_short(self, db, catalog, pipeline, make_video):
        ids = [f"v{i}" for i in range(10)]
        catalog.results["test query"] = catalog_items(*ids)
        for existing in ids[:3]:
            make_video(existing)
        catalog.durations.update({"v3": 30, "v4": 69})

        result = pipeline.run(db, ["test query"])

        assert result.queries_executed == 1
        assert result.items_found == 10
        assert result.items_added == 5
        assert result.duplicates == 3
        assert result.too_short == 2
        assert result.errors == 0
        assert result.quota_exhausted is False
        assert result.added_external_ids == ["v5", "v6", "v7", "v8", "v9"]
        assert video_count(db) == 8

    def test_duration_not_fetched_for_duplicates(self, db, catalog, pipeline, make_video):
        catalog.results["q"] = catalog_items("dup", "new")
        make_video("dup")

        pipeline.run(db, ["q"])

        assert catalog.duration_calls == ["new"]

    def test_inserted_videos_have_defaults_and_tags(self, db, catalog, pipeline):
        catalog.results["q"] = [
            CatalogItem(
                external_id="abc",
                title="Deep Half Guard Sweep Tutorial",
                channel_name="Bernardo Faria",
            )
        ]
        catalog.durations["abc"] = 480

        result = pipeline.run(db, ["q"])

        video = db.query(Video).filter(Video.external_id == "abc").one()
        assert video.acceptance_score == 75.0
        assert video.status == "active"
        assert video.duration_seconds == 480
        assert video.channel_name == "Bernardo Faria"
        assert video.url == "https://www.youtube.com/watch?v=abc"
        assert result.tagged == 1
        assert (
            db.query(VideoTechniqueTag)
            .filter(VideoTechniqueTag.video_id == video.id)
            .count()
            == 2
        )

    def test_rerun_never_inserts_duplicates(self, db, catalog, pipeline):
        catalog.results["q"] = catalog_items("a", "b", "c", "short")
        catalog.durations["short"] = 10

        first = pipeline.run(db, ["q", "q"])
        second = pipeline.run(db, ["q"])

        assert first.items_added == 3
        assert first.queries_executed == 1  # repeated query collapsed
        assert second.items_added == 0
        assert second.duplicates == 3
        assert second.too_short == 1
        duplicated = (
            db.query(Video.external_id)
            .group_by(Video.external_id)
            .having(func.count(Video.id) > 1)
            .all()
        )
        assert duplicated == []
        assert video_count(db) == 3

    def test_same_item_in_two_queries_counted_once(self, db, catalog, pipeline):
        catalog.results["q1"] = catalog_items("shared", "x1")
        catalog.results["q2"] = catalog_items("shared", "x2")

        result = pipeline.run(db, ["q1", "q2"])

        assert result.items_added == 3
        assert result.duplicates == 1
        assert video_count(db) == 3

    def test_repeat_candidates_keep_their_real_outcome(self, db, catalog, pipeline):
        catalog.results["q1"] = catalog_items("short", "flaky")
        catalog.results["q2"] = catalog_items("short", "flaky")
        catalog.durations["short"] = 10
        catalog.duration_errors["flaky"] = [network_error()]

        result = pipeline.run(db, ["q1", "q2"])

        assert result.too_short == 2
        assert result.errors == 1
        assert result.duplicates == 0
        assert result.items_added == 1
        assert catalog.duration_calls == ["short", "flaky", "flaky"]
        assert {v.external_id for v in db.query(Video)} == {"flaky"}

    def test_delay_between_queries_only(self, db, catalog, pipeline, sleeps):
        for q in ("q1", "q2", "q3"):
            catalog.results[q] = catalog_items(f"{q}-a", f"{q}-b")

        pipeline.run(db, ["q1", "q2", "q3"])

        assert sleeps == [0.3, 0.3]

    def test_invalid_candidates_skipped(self, db, catalog, pipeline):
        catalog.results["q"] = [
            CatalogItem(external_id="", title="No id"),
            CatalogItem(external_id="no-title", title="  "),
            {"external_id": "raw", "title": "Not a CatalogItem"},
            CatalogItem(external_id="good", title="Armbar details"),
        ]

        result = pipeline.run(db, ["q"])

        assert result.invalid == 3
        assert result.items_added == 1

    def test_item_error_does_not_stop_run(self, db, catalog, pipeline):
        catalog.results["q1"] = catalog_items("ok1", "flaky", "ok2")
        catalog.results["q2"] = catalog_items("ok3")
        catalog.duration_errors["flaky"] = network_error()

        result = pipeline.run(db, ["q1", "q2"])

        assert result.errors == 1
        assert result.items_added == 3
        assert result.quota_exhausted is False
        assert "flaky" not in {v.external_id for v in db.query(Video)}

    def test_search_error_does_not_stop_run(self, db, catalog, pipeline):
        catalog.search_errors["bad"] = network_error("connection reset")
        catalog.results["good"] = catalog_items("g1")

        result = pipeline.run(db, ["bad", "good"])

        assert result.errors == 1
        assert result.queries_executed == 1
        assert result.items_added == 1

    def test_quota_on_search_halts_remaining_queries(self, db, catalog, pipeline):
        catalog.results["q1"] = catalog_items("a1")
        catalog.search_errors["q2"] = QuotaExhaustedError()
        catalog.results["q3"] = catalog_items("a3")

        result = pipeline.run(db, ["q1", "q2", "q3"])

        assert result.quota_exhausted is True
        assert result.halted_query == "q2"
        assert result.queries_executed == 1
        assert result.items_added == 1
        assert result.errors == 0
        assert catalog.searches == ["q1", "q2"]

    def test_quota_on_duration_halts_run(self, db, catalog, pipeline):
        catalog.results["q1"] = catalog_items("b1", "b2", "b3")
        catalog.results["q2"] = catalog_items("c1")
        catalog.duration_errors["b2"] = QuotaExhaustedError()

        result = pipeline.run(db, ["q1", "q2"])

        assert result.quota_exhausted is True
        assert result.halted_query == "q1"
        assert result.items_added == 1
        assert catalog.searches == ["q1"]
        assert "b3" not in catalog.duration_calls

    def test_blank_queries_ignored(self, db, catalog, pipeline):
        result = pipeline.run(db, ["", "   "])

        assert result.queries_executed == 0
        assert catalog.searches == []

    def test_to_dict(self, db, catalog, pipeline):
        catalog.results["q"] = catalog_items("z1")

        summary = pipeline.run(db, ["q"]).to_dict()

        assert summary["items_added"] == 1
        assert summary["quota_exhausted"] is False
        assert set(summary) >= {"duplicates", "too_short", "errors", "halted_query"}


class TestQueries:
    def test_known_category(self):
        assert get_search_queries("Escapes") == SEARCH_QUERIES["escapes"]

    def test_unknown_category_returns_all(self):
        queries = get_search_queries("nonsense")

        assert len(queries) == sum(len(v) for v in SEARCH_QUERIES.values())

    def test_instructor_queries(self):
        assert queries_for_instructors(["Lachlan Giles", " "]) == [
            "Lachlan Giles jiu jitsu technique",
            "Lachlan Giles BJJ instructional",
            "Lachlan Giles tutorial",
        ]

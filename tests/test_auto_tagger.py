"""Tests for the taxonomy auto-tagger."""

import pytest

from backend.src.curator.database.models.video import (
    VIDEO_STATUS_INACTIVE,
    VideoTechniqueTag,
)
from backend.src.curator.ml.content_analysis.tag_generation import (
    PROVENANCE_FALLBACK,
    PROVENANCE_NAME,
    PROVENANCE_POSITION,
    PROVENANCE_TYPE_MAP,
    TaxonomyTagger,
    summarize_assignments,
)
from backend.src.curator.services.taxonomy_store import (
    TaxonomyNodeRecord,
    TaxonomySnapshot,
)


def tag_rows(db, video_id):
    return {
        (row.taxonomy_id, row.relevance)
        for row in db.query(VideoTechniqueTag).filter(
            VideoTechniqueTag.video_id == video_id
        )
    }


@pytest.fixture
def tagger(seeded_store):
    return TaxonomyTagger(seeded_store, match_threshold=0.6, max_name_matches=3)


@pytest.fixture
def snapshot(db, seeded_store):
    return seeded_store.snapshot(db)


class TestClassify:
    def test_deep_half_guard_title_tags_position_and_ancestor(self, tagger, snapshot):
        assignments = tagger.classify(snapshot, title="Deep Half Guard Sweep Tutorial")

        assert [(a.slug, a.relevance, a.provenance) for a in assignments] == [
            ("half-guard", "primary", PROVENANCE_POSITION),
            ("guard-play", "secondary", PROVENANCE_POSITION),
        ]

    def test_name_match_adds_level3_node(self, tagger, snapshot):
        assignments = tagger.classify(
            snapshot,
            title="Deep Half Guard Sweep",
            technique_name="Deep Half Guard Sweep",
        )

        by_slug = {a.slug: a for a in assignments}
        assert list(by_slug) == ["half-guard", "guard-play", "deep-half-guard-sweep"]
        assert by_slug["deep-half-guard-sweep"].provenance == PROVENANCE_NAME
        assert by_slug["deep-half-guard-sweep"].score == 1.0
        assert by_slug["deep-half-guard-sweep"].relevance == "primary"

    def test_name_match_pulls_in_parent_and_level1(self, tagger, snapshot):
        assignments = tagger.classify(snapshot, technique_name="Upa Escape")

        assert [a.slug for a in assignments] == [
            "upa-escape",
            "mount-escapes",
            "escapes",
        ]

    def test_level2_fallback_when_no_level3_clears_threshold(self, tagger, snapshot):
        assignments = tagger.classify(snapshot, technique_name="heel hooks")

        assert [(a.slug, a.provenance) for a in assignments] == [
            ("heel-hooks", PROVENANCE_NAME),
            ("leg-locks", PROVENANCE_NAME),
        ]

    def test_type_map_only_adds_level1_nodes(self, tagger, snapshot):
        assignments = tagger.classify(
            snapshot, title="Grip drill", technique_type="Sweep / Submission"
        )

        assert [(a.slug, a.relevance, a.provenance) for a in assignments] == [
            ("sweeps", "secondary", PROVENANCE_TYPE_MAP),
            ("submissions", "secondary", PROVENANCE_TYPE_MAP),
        ]

    def test_type_map_skips_slugs_missing_from_taxonomy(self, tagger, snapshot):
        assignments = tagger.classify(snapshot, title="Pin", technique_type="control")

        # top-control is not in the sample taxonomy
        assert [a.provenance for a in assignments] == [PROVENANCE_FALLBACK]

    def test_fallback_single_primary_node(self, tagger, snapshot):
        assignments = tagger.classify(snapshot, title="Conditioning workout")

        assert len(assignments) == 1
        assert assignments[0].slug == "fundamentals"
        assert assignments[0].relevance == "primary"
        assert assignments[0].provenance == PROVENANCE_FALLBACK

    def test_fallback_without_fundamentals_uses_first_level1(self, tagger):
        snapshot = TaxonomySnapshot(
            [
                TaxonomyNodeRecord(5, "Half Guard", "half-guard", 2, 9),
                TaxonomyNodeRecord(9, "Guard Play", "guard-play", 1, None),
            ]
        )

        assignments = tagger.classify(snapshot, title="Conditioning workout")

        assert [a.slug for a in assignments] == ["guard-play"]

    def test_zero_name_matches_is_honored(self, seeded_store, snapshot):
        tagger = TaxonomyTagger(seeded_store, max_name_matches=0)

        assignments = tagger.classify(snapshot, technique_name="Upa Escape")

        assert [a.provenance for a in assignments] == [PROVENANCE_FALLBACK]

    def test_position_slug_resolved_by_containment(self, tagger, snapshot):
        # "mount" has no exact node; the level-2 "mount-escapes" contains it
        assignments = tagger.classify(snapshot, title="Surviving mount")

        assert [a.slug for a in assignments][:2] == ["mount-escapes", "escapes"]

    def test_empty_taxonomy_returns_nothing(self, tagger):
        assert tagger.classify(TaxonomySnapshot([]), title="Anything") == []

    def test_summarize_groups_by_provenance(self, tagger, snapshot):
        assignments = tagger.classify(
            snapshot,
            title="Half guard",
            technique_type="submission",
        )

        assert summarize_assignments(assignments) == {
            PROVENANCE_POSITION: ["half-guard", "guard-play"],
            PROVENANCE_TYPE_MAP: ["submissions"],
        }


class TestTagVideo:
    def test_every_video_gets_at_least_one_tag(self, db, tagger, make_video):
        videos = [
            make_video("a1", title="Deep Half Guard Sweep Tutorial"),
            make_video("a2", title="Conditioning workout"),
            make_video("a3", title="", technique_name="Armbar From Guard"),
        ]

        for video in videos:
            result = tagger.tag_video(db, video.id)
            assert result.success
            assert tag_rows(db, video.id)

    def test_retagging_is_idempotent(self, db, tagger, make_video):
        video = make_video(
            "b1",
            title="Deep Half Guard Sweep",
            technique_name="Deep Half Guard Sweep",
            technique_type="sweep",
        )

        first = tagger.tag_video(db, video.id)
        rows_after_first = tag_rows(db, video.id)
        second = tagger.tag_video(db, video.id)

        assert first.tags_added == 4
        assert second.success
        assert second.tags_added == 0
        assert tag_rows(db, video.id) == rows_after_first

    def test_existing_relevance_not_overwritten(self, db, tagger, make_video, tag_video_with):
        video = make_video("c1", title="Deep Half Guard Sweep Tutorial")
        tag_video_with(video, "guard-play", relevance="primary")

        result = tagger.tag_video(db, video.id)

        assert result.tags_added == 1
        relevance = {
            row.taxonomy_node.slug: row.relevance
            for row in db.query(VideoTechniqueTag).filter(
                VideoTechniqueTag.video_id == video.id
            )
        }
        assert relevance == {"guard-play": "primary", "half-guard": "primary"}

    def test_unknown_video_reported_not_raised(self, db, tagger):
        result = tagger.tag_video(db, 9999)

        assert not result.success
        assert result.error == "video not found"

    def test_empty_taxonomy_reported(self, db, store, make_video):
        video = make_video("d1", title="Half guard")

        result = TaxonomyTagger(store).tag_video(db, video.id)

        assert not result.success
        assert result.error == "empty taxonomy"


class TestBackfill:
    def test_tags_untagged_active_videos_in_id_order(
        self, db, tagger, make_video, tag_video_with
    ):
        tagged = make_video("e1", title="Half guard")
        tag_video_with(tagged, "half-guard")
        make_video("e2", title="Closed guard armbar")
        make_video("e3", title="Upa escape")
        make_video("e4", title="Old video", status=VIDEO_STATUS_INACTIVE)

        result = tagger.backfill_untagged(db)

        assert result.total_untagged == 2
        assert result.processed == 2
        assert result.errors == 0
        assert result.tags_added > 0

    def test_failure_on_one_video_does_not_stop_backfill(
        self, db, tagger, make_video, monkeypatch
    ):
        ok_before = make_video("f1", title="Half guard")
        broken = make_video("f2", title="boom")
        ok_after = make_video("f3", title="Closed guard")

        classify = tagger.classify

        def flaky_classify(snapshot, title=None, **kwargs):
            if title == "boom":
                raise RuntimeError("classifier exploded")
            return classify(snapshot, title=title, **kwargs)

        monkeypatch.setattr(tagger, "classify", flaky_classify)

        result = tagger.backfill_untagged(db)

        assert result.processed == 3
        assert result.errors == 1
        assert tag_rows(db, ok_before.id)
        assert tag_rows(db, ok_after.id)
        assert not tag_rows(db, broken.id)

    def test_limit(self, db, tagger, make_video):
        for i in range(5):
            make_video(f"g{i}", title="Half guard")

        result = tagger.backfill_untagged(db, limit=2)

        assert result.total_untagged == 2
        assert tagger.backfill_untagged(db).total_untagged == 3

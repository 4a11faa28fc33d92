# tests/unit/services/test_review_service.py
"""Tests for services/review_service.py: eligibility, bias, scoring, selection."""

from __future__ import annotations

import pytest

from backend.app.config import ReviewsConfig
from backend.app.services.review_service import ReviewService, TopicContext
from backend.app.upstream.schemas import ReviewRecord
from tests.helpers import json_response

NOW = 1_700_000_000
DAY = 86400
LONG_PRAISE = "Wonderful service from start to finish, friendly staff and great value. " * 8


def review(author, rating, text, days_ago=30, language="en"):
    return ReviewRecord(
        author_name=author,
        rating=rating,
        text=text,
        time=NOW - days_ago * DAY,
        language=language,
    )


@pytest.fixture
def config():
    return ReviewsConfig(
        locale_keywords={
            "en": ["transfer", "whistler", "shuttle"],
            "zh": ["接送", "司机", "准时"],
        }
    )


@pytest.fixture
def engine(config):
    return ReviewService(config=config, now=lambda: NOW)


class TestEligibility:
    def test_low_rating_never_appears(self, engine):
        reviews = [
            review("low", 3, "whistler transfer shuttle, all three keywords"),
            review("ok", 5, "nice day out"),
        ]
        ranked = engine.rank(reviews, TopicContext(keywords=["whistler", "transfer"]))
        assert [r.author_name for r in ranked] == ["ok"]

    def test_empty_text_excluded(self, engine):
        ranked = engine.rank([review("blank", 5, "   ")], TopicContext(keywords=[]))
        assert ranked == []

    def test_non_empty_pool_never_returns_empty(self, engine):
        ranked = engine.rank([review("a", 4, "fine")], TopicContext(keywords=["whistler"]))
        assert len(ranked) == 1


class TestScoring:
    def test_keyword_beats_equal_rating_and_length(self, engine):
        hit = review("hit", 5, "trip to whistler", days_ago=10)
        miss = review("miss", 5, "trip to calgary!", days_ago=10)
        assert len(hit.text) == len(miss.text)
        assert engine.score(hit, 1) > engine.score(miss, 0)
        ranked = engine.rank([miss, hit], TopicContext(keywords=["whistler"]))
        assert ranked[0].author_name == "hit"

    def test_single_hit_outweighs_best_non_topical_review(self, engine):
        weakest_hit = review("hit", 4, "x", days_ago=10_000)
        strongest_miss = review("miss", 5, LONG_PRAISE, days_ago=0)
        assert engine.score(weakest_hit, 1) > engine.score(strongest_miss, 0)

    def test_too_small_hit_weight_is_raised(self):
        engine = ReviewService(config=ReviewsConfig(hit_weight=1), now=lambda: NOW)
        assert engine.hit_weight > 20 + 40 + 1

    def test_matching_is_case_and_whitespace_insensitive(self, engine):
        ranked = engine.rank(
            [review("plain", 5, "great trip"), review("hit", 4, "Our  PRIVATE\nTransfer was great")],
            TopicContext(keywords=["private transfer"]),
        )
        assert [r.author_name for r in ranked] == ["hit"]

    def test_recency_breaks_otherwise_equal_reviews(self, engine):
        older = review("older", 5, "lovely", days_ago=200)
        newer = review("newer", 5, "lovely", days_ago=5)
        ranked = engine.rank([older, newer], TopicContext())
        assert [r.author_name for r in ranked] == ["newer", "older"]


class TestLanguageBias:
    def test_matched_zh_review_first(self, engine, config):
        context = TopicContext.for_locale("zh", config=config)
        reviews = [
            review("en", 5, "Great tour, lovely guide", language="en"),
            review("zh", 5, "司机很准时", language="zh-Hant"),
        ]
        assert engine.rank(reviews, context)[0].author_name == "zh"

    def test_unmatched_zh_review_kept_over_english_pool(self, engine, config):
        context = TopicContext.for_locale("zh", config=config)
        reviews = [
            review("en", 5, "Best whistler transfer ever", language="en"),
            review("zh", 4, "非常好的旅行", language=""),
        ]
        ranked = engine.rank(reviews, context)
        assert [r.author_name for r in ranked] == ["zh"]

    def test_no_target_language_reviews_falls_back(self, engine):
        ranked = engine.rank(
            [review("en", 5, "fine trip")], TopicContext(keywords=[], language="ko")
        )
        assert [r.author_name for r in ranked] == ["en"]


class TestSelection:
    def test_whistler_transfers_end_to_end(self, engine):
        reviews = [
            review("generic-1", 5, LONG_PRAISE, days_ago=1),
            review("w4", 4, "Smooth ride up to Whistler", days_ago=300),
            review("generic-2", 5, LONG_PRAISE + " Again!", days_ago=2),
            review("w5", 5, "Our whistler trip was perfect", days_ago=100),
            review("generic-3", 5, "Five stars, highly recommended, " * 10, days_ago=3),
        ]
        context = TopicContext(keywords=["transfer", "whistler", "shuttle"])
        top = engine.rank(reviews, context, count=2)
        assert [r.author_name for r in top] == ["w5", "w4"]

    def test_duplicates_removed(self, engine):
        same = review("dup", 5, "whistler shuttle")
        ranked = engine.rank([same, same.model_copy()], TopicContext(keywords=["whistler"]))
        assert len(ranked) == 1

    def test_count_truncates(self, engine):
        reviews = [review(f"r{i}", 5, "good", days_ago=i) for i in range(5)]
        assert len(engine.rank(reviews, TopicContext(), count=3)) == 3
        assert len(engine.rank(reviews, TopicContext(), count=None)) == 5
        assert engine.rank(reviews, TopicContext(), count=0) == []

    def test_raw_and_malformed_input_never_throws(self, engine):
        reviews = [None, "junk", {"rating": "bad"}, {"author_name": "ok", "rating": 5, "text": "fine"}]
        ranked = engine.rank(reviews, TopicContext(keywords=["x"]))
        assert [r.author_name for r in ranked] == ["ok"]

    def test_pick_featured(self, engine):
        reviews = [review("a", 5, "plain"), review("b", 4, "whistler shuttle")]
        assert engine.pick_featured(reviews, TopicContext(keywords=["shuttle"])).author_name == "b"
        assert engine.pick_featured([], TopicContext()) is None


class TestTopicContext:
    def test_locale_keywords_then_default_then_extras(self, config):
        context = TopicContext.for_locale("zh", ["温哥华", "whistler"], config=config)
        assert context.keywords == ["接送", "司机", "准时", "transfer", "whistler", "shuttle", "温哥华"]
        assert context.language == "zh"

    def test_default_locale_not_repeated(self, config):
        context = TopicContext.for_locale("en", config=config)
        assert context.keywords == ["transfer", "whistler", "shuttle"]

    def test_no_locale(self, config):
        context = TopicContext.for_locale(None, ["banff"], config=config)
        assert context.keywords == ["transfer", "whistler", "shuttle", "banff"]
        assert context.language is None


class TestRankedReviews:
    @pytest.mark.asyncio
    async def test_ranks_the_feed(self, engine, client, upstream):
        upstream.route(
            "/wp-json/qualitour/v1/google-reviews",
            {
                "rating": 4.9,
                "reviews": [
                    {"author_name": "a", "rating": 5, "text": "nice", "time": NOW},
                    {"author_name": "b", "rating": 5, "text": "airport shuttle", "time": NOW},
                ],
            },
        )
        ranked = await engine.ranked_reviews(client, TopicContext(keywords=["shuttle"]), 1)
        assert [r.author_name for r in ranked] == ["b"]

    @pytest.mark.asyncio
    async def test_feed_failure_is_empty_list(self, engine, client, upstream):
        upstream.route(
            "/wp-json/qualitour/v1/google-reviews", lambda r: json_response({}, status=502)
        )
        assert await engine.ranked_reviews(client, TopicContext(keywords=["x"])) == []

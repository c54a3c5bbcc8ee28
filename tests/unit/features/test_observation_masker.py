"""
Tests unitaires pour l'ObservationMasker.
"""
import pytest

from context_budget.config.settings import MaskingConfig
from context_budget.core.tokens import estimate_tokens
from context_budget.features.observation_masking import ObservationMasker


OLD = 0  # timestamp ancien => bonus de récence nul


class TestBatchMasking:
    """Tests pour mask_observations (budget global)."""

    def test_budget_overflow_masks_fifth_observation(self, make_observation, now):
        """5 x 2000 tokens pour un budget de 8000: la 5e est masquée."""
        config = MaskingConfig(max_tokens_per_observation=2000, total_token_budget=8000)
        masker = ObservationMasker(config)
        observations = [make_observation(str(i), "a" * 8000) for i in range(1, 6)]

        outcome = masker.mask_observations(observations, now=now)

        assert [m.id for m in outcome.masked] == ["1", "2", "3", "4", "5"]
        for masked in outcome.masked[:4]:
            assert masked.was_retained is True
            assert masked.output == "a" * 8000
            assert masked.mask_reason is None
        fifth = outcome.masked[4]
        assert fifth.was_retained is False
        assert "budget_exceeded" in fifth.output
        assert fifth.mask_reason == "Token budget exceeded"

        used = sum(estimate_tokens(m.output) for m in outcome.masked if m.was_retained)
        assert used == 8000

    def test_output_order_matches_input_order(self, make_observation, now):
        masker = ObservationMasker()
        observations = [
            make_observation("log-1", "started service", type="log"),
            make_observation("err-1", "Traceback: boom", type="error"),
            make_observation("code-1", "def main():\n    pass", type="code"),
        ]

        outcome = masker.mask_observations(observations, now=now)

        assert [m.id for m in outcome.masked] == ["log-1", "err-1", "code-1"]

    def test_budget_bound_holds_with_long_lines(self, make_observation, now):
        config = MaskingConfig(max_tokens_per_observation=2000, total_token_budget=3000)
        masker = ObservationMasker(config)
        long_output = "\n".join("y" * 1000 for _ in range(50))
        observations = [make_observation(f"o{i}", long_output) for i in range(3)]

        outcome = masker.mask_observations(observations, now=now)

        used = sum(estimate_tokens(m.output) for m in outcome.masked if m.was_retained)
        assert used <= 3000
        assert outcome.masked[0].mask_reason == "Truncated to fit budget"

    def test_insufficient_budget_masks_observation(self, make_observation, now):
        config = MaskingConfig(max_tokens_per_observation=2000, total_token_budget=2050)
        masker = ObservationMasker(config)
        observations = [
            make_observation("1", "a" * 8000),
            make_observation("2", "b" * 8000),
        ]

        outcome = masker.mask_observations(observations, now=now)

        assert outcome.masked[0].was_retained is True
        assert outcome.masked[1].was_retained is False
        assert "insufficient_budget" in outcome.masked[1].output
        assert outcome.masked[1].mask_reason == "Insufficient budget for content"

    def test_higher_priority_observation_gets_budget_first(self, make_observation, now):
        config = MaskingConfig(max_tokens_per_observation=2000, total_token_budget=2000)
        masker = ObservationMasker(config)
        observations = [
            make_observation("meta", "m" * 8000, type="metadata"),
            make_observation("code", "c" * 8000, type="code"),
        ]

        outcome = masker.mask_observations(observations, now=now)

        assert [m.id for m in outcome.masked] == ["meta", "code"]
        assert outcome.masked[1].was_retained is True
        assert outcome.masked[0].was_retained is False

    def test_stats(self, make_observation, now):
        config = MaskingConfig(max_tokens_per_observation=2000, total_token_budget=8000)
        masker = ObservationMasker(config)
        observations = [make_observation(str(i), "a" * 8000) for i in range(5)]

        stats = masker.mask_observations(observations, now=now).stats

        assert stats.total_observations == 5
        assert stats.retained_observations == 4
        assert stats.masked_observations == 1
        assert stats.original_tokens == 10000
        assert stats.tokens_saved == stats.original_tokens - stats.masked_tokens
        assert 0 < stats.savings_percentage < 100

    def test_disabled_passes_everything_through(self, make_observation, now):
        masker = ObservationMasker(MaskingConfig(enabled=False, total_token_budget=1))
        observations = [make_observation("1", "x" * 9000), make_observation("2", "y" * 9000)]

        outcome = masker.mask_observations(observations, now=now)

        assert all(m.was_retained for m in outcome.masked)
        assert all(m.relevance_score == 1.0 for m in outcome.masked)
        assert [m.output for m in outcome.masked] == ["x" * 9000, "y" * 9000]
        assert outcome.stats.tokens_saved == 0

    @pytest.mark.parametrize("observations", [[], None])
    def test_empty_input(self, observations):
        outcome = ObservationMasker().mask_observations(observations)

        assert outcome.masked == []
        assert outcome.stats.total_observations == 0
        assert outcome.stats.savings_percentage == 0.0

    def test_none_output_is_treated_as_empty(self, make_observation, now):
        obs = make_observation("1", None)

        outcome = ObservationMasker().mask_observations([obs], now=now)

        assert outcome.masked[0].output == ""
        assert outcome.masked[0].original_length == 0

    def test_none_entries_are_dropped(self, make_observation, now):
        observations = [make_observation("1", "alpha"), None, make_observation("2", "beta")]

        outcome = ObservationMasker().mask_observations(observations, now=now)

        assert [m.id for m in outcome.masked] == ["1", "2"]
        assert outcome.stats.total_observations == 2


class TestSingleMasking:
    """Tests pour mask_observation."""

    def test_none_observation_gives_empty_retained_result(self, now):
        masked = ObservationMasker().mask_observation(None, now=now)

        assert masked.id == ""
        assert masked.tool_name == ""
        assert masked.output == ""
        assert masked.was_retained is True
        assert masked.original_length == 0

    def test_oversized_error_is_truncated_to_observation_cap(self, make_observation, now):
        masker = ObservationMasker(MaskingConfig(max_tokens_per_observation=100))
        obs = make_observation("1", "e" * 4000, type="error")

        masked = masker.mask_observation(obs, now=now)

        assert masked.was_retained is True
        assert estimate_tokens(masked.output) <= 100
        assert masked.mask_reason == "Truncated to observation cap"

    def test_error_type_is_always_retained(self, make_observation, now):
        obs = make_observation("1", "plain text", type="error", timestamp=OLD)

        masked = ObservationMasker().mask_observation(obs, now=now)

        assert masked.was_retained is True
        assert masked.output == "plain text"

    def test_error_pattern_forces_retention(self, make_observation, now):
        obs = make_observation("1", "Traceback (most recent call last)", timestamp=OLD)

        masked = ObservationMasker().mask_observation(obs, now=now)

        assert masked.was_retained is True
        assert masked.output == obs.output

    def test_retained_output_is_capped(self, make_observation, now):
        masker = ObservationMasker(MaskingConfig(max_tokens_per_observation=500))
        obs = make_observation("1", "e" * 10000, type="error")

        masked = masker.mask_observation(obs, now=now)

        assert masked.was_retained is True
        assert estimate_tokens(masked.output) <= 500
        assert masked.original_length == 10000
        assert masked.masked_length == len(masked.output)

    def test_low_relevance_is_masked_with_summary(self, make_observation, now):
        masker = ObservationMasker()
        masker.set_query_context("database migration schema")
        obs = make_observation(
            "1", "alpha beta gamma\ndelta epsilon", tool_name="list_dir", type="metadata", timestamp=OLD
        )

        masked = masker.mask_observation(obs, now=now)

        assert masked.was_retained is False
        assert masked.relevance_score < 0.2
        assert masked.output == "[MASKED: list_dir output - 2 lines, ~8 tokens, reason: low_relevance]"
        assert masked.mask_reason == "Low relevance score"

    def test_partial_extraction_keeps_head_tail_and_important_lines(self, make_observation, now):
        lines = ["routine entry"] * 40
        lines[20] = "warning: disk usage high"
        obs = make_observation("1", "\n".join(lines), type="log", timestamp=OLD)

        masked = ObservationMasker().mask_observation(obs, now=now)

        assert masked.was_retained is True
        assert masked.mask_reason == "Partial extraction"
        out_lines = masked.output.split("\n")
        assert out_lines[:10] == ["routine entry"] * 10
        assert out_lines[-10:] == ["routine entry"] * 10
        assert "... (17 lines masked) ..." in out_lines
        assert "warning: disk usage high" in out_lines
        assert len(out_lines) == 10 + 1 + 3 + 10

    def test_marker_kept_when_no_middle_line_is_dropped(self, make_observation, now):
        lines = [f"entry {i}" for i in range(22)]
        obs = make_observation("1", "\n".join(lines), type="log", timestamp=OLD)

        masked = ObservationMasker().mask_observation(obs, now=now)

        out_lines = masked.output.split("\n")
        assert masked.mask_reason == "Partial extraction"
        assert out_lines[10] == "... (0 lines masked) ..."
        assert out_lines[11:13] == ["entry 10", "entry 11"]
        assert len(out_lines) == 23

    def test_short_output_is_not_extracted(self, make_observation, now):
        obs = make_observation("1", "one\ntwo\nthree", type="log", timestamp=OLD)

        masked = ObservationMasker().mask_observation(obs, now=now)

        assert masked.output == "one\ntwo\nthree"

    def test_disabled_returns_unchanged(self, make_observation, now):
        masker = ObservationMasker(MaskingConfig(enabled=False))
        obs = make_observation("1", "alpha", type="metadata", timestamp=OLD)

        masked = masker.mask_observation(obs, now=now)

        assert masked.output == "alpha"
        assert masked.relevance_score == 1.0
        assert masked.was_retained is True


class TestRelevance:
    """Tests pour le scoring de pertinence."""

    def test_query_keywords_extraction(self):
        masker = ObservationMasker()
        masker.set_query_context("How do I fix the database connection? The database!")

        assert masker.query_keywords == ("fix", "database", "connection")

    def test_clear_query_context(self):
        masker = ObservationMasker()
        masker.set_query_context("database connection")
        masker.clear_query_context()

        assert masker.query_keywords == ()

    def test_query_match_increases_relevance(self, make_observation, now):
        masker = ObservationMasker()
        masker.set_query_context("database connection")
        matching = make_observation("1", "database connection pool ready", timestamp=OLD)
        other = make_observation("2", "compiled assets", timestamp=OLD)

        assert masker.calculate_relevance(matching, now) > masker.calculate_relevance(other, now)

    def test_recency_bonus(self, make_observation, now):
        masker = ObservationMasker()
        fresh = make_observation("1", "compiled assets", timestamp=now)
        stale = make_observation("2", "compiled assets", timestamp=now - 10 * 60 * 1000)

        assert masker.calculate_relevance(fresh, now) == pytest.approx(
            masker.calculate_relevance(stale, now) + 0.1
        )

    def test_future_timestamp_recency_is_capped(self, make_observation, now):
        masker = ObservationMasker()
        fresh = make_observation("1", "compiled assets", timestamp=now)
        future = make_observation("2", "compiled assets", timestamp=now + 10 * 60 * 1000)

        assert masker.calculate_relevance(future, now) == pytest.approx(masker.calculate_relevance(fresh, now))

    def test_relevance_is_clamped(self, make_observation, now):
        output = "error exception fail undefined null cannot warning critical fatal"
        obs = make_observation("1", output, type="error", timestamp=now)

        assert ObservationMasker().calculate_relevance(obs, now) == 1.0

    def test_update_config_replaces_value(self):
        config = MaskingConfig()
        masker = ObservationMasker(config)

        masker.update_config(enabled=False, total_token_budget=100)

        assert masker.config.enabled is False
        assert masker.config.total_token_budget == 100
        assert config.enabled is True


class TestSlidingWindow:
    """Tests pour apply_sliding_window_mask."""

    def test_recent_window_kept_and_old_replaced(self, make_observation, now):
        observations = [
            make_observation("recent-1", "r1", tool_name="bash", timestamp=now - 1, type="command_output"),
            make_observation("old-cmd", "ok", tool_name="bash", timestamp=1, type="command_output"),
            make_observation("old-err", "boom", tool_name="bash", timestamp=2, type="error"),
            make_observation(
                "old-file", "a\nb\nc", tool_name="read_file", input="src/app.py", timestamp=3, type="file_content"
            ),
            make_observation("recent-2", "r2", tool_name="bash", timestamp=now, type="command_output"),
            make_observation("old-search", "m1\nm2\nm3", tool_name="grep", timestamp=4, type="search_result"),
        ]

        outcome = ObservationMasker().apply_sliding_window_mask(observations, window_size=2, now=now)
        by_id = {m.id: m for m in outcome.masked}

        assert [m.id for m in outcome.masked] == [o.id for o in observations]
        assert by_id["recent-1"].was_retained is True
        assert by_id["recent-2"].output == "r2"
        assert by_id["old-err"].was_retained is True
        assert by_id["old-err"].mask_reason == "Retained (high importance)"
        assert by_id["old-cmd"].output == "[bash: ok | 1 lines, ~1 tokens]"
        assert by_id["old-file"].output == "[read_file - src/app.py | 3 lines, ~2 tokens]"
        assert by_id["old-search"].output == "[grep - 2 matches | 3 lines, ~2 tokens]"
        assert by_id["old-search"].mask_reason == "Sliding window - outside recent window"
        assert outcome.stats.masked_observations == 3

    def test_window_larger_than_input_keeps_everything(self, make_observation, now):
        observations = [make_observation(str(i), f"out {i}", timestamp=i) for i in range(3)]

        outcome = ObservationMasker().apply_sliding_window_mask(observations, now=now)

        assert all(m.was_retained for m in outcome.masked)
        assert outcome.stats.masked_observations == 0

    def test_empty_input(self):
        outcome = ObservationMasker().apply_sliding_window_mask([])

        assert outcome.masked == []
        assert outcome.stats.total_observations == 0


class TestDetectOutputType:
    """Tests pour la détection du type de sortie."""

    @pytest.mark.parametrize(
        "tool_name,content,expected",
        [
            ("read_file", "Traceback (most recent call last)", "error"),
            ("read_file", "hello", "file_content"),
            ("grep", "hello", "search_result"),
            ("bash", "hello", "command_output"),
            ("git_status", "hello", "metadata"),
            ("tool_x", "def main():\n    pass", "code"),
            ("svc", "[2024-01-01 10:00] started", "log"),
            ("misc", "hello world", "unknown"),
        ],
    )
    def test_detect(self, tool_name, content, expected):
        assert ObservationMasker().detect_output_type(tool_name, content) == expected

    def test_none_inputs(self):
        assert ObservationMasker().detect_output_type(None, None) == "unknown"

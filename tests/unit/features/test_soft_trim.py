"""
Tests unitaires pour le soft trim.
"""
from dataclasses import replace

from context_budget.config.settings import SoftTrimOptions
from context_budget.features.session_pruning import (
    should_soft_trim,
    soft_trim_content,
    soft_trim_message,
    soft_trim_messages,
    soft_trim_string,
)


class TestSoftTrimString:

    def test_preserves_head_and_tail_markers(self):
        content = "HEAD" + "x" * 5000 + "TAIL"

        result = soft_trim_string(content, 500, 500)

        assert "HEAD" in result
        assert "TAIL" in result
        assert "trimmed" in result
        assert len(result) < len(content)

    def test_marker_reports_omitted_chars(self):
        result = soft_trim_string("a" * 3000, 1000, 1000)

        assert "[trimmed 1000 chars]" in result
        assert result.startswith("a" * 1000)
        assert result.endswith("a" * 1000)

    def test_short_content_unchanged(self):
        assert soft_trim_string("abc" * 10, 20, 20) == "abc" * 10
        assert soft_trim_string("", 10, 10) == ""

    def test_never_lengthens_content(self):
        content = "b" * 105

        assert soft_trim_string(content, 50, 50) == content


class TestSoftTrimContent:

    def test_none_passes_through(self):
        assert soft_trim_content(None) is None

    def test_string_below_threshold_unchanged(self):
        options = SoftTrimOptions(min_prunable_chars=100)

        assert soft_trim_content("z" * 100, options) == "z" * 100

    def test_string_above_threshold_trimmed(self):
        options = SoftTrimOptions(head_chars=10, tail_chars=10, min_prunable_chars=100)

        result = soft_trim_content("z" * 500, options)

        assert isinstance(result, str)
        assert len(result) < 500

    def test_multimodal_trims_only_text_parts(self):
        options = SoftTrimOptions(head_chars=10, tail_chars=10, min_prunable_chars=100)
        image = {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}}
        content = [
            {"type": "text", "text": "t" * 500},
            image,
            {"type": "text", "text": "short"},
        ]

        result = soft_trim_content(content, options)

        assert len(result) == 3
        assert "trimmed" in result[0]["text"]
        assert result[1] is image
        assert result[2] == {"type": "text", "text": "short"}
        # entrée non modifiée
        assert content[0]["text"] == "t" * 500


class TestSoftTrimMessage:

    def test_sets_flag_and_trims(self, make_message):
        message = make_message(3, "tool", "q" * 6000)

        trimmed = soft_trim_message(message)

        assert trimmed.soft_trimmed is True
        assert len(trimmed.content) < 6000
        assert trimmed.original_length == 6000
        assert message.soft_trimmed is False

    def test_second_call_does_not_reshrink(self, make_message):
        message = make_message(3, "tool", "q" * 6000)

        once = soft_trim_message(message)
        twice = soft_trim_message(once)

        assert twice == once
        assert twice.content == once.content

    def test_hard_cleared_message_untouched(self, make_message):
        message = replace(make_message(3, "tool", "q" * 6000), hard_cleared=True)

        assert soft_trim_message(message) is message


class TestSoftTrimMessages:

    def _history(self, make_message):
        big = "w" * 6000
        return [
            make_message(0, "system", big),
            make_message(1, "user", big),
            make_message(2, "assistant", big),
            make_message(3, "tool", big, tool_call_ids=["tc-1"]),
            make_message(4, "assistant", big),
            make_message(5, "tool", "small"),
        ]

    def test_batch_honors_exemptions(self, make_message):
        messages = self._history(make_message)
        options = SoftTrimOptions(keep_last_n_assistant=1)

        result = soft_trim_messages(messages, options)

        trimmed = [m.index for m in result.messages if m.soft_trimmed]
        assert trimmed == [2, 3]
        assert result.trimmed_count == 2
        per_message = 6000 - len(soft_trim_string("w" * 6000, 1500, 1500))
        assert result.total_removed == 2 * per_message
        # entrée non modifiée
        assert messages[3].content == "w" * 6000
        assert messages[3].soft_trimmed is False

    def test_batch_without_role_exemptions(self, make_message):
        messages = self._history(make_message)
        options = SoftTrimOptions(keep_system_messages=False, keep_user_messages=False, keep_last_n_assistant=0)

        result = soft_trim_messages(messages, options)

        assert result.trimmed_count == 5
        assert result.messages[5].content == "small"

    def test_empty_batch(self):
        result = soft_trim_messages(None)

        assert result.messages == []
        assert result.trimmed_count == 0
        assert result.total_removed == 0

    def test_should_soft_trim_predicate(self, make_message):
        messages = self._history(make_message)
        options = SoftTrimOptions(keep_last_n_assistant=1)

        assert should_soft_trim(messages[0], messages, options) is False
        assert should_soft_trim(messages[1], messages, options) is False
        assert should_soft_trim(messages[2], messages, options) is True
        assert should_soft_trim(messages[3], messages, options) is True
        assert should_soft_trim(messages[4], messages, options) is False
        assert should_soft_trim(messages[5], messages, options) is False
        assert should_soft_trim(replace(messages[3], soft_trimmed=True), messages, options) is False

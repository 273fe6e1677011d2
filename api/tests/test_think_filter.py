"""
Unit tests for the <think> tag stripping filter.
"""

import pytest

from kb_assistant.services.think_filter import (
    END_TAG,
    START_TAG,
    FilterState,
    ThinkTagFilter,
    advance,
    finish,
)

RAW = "Intro <think>plan the answer</think>Answer part one. <think>more</think>Done."
EXPECTED = "Intro Answer part one. Done."


def run_filter(fragments):
    stream_filter = ThinkTagFilter()
    deltas = []
    for fragment in fragments:
        deltas.extend(stream_filter.feed(fragment))
    residue = stream_filter.flush()
    if residue:
        deltas.append(residue)
    return deltas


class TestStripping:
    def test_tags_split_across_fragments(self):
        deltas = run_filter(["hello <thi", "nk>secret</thi", "nk> world"])
        assert "".join(deltas) == "hello  world"

    def test_unterminated_thought_is_dropped(self):
        deltas = run_filter(["abc <think>never ends"])
        assert "".join(deltas) == "abc "

    def test_unterminated_thought_with_partial_end_tag_is_dropped(self):
        deltas = run_filter(["ok<think>abc</thin"])
        assert "".join(deltas) == "ok"

    def test_every_two_way_split(self):
        for i in range(len(RAW) + 1):
            assert "".join(run_filter([RAW[:i], RAW[i:]])) == EXPECTED, i

    def test_every_three_way_split(self):
        for i in range(len(RAW) + 1):
            for j in range(i, len(RAW) + 1):
                fragments = [RAW[:i], RAW[i:j], RAW[j:]]
                assert "".join(run_filter(fragments)) == EXPECTED, (i, j)

    def test_one_character_at_a_time(self):
        assert "".join(run_filter(list(RAW))) == EXPECTED

    def test_nested_start_tag_is_part_of_the_thought(self):
        raw = "a<think>x<think>y</think>b</think>c"
        # The first END closes the thought; the second END is plain text.
        assert "".join(run_filter([raw])) == "ab</think>c"

    def test_thought_at_very_start_and_end(self):
        assert "".join(run_filter(["<think>x</think>middle<think>y</think>"])) == "middle"

    def test_deltas_are_never_empty(self):
        deltas = run_filter(list(RAW))
        assert all(deltas)


class TestPassThrough:
    @pytest.mark.parametrize(
        "fragments",
        [
            ["plain text with no tags"],
            ["a < b and c > d, ", "also <thin"],
            ["closing tag alone: </think> stays"],
            ["", "x", "", "yz"],
        ],
    )
    def test_text_without_thoughts_is_unchanged(self, fragments):
        assert "".join(run_filter(fragments)) == "".join(fragments)

    def test_holds_back_a_possible_tag_prefix(self):
        stream_filter = ThinkTagFilter()
        assert stream_filter.feed("hello world") == ["hell"]
        assert stream_filter.flush() == "o world"

    def test_short_fragment_is_held_until_end(self):
        stream_filter = ThinkTagFilter()
        assert stream_filter.feed("hi") == []
        assert stream_filter.flush() == "hi"


class TestPureStep:
    def test_empty_fragment_is_a_no_op(self):
        state = FilterState(is_thinking=True, buffer="abc")
        emitted, new_state = advance(state, "")
        assert emitted == []
        assert new_state is state

    def test_advance_does_not_mutate_input_state(self):
        state = FilterState()
        emitted, new_state = advance(state, "before " + START_TAG + "inside")
        assert emitted == ["before "]
        assert state == FilterState()
        assert new_state.is_thinking is True

    def test_thinking_buffer_keeps_only_a_possible_end_tag(self):
        _, state = advance(FilterState(is_thinking=True), "a long hidden thought")
        assert state.buffer == " thought"
        assert len(state.buffer) == len(END_TAG)

    def test_finish(self):
        assert finish(FilterState(is_thinking=False, buffer="tail")) == "tail"
        assert finish(FilterState(is_thinking=True, buffer="tail")) == ""

    def test_flush_resets_the_filter(self):
        stream_filter = ThinkTagFilter()
        stream_filter.feed("x" + START_TAG)
        assert stream_filter.is_thinking
        stream_filter.flush()
        assert not stream_filter.is_thinking

"""Unit tests for tool-call extraction from streamed model text."""

from toolgate.domain.tool import ToolInvocation
from toolgate.infrastructure.llm.action_extractor import ActionExtractor, extract_actions


class TestExtractActions:
    """Tests for extract_actions."""

    def test_single_object(self):
        actions = extract_actions('{"action": "listFiles", "params": {"path": "."}}')

        assert actions == [ToolInvocation("listFiles", {"path": "."})]

    def test_multiple_objects_in_order(self):
        text = (
            '{"action": "search", "params": {"query": "cows"}}\n'
            '{"action": "writeFile", "params": {"path": "cows.txt", "content": "moo"}}'
        )

        actions = extract_actions(text)

        assert [a.action for a in actions] == ["search", "writeFile"]
        assert actions[1].params == {"path": "cows.txt", "content": "moo"}

    def test_surrounding_prose_is_ignored(self):
        text = 'Sure, listing now: {"action": "listFiles", "params": {}} done.'

        assert extract_actions(text) == [ToolInvocation("listFiles", {})]

    def test_stray_closing_brace_is_skipped(self):
        text = '} {"action": "math", "params": {"expr": "1+1"}}'

        assert extract_actions(text) == [ToolInvocation("math", {"expr": "1+1"})]

    def test_objects_without_action_shape_are_not_actions(self):
        assert extract_actions('{"foo": 1}') == []
        assert extract_actions('{"action": "math"}') == []
        assert extract_actions('{"action": "", "params": {}}') == []
        assert extract_actions('{"action": "math", "params": "1+1"}') == []

    def test_incomplete_object(self):
        assert extract_actions('{"action": "listFiles", "params": {"pa') == []

    def test_blank_text(self):
        assert extract_actions("   \n") == []

    def test_brace_inside_string_breaks_scan_after_prose(self):
        text = 'Writing: {"action": "writeFile", "params": {"path": "a", "content": "a } b"}}'

        assert extract_actions(text) == []

    def test_brace_inside_string_ok_when_whole_text_is_json(self):
        text = '{"action": "writeFile", "params": {"path": "a", "content": "a } b"}}'

        assert extract_actions(text) == [
            ToolInvocation("writeFile", {"path": "a", "content": "a } b"})
        ]


class TestActionExtractor:
    """Tests for the buffered extractor."""

    def test_object_split_across_deltas(self):
        extractor = ActionExtractor()

        assert extractor.feed('{"action": "list') == []
        assert extractor.pending == '{"action": "list'
        actions = extractor.feed('Files", "params": {"path": "."}}')

        assert actions == [ToolInvocation("listFiles", {"path": "."})]
        assert extractor.pending == ""

    def test_partial_action_after_complete_one_is_kept(self):
        extractor = ActionExtractor()

        first = extractor.feed('{"action":"search","params":{"query":"cows"}}{"action":"wri')
        assert [a.action for a in first] == ["search"]
        assert extractor.pending == '{"action":"wri'

        second = extractor.feed('teFile","params":{"path":"cows.txt","content":"..."}}')
        assert second == [ToolInvocation("writeFile", {"path": "cows.txt", "content": "..."})]
        assert extractor.finish() == ([], "")

    def test_text_after_action_is_left_for_finish(self):
        extractor = ActionExtractor()

        assert len(extractor.feed('{"action": "listFiles", "params": {}} All done.')) == 1
        assert extractor.finish() == ([], " All done.")

    def test_empty_delta_is_ignored(self):
        extractor = ActionExtractor()

        assert extractor.feed("") == []
        assert extractor.pending == ""

    def test_finish_returns_leftover_text(self):
        extractor = ActionExtractor()
        extractor.feed("Hello ")
        extractor.feed("there")

        assert extractor.finish() == ([], "Hello there")
        assert extractor.pending == ""

    def test_finish_ignores_whitespace(self):
        extractor = ActionExtractor()
        extractor.feed("  \n")

        assert extractor.finish() == ([], "")

    def test_finish_with_empty_buffer(self):
        assert ActionExtractor().finish() == ([], "")

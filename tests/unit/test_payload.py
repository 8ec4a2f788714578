"""
Unit tests for event payload normalization.
"""

import pytest

from tagstream.streaming.payload import (
    NodeChunk, SearchStep,
    decode_payload, normalize_envelope, normalize_steps, extract_progress,
)
from tagstream.utils.errors import PayloadError


class TestDecodePayload:

    def test_valid_json(self):
        assert decode_payload('{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("data", ['{"a":', "not json", ""])
    def test_invalid_json(self, data):
        with pytest.raises(PayloadError) as exc_info:
            decode_payload(data)
        assert exc_info.value.code == "PAYLOAD_ERROR"


class TestNormalizeEnvelope:

    def test_nested_envelope(self):
        payload = {"type": "NodeChunk", "content": {"nodeName": "STREAM", "content": "hi"}}
        assert normalize_envelope(payload) == NodeChunk("STREAM", "hi")

    def test_flat_envelope(self):
        assert normalize_envelope({"type": "SEARCH_PROGRESS", "content": 12}) == NodeChunk("SEARCH_PROGRESS", 12)

    def test_flat_envelope_without_content(self):
        assert normalize_envelope({"type": "DONE"}) == NodeChunk("DONE", None)

    @pytest.mark.parametrize("payload", [
        [1, 2],
        "STREAM",
        {"content": "no type"},
        {"type": 3, "content": "x"},
        {"type": "NodeChunk", "content": "not an object"},
        {"type": "NodeChunk", "content": {"content": "no node name"}},
    ])
    def test_unrecognized_shapes(self, payload):
        assert normalize_envelope(payload) is None


class TestNormalizeSteps:

    def test_explicit_active_flag(self):
        steps = normalize_steps([
            {"text": "search"},
            {"text": "summarize", "isActive": True},
            {"text": "done", "isCompleted": True},
        ])

        assert [s.is_active for s in steps] == [False, True, False]
        assert [s.is_completed for s in steps] == [True, False, False]

    def test_last_step_active_when_none_flagged(self):
        steps = normalize_steps([{"text": "a"}, {"text": "b"}, {"text": "c"}])

        assert [s.is_active for s in steps] == [False, False, True]
        assert [s.is_completed for s in steps] == [True, True, False]

    def test_first_active_flag_wins(self):
        steps = normalize_steps([{"text": "a", "isActive": True}, {"text": "b", "isActive": True}])
        assert [s.is_active for s in steps] == [True, False]

    def test_extra_info_aliases(self):
        steps = normalize_steps([
            {"text": "a", "extraInfo": "12 hits"},
            {"text": "b", "info": "3 sources"},
            {"text": "c", "extraInfo": ""},
        ])
        assert [s.extra_info for s in steps] == ["12 hits", "3 sources", None]

    def test_text_coercion(self):
        steps = normalize_steps([{"text": 5}, {}, "plain"])
        assert [s.text for s in steps] == ["5", "", "plain"]

    def test_empty_list(self):
        assert normalize_steps([]) == []

    def test_to_dict(self):
        step = SearchStep(text="a", is_active=True)
        assert step.to_dict() == {
            "text": "a", "is_active": True, "is_completed": False, "extra_info": None,
        }


class TestExtractProgress:

    @pytest.mark.parametrize("content,expected", [
        (40, 40),
        (12.5, 12.5),
        ({"percent": 80}, 80),
        ({"percent": "80"}, None),
        ({"value": 80}, None),
        ("50", None),
        (True, None),
        (None, None),
    ])
    def test_values(self, content, expected):
        assert extract_progress(content) == expected

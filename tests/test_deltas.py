import pytest

from app.core.errors import MalformedDeltaError
from app.domains.artifacts.deltas import Delta, DeltaType, parse_delta


@pytest.mark.parametrize("delta_type", [t.value for t in DeltaType])
def test_parse_every_known_kind(delta_type):
    content = "code" if delta_type == "kind" else "payload"
    delta = parse_delta({"type": delta_type, "content": content})

    assert delta.type == DeltaType(delta_type)
    assert delta.content == content


def test_finish_and_clear_accept_missing_content():
    assert parse_delta({"type": "finish"}) == Delta(DeltaType.FINISH, "")
    assert parse_delta({"type": "clear", "content": None}) == Delta(DeltaType.CLEAR, "")


def test_unknown_tag_is_rejected():
    with pytest.raises(MalformedDeltaError) as exc_info:
        parse_delta({"type": "image-delta", "content": "..."})

    assert exc_info.value.kind == "malformed_delta"


@pytest.mark.parametrize("raw", [
    {"type": "title"},
    {"type": "text-delta", "content": None},
    {"type": "code-delta", "content": 42},
    {"content": "hello"},
    {"type": "kind", "content": "image"},
])
def test_incomplete_records_are_rejected(raw):
    with pytest.raises(MalformedDeltaError):
        parse_delta(raw)


def test_non_mapping_is_rejected():
    with pytest.raises(MalformedDeltaError):
        parse_delta(["text-delta", "hello"])


def test_parse_accepts_valid_delta():
    delta = Delta(DeltaType.TEXT_DELTA, "hello")
    assert parse_delta(delta) == delta


@pytest.mark.parametrize("delta", [
    Delta(DeltaType.ID, ""),
    Delta(DeltaType.KIND, "python"),
])
def test_invalid_delta_instances_are_rejected(delta):
    with pytest.raises(MalformedDeltaError):
        parse_delta(delta)


def test_empty_document_id_is_rejected():
    with pytest.raises(MalformedDeltaError):
        parse_delta({"type": "id", "content": ""})


def test_error_payload_is_structured():
    with pytest.raises(MalformedDeltaError) as exc_info:
        parse_delta({"type": "nope"})

    payload = exc_info.value.to_dict()
    assert payload["kind"] == "malformed_delta"
    assert "nope" in payload["message"]

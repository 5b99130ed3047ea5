from __future__ import annotations

import json

import pytest

from hazkey_client.ipc.constants import ResponseStatus
from hazkey_client.ipc.protocol import (
    ClearAllHistory,
    CurrentConfig,
    Failure,
    GetConfig,
    Profile,
    ProtocolError,
    ReloadZenzaiModel,
    ResponseEnvelope,
    SetConfig,
    Success,
    config_from_json,
    decode_request,
    decode_response,
    encode_request,
    encode_response,
)


def test_request_kinds_are_tagged_on_the_wire() -> None:
    assert json.loads(encode_request(GetConfig())) == {"kind": "get_config"}
    assert json.loads(encode_request(ClearAllHistory(profile_id="p"))) == {
        "kind": "clear_all_history",
        "profile_id": "p",
    }
    assert json.loads(encode_request(ReloadZenzaiModel()))["kind"] == "reload_zenzai_model"


def test_set_config_carries_unknown_profile_fields() -> None:
    req = SetConfig(
        profiles=[Profile(profile_id="p1", zenzai_enable=True, special_conversion={"a": 1})]
    )
    decoded = decode_request(encode_request(req))
    assert decoded == req
    assert decoded.profiles[0].model_dump()["special_conversion"] == {"a": 1}


@pytest.mark.parametrize(
    "raw, code",
    [
        (b"", "empty_request"),
        (b"{}", "invalid_request"),
        (b'{"kind": "bogus"}', "invalid_request"),
        (b'{"kind": "clear_all_history"}', "invalid_request"),
        (b"not json", "invalid_request"),
    ],
)
def test_decode_request_rejects_invalid_envelopes(raw: bytes, code: str) -> None:
    with pytest.raises(ProtocolError) as exc:
        decode_request(raw)
    assert exc.value.code == code


def test_encode_request_rejects_non_requests() -> None:
    with pytest.raises(ProtocolError):
        encode_request(CurrentConfig())  # type: ignore[arg-type]


@pytest.mark.parametrize("value", [object(), b"\xff\xfe"])
def test_unserializable_extra_field_is_an_encode_error(value: object) -> None:
    req = SetConfig(profiles=[Profile(profile_id="x", raw=value)])
    with pytest.raises(ProtocolError) as exc:
        encode_request(req)
    assert exc.value.code == "encode_failed"


def test_response_roundtrip() -> None:
    resp = ResponseEnvelope.success(
        current_config=CurrentConfig(profiles=[Profile(profile_id="default")])
    )
    assert decode_response(encode_response(resp)) == resp


def test_success_outcome_exposes_payload() -> None:
    config = CurrentConfig(profiles=[Profile(profile_id="default")])
    outcome = ResponseEnvelope.success(current_config=config).outcome()
    assert outcome == Success(config)


def test_failed_status_never_exposes_payload() -> None:
    resp = ResponseEnvelope(
        status=ResponseStatus.FAILED,
        current_config=CurrentConfig(profiles=[Profile(profile_id="default")]),
    )
    outcome = resp.outcome()
    assert isinstance(outcome, Failure)
    assert outcome.reason == "status_failed"
    assert not hasattr(outcome, "value")


def test_failed_outcome_keeps_server_message() -> None:
    assert ResponseEnvelope.failed("unknown_profile").outcome() == Failure("unknown_profile")


@pytest.mark.parametrize(
    "raw",
    [b"", b"[]", b'{"status": "MAYBE"}', b"\xff\xfe"],
)
def test_decode_response_rejects_garbage(raw: bytes) -> None:
    with pytest.raises(ProtocolError):
        decode_response(raw)


def test_config_from_json() -> None:
    config = config_from_json({"profiles": [{"profile_id": "a", "name": "A"}]})
    assert config.profiles[0].profile_id == "a"
    with pytest.raises(ProtocolError) as exc:
        config_from_json({"profiles": "nope"})
    assert exc.value.code == "invalid_config"

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from hazkey_client.ipc.constants import ResponseStatus

T = TypeVar("T")


@dataclass(frozen=True)
class ProtocolError(Exception):
    code: str


class Profile(BaseModel):
    # Only the id is read by the client; every other field is carried through
    # unchanged so a get/modify/set cycle never drops server-side settings.
    model_config = ConfigDict(extra="allow")

    profile_id: str = ""


class CurrentConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    profiles: list[Profile] = Field(default_factory=list)


class GetConfig(BaseModel):
    kind: Literal["get_config"] = "get_config"


class SetConfig(BaseModel):
    kind: Literal["set_config"] = "set_config"
    profiles: list[Profile] = Field(default_factory=list)


class ClearAllHistory(BaseModel):
    kind: Literal["clear_all_history"] = "clear_all_history"
    profile_id: str


class ReloadZenzaiModel(BaseModel):
    kind: Literal["reload_zenzai_model"] = "reload_zenzai_model"


Request = GetConfig | SetConfig | ClearAllHistory | ReloadZenzaiModel

RequestEnvelope = Annotated[Request, Field(discriminator="kind")]

_REQUEST_ADAPTER: TypeAdapter[Request] = TypeAdapter(RequestEnvelope)


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    reason: str


Outcome = Success[T] | Failure


class ResponseEnvelope(BaseModel):
    status: ResponseStatus
    error_message: str | None = None
    current_config: CurrentConfig | None = None

    @classmethod
    def success(cls, *, current_config: CurrentConfig | None = None) -> ResponseEnvelope:
        return cls(status=ResponseStatus.SUCCESS, current_config=current_config)

    @classmethod
    def failed(cls, message: str | None = None) -> ResponseEnvelope:
        return cls(status=ResponseStatus.FAILED, error_message=message)

    @property
    def ok(self) -> bool:
        return self.status == ResponseStatus.SUCCESS

    def outcome(self) -> Outcome[CurrentConfig | None]:
        """Gate the payload on the status.

        A non-success response yields ``Failure`` even when a configuration is
        structurally present, so callers can only reach the payload through a
        ``Success``.
        """
        if not self.ok:
            return Failure(self.error_message or f"status_{self.status.value.lower()}")
        return Success(self.current_config)


def _dump(model: BaseModel) -> bytes:
    # Extra fields are passed through untyped and may not be JSON-serializable.
    try:
        return model.model_dump_json().encode("utf-8")
    except (PydanticSerializationError, ValueError, TypeError) as exc:
        raise ProtocolError("encode_failed") from exc


def encode_request(request: Request) -> bytes:
    if not isinstance(request, (GetConfig, SetConfig, ClearAllHistory, ReloadZenzaiModel)):
        raise ProtocolError("invalid_request")
    return _dump(request)


def decode_request(raw: bytes) -> Request:
    if not raw:
        raise ProtocolError("empty_request")
    try:
        return _REQUEST_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        raise ProtocolError("invalid_request") from exc


def encode_response(response: ResponseEnvelope) -> bytes:
    return _dump(response)


def decode_response(raw: bytes) -> ResponseEnvelope:
    if not raw:
        raise ProtocolError("empty_response")
    try:
        return ResponseEnvelope.model_validate_json(raw)
    except ValidationError as exc:
        raise ProtocolError("invalid_response") from exc


def config_from_json(data: Any) -> CurrentConfig:
    try:
        return CurrentConfig.model_validate(data)
    except ValidationError as exc:
        raise ProtocolError("invalid_config") from exc

"""Per-request generation overrides forwarded to the upstream model."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class JSONSchemaFormat(BaseModel):
    name: str
    schema_: dict[str, Any] = Field(alias="schema")
    strict: bool | None = None

    model_config = ConfigDict(populate_by_name=True)


class ResponseFormat(BaseModel):
    type: Literal["text", "json_schema"]
    json_schema: JSONSchemaFormat | None = None


class GenerationOverrides(BaseModel):
    """
    Sampling and output overrides for one chat request.

    Ranges follow the OpenAI chat-completion API. Fields left unset are not
    sent upstream, so the backend keeps its own defaults.
    """

    model: str | None = None
    temperature: float | None = Field(default=None, ge=0, le=2)
    max_tokens: int | None = Field(default=None, gt=0)
    top_p: float | None = Field(default=None, ge=0, le=1)
    frequency_penalty: float | None = Field(default=None, ge=-2, le=2)
    presence_penalty: float | None = Field(default=None, ge=-2, le=2)
    stop: str | list[str] | None = None
    user: str | None = None
    seed: int | None = None
    response_format: ResponseFormat | None = None

    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    def to_request_fields(self) -> dict[str, Any]:
        """Fields to merge into the upstream request body."""
        return self.model_dump(exclude_none=True, by_alias=True)

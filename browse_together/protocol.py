from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])([A-Z])")


def snake_case(name: str) -> str:
    """``fullPage`` -> ``full_page``."""
    return _CAMEL_BOUNDARY.sub(r"_\1", name).lower()


class BaseCommand(BaseModel):
    model_config = ConfigDict(extra="ignore")

    timeout: Optional[float] = Field(default=None, gt=0)

    def engine_params(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Translate client params to Playwright keyword arguments and merge the timeout."""
        merged: Dict[str, Any] = {snake_case(key): value for key, value in (params or {}).items()}
        if self.timeout is not None:
            merged.setdefault("timeout", self.timeout)
        return merged


class GotoCommand(BaseCommand):
    action: Literal["goto"]
    url: str
    params: Optional[Dict[str, Any]] = None

    @field_validator("url")
    @classmethod
    def _require_absolute_url(cls, value: str) -> str:
        if not urlparse(value).scheme:
            raise ValueError("url must be an absolute URL")
        return value


class ClickCommand(BaseCommand):
    action: Literal["click"]
    selector: str = Field(min_length=1)
    frame: Optional[str] = None
    params: Optional[Dict[str, Any]] = None


class FillCommand(BaseCommand):
    action: Literal["fill"]
    selector: str = Field(min_length=1)
    text: str
    frame: Optional[str] = None
    params: Optional[Dict[str, Any]] = None


class ScreenshotCommand(BaseCommand):
    action: Literal["screenshot"]
    params: Optional[Dict[str, Any]] = None


class ContentCommand(BaseCommand):
    action: Literal["content"]
    frame: Optional[str] = None


class TitleCommand(BaseCommand):
    action: Literal["title"]


class EvaluateCommand(BaseCommand):
    action: Literal["evaluate"]
    expression: str = Field(min_length=1)
    frame: Optional[str] = None
    params: Optional[Dict[str, Any]] = None

    @model_validator(mode="before")
    @classmethod
    def _lift_params_expression(cls, data: Any) -> Any:
        # Older clients send {"params": {"expression": ...}}.
        if isinstance(data, dict) and "expression" not in data:
            params = data.get("params")
            if isinstance(params, dict) and "expression" in params:
                data = dict(data)
                data["expression"] = params["expression"]
        return data


class ClosePageCommand(BaseCommand):
    action: Literal["closePage"]


BrowserCommand = Annotated[
    Union[
        GotoCommand,
        ClickCommand,
        FillCommand,
        ScreenshotCommand,
        ContentCommand,
        TitleCommand,
        EvaluateCommand,
        ClosePageCommand,
    ],
    Field(discriminator="action"),
]

ACTION_TYPES = (
    "goto",
    "click",
    "fill",
    "screenshot",
    "content",
    "title",
    "evaluate",
    "closePage",
)

_command_adapter: TypeAdapter[BrowserCommand] = TypeAdapter(BrowserCommand)


def parse_command(raw: Any) -> BrowserCommand:
    """Validate a decoded JSON body into one of the command variants.

    Raises ``pydantic.ValidationError`` with field-level detail when the body
    does not match any variant.
    """
    return _command_adapter.validate_python(raw)


@dataclass(slots=True)
class ExecutionResult:
    success: bool
    result: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error or "Unknown error"}
        payload: dict[str, Any] = {"success": True}
        if self.result is not None:
            payload["result"] = self.result
        return payload

    @classmethod
    def ok(cls, result: Any = None) -> "ExecutionResult":
        return cls(success=True, result=result)

    @classmethod
    def failure(cls, message: str) -> "ExecutionResult":
        return cls(success=False, error=message)

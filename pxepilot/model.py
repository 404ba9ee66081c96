# -*- coding: utf-8 -*-
"""Base pydantic model shared by every serializable pxepilot record."""
import typing as t

import orjson
from pydantic import BaseModel, ConfigDict, field_validator

_T = t.TypeVar("_T", bound="PilotModel")


def validate_str_not_empty(value: str) -> str:
    """Ensure a string is not empty (or only whitespace)."""

    if isinstance(value, str) and len(value.strip()) == 0:
        raise ValueError("String must contain at least one character.")
    return value


class PilotModel(BaseModel):
    """
    Pydantic BaseModel for all records that need serialization.

    JSON goes through orjson, which is much quicker than the built in json
    module and is what the redis store writes.
    """

    model_config = ConfigDict(validate_assignment=True)

    @field_validator("name", check_fields=False)
    @classmethod
    def validate_name_not_empty(cls, value: str):
        """Validate name attribute is not an empty string."""

        return validate_str_not_empty(value)

    def to_json(self) -> str:
        """Serialize the model into a json string."""

        return orjson.dumps(self.model_dump(mode="json")).decode("utf-8")

    @classmethod
    def from_json(cls: t.Type[_T], raw: t.Union[str, bytes]) -> _T:
        """
        Parse a json string produced by `to_json`.

        Raises
        ------
        ValueError
            If the content is not valid json or fails validation.
        """

        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as err:
            raise ValueError(
                f"Invalid json for {cls.__name__}: {err}"
            ) from err
        return cls.model_validate(data)

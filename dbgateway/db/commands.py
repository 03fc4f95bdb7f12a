"""Structured commands for backends without a textual query language."""

import json
from typing import Any, Dict, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from dbgateway.exceptions import QueryValidationError


class StructuredCommand(BaseModel):
    """An operation descriptor sent to the document and managed NoSQL backends.

    Only ``target`` and ``operation`` are common to every backend. Everything
    else (``filter``, ``update``, ``options``, ``filterExpression`` and so on)
    is kept as an extra field and read with :meth:`get`.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    target: str = Field(validation_alias=AliasChoices("target", "collection", "tableName", "table"))
    operation: str

    @field_validator('target', 'operation')
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v

    @property
    def verb(self) -> str:
        """Operation name normalised for case-insensitive dispatch."""
        return self.operation.lower()

    def get(self, name: str, default: Any = None) -> Any:
        """Read an operation-specific field."""
        extra = self.model_extra or {}
        value = extra.get(name)
        return default if value is None else value

    @classmethod
    def parse(cls, query: Union[str, Dict[str, Any], "StructuredCommand"]) -> "StructuredCommand":
        """Parse a JSON-encoded command.

        Args:
            query: JSON text, an already decoded mapping, or a command.

        Raises:
            QueryValidationError: If the text is not JSON or lacks a target or
                an operation.
        """
        if isinstance(query, cls):
            return query

        data: Optional[Any] = query
        if isinstance(query, str):
            try:
                data = json.loads(query)
            except json.JSONDecodeError as e:
                raise QueryValidationError(
                    f"Structured command must be valid JSON: {e.msg}", query=query
                ) from e

        if not isinstance(data, dict):
            raise QueryValidationError("Structured command must be a JSON object", query=str(query))

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'command'}: {err['msg']}" for err in e.errors()
            )
            raise QueryValidationError(
                f"Query must include a target and an operation ({problems})", query=str(query)
            ) from e

    def to_json(self) -> str:
        return json.dumps(self.model_dump(), default=str)

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator


class MessageResponse(BaseModel):
    message: str


class PatchModel(BaseModel):
    """Partial-update payload.

    A field that is absent from the request is left untouched, an explicit
    null clears it. Fields listed in `not_nullable` map onto NOT NULL columns,
    so sending null for them is a validation error rather than a silent no-op.
    """

    model_config = ConfigDict(use_enum_values=True, str_strip_whitespace=True)

    not_nullable: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def _reject_null_for_required(self):
        bad = sorted(f for f in self.model_fields_set & self.not_nullable if getattr(self, f) is None)
        if bad:
            raise ValueError(f"Field(s) cannot be null: {', '.join(bad)}")
        return self

    def changes(self, *, include: set[str] | frozenset[str] | None = None) -> dict[str, Any]:
        """Only the fields the client actually sent, nulls included."""
        return self.model_dump(exclude_unset=True, include=set(include) if include is not None else None)

"""Typed payloads stored in the JSON columns of an Event.

Normal events carry a custom registration form, merchandise events carry item details.
"""

import math
import re
import typing as t
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class FormFieldType(StrEnum):
    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    NUMBER = "number"
    TEL = "tel"
    DATE = "date"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"


CHOICE_FIELD_TYPES = frozenset({FormFieldType.SELECT, FormFieldType.RADIO})


class FieldValidationRules(BaseModel):
    model_config = ConfigDict(extra="forbid")

    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    min_length: int | None = Field(None, ge=0)
    max_length: int | None = Field(None, ge=1)

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, value: str | None) -> str | None:
        """Reject patterns that are not valid regular expressions."""
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"Invalid pattern: {e}") from e
        return value

    def check_number(self, number: float) -> bool:
        """Whether a numeric answer lies within min and max."""
        if self.min is not None and number < self.min:
            return False
        return self.max is None or number <= self.max

    def check_text(self, text: str) -> bool:
        """Whether a text answer satisfies the length bounds and the pattern."""
        if self.min_length is not None and len(text) < self.min_length:
            return False
        if self.max_length is not None and len(text) > self.max_length:
            return False
        return self.pattern is None or re.fullmatch(self.pattern, text) is not None


class FormFieldDefinition(BaseModel):
    """A single question of a normal event's registration form."""

    model_config = ConfigDict(extra="forbid")

    label: str = Field(..., min_length=1, max_length=200)
    field_type: FormFieldType = FormFieldType.TEXT
    required: bool = False
    options: list[str] = Field(default_factory=list)
    placeholder: str = ""
    validation: FieldValidationRules = Field(default_factory=FieldValidationRules)

    @model_validator(mode="after")
    def choices_need_options(self) -> t.Self:
        """Select and radio questions must offer something to pick."""
        if self.field_type in CHOICE_FIELD_TYPES and not self.options:
            raise ValueError(f"Field '{self.label}' of type {self.field_type} requires options.")
        return self

    def accepts(self, value: t.Any) -> bool:
        """Whether a non-blank answer is valid for this question.

        Choice questions only take one of their options, a checkbox with options takes a list
        of them, numbers must parse and lie within min and max, and every other answer is
        checked as text against the length bounds and the pattern.
        """
        if self.field_type in CHOICE_FIELD_TYPES:
            return isinstance(value, str) and value in self.options
        if self.field_type == FormFieldType.CHECKBOX:
            if isinstance(value, list):
                return bool(self.options) and all(item in self.options for item in value)
            return isinstance(value, bool)
        if self.field_type == FormFieldType.NUMBER:
            if isinstance(value, bool):
                return False
            try:
                number = float(value)
            except (TypeError, ValueError):
                return False
            return math.isfinite(number) and self.validation.check_number(number)
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            return False
        return self.validation.check_text(str(value))


class MerchandiseVariant(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    price: Decimal | None = Field(None, ge=0)
    description: str = ""


class ItemDetails(BaseModel):
    """What a merchandise event sells. At least one of the option lists must be non-empty."""

    model_config = ConfigDict(extra="forbid")

    sizes: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    variants: list[MerchandiseVariant] = Field(default_factory=list)

    @model_validator(mode="after")
    def at_least_one_option(self) -> t.Self:
        """Reject item details that describe nothing."""
        if not (self.sizes or self.colors or self.variants):
            raise ValueError("Item details need at least one size, color or variant.")
        return self

    def variant_names(self) -> list[str]:
        """Names of the declared variants."""
        return [variant.name for variant in self.variants]


CustomFormAdapter = TypeAdapter(list[FormFieldDefinition])


def normalize_custom_form(raw: t.Any) -> list[dict[str, t.Any]]:
    """Validate a custom form definition and return its canonical JSON form.

    Raises:
        ValueError: If the definition is malformed or repeats a label.
    """
    fields = CustomFormAdapter.validate_python(raw or [])
    labels = [f.label for f in fields]
    duplicates = sorted({label for label in labels if labels.count(label) > 1})
    if duplicates:
        raise ValueError(f"Duplicate form field labels: {', '.join(duplicates)}.")
    return [f.model_dump(mode="json") for f in fields]


def normalize_item_details(raw: t.Any) -> dict[str, t.Any]:
    """Validate merchandise item details and return their canonical JSON form."""
    return ItemDetails.model_validate(raw).model_dump(mode="json")

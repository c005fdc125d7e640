"""Schema-driven validation of record fields.

A `RecordSchema` declares the fields a collection accepts. Validation turns a
raw field mapping into normalized values or raises `ValidationFailed` with one
descriptor per offending field. Pydantic models are generated from the schema
once and reused.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from functools import cached_property
from typing import Annotated, Any, Literal, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    TypeAdapter,
    create_model,
)
from pydantic import ValidationError as PydanticValidationError

from resource_api.core.errors import ValidationFailed, errors_from_pydantic

FieldType = Literal["string", "email", "integer", "number", "boolean"]


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of a single field.

    Length bounds apply to ``string`` and ``email`` fields, ``minimum`` and
    ``maximum`` to ``integer`` and ``number`` fields. A ``secret`` field holds
    the record's credential: it is hashed by the store and never stored or
    returned in plaintext.
    """

    type: FieldType = "string"
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    minimum: float | None = None
    maximum: float | None = None
    unique: bool = False
    secret: bool = False
    strip: bool = True


def _length_bounds(min_length: int | None, max_length: int | None):
    def check(value: str) -> str:
        if min_length is not None and len(value) < min_length:
            raise ValueError(f"Value should have at least {min_length} characters")
        if max_length is not None and len(value) > max_length:
            raise ValueError(f"Value should have at most {max_length} characters")
        return value

    return check


def _annotated_type(spec: FieldSpec, *, constrained: bool = True) -> Any:
    if spec.type == "string":
        if constrained:
            return Annotated[
                str,
                StringConstraints(
                    strip_whitespace=spec.strip,
                    min_length=spec.min_length,
                    max_length=spec.max_length,
                ),
            ]
        return Annotated[str, StringConstraints(strip_whitespace=spec.strip)]
    if spec.type == "email":
        email_type: Any = Annotated[EmailStr, AfterValidator(str.lower)]
        if constrained and (spec.min_length is not None or spec.max_length is not None):
            email_type = Annotated[
                email_type, AfterValidator(_length_bounds(spec.min_length, spec.max_length))
            ]
        return email_type
    if spec.type in ("integer", "number"):
        base: Any = int if spec.type == "integer" else float
        if constrained:
            return Annotated[base, Field(ge=spec.minimum, le=spec.maximum)]
        return base
    if spec.type == "boolean":
        return bool
    raise ValueError(f"Unsupported field type: {spec.type!r}")


@dataclass(frozen=True)
class RecordSchema:
    """Field declarations for one collection.

    Attributes:
        collection: Name of the collection the schema governs.
        fields: Field name to `FieldSpec`.
        closed: Reject unknown fields instead of ignoring them.
        login_field: Unique field used to look a record up at login.
    """

    collection: str
    fields: Mapping[str, FieldSpec]
    closed: bool = False
    login_field: str | None = None

    def __post_init__(self) -> None:
        secret_fields = [name for name, spec in self.fields.items() if spec.secret]
        if len(secret_fields) > 1:
            raise ValueError("A schema may declare at most one secret field")
        if any(spec.secret and spec.unique for spec in self.fields.values()):
            raise ValueError("Secret fields cannot be unique")
        if self.login_field is not None:
            login_spec = self.fields.get(self.login_field)
            if login_spec is None or not login_spec.unique:
                raise ValueError("login_field must name a unique field")

    @property
    def credential_field(self) -> str | None:
        """Name of the secret field, if the schema has one."""
        for name, spec in self.fields.items():
            if spec.secret:
                return name
        return None

    @property
    def public_fields(self) -> tuple[str, ...]:
        return tuple(name for name, spec in self.fields.items() if not spec.secret)

    @property
    def unique_fields(self) -> tuple[str, ...]:
        return tuple(name for name, spec in self.fields.items() if spec.unique)

    @cached_property
    def _create_model(self) -> type[BaseModel]:
        return self._build_model(partial=False)

    @cached_property
    def _update_model(self) -> type[BaseModel]:
        return self._build_model(partial=True)

    @cached_property
    def _adapters(self) -> dict[str, TypeAdapter[Any]]:
        return {
            name: TypeAdapter(_annotated_type(spec, constrained=False))
            for name, spec in self.fields.items()
        }

    def _build_model(self, *, partial: bool) -> type[BaseModel]:
        definitions: dict[str, Any] = {}
        for name, spec in self.fields.items():
            field_type = _annotated_type(spec)
            if spec.required and not partial:
                definitions[name] = (field_type, ...)
            elif spec.required:
                # Present-but-null is rejected; absent is left untouched.
                definitions[name] = (field_type, None)
            else:
                definitions[name] = (Optional[field_type], None)
        suffix = "Update" if partial else "Create"
        return create_model(
            f"{self.collection.title()}{suffix}",
            __config__=ConfigDict(extra="forbid" if self.closed else "ignore"),
            **definitions,
        )

    def validate(self, raw: Mapping[str, Any], *, partial: bool = False) -> dict[str, Any]:
        """Return normalized fields or raise `ValidationFailed`.

        Only fields present in `raw` appear in the result. With
        ``partial=True`` required fields may be omitted, and ``None`` on an
        optional field means "clear it".
        """
        model = self._update_model if partial else self._create_model
        try:
            instance = model.model_validate(dict(raw))
        except PydanticValidationError as err:
            raise ValidationFailed(errors_from_pydantic(err.errors())) from err
        values = instance.model_dump(exclude_unset=True)
        if not partial:
            values = {name: value for name, value in values.items() if value is not None}
        return values

    def coerce(self, name: str, value: Any, *, source: str) -> Any:
        """Coerce a single value to the declared type of `name`.

        Args:
            name: Field to coerce for; secret fields are never addressable.
            value: Raw value, typically a query-string fragment.
            source: Reported as the error's field (e.g. "filter").
        """
        if name not in self.fields or self.fields[name].secret:
            raise ValidationFailed.single(source, f"Unknown field '{name}'")
        try:
            return self._adapters[name].validate_python(value)
        except PydanticValidationError as err:
            message = err.errors()[0].get("msg", "Invalid value")
            raise ValidationFailed.single(source, f"{name}: {message}") from err

"""Extraction and classification schema helpers.

Schemas travel to the API as an OpenAI-style ``response_format``::

    {"type": "json_schema", "json_schema": {"name": ..., "schema": {...}}}

Extraction schemas describe an object; classification schemas describe a
string restricted to a ``oneOf`` list of categories.
"""

from __future__ import annotations

from collections.abc import Mapping
import copy
import json
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import MalformedJsonError, SchemaError, SchemaShapeError

FieldType = Literal["string", "number", "integer", "boolean", "array", "object", "null"]

JSON_SCHEMA_TYPE = "json_schema"


class FieldSpec(BaseModel):
    """A single field in an extraction schema."""

    model_config = ConfigDict(extra="allow")

    type: FieldType = Field(description="JSON type of the extracted value.")
    description: str | None = Field(
        default=None, description="Human-readable hint for the extractor."
    )
    items: FieldSpec | None = Field(default=None, description="Element spec for arrays.")
    properties: dict[str, FieldSpec] | None = Field(
        default=None, description="Member specs for objects."
    )

    def to_json_schema(self) -> dict[str, Any]:
        """Return the JSON-Schema fragment for this field."""
        return self.model_dump(exclude_none=True)


FieldSpec.model_rebuild()


class ExtractionSchema(BaseModel):
    """Named object schema used to shape information extraction."""

    name: str = Field(default="document_schema", min_length=1)
    properties: dict[str, FieldSpec] = Field(default_factory=dict)
    required: list[str] | None = None
    raw: dict[str, Any] | None = Field(
        default=None,
        exclude=True,
        repr=False,
        description="json_schema member as received; sent unchanged when set.",
    )

    def json_schema(self) -> dict[str, Any]:
        """Return the ``json_schema`` member of the response format."""
        if self.raw is not None:
            return copy.deepcopy(self.raw)
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {
                key: spec.to_json_schema() for key, spec in self.properties.items()
            },
        }
        if self.required is not None:
            schema["required"] = list(self.required)
        return {"name": self.name, "schema": schema}

    def response_format(self) -> dict[str, Any]:
        """Return the full ``response_format`` payload."""
        return {"type": JSON_SCHEMA_TYPE, "json_schema": self.json_schema()}


class ClassificationCategory(BaseModel):
    """One mutually exclusive classification label."""

    value: str = Field(..., min_length=1)
    description: str = ""


class ClassificationSchema(BaseModel):
    """Ordered category list used to shape document classification."""

    name: str = Field(default="document-classify", min_length=1)
    categories: list[ClassificationCategory] = Field(..., min_length=1)
    raw: dict[str, Any] | None = Field(
        default=None,
        exclude=True,
        repr=False,
        description="json_schema member as received; sent unchanged when set.",
    )

    @property
    def values(self) -> list[str]:
        """Category labels in order."""
        return [category.value for category in self.categories]

    def json_schema(self) -> dict[str, Any]:
        """Return the ``json_schema`` member of the response format."""
        if self.raw is not None:
            return copy.deepcopy(self.raw)
        return {
            "name": self.name,
            "schema": {
                "type": "string",
                "oneOf": [
                    {"const": category.value, "description": category.description}
                    for category in self.categories
                ],
            },
        }

    def response_format(self) -> dict[str, Any]:
        """Return the full ``response_format`` payload."""
        return {"type": JSON_SCHEMA_TYPE, "json_schema": self.json_schema()}


def build_extraction_schema(
    fields: Mapping[str, FieldSpec | Mapping[str, Any]],
    name: str = "document_schema",
) -> ExtractionSchema:
    """Build an extraction schema from a field mapping.

    Args:
        fields: Field name to spec (model or plain mapping).
        name: Schema name.

    Returns:
        Extraction schema.
    """
    return ExtractionSchema(
        name=name,
        properties={key: FieldSpec.model_validate(spec) for key, spec in fields.items()},
    )


def schema_to_json(schema: ExtractionSchema | ClassificationSchema) -> str:
    """Serialize a schema to the compact text accepted by ``schema_json``."""
    return json.dumps(schema.response_format(), ensure_ascii=False)


def validate_schema_shape(candidate: object) -> None:
    """Check that an object is a well-formed extraction ``response_format``.

    Args:
        candidate: Decoded JSON value.

    Raises:
        SchemaShapeError: With a message naming the first violated rule.
    """
    json_schema = _validate_envelope(candidate)
    schema = json_schema["schema"]
    if schema.get("type") != "object":
        raise SchemaShapeError('Schema type must be "object"')
    properties = schema.get("properties")
    if not isinstance(properties, dict) or not properties:
        raise SchemaShapeError('Schema must have a non-empty "properties" object')


def validate_classification_shape(candidate: object) -> None:
    """Check that an object is a well-formed classification ``response_format``.

    Args:
        candidate: Decoded JSON value.

    Raises:
        SchemaShapeError: With a message naming the first violated rule.
    """
    json_schema = _validate_envelope(candidate)
    schema = json_schema["schema"]
    if schema.get("type") != "string":
        raise SchemaShapeError('Classification schema type must be "string"')
    options = schema.get("oneOf")
    if not isinstance(options, list) or not options:
        raise SchemaShapeError('Classification schema must have a non-empty "oneOf" list')
    for option in options:
        if not isinstance(option, dict) or not isinstance(option.get("const"), str):
            raise SchemaShapeError('Each "oneOf" entry must have a string "const"')


def parse_schema_json(text: str) -> ExtractionSchema:
    """Parse and validate extraction schema text.

    Args:
        text: JSON text in ``response_format`` form.

    Returns:
        Extraction schema.

    Raises:
        MalformedJsonError: If the text is not JSON.
        SchemaShapeError: If the structure is invalid.
    """
    data = _loads(text)
    validate_schema_shape(data)
    return extraction_schema_from_json_schema(data["json_schema"])


def parse_classification_schema_json(text: str) -> ClassificationSchema:
    """Parse and validate classification schema text.

    Args:
        text: JSON text in ``response_format`` form.

    Returns:
        Classification schema.

    Raises:
        MalformedJsonError: If the text is not JSON.
        SchemaShapeError: If the structure is invalid.
    """
    data = _loads(text)
    validate_classification_shape(data)
    return classification_schema_from_json_schema(data["json_schema"])


def extraction_schema_from_json_schema(json_schema: Mapping[str, Any]) -> ExtractionSchema:
    """Convert a ``json_schema`` member into an extraction schema.

    The member is kept verbatim so keys the model does not describe
    (``strict``, ``additionalProperties``, ...) still reach the API.

    Raises:
        SchemaShapeError: If a field spec is not understood.
    """
    schema = json_schema.get("schema") or {}
    try:
        return ExtractionSchema(
            name=json_schema.get("name") or "document_schema",
            properties=schema.get("properties") or {},
            required=schema.get("required"),
            raw=copy.deepcopy(dict(json_schema)),
        )
    except ValidationError as exc:
        raise SchemaShapeError(f"Invalid field definition: {exc}") from exc


def classification_schema_from_json_schema(
    json_schema: Mapping[str, Any],
) -> ClassificationSchema:
    """Convert a ``json_schema`` member into a classification schema.

    The member is kept verbatim, including extra keys on ``oneOf`` entries.

    Raises:
        SchemaShapeError: If the categories are not understood.
    """
    schema = json_schema.get("schema") or {}
    try:
        return ClassificationSchema(
            name=json_schema.get("name") or "document-classify",
            categories=[
                ClassificationCategory(
                    value=option.get("const"),
                    description=option.get("description") or "",
                )
                for option in schema.get("oneOf") or []
            ],
            raw=copy.deepcopy(dict(json_schema)),
        )
    except ValidationError as exc:
        raise SchemaShapeError(f"Invalid classification categories: {exc}") from exc


def load_extraction_schema(path: Path | str) -> ExtractionSchema:
    """Load an extraction schema saved on disk.

    Accepts a full ``response_format``, a ``generate_schema`` output document,
    or a bare ``json_schema`` object.
    """
    json_schema = _unwrap_json_schema(read_schema_file(path))
    validate_schema_shape({"type": JSON_SCHEMA_TYPE, "json_schema": json_schema})
    return extraction_schema_from_json_schema(json_schema)


def load_classification_schema(path: Path | str) -> ClassificationSchema:
    """Load a classification schema saved on disk (wrapped or bare)."""
    json_schema = _unwrap_json_schema(read_schema_file(path))
    validate_classification_shape({"type": JSON_SCHEMA_TYPE, "json_schema": json_schema})
    return classification_schema_from_json_schema(json_schema)


def read_schema_file(path: Path | str) -> object:
    """Read and decode a schema file.

    Raises:
        SchemaError: If the file is missing or unreadable.
        MalformedJsonError: If the file is not JSON.
    """
    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise SchemaError(f"Schema file not found: {resolved}") from exc
    except OSError as exc:
        raise SchemaError(f"Failed to read schema file {resolved}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedJsonError(f"Invalid JSON in schema file {resolved}: {exc}") from exc


def _loads(text: str) -> object:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedJsonError(f"Invalid JSON: {exc}") from exc


def _validate_envelope(candidate: object) -> dict[str, Any]:
    """Check the rules shared by extraction and classification schemas."""
    if not isinstance(candidate, dict):
        raise SchemaShapeError("Schema must be an object")
    if candidate.get("type") != JSON_SCHEMA_TYPE:
        raise SchemaShapeError('Schema must have type "json_schema"')
    json_schema = candidate.get("json_schema")
    if not isinstance(json_schema, dict):
        raise SchemaShapeError('Schema must have "json_schema" property')
    name = json_schema.get("name")
    if not isinstance(name, str) or not name:
        raise SchemaShapeError('Schema must have a "name" property')
    if not isinstance(json_schema.get("schema"), dict):
        raise SchemaShapeError('Schema must have a "schema" property')
    return json_schema


def _unwrap_json_schema(document: object) -> dict[str, Any]:
    if isinstance(document, dict) and isinstance(document.get("generated_schema"), dict):
        document = document["generated_schema"]
    if not isinstance(document, dict):
        raise SchemaShapeError("Schema file must contain a JSON object")
    if document.get("type") == JSON_SCHEMA_TYPE and isinstance(
        document.get("json_schema"), dict
    ):
        return document["json_schema"]
    return document


# Pre-built templates for common documents.

COMMON_FIELDS: dict[str, FieldSpec] = {
    "company_name": FieldSpec(
        type="string", description="Name of the company or organization"
    ),
    "invoice_number": FieldSpec(type="string", description="Invoice or document number"),
    "date": FieldSpec(type="string", description="Date in YYYY-MM-DD format"),
    "total_amount": FieldSpec(type="number", description="Total monetary amount"),
    "address": FieldSpec(type="string", description="Full address"),
    "email": FieldSpec(type="string", description="Email address"),
    "phone": FieldSpec(type="string", description="Phone number"),
    "items": FieldSpec(
        type="array",
        description="List of items",
        items=FieldSpec(
            type="object",
            properties={
                "name": FieldSpec(type="string", description="Item name"),
                "quantity": FieldSpec(type="number", description="Quantity"),
                "price": FieldSpec(type="number", description="Unit price"),
            },
        ),
    ),
}

COMMON_SCHEMAS: dict[str, ExtractionSchema] = {
    "invoice": build_extraction_schema(
        {
            "company_name": COMMON_FIELDS["company_name"],
            "invoice_number": COMMON_FIELDS["invoice_number"],
            "invoice_date": COMMON_FIELDS["date"],
            "total_amount": COMMON_FIELDS["total_amount"],
            "items": COMMON_FIELDS["items"],
        }
    ),
    "receipt": build_extraction_schema(
        {
            "merchant_name": COMMON_FIELDS["company_name"],
            "date": COMMON_FIELDS["date"],
            "total_amount": COMMON_FIELDS["total_amount"],
            "items": COMMON_FIELDS["items"],
        }
    ),
    "business_card": build_extraction_schema(
        {
            "name": {"type": "string", "description": "Person name"},
            "company": COMMON_FIELDS["company_name"],
            "title": {"type": "string", "description": "Job title"},
            "email": COMMON_FIELDS["email"],
            "phone": COMMON_FIELDS["phone"],
            "address": COMMON_FIELDS["address"],
        }
    ),
    "contract": build_extraction_schema(
        {
            "contract_title": {"type": "string", "description": "Title of the contract"},
            "parties": {
                "type": "array",
                "description": "Parties involved in the contract",
                "items": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string", "description": "Party name"},
                        "role": {
                            "type": "string",
                            "description": "Party role (e.g., client, vendor)",
                        },
                    },
                },
            },
            "start_date": COMMON_FIELDS["date"],
            "end_date": COMMON_FIELDS["date"],
            "value": COMMON_FIELDS["total_amount"],
        }
    ),
}

DEFAULT_CLASSIFICATION_SCHEMA = ClassificationSchema(
    name="document-classify",
    categories=[
        ClassificationCategory(
            value="invoice",
            description="Commercial invoice with itemized charges and billing information",
        ),
        ClassificationCategory(
            value="receipt", description="Receipt showing purchase transaction details"
        ),
        ClassificationCategory(
            value="contract", description="Legal agreement or contract document"
        ),
        ClassificationCategory(value="cv", description="Curriculum vitae or resume"),
        ClassificationCategory(
            value="bank_statement",
            description="Bank account statement showing transactions",
        ),
        ClassificationCategory(
            value="tax_document", description="Tax forms or tax-related documents"
        ),
        ClassificationCategory(
            value="insurance", description="Insurance policy or claims document"
        ),
        ClassificationCategory(
            value="business_card", description="Business card with contact information"
        ),
        ClassificationCategory(value="letter", description="Formal or business letter"),
        ClassificationCategory(value="form", description="Application form or survey form"),
        ClassificationCategory(value="certificate", description="Certificate or diploma"),
        ClassificationCategory(
            value="report", description="Business report or analytical document"
        ),
        ClassificationCategory(
            value="others", description="Other document types not listed above"
        ),
    ],
)

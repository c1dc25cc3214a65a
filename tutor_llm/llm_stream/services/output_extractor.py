"""
Structured Output Extractor

Turns raw model text into a validated structured value.

Models frequently wrap JSON in Markdown code fences and, when they run out of
output tokens, stop mid-value. The extractor strips the fences, tells a
truncated answer apart from a malformed one, parses with orjson and validates
the result against an optional pydantic-compatible schema.

Algorithm:
    1. Trim whitespace
    2. Strip a leading fence: a language-tagged fence through its newline,
       otherwise the bare marker
    3. Strip a trailing fence, trim again
    4. JSON shapes only: the text must end with ``}`` (object) or ``]``
       (array), otherwise the output was cut short
    5. Parse; failure means malformed output
    6. Check required keys and the schema

Author: Senior Solution Architect
Date: 2025-12-06
"""

import re
from collections.abc import Sequence
from functools import lru_cache
from typing import Any

import orjson
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from tutor_llm.core.config.constants import ExpectedShape
from tutor_llm.core.exceptions import (
    MalformedOutputError,
    SchemaValidationError,
    TruncatedOutputError,
)

CODE_FENCE = "```"

# A fence line like ```json or ```JSON5 or a bare ```
_LANGUAGE_TAG = re.compile(r"^[A-Za-z0-9_+.\-]*$")

_CLOSING_BRACKET = {
    ExpectedShape.JSON_OBJECT: "}",
    ExpectedShape.JSON_ARRAY: "]",
}

def strip_code_fences(raw_text: str) -> str:
    """Remove one surrounding Markdown code fence, if present."""
    text = raw_text.strip()

    if text.startswith(CODE_FENCE):
        newline = text.find("\n")
        if newline != -1 and _LANGUAGE_TAG.match(text[len(CODE_FENCE):newline].strip()):
            text = text[newline + 1:]
        else:
            text = text[len(CODE_FENCE):]

    if text.endswith(CODE_FENCE):
        text = text[: -len(CODE_FENCE)]

    return text.strip()


@lru_cache(maxsize=128)
def _adapter_for(schema: Any) -> TypeAdapter:
    return TypeAdapter(schema)


def _error_field(error: PydanticValidationError) -> str | None:
    errors = error.errors()
    if not errors:
        return None
    location = errors[0].get("loc", ())
    return ".".join(str(part) for part in location) or None


def _check_required_keys(value: Any, required_keys: Sequence[str]) -> None:
    if not required_keys:
        return

    if isinstance(value, dict):
        for key in required_keys:
            if key not in value:
                raise SchemaValidationError(f"Missing required field '{key}'", field=key)
        return

    for index, item in enumerate(value):
        if not isinstance(item, dict):
            raise SchemaValidationError(f"Item {index} is not an object", field=f"[{index}]")
        for key in required_keys:
            if key not in item:
                raise SchemaValidationError(
                    f"Missing required field '{key}' in item {index}", field=f"[{index}].{key}"
                )


class StructuredOutputExtractor:
    """
    Extract and validate structured values from model text.

    Stateless; ``extract`` is a pure function of its arguments.

    Usage:
        extractor = StructuredOutputExtractor()
        data = extractor.extract(text, ExpectedShape.JSON_OBJECT, schema=QuizPayload)
    """

    def extract(
        self,
        raw_text: str,
        expected_shape: ExpectedShape,
        schema: Any = None,
        required_keys: Sequence[str] = (),
    ) -> Any:
        """
        Extract a value of ``expected_shape`` from ``raw_text``.

        Args:
            raw_text: Model output, possibly fenced or truncated
            expected_shape: FREE_TEXT, JSON_OBJECT or JSON_ARRAY
            schema: Optional pydantic model class or type (e.g. ``list[str]``)
            required_keys: Top-level keys that must be present (checked per
                item for arrays)

        Returns:
            The trimmed text for FREE_TEXT; otherwise the parsed value, or
            the schema-validated value when a schema is given.

        Raises:
            TruncatedOutputError: JSON text does not end with the closing bracket
            MalformedOutputError: Text looks complete but is not valid JSON
            SchemaValidationError: Missing key or schema violation
        """
        expected_shape = ExpectedShape(expected_shape)

        if expected_shape is ExpectedShape.FREE_TEXT:
            return raw_text.strip()

        text = strip_code_fences(raw_text)

        closing = _CLOSING_BRACKET[expected_shape]
        if not text.endswith(closing):
            raise TruncatedOutputError(
                "Model output ended before the JSON value was complete",
                details={
                    "expected_shape": expected_shape.value,
                    "expected_ending": closing,
                    "output_length": len(text),
                    "output_tail": text[-40:],
                },
            )

        try:
            value = orjson.loads(text)
        except orjson.JSONDecodeError as e:
            raise MalformedOutputError(
                f"Model output is not valid JSON: {e}",
                details={"expected_shape": expected_shape.value, "output_head": text[:80]},
            ) from e

        _check_required_keys(value, required_keys)

        if schema is None:
            return value

        try:
            return _adapter_for(schema).validate_python(value)
        except PydanticValidationError as e:
            field = _error_field(e)
            raise SchemaValidationError(
                f"Output failed schema validation at '{field}': {e.errors()[0].get('msg', '')}",
                field=field,
                details={"error_count": e.error_count()},
            ) from e


_default_extractor = StructuredOutputExtractor()


def extract(
    raw_text: str,
    expected_shape: ExpectedShape,
    schema: Any = None,
    required_keys: Sequence[str] = (),
) -> Any:
    """Module-level shortcut for ``StructuredOutputExtractor().extract``."""
    return _default_extractor.extract(raw_text, expected_shape, schema, required_keys)

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, ConfigDict, field_serializer
from pydantic.alias_generators import to_camel


class CamelCaseBaseModel(BaseModel):
    """
    Base model with camelCase field aliases and automatic serialization.

    - Input: camelCase keys from the client are converted to snake_case for validation.
    - Internal: snake_case fields are used throughout the Python codebase.
    - Output: call `model_dump(by_alias=True)` to serialize fields back to camelCase
    for frontend responses.
    - Auto-serialization: Enums become their values, dates become ISO strings,
    Decimals become floats and nested models are dumped with camelCase keys.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_serializer("*")
    def serialize_any(self, value):
        """Global serializer for all fields with comprehensive type handling"""

        if value is None:
            return None

        # Nested response models
        if isinstance(value, BaseModel):
            return value.model_dump(by_alias=True)

        # Handle Enum objects
        if isinstance(value, Enum):
            return value.value

        # Handle datetime objects (must come before date check)
        if isinstance(value, datetime):
            return value.isoformat()

        # Handle date objects
        if isinstance(value, date):
            return value.isoformat()

        # Money columns
        if isinstance(value, Decimal):
            return float(value)

        # Handle lists and tuples recursively
        if isinstance(value, (list, tuple)):
            return [self.serialize_any(item) for item in value]

        # Handle dictionaries recursively
        if isinstance(value, dict):
            return {key: self.serialize_any(val) for key, val in value.items()}

        # Handle other primitive types
        if isinstance(value, (str, int, float, bool)):
            return value

        return str(value)

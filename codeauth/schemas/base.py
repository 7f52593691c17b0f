from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        arbitrary_types_allowed=True,
        extra="forbid",
    )


class RecordSchema(BaseSchema):
    """Immutable record handed across the engine boundary."""

    model_config = ConfigDict(frozen=True)

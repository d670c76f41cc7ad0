from pydantic import BaseModel, Field


class FieldError(BaseModel):
    field: str = Field(description="Field name")
    message: str = Field(description="Error message")


class StandardError(BaseModel):
    detail: str = Field(description="Human-readable error message")
    error: str | None = Field(default=None, description="Error code")


class ValidationError(BaseModel):
    error: str = Field(default="validation_error", description="Error code")
    message: str = Field(description="Human-readable error message")
    fields: list[FieldError] = Field(description="Field-specific errors")

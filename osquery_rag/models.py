"""
Pydantic data models for the query API.

These models describe the shape of the requests and responses accepted by
the REST API.  A question goes in; a bundle of four osquery SQL statements,
one per target platform, comes out.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QueryRequest(BaseModel):
    """Schema for a question posed by the client.

    The caller supplies a single string field called ``query``.  Blank
    questions are rejected so that the model is never called for them.
    """

    query: str = Field(..., min_length=1, description="Question in natural language")

    @field_validator("query", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class SQLBundle(BaseModel):
    """The four platform queries returned by the ``/query`` endpoint.

    Every field must be present and must be a string.  An empty string
    means the question cannot be answered from the schema on that
    platform.  Unknown keys are refused rather than dropped, so a bundle
    always serializes to exactly these four properties.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    macOSQuery: str = Field(..., description="SQL for macOS hosts")
    windowsQuery: str = Field(..., description="SQL for Windows hosts")
    linuxQuery: str = Field(..., description="SQL for Linux hosts")
    chromeOSQuery: str = Field(..., description="SQL for ChromeOS hosts")


class ErrorResponse(BaseModel):
    """Body returned for any non-200 response."""

    error: str

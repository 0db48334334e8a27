"""
Request and response shapes of the start / status / cancel action surface,
plus the property search criteria consumed by the read API.
"""

from pydantic import BaseModel, Field


class ImportProgress(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0


class ImportResponse(BaseModel):
    """
    Structured result returned by every action.

    Failures are reported with success=False and a message, never as raw exceptions.
    """

    success: bool
    message: str
    import_id: int | None = Field(None, serialization_alias="importId")
    status: str | None = None
    progress: ImportProgress | None = None

    def to_payload(self) -> dict:
        """Serialize using the external camelCase field names."""
        return self.model_dump(by_alias=True, exclude_none=True)


class PropertySearch(BaseModel):
    """Filters for the property search read API."""

    name: str = Field(..., min_length=1)
    min_amount: float | None = Field(None, ge=0)
    max_amount: float | None = Field(None, ge=0)
    city: str | None = None
    property_type: str | None = None
    limit: int = Field(50, ge=1, le=500)

"""
Tracking Schemas

Response returned by the view tracking endpoints.
"""

from pydantic import BaseModel, Field


class TrackViewResponse(BaseModel):
    """Outcome of a view tracking request."""

    success: bool = True
    tracked: bool = Field(..., description="False when the view was a duplicate or could not be saved")
    reason: str | None = Field(None, description="Why the view was not tracked")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": True,
                "tracked": False,
                "reason": "duplicate view within 60 minute window",
            }
        }
    }

from pydantic import BaseModel, ConfigDict, Field


class ElementDetails(BaseModel):
    """Decoded text-model output for a fused element."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(..., min_length=1, max_length=40)
    description: str = Field(..., min_length=1, max_length=500)

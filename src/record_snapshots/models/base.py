from pydantic import BaseModel, ConfigDict


class ModelBase(BaseModel):
    """
    Base class for all record-snapshots models.

    Forbids unknown fields and freezes instances once built.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )


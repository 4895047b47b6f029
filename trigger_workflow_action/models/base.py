"""Base model shared by configuration and API response models."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable model that tolerates unknown API fields."""

    model_config = ConfigDict(frozen=True, extra="ignore")

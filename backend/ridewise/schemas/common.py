from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class APIModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

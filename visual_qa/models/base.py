"""Shared pydantic base for report-facing models.

Python attributes are snake_case; the JSON artifacts consumed by the
reporter use camelCase field names, so every report model serializes by
alias and accepts either spelling on input.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

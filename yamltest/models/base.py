"""Shared pydantic base for models read from camelCase YAML."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model accepting camelCase keys and snake_case attribute names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

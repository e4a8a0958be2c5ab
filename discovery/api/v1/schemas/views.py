# discovery/api/v1/schemas/views.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TrackViewIn(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: int = Field(ge=1)

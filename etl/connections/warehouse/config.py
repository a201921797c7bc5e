from pydantic import BaseModel, ConfigDict, Field


class BigQueryConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    project_id: str = Field(min_length=1)
    dataset: str = Field(min_length=1)
    key_file: str | None = None
    location: str | None = None

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class MySQLConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    host: str = Field(min_length=1)
    port: int = Field(default=3306, ge=1, le=65535)
    database: str = Field(min_length=1, validation_alias=AliasChoices("database", "database_name"))
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    charset: str = Field(default="utf8mb4", min_length=1)
    connect_timeout: int = Field(default=30, ge=1)

from pydantic import BaseModel, ConfigDict, Field

class StatusUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    status: str = Field(min_length=1)

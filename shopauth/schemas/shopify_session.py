# shopauth/schemas/shopify_session.py
from pydantic import BaseModel, Field, field_validator

class ShopifySessionBase(BaseModel):
    shop: str = Field(max_length=255)
    state: str = Field(max_length=255)
    isonline: bool
    scope: str | None = Field(default=None, max_length=1024)
    expires: int | None = None
    onlineaccessinfo: str | None = None
    accesstoken: str | None = Field(default=None, max_length=255)

class ShopifySessionCreate(ShopifySessionBase):
    id: str = Field(min_length=1, max_length=255)

class ShopifySessionUpdate(BaseModel):
    shop: str | None = Field(default=None, max_length=255)
    state: str | None = Field(default=None, max_length=255)
    isonline: bool | None = None
    scope: str | None = Field(default=None, max_length=1024)
    expires: int | None = None
    onlineaccessinfo: str | None = None
    accesstoken: str | None = Field(default=None, max_length=255)

    # omitted means unchanged; the columns themselves are NOT NULL
    @field_validator("shop", "state", "isonline")
    @classmethod
    def _not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

class ShopifySessionRead(ShopifySessionCreate):
    model_config = {"from_attributes": True}

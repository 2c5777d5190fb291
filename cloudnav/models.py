from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PASSWORD_EXPIRY_DAYS = 7


class Category(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str


class Link(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    title: str
    url: str
    description: str = ""
    category_id: str = Field(alias="categoryId")
    created_at: int = Field(alias="createdAt")
    pinned: bool = False
    icon: str | None = None


class AppData(BaseModel):
    """The single document holding every bookmark and category."""

    model_config = ConfigDict(extra="allow")

    links: List[Dict[str, Any]] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)


class LinkIn(BaseModel):
    title: str | None = None
    url: str | None = None
    description: str | None = None
    category_id: str | None = Field(default=None, alias="categoryId")


class WebDavConfig(BaseModel):
    url: str | None = None
    username: str | None = None
    password: str | None = None


class WebDavRequest(BaseModel):
    operation: str | None = None
    config: WebDavConfig | None = None
    payload: Any = None
    filename: str | None = None

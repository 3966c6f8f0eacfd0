"""
Pydantic models for raw crawler records.
These carry whatever an upstream page or feed exposed, before normalization.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator


class FeedEntry(BaseModel):
    title: str = ""
    link: str = ""
    guid: str = ""
    summary: str = ""
    content_encoded: str = ""
    categories: List[str] = []
    published_at: Optional[datetime] = None
    enclosure_images: List[str] = []
    media_content: List[str] = []
    media_thumbnails: List[str] = []
    itunes_image: Optional[str] = None

    @field_validator("title", "link", "guid", mode="before")
    @classmethod
    def _trim(cls, value: Optional[str]) -> str:
        return (value or "").strip()


class ScrapedCard(BaseModel):
    """One product/news card found on a listing page."""

    title: str = ""
    href: str = ""
    image: Optional[str] = None
    date_text: Optional[str] = None
    price_text: Optional[str] = None
    summary: Optional[str] = None

    @field_validator("href", mode="before")
    @classmethod
    def _trim_href(cls, value: Optional[str]) -> str:
        return (value or "").strip()

"""Domain models shared by the feed engine components."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from shared.constants import MAX_KEYWORDS


class CatalogItem(BaseModel):
    """A read-only product snapshot as returned by one catalog query."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    title: str = ""
    price_mad: float = 0.0
    compare_at_mad: float | None = None
    promo_price_mad: float | None = None
    promo_starts_at: datetime | None = None
    promo_ends_at: datetime | None = None
    photos: list[str] | None = None
    rating_avg: float | None = None
    reviews_count: int | None = None
    orders_count: int | None = None
    free_shipping: bool | None = None
    shop_owner: str | None = None
    keywords: str | None = None
    city: str | None = None
    created_at: datetime | None = None
    video_url: str | None = None
    video_poster_url: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("promo_starts_at", "promo_ends_at", "created_at")
    @classmethod
    def assume_utc(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CatalogItem":
        """Build an item from a raw catalog row, normalizing media columns."""
        photo = row.get("photo")
        photos = row.get("photos") or row.get("images")
        if photos is None and photo is not None:
            photos = [photo] if isinstance(photo, str) else photo

        videos = row.get("videos")
        video_urls = row.get("video_urls")
        video_url = (
            row.get("video_url")
            or (videos[0] if isinstance(videos, list) and videos else None)
            or (video_urls[0] if isinstance(video_urls, list) and video_urls else None)
        )
        poster = row.get("video_poster_url") or row.get("video_poster") or row.get("poster")

        return cls.model_validate(
            {
                **row,
                "photos": photos,
                "video_url": video_url,
                "video_poster_url": poster,
            }
        )

    def is_promo_active(self, now: datetime | None = None) -> bool:
        """A promo counts only inside [promo_starts_at, promo_ends_at)."""
        if not self.promo_price_mad or self.promo_price_mad <= 0:
            return False
        if self.promo_starts_at is None or self.promo_ends_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.promo_starts_at <= now < self.promo_ends_at

    def display_price(self, now: datetime | None = None) -> float:
        if self.is_promo_active(now):
            return float(self.promo_price_mad)
        if self.compare_at_mad is not None and self.compare_at_mad > self.price_mad:
            return float(self.compare_at_mad)
        return float(self.price_mad)

    def keyword_list(self) -> list[str]:
        return [k.strip() for k in (self.keywords or "").split(",") if k.strip()][:MAX_KEYWORDS]


@dataclass(frozen=True)
class RecencyEntry:
    """One opened product in the browsing log."""

    product_id: str
    viewed_at_ms: int
    extra: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class CategoryPrimaryLink:
    """A product's primary category, resolved per personalization run."""

    product_id: str
    category_id: str
    path: str
    label: str


@dataclass(frozen=True)
class AffinityRail:
    """A titled recommendation rail. Never constructed with zero items."""

    title: str
    items: tuple[CatalogItem, ...]

    def __post_init__(self) -> None:
        if not self.items:
            raise ValueError("a rail must hold at least one item")


@dataclass(frozen=True)
class PinnedCategoryPath:
    path: str
    pinned_at_ms: int


@dataclass(frozen=True)
class CityPreference:
    city: str
    region: str | None = None


@dataclass(frozen=True)
class CategoryCard:
    """A top-level category shortcut shown above the feed."""

    id: str
    name: str
    href: str
    image: str | None = None

"""Image records from the two providers and their shared card projection.

Unsplash photos and Pinterest pins arrive with different shapes. Each is modelled as its
own record type, tagged by ``source``, and both project to an ``ImageCard`` carrying just
what the grid and the detail view render.
"""

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

UNKNOWN_ARTIST = "Unknown Artist"


class ImageSource(str, Enum):
    unsplash = "unsplash"
    pinterest = "pinterest"


class ImageCard(BaseModel):
    """Rendering-facing projection shared by every record type."""

    source: ImageSource
    id: str
    display_url: str
    attribution: str
    link: Optional[str] = None
    alt_text: Optional[str] = None


class PhotoUser(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None


class PhotoRecord(BaseModel):
    """A photo from the Unsplash search API."""

    source: Literal["unsplash"] = "unsplash"
    id: str
    urls: Dict[str, str]
    links: Dict[str, str] = Field(default_factory=dict)
    user: Optional[PhotoUser] = None
    alt_description: Optional[str] = None
    description: Optional[str] = None

    def card(self) -> ImageCard:
        display_url = self.urls.get("regular") or next(iter(self.urls.values()), "")
        attribution = (self.user.name if self.user else None) or UNKNOWN_ARTIST
        return ImageCard(
            source=ImageSource.unsplash,
            id=self.id,
            display_url=display_url,
            attribution=attribution,
            link=self.links.get("html"),
            alt_text=self.alt_description or self.description,
        )


class PinImage(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None


class PinMedia(BaseModel):
    media_type: Optional[str] = None
    images: Dict[str, PinImage] = Field(default_factory=dict)


class PinOwner(BaseModel):
    username: Optional[str] = None


class PinRecord(BaseModel):
    """A pin from the Pinterest v5 board pins API."""

    source: Literal["pinterest"] = "pinterest"
    id: str
    title: Optional[str] = None
    description: Optional[str] = None
    alt_text: Optional[str] = None
    link: Optional[str] = None
    image_url: Optional[str] = None
    media: Optional[PinMedia] = None
    board_owner: Optional[PinOwner] = None

    def largest_image_url(self) -> Optional[str]:
        if self.media is None or not self.media.images:
            return None
        largest = max(
            self.media.images.values(),
            key=lambda image: (image.width or 0) * (image.height or 0),
        )
        return largest.url

    def card(self) -> ImageCard:
        owner = self.board_owner.username if self.board_owner else None
        return ImageCard(
            source=ImageSource.pinterest,
            id=self.id,
            display_url=self.image_url or self.largest_image_url() or "",
            attribution=owner or UNKNOWN_ARTIST,
            link=self.link or f"https://www.pinterest.com/pin/{self.id}/",
            alt_text=self.alt_text or self.title or self.description,
        )


ImageRecord = Annotated[Union[PhotoRecord, PinRecord], Field(discriminator="source")]

_image_record_adapter: TypeAdapter[Union[PhotoRecord, PinRecord]] = TypeAdapter(
    ImageRecord
)


def classify_source(data: Mapping[str, Any]) -> Optional[ImageSource]:
    """Guess the provider of an untagged record from its shape."""
    if "urls" in data:
        return ImageSource.unsplash
    if "media" in data or "image_url" in data:
        return ImageSource.pinterest
    return None


def parse_image_record(data: Mapping[str, Any]) -> Union[PhotoRecord, PinRecord]:
    """
    Validate a record sent by the client into its tagged type.

    Records relayed verbatim from a provider carry no ``source`` field, so the tag is filled
    in from the record's shape when it is missing.

    Raises:
        ValueError: When the provider cannot be determined or the record is invalid.
    """
    if "source" not in data:
        source = classify_source(data)
        if source is None:
            raise ValueError("Unrecognized image record")
        data = {**data, "source": source.value}
    return _image_record_adapter.validate_python(data)

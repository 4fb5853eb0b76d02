"""
Wire models for the enhancement server
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from .codec import decode_image_data, encode_image_data
from .settings import EnhancementSettings


class EnhancementRequest(BaseModel):
    """Body of POST {base_url}/colorize-image-data"""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    image_name: Optional[str] = Field(None, alias="imgName")
    image_data: str = Field(..., alias="imgData")
    image_url: Optional[str] = Field(None, alias="imgURL")
    source_id: Optional[str] = Field(None, alias="mangaSource")
    title: str = Field(..., alias="mangaTitle")
    chapter_label: str = Field(..., alias="mangaChapter")

    colorize: bool
    denoise: bool
    upscale: bool
    denoise_sigma: int = Field(..., alias="denoiseSigma", ge=0, le=150)
    cache: bool

    @classmethod
    def build(
        cls,
        image_name: Optional[str],
        image_bytes: bytes,
        image_url: Optional[str],
        source_id: Optional[str],
        title: str,
        chapter_label: str,
        settings: EnhancementSettings
    ) -> "EnhancementRequest":
        """Assemble a request from raw image bytes and a settings snapshot"""
        return cls(
            image_name=image_name,
            image_data=encode_image_data(image_bytes),
            image_url=image_url,
            source_id=source_id,
            title=title,
            chapter_label=chapter_label,
            colorize=settings.use_colorizer,
            denoise=settings.use_denoiser,
            upscale=settings.use_upscaler,
            denoise_sigma=settings.denoiser_sigma,
            cache=settings.use_server_cache,
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class EnhancementResult(BaseModel):
    """Decoded server response; only exists when colorImgData is valid base64"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    color_image_data: str = Field(..., alias="colorImgData")

    _image_bytes: bytes = PrivateAttr(default=b"")

    @model_validator(mode="after")
    def _decode_image(self) -> "EnhancementResult":
        # Invalid base64 surfaces as a ValidationError
        self._image_bytes = decode_image_data(self.color_image_data)
        return self

    @property
    def image_bytes(self) -> bytes:
        return self._image_bytes

    @property
    def size_bytes(self) -> int:
        return len(self._image_bytes)

"""
输出格式与编码器

每种输出格式对应一个编码器条目，编码统一经过 encode_image
"""

import io
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Union

from PIL import Image

from imagehelper.core.exceptions import EncodeError, UnsupportedFormatError


class ImageFormat(Enum):
    """支持的输出格式"""
    PNG = "png"
    JPEG = "jpeg"
    BMP = "bmp"

    @classmethod
    def from_string(cls, format_str: Union[str, "ImageFormat"]) -> "ImageFormat":
        """从字符串创建格式枚举"""
        if isinstance(format_str, cls):
            return format_str
        if not isinstance(format_str, str):
            raise UnsupportedFormatError(format_str, cls.names())

        normalized = format_str.strip().lower().lstrip(".")
        if normalized == "jpg":
            normalized = "jpeg"
        for fmt in cls:
            if fmt.value == normalized:
                return fmt
        raise UnsupportedFormatError(format_str, cls.names())

    @classmethod
    def names(cls) -> list:
        return [fmt.value for fmt in cls]

    @property
    def extension(self) -> str:
        return self.value

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def encoder(self) -> "Encoder":
        return ENCODERS[self]


@dataclass(frozen=True)
class Encoder:
    """Pillow编码参数"""
    pillow_format: str
    # 容器能直接保存的像素模式，其他模式先转换
    modes: FrozenSet[str]
    fallback_mode: str
    alpha_fallback_mode: str
    options: Dict[str, Any] = field(default_factory=dict)

    def prepare(self, img: Image.Image) -> Image.Image:
        if img.mode in self.modes:
            return img
        has_alpha = img.mode in ("RGBA", "LA", "PA") or (
            img.mode == "P" and "transparency" in img.info
        )
        return img.convert(self.alpha_fallback_mode if has_alpha else self.fallback_mode)


ENCODERS: Dict[ImageFormat, Encoder] = {
    ImageFormat.PNG: Encoder(
        pillow_format="PNG",
        modes=frozenset({"1", "L", "LA", "P", "RGB", "RGBA", "I", "I;16"}),
        fallback_mode="RGB",
        alpha_fallback_mode="RGBA",
    ),
    ImageFormat.JPEG: Encoder(
        pillow_format="JPEG",
        modes=frozenset({"L", "RGB", "CMYK"}),
        fallback_mode="RGB",
        alpha_fallback_mode="RGB",
    ),
    ImageFormat.BMP: Encoder(
        pillow_format="BMP",
        modes=frozenset({"1", "L", "P", "RGB", "RGBA"}),
        fallback_mode="RGB",
        alpha_fallback_mode="RGBA",
    ),
}


def encode_image(img: Image.Image, image_format: ImageFormat, jpeg_quality: int = 95) -> bytes:
    """按格式编码图像"""
    encoder = image_format.encoder
    options = dict(encoder.options)
    if image_format is ImageFormat.JPEG:
        options["quality"] = jpeg_quality

    prepared = encoder.prepare(img)
    output = io.BytesIO()
    try:
        prepared.save(output, format=encoder.pillow_format, **options)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(image_format.value, str(e)) from e
    finally:
        if prepared is not img:
            prepared.close()
    return output.getvalue()

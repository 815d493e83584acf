"""
图像变换操作

每种操作是一个数据类：构造时校验参数，apply 对解码后的图像执行一次变换。
GenerateQrCode 没有源图像，由 render 直接生成像素。
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Union

import qrcode
from qrcode.exceptions import DataOverflowError
from PIL import Image, ImageDraw, ImageFilter, ImageFont, ImageOps

from imagehelper.core.config import Settings
from imagehelper.core.exceptions import FontResolutionError, ParameterError


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _require_positive(name: str, value) -> None:
    if value is None or value <= 0:
        raise ParameterError(f"{name} must be positive, got {value}", parameter=name, value=value)


class FlipAxis(str, Enum):
    """翻转方向"""
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class ImageOperation:
    """操作基类"""
    kind: ClassVar[str] = "unknown"
    requires_source: ClassVar[bool] = True

    def apply(self, img: Image.Image, settings: Settings) -> Image.Image:
        raise NotImplementedError


@dataclass(frozen=True)
class Resize(ImageOperation):
    """缩放到精确尺寸，不保持纵横比"""
    width: int
    height: int
    kind: ClassVar[str] = "resize"

    def __post_init__(self):
        _require_positive("width", self.width)
        _require_positive("height", self.height)

    def apply(self, img, settings):
        return img.resize((self.width, self.height), Image.Resampling.LANCZOS)


@dataclass(frozen=True)
class ResizeByPercentage(ImageOperation):
    """按比例缩放，尺寸向下取整"""
    percentage: float
    kind: ClassVar[str] = "resize_by_percentage"

    def __post_init__(self):
        _require_positive("percentage", self.percentage)

    def apply(self, img, settings):
        new_width = int(img.width * self.percentage)
        new_height = int(img.height * self.percentage)
        if new_width < 1 or new_height < 1:
            raise ParameterError(
                f"Scaling {img.width}x{img.height} by {self.percentage} yields an empty image",
                parameter="percentage",
                value=self.percentage,
                details={"width": img.width, "height": img.height}
            )
        return img.resize((new_width, new_height), Image.Resampling.LANCZOS)


@dataclass(frozen=True)
class ChangeFormat(ImageOperation):
    """只做格式转换"""
    kind: ClassVar[str] = "change_format"

    def apply(self, img, settings):
        return img


@dataclass(frozen=True)
class Crop(ImageOperation):
    """裁剪矩形区域，越界直接报错"""
    x: int
    y: int
    width: int
    height: int
    kind: ClassVar[str] = "crop"

    def __post_init__(self):
        if self.x < 0 or self.y < 0:
            raise ParameterError(
                f"Crop origin ({self.x}, {self.y}) must not be negative",
                parameter="x" if self.x < 0 else "y",
                value=self.x if self.x < 0 else self.y
            )
        _require_positive("width", self.width)
        _require_positive("height", self.height)

    def apply(self, img, settings):
        right = self.x + self.width
        bottom = self.y + self.height
        if right > img.width or bottom > img.height:
            raise ParameterError(
                f"Crop rectangle ({self.x}, {self.y}, {self.width}x{self.height}) "
                f"exceeds image bounds {img.width}x{img.height}",
                parameter="rectangle",
                value=[self.x, self.y, self.width, self.height],
                details={"image_width": img.width, "image_height": img.height}
            )
        return img.crop((self.x, self.y, right, bottom))


@dataclass(frozen=True)
class Rotate(ImageOperation):
    """按角度旋转（正值为顺时针），画布扩展以容纳旋转后的内容"""
    angle: float
    kind: ClassVar[str] = "rotate"

    def apply(self, img, settings):
        # PIL rotates counter-clockwise
        return img.rotate(-self.angle, resample=Image.Resampling.BICUBIC, expand=True)


@dataclass(frozen=True)
class AddWatermark(ImageOperation):
    """在左上角偏移处绘制白色文字水印"""
    text: str
    font_name: Optional[str] = None
    font_size: Optional[int] = None
    kind: ClassVar[str] = "add_watermark"

    def __post_init__(self):
        if not self.text:
            raise ParameterError("Watermark text must not be empty", parameter="text", value=self.text)
        if self.font_size is not None:
            _require_positive("font_size", self.font_size)

    def resolve_font(self, settings: Settings) -> ImageFont.FreeTypeFont:
        """按名称查找系统字体"""
        font_name = self.font_name or settings.watermark_font_name
        font_size = self.font_size or settings.watermark_font_size

        candidates = [font_name]
        if not font_name.lower().endswith((".ttf", ".otf", ".ttc")):
            candidates.append(f"{font_name}.ttf")

        for candidate in candidates:
            try:
                return ImageFont.truetype(candidate, font_size)
            except OSError:
                continue
        raise FontResolutionError(font_name, font_size)

    def apply(self, img, settings):
        font = self.resolve_font(settings)
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")
        draw = ImageDraw.Draw(img)
        draw.text(settings.watermark_offset, self.text, font=font, fill=settings.watermark_color)
        return img


@dataclass(frozen=True)
class ConvertToGrayscale(ImageOperation):
    """去饱和，保留透明通道"""
    kind: ClassVar[str] = "grayscale"

    def apply(self, img, settings):
        if _has_alpha(img):
            return img.convert("RGBA").convert("LA")
        return img.convert("L")


@dataclass(frozen=True)
class Flip(ImageOperation):
    """水平或垂直镜像"""
    axis: FlipAxis
    kind: ClassVar[str] = "flip"

    def __post_init__(self):
        try:
            object.__setattr__(self, "axis", FlipAxis(self.axis))
        except ValueError:
            raise ParameterError(
                f"Unknown flip axis: {self.axis}",
                parameter="axis",
                value=str(self.axis),
                details={"supported": [a.value for a in FlipAxis]}
            ) from None

    def apply(self, img, settings):
        if self.axis is FlipAxis.HORIZONTAL:
            return ImageOps.mirror(img)
        return ImageOps.flip(img)


@dataclass(frozen=True)
class Sharpen(ImageOperation):
    """高斯锐化，amount 为高斯半径"""
    amount: float
    kind: ClassVar[str] = "sharpen"

    def __post_init__(self):
        _require_positive("amount", self.amount)

    def apply(self, img, settings):
        if img.mode not in ("L", "RGB", "RGBA"):
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")
        return img.filter(ImageFilter.UnsharpMask(radius=self.amount, percent=150, threshold=0))


@dataclass(frozen=True)
class GenerateThumbnail(ImageOperation):
    """等比缩放到 max_dimension 见方的框内"""
    max_dimension: int
    kind: ClassVar[str] = "thumbnail"

    def __post_init__(self):
        _require_positive("max_dimension", self.max_dimension)

    def apply(self, img, settings):
        size = (self.max_dimension, self.max_dimension)
        return ImageOps.contain(img, size, method=Image.Resampling.LANCZOS)


@dataclass(frozen=True)
class GenerateQrCode(ImageOperation):
    """生成 size x size 的二维码图像"""
    text: str
    size: int
    kind: ClassVar[str] = "qr_code"
    requires_source: ClassVar[bool] = False

    def __post_init__(self):
        if not self.text:
            raise ParameterError("QR code text must not be empty", parameter="text", value=self.text)
        _require_positive("size", self.size)

    def render(self, settings: Settings) -> Image.Image:
        qr = qrcode.QRCode(
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=1,
            border=settings.qr_border,
        )
        try:
            qr.add_data(self.text)
            qr.make(fit=True)
        except (DataOverflowError, ValueError) as e:
            raise ParameterError(
                "QR code text is too long to encode",
                parameter="text",
                value=len(self.text)
            ) from e

        # matrix includes the quiet zone
        matrix = qr.get_matrix()
        modules = len(matrix)
        scale = self.size // modules
        if scale < 1:
            raise ParameterError(
                f"QR code needs at least {modules}x{modules} pixels, got {self.size}",
                parameter="size",
                value=self.size,
                details={"min_size": modules}
            )

        symbol = Image.new("L", (modules, modules), 255)
        symbol.putdata([0 if cell else 255 for row in matrix for cell in row])
        symbol = symbol.resize((modules * scale, modules * scale), Image.Resampling.NEAREST)

        canvas = Image.new("L", (self.size, self.size), 255)
        offset = (self.size - modules * scale) // 2
        canvas.paste(symbol, (offset, offset))
        symbol.close()
        return canvas.convert("RGB")

    def apply(self, img, settings):
        return self.render(settings)


Operation = Union[
    Resize,
    ResizeByPercentage,
    ChangeFormat,
    Crop,
    Rotate,
    AddWatermark,
    ConvertToGrayscale,
    Flip,
    Sharpen,
    GenerateThumbnail,
    GenerateQrCode,
]

"""
Watermark processor for listing photos.
Composites a logo and/or contact text onto a photo and re-encodes it.
"""

from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError
import io
import base64
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Tuple, Optional, List, Union, Dict, Any
import requests
import os

from ..api.config import Config
from .placement import (
    Anchor, WatermarkMode, Layout, compute_layout, font_size, logo_size,
    parse_anchor, parse_mode
)


LOGGER = logging.getLogger(__name__)

ImageSource = Union[str, bytes, Image.Image]

MIME_TYPES = {'JPEG': 'image/jpeg', 'PNG': 'image/png', 'WEBP': 'image/webp'}
TEXT_FILL = (255, 255, 255)
TEXT_STROKE = (0, 0, 0)


class ImageLoadError(ValueError):
    """Raised when an image source cannot be read"""


@dataclass
class WatermarkOptions:
    """Parameters for one composite"""
    mode: WatermarkMode = WatermarkMode.LOGO_CONTACT
    anchor: Anchor = Anchor.BOTTOM_RIGHT
    scale: float = 1.0
    opacity: float = 0.7
    contact_text: str = ''
    position: Optional[Tuple[float, float]] = None
    output_format: str = 'JPEG'
    quality: int = 90

    def __post_init__(self):
        self.mode = parse_mode(self.mode)
        self.anchor = parse_anchor(self.anchor)
        self.scale = float(self.scale)
        self.opacity = float(self.opacity)
        if self.scale <= 0:
            raise ValueError(f"scale must be positive, got {self.scale}")
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"opacity must be between 0 and 1, got {self.opacity}")
        self.output_format = (self.output_format or 'JPEG').upper()
        if self.output_format == 'JPG':
            self.output_format = 'JPEG'
        if self.output_format not in MIME_TYPES:
            raise ValueError(f"unsupported output format: {self.output_format}")


@dataclass
class PlacementSpec:
    """
    Per-image watermark settings in a batch

    Created with defaults when a file is selected, adjusted per image, and
    consumed once at export time.
    """
    filename: str
    data: bytes
    mode: WatermarkMode = WatermarkMode.LOGO_CONTACT
    anchor: Anchor = Anchor.BOTTOM_RIGHT
    scale: float = 1.0
    opacity: float = 0.7
    position: Optional[Tuple[float, float]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def options(self, contact_text: str = '', output_format: str = 'JPEG', quality: int = None) -> WatermarkOptions:
        return WatermarkOptions(
            mode=self.mode,
            anchor=self.anchor,
            scale=self.scale,
            opacity=self.opacity,
            contact_text=contact_text,
            position=self.position,
            output_format=output_format,
            quality=quality or Config.JPEG_QUALITY,
        )


@lru_cache(maxsize=32)
def load_font(size: int, font_path: str = None):
    """TrueType font at `size` px, falling back to Pillow's bundled font"""
    path = font_path or Config.FONT_PATH
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            LOGGER.debug("[ImageProcessor] font %s not available, using default", path)
    return ImageFont.load_default(size=size)


def decode_data_uri(value: str) -> bytes:
    """Bytes of a `data:<mime>;base64,<payload>` string (or a bare base64 payload)"""
    encoded = value.split(',', 1)[1] if ',' in value else value
    try:
        return base64.b64decode(encoded)
    except (ValueError, TypeError) as e:
        raise ImageLoadError(f"Invalid image data: {e}")


class WatermarkProcessor:
    """Composite watermarks onto listing photos."""

    def __init__(self, font_path: str = None):
        """
        Initialize the processor.

        Args:
            font_path: TrueType font for the contact text (uses config if not provided)
        """
        self.font_path = font_path or Config.FONT_PATH

    def load_image(self, image_source: ImageSource) -> Image.Image:
        """
        Load an image from various sources.

        Args:
            image_source: URL, file path, bytes, base64 data URI, or PIL Image

        Returns:
            PIL Image object (never the caller's instance)
        """
        if isinstance(image_source, Image.Image):
            return image_source.copy()

        try:
            if isinstance(image_source, bytes):
                img = Image.open(io.BytesIO(image_source))
                img.load()
                return img

            if isinstance(image_source, str):
                if image_source.startswith('data:image'):
                    return self.load_image(decode_data_uri(image_source))

                if image_source.startswith(('http://', 'https://')):
                    response = requests.get(image_source, timeout=Config.REQUEST_TIMEOUT)
                    response.raise_for_status()
                    return self.load_image(response.content)

                if os.path.exists(image_source):
                    img = Image.open(image_source)
                    img.load()
                    return img
        except (UnidentifiedImageError, OSError, requests.RequestException) as e:
            raise ImageLoadError(f"Cannot load image: {e}")

        raise ImageLoadError(f"Cannot load image from: {type(image_source).__name__}")

    def load_logo(self, logo_source: Optional[ImageSource]) -> Optional[Image.Image]:
        """Load the logo, or None when it is missing or unreadable"""
        if logo_source is None or logo_source == '':
            return None
        try:
            return self.load_image(logo_source).convert('RGBA')
        except ImageLoadError as e:
            LOGGER.warning("[ImageProcessor] logo unavailable, continuing without it: %s", e)
            return None

    def _text_extent(self, text: str, font, stroke_width: int) -> Tuple[int, int, int, int]:
        measure = ImageDraw.Draw(Image.new('RGBA', (1, 1)))
        return measure.textbbox((0, 0), text, font=font, stroke_width=stroke_width)

    def layout(
        self,
        image_size: Tuple[int, int],
        logo: Optional[Image.Image],
        options: WatermarkOptions
    ) -> Tuple[Layout, Optional[Tuple[int, int, int, int]], Any, int]:
        """Compute element boxes; both elements are measured whatever the mode"""
        logo_box = logo_size(image_size, logo.size, options.scale) if logo is not None else (0, 0)

        text = (options.contact_text or '').strip()
        text_bbox = None
        font = None
        stroke = 0
        text_box = (0, 0)
        if text:
            size = font_size(image_size[0], options.scale)
            font = load_font(size, self.font_path)
            stroke = max(1, round(size / 12))
            text_bbox = self._text_extent(text, font, stroke)
            text_box = (text_bbox[2] - text_bbox[0], text_bbox[3] - text_bbox[1])

        layout = compute_layout(
            image_size, logo_box, text_box,
            anchor=options.anchor,
            position=options.position
        )
        return layout, text_bbox, font, stroke

    def compose(
        self,
        image_source: ImageSource,
        logo_source: Optional[ImageSource] = None,
        options: WatermarkOptions = None
    ) -> Tuple[bytes, dict]:
        """
        Composite the watermark and encode the result.

        Args:
            image_source: Source photo (URL, path, bytes, base64, or PIL Image)
            logo_source: Logo image; a missing or unreadable logo is skipped
            options: Mode, anchor, scale, opacity, contact text and output format

        Returns:
            Tuple of (encoded image bytes, metadata dict)
        """
        options = options or WatermarkOptions()

        img = self.load_image(image_source)
        original_size = img.size
        img = ImageOps.exif_transpose(img)
        canvas = img.convert('RGBA')
        width, height = canvas.size

        logo = self.load_logo(logo_source)
        layout, text_bbox, font, stroke = self.layout(canvas.size, logo, options)

        alpha = round(255 * options.opacity)
        overlay = Image.new('RGBA', canvas.size, (0, 0, 0, 0))

        logo_applied = False
        if options.mode.draws_logo and logo is not None and layout.logo.width > 0:
            scaled = logo.resize((layout.logo.width, layout.logo.height), Image.LANCZOS)
            if options.opacity < 1.0:
                scaled.putalpha(scaled.split()[3].point(lambda p: round(p * options.opacity)))
            overlay.paste(scaled, (layout.logo.x, layout.logo.y))
            logo_applied = True

        text_applied = False
        if options.mode.draws_text and text_bbox is not None:
            draw = ImageDraw.Draw(overlay)
            # Outline and fill share one layer so the fill never doubles the alpha
            draw.text(
                (layout.text.x - text_bbox[0], layout.text.y - text_bbox[1]),
                options.contact_text.strip(),
                font=font,
                fill=TEXT_FILL + (alpha,),
                stroke_width=stroke,
                stroke_fill=TEXT_STROKE + (alpha,)
            )
            text_applied = True

        if options.mode.draws_logo and logo is None:
            LOGGER.warning("[ImageProcessor] %s requested but no logo was available", options.mode.value)

        result = Image.alpha_composite(canvas, overlay)
        encoded = self.encode(result, options.output_format, options.quality)

        metadata = {
            'original_size': original_size,
            'final_size': (width, height),
            'mode': options.mode.value,
            'anchor': options.anchor.value,
            'position': options.position,
            'block': layout.block.as_tuple(),
            'logo_box': layout.logo.as_tuple(),
            'text_box': layout.text.as_tuple(),
            'logo_applied': logo_applied,
            'text_applied': text_applied,
            'format': options.output_format,
            'file_size': len(encoded)
        }
        return encoded, metadata

    def encode(self, img: Image.Image, output_format: str = 'JPEG', quality: int = 90) -> bytes:
        """Encode to bytes; JPEG output is flattened onto white"""
        output_format = output_format.upper()
        if output_format == 'JPEG':
            if img.mode == 'RGBA':
                background = Image.new('RGB', img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[3])
                img = background
            elif img.mode != 'RGB':
                img = img.convert('RGB')

        output = io.BytesIO()
        save_kwargs = {'quality': quality} if output_format in ('JPEG', 'WEBP') else {}
        img.save(output, format=output_format, **save_kwargs)
        return output.getvalue()

    def process_batch(
        self,
        specs: List[PlacementSpec],
        logo_source: Optional[ImageSource] = None,
        contact_text: str = '',
        output_format: str = 'JPEG',
        quality: int = None
    ) -> List[Tuple[Optional[bytes], dict]]:
        """
        Compose each spec in order; one bad file does not stop the rest.

        Returns:
            List of (bytes, metadata) tuples; failed items have None bytes and
            an 'error' entry in metadata
        """
        logo = self.load_logo(logo_source)
        results = []
        for spec in specs:
            try:
                options = spec.options(contact_text, output_format, quality)
                encoded, metadata = self.compose(spec.data, logo, options)
                metadata['filename'] = spec.filename
                results.append((encoded, metadata))
            except (ImageLoadError, ValueError) as e:
                LOGGER.warning("[ImageProcessor] %s failed: %s", spec.filename, e)
                results.append((None, {'filename': spec.filename, 'error': str(e)}))
        return results

    def image_to_base64(self, img_bytes: bytes, format: str = 'JPEG') -> str:
        """Convert image bytes to base64 data URL."""
        mime_type = MIME_TYPES.get(format.upper(), 'image/jpeg')
        b64 = base64.b64encode(img_bytes).decode('utf-8')
        return f"data:{mime_type};base64,{b64}"

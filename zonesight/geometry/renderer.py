"""
Zone overlay rendering with Pillow.

Each chart image is a rendering surface that keeps at most
`GeometryConfig.max_overlays` zone overlays; adding another prunes the
oldest. Surfaces are cached per source image and rebuilt whenever the
image content changes, so a re-captured screenshot never shows a previous
capture's pixels or bands. The cache holds at most
`GeometryConfig.max_surfaces` images, least recently used dropped first.
"""

import hashlib
import io
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger
from PIL import Image, ImageDraw, ImageFont

from zonesight.geometry.zone_mapper import map_zone
from zonesight.shared.config.defaults import GeometryConfig, RenderConfig
from zonesight.shared.models.combined import DrawingInstruction
from zonesight.shared.models.geometry import BandPlacement, Calibration, Rect
from zonesight.shared.utils.error_policy import RenderingFailure, ZoneSightError
from zonesight.shared.utils.pips import format_price


def hex_to_rgb(color: str) -> Tuple[int, int, int]:
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        raise ValueError(f"Invalid hex colour: {color}")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def _load_font(size: int):
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default()


@dataclass(frozen=True)
class Overlay:
    """One zone band drawn on a surface."""
    placement: BandPlacement
    color: str
    label: str
    rect: Rect


class OverlaySurface:
    """A base image plus a capped list of overlays."""

    def __init__(self, image: Image.Image, max_overlays: int = 3, digest: Optional[str] = None):
        self.image = image.convert("RGBA")
        self.digest = digest
        self.max_overlays = max(1, max_overlays)
        self.overlays: List[Overlay] = []

    @property
    def rect(self) -> Rect:
        return Rect(0, 0, self.image.width, self.image.height)

    def add(self, overlay: Overlay) -> None:
        self.overlays.append(overlay)
        if len(self.overlays) > self.max_overlays:
            del self.overlays[: len(self.overlays) - self.max_overlays]

    def compose(self, render: RenderConfig, watermark: Optional[str] = None) -> Image.Image:
        layer = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        font = _load_font(render.font_size)
        alpha = int(max(0.0, min(1.0, render.band_alpha)) * 255)

        for overlay in self.overlays:
            r, g, b = hex_to_rgb(overlay.color)
            left, right = overlay.rect.left, overlay.rect.right - 1
            top = overlay.placement.y_top
            bottom = overlay.placement.y_top + overlay.placement.height

            draw.rectangle([left, top, right, bottom], fill=(r, g, b, alpha))
            for y in (top, max(top, bottom - render.line_width)):
                draw.rectangle([left, y, right, y + render.line_width - 1], fill=(r, g, b, 255))
            if render.draw_labels:
                draw.text((left + 8, top + render.line_width + 2), overlay.label,
                          fill=(r, g, b, 255), font=font)

        if watermark:
            draw.text((10, self.image.height - render.font_size - 10), watermark,
                      fill=(128, 128, 128, 160), font=font)

        return Image.alpha_composite(self.image, layer)


class ZoneRenderer:
    """Draws zone bands on captured chart images."""

    def __init__(self, geometry: Optional[GeometryConfig] = None, render: Optional[RenderConfig] = None):
        self.geometry = geometry or GeometryConfig()
        self.render_config = render or RenderConfig()
        self._surfaces: "OrderedDict[str, OverlaySurface]" = OrderedDict()

    def surface_for(self, image_path: str) -> OverlaySurface:
        """
        Surface for the current content of `image_path`.

        The file is read on every call; a changed file replaces the cached
        surface and drops its overlays.
        """
        key = str(Path(image_path).resolve())
        data = Path(key).read_bytes()
        digest = hashlib.sha1(data).hexdigest()

        surface = self._surfaces.get(key)
        if surface is None or surface.digest != digest:
            with Image.open(io.BytesIO(data)) as image:
                surface = OverlaySurface(image.copy(), self.geometry.max_overlays, digest)
            self._surfaces[key] = surface
        self._surfaces.move_to_end(key)

        while len(self._surfaces) > max(1, self.geometry.max_surfaces):
            self._surfaces.popitem(last=False)
        return surface

    def release(self, image_path: str) -> None:
        """Forget the surface of `image_path` and its overlays."""
        self._surfaces.pop(str(Path(image_path).resolve()), None)

    def render(
        self,
        image_path: str,
        instruction: DrawingInstruction,
        output_path: str,
        calibration: Optional[Calibration] = None,
        chart_rect: Optional[Rect] = None,
        instrument: Optional[str] = None,
    ) -> Tuple[str, BandPlacement]:
        """
        Draw one zone on a chart image and save the result.

        Args:
            image_path: Captured chart image
            instruction: Zone, colour and label to draw
            output_path: Where to save the rendered PNG
            calibration: Price calibration (defaults to the zone's visible range)
            chart_rect: Chart area inside the image (defaults to the whole image)
            instrument: Used for price formatting in the band label

        Returns:
            (output_path, placement)

        Raises:
            RenderingFailure: The zone could not be mapped or the image could not be read/written
        """
        try:
            surface = self.surface_for(image_path)
            rect = chart_rect or surface.rect
            placement = map_zone(rect, instruction.zone, calibration, self.geometry)

            zone = instruction.zone
            label = (
                f"{instruction.label}  Zone {format_price(instrument, zone.price_low)} - "
                f"{format_price(instrument, zone.price_high)}"
            )
            surface.add(Overlay(placement=placement, color=instruction.color, label=label, rect=rect))

            watermark = instruction.watermark if self.render_config.watermark else None
            composed = surface.compose(self.render_config, watermark)

            Path(output_path).parent.mkdir(parents=True, exist_ok=True)
            composed.convert("RGB").save(output_path, format="PNG")
        except (OSError, ValueError, ZoneSightError) as e:
            raise RenderingFailure(f"Failed to render {instruction.timeframe} zone: {e}") from e

        if placement.fallback:
            logger.warning(f"{instruction.timeframe} zone drawn with approximate fallback placement")
        logger.info(f"🖼️  Rendered {instruction.timeframe} zone -> {output_path}")
        return output_path, placement

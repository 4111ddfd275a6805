#!/usr/bin/env python3
"""Deterministic bitmap tracing backends.

Both backends trace the same foreground mask: the image is composited onto
the polarity's background, reduced to luminance and compared against the blacklevel.
``potrace`` is the default; ``vtracer`` is kept for deployments that prefer
its spline fitting.
"""
import logging
import sys
from io import BytesIO
from typing import Protocol

import numpy as np
import potrace
import vtracer
from PIL import Image

from pipeline_errors import ConfigurationError, LogoProcessingError, VectorizationError
from processing_modes import TraceParameters
from utils import ImageBuffer

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"


class Tracer(Protocol):
    name: str

    def trace(self, image: ImageBuffer, params: TraceParameters, color: str = "#000000") -> str:
        ...


def foreground_mask(image, params):
    """Boolean array, True where the pixel belongs to a traced shape.

    Transparent pixels are composited onto the background color of the
    mode's polarity (white for dark-on-light, black for light-on-dark), so
    they never become foreground.
    """
    rgba = image.convert('RGBA')
    fill = (255, 255, 255, 255) if params.black_on_white else (0, 0, 0, 255)
    background = Image.new('RGBA', rgba.size, fill)
    luminance = np.asarray(Image.alpha_composite(background, rgba).convert('L'), dtype=np.float32)

    cutoff = params.blacklevel * 255
    if params.black_on_white:
        return luminance < cutoff
    return luminance > cutoff


def _load_mask(buffer, params):
    try:
        image = buffer.open()
    except LogoProcessingError as e:
        raise VectorizationError(f"Cannot trace image: {e.message}")

    if image.width == 0 or image.height == 0:
        raise VectorizationError("Cannot trace an image with zero width or height")

    mask = foreground_mask(image, params)
    if not mask.any():
        raise VectorizationError("No traceable shapes found in image")
    return mask


def _fmt(value):
    text = f"{value:.3f}".rstrip('0').rstrip('.')
    return "0" if text in ("", "-0") else text


def _point(p):
    return f"{_fmt(p.x)} {_fmt(p.y)}"


def curves_to_path_data(plist):
    """SVG path data for every curve in a potrace path list"""
    parts = []
    for curve in plist:
        parts.append(f"M {_point(curve.start_point)}")
        for segment in curve.segments:
            if segment.is_corner:
                parts.append(f"L {_point(segment.c)} L {_point(segment.end_point)}")
            else:
                parts.append(f"C {_point(segment.c1)} {_point(segment.c2)} {_point(segment.end_point)}")
        parts.append("Z")
    return " ".join(parts)


class PotraceTracer:
    name = "potrace"

    def trace(self, image, params, color="#000000"):
        mask = _load_mask(image, params)
        height, width = mask.shape
        logger.info(f"Tracing {width}x{height} bitmap with potrace "
                    f"(turdsize={params.turdsize}, alphamax={params.alphamax})")

        try:
            # potracer reads True as white and inverts on load
            bitmap = potrace.Bitmap(~mask)
            plist = bitmap.trace(
                turdsize=params.turdsize,
                alphamax=params.alphamax,
                opticurve=params.opticurve,
                opttolerance=params.opttolerance,
            )
        except Exception as e:
            logger.error(f"potrace failed: {str(e)}")
            raise VectorizationError(f"Tracing failed: {e}") from e

        path_data = curves_to_path_data(plist)
        if not path_data:
            raise VectorizationError(
                f"No shapes left after dropping regions smaller than {params.turdsize} px"
            )

        return (
            f'<svg xmlns="{SVG_NS}" width="{width}" height="{height}" viewBox="0 0 {width} {height}">'
            f'<path d="{path_data}" fill="{color}" fill-rule="evenodd"/>'
            '</svg>'
        )


class VTracerTracer:
    name = "vtracer"

    def trace(self, image, params, color="#000000"):
        mask = _load_mask(image, params)
        height, width = mask.shape
        logger.info(f"Tracing {width}x{height} bitmap with vtracer (filter_speckle={params.turdsize})")

        bitmap = Image.fromarray(np.where(mask, 0, 255).astype(np.uint8), 'L').convert('RGB')
        png = BytesIO()
        bitmap.save(png, format='PNG')

        try:
            svg_code = vtracer.convert_raw_image_to_svg(
                png.getvalue(),
                img_format='png',
                colormode='binary',
                mode='spline',
                filter_speckle=params.turdsize,
                corner_threshold=60,
                length_threshold=4.0,
                max_iterations=10,
                splice_threshold=45,
                path_precision=3
            )
        except Exception as e:
            logger.error(f"vtracer failed: {str(e)}")
            raise VectorizationError(f"Tracing failed: {e}") from e

        if '<path' not in svg_code:
            raise VectorizationError(
                f"No shapes left after dropping regions smaller than {params.turdsize} px"
            )
        return svg_code


TRACERS = {
    PotraceTracer.name: PotraceTracer,
    VTracerTracer.name: VTracerTracer,
}


def tracer_for(name):
    try:
        return TRACERS[name.lower()]()
    except KeyError:
        raise ConfigurationError(f"TRACER_BACKEND must be one of {sorted(TRACERS)}, got {name!r}")


def main():
    """Trace a PNG from the command line and print the SVG"""
    if len(sys.argv) < 2:
        print("usage: png_to_svg_converter.py <image.png> [potrace|vtracer]")
        return 1

    with open(sys.argv[1], 'rb') as f:
        buffer = ImageBuffer(f.read())

    tracer = tracer_for(sys.argv[2] if len(sys.argv) > 2 else 'potrace')
    print(tracer.trace(buffer, TraceParameters()))
    return 0


if __name__ == "__main__":
    sys.exit(main())

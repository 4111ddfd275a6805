"""Raster preparation ahead of vectorization.

A pure function of (buffer, parameters): the steps listed for a mode are
applied in order to an RGBA working image and the result is re-encoded as
PNG. Greyscale, normalize and threshold work on intensity only and keep the
alpha channel unless the image was flattened first.
"""
import logging
from PIL import Image, ImageOps

from pipeline_errors import MalformedInputError
from processing_modes import BRAND, Flatten, Greyscale, Normalize, Resize, Threshold, Tint
from utils import ImageBuffer

logger = logging.getLogger(__name__)


def hex_to_rgb(color):
    color = color.lstrip('#')
    return tuple(int(color[i:i + 2], 16) for i in (0, 2, 4))


def _resolve_color(color, brand_color):
    if color == BRAND:
        return hex_to_rgb(brand_color)
    if isinstance(color, str):
        return hex_to_rgb(color)
    return tuple(color)


def _to_working_mode(image):
    """Normalize any decoded mode to RGBA, or RGB when there is no alpha"""
    if image.mode in ('RGBA', 'RGB'):
        return image
    if image.mode in ('LA', 'PA') or 'transparency' in image.info:
        return image.convert('RGBA')
    return image.convert('RGB')


def _split_alpha(image):
    if image.mode == 'RGBA':
        return image.convert('RGB'), image.getchannel('A')
    return image, None


def _merge_alpha(image, alpha):
    if alpha is None:
        return image
    image = image.convert('RGBA')
    image.putalpha(alpha)
    return image


def fit_inside(size, width, height):
    """Largest size within width x height that keeps the aspect ratio"""
    src_w, src_h = size
    scale = min(width / src_w, height / src_h)
    return max(1, round(src_w * scale)), max(1, round(src_h * scale))


def resize_to_box(image, step):
    """Aspect-preserving resize to fit inside the step's box"""
    new_size = fit_inside(image.size, step.width, step.height)
    if new_size != image.size:
        image = image.resize(new_size, Image.Resampling.LANCZOS)
    return image


def flatten(image, color):
    """Composite transparency onto an opaque background"""
    if image.mode != 'RGBA':
        return image.convert('RGB')
    background = Image.new('RGBA', image.size, tuple(color) + (255,))
    return Image.alpha_composite(background, image).convert('RGB')


def to_greyscale(image):
    rgb, alpha = _split_alpha(image)
    return _merge_alpha(rgb.convert('L').convert('RGB'), alpha)


def normalize_contrast(image):
    """Stretch intensities to the full 0-255 range (1% clipped at each end).

    Only visible pixels feed the histogram; the color under fully
    transparent pixels is arbitrary.
    """
    rgb, alpha = _split_alpha(image)
    stretched = ImageOps.autocontrast(rgb, cutoff=1, mask=alpha)
    return _merge_alpha(stretched, alpha)


def apply_threshold(image, cutoff):
    """Intensity below ``cutoff`` becomes black, at or above becomes white"""
    rgb, alpha = _split_alpha(image)
    binary = rgb.convert('L').point(lambda p: 255 if p >= cutoff else 0)
    return _merge_alpha(binary.convert('RGB'), alpha)


def tint(image, color):
    """Recolor by intensity, mapping mid-grey to ``color``"""
    rgb, alpha = _split_alpha(image)
    tinted = ImageOps.colorize(rgb.convert('L'), black=(0, 0, 0), white=(255, 255, 255), mid=color)
    return _merge_alpha(tinted, alpha)


def apply_step(image, step, brand_color):
    if isinstance(step, Resize):
        return resize_to_box(image, step)
    if isinstance(step, Flatten):
        return flatten(image, _resolve_color(step.background, brand_color))
    if isinstance(step, Greyscale):
        return to_greyscale(image)
    if isinstance(step, Normalize):
        return normalize_contrast(image)
    if isinstance(step, Threshold):
        return apply_threshold(image, step.cutoff)
    if isinstance(step, Tint):
        return tint(image, _resolve_color(step.color, brand_color))
    raise TypeError(f"Unknown raster step: {step!r}")


def preprocess(buffer, steps, brand_color):
    """Run ``steps`` over ``buffer`` and return a new PNG ImageBuffer"""
    image = buffer.open()
    if image.width == 0 or image.height == 0:
        raise MalformedInputError("Image has zero width or height")

    image = _to_working_mode(image)
    for step in steps:
        image = apply_step(image, step, brand_color)
        logger.debug(f"Applied {type(step).__name__}: {image.mode} {image.size}")

    logger.info(f"Preprocessed image to {image.size[0]}x{image.size[1]} ({image.mode})")
    return ImageBuffer.from_image(image)

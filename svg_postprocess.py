"""SVG envelope building and final normalization.

Normalization works on the parsed tree, not on the serialized text, so the
result does not depend on attribute order, quoting or whitespace. Running
``normalize_svg`` on its own output returns the same text.
"""
import logging
import xml.etree.ElementTree as ET

from pipeline_errors import VectorizationError
from raster_preprocess import hex_to_rgb
from utils import OUTPUT_SIZE, encode_data_uri

logger = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"

ET.register_namespace('', SVG_NS)
ET.register_namespace('xlink', XLINK_NS)

COLOR_ATTRIBUTES = ('fill', 'stroke')


def _local_name(name):
    return name.split('}')[-1] if '}' in name else name


def _parse(svg_code):
    try:
        root = ET.fromstring(svg_code.encode('utf-8'))
    except ET.ParseError as e:
        logger.error(f"Failed to parse SVG: {str(e)}")
        raise VectorizationError(f"Vectorizer produced invalid SVG: {e}")

    if _local_name(root.tag) != 'svg':
        raise VectorizationError(f"Expected an <svg> root element, found <{_local_name(root.tag)}>")

    # Documents without a namespace are moved into the SVG namespace
    for element in root.iter():
        if isinstance(element.tag, str) and not element.tag.startswith('{'):
            element.tag = f"{{{SVG_NS}}}{element.tag}"
    return root


def normalize_svg(svg_code, brand_color, view_width, view_height):
    """Force output size, coordinate space and a single brand color.

    - every ``fill`` and ``stroke`` attribute becomes ``brand_color``
    - ``style`` attributes and ``<style>`` elements are dropped
    - the root gets ``width``/``height`` of OUTPUT_SIZE, a viewBox of
      ``view_width`` x ``view_height`` and ``preserveAspectRatio="xMidYMid meet"``
    """
    root = _parse(svg_code)

    for parent in list(root.iter()):
        for child in list(parent):
            if _local_name(child.tag) == 'style':
                parent.remove(child)

    for element in root.iter():
        element.attrib.pop('style', None)
        for name in COLOR_ATTRIBUTES:
            if name in element.attrib:
                element.set(name, brand_color)

    root.set('width', str(OUTPUT_SIZE))
    root.set('height', str(OUTPUT_SIZE))
    root.set('viewBox', f"0 0 {view_width} {view_height}")
    root.set('preserveAspectRatio', 'xMidYMid meet')
    root.set('fill', brand_color)

    return ET.tostring(root, encoding='unicode')


def color_matrix_values(brand_color):
    """feColorMatrix rows that paint every opaque pixel in ``brand_color``"""
    r, g, b = (channel / 255 for channel in hex_to_rgb(brand_color))
    return (
        f"0 0 0 0 {r:.3f} "
        f"0 0 0 0 {g:.3f} "
        f"0 0 0 0 {b:.3f} "
        "0 0 0 1 0"
    )


def build_embed_svg(buffer, brand_color, colorize=False):
    """Wrap a PNG in an SVG ``<image>``; no vectorization takes place"""
    width, height = buffer.size
    root = ET.Element(f"{{{SVG_NS}}}svg", {
        'width': str(width),
        'height': str(height),
        'viewBox': f"0 0 {width} {height}",
    })

    image_attrs = {
        'href': encode_data_uri(buffer.data),
        'width': str(width),
        'height': str(height),
        'preserveAspectRatio': 'xMidYMid meet',
    }

    if colorize:
        defs = ET.SubElement(root, f"{{{SVG_NS}}}defs")
        color_filter = ET.SubElement(defs, f"{{{SVG_NS}}}filter", {'id': 'colorize'})
        ET.SubElement(color_filter, f"{{{SVG_NS}}}feColorMatrix", {
            'type': 'matrix',
            'values': color_matrix_values(brand_color),
        })
        image_attrs['filter'] = 'url(#colorize)'

    ET.SubElement(root, f"{{{SVG_NS}}}image", image_attrs)
    return ET.tostring(root, encoding='unicode')

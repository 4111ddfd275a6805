import base64
import re
from io import BytesIO

import pytest
from PIL import Image, ImageDraw

from app import create_app
from logo_pipeline import LogoPipeline
from pipeline_errors import ConfigurationError
from png_to_svg_converter import PotraceTracer
from utils import ImageBuffer, Settings

BRAND_COLOR = "#D2D7EB"


def png_bytes(image):
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def square_logo(size=400, square=200, mode="RGB"):
    """A black square centred on an opaque white (or transparent) canvas"""
    background = "white" if mode == "RGB" else (0, 0, 0, 0)
    image = Image.new(mode, (size, size), background)
    offset = (size - square) // 2
    fill = "black" if mode == "RGB" else (0, 0, 0, 255)
    ImageDraw.Draw(image).rectangle([offset, offset, offset + square - 1, offset + square - 1], fill=fill)
    return image


def to_data_uri(data):
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def path_coordinates(d):
    """All numbers in an SVG path's data"""
    return [float(n) for n in re.findall(r"-?\d+(?:\.\d+)?", d)]


class FakeBackgroundRemover:
    """Returns the image unchanged and records every call"""

    def __init__(self, configured=True, result=None, error=None, credits=50):
        self.configured = configured
        self.result = result
        self.error = error
        self.credits = credits
        self.calls = []

    def require_credentials(self):
        if not self.configured:
            raise ConfigurationError("Remove.bg API key is not configured.")

    def remove_background(self, image):
        self.require_credentials()
        self.calls.append(image)
        if self.error is not None:
            raise self.error
        return self.result or image

    def account_status(self):
        return self.credits


class FakeRemoteVectorizer:
    def __init__(self, configured=True, svg=None, error=None):
        self.configured = configured
        self.svg = svg or (
            '<svg xmlns="http://www.w3.org/2000/svg" width="50" height="50" viewBox="0 0 50 50">'
            '<path d="M 0 0 L 10 0 L 10 10 Z" fill="#123456" stroke="#000000" style="fill:red"/>'
            '</svg>'
        )
        self.error = error
        self.calls = []

    def require_credentials(self):
        if not self.configured:
            raise ConfigurationError("Vectorizer.ai API key is not configured.")

    def vectorize(self, image, params):
        self.require_credentials()
        self.calls.append((image, params))
        if self.error is not None:
            raise self.error
        return self.svg


class FakeResponse:
    def __init__(self, status_code=200, content=b"", json_body=None, text=None):
        self.status_code = status_code
        self.content = content
        self._json = json_body
        self.text = text if text is not None else content.decode("utf-8", errors="replace")

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        if self._json is None:
            raise ValueError("No JSON body")
        return self._json


class FakeSession:
    """Stands in for requests.Session; answers with queued responses"""

    def __init__(self, *responses, error=None):
        self.responses = list(responses)
        self.error = error
        self.calls = []

    def _respond(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)

    def post(self, url, **kwargs):
        return self._respond("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._respond("GET", url, **kwargs)


@pytest.fixture
def square_png():
    return png_bytes(square_logo())


@pytest.fixture
def square_data_uri(square_png):
    return to_data_uri(square_png)


@pytest.fixture
def square_buffer(square_png):
    return ImageBuffer(square_png)


@pytest.fixture
def remover():
    return FakeBackgroundRemover()


@pytest.fixture
def remote_vectorizer():
    return FakeRemoteVectorizer()


@pytest.fixture
def pipeline(remover, remote_vectorizer):
    return LogoPipeline(remover, remote_vectorizer, PotraceTracer(), BRAND_COLOR)


@pytest.fixture
def settings():
    return Settings(removebg_api_key="rb_test_key", vectorizer_api_key="vk_test_key")


@pytest.fixture
def client(settings, pipeline):
    app = create_app(settings=settings, pipeline=pipeline)
    app.config['TESTING'] = True
    return app.test_client()

import os
import re
import base64
import binascii
import logging
from dataclasses import dataclass
from io import BytesIO
from PIL import Image, UnidentifiedImageError
from dotenv import load_dotenv

from pipeline_errors import ConfigurationError, MalformedInputError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

# Every returned SVG is displayed at this size
OUTPUT_SIZE = 50

DEFAULT_BRAND_COLOR = "#D2D7EB"
REMOVEBG_API_URL = "https://api.remove.bg/v1.0/removebg"
REMOVEBG_ACCOUNT_URL = "https://api.remove.bg/v1.0/account"
VECTORIZER_API_URL = "https://api.vectorizer.ai/v1/convert"

_HEX_COLOR = re.compile(r'^#[0-9A-Fa-f]{6}$')


def configure_logging(level=None, log_file=None):
    """Configure root logging once for the whole service"""
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, (level or 'INFO').upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers
    )


def _env(name, default=None):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


@dataclass(frozen=True)
class Settings:
    """Deployment configuration read from the environment"""
    removebg_api_key: str = None
    vectorizer_api_key: str = None
    vectorizer_api_id: str = None
    vectorizer_api_secret: str = None
    vectorizer_auth: str = "bearer"
    removebg_api_url: str = REMOVEBG_API_URL
    removebg_account_url: str = REMOVEBG_ACCOUNT_URL
    vectorizer_api_url: str = VECTORIZER_API_URL
    brand_color: str = DEFAULT_BRAND_COLOR
    default_mode: str = "enhanced"
    tracer_backend: str = "potrace"
    request_timeout: float = 60.0
    cors_origins: tuple = ("*",)
    log_level: str = "INFO"
    log_file: str = None

    @classmethod
    def from_env(cls):
        brand_color = _env('BRAND_COLOR', DEFAULT_BRAND_COLOR)
        if not _HEX_COLOR.match(brand_color):
            raise ConfigurationError(f"BRAND_COLOR must be a #RRGGBB hex color, got {brand_color!r}")

        api_id = _env('VECTORIZER_API_ID')
        api_secret = _env('VECTORIZER_API_SECRET')
        auth = _env('VECTORIZER_AUTH')
        if auth is None:
            auth = "basic" if api_id and api_secret else "bearer"
        auth = auth.lower()
        if auth not in ("bearer", "basic"):
            raise ConfigurationError(f"VECTORIZER_AUTH must be 'bearer' or 'basic', got {auth!r}")

        timeout = _env('REQUEST_TIMEOUT', '60')
        try:
            timeout = float(timeout)
        except ValueError:
            raise ConfigurationError(f"REQUEST_TIMEOUT must be a number of seconds, got {timeout!r}")

        origins = tuple(o.strip() for o in _env('CORS_ORIGINS', '*').split(',') if o.strip())

        return cls(
            removebg_api_key=_env('REMOVEBG_API_KEY'),
            vectorizer_api_key=_env('VECTORIZER_API_KEY'),
            vectorizer_api_id=api_id,
            vectorizer_api_secret=api_secret,
            vectorizer_auth=auth,
            removebg_api_url=_env('REMOVEBG_API_URL', REMOVEBG_API_URL),
            removebg_account_url=_env('REMOVEBG_ACCOUNT_URL', REMOVEBG_ACCOUNT_URL),
            vectorizer_api_url=_env('VECTORIZER_API_URL', VECTORIZER_API_URL),
            brand_color=brand_color.upper(),
            default_mode=_env('DEFAULT_MODE', 'enhanced'),
            tracer_backend=_env('TRACER_BACKEND', 'potrace').lower(),
            request_timeout=timeout,
            cors_origins=origins or ("*",),
            log_level=_env('LOG_LEVEL', 'INFO'),
            log_file=_env('LOG_FILE'),
        )


@dataclass(frozen=True)
class ImageBuffer:
    """Encoded image bytes; the size is recovered by decoding"""
    data: bytes

    def __len__(self):
        return len(self.data)

    def open(self):
        """Decode into a Pillow image"""
        try:
            image = Image.open(BytesIO(self.data))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise MalformedInputError(f"Could not decode image data: {e}")
        return image

    @property
    def size(self):
        return self.open().size

    @classmethod
    def from_image(cls, image):
        """Encode a Pillow image as PNG"""
        buffer = BytesIO()
        image.save(buffer, format='PNG')
        return cls(buffer.getvalue())


def decode_data_uri(data_uri):
    """Decode a ``<mime-prefix>,<base64>`` data URI into an ImageBuffer"""
    if not isinstance(data_uri, str):
        raise MalformedInputError("Image must be a data URI string")
    if ',' not in data_uri:
        raise MalformedInputError("Image data URI is missing its base64 payload")

    payload = ''.join(data_uri.split(',', 1)[1].split())
    if not payload:
        raise MalformedInputError("Image data URI has an empty payload")

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInputError(f"Image payload is not valid base64: {e}")

    return ImageBuffer(data)


def encode_data_uri(data, mime="image/png"):
    """Inverse of decode_data_uri"""
    if isinstance(data, ImageBuffer):
        data = data.data
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def mask_secret(value):
    """Short, log-safe view of a credential"""
    if not value:
        return "not set"
    return value[:3] + "..."

import logging
import time
from typing import Protocol

import requests
from requests.auth import AuthBase, HTTPBasicAuth

from pipeline_errors import ConfigurationError, UpstreamError, error_from_response
from processing_modes import RemoteParameters
from utils import ImageBuffer, VECTORIZER_API_URL

logger = logging.getLogger(__name__)

SERVICE_NAME = "Vectorizer.ai"


class RemoteVectorizer(Protocol):
    def require_credentials(self) -> None:
        ...

    def vectorize(self, image: ImageBuffer, params: RemoteParameters) -> str:
        ...


class BearerAuth(AuthBase):
    """Attach an ``Authorization: Bearer`` header"""

    def __init__(self, token):
        self.token = token

    def __call__(self, r):
        r.headers['Authorization'] = f"Bearer {self.token}"
        return r


class VectorizerAiClient:
    """Remote vectorization through the Vectorizer.ai HTTP API.

    The service has been deployed with both a bearer token and an
    id/secret basic credential; ``auth`` is whichever one is configured.
    """

    def __init__(self, auth, session=None, url=VECTORIZER_API_URL, timeout=60):
        self.auth = auth
        self.session = session or requests.Session()
        self.url = url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, session=None):
        auth = None
        if settings.vectorizer_auth == "basic":
            if settings.vectorizer_api_id and settings.vectorizer_api_secret:
                auth = HTTPBasicAuth(settings.vectorizer_api_id, settings.vectorizer_api_secret)
        elif settings.vectorizer_api_key:
            auth = BearerAuth(settings.vectorizer_api_key)
        return cls(auth, session=session, url=settings.vectorizer_api_url,
                   timeout=settings.request_timeout)

    def require_credentials(self):
        if self.auth is None:
            logger.error("Vectorizer.ai credentials are not set")
            raise ConfigurationError(
                "Vectorizer.ai API key is not configured. Please add VECTORIZER_API_KEY "
                "(or VECTORIZER_API_ID and VECTORIZER_API_SECRET) to your environment variables."
            )

    @staticmethod
    def form_fields(params, width, height):
        """Form fields for a production-quality conversion at ``width`` x ``height`` px"""
        return {
            'mode': params.mode,
            'output.file_format': 'svg',
            'output.size.unit': 'px',
            'output.size.width': str(width),
            'output.size.height': str(height),
            'processing.max_colors': str(params.max_colors),
            'processing.min_area': str(params.min_area),
            'processing.simplify': str(params.simplify),
            'processing.anti_aliased': params.anti_aliased,
        }

    def vectorize(self, image, params):
        """Upload ``image`` and return the SVG text produced by the service"""
        self.require_credentials()
        width, height = image.size
        logger.info(f"Calling Vectorizer.ai API ({width}x{height}, {len(image)} bytes)...")

        start_time = time.time()
        try:
            response = self.session.post(
                self.url,
                files={'image': ('logo.png', image.data, 'image/png')},
                data=self.form_fields(params, width, height),
                auth=self.auth,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Vectorizer.ai request failed: {str(e)}")
            raise UpstreamError(details=str(e))

        if not response.ok:
            raise error_from_response(SERVICE_NAME, response)

        svg_code = response.text
        if '<svg' not in svg_code.lower():
            raise UpstreamError("Vectorizer.ai returned a response without SVG content.",
                                details=svg_code[:500], status_code=response.status_code)

        logger.info(f"Vectorizer.ai response received in {time.time() - start_time:.2f} seconds, "
                    f"SVG length: {len(svg_code)}")
        return svg_code

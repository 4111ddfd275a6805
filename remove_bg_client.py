import logging
import time
from typing import Protocol

import requests

from pipeline_errors import ConfigurationError, UpstreamError, error_from_response
from utils import ImageBuffer, REMOVEBG_ACCOUNT_URL, REMOVEBG_API_URL

logger = logging.getLogger(__name__)

SERVICE_NAME = "Remove.bg"


class BackgroundRemover(Protocol):
    def require_credentials(self) -> None:
        """Raise ConfigurationError when the service cannot be called"""
        ...

    def remove_background(self, image: ImageBuffer) -> ImageBuffer:
        ...


class RemoveBgClient:
    """Background removal through the remove.bg HTTP API"""

    def __init__(self, api_key, session=None, url=REMOVEBG_API_URL,
                 account_url=REMOVEBG_ACCOUNT_URL, timeout=60):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.url = url
        self.account_url = account_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings, session=None):
        return cls(
            settings.removebg_api_key,
            session=session,
            url=settings.removebg_api_url,
            account_url=settings.removebg_account_url,
            timeout=settings.request_timeout,
        )

    def require_credentials(self):
        if not self.api_key:
            logger.error("REMOVEBG_API_KEY is not set")
            raise ConfigurationError(
                "Remove.bg API key is not configured. "
                "Please add REMOVEBG_API_KEY to your environment variables."
            )

    def remove_background(self, image):
        """Upload ``image`` and return the PNG with its background made transparent"""
        self.require_credentials()
        logger.info(f"Calling Remove.bg API with {len(image)} bytes...")

        start_time = time.time()
        try:
            response = self.session.post(
                self.url,
                files={'image_file': ('image.png', image.data, 'image/png')},
                data={'size': 'auto', 'format': 'png'},
                headers={'X-Api-Key': self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Remove.bg request failed: {str(e)}")
            raise UpstreamError(details=str(e))

        if not response.ok:
            raise error_from_response(SERVICE_NAME, response)

        if not response.content:
            raise UpstreamError("Remove.bg returned an empty image.", status_code=response.status_code)

        logger.info(f"Remove.bg response received in {time.time() - start_time:.2f} seconds, "
                    f"size: {len(response.content)}")
        return ImageBuffer(response.content)

    def account_status(self):
        """Return the account's total credits, as reported by remove.bg"""
        self.require_credentials()
        try:
            response = self.session.get(
                self.account_url,
                headers={'X-Api-Key': self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError(str(e))

        if not response.ok:
            raise error_from_response(SERVICE_NAME, response)

        try:
            return response.json()['data']['attributes']['credits']['total']
        except (ValueError, KeyError, TypeError):
            raise UpstreamError("Remove.bg account response was not understood.",
                                details=response.text[:500])

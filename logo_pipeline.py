import logging
import time
from dataclasses import dataclass
from typing import Optional

from processing_modes import Strategy, parameters_for
from raster_preprocess import preprocess
from remove_bg_client import RemoveBgClient
from svg_postprocess import build_embed_svg, normalize_svg
from png_to_svg_converter import tracer_for
from utils import decode_data_uri
from vectorizer_ai_client import VectorizerAiClient

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    svg: str
    mode: str
    vector: bool
    note: Optional[str] = None

    def to_response_body(self):
        body = {"success": True, "svg": self.svg, "mode": self.mode, "vector": self.vector}
        if self.note:
            body["note"] = self.note
        return body


class LogoPipeline:
    """Data URI in, normalized single-color SVG out.

    Stages run strictly in order and any failure aborts the request:
    decode -> remove background -> preprocess -> vectorize -> normalize.
    """

    def __init__(self, background_remover, remote_vectorizer, tracer, brand_color):
        self.background_remover = background_remover
        self.remote_vectorizer = remote_vectorizer
        self.tracer = tracer
        self.brand_color = brand_color

    @classmethod
    def from_settings(cls, settings):
        return cls(
            RemoveBgClient.from_settings(settings),
            VectorizerAiClient.from_settings(settings),
            tracer_for(settings.tracer_backend),
            settings.brand_color,
        )

    def check_credentials(self, params):
        """Fail before any network call when a needed credential is missing"""
        self.background_remover.require_credentials()
        if params.needs_remote_vectorizer:
            self.remote_vectorizer.require_credentials()

    def vectorize(self, buffer, params):
        if params.strategy is Strategy.TRACE:
            return self.tracer.trace(buffer, params.trace, color=self.brand_color)
        if params.strategy is Strategy.REMOTE:
            return self.remote_vectorizer.vectorize(buffer, params.remote)
        return build_embed_svg(buffer, self.brand_color, colorize=params.embed.colorize)

    def process(self, data_uri, mode):
        params = parameters_for(mode)
        start_time = time.time()
        logger.info(f"===== LOGO PIPELINE: mode={params.mode.value} =====")

        self.check_credentials(params)

        logger.info("Stage 1: Decoding input image")
        original = decode_data_uri(data_uri)
        logger.info(f"Image buffer size: {len(original)}")

        logger.info("Stage 2: Removing background")
        cleaned = self.background_remover.remove_background(original)

        logger.info("Stage 3: Preprocessing raster")
        prepared = preprocess(cleaned, params.steps, self.brand_color)
        width, height = prepared.size

        logger.info(f"Stage 4: Vectorizing ({params.strategy.value})")
        svg_code = self.vectorize(prepared, params)

        logger.info("Stage 5: Normalizing SVG")
        svg_code = normalize_svg(svg_code, self.brand_color, width, height)

        logger.info(f"Processing complete in {time.time() - start_time:.2f} seconds, "
                    f"SVG length: {len(svg_code)}")
        return PipelineResult(
            svg=svg_code,
            mode=params.mode.value,
            vector=params.is_vector,
            note=params.note,
        )

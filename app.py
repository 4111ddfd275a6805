from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
import logging
import os

from logo_pipeline import LogoPipeline
from pipeline_errors import (
    GENERIC_ERROR_MESSAGE,
    LogoProcessingError,
    MalformedInputError,
    to_response_body,
)
from processing_modes import ROUTE_MODE_ALIASES, ProcessingMode
from utils import Settings, configure_logging, mask_secret

logger = logging.getLogger(__name__)

SERVICE_NAME = "Logo Vectorizer"
SERVICE_VERSION = "1.0.0"

# Older single-purpose endpoints, each pinned to the mode it used to hard-code
LEGACY_ROUTES = {
    '/api/process-logo-simple': ProcessingMode.RASTER_EMBED,
    '/api/process-logo-color': ProcessingMode.COLOR_EMBED,
    '/api/process-logo-enhanced': ProcessingMode.ENHANCED,
    '/api/process-logo-hq': ProcessingMode.HIGH_QUALITY,
    '/api/process-logo-potrace': ProcessingMode.CLASSIC,
    '/api/process-logo-vectorizer': ProcessingMode.VECTOR_SERVICE,
}

api = Blueprint('api', __name__)


def get_pipeline():
    return current_app.extensions['logo_pipeline']


def get_settings():
    return current_app.config['LOGO_SETTINGS']


@api.route('/health', methods=['GET'])
def health():
    """Health check endpoint for monitoring"""
    return jsonify({
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION
    })


def process_logo(default_mode=None):
    """Background removal + vectorization for a base64 data-URI logo"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise MalformedInputError("Request body must be a JSON object with an 'image' field")

    image = data.get('image')
    if not image:
        raise MalformedInputError("No image provided")

    mode = data.get('mode')
    if mode and default_mode:
        aliases = ROUTE_MODE_ALIASES.get(ProcessingMode(default_mode), {})
        mode = aliases.get(str(mode).strip().lower(), mode)
    mode = mode or default_mode or get_settings().default_mode
    logger.info(f"Processing request on {request.path} (mode={mode})")

    result = get_pipeline().process(image, mode)
    return jsonify(result.to_response_body())


api.add_url_rule('/api/process-logo', 'process_logo', process_logo, methods=['POST'])
for _rule, _mode in LEGACY_ROUTES.items():
    api.add_url_rule(
        _rule,
        'process_logo_' + _mode.value.replace('-', '_'),
        process_logo,
        methods=['POST'],
        defaults={'default_mode': _mode.value},
    )


@api.route('/api/test-api', methods=['POST'])
def test_api():
    """Report which API keys are configured and whether remove.bg accepts ours"""
    settings = get_settings()
    removebg_key = settings.removebg_api_key
    vectorizer_key = settings.vectorizer_api_key or settings.vectorizer_api_id

    status = {
        "removeBgKeySet": bool(removebg_key),
        "removeBgKeyLength": len(removebg_key) if removebg_key else 0,
        "removeBgKeyPrefix": mask_secret(removebg_key),
        "vectorizerKeySet": bool(vectorizer_key),
        "vectorizerKeyLength": len(vectorizer_key) if vectorizer_key else 0,
        "vectorizerKeyPrefix": mask_secret(vectorizer_key),
        "vectorizerAuth": settings.vectorizer_auth,
    }

    removebg_status = "not tested"
    if removebg_key:
        try:
            credits = get_pipeline().background_remover.account_status()
            removebg_status = f"working - credits: {credits}"
        except LogoProcessingError as e:
            removebg_status = f"error: {e.message}"

    return jsonify({
        "success": True,
        "message": "API Test Results",
        "apiKeys": status,
        "removeBgTest": removebg_status,
        "vectorizerTest": "Please check Vectorizer.ai dashboard for API status"
    })


def handle_pipeline_error(e):
    logger.error(f"Processing error ({type(e).__name__}): {e.message}")
    return jsonify(to_response_body(e)), 500


def handle_http_error(e):
    if e.code == 405:
        return jsonify({"success": False, "error": "Method not allowed"}), 405
    return jsonify({"success": False, "error": e.description}), e.code


def handle_unexpected_error(e):
    logger.exception(f"Unexpected error: {str(e)}")
    return jsonify({"success": False, "error": GENERIC_ERROR_MESSAGE}), 500


def create_app(settings=None, pipeline=None):
    """Build the Flask app; tests pass their own settings and pipeline"""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_file)

    app = Flask(__name__)

    # CORS for the embedding site; preflight OPTIONS is answered with an empty 200
    CORS(app,
         origins=list(settings.cors_origins),
         methods=['GET', 'POST', 'OPTIONS'],
         allow_headers=['Content-Type'])

    app.config['LOGO_SETTINGS'] = settings
    app.extensions['logo_pipeline'] = pipeline or LogoPipeline.from_settings(settings)

    app.register_blueprint(api)
    app.register_error_handler(LogoProcessingError, handle_pipeline_error)
    app.register_error_handler(HTTPException, handle_http_error)
    app.register_error_handler(Exception, handle_unexpected_error)
    return app


app = create_app()

if __name__ == '__main__':
    # Get port from environment variable
    port = int(os.getenv('PORT', 5000))

    # Use 0.0.0.0 for production and 127.0.0.1 for local development
    host = '0.0.0.0' if os.getenv('PORT') else '127.0.0.1'

    # Disable debug mode in production
    debug = not bool(os.getenv('PORT'))

    logger.info(f"Starting Flask application on {host}:{port} (debug={debug})")
    app.run(host=host, port=port, debug=debug, threaded=True)

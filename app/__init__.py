import os
import logging
from flask import Flask, jsonify, redirect
from flask_cors import CORS

from idverify import __version__ as idverify_version
from idverify.exceptions import InputNotFound, InvalidClaim, VerificationError

logger = logging.getLogger("API-Routes")

# Pre-flight pipeline errors are the client's to fix
CLIENT_ERRORS = (InputNotFound, InvalidClaim)

def create_app(test_config=None):
    """Create and configure the Flask application"""
    app = Flask(__name__)
    CORS(app)

    load_config(app, test_config)
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # The processor holds the verifier and its metrics for the app's lifetime
    from app.core.verification_processor import VerificationProcessor
    app.extensions['verification_processor'] = VerificationProcessor(app.config)

    from app.api.routes import api_bp
    app.register_blueprint(api_bp)

    register_error_handlers(app)

    @app.route('/health')
    def health_check():
        processor = app.extensions['verification_processor']
        return {
            'status': 'healthy',
            'version': idverify_version,
            'engine': type(processor.verifier.engine).__name__
        }, 200

    @app.route('/')
    def index():
        return redirect('/api/docs')

    return app

def load_config(app, test_config=None):
    """Apply the FLASK_ENV configuration class, then any overrides"""
    from app.config import config_by_name
    env = os.environ.get('FLASK_ENV', 'development')
    app.config.from_object(config_by_name.get(env, config_by_name['default']))
    if test_config:
        app.config.update(test_config)

def register_error_handlers(app):
    """Register JSON error handlers for the application"""

    @app.errorhandler(VerificationError)
    def verification_error(error):
        if isinstance(error, CLIENT_ERRORS):
            return jsonify({'status': 'error', 'message': str(error)}), 400
        logger.error(f"Verification failed: {error}")
        return jsonify({'status': 'error', 'message': 'Verification failed'}), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'status': 'error', 'message': 'Resource not found'}), 404

    @app.errorhandler(413)
    def request_entity_too_large(error):
        limit_mb = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        return jsonify({'status': 'error', 'message': f'File too large (limit {limit_mb}MB)'}), 413

    @app.errorhandler(500)
    def internal_server_error(error):
        return jsonify({'status': 'error', 'message': 'Internal server error'}), 500

"""
Student ID Verification API - Routes
API endpoints for document identity verification
"""

import time
import logging
from flask import Blueprint, request, jsonify, current_app

from app.api.utils import upload_error, claim_from_form, saved_uploads

# Configure logging
logger = logging.getLogger("API-Routes")

# Create Blueprint
api_bp = Blueprint('api', __name__, url_prefix='/api')

API_VERSION = '1.0'

def get_processor():
    """Return the application's verification processor"""
    return current_app.extensions['verification_processor']

@api_bp.route('/docs')
def docs():
    """API Documentation"""
    documentation = {
        'name': 'Student ID Verification API',
        'version': API_VERSION,
        'description': 'Verifies a photographed student ID against the identity a user claims',
        'endpoints': [
            {
                'path': '/api/verify',
                'method': 'POST',
                'description': 'Verify an identity document',
                'parameters': [
                    {'name': 'document', 'in': 'formData', 'required': True, 'type': 'file', 'description': 'Front of the ID'},
                    {'name': 'back_document', 'in': 'formData', 'required': False, 'type': 'file', 'description': 'Back of the ID'},
                    {'name': 'email', 'in': 'formData', 'required': False, 'type': 'string', 'description': 'Institutional e-mail address'},
                    {'name': 'full_name', 'in': 'formData', 'required': False, 'type': 'string', 'description': 'Declared full name'},
                    {'name': 'student_id', 'in': 'formData', 'required': False, 'type': 'string', 'description': 'Student number'}
                ],
                'responses': {
                    '200': {
                        'description': 'Verification outcome',
                        'schema': {
                            'type': 'object',
                            'properties': {
                                'status': {'type': 'string'},
                                'message': {'type': 'string'},
                                'results': {'type': 'object'}
                            }
                        }
                    },
                    '400': {'description': 'Bad request - missing or unreadable file'},
                    '413': {'description': 'File too large'},
                    '504': {'description': 'Verification timed out'}
                }
            },
            {
                'path': '/api/stats',
                'method': 'GET',
                'description': 'Get verification statistics',
                'responses': {
                    '200': {
                        'description': 'Verification statistics',
                        'schema': {'type': 'object'}
                    }
                }
            }
        ]
    }
    return jsonify(documentation)

@api_bp.route('/verify', methods=['POST'])
def verify_document():
    """Verify an uploaded ID document against the submitted claim"""
    start_time = time.time()
    
    front = request.files.get('document')
    if front is None:
        return jsonify({'status': 'error', 'message': 'Front side of student ID is required'}), 400
    
    back = request.files.get('back_document')
    if back is not None and back.filename == '':
        back = None
    
    for upload, label in ((front, 'front'), (back, 'back')):
        if upload is None:
            continue
        error = upload_error(upload, label)
        if error:
            return jsonify({'status': 'error', 'message': error}), 400
    
    claim = claim_from_form(request.form)
    logger.info(f"Verifying {front.filename}" + (f" and {back.filename}" if back else ""))
    
    try:
        with saved_uploads(front, back) as (front_path, back_path):
            outcome = get_processor().process_documents(front_path, back_path, claim)
    except TimeoutError:
        logger.error(f"Verification timed out for {front.filename}")
        return jsonify({
            'status': 'error',
            'message': 'Verification timed out. Try with a smaller image.',
            'processing_time_ms': round((time.time() - start_time) * 1000, 2)
        }), 504
    
    include_trace = current_app.config.get('EXPOSE_TRACE', False)
    
    return jsonify({
        'status': 'success',
        'message': 'Document verified' if outcome.auto_approved else 'Document requires manual review',
        'results': outcome.to_dict(include_trace=include_trace)
    })

@api_bp.route('/stats', methods=['GET'])
def get_stats():
    """Get verification statistics"""
    stats = get_processor().get_statistics()
    
    return jsonify({
        'api_version': API_VERSION,
        'verifier': stats
    })

# Root endpoint for API
@api_bp.route('/', methods=['GET'])
def api_home():
    """API home endpoint"""
    return jsonify({
        'name': 'Student ID Verification API',
        'version': API_VERSION,
        'documentation': '/api/docs',
        'endpoints': [
            {'path': '/api/verify', 'method': 'POST', 'description': 'Verify an identity document'},
            {'path': '/api/stats', 'method': 'GET', 'description': 'Get verification statistics'}
        ]
    })

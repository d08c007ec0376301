import os
import logging
from app import create_app

def configure_logging():
    """Terminal logging for the development server"""
    level = os.environ.get('LOG_LEVEL', 'INFO').upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    # Image and OCR libraries are chatty at DEBUG
    for module in ('urllib3', 'PIL', 'pytesseract'):
        logging.getLogger(module).setLevel(logging.WARNING)

configure_logging()
app = create_app()

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('DEBUG', 'false').lower() == 'true'

    logging.getLogger("API-Routes").info(
        f"Student ID Verification API on http://localhost:{port} (docs at /api/docs, "
        f"auto-approve threshold {app.config['AUTO_APPROVE_THRESHOLD']})"
    )
    app.run(host='0.0.0.0', port=port, debug=debug, use_reloader=False)

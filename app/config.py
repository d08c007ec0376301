import os
import tempfile
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

def env_flag(name, default='false'):
    return os.environ.get(name, default).lower() == 'true'

def env_int(name, default):
    return int(os.environ.get(name, default))

class Config:
    """Base configuration"""
    PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))

    # Uploads only live until their verification result exists
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(PROJECT_ROOT, 'data', 'uploads'))

    # Checked by the API before the pipeline sees a file
    ALLOWED_EXTENSIONS = {'png', 'jpg', 'jpeg', 'bmp', 'tiff', 'webp'}
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    # Seconds for a whole verification, every variant of both sides
    OCR_TIMEOUT = env_int('OCR_TIMEOUT', 120)
    DEFAULT_LANGUAGE = os.environ.get('DEFAULT_LANGUAGE', 'eng')
    TESSERACT_PATH = os.environ.get('TESSERACT_PATH', '')
    TESSERACT_DATA_PATH = os.environ.get('TESSERACT_DATA_PATH', '')

    # Verification policy
    AUTO_APPROVE_THRESHOLD = env_int('AUTO_APPROVE_THRESHOLD', 70)
    PARALLEL_VARIANTS = env_flag('PARALLEL_VARIANTS')

    # Per-variant trace in responses, for admin deployments only
    EXPOSE_TRACE = env_flag('EXPOSE_TRACE')

    SECRET_KEY = os.environ.get('SECRET_KEY', 'idverify-secret')
    DEBUG = env_flag('DEBUG')

class DevelopmentConfig(Config):
    DEBUG = True
    TESTING = False
    EXPOSE_TRACE = True

class TestingConfig(Config):
    DEBUG = True
    TESTING = True
    # Created by create_app, not at import
    UPLOAD_FOLDER = os.path.join(tempfile.gettempdir(), 'idverify-test-uploads')

class ProductionConfig(Config):
    DEBUG = False
    TESTING = False
    EXPOSE_TRACE = env_flag('EXPOSE_TRACE')

config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}

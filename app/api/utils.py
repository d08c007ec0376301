"""
Student ID Verification API - Utilities
Upload validation and scoped storage for the verification endpoint
"""

import os
import uuid
import logging
from contextlib import contextmanager
from typing import Optional
from flask import current_app
from werkzeug.utils import secure_filename

from idverify import IdentityClaim
from idverify.utils import remove_file

logger = logging.getLogger("API-Routes")

def file_extension(filename: str) -> str:
    """Lowercase extension without the dot, '' when there is none"""
    if '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[1].lower()

def allowed_file(filename: str) -> bool:
    """
    Check the upload against the accepted image formats

    Args:
        filename: Client-side filename

    Returns:
        True if the extension is accepted
    """
    return file_extension(filename) in current_app.config['ALLOWED_EXTENSIONS']

def upload_error(file, label: str) -> Optional[str]:
    """
    Validate one uploaded document

    Args:
        file: werkzeug FileStorage
        label: Side of the document, used in the message

    Returns:
        Error message, or None if the upload is acceptable
    """
    if file.filename == '':
        return f'No file selected for the {label} side'
    if not allowed_file(file.filename):
        return 'File type not supported'
    return None

def claim_from_form(form) -> IdentityClaim:
    """Build the identity claim from submitted form fields"""
    fields = {key: value.strip() for key, value in form.items() if isinstance(value, str)}
    return IdentityClaim.from_mapping(fields)

@contextmanager
def saved_uploads(*files):
    """
    Store uploads under unique names for the duration of the block

    Yields one path per file (None for files that were not sent). The stored
    copies are removed when the block exits.
    """
    paths = []
    try:
        for file in files:
            if file is None:
                paths.append(None)
                continue
            name = f"{uuid.uuid4().hex}_{secure_filename(file.filename)}"
            path = os.path.join(current_app.config['UPLOAD_FOLDER'], name)
            file.save(path)
            paths.append(path)
        yield paths
    finally:
        for path in paths:
            if path and not remove_file(path):
                logger.warning(f"Upload {path} was left on disk")

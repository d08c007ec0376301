"""
Student ID Verification API - Verification Processor
Wrapper around the IdentityVerifier with timeout handling and metrics
"""

import time
import queue
import logging
import threading
from typing import Dict, Any, Optional

from idverify import IdentityVerifier, IdentityClaim, ProcessingStats, VerificationOutcome
from idverify.utils import get_available_libraries

logger = logging.getLogger("Verification-Processor")

class VerificationProcessor:
    """
    Verification Processor that wraps the IdentityVerifier
    and keeps the application's metrics sink. Only verifications that
    finish within the timeout are recorded
    """
    
    def __init__(self, app_config):
        """
        Initialize the processor from the Flask configuration
        
        Args:
            app_config: Flask config mapping
        """
        self.timeout = app_config.get('OCR_TIMEOUT', 120)
        self.stats = ProcessingStats()
        self.timeouts = 0
        self.timeout_lock = threading.Lock()
        self.start_time = time.time()
        self.verifier = IdentityVerifier(
            config={
                "tesseract_path": app_config.get('TESSERACT_PATH') or None,
                "tesseract_data_path": app_config.get('TESSERACT_DATA_PATH') or None,
                "language": app_config.get('DEFAULT_LANGUAGE', 'eng'),
                "auto_approve_threshold": app_config.get('AUTO_APPROVE_THRESHOLD', 70),
                "parallel_variants": app_config.get('PARALLEL_VARIANTS', False),
                "temp_dir": app_config.get('UPLOAD_FOLDER'),
            }
        )
        logger.info("Verification Processor initialized successfully")
    
    def process_documents(self, front_path: str, back_path: Optional[str],
                          claim: IdentityClaim) -> VerificationOutcome:
        """
        Verify uploaded documents with a timeout
        
        Args:
            front_path: Path to the front image
            back_path: Path to the back image, or None
            claim: Identity the user asserts
            
        Returns:
            VerificationOutcome
            
        Raises:
            TimeoutError: if verification takes longer than OCR_TIMEOUT
            InputNotFound, InvalidClaim: propagated from the pipeline
        """
        start_time = time.time()
        try:
            outcome = self._process_with_timeout(front_path, back_path, claim, self.timeout)
        except TimeoutError:
            # The abandoned worker may still finish; its outcome is never recorded
            with self.timeout_lock:
                self.timeouts += 1
            raise
        self.stats.record(outcome, time.time() - start_time)
        logger.info(f"Documents verified in {time.time() - start_time:.2f} seconds: {outcome.decision.value}")
        return outcome
    
    def _process_with_timeout(self, front_path, back_path, claim, timeout):
        """Run verification in a worker thread to prevent hanging"""
        result_queue = queue.Queue()
        
        def target_function():
            try:
                result_queue.put(self.verifier.verify_pair(front_path, back_path, claim))
            except Exception as e:
                result_queue.put(e)
        
        thread = threading.Thread(target=target_function)
        thread.daemon = True
        thread.start()
        thread.join(timeout)
        
        if thread.is_alive():
            # If thread is still running after timeout
            raise TimeoutError("Verification timed out")
        
        result = result_queue.get()
        if isinstance(result, Exception):
            raise result
        return result
    
    def get_statistics(self) -> Dict[str, Any]:
        """
        Get verifier statistics
        
        Returns:
            Dictionary with verifier statistics
        """
        statistics = self.verifier.get_statistics()
        statistics["processing_stats"] = self.stats.get_statistics()
        statistics["timeouts"] = self.timeouts
        statistics["libraries"] = get_available_libraries()
        statistics["uptime"] = int(time.time() - self.start_time)
        return statistics

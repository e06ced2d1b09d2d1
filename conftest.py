"""
Root pytest configuration for the maternal triage engine.

Sets up the Python path and test environment variables for all test directories.
"""

import os
import sys
from pathlib import Path

# Set test environment variables before anything else imports settings
os.environ.setdefault("TRIAGE_ENVIRONMENT", "test")
os.environ.setdefault("TRIAGE_OBS_LOG_LEVEL", "DEBUG")
os.environ.setdefault("TRIAGE_PRIVACY_USER_ID_SALT", "test_salt_for_pytest_only")

project_root = Path(__file__).parent

# Add src directory to path for imports
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

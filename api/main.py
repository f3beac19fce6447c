"""
CrowdShield - Serverless Entry Point
Exposes the FastAPI application to ASGI serverless hosts.
"""

import os
import sys

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from crowdshield.api.main import app

# Serverless handler
handler = app

"""
Client configuration loaded from environment / .env
"""
import os
import logging
from dotenv import load_dotenv

load_dotenv()

# Panel
PANEL_HOST = os.getenv('PANEL_HOST', '')
PANEL_IP = os.getenv('PANEL_IP', '')
PANEL_USERNAME = os.getenv('PANEL_USERNAME', '')
PANEL_PASSWORD = os.getenv('PANEL_PASSWORD', '')

# Transport
REQUEST_TIMEOUT = float(os.getenv('REQUEST_TIMEOUT', 15))

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

logger = logging.getLogger('marzclient')
if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
    logger.addHandler(_handler)
logger.setLevel(LOG_LEVEL)

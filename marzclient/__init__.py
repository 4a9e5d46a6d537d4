"""
Client for the panel management REST API
"""
from .panel import INBOUNDS, PanelAPI, PanelResponse
from .utils import format_server_url, generate_unique_name

__all__ = [
    'INBOUNDS',
    'PanelAPI',
    'PanelResponse',
    'format_server_url',
    'generate_unique_name',
]

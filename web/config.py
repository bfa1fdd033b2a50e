"""
Web dashboard configuration.
"""
from sales_engine.config import config

# Web server settings
WEB_HOST = config.web.host
WEB_PORT = config.web.port

VERSION = config.version

# Room that receives live sale broadcasts
SALES_ROOM = config.live.websocket_room

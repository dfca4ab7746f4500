"""
WSGI entrypoint for gunicorn/systemd.

Storage and state locations are read from WORKCAMERA_BASE_DIR and
WORKCAMERA_STATE_DIR; set WORKCAMERA_LOG_DIR to also log to rotating files.
"""
from web.app import create_app

app = create_app()

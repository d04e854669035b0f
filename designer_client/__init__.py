"""
Lumiere designer client

Framework-independent state container for the AI designer UI.
"""

from designer_client.state import SessionState
from designer_client.store import SessionStore

__version__ = "0.1.0"

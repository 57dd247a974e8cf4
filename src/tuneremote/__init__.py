"""tuneremote -- Remote control for a desktop music player.

Exposes HTTP and WebSocket endpoints that drive a Chromium-based music
application through its remote debugging protocol. The automation
session is owned by a single lifecycle object that reconnects on its
own, so callers only ever see command outcomes.
"""

__version__ = "0.1.0"

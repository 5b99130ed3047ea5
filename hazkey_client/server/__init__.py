from hazkey_client.server.api import ServerState, dispatch, envelope_handler
from hazkey_client.server.control import HazkeyServer

__all__ = ["HazkeyServer", "ServerState", "dispatch", "envelope_handler"]

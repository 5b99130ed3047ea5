__version__ = "0.1.0"

from hazkey_client.ipc.client import ServerConnector
from hazkey_client.ipc.protocol import (
    ClearAllHistory,
    CurrentConfig,
    Failure,
    GetConfig,
    Profile,
    ReloadZenzaiModel,
    ResponseEnvelope,
    ResponseStatus,
    SetConfig,
    Success,
)

__all__ = [
    "__version__",
    "ClearAllHistory",
    "CurrentConfig",
    "Failure",
    "GetConfig",
    "Profile",
    "ReloadZenzaiModel",
    "ResponseEnvelope",
    "ResponseStatus",
    "ServerConnector",
    "SetConfig",
    "Success",
]

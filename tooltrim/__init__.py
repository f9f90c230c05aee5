import os

__version__ = "0.4.0"


def data_dir() -> str:
    """Return the tooltrim data directory (for config and debug logs).

    Uses %APPDATA%/tooltrim on Windows, ~/.tooltrim on Unix.
    """
    if os.name == "nt":
        appdata = os.environ.get(
            "APPDATA", os.path.join(os.path.expanduser("~"), "AppData", "Roaming")
        )
        return os.path.join(appdata, "tooltrim")
    return os.path.join(os.path.expanduser("~"), ".tooltrim")

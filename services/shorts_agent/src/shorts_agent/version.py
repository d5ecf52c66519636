"""Package version, read from the installed distribution metadata."""

from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION = "shorts-agent"

try:
    __version__ = version(DISTRIBUTION)
except PackageNotFoundError:  # source checkout without an install
    __version__ = "0.1.0"

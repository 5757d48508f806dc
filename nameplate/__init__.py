"""
Nameplate package initializer.

This package extracts brand, product family, model number and serial number
from photographs of appliance nameplates.

The package exposes a ``__version__`` attribute indicating the installed
version. The version is read from pyproject.toml via importlib.metadata.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("nameplate-extraction")
except PackageNotFoundError:
    # Package is not installed (running from source without pip install -e .)
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]

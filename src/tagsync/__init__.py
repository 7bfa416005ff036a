"""tagsync keeps a local directory of tag media in step with a Stash catalog."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tagsync")
except PackageNotFoundError:  # running from a source tree without installation
    __version__ = "0.0.0"

__all__ = ["__version__"]

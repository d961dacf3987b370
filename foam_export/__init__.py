"""Drawing, outline and STEP export for custom-cut foam layouts."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("foam-layout-export")
except PackageNotFoundError:  # pragma: no cover - handled when package not installed
    __version__ = "unknown"

"""vault-export: export a notes vault to portable CommonMark."""

__version__ = "0.1.0"

from .config import ExportConfig, load_config
from .errors import (
    ExportError,
    FileExportError,
    FrontmatterDecodeError,
    PathDoesNotExist,
    ReadError,
    RecursionLimitExceeded,
    StartAtOutsideVault,
    WriteError,
)
from .exporter import Exporter
from .models import (
    Context,
    ExportSummary,
    FrontmatterStrategy,
    LinkStyle,
    Postprocessor,
    PostprocessorResult,
)

__all__ = [
    "__version__",
    "Context",
    "ExportConfig",
    "ExportError",
    "ExportSummary",
    "Exporter",
    "FileExportError",
    "FrontmatterDecodeError",
    "FrontmatterStrategy",
    "LinkStyle",
    "PathDoesNotExist",
    "Postprocessor",
    "PostprocessorResult",
    "ReadError",
    "RecursionLimitExceeded",
    "StartAtOutsideVault",
    "WriteError",
    "load_config",
]

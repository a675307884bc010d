"""Install and uninstall transactions with rollback."""

from .collaborators import ArchiveExtractor, Downloader, HookRunner, NativeBuilder, TestRunner
from .install import InstallReport, Installer
from .rebuild import rebuild_records, scan_prefix
from .rollback import RollbackStack
from .uninstall import UninstallReport, Uninstaller

__all__ = [
    "ArchiveExtractor",
    "Downloader",
    "HookRunner",
    "InstallReport",
    "Installer",
    "NativeBuilder",
    "RollbackStack",
    "TestRunner",
    "UninstallReport",
    "Uninstaller",
    "rebuild_records",
    "scan_prefix",
]

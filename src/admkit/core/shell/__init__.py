from admkit.core.shell.abc import CommandResult, Shell
from admkit.core.shell.dry_run import DryRunShell
from admkit.core.shell.real import RealShell
from admkit.core.shell.silent import SilentShell

__all__ = ["CommandResult", "DryRunShell", "RealShell", "Shell", "SilentShell"]

"""Application context with dependency injection."""

import os
from dataclasses import dataclass
from pathlib import Path

from admkit.core.config import AdmConfig, ConfigStore, FilesystemConfigStore, load_from_environment
from admkit.core.host import Host, RealHost
from admkit.core.http import DryRunHttp, Http, RealHttp
from admkit.core.prompt import Prompt, RealPrompt
from admkit.core.shell import DryRunShell, RealShell, Shell, SilentShell
from admkit.core.time import RealTime, Time
from admkit.core.user_feedback import InteractiveFeedback, SuppressedFeedback, UserFeedback


@dataclass(frozen=True)
class AdmContext:
    """Immutable context holding all dependencies for admkit operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.
    """

    shell: Shell
    http: Http
    time: Time
    prompt: Prompt
    host: Host
    feedback: UserFeedback
    config_store: ConfigStore
    config: AdmConfig
    cwd: Path
    dry_run: bool

    @staticmethod
    def for_test(
        shell: Shell | None = None,
        http: Http | None = None,
        time: Time | None = None,
        prompt: Prompt | None = None,
        host: Host | None = None,
        feedback: UserFeedback | None = None,
        config_store: ConfigStore | None = None,
        config: AdmConfig | None = None,
        cwd: Path | None = None,
        dry_run: bool = False,
    ) -> "AdmContext":
        """Create test context with optional pre-configured integration classes.

        Any integration left as None is replaced with its in-memory fake.

        Args:
            shell: Optional Shell. If None, creates an empty FakeShell.
            http: Optional Http. If None, creates FakeHttp with no responses.
            time: Optional Time. If None, creates FakeTime at a fixed instant.
            prompt: Optional Prompt. If None, FakePrompt answering defaults.
            host: Optional Host. If None, FakeHost running as root on x86_64.
            feedback: Optional UserFeedback. If None, creates FakeUserFeedback.
            config_store: Optional ConfigStore. If None, a store at a path that
                does not exist.
            config: Optional AdmConfig. If None, built-in defaults.
            cwd: Optional working directory. If None, uses Path("/test/cwd").
            dry_run: Whether to enable dry-run mode (default False).

        Returns:
            AdmContext configured with provided values and test defaults

        Example:
            >>> shell = FakeShell(installed={"apt-get": "/usr/bin/apt-get"})
            >>> ctx = AdmContext.for_test(shell=shell, config=config_in(tmp_path))
        """
        from tests.fakes.host import FakeHost
        from tests.fakes.http import FakeHttp
        from tests.fakes.prompt import FakePrompt
        from tests.fakes.shell import FakeShell
        from tests.fakes.time import FakeTime
        from tests.fakes.user_feedback import FakeUserFeedback

        return AdmContext(
            shell=shell if shell is not None else FakeShell(),
            http=http if http is not None else FakeHttp(),
            time=time if time is not None else FakeTime(),
            prompt=prompt if prompt is not None else FakePrompt(),
            host=host if host is not None else FakeHost(),
            feedback=feedback if feedback is not None else FakeUserFeedback(),
            config_store=(
                config_store
                if config_store is not None
                else FilesystemConfigStore(Path("/test/admkit/config.toml"))
            ),
            config=config if config is not None else AdmConfig(),
            cwd=cwd if cwd is not None else Path("/test/cwd"),
            dry_run=dry_run,
        )


def env_dry_run() -> bool:
    """DRY_RUN=1 in the environment forces dry-run mode."""
    return os.environ.get("DRY_RUN", "0") == "1"


def create_context(*, dry_run: bool, silent: bool = False) -> AdmContext:
    """Create production context with real implementations.

    Called at CLI entry point to create the context for the entire
    command execution.

    Args:
        dry_run: If True, wrap integrations so mutating operations only print
        silent: If True, capture command output and replay it only on failure

    Returns:
        AdmContext with real implementations, wrapped as requested
    """
    time: Time = RealTime()
    shell: Shell = RealShell()
    http: Http = RealHttp()
    feedback: UserFeedback = InteractiveFeedback(time)

    if silent:
        shell = SilentShell(shell)
        feedback = SuppressedFeedback(time)

    if dry_run:
        shell = DryRunShell(shell)
        http = DryRunHttp(http)

    config_store, config = load_from_environment()

    return AdmContext(
        shell=shell,
        http=http,
        time=time,
        prompt=RealPrompt(),
        host=RealHost(),
        feedback=feedback,
        config_store=config_store,
        config=config,
        cwd=Path.cwd(),
        dry_run=dry_run,
    )

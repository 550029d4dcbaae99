import os
import pwd
import socket
import stat
from pathlib import Path

from admkit.core.host.abc import Host


class RealHost(Host):
    """Answers host questions from the running kernel and passwd database."""

    def effective_uid(self) -> int:
        return os.geteuid()

    def machine(self) -> str:
        return os.uname().machine

    def init_process(self) -> str:
        try:
            return Path("/proc/1/comm").read_text(encoding="utf-8").strip()
        except OSError:
            return ""

    def user_home(self, user: str) -> Path | None:
        try:
            return Path(pwd.getpwnam(user).pw_dir)
        except KeyError:
            return None

    def cpu_count(self) -> int:
        return os.cpu_count() or 1

    def is_block_device(self, path: Path) -> bool:
        try:
            return stat.S_ISBLK(path.stat().st_mode)
        except OSError:
            return False

    def user_name(self) -> str:
        try:
            return pwd.getpwuid(os.geteuid()).pw_name
        except KeyError:
            return "user"

    def hostname(self) -> str:
        return socket.gethostname() or "localhost"

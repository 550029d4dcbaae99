"""Unattended full system upgrade (``admkit sysupgrade``).

Backs up /etc, runs a full APT upgrade with new config files preferred,
restarts services, optionally audits the host with Lynis and systemcheck, and
writes a system information report. Reports and audits older than a week are
rotated away.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.apt.packages import NONINTERACTIVE, detect_apt

if TYPE_CHECKING:
    from admkit.core.config import PathsConfig
    from admkit.core.context import AdmContext

logger = logging.getLogger(__name__)

RETENTION = timedelta(days=7)
AUDIT_PATTERNS = ("lynis-audit-*.log", "lynis-report-*.dat", "systemcheck-*.log")
INFO_PATTERNS = ("sysupgrade-info-*.log",)
UPGRADE_ENV = {**NONINTERACTIVE, "LANG": "C.UTF-8", "LC_ALL": "C.UTF-8"}


@dataclass(frozen=True)
class Section:
    title: str
    commands: tuple[tuple[str, ...], ...]
    max_lines: int | None = None
    unavailable: str | None = None


@dataclass
class UpgradeOptions:
    tor: bool = False
    audit: bool = True
    report: bool = True


@dataclass
class UpgradeResult:
    backup: Path | None = None
    report: Path | None = None
    audit_logs: list[Path] = field(default_factory=list)
    rotated: list[Path] = field(default_factory=list)


def info_sections(paths: "PathsConfig") -> list[Section]:
    return [
        Section("System Info", (("uname", "-a"), ("cat", str(paths.os_release)))),
        Section("CPU", (("lscpu",),)),
        Section(
            "Memory (MemTotal from /proc/meminfo)",
            (("grep", "-E", "^Mem(Total|Available):", "/proc/meminfo"),),
        ),
        Section("PCI Devices", (("lspci", "-nn"),), unavailable="lspci not available."),
        Section("USB Devices", (("lsusb",),), unavailable="lsusb not available."),
        Section("Uptime / Load", (("uptime",), ("free", "-h"))),
        Section("Upgradable Packages", (("apt", "list", "--upgradable"),)),
        Section(
            "Previous Boot Journal (warnings/errors)",
            (("journalctl", "-b", "-1", "-p", "warning..alert"),),
        ),
        Section(
            "Recent Journal (warnings/errors, last hour)",
            (("journalctl", "-p", "warning..alert", "--since", "1 hour ago"),),
        ),
        Section("Failed Systemd Services", (("systemctl", "list-units", "--state=failed"),)),
        Section("Disk Usage (df -h)", (("df", "-h"),)),
        Section("Inode Usage (df -i)", (("df", "-i"),)),
        Section("Block Devices", (("lsblk", "-f"),)),
        Section("Mounts", (("mount",),)),
        Section("Network (ip -br a)", (("ip", "-br", "a"),)),
        Section("Routes", (("ip", "route"),)),
        Section(
            "Top Processes (by RSS)",
            (("ps", "-eo", "pid,ppid,cmd,%mem,%cpu,rss", "--sort=-rss"),),
            max_lines=20,
        ),
    ]


def section_header(title: str) -> str:
    return f"\n---\n\n=== {title} ===\n\n"


def render_section(ctx: "AdmContext", section: Section) -> str:
    parts = [section_header(section.title)]
    for cmd in section.commands:
        result = ctx.shell.query(list(cmd), operation=f"collect {section.title}")
        if result.returncode == 127 and section.unavailable:
            parts.append(section.unavailable + "\n")
            continue
        output = result.stdout + result.stderr
        if section.max_lines is not None:
            output = "".join(output.splitlines(keepends=True)[: section.max_lines])
        parts.append(output)
        if len(section.commands) > 1:
            parts.append("\n")
    return "".join(parts)


def collect_system_info(ctx: "AdmContext") -> str:
    return "".join(render_section(ctx, s) for s in info_sections(ctx.config.paths))


def rotate(ctx: "AdmContext", directory: Path, patterns: Sequence[str]) -> list[Path]:
    """Remove files matching patterns that are older than a week."""
    if not directory.is_dir():
        return []
    cutoff = (ctx.time.now() - RETENTION).timestamp()
    removed = []
    for pattern in patterns:
        for path in sorted(directory.glob(pattern)):
            if not path.is_file() or path.stat().st_mtime >= cutoff:
                continue
            if ctx.dry_run:
                ctx.feedback.info(f"Would remove {path}")
            else:
                path.unlink()
            removed.append(path)
    return removed


def backup_etc(ctx: "AdmContext", stamp: str) -> Path:
    paths = ctx.config.paths
    archive = paths.etc_backup_root / stamp / "etc.tar.gz"
    ctx.feedback.info(f"Backing up {paths.etc_dir} to {archive}...")
    ctx.shell.run(["mkdir", "-p", str(archive.parent)], operation="create backup directory")
    ctx.shell.run(
        [
            "tar",
            "--numeric-owner",
            "--xattrs",
            "--acls",
            "-cpzf",
            str(archive),
            "-C",
            str(paths.etc_dir.parent),
            paths.etc_dir.name,
        ],
        operation=f"back up {paths.etc_dir}",
    )
    ctx.feedback.info("Backup completed.")
    return archive


def upgrade_packages(ctx: "AdmContext", tor: bool) -> None:
    apt = detect_apt(ctx)
    base = ["torsocks", apt] if tor else [apt]
    run = ctx.shell.run

    ctx.feedback.info("Updating package lists...")
    run([*base, "update"], operation="update package lists", env=UPGRADE_ENV)

    ctx.feedback.info("Running full-upgrade (auto-replace old config files)...")
    run(
        [
            *base,
            "-y",
            "-o",
            "Dpkg::Options::=--force-confdef",
            "-o",
            "Dpkg::Options::=--force-confnew",
            "full-upgrade",
        ],
        operation="run full-upgrade",
        env=UPGRADE_ENV,
    )

    ctx.feedback.info("Removing unused packages (autoremove)...")
    run([*base, "-y", "autoremove", "--purge"], operation="autoremove", env=UPGRADE_ENV)
    ctx.feedback.info("Cleaning package cache (autoclean)...")
    run([*base, "-y", "autoclean"], operation="autoclean", env=UPGRADE_ENV)


def restart_services(ctx: "AdmContext") -> None:
    shell = ctx.shell
    feedback = ctx.feedback

    feedback.info("Reloading systemd manager configuration...")
    if not shell.run(
        ["systemctl", "daemon-reload"], operation="reload systemd", check=False
    ).ok:
        feedback.warn("systemctl daemon-reload failed (continuing).")

    if not shell.has("needrestart"):
        feedback.warn("needrestart not installed; services may need a manual restart.")
        return
    feedback.info("Restarting services using needrestart (automatic mode)...")
    if shell.run(["needrestart", "-r", "a"], operation="restart services", check=False).ok:
        feedback.info("Service restart via needrestart completed.")
    else:
        feedback.warn("needrestart reported an issue while restarting services.")


def run_security_audit(ctx: "AdmContext", stamp: str) -> list[Path]:
    shell = ctx.shell
    feedback = ctx.feedback
    audit_dir = ctx.config.paths.report_dir
    written: list[Path] = []

    if not ctx.dry_run:
        audit_dir.mkdir(parents=True, exist_ok=True)

    if shell.has("lynis"):
        audit_log = audit_dir / f"lynis-audit-{stamp}.log"
        audit_report = audit_dir / f"lynis-report-{stamp}.dat"
        feedback.info(f"Running Lynis security audit (log: {audit_log}, report: {audit_report})...")
        result = shell.run(
            [
                "lynis",
                "audit",
                "system",
                "--quiet",
                "--logfile",
                str(audit_log),
                "--report-file",
                str(audit_report),
            ],
            operation="run Lynis audit",
            check=False,
        )
        if result.ok:
            for path in (audit_log, audit_report):
                if path.exists():
                    path.chmod(0o600)
                    written.append(path)
            feedback.info("Lynis security audit completed.")
        else:
            feedback.warn(f"Lynis security audit encountered errors. See {audit_log} for details.")
    else:
        feedback.warn("lynis not installed; skipping security audit.")

    if shell.has("systemcheck"):
        syscheck_log = audit_dir / f"systemcheck-{stamp}.log"
        feedback.info(f"Running systemcheck (log: {syscheck_log})...")
        result = shell.run(
            ["systemcheck", "--quiet"], operation="run systemcheck", check=False, capture=True
        )
        if not ctx.dry_run:
            syscheck_log.write_text(result.stdout + result.stderr, encoding="utf-8")
            syscheck_log.chmod(0o600)
            written.append(syscheck_log)
        if result.ok:
            feedback.info("systemcheck completed.")
        else:
            feedback.warn(f"systemcheck encountered errors. See {syscheck_log} for details.")
    else:
        feedback.warn("systemcheck not found; skipping systemcheck run.")

    rotate(ctx, audit_dir, AUDIT_PATTERNS)
    feedback.info("Old security audit logs older than 7 days removed (if any).")
    return written


def write_report(ctx: "AdmContext", stamp: str) -> Path:
    report_dir = ctx.config.paths.report_dir
    report = report_dir / f"sysupgrade-info-{stamp}.log"
    ctx.feedback.info(f"Collecting system info to {report}...")
    content = collect_system_info(ctx)
    if ctx.dry_run:
        ctx.feedback.info(f"Would write system info to {report}")
        return report
    report_dir.mkdir(parents=True, exist_ok=True)
    report.write_text(content + "\n", encoding="utf-8")
    report.chmod(0o600)
    ctx.feedback.info(f"System info written to {report}.")
    return report


def sysupgrade(ctx: "AdmContext", options: UpgradeOptions) -> UpgradeResult:
    """Run the whole maintenance sequence.

    Raises:
        RuntimeError: If the backup or an APT step fails
    """
    result = UpgradeResult()
    ctx.feedback.info("Starting apt maintenance run...")

    result.backup = backup_etc(ctx, ctx.time.stamp())
    upgrade_packages(ctx, options.tor)
    restart_services(ctx)

    if options.audit:
        result.audit_logs = run_security_audit(ctx, ctx.time.stamp())

    if options.report:
        result.report = write_report(ctx, ctx.time.stamp())
        result.rotated = rotate(ctx, ctx.config.paths.report_dir, INFO_PATTERNS)
        ctx.feedback.info("Old sysupgrade info logs older than 7 days removed (if any).")

    ctx.feedback.success("Debian maintenance run completed successfully.")
    return result

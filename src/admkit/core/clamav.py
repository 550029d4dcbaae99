"""ClamAV with on-access scanning, retried signature updates and a daily scan.

Written for Fedora Atomic hosts (secureblue), where the ClamAV packages are
layered with rpm-ostree. Layering without ``--apply-live`` only takes effect
after a reboot, so the rest of the setup is then scheduled as a one-shot
service that reruns ``admkit clamav setup --apply-live`` on the next boot.

freshclam.conf and clamd's scan.conf are edited in place: every managed key
ends up on exactly one uncommented line, and the first edit keeps a ``.bak``
copy of the distribution file.
"""

import logging
import re
import shutil
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from admkit.core.services import find_systemd_unit

if TYPE_CHECKING:
    from admkit.core.context import AdmContext

logger = logging.getLogger(__name__)

ATOMIC_PACKAGES = ("clamav", "clamd", "clamav-freshclam")
ON_ACCESS_PATHS = ("/var/home", "/tmp", "/run/media", "/mnt", "/var/mnt")
# clamonacc.service wins when both exist
CLAMONACC_UNITS = ("clamonacc.service", "clamav-clamonacc.service")
CLAMD_UNIT = "clamd@scan.service"
FRESHCLAM_UNIT = "clamav-freshclam.service"
SCAN_SERVICE = "clamav-target-scan.service"
SCAN_TIMER = "clamav-target-scan.timer"
POSTINSTALL_UNIT = "clamav-atomic-postinstall.service"
SCAN_SCRIPT = "clamav-scan-targets.bash"
ATTEMPTS = 3
RETRY_DELAY = 5

SCAN_SCRIPT_TEMPLATE = """\
#!/usr/bin/env bash
set -euo pipefail
LOG_DIR="{log_dir}"
QUAR="{quarantine}"
mkdir -p "$LOG_DIR" "$QUAR"
ts="$(date --iso-8601=seconds | tr ':' '-')"
log="${{LOG_DIR}}/clamdscan-${{ts}}.log"
targets=( "/var/home" "/tmp" )
fstypes=(ext4 xfs btrfs f2fs vfat exfat ntfs ntfs3 hfsplus apfs udf iso9660)
if command -v findmnt >/dev/null 2>&1; then
    while IFS= read -r line; do
        t="${{line%% *}}"
        case "$t" in
            ""|"/"|/proc*|/sys*|/run*|/dev*|/boot*|/var/lib/containers*) continue ;;
        esac
        targets+=( "$t" )
    done < <(findmnt -rn -o TARGET,FSTYPE -t "$(IFS=,; echo "${{fstypes[*]}}")" 2>/dev/null || true)
fi
mapfile -t uniq_targets < <(printf "%s\\n" "${{targets[@]}}" | awk 'NF' | sort -u)
exec /usr/bin/clamdscan --multiscan --fdpass --infected --log="$log" --move="$QUAR" \\
    "${{uniq_targets[@]}}"
"""

SCAN_SERVICE_TEMPLATE = """\
[Unit]
Description=ClamAV periodic scan
Wants={clamd}
After={clamd}

[Service]
Type=oneshot
ExecStart={script}
"""

SCAN_TIMER_CONTENT = """\
[Unit]
Description=ClamAV periodic scan scheduler

[Timer]
OnCalendar=daily
RandomizedDelaySec=1h
Persistent=true

[Install]
WantedBy=timers.target
"""

CLAMONACC_OVERRIDE_TEMPLATE = """\
[Service]
ExecStart=
ExecStart=/usr/bin/clamonacc --foreground --fdpass --log={log} --move={quarantine}
Restart=on-failure
RestartSec=5
"""

POSTINSTALL_SCRIPT_TEMPLATE = """\
#!/usr/bin/env bash
set -euo pipefail
exec {admkit} clamav setup --apply-live
"""

POSTINSTALL_UNIT_TEMPLATE = """\
[Unit]
Description=ClamAV Atomic post-install
Wants=network-online.target
After=network-online.target

[Service]
Type=oneshot
ExecStart={script}

[Install]
WantedBy=multi-user.target
"""


def _key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(rf"\s*#?\s*{re.escape(key)}\b")


def ensure_kv_line(text: str, key: str, value: str) -> str:
    """Set key to value, replacing every (possibly commented) line for key.

    Examples:
        >>> ensure_kv_line("#LogTime no\\nFoo 1\\n", "LogTime", "yes")
        'LogTime yes\\nFoo 1\\n'
    """
    line = f"{key} {value}"
    pattern = _key_pattern(key)
    out: list[str] = []
    placed = False
    for current in text.splitlines():
        if pattern.match(current):
            if not placed:
                out.append(line)
                placed = True
            continue
        out.append(current)
    if not placed:
        out.append(line)
    return "\n".join(out) + "\n"


def ensure_multi_line(text: str, key: str, value: str) -> str:
    """Append ``key value`` unless that exact line exists (repeatable keys)."""
    line = f"{key} {value}"
    lines = text.splitlines()
    if line in lines:
        return text
    return "\n".join([*lines, line]) + "\n"


def comment_out_example(text: str) -> str:
    """Disable the ``Example`` line that stops an untouched config from loading."""
    lines = ["# Example" if line.strip() == "Example" else line for line in text.splitlines()]
    return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class ClamavReport:
    scheduled: bool
    clamonacc_unit: str | None = None


def _ensure_dir(ctx: "AdmContext", path: Path, mode: int = 0o755) -> None:
    if ctx.dry_run:
        if not path.is_dir():
            ctx.feedback.info(f"Would create {path}")
        return
    path.mkdir(mode=mode, parents=True, exist_ok=True)
    path.chmod(mode)


def _write(ctx: "AdmContext", path: Path, content: str, mode: int = 0o644) -> None:
    if ctx.dry_run:
        ctx.feedback.info(f"Would write {path}")
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    path.chmod(mode)


def edit_conf(ctx: "AdmContext", path: Path, header: str, edit: Callable[[str], str]) -> bool:
    """Apply edit to a config file, creating it with header when missing.

    Returns:
        Whether the file changed (or would change under --dry-run)
    """
    existed = path.is_file()
    before = path.read_text(encoding="utf-8") if existed else f"{header}\n"
    after = edit(before)
    if existed and after == before:
        logger.debug("%s already configured", path)
        return False
    if ctx.dry_run:
        ctx.feedback.info(f"Would update {path}")
        return True

    backup = path.with_name(f"{path.name}.bak")
    if existed and not backup.exists():
        shutil.copy2(path, backup)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(after, encoding="utf-8")
    ctx.feedback.info(f"Updated {path}")
    return True


def _chown(ctx: "AdmContext", paths: Sequence[Path], recursive: bool = True) -> None:
    user = ctx.config.clamav.user
    flags = ["-R"] if recursive else []
    ctx.shell.run(
        ["chown", *flags, f"{user}:{user}", *(str(p) for p in paths)],
        operation="set ClamAV ownership",
    )


def _retry(ctx: "AdmContext", what: str, failure: str, attempt: Callable[[], bool]) -> None:
    """Run attempt up to ATTEMPTS times, RETRY_DELAY seconds apart.

    Raises:
        RuntimeError: With failure when every attempt failed
    """
    for number in range(1, ATTEMPTS + 1):
        ctx.feedback.info(f"{what} (attempt {number})")
        if attempt():
            return
        if number < ATTEMPTS:
            ctx.feedback.warn(f"{what} failed, retrying in {RETRY_DELAY}s...")
            ctx.time.sleep(RETRY_DELAY)
    raise RuntimeError(f"{failure} after {ATTEMPTS} attempts")


def layer_packages(ctx: "AdmContext", apply_live: bool) -> bool:
    """Layer missing ClamAV packages on rpm-ostree hosts.

    Returns:
        True when the packages only apply after a reboot and the rest of the
        setup has been scheduled for then
    """
    shell = ctx.shell
    if not shell.has("rpm-ostree"):
        ctx.feedback.warn("Not on Fedora Atomic, skipping package layering")
        return False

    missing = [
        package
        for package in ATOMIC_PACKAGES
        if not shell.query(["rpm", "-q", package], operation=f"check {package}").ok
    ]
    if not missing:
        return False

    ctx.feedback.info(f"Layering missing packages: {' '.join(missing)}")
    cmd = ["rpm-ostree", "install", "--assumeyes", *missing]
    if apply_live:
        cmd.append("--apply-live")
    shell.run(cmd, operation="layer ClamAV packages")
    if apply_live:
        return False

    ctx.feedback.info("Packages layered but not live-applied. Scheduling post-install.")
    schedule_postinstall(ctx)
    return True


def schedule_postinstall(ctx: "AdmContext") -> None:
    script = ctx.config.paths.state_dir / "clamav-atomic" / "postinstall.sh"
    admkit = ctx.shell.which("admkit") or "/usr/local/bin/admkit"
    _ensure_dir(ctx, script.parent)
    _write(ctx, script, POSTINSTALL_SCRIPT_TEMPLATE.format(admkit=admkit), mode=0o755)
    _write(
        ctx,
        ctx.config.paths.systemd_dir / POSTINSTALL_UNIT,
        POSTINSTALL_UNIT_TEMPLATE.format(script=script),
    )
    ctx.shell.run(["systemctl", "daemon-reload"], operation="reload systemd")
    ctx.shell.run(
        ["systemctl", "enable", POSTINSTALL_UNIT],
        operation="enable ClamAV post-install",
        check=False,
    )
    ctx.feedback.info("Post-install scheduled for next reboot")


def fix_permissions(ctx: "AdmContext") -> None:
    clamav = ctx.config.clamav
    for path in (clamav.database_dir, clamav.database_dir / "tmp", clamav.log_dir):
        _ensure_dir(ctx, path)
    _ensure_dir(ctx, clamav.socket_dir)
    _ensure_dir(ctx, clamav.quarantine_dir, mode=0o700)
    _chown(ctx, [clamav.database_dir, clamav.log_dir, clamav.quarantine_dir, clamav.socket_dir])


def selinux_contexts_file(ctx: "AdmContext") -> Path:
    return ctx.config.paths.etc_dir / "selinux/targeted/contexts/files/file_contexts.local"


def fix_selinux(ctx: "AdmContext") -> None:
    """Label the clamd socket directory for SELinux, when SELinux is present."""
    clamav = ctx.config.clamav
    contexts = selinux_contexts_file(ctx)
    if not contexts.parent.is_dir():
        logger.debug("no SELinux policy at %s", contexts.parent)
        return

    pattern = f"{re.escape(str(clamav.socket_dir))}(/.*)?"
    current = contexts.read_text(encoding="utf-8") if contexts.is_file() else ""
    if pattern not in current:
        if ctx.dry_run:
            ctx.feedback.info(f"Would label {clamav.socket_dir} in {contexts}")
        else:
            with contexts.open("a", encoding="utf-8") as f:
                f.write(f"{pattern}    system_u:object_r:clamd_var_run_t:s0\n")

    if ctx.shell.has("restorecon"):
        paths = (clamav.socket_dir, clamav.database_dir, clamav.log_dir, clamav.quarantine_dir)
        ctx.shell.run(
            ["restorecon", "-R", *(str(p) for p in paths)],
            operation="restore SELinux labels",
            check=False,
        )


def configure_freshclam(ctx: "AdmContext") -> None:
    clamav = ctx.config.clamav
    update_log = ctx.config.paths.log_root / "freshclam.log"
    _ensure_dir(ctx, clamav.log_dir)
    if not ctx.dry_run:
        update_log.parent.mkdir(parents=True, exist_ok=True)
        update_log.touch()
        update_log.chmod(0o644)
    _chown(ctx, [update_log, clamav.log_dir], recursive=False)

    settings = (
        ("DatabaseDirectory", str(clamav.database_dir)),
        ("UpdateLogFile", str(update_log)),
        ("LogTime", "yes"),
        ("LogVerbose", "no"),
        ("DatabaseOwner", clamav.user),
        ("NotifyClamd", str(clamav.scan_conf)),
    )

    def edit(text: str) -> str:
        text = comment_out_example(text)
        for key, value in settings:
            text = ensure_kv_line(text, key, value)
        return text

    edit_conf(ctx, clamav.freshclam_conf, "# freshclam.conf - generated by admkit", edit)

    fix_permissions(ctx)
    fix_selinux(ctx)
    _retry(
        ctx,
        "Running freshclam",
        "freshclam failed",
        lambda: ctx.shell.run(
            ["freshclam"], operation="update ClamAV signatures", check=False
        ).ok,
    )


def configure_clamd(ctx: "AdmContext") -> None:
    clamav = ctx.config.clamav
    _ensure_dir(ctx, clamav.scan_conf.parent)
    _ensure_dir(ctx, clamav.socket_dir)
    _chown(ctx, [clamav.socket_dir], recursive=False)

    settings = (
        ("LogSyslog", "yes"),
        ("DatabaseDirectory", str(clamav.database_dir)),
        ("LocalSocket", str(clamav.socket_dir / "clamd.sock")),
        ("FixStaleSocket", "yes"),
        ("User", clamav.user),
    )
    exclusions = (
        ("OnAccessExcludeUname", clamav.user),
        ("OnAccessExcludeRootUID", "yes"),
        ("OnAccessPrevention", "yes"),
    )

    def edit(text: str) -> str:
        text = comment_out_example(text)
        for key, value in settings:
            text = ensure_kv_line(text, key, value)
        for path in ON_ACCESS_PATHS:
            text = ensure_multi_line(text, "OnAccessIncludePath", path)
        for key, value in exclusions:
            text = ensure_kv_line(text, key, value)
        return text

    edit_conf(ctx, clamav.scan_conf, "# scan.conf - generated by admkit", edit)

    fix_permissions(ctx)
    fix_selinux(ctx)

    def start() -> bool:
        shell = ctx.shell
        if not shell.run(
            ["systemctl", "restart", CLAMD_UNIT], operation="restart clamd", check=False
        ).ok:
            return False
        if ctx.dry_run:
            return True
        return shell.query(
            ["systemctl", "is-active", "--quiet", CLAMD_UNIT], operation="check clamd"
        ).ok

    _retry(ctx, f"Starting {CLAMD_UNIT}", "clamd failed to start", start)


def configure_clamonacc(ctx: "AdmContext") -> str | None:
    """Point clamonacc at the quarantine directory; None when it is not installed."""
    unit = find_systemd_unit(ctx, CLAMONACC_UNITS)
    if unit is None:
        ctx.feedback.info("No clamonacc service, skipping")
        return None

    dropin = ctx.config.paths.systemd_dir / f"{unit}.d"
    _ensure_dir(ctx, dropin)
    override = CLAMONACC_OVERRIDE_TEMPLATE.format(
        log=ctx.config.paths.log_root / "clamonacc.log",
        quarantine=ctx.config.clamav.quarantine_dir,
    )
    _write(ctx, dropin / "override.conf", override)
    return unit


def configure_periodic_scan(ctx: "AdmContext") -> None:
    clamav = ctx.config.clamav
    sbin = ctx.config.paths.install_prefix / "sbin"
    script = sbin / SCAN_SCRIPT
    _ensure_dir(ctx, sbin)
    fix_permissions(ctx)

    _write(
        ctx,
        script,
        SCAN_SCRIPT_TEMPLATE.format(log_dir=clamav.log_dir, quarantine=clamav.quarantine_dir),
        mode=0o755,
    )
    systemd = ctx.config.paths.systemd_dir
    service = SCAN_SERVICE_TEMPLATE.format(clamd=CLAMD_UNIT, script=script)
    _write(ctx, systemd / SCAN_SERVICE, service)
    _write(ctx, systemd / SCAN_TIMER, SCAN_TIMER_CONTENT)


def enable_services(ctx: "AdmContext", clamonacc_unit: str | None) -> None:
    """Enable and start everything; individual failures are only warnings."""
    shell = ctx.shell
    shell.run(["systemctl", "daemon-reload"], operation="reload systemd")
    units = [FRESHCLAM_UNIT, CLAMD_UNIT]
    if clamonacc_unit is not None:
        units.append(clamonacc_unit)
    units.append(SCAN_TIMER)
    for unit in units:
        result = shell.run(
            ["systemctl", "enable", "--now", unit], operation=f"enable {unit}", check=False
        )
        if not result.ok:
            ctx.feedback.warn(f"could not enable {unit}")

    if (ctx.config.paths.systemd_dir / POSTINSTALL_UNIT).is_file():
        shell.run(
            ["systemctl", "disable", POSTINSTALL_UNIT],
            operation="disable ClamAV post-install",
            check=False,
        )


def setup_clamav(ctx: "AdmContext", apply_live: bool = False) -> ClamavReport:
    """Install and configure ClamAV end to end.

    Raises:
        RuntimeError: If layering fails, or freshclam or clamd keep failing
    """
    ctx.feedback.info("Starting ClamAV setup (signature updates, on-access and periodic scans)")
    if layer_packages(ctx, apply_live):
        return ClamavReport(scheduled=True)

    configure_freshclam(ctx)
    configure_clamd(ctx)
    unit = configure_clamonacc(ctx)
    configure_periodic_scan(ctx)
    fix_selinux(ctx)
    enable_services(ctx, unit)
    ctx.feedback.success("ClamAV setup complete")
    return ClamavReport(scheduled=False, clamonacc_unit=unit)

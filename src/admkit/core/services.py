"""Service manager detection and best-effort service activation.

Repositories that ship a daemon (tor, i2pd) enable and start it on whichever
init system the host runs: systemd, SysV-init, OpenRC, runit, s6 or GNU
Shepherd. All activation steps are best effort; a failing step is logged and
the run continues.
"""

from collections.abc import Sequence
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from admkit.core.context import AdmContext


class InitSystem(Enum):
    SHEPHERD = "shepherd"
    OPENRC = "openrc"
    RUNIT = "runit"
    SYSTEMD = "systemd"
    S6 = "s6"
    SYSV = "sysv"
    UNKNOWN = "unknown"


def _available(ctx: "AdmContext", init: InitSystem, service: str) -> bool:
    shell = ctx.shell
    if init is InitSystem.SHEPHERD:
        return shell.has("herd")
    if init is InitSystem.OPENRC:
        return shell.has("rc-update") and shell.has("rc-service")
    if init is InitSystem.RUNIT:
        return shell.has("sv")
    if init is InitSystem.SYSTEMD:
        return shell.has("systemctl")
    if init is InitSystem.S6:
        return shell.has("s6-rc") or shell.has("s6-svc")
    if init is InitSystem.SYSV:
        return shell.has("service") or (ctx.config.paths.etc_dir / "init.d" / service).exists()
    return False


def init_from_pid1(comm: str) -> InitSystem | None:
    """Map the PID 1 command name to an init system."""
    comm = comm.strip()
    if comm == "shepherd":
        return InitSystem.SHEPHERD
    if comm == "openrc-init":
        return InitSystem.OPENRC
    if comm in ("runit", "runit-init"):
        return InitSystem.RUNIT
    if comm == "systemd":
        return InitSystem.SYSTEMD
    if comm.startswith("s6-svscan"):
        return InitSystem.S6
    return None


FALLBACK_ORDER = (
    InitSystem.SHEPHERD,
    InitSystem.OPENRC,
    InitSystem.RUNIT,
    InitSystem.SYSTEMD,
    InitSystem.S6,
    InitSystem.SYSV,
)


def detect_init_system(ctx: "AdmContext", service: str) -> InitSystem:
    """Detect how to manage service on this host.

    PID 1 decides when its tools are installed (s6 needs none, since it only
    gets instructions). Otherwise the first manager whose tools are on PATH wins.
    """
    from_pid1 = init_from_pid1(ctx.host.init_process())
    if from_pid1 is InitSystem.S6:
        return from_pid1
    if from_pid1 is not None and _available(ctx, from_pid1, service):
        return from_pid1

    for candidate in FALLBACK_ORDER:
        if _available(ctx, candidate, service):
            return candidate
    return InitSystem.UNKNOWN


def _try(ctx: "AdmContext", *commands: Sequence[str], operation: str) -> bool:
    """Run commands in order until one succeeds (``a || b || true``)."""
    for cmd in commands:
        if ctx.shell.run(cmd, operation=operation, check=False).ok:
            return True
    return False


def find_systemd_unit(ctx: "AdmContext", units: Sequence[str]) -> str | None:
    """First of units that systemd knows about."""
    listing = ctx.shell.query(["systemctl", "list-unit-files"], operation="list systemd units")
    present = {line.split()[0] for line in listing.stdout.splitlines() if line.strip()}
    for unit in units:
        if unit in present:
            return unit
    return None


def enable_and_start(
    ctx: "AdmContext",
    service: str,
    systemd_units: Sequence[str] | None = None,
) -> InitSystem:
    """Enable service at boot and (re)start it on the detected init system.

    Args:
        ctx: Application context
        service: Service name (e.g. "tor")
        systemd_units: Unit names to try in order; defaults to "<service>.service"

    Returns:
        The init system that was used
    """
    feedback = ctx.feedback
    init = detect_init_system(ctx, service)
    units = list(systemd_units) if systemd_units else [f"{service}.service"]
    op = f"enable {service}"

    if init is InitSystem.SHEPHERD:
        feedback.info(f"Detected GNU Shepherd. Enabling and starting {service} via shepherd...")
        _try(ctx, ["herd", "enable", service], operation=op)
        _try(ctx, ["herd", "start", service], operation=op)

    elif init is InitSystem.OPENRC:
        feedback.info(f"Detected OpenRC. Enabling and starting {service} via OpenRC...")
        _try(ctx, ["rc-update", "add", service, "default"], operation=op)
        _try(
            ctx,
            ["rc-service", service, "restart"],
            ["rc-service", service, "start"],
            operation=op,
        )

    elif init is InitSystem.RUNIT:
        feedback.info(f"Detected runit. Enabling and starting {service} via runit...")
        etc = ctx.config.paths.etc_dir
        sv_dir: Path = etc / "sv" / service
        link = etc / "service" / service
        if sv_dir.is_dir() and not link.exists():
            _try(ctx, ["mkdir", "-p", str(link.parent)], operation=op)
            _try(ctx, ["ln", "-s", str(sv_dir), str(link)], operation=op)
        _try(ctx, ["sv", "restart", service], ["sv", "start", service], operation=op)

    elif init is InitSystem.SYSTEMD:
        feedback.info(f"Detected systemd. Enabling and starting {service}...")
        _try(ctx, ["systemctl", "daemon-reload"], operation="reload systemd")
        unit = find_systemd_unit(ctx, units)
        if unit is None:
            feedback.warn(
                f"{service} systemd service not found; you may need to enable/start it manually."
            )
        else:
            ctx.shell.run(["systemctl", "enable", unit], operation=f"enable {unit}")
            ctx.shell.run(["systemctl", "restart", unit], operation=f"restart {unit}")

    elif init is InitSystem.S6:
        feedback.info(
            f"Detected s6-based init. {service} is installed, but s6 services are not "
            "managed automatically."
        )
        feedback.info(
            f"Please enable and start the '{service}' service using your s6/s6-rc configuration."
        )

    elif init is InitSystem.SYSV:
        feedback.info(f"Detected SysV-style init. Enabling and starting {service} via init.d...")
        if ctx.shell.has("update-rc.d"):
            _try(ctx, ["update-rc.d", service, "defaults"], operation=op)
        elif ctx.shell.has("chkconfig"):
            _try(ctx, ["chkconfig", service, "on"], operation=op)

        script = str(ctx.config.paths.etc_dir / "init.d" / service)
        if ctx.shell.has("service"):
            _try(ctx, ["service", service, "restart"], ["service", service, "start"], operation=op)
        else:
            _try(ctx, [script, "restart"], [script, "start"], operation=op)

    else:
        feedback.warn(
            "could not detect a known service manager (systemd, SysV, OpenRC, runit, s6, shepherd)."
        )
        feedback.warn(f"{service} is installed, but you must start and enable it manually.")

    return init

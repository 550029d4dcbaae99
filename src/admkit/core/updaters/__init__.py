"""Registry of updatable tools."""

from admkit.core.updaters.argon import ArgonOneUpdater
from admkit.core.updaters.base import UpdateOutcome, Updater, run_update
from admkit.core.updaters.btop import BtopUpdater
from admkit.core.updaters.cargo_crates import ArtiUpdater, OniuxUpdater
from admkit.core.updaters.fastfetch import FastfetchUpdater
from admkit.core.updaters.golang import GoUpdater
from admkit.core.updaters.monero import MoneroUpdater
from admkit.core.updaters.msedit import MseditUpdater
from admkit.core.updaters.source_builds import (
    KrohnkiteUpdater,
    LyrebirdUpdater,
    XdTorrentUpdater,
)

UPDATERS: dict[str, Updater] = {
    updater.name: updater
    for updater in (
        GoUpdater(),
        FastfetchUpdater(),
        BtopUpdater(),
        MoneroUpdater(),
        MseditUpdater(),
        LyrebirdUpdater(),
        XdTorrentUpdater(),
        KrohnkiteUpdater(),
        ArtiUpdater(),
        OniuxUpdater(),
        ArgonOneUpdater(),
    )
}

__all__ = ["UPDATERS", "UpdateOutcome", "Updater", "run_update"]

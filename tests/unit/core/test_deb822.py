from pathlib import Path

from admkit.core.deb822 import SourcesFile, Stanza, parse_sources, write_sources

TOR_SOURCES = """\
Types: deb deb-src
URIs: https://deb.torproject.org/torproject.org
Suites: bookworm
Components: main
Signed-By: /usr/share/keyrings/deb.torproject.org-keyring.gpg
"""


def test_stanza_of_builds_field_names() -> None:
    stanza = Stanza.of(
        types=["deb"],
        uris="https://cli.github.com/packages",
        suites="stable",
        components="main",
        architectures=None,
        signed_by="/etc/apt/keyrings/githubcli-archive-keyring.gpg",
    )

    assert stanza.render() == (
        "Types: deb\n"
        "URIs: https://cli.github.com/packages\n"
        "Suites: stable\n"
        "Components: main\n"
        "Signed-By: /etc/apt/keyrings/githubcli-archive-keyring.gpg\n"
    )


def test_parse_reads_fields_and_comments() -> None:
    sources = parse_sources("# managed by admkit\n" + TOR_SOURCES)

    assert sources.comments == ("managed by admkit",)
    [stanza] = sources.stanzas
    assert stanza.get("uris") == "https://deb.torproject.org/torproject.org"
    assert stanza.get("Types") == "deb deb-src"
    assert stanza.enabled


def test_parse_splits_stanzas_on_blank_lines() -> None:
    text = TOR_SOURCES + "\nTypes: deb\nURIs: http://example.org\nSuites: x\nEnabled: no\n"

    sources = parse_sources(text)

    assert len(sources.stanzas) == 2
    assert not sources.stanzas[1].enabled


def test_multiline_values_survive_render() -> None:
    text = "Types: deb\nSigned-By:\n -----BEGIN PGP PUBLIC KEY BLOCK-----\n .\n abc\n"

    stanza = parse_sources(text).stanzas[0]

    assert stanza.get("Signed-By") == "\n-----BEGIN PGP PUBLIC KEY BLOCK-----\n\nabc"
    assert parse_sources(stanza.render()).stanzas[0] == stanza


def test_write_sources_is_idempotent(tmp_path: Path) -> None:
    path = tmp_path / "tor.sources"
    sources = SourcesFile((Stanza.of(types="deb", uris="https://x", suites="bookworm"),))

    assert write_sources(path, sources) is True
    assert write_sources(path, sources) is False
    assert path.read_text(encoding="utf-8").count("Types:") == 1


def test_write_sources_removes_legacy_list(tmp_path: Path) -> None:
    legacy = tmp_path / "tor.list"
    legacy.write_text("deb https://deb.torproject.org/torproject.org bookworm main\n")
    sources = SourcesFile((Stanza.of(types="deb", uris="https://x", suites="bookworm"),))

    write_sources(tmp_path / "tor.sources", sources)

    assert not legacy.exists()


def test_write_sources_dry_run_touches_nothing(tmp_path: Path) -> None:
    path = tmp_path / "tor.sources"
    sources = SourcesFile((Stanza.of(types="deb", uris="https://x", suites="bookworm"),))

    assert write_sources(path, sources, dry_run=True) is True
    assert not path.exists()

from pathlib import Path

from click.testing import CliRunner

from admkit.cli.cli import cli
from admkit.core.config import FilesystemConfigStore, build_config
from admkit.core.context import AdmContext


def _ctx(tmp_path: Path, dry_run: bool = False) -> AdmContext:
    store = FilesystemConfigStore(tmp_path / "config.toml")
    return AdmContext.for_test(
        config_store=store,
        config=build_config({"website": {"service": "nginx"}}, {}),
        dry_run=dry_run,
    )


def test_get_prints_value(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["config", "get", "website.service"], obj=_ctx(tmp_path))

    assert result.exit_code == 0
    assert result.output.strip() == "nginx"


def test_get_invalid_key(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["config", "get", "website.colour"], obj=_ctx(tmp_path))

    assert result.exit_code == 1
    assert "Invalid key: website.colour" in result.output


def test_list_prints_every_key(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["config", "list"], obj=_ctx(tmp_path))

    assert result.exit_code == 0
    assert f"Config file: {tmp_path / 'config.toml'}" in result.output
    assert "website.service=nginx" in result.output
    assert "monero.user=monero" in result.output


def test_set_writes_file(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli, ["config", "set", "github.owner", "octo"], obj=_ctx(tmp_path)
    )

    assert result.exit_code == 0, result.output
    assert "Set github.owner=octo" in result.output
    assert FilesystemConfigStore(tmp_path / "config.toml").load({}).github.owner == "octo"


def test_set_dry_run_writes_nothing(tmp_path: Path) -> None:
    result = CliRunner().invoke(
        cli, ["config", "set", "github.owner", "octo"], obj=_ctx(tmp_path, dry_run=True)
    )

    assert result.exit_code == 0
    assert "Would set github.owner=octo" in result.output
    assert not (tmp_path / "config.toml").exists()


def test_set_invalid_key(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["config", "set", "nope", "x"], obj=_ctx(tmp_path))

    assert result.exit_code == 1
    assert "Invalid key: nope" in result.output

from admkit.core.context import AdmContext
from admkit.core.releases import (
    extract_version,
    is_at_least,
    latest_github_tag,
    release_assets,
    strip_v,
    tags_from_ls_remote,
    version_key,
)
from tests.fakes.http import FakeHttp
from tests.fakes.shell import FakeShell, failed, ok

API_LATEST = "https://api.github.com/repos/aristocratos/btop/releases/latest"

LS_REMOTE = """\
1111\trefs/tags/v1.3.0
2222\trefs/tags/v1.10.0
3333\trefs/tags/v1.4.0^{}
4444\trefs/tags/v1.11.0-rc1
5555\trefs/heads/main
"""


def test_extract_version_finds_first_triplet() -> None:
    assert extract_version("btop version: 1.3.2+git") == "1.3.2"
    assert extract_version("fastfetch 2.21.0 (x86_64)") == "2.21.0"
    assert extract_version("no version here") is None


def test_strip_v_only_strips_version_prefix() -> None:
    assert strip_v("v1.2.0") == "1.2.0"
    assert strip_v("1.2.0") == "1.2.0"
    assert strip_v("version") == "version"


def test_version_key_orders_like_sort_v() -> None:
    versions = ["1.10.0", "1.9.2", "1.2.0", "v1.9.10"]

    assert sorted(versions, key=version_key) == ["1.2.0", "1.9.2", "v1.9.10", "1.10.0"]


def test_is_at_least() -> None:
    assert is_at_least("1.2.0", "1.2.0")
    assert is_at_least("1.10.0", "v1.9.0")
    assert not is_at_least("1.2.0", "1.2.1")


def test_tags_from_ls_remote_sorts_and_peels() -> None:
    assert tags_from_ls_remote(LS_REMOTE) == ["v1.3.0", "v1.4.0", "v1.10.0", "v1.11.0-rc1"]


def test_gh_release_view_wins() -> None:
    shell = FakeShell(
        installed={"gh": "/usr/bin/gh", "git": "/usr/bin/git"},
        results={("gh", "release", "view"): ok("v1.4.0\n")},
    )
    http = FakeHttp()
    ctx = AdmContext.for_test(shell=shell, http=http)

    assert latest_github_tag(ctx, "aristocratos/btop") == "v1.4.0"
    assert http.fetch_calls == []


def test_ls_remote_fallback_skips_prereleases() -> None:
    shell = FakeShell(
        installed={"gh": "/usr/bin/gh", "git": "/usr/bin/git"},
        results={
            ("gh", "release", "view"): failed(stderr="gh auth login required"),
            ("git", "ls-remote"): ok(LS_REMOTE),
        },
    )
    ctx = AdmContext.for_test(shell=shell)

    assert latest_github_tag(ctx, "aristocratos/btop") == "v1.10.0"


def test_api_fallback_when_no_tools() -> None:
    http = FakeHttp({API_LATEST: '{"tag_name": "v1.4.0"}'})
    ctx = AdmContext.for_test(http=http)

    assert latest_github_tag(ctx, "aristocratos/btop") == "v1.4.0"


def test_every_lookup_failing_returns_none() -> None:
    assert latest_github_tag(AdmContext.for_test(), "aristocratos/btop") is None


def test_release_assets_lists_download_urls() -> None:
    http = FakeHttp(
        {
            "https://api.github.com/repos/microsoft/edit/releases/latest": (
                '{"assets": [{"browser_download_url": '
                '"https://x/edit-1.2.0-x86_64-linux-gnu.tar.gz"},'
                ' {"name": "no-url"}]}'
            )
        }
    )
    ctx = AdmContext.for_test(http=http)

    assert release_assets(ctx, "microsoft/edit") == [
        "https://x/edit-1.2.0-x86_64-linux-gnu.tar.gz"
    ]

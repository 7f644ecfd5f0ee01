import sys

import pytest

from trackflow.api.auth_utils import decode_access_token
from trackflow.app_shell import cli


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "DATA_DIR", str(tmp_path))
    monkeypatch.setattr(cli, "DB_PATH", str(tmp_path / "trackflow.db"))
    return tmp_path


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["trackflow", *argv])
    cli.main()


def test_migrate_then_create_and_list(data_dir, monkeypatch, capsys):
    run_cli(monkeypatch, "migrate")
    assert "Applied 1 migration(s)." in capsys.readouterr().out

    run_cli(monkeypatch, "create-site", "--owner", "owner-a", "--name", "Blog", "--domain", "www.example.com")
    assert "(example.com)" in capsys.readouterr().out

    run_cli(monkeypatch, "list-sites", "--owner", "owner-a")
    out = capsys.readouterr().out
    assert "1 site(s):" in out
    assert "Blog" in out


def test_create_invalid_site_exits(data_dir, monkeypatch):
    run_cli(monkeypatch, "migrate")
    with pytest.raises(SystemExit) as exc:
        run_cli(monkeypatch, "create-site", "--owner", "owner-a", "--name", "", "--domain", "example.com")
    assert exc.value.code == 1


def test_issue_token(monkeypatch, capsys):
    run_cli(monkeypatch, "issue-token", "--owner", "owner-a", "--ttl-minutes", "5")

    token = capsys.readouterr().out.strip()
    payload = decode_access_token(token)
    assert payload is not None
    assert payload["sub"] == "owner-a"

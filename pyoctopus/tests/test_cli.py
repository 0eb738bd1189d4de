import json

import pytest
from click.testing import CliRunner

from pyoctopus import __version__
from pyoctopus.cli import cli
from pyoctopus.commands import run as run_module
from pyoctopus.commands.run import exit_code
from pyoctopus.config import settings as settings_module
from pyoctopus.tests.mocks import MockTransport


@pytest.fixture(autouse=True)
def no_config_search(monkeypatch, tmp_path):
    # 不读取真实环境中的配置文件
    monkeypatch.setattr(settings_module, "CONFIG_SEARCH_DIRS", [str(tmp_path / "none")])


@pytest.fixture
def groups_file(tmp_path):
    path = tmp_path / "_node-list"
    path.write_text('web="10.0.0.1 10.0.0.2"\ndb=10.0.1.1\nall="$web $db"\n')
    return str(path)


@pytest.fixture
def transport(monkeypatch):
    """替换 SSH 连接，记录构建连接时使用的配置"""
    transport = MockTransport()
    transport.settings = []

    def build_transport(settings):
        transport.settings.append(settings)
        return transport

    monkeypatch.setattr(run_module, "_build_transport", build_transport)
    return transport


@pytest.fixture
def runner():
    return CliRunner()


class TestRun:
    def test_runs_on_every_host(self, runner, groups_file, transport):
        result = runner.invoke(cli, ["-f", groups_file, "-g", "web", "run", "uptime"])

        assert result.exit_code == 0, result.output
        assert sorted(transport.host_connects) == ["10.0.0.1", "10.0.0.2"]
        assert " 10.0.0.1-hostname" in result.output
        assert " 10.0.0.2-hostname" in result.output
        assert "uptime: stdout ok" in result.output
        for actor in transport.actors_returned:
            assert actor.commands.count("uptime") == 1
            assert actor.close_called == 1

    def test_exit_code_is_number_of_failed_hosts(self, runner, groups_file, transport):
        transport.error_on_connect_host = "10.0.0"
        result = runner.invoke(cli, ["-f", groups_file, "-g", "all", "run", "uptime"])

        assert result.exit_code == 2
        assert "failed to connect to host 10.0.0.1" in result.output
        assert "10.0.0.1: could not get hostname" in result.output
        assert " 10.0.1.1-hostname" in result.output

    def test_groups_can_be_repeated_and_comma_separated(
        self, runner, groups_file, transport
    ):
        result = runner.invoke(
            cli, ["-f", groups_file, "-g", "web,db", "-g", "db", "run", "true"]
        )

        assert result.exit_code == 0, result.output
        assert sorted(transport.host_connects) == [
            "10.0.0.1",
            "10.0.0.2",
            "10.0.1.1",
            "10.0.1.1",
        ]

    def test_missing_host_groups(self, runner, groups_file, transport):
        result = runner.invoke(cli, ["-f", groups_file, "run", "uptime"])

        assert result.exit_code == 2
        assert "Required value 'host-groups' was not set" in result.output
        assert transport.host_connects == []

    def test_unknown_group(self, runner, groups_file, transport):
        result = runner.invoke(cli, ["-f", groups_file, "-g", "web,cache", "run", "uptime"])

        assert result.exit_code == 1
        assert "host group cache not found" in result.output
        assert transport.host_connects == []

    def test_missing_groups_file(self, runner, tmp_path, transport):
        result = runner.invoke(
            cli, ["-f", str(tmp_path / "missing"), "-g", "web", "run", "uptime"]
        )

        assert result.exit_code == 1
        assert "failed to parse groups from groups file" in result.output

    def test_json_output(self, runner, groups_file, transport):
        result = runner.invoke(
            cli, ["-f", groups_file, "-g", "web", "run", "-o", "json", "uptime"]
        )

        assert result.exit_code == 0, result.output
        data = sorted(json.loads(result.output), key=lambda item: item["address"])
        assert [item["hostname"] for item in data] == [
            "10.0.0.1-hostname",
            "10.0.0.2-hostname",
        ]
        assert data[0]["stdout"] == "uptime: stdout ok"
        assert data[0]["error"] is None

    def test_settings_passed_to_transport(self, runner, groups_file, transport):
        result = runner.invoke(
            cli,
            [
                "-f",
                groups_file,
                "-g",
                "db",
                "-u",
                "deploy",
                "-p",
                "2222",
                "-i",
                "/keys/id_ed25519",
                "--sftp-block-size",
                "8",
                "run",
                "true",
            ],
        )

        assert result.exit_code == 0, result.output
        settings = transport.settings[0]
        assert settings.user == "deploy"
        assert settings.port == 2222
        assert settings.identity_file == "/keys/id_ed25519"
        assert settings.sftp_options.block_size_kib == 8
        assert settings.max_hosts == 256


class TestConfigFile:
    def test_values_from_config(self, runner, tmp_path, groups_file, transport):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            f"groups-file: {groups_file}\nhost-groups: db\nuser: admin\noutput: json\n"
        )
        result = runner.invoke(cli, ["--config", str(config_file), "run", "true"])

        assert result.exit_code == 0, result.output
        assert transport.host_connects == ["10.0.1.1"]
        assert transport.settings[0].user == "admin"
        assert json.loads(result.output)[0]["hostname"] == "10.0.1.1-hostname"

    def test_command_line_overrides_config(
        self, runner, tmp_path, groups_file, transport
    ):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(f"groups-file: {groups_file}\nhost-groups: db\nuser: admin\n")
        result = runner.invoke(
            cli, ["--config", str(config_file), "-g", "web", "-u", "deploy", "run", "true"]
        )

        assert result.exit_code == 0, result.output
        assert sorted(transport.host_connects) == ["10.0.0.1", "10.0.0.2"]
        assert transport.settings[0].user == "deploy"

    def test_config_found_in_search_dirs(
        self, runner, tmp_path, groups_file, transport, monkeypatch
    ):
        config_dir = tmp_path / ".octopus"
        config_dir.mkdir()
        (config_dir / "config.yaml").write_text(
            f"groups-file: {groups_file}\nhost-groups: [web, db]\n"
        )
        monkeypatch.setattr(settings_module, "CONFIG_SEARCH_DIRS", [str(config_dir)])

        result = runner.invoke(cli, ["run", "true"])

        assert result.exit_code == 0, result.output
        assert len(transport.host_connects) == 3

    def test_invalid_config_value(self, runner, tmp_path, transport):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("max-hosts: lots\n")
        result = runner.invoke(cli, ["--config", str(config_file), "run", "true"])

        assert result.exit_code == 2
        assert "invalid value for 'max_hosts' in config file" in result.output

    def test_missing_config_file(self, runner, tmp_path, transport):
        result = runner.invoke(
            cli, ["--config", str(tmp_path / "nope.yaml"), "run", "true"]
        )

        assert result.exit_code == 2
        assert "does not exist" in result.output


class TestCopy:
    def test_copy_dir(self, runner, tmp_path, groups_file, transport):
        source = tmp_path / "conf"
        source.mkdir()
        (source / "app.ini").write_text("[app]\n")

        result = runner.invoke(
            cli, ["-f", groups_file, "-g", "db", "copy", "-r", str(source), "/etc"]
        )

        assert result.exit_code == 0, result.output
        assert "copied 1 of 1 local source(s) to /etc" in result.output
        actor = transport.actors_returned[0]
        assert actor.dir_creates == ["/etc", "/etc/conf"]
        assert actor.file_contents == {"/etc/conf/app.ini": b"[app]\n"}

    def test_dir_without_recursive(self, runner, tmp_path, groups_file, transport):
        source = tmp_path / "conf"
        source.mkdir()

        result = runner.invoke(cli, ["-f", groups_file, "-g", "web", "copy", str(source), "/etc"])

        assert result.exit_code == 2
        assert "failed to copy 1 path(s)" in result.output
        assert "recursive copy is not enabled" in result.output

    def test_needs_source_and_dest(self, runner, groups_file, transport):
        result = runner.invoke(cli, ["-f", groups_file, "-g", "web", "copy", "/etc"])

        assert result.exit_code == 2
        assert "at least one local source path and a remote dest dir" in result.output
        assert transport.host_connects == []


def test_host_groups(runner, groups_file):
    result = runner.invoke(cli, ["-f", groups_file, "host-groups"])

    assert result.exit_code == 0, result.output
    assert result.output == "all\ndb\nweb\n"


def test_host_groups_missing_file(runner, tmp_path):
    result = runner.invoke(cli, ["-f", str(tmp_path / "missing"), "host-groups"])
    assert result.exit_code == 1


def test_version(runner):
    result = runner.invoke(cli, ["version"])
    assert result.exit_code == 0
    assert result.output == f" pyoctopus version {__version__}\n"

    result = runner.invoke(cli, ["version", "--detail"])
    assert result.exit_code == 0
    assert __version__ in result.output
    assert "asyncssh" in result.output


@pytest.mark.parametrize("num_errors, code", [(0, 0), (3, 3), (255, 255), (1000, 255)])
def test_exit_code(num_errors, code):
    assert exit_code(num_errors) == code

import os

import pytest

from pyoctopus.core.errors import GroupsFileError, UnknownGroupError
from pyoctopus.core.groups import parse_env_names, resolve_host_groups, valid_host_groups


@pytest.fixture
def groups_file(tmp_path):
    path = tmp_path / "_test-groups-file"

    def write(text: str) -> str:
        path.write_text(text)
        return str(path)

    return write


class TestParseEnvNames:
    """测试 env 输出解析"""

    def test_simple_lines(self):
        output = "PWD=/root\nSHLVL=1\n_=/usr/bin/env\n"
        assert parse_env_names(output) == {"PWD", "SHLVL", "_"}

    def test_multiline_values(self):
        output = 'web=10.0.0.1\n10.0.0.2\n  10.0.0.3\nPWD=/\n'
        assert parse_env_names(output) == {"web", "PWD"}

    def test_invalid_names(self):
        output = "0a=x\na-b=y\n=z\n\nok_1=w\n"
        assert parse_env_names(output) == {"ok_1"}


class TestValidHostGroups:
    """测试主机组名称识别"""

    def test_exported_and_plain_assignments(self, groups_file):
        f = groups_file(
            """
export one="1.1.1.1"
export two="2.2.2.2"
export three='3.3.3.3'
export first="$one"
intermediate="$two"
rest="$intermediate $three"
export rest"""
        )
        assert valid_host_groups(f) == sorted(
            ["one", "two", "three", "first", "intermediate", "rest"]
        )

    def test_variable_name_forms(self, groups_file):
        f = groups_file(
            """
export a="1.1.1.1"
export a0="2.2.2.2"
export _a="3.3.3.3"
export a_0="4.4.4.4"
export A="$a"
export A0="$a0"
export _A="$_a"
export A_0="$a_0"
export __SOME_LONG_complicated_VAR_0_with_lots_Of_sTUff_going_on=hi"""
        )
        assert valid_host_groups(f) == sorted(
            [
                "a",
                "a0",
                "_a",
                "a_0",
                "A",
                "A0",
                "_A",
                "A_0",
                "__SOME_LONG_complicated_VAR_0_with_lots_Of_sTUff_going_on",
            ]
        )

    def test_invalid_names_are_excluded(self, groups_file):
        f = groups_file(
            """
export a="1.1.1.1"
export 0a='will fail'
0b="also fails"
export aaa="2.2.2."
"""
        )
        assert valid_host_groups(f) == ["a", "aaa"]

    def test_multiline_value(self, groups_file):
        f = groups_file('web="10.0.0.1\nweb_data=10.0.0.2\n10.0.0.3"\n')
        # 多行值中的 web_data= 只是值的一部分
        assert "web" in valid_host_groups(f)

    def test_empty_file(self, groups_file):
        assert valid_host_groups(groups_file("")) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(GroupsFileError):
            valid_host_groups(str(tmp_path / "nope"))

    def test_directory_is_not_a_groups_file(self, tmp_path):
        with pytest.raises(GroupsFileError):
            valid_host_groups(str(tmp_path))


class TestResolveHostGroups:
    """测试主机组解析为地址"""

    def test_order_is_preserved(self, groups_file):
        f = groups_file('x="a b"\ny="c"\n')
        assert resolve_host_groups(["x", "y"], f) == ["a", "b", "c"]
        assert resolve_host_groups(["y", "x"], f) == ["c", "a", "b"]

    def test_multiline_and_quoted_values_normalize(self, groups_file):
        multiline = groups_file('x="a\nb"\n')
        assert resolve_host_groups(["x"], multiline) == ["a", "b"]

        single = groups_file("x='a b'\n")
        assert resolve_host_groups(["x"], single) == ["a", "b"]

        double = groups_file('export x="a b"\n')
        assert resolve_host_groups(["x"], double) == ["a", "b"]

    def test_whitespace_does_not_produce_empty_addresses(self, groups_file):
        f = groups_file('x="   a    b\n\n\n   c   \n"\n')
        assert resolve_host_groups(["x"], f) == ["a", "b", "c"]

    def test_duplicates_are_kept(self, groups_file):
        f = groups_file('x="a b"\ny="b c"\n')
        assert resolve_host_groups(["x", "y"], f) == ["a", "b", "b", "c"]
        assert resolve_host_groups(["x", "x"], f) == ["a", "b", "a", "b"]

    def test_interpolation(self, groups_file):
        f = groups_file(
            """
one="1.1.1.1"
two="2.2.2.2"
three='3.3.3.3'
first="$one"
rest="$two $three"
all="$first $rest"
"""
        )
        assert resolve_host_groups(["all"], f) == ["1.1.1.1", "2.2.2.2", "3.3.3.3"]
        assert resolve_host_groups(["first", "rest"], f) == [
            "1.1.1.1",
            "2.2.2.2",
            "3.3.3.3",
        ]

    def test_globs_are_not_expanded(self, groups_file, tmp_path, monkeypatch):
        (tmp_path / "host-a").write_text("")
        monkeypatch.chdir(tmp_path)
        f = groups_file('x="host-*"\n')
        assert resolve_host_groups(["x"], f) == ["host-*"]

    def test_unknown_group_fails_atomically(self, groups_file):
        f = groups_file('x="a b"\ny="c"\n')
        with pytest.raises(UnknownGroupError) as excinfo:
            resolve_host_groups(["x", "z", "y"], f)
        assert excinfo.value.group == "z"
        assert "z" in str(excinfo.value)
        assert f in str(excinfo.value)

    def test_empty_file_has_no_groups(self, groups_file):
        with pytest.raises(UnknownGroupError):
            resolve_host_groups(["x"], groups_file(""))

    def test_invalid_lines_do_not_pollute_addresses(self, groups_file):
        f = groups_file('x="a"\n0a="bad"\ny="b"\n')
        assert resolve_host_groups(["x", "y"], f) == ["a", "b"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(GroupsFileError):
            resolve_host_groups(["x"], os.path.join(str(tmp_path), "nope"))

# SPDX-FileCopyrightText: 2024-2025 Espressif Systems (Shanghai) CO LTD
# SPDX-License-Identifier: Apache-2.0
import json
import os
import re
import subprocess
import sys
import textwrap
from dataclasses import dataclass
from dataclasses import field
from typing import List
from typing import Optional

import pytest


# Define argument container for CLI invocation
@dataclass
class Args:
    output: str
    config: Optional[str] = None
    defaults: List[str] = field(default_factory=list)
    set: List[str] = field(default_factory=list)
    env: Optional[str] = None

    def to_cli(self):
        flags = []
        if self.config is not None:
            flags.extend(["--config", self.config])
        for defaults in self.defaults:
            flags.extend(["--defaults", defaults])
        for assignment in self.set:
            flags.extend(["--set", assignment])
        if self.env is not None:
            flags.extend(["--env", self.env])
        return flags


class KbuildgenBaseTestCase:
    @pytest.fixture(autouse=True)
    def runner(self, tmp_path):
        def invoke_and_test(
            args: Args, in_text: str, expected: str, test: str = "in", expected_error: Optional[str] = None
        ) -> Optional[str]:
            kconfig_path = os.path.join(str(tmp_path), "Kconfig")
            with open(kconfig_path, "w") as f:
                f.write(textwrap.dedent(in_text))
            out_path = os.path.join(str(tmp_path), "output")
            cmd = (
                [sys.executable, "-m", "kbuildgen"]
                + args.to_cli()
                + ["--output", args.output, out_path, "--kconfig", kconfig_path, "--srctree", str(tmp_path)]
            )
            env = os.environ.copy()
            env.pop("CONFIG_", None)
            result = subprocess.run(cmd, capture_output=True, text=True, env=env)
            if expected_error:
                assert result.returncode != 0
                assert expected_error in result.stderr
                return None
            assert result.returncode == 0, result.stderr
            with open(out_path) as f:
                text = f.read()
            if test == "in":
                assert expected in text
            elif test == "not in":
                assert expected not in text
            elif test == "equal":
                assert expected == text
            elif test == "regex":
                assert re.search(expected, text)
            else:
                pytest.skip(f"Unknown test type {test}")
            return text

        return invoke_and_test


HEXPREFIX = textwrap.dedent(
    """
    mainmenu "Test"

        config HEX_NOPREFIX
            hex "Hex Item default no prefix"
            default 33

        config HEX_PREFIX
            hex "Hex Item default prefix"
            default 0x77
    """
)

PASSWORD = """
    mainmenu "Test"

        config PASSWORD
            string "password"
            default "\\\\~!@#$%^&*()\\\""
    """


class TestHeader(KbuildgenBaseTestCase):
    @pytest.fixture(autouse=True)
    def init(self):
        self.args = Args(output="header")

    def test_string_escape(self, runner):
        runner(self.args, PASSWORD, '#define CONFIG_PASSWORD "\\\\~!@#$%^&*()\\""')

    def test_hex_prefix(self, runner):
        runner(self.args, HEXPREFIX, "#define CONFIG_HEX_NOPREFIX 0x33")
        runner(self.args, HEXPREFIX, "#define CONFIG_HEX_PREFIX 0x77")

    def test_tristate_module(self, runner):
        in_text = """
        config DRIVER
            tristate "Driver"
            default m

        config DISABLED
            bool "Disabled"
        """
        out = runner(self.args, in_text, "#define CONFIG_DRIVER_MODULE 1\n")
        assert "DISABLED" not in out
        assert out.startswith("/*\n * Automatically generated file. DO NOT EDIT.")


class TestJson(KbuildgenBaseTestCase):
    @pytest.fixture(autouse=True)
    def init(self):
        self.args = Args(output="json")

    def test_string_escape(self, runner):
        runner(self.args, PASSWORD, '"PASSWORD": "\\\\~!@#$%^&*()\\""')

    def test_hex_prefix(self, runner):
        runner(self.args, HEXPREFIX, f'"HEX_NOPREFIX": {0x33}')
        runner(self.args, HEXPREFIX, f'"HEX_PREFIX": {0x77}')

    def test_value_types(self, runner):
        in_text = """
        config FLAG
            bool "Flag"
            default y

        config DRIVER
            tristate "Driver"
            default m

        config COUNT
            int "Count"
            default 5

        config HIDDEN
            int "Hidden"
            depends on !FLAG
        """
        out = runner(self.args, in_text, '"FLAG": true')
        assert json.loads(out) == {"FLAG": True, "DRIVER": "m", "COUNT": 5}


class TestJsonMenus(KbuildgenBaseTestCase):
    @pytest.fixture(autouse=True)
    def init(self):
        self.args = Args(output="json_menus")

    def test_multiple_ranges(self, runner):
        in_text = """
        mainmenu "Test"

            config IDF_TARGET
                string "IDF target"
                default "esp32"

            config SOME_SETTING
                int "setting for the chip"
                range 0 100 if IDF_TARGET="esp32s0"
                range 0 10 if IDF_TARGET="esp32"
                range -10 1 if IDF_TARGET="esp32s2"
        """
        runner(self.args, in_text, r'"range":\s+\[\s+0,\s+10\s+\]', test="regex")

    def test_hex_ranges(self, runner):
        in_text = """
        mainmenu "Test"

            config SOME_SETTING
                hex "setting for the chip"
                range 0x0 0xaf if UNDEFINED
                range 0x10 0xaf
        """
        runner(self.args, in_text, r'"range":\s+\[\s+16,\s+175\s+\]', test="regex")

    def test_menu_structure(self, runner):
        in_text = """
        menu "Top Menu"
            choice TYPES
                prompt "types"
                default TYPES_OP2

                config TYPES_OP1
                    bool "option 1"
                config TYPES_OP2
                    bool "option 2"
            endchoice
        endmenu
        """
        menus = json.loads(runner(self.args, in_text, '"id": "top-menu"'))
        assert len(menus) == 1
        top = menus[0]
        assert top["type"] == "menu"
        assert top["title"] == "Top Menu"
        choice = top["children"][0]
        assert choice["type"] == "choice"
        assert choice["id"] == "top-menu-types"
        assert [child["id"] for child in choice["children"]] == ["TYPES_OP1", "TYPES_OP2"]
        assert choice["children"][0]["type"] == "bool"

    def test_duplicate_ids(self, runner):
        in_text = """
        menu "Same"
        endmenu
        menu "Same"
        endmenu
        """
        runner(self.args, in_text, "", expected_error="two items with the same id: same")


class TestConfig(KbuildgenBaseTestCase):
    input = textwrap.dedent(
        """
        mainmenu "Test"

            config TEST
                bool "test"
                default "n"
        """
    )

    @pytest.fixture(autouse=True)
    def init(self, tmp_path):
        cfg = os.path.join(str(tmp_path), "config")
        with open(cfg, "w") as f:
            f.write(
                textwrap.dedent(
                    """
                    # default:
                    CONFIG_TEST=y
                    # default:
                    CONFIG_UNKNOWN=y
                    """
                )
            )
        self.args = Args(output="config", config=cfg)

    def test_keep_saved_option(self, runner):
        runner(self.args, TestConfig.input, "CONFIG_TEST=y")

    def test_discard_unknown_option(self, runner):
        runner(self.args, TestConfig.input, "CONFIG_UNKNOWN", test="not in")

    def test_missing_config_file(self, runner, tmp_path):
        self.args.config = os.path.join(str(tmp_path), "does-not-exist")
        runner(self.args, TestConfig.input, "# CONFIG_TEST is not set")

    def test_defaults(self, runner, tmp_path):
        defaults = os.path.join(str(tmp_path), "defaults")
        with open(defaults, "w") as f:
            f.write("CONFIG_TEST=y\n")
        self.args = Args(output="config", defaults=[defaults])
        runner(self.args, TestConfig.input, "CONFIG_TEST=y")

    def test_config_overrides_defaults(self, runner, tmp_path):
        defaults = os.path.join(str(tmp_path), "defaults")
        with open(defaults, "w") as f:
            f.write("# CONFIG_TEST is not set\n")
        self.args.defaults = [defaults]
        runner(self.args, TestConfig.input, "CONFIG_TEST=y")

    def test_missing_defaults_file(self, runner, tmp_path):
        self.args.defaults = [os.path.join(str(tmp_path), "does-not-exist")]
        runner(self.args, TestConfig.input, "", expected_error="Defaults file not found")


class TestSet(KbuildgenBaseTestCase):
    input = textwrap.dedent(
        """
        config FLAG
            bool "Flag"

        config NAME
            string "Name"

        config SIZE
            int "Size"
            range 1 10
            default 5
        """
    )

    def test_set_values(self, runner):
        args = Args(output="config", set=["FLAG=y", 'NAME="a \\"b\\""', "SIZE=7"])
        out = runner(args, TestSet.input, "CONFIG_FLAG=y\n")
        assert 'CONFIG_NAME="a \\"b\\""\n' in out
        assert "CONFIG_SIZE=7\n" in out

    def test_invalid_assignments_are_skipped(self, runner):
        args = Args(output="config", set=["SIZE=70", "MISSING=y", "FLAG=maybe", "FLAG=y"])
        out = runner(args, TestSet.input, "CONFIG_SIZE=5\n")
        assert "CONFIG_MISSING" not in out
        assert "CONFIG_FLAG=y\n" in out


class TestEnv(KbuildgenBaseTestCase):
    def test_source_from_env(self, runner, tmp_path):
        with open(os.path.join(str(tmp_path), "Kconfig.arm"), "w") as f:
            f.write('config ARM_ONLY\n    bool "ARM only"\n    default y\n')
        in_text = """
        source "Kconfig.$ARCH"
        """
        args = Args(output="config", env="ARCH=arm")
        runner(args, in_text, "CONFIG_ARM_ONLY=y")


class TestErrors:
    def run(self, tmp_path, in_text, *extra_args):
        kconfig_path = os.path.join(str(tmp_path), "Kconfig")
        with open(kconfig_path, "w") as f:
            f.write(textwrap.dedent(in_text))
        cmd = [sys.executable, "-m", "kbuildgen", "--kconfig", kconfig_path] + list(extra_args)
        return subprocess.run(cmd, capture_output=True, text=True)

    def test_parse_error(self, tmp_path):
        result = self.run(
            tmp_path,
            """
            menu "Unterminated"
            config A
                bool "A"
            """,
        )
        assert result.returncode == 1
        assert "error:" in result.stderr
        assert "'menu' block opened here is never closed" in result.stderr

    def test_unknown_format(self, tmp_path):
        result = self.run(tmp_path, "config A\n    bool\n", "--output", "cmake", os.path.join(str(tmp_path), "out"))
        assert result.returncode == 1
        assert "Format 'cmake' not recognised" in result.stdout

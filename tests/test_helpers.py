"""Tests for utils/helpers.py — utility functions."""

import pytest

from utils.helpers import format_duration, load_config, parse_listen_address, positive_int


class TestLoadConfig:

    def test_load_config_basic(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("socket_path: /tmp/x.sock\ncommands:\n  - name: ls\n", encoding="utf-8")
        result = load_config(str(cfg))
        assert result["socket_path"] == "/tmp/x.sock"
        assert result["commands"][0]["name"] == "ls"

    def test_load_config_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_SOCKET_DIR", "/run/test")
        cfg = tmp_path / "config.yaml"
        cfg.write_text("socket_path: ${TEST_SOCKET_DIR}/exec.sock\n", encoding="utf-8")
        assert load_config(str(cfg))["socket_path"] == "/run/test/exec.sock"

    def test_load_config_missing_env(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MISSING_VAR_XYZ", raising=False)
        cfg = tmp_path / "config.yaml"
        cfg.write_text("socket_path: ${MISSING_VAR_XYZ}\n", encoding="utf-8")
        with pytest.raises(ValueError, match="MISSING_VAR_XYZ"):
            load_config(str(cfg))

    def test_load_config_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.yaml")

    def test_empty_file_is_empty_mapping(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("", encoding="utf-8")
        assert load_config(str(cfg)) == {}

    def test_non_mapping_root_rejected(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("- ls\n- df\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(str(cfg))


class TestPositiveInt:

    @pytest.mark.parametrize("value,expected", [(5, 5), ("12", 12), (0, 9), (-1, 9), (None, 9), ("abc", 9)])
    def test_coercion(self, value, expected):
        assert positive_int(value, 9) == expected


class TestFormatDuration:

    def test_sub_second_in_ms(self):
        assert format_duration(0.0015) == "1.500ms"

    def test_seconds(self):
        assert format_duration(1.5) == "1.500s"

    def test_negative_clamped(self):
        assert format_duration(-1) == "0.000ms"


class TestParseListenAddress:

    def test_port_only_binds_all(self):
        assert parse_listen_address(":8080") == ("0.0.0.0", 8080)

    def test_host_and_port(self):
        assert parse_listen_address("127.0.0.1:9000") == ("127.0.0.1", 9000)

    def test_bracketed_ipv6(self):
        assert parse_listen_address("[::1]:8080") == ("::1", 8080)

    @pytest.mark.parametrize("address", ["", "8080", "localhost:", "host:http"])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            parse_listen_address(address)

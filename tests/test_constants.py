"""Tests for utils/constants.py — constants integrity."""

from core.system_executor import SPAWN_FAILURE_EXIT_CODE, TIMEOUT_EXIT_CODE
from utils.constants import (
    DEFAULT_EXEC_TIMEOUT,
    DEFAULT_GATEWAY_MAX_TIMEOUT,
    DEFAULT_MAX_BODY_SIZE,
    DEFAULT_MAX_EXECUTION_TIME,
    DEFAULT_MAX_REQUEST_BYTES,
    DEFAULT_MAX_RESPONSE_BYTES,
    DEFAULT_SOCKET_PERMISSIONS,
    LOG_LEVELS,
)


def test_default_timeout_within_ceilings():
    assert 0 < DEFAULT_EXEC_TIMEOUT <= DEFAULT_MAX_EXECUTION_TIME
    assert DEFAULT_EXEC_TIMEOUT <= DEFAULT_GATEWAY_MAX_TIMEOUT


def test_sentinels_are_distinct_and_negative():
    assert TIMEOUT_EXIT_CODE != SPAWN_FAILURE_EXIT_CODE
    assert TIMEOUT_EXIT_CODE < 0
    assert SPAWN_FAILURE_EXIT_CODE < 0


def test_size_limits():
    assert DEFAULT_MAX_BODY_SIZE == 1024 * 1024
    assert DEFAULT_MAX_REQUEST_BYTES <= DEFAULT_MAX_RESPONSE_BYTES


def test_socket_permissions_octal_text():
    assert int(DEFAULT_SOCKET_PERMISSIONS, 8) == 0o660


def test_log_levels():
    assert "info" in LOG_LEVELS
    assert all(level == level.lower() for level in LOG_LEVELS)

"""Tests for core/validator.py — allow-list decisions."""

import pytest

from core.catalog import CommandCatalog, CommandSpec
from core.validator import ViolationKind, validate_command


@pytest.mark.parametrize(
    "cmd,args",
    [
        ("rm", []),
        ("rm", ["-rf", "/"]),
        ("", []),
        ("LS", []),
        ("ls ", ["-l"]),
        ("/bin/ls", ["-l"]),
    ],
)
def test_unknown_command_rejected(catalog, cmd, args):
    violation = validate_command(cmd, args, catalog)
    assert violation is not None
    assert violation.kind is ViolationKind.COMMAND_NOT_ALLOWED


def test_allowed_args_accepted(catalog):
    assert validate_command("ls", ["-l", "/tmp"], catalog) is None


def test_disallowed_arg_rejected_with_offending_value(catalog):
    violation = validate_command("ls", ["-l", "-R"], catalog)
    assert violation is not None
    assert violation.kind is ViolationKind.ARGUMENT_NOT_ALLOWED
    assert "'-R'" in violation.detail
    assert "'ls'" in violation.detail


def test_first_offending_arg_reported(catalog):
    violation = validate_command("ls", ["-l", "-x", "-y"], catalog)
    assert "'-x'" in violation.detail


def test_order_and_repetition_do_not_matter(catalog):
    assert validate_command("ls", ["/tmp", "-a", "-l", "-l"], catalog) is None


def test_no_args_allowed_for_command_with_args(catalog):
    assert validate_command("echo", [], catalog) is None


def test_empty_allowed_args_means_zero_arguments(catalog):
    assert validate_command("uptime", [], catalog) is None
    violation = validate_command("uptime", ["-p"], catalog)
    assert violation.kind is ViolationKind.ARGUMENT_NOT_ALLOWED


@pytest.mark.parametrize("arg", ["-L", " -l", "-l ", "/tmp/", "/TMP", "-la"])
def test_argument_match_is_exact(catalog, arg):
    violation = validate_command("ls", [arg], catalog)
    assert violation is not None
    assert violation.kind is ViolationKind.ARGUMENT_NOT_ALLOWED


def test_shell_metacharacters_are_just_strings():
    catalog = CommandCatalog([CommandSpec(name="echo", allowed_args=("hi",))])
    violation = validate_command("echo", ["hi; rm -rf /"], catalog)
    assert violation.kind is ViolationKind.ARGUMENT_NOT_ALLOWED


def test_empty_catalog_rejects_everything():
    violation = validate_command("ls", [], CommandCatalog())
    assert violation.kind is ViolationKind.COMMAND_NOT_ALLOWED

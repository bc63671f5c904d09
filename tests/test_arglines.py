"""Tests for decoding |N build-argument RUN lines."""

import pytest

from undockerizer.arglines import (
    ArgLineDecodeError,
    decode_arg_line,
    process_run,
    process_with_args,
    split_arg_count,
)


def test_split_arg_count():
    assert split_arg_count("|2 PORT=8080 DEBUG=true /bin/sh -c echo hi") == (
        2,
        "PORT=8080 DEBUG=true /bin/sh -c echo hi",
    )


def test_split_arg_count_without_rest():
    assert split_arg_count("|12") is None


def test_split_arg_count_without_digits():
    with pytest.raises(ArgLineDecodeError):
        split_arg_count("|x /bin/sh -c true")


def test_decode_two_args():
    assert decode_arg_line("PORT=8080 DEBUG=true /bin/sh -c echo hi", 2, "/bin/sh") == (
        "echo hi",
        "PORT=8080 DEBUG=true ",
    )


def test_decode_body_may_contain_equals():
    body, prefix = decode_arg_line("A=1 /bin/sh -c export B=2 && make", 1, "/bin/sh")
    assert body == "export B=2 && make"
    assert prefix == "A=1 "


def test_too_few_assignments_is_fatal():
    with pytest.raises(ArgLineDecodeError, match="Error processing command line with arguments"):
        decode_arg_line("A=1 /bin/sh -c true", 3, "/bin/sh")


def test_missing_shell_flag_is_fatal():
    with pytest.raises(ArgLineDecodeError, match="-c parameter not found"):
        decode_arg_line("A=1 B=2 /bin/sh true", 2, "/bin/sh")


def test_missing_shell_path_is_fatal():
    with pytest.raises(ArgLineDecodeError, match="shell not found"):
        decode_arg_line("A=1 /bin/bash -c true", 1, "/bin/sh")


def test_process_with_args_writes_prefixed_command(writer):
    process_with_args(writer, "|2 PORT=8080 DEBUG=true /bin/sh -c echo hi", "/bin/sh")
    assert writer.calls == [("command", "echo hi", "PORT=8080 DEBUG=true ")]


def test_process_with_args_skips_bare_count(writer, capsys):
    process_with_args(writer, "|3", "/bin/sh")
    assert writer.calls == []
    assert "skipped" in capsys.readouterr().err


def test_run_with_args(writer):
    process_run(writer, "|1 V=2 /bin/sh -c make # buildkit", "/bin/sh")
    assert writer.calls == [("command", "make # buildkit", "V=2 ")]


def test_run_without_args_strips_shell(writer):
    process_run(writer, "/bin/sh -c apt-get update # buildkit", "/bin/sh")
    assert writer.calls == [("command", "apt-get update # buildkit", None)]


def test_run_exec_form_is_verbatim(writer):
    process_run(writer, "make install", "/bin/sh")
    assert writer.calls == [("command", "make install", None)]

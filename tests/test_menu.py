import io

import pytest

from btbridge.menu import LINE_BUFFER_SIZE, MenuCLI, MultiOutput


@pytest.fixture
def sink():
    return io.BytesIO()


@pytest.fixture
def menu(sink):
    cli = MenuCLI()
    cli.attach_output(sink)
    return cli


def test_multi_output_writes_to_all():
    a, b = io.BytesIO(), io.BytesIO()
    multi = MultiOutput()
    multi.add_output(a)
    multi.add_output(b)
    total = multi.write("hi")
    assert a.getvalue() == b"hi"
    assert b.getvalue() == b"hi"
    assert total == 4


def test_multi_output_accepts_int_and_bytes():
    out = io.BytesIO()
    multi = MultiOutput()
    multi.add_output(out)
    multi.write(65)
    multi.write(b"B")
    assert out.getvalue() == b"AB"


def test_begin_prints_help_and_prompt():
    out = io.BytesIO()
    cli = MenuCLI()
    cli.attach_output(out)
    cli.begin()
    assert out.getvalue() == b"Available commands:\n  help: Show this help\n> "
    cli.echo = False
    assert cli.write(b"\n") == 1
    assert out.getvalue().endswith(b"> \n> ")


def test_help_lists_commands_sorted():
    out = io.BytesIO()
    cli = MenuCLI()
    cli.attach_output(out)
    cli.register_command("zeta", "last", lambda a, o: None)
    cli.register_command("alpha", "first", lambda a, o: None)
    cli.echo = False
    assert cli.write(b"help\n") == 5
    text = out.getvalue().decode()
    assert text.index("  alpha: first\n") < text.index("  zeta: last\n")
    assert text.endswith("  help: Show this help\n> ")


def test_command_receives_trimmed_args(menu, sink):
    calls = []
    menu.register_command("set baud serial1", "h", lambda a, o: calls.append(a))
    menu.echo = False
    menu.write(b"  set baud serial1   9600  \r\n")
    assert calls == ["9600"]
    assert sink.getvalue() == b"\n> "


def test_longest_command_wins(menu):
    calls = []
    menu.register_command("get baud", "h", lambda a, o: calls.append(("short", a)))
    menu.register_command(
        "get baud serial", "h", lambda a, o: calls.append(("long", a))
    )
    menu.write(b"get baud serial\n")
    menu.write(b"get baud serialx\n")
    assert calls == [("long", ""), ("short", "serialx")]


def test_command_requires_word_boundary(menu, sink):
    calls = []
    menu.register_command("echo on", "h", lambda a, o: calls.append(a))
    menu.echo = False
    menu.write(b"echo onward\n")
    assert calls == []
    assert sink.getvalue() == b"\nUnknown command. Type 'help' for a list.\n> "


def test_handler_output_goes_to_outputs():
    out = io.BytesIO()
    cli = MenuCLI()
    cli.attach_output(out)
    cli.register_command("ping", "h", lambda a, o: o.write("pong\n"))
    cli.echo = False
    assert cli.write(b"ping\n") == 5
    assert out.getvalue() == b"\npong\n> "


def test_exit_calls_callback_without_prompt(menu, sink):
    exits = []
    menu.on_exit = lambda: exits.append(True)
    menu.echo = False
    menu.write(b"exit\n")
    assert exits == [True]
    assert sink.getvalue() == b"\n\nExiting menu, returning to idle mode.\n"


def test_help_command():
    out = io.BytesIO()
    cli = MenuCLI()
    cli.attach_output(out)
    cli.echo = False
    assert cli.write(b"help\n") == 5
    assert out.getvalue() == b"\nAvailable commands:\n  help: Show this help\n> "


def test_empty_line_prints_prompt():
    out = io.BytesIO()
    cli = MenuCLI()
    cli.attach_output(out)
    assert cli.write(b"   \n") == 4
    assert out.getvalue() == b"   \n> "


def test_echo_and_backspace(menu, sink):
    calls = []
    menu.register_command("ab", "h", lambda a, o: calls.append(a))
    menu.write(b"abc\x08\n")
    assert calls == [""]
    assert sink.getvalue() == b"abc\b \b\n> "


def test_backspace_on_empty_line_is_silent():
    out = io.BytesIO()
    cli = MenuCLI()
    cli.attach_output(out)
    assert cli.write(b"\x7f") == 1
    assert out.getvalue() == b""


def test_echo_disabled():
    out = io.BytesIO()
    cli = MenuCLI()
    cli.attach_output(out)
    cli.echo = False
    assert cli.write(b"xyz") == 3
    assert out.getvalue() == b""


def test_non_printable_ignored(menu):
    calls = []
    menu.register_command("ok", "h", lambda a, o: calls.append(a))
    menu.write(b"o\x01k\n")
    assert calls == [""]


def test_line_length_is_limited(menu):
    calls = []
    menu.register_command("x", "h", lambda a, o: calls.append(a))
    menu.echo = False
    menu.write(b"x " + b"a" * 500 + b"\n")
    assert len(calls) == 1
    assert len("x " + calls[0]) == LINE_BUFFER_SIZE - 1


def test_write_returns_count(menu):
    assert menu.write(b"abcd") == 4
    assert menu.write(ord("e")) == 1


def test_all_outputs_receive_menu_text():
    first, second = io.BytesIO(), io.BytesIO()
    cli = MenuCLI()
    cli.attach_output(first)
    cli.attach_output(second)
    cli.begin()
    assert first.getvalue() == second.getvalue()
    assert first.getvalue().endswith(b"> ")
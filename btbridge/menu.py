"""Line-oriented command menu driven by raw bytes from a serial link."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Union

LINE_BUFFER_SIZE = 128
_WHITESPACE = " \t\n\v\f\r"
_BACKSPACE = "\x08"
_DELETE = "\x7f"


class MultiOutput:
    """Writes everything it is given to each attached output."""

    def __init__(self) -> None:
        self._outputs: List[Any] = []

    def add_output(self, out: Any) -> None:
        self._outputs.append(out)

    def clear(self) -> None:
        self._outputs.clear()

    @property
    def outputs(self) -> tuple:
        return tuple(self._outputs)

    def write(self, data: Union[str, bytes, bytearray, int]) -> int:
        """Write ``data`` to every output; return the total number of bytes written."""
        if isinstance(data, str):
            payload = data.encode("utf-8")
        elif isinstance(data, int):
            payload = bytes([data])
        else:
            payload = bytes(data)
        total = 0
        for out in self._outputs:
            written = out.write(payload)
            total += len(payload) if written is None else written
        return total


CommandHandler = Callable[[str, MultiOutput], None]


@dataclass(frozen=True)
class _Command:
    help_text: str
    handler: CommandHandler


def _starts_with_word(line: str, word: str) -> bool:
    if not line.startswith(word):
        return False
    return len(line) == len(word) or line[len(word)] in _WHITESPACE


class MenuCLI:
    """Collects input into lines and dispatches them to registered commands."""

    def __init__(self) -> None:
        self._commands: dict[str, _Command] = {}
        self._line = ""
        self._output = MultiOutput()
        self.echo = True
        self.on_exit: Optional[Callable[[], None]] = None

    @property
    def output(self) -> MultiOutput:
        return self._output

    def attach_output(self, out: Any) -> None:
        self._output.add_output(out)

    def begin(self) -> None:
        """Reset the input line and show help followed by a prompt."""
        self._line = ""
        self._print_help()
        self._print_prompt()

    def register_command(
        self, cmd: str, help_text: str, handler: CommandHandler
    ) -> None:
        self._commands[cmd] = _Command(help_text, handler)

    def write(self, data: Union[bytes, bytearray, Iterable[int], int]) -> int:
        """Feed input bytes to the menu; return how many were consumed."""
        if isinstance(data, int):
            data = (data,)
        count = 0
        for byte in data:
            self._handle_char(chr(byte & 0xFF))
            count += 1
        return count

    def _handle_char(self, char: str) -> None:
        if char == "\r":
            return
        if char == "\n":
            self._output.write("\n")
            self._process_line()
            self._line = ""
            return
        if char in (_BACKSPACE, _DELETE):
            if self._line:
                self._line = self._line[:-1]
                self._output.write("\b \b")
            return
        if " " <= char <= "~" and len(self._line) < LINE_BUFFER_SIZE - 1:
            self._line += char
            if self.echo:
                self._output.write(char)

    def _process_line(self) -> None:
        cmdline = self._line.strip(_WHITESPACE)
        if not cmdline:
            self._print_prompt()
            return

        matched = ""
        for name in self._commands:
            if len(name) > len(matched) and _starts_with_word(cmdline, name):
                matched = name

        if not matched:
            if _starts_with_word(cmdline, "help"):
                self._print_help()
                self._print_prompt()
                return
            if _starts_with_word(cmdline, "exit"):
                self._output.write("\nExiting menu, returning to idle mode.\n")
                if self.on_exit is not None:
                    self.on_exit()
                return
            self._output.write("Unknown command. Type 'help' for a list.\n")
            self._print_prompt()
            return

        args = cmdline[len(matched):].strip(_WHITESPACE)
        self._commands[matched].handler(args, self._output)
        self._print_prompt()

    def _print_prompt(self) -> None:
        self._output.write("> ")

    def _print_help(self) -> None:
        self._output.write("Available commands:\n")
        for name in sorted(self._commands):
            self._output.write(f"  {name}: {self._commands[name].help_text}\n")
        self._output.write("  help: Show this help\n")
"""Interactive menu: prompt table and selection dispatcher."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, TextIO

from fabcar_client.errors import FabcarClientError, InputParseError
from fabcar_client.output import SUCCESS_BANNER, render_result, sanitize_error_text

MENU_HEADER = "Menu, choose option: "
NO_SUCH_OPTION = "No such option"
_SELECTION_RE = re.compile(r"[+-]?[0-9]+")


class LedgerContract(Protocol):
    def submit_transaction(self, function: str, *args: str) -> bytes: ...

    def evaluate_transaction(self, function: str, *args: str) -> bytes: ...


class MenuState(Enum):
    AWAITING_SELECTION = "awaiting-selection"
    EXITED = "exited"


class ActionKind(Enum):
    SUBMIT = "submit"
    EVALUATE = "evaluate"
    EXIT = "exit"


def accept_fault_flag(token: str) -> str:
    """Only a literal ``n`` declines; anything else, blank included, accepts."""
    return "false" if token == "n" else "true"


def format_repair_price(token: str) -> str:
    try:
        price = float(token)
    except ValueError as exc:
        raise InputParseError(f"repair price must be a number: {token!r}") from exc
    if not math.isfinite(price):
        raise InputParseError(f"repair price must be a finite number: {token!r}")
    return f"{price:.6f}"


def _verbatim(value: str) -> str:
    return value


@dataclass(frozen=True)
class Prompt:
    text: str
    whole_line: bool = False
    convert: Callable[[str], str] = _verbatim
    newline: bool = False


@dataclass(frozen=True)
class MenuAction:
    selection: int
    label: str
    kind: ActionKind
    transaction: str | None = None
    prompts: tuple[Prompt, ...] = ()
    announce: str | None = None


_CAR_ID = Prompt("Car ID: ")
_CAR_COLOR = Prompt("Car color: ")

MENU_ACTIONS: tuple[MenuAction, ...] = (
    MenuAction(
        0,
        "Initialize ledger",
        ActionKind.SUBMIT,
        "InitLedger",
        announce="Initializing ledger...",
    ),
    MenuAction(
        1,
        "Read person asset",
        ActionKind.EVALUATE,
        "ReadPersonAsset",
        (Prompt("Person ID: "),),
    ),
    MenuAction(2, "Read car asset", ActionKind.EVALUATE, "ReadCarAsset", (_CAR_ID,)),
    MenuAction(3, "Get cars by color", ActionKind.EVALUATE, "GetCarsByColor", (_CAR_COLOR,)),
    MenuAction(
        4,
        "Get cars by color and owner",
        ActionKind.EVALUATE,
        "GetCarsByColorAndOwner",
        (_CAR_COLOR, Prompt("Car owner: ")),
    ),
    MenuAction(
        5,
        "Transfer car to another owner",
        ActionKind.SUBMIT,
        "TransferCarAsset",
        (
            _CAR_ID,
            Prompt("New owner ID: "),
            Prompt("Accept faulted car? (Y/n): ", convert=accept_fault_flag),
        ),
    ),
    MenuAction(
        6,
        "Add car fault",
        ActionKind.SUBMIT,
        "AddCarfault",
        (
            _CAR_ID,
            Prompt("Fault description:", whole_line=True, newline=True),
            Prompt("Fault repair price: ", convert=format_repair_price),
        ),
    ),
    MenuAction(
        7,
        "Change car color",
        ActionKind.SUBMIT,
        "ChangeCarColor",
        (_CAR_ID, Prompt("New car color: ")),
    ),
    MenuAction(8, "Repair car", ActionKind.SUBMIT, "RepairCar", (_CAR_ID,)),
    MenuAction(9, "Exit", ActionKind.EXIT),
)

ACTIONS_BY_SELECTION = {action.selection: action for action in MENU_ACTIONS}


def menu_lines() -> list[str]:
    return [MENU_HEADER] + [f"{action.selection}: {action.label}" for action in MENU_ACTIONS]


def parse_selection(raw: str) -> MenuAction | None:
    tokens = raw.split()
    if not tokens or not _SELECTION_RE.fullmatch(tokens[0]):
        return None
    return ACTIONS_BY_SELECTION.get(int(tokens[0]))


class PromptReader:
    """Token reader over line input; raises EOFError once input is exhausted.

    Tokens left on a line after a prompt is answered feed the next prompt,
    so ``blue P1`` answers both the color and owner prompts.
    """

    def __init__(self, stdin: TextIO, stdout: TextIO) -> None:
        self._stdin = stdin
        self._stdout = stdout
        self._pending = ""

    def read_line(self) -> str:
        line = self._stdin.readline()
        if line == "":
            raise EOFError
        return line.rstrip("\r\n")

    def discard_pending(self) -> None:
        self._pending = ""

    def read_token(self) -> str:
        source = self._pending if self._pending.strip() else self.read_line()
        parts = source.split(None, 1)
        if not parts:
            self._pending = ""
            return ""
        self._pending = parts[1] if len(parts) > 1 else ""
        return parts[0]

    def read_rest_of_line(self) -> str:
        if self._pending.strip():
            rest, self._pending = self._pending.strip(), ""
            return rest
        return self.read_line()

    def ask(self, prompt: Prompt) -> str:
        if prompt.newline:
            print(prompt.text, file=self._stdout)
        else:
            print(prompt.text, end="", file=self._stdout)
        self._stdout.flush()
        raw = self.read_rest_of_line() if prompt.whole_line else self.read_token()
        return prompt.convert(raw)


class Dispatcher:
    """One state, ten labelled transitions; ``Exit`` is the only terminal one."""

    def __init__(self, contract: LedgerContract, reader: PromptReader, stdout: TextIO) -> None:
        self.contract = contract
        self.reader = reader
        self.stdout = stdout
        self.state = MenuState.AWAITING_SELECTION

    def _print(self, text: str = "") -> None:
        print(text, file=self.stdout)

    def dispatch(self, raw_selection: str) -> MenuState:
        if self.state is MenuState.EXITED:
            return self.state

        action = parse_selection(raw_selection)
        if action is None:
            print(NO_SUCH_OPTION, end="", file=self.stdout)
        elif action.kind is ActionKind.EXIT:
            self.state = MenuState.EXITED
            return self.state
        else:
            try:
                self._run(action)
            except EOFError:
                self.state = MenuState.EXITED
                return self.state

        self._print()
        return self.state

    def _run(self, action: MenuAction) -> None:
        if action.announce:
            self._print(action.announce)
        try:
            args = [self.reader.ask(prompt) for prompt in action.prompts]
        except InputParseError as exc:
            self._print(f"invalid input: {exc}")
            return

        if action.kind is ActionKind.SUBMIT:
            try:
                self.contract.submit_transaction(action.transaction, *args)
            except FabcarClientError as exc:
                self._print(f"failed to submit transaction: {sanitize_error_text(str(exc))}")
                return
            self._print(SUCCESS_BANNER)
            return

        try:
            result = self.contract.evaluate_transaction(action.transaction, *args)
            rendered = render_result(result)
        except FabcarClientError as exc:
            self._print(f"failed to evaluate transaction: {sanitize_error_text(str(exc))}")
            return
        self._print(rendered)


def run_menu(contract: LedgerContract, *, stdin: TextIO, stdout: TextIO) -> None:
    reader = PromptReader(stdin, stdout)
    dispatcher = Dispatcher(contract, reader, stdout)
    while dispatcher.state is MenuState.AWAITING_SELECTION:
        for line in menu_lines():
            print(line, file=stdout)
        stdout.flush()
        reader.discard_pending()
        try:
            raw = reader.read_token()
        except EOFError:
            break
        dispatcher.dispatch(raw)

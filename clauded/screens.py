"""Modal screens for adding and deleting sessions."""

from __future__ import annotations

from dataclasses import dataclass

from textual import on
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Label


@dataclass(frozen=True, slots=True)
class SessionDraft:
    """Form values submitted from the add-session dialog."""

    name: str
    host: str
    session_id: str
    password: str

    def missing_fields(self) -> tuple[str, ...]:
        labels = (
            ("name", self.name),
            ("host", self.host),
            ("session id", self.session_id),
            ("password", self.password),
        )
        return tuple(label for label, value in labels if not value)


_DIALOG_CSS = """
{screen} {
    align: center middle;
}

{screen} > Vertical {
    width: 60;
    height: auto;
    padding: 1 2;
    border: thick $primary 60%;
    background: $surface;
}

{screen} .dialog-title {
    text-style: bold;
    margin-bottom: 1;
}

{screen} .dialog-error {
    color: $error;
    height: auto;
}

{screen} Horizontal {
    height: auto;
    margin-top: 1;
    align-horizontal: right;
}

{screen} Button {
    margin-left: 1;
}
"""


class AddSessionScreen(ModalScreen["SessionDraft | None"]):
    """Collects name, host, session id and password for a new profile."""

    DEFAULT_CSS = _DIALOG_CSS.replace("{screen}", "AddSessionScreen")
    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, default_host: str = "") -> None:
        super().__init__()
        self._default_host = default_host

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label("Add session", classes="dialog-title")
            yield Input(placeholder="Display name", id="input-name")
            yield Input(value=self._default_host, placeholder="Host (e.g. example.com)", id="input-host")
            yield Input(placeholder="Session id", id="input-session")
            yield Input(placeholder="Password", password=True, id="input-password")
            yield Label("", id="form-error", classes="dialog-error")
            with Horizontal():
                yield Button("Cancel", id="cancel")
                yield Button("Save", variant="primary", id="save")

    def on_mount(self) -> None:
        self.query_one("#input-name", Input).focus()

    def draft(self) -> SessionDraft:
        return SessionDraft(
            name=self.query_one("#input-name", Input).value.strip(),
            host=self.query_one("#input-host", Input).value.strip(),
            session_id=self.query_one("#input-session", Input).value.strip(),
            password=self.query_one("#input-password", Input).value,
        )

    @on(Button.Pressed, "#save")
    @on(Input.Submitted)
    def _submit(self) -> None:
        draft = self.draft()
        missing = draft.missing_fields()
        if missing:
            self.query_one("#form-error", Label).update(f"Missing: {', '.join(missing)}")
            return
        self.dismiss(draft)

    @on(Button.Pressed, "#cancel")
    def action_cancel(self) -> None:
        self.dismiss(None)


class ConfirmDeleteScreen(ModalScreen[bool]):
    """Asks the user to confirm deleting a session."""

    DEFAULT_CSS = _DIALOG_CSS.replace("{screen}", "ConfirmDeleteScreen")
    BINDINGS = [Binding("escape", "cancel", "Cancel"), Binding("y", "confirm", "Delete")]

    def __init__(self, label: str) -> None:
        super().__init__()
        self._label = label

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Label("Delete session", classes="dialog-title")
            yield Label(f"Are you sure you want to delete '{self._label}'?", markup=False)
            with Horizontal():
                yield Button("Cancel", id="cancel")
                yield Button("Delete", variant="error", id="confirm")

    @on(Button.Pressed, "#confirm")
    def action_confirm(self) -> None:
        self.dismiss(True)

    @on(Button.Pressed, "#cancel")
    def action_cancel(self) -> None:
        self.dismiss(False)


__all__ = ["AddSessionScreen", "ConfirmDeleteScreen", "SessionDraft"]

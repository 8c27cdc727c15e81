"""Textual front end: draws ``AppState`` and maps keys to controller calls."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from rich.text import Text
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.screen import ModalScreen
from textual.timer import Timer
from textual.widgets import Static

from . import render
from .config import UISettings
from .controller import Controller
from .models import OperationKind
from .state import AppState, FocusPanel

logger = logging.getLogger(__name__)


class Pane(Static):
    """Bordered panel whose border highlights when its ``FocusPanel`` has focus."""

    DEFAULT_CSS = """
    Pane {
        height: 100%;
        border: round $panel-lighten-2;
        padding: 0 1;
    }

    Pane.focused {
        border: round cyan;
    }
    """

    def __init__(self, panel: FocusPanel, title: str, **kwargs):
        super().__init__(**kwargs)
        self.panel = panel
        self.border_title = title

    def set_focused(self, focused: bool) -> None:
        self.set_class(focused, "focused")


class OutputPane(Pane):
    def visible_rows(self) -> int:
        # size is the content region, border and padding excluded
        return max(self.size.height, 1)

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self.app.scroll_output(3)

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self.app.scroll_output(-3)


class HelpScreen(ModalScreen):
    """Keybinding reference; keys still reach the dashboard's handler."""

    DEFAULT_CSS = """
    HelpScreen {
        align: center middle;
    }
    HelpScreen #help-box {
        width: 82%;
        height: auto;
        border: round cyan;
        background: $surface;
        padding: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        body = Text("lazytf keybindings\n\n", style="bold cyan")
        body.append("\n".join(render.HELP_LINES))
        with Container(id="help-box"):
            yield Static(body)

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self.app.handle_key(event.key)


class ConfirmApplyScreen(ModalScreen):
    DEFAULT_CSS = """
    ConfirmApplyScreen {
        align: center middle;
    }
    ConfirmApplyScreen #confirm-box {
        width: 65%;
        height: auto;
        border: round yellow;
        background: $surface;
        padding: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        with Container(id="confirm-box"):
            yield Static("\n".join(render.CONFIRM_LINES))

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self.app.handle_key(event.key)


class LazyTfApp(App):
    """Interactive dashboard for Terraform workflows across AWS accounts."""

    CSS = """
    #title {
        height: 1;
    }

    #panels {
        height: 1fr;
    }

    #accounts-pane, #workspaces-pane {
        width: 28%;
    }

    #output-pane {
        width: 1fr;
    }

    #hints {
        height: 2;
    }
    """

    TITLE = "lazytf"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("ctrl+c", "graceful_quit", "Quit", show=False, priority=True),
        Binding("ctrl+q", "graceful_quit", "Quit", show=False, priority=True),
        Binding("tab", "focus_panel(1)", "Next panel", show=False, priority=True),
        Binding("shift+tab", "focus_panel(-1)", "Previous panel", show=False, priority=True),
    ]

    def __init__(
        self,
        state: AppState,
        settings: Optional[UISettings] = None,
        controller: Optional[Controller] = None,
        probe_on_start: bool = True,
    ):
        super().__init__()
        self.state = state
        self.settings = settings or UISettings()
        self.controller = controller or Controller(state)
        self.probe_on_start = probe_on_start
        self.tick_timer: Optional[Timer] = None
        self._keymap = self._build_keymap()

    def compose(self) -> ComposeResult:
        # Kept as attributes: queries would miss them while a modal screen is on top.
        self.title_bar = Static(id="title")
        self.accounts_pane = Pane(FocusPanel.ACCOUNTS, "Accounts", id="accounts-pane")
        self.workspaces_pane = Pane(FocusPanel.WORKSPACES, "Workspaces", id="workspaces-pane")
        self.output_pane = OutputPane(FocusPanel.OUTPUT, "Output", id="output-pane")
        self.hints_bar = Static(id="hints")

        yield self.title_bar
        with Horizontal(id="panels"):
            yield self.accounts_pane
            yield self.workspaces_pane
            yield self.output_pane
        yield self.hints_bar

    def on_mount(self) -> None:
        if self.probe_on_start:
            self.controller.start_startup_probes()
        self.tick_timer = self.set_interval(self.settings.tick_interval, self.tick)
        self.render_state()

    async def on_unmount(self) -> None:
        await self.controller.shutdown()

    # -- tick ----------------------------------------------------------------

    def tick(self) -> None:
        """Timer callback: reconcile worker events, then redraw or exit."""
        applied = self.controller.tick()
        if applied:
            logger.debug("applied %d worker events", applied)
        if self.controller.should_exit:
            self.exit()
            return
        self.render_state()

    def render_state(self) -> None:
        state = self.state
        self.title_bar.update(render.title_text(state))
        self.hints_bar.update(render.hint_text(state))

        accounts = self.accounts_pane
        workspaces = self.workspaces_pane
        output = self.output_pane

        accounts.display = not state.is_output_only
        workspaces.display = not state.is_output_only
        for pane in (accounts, workspaces, output):
            pane.set_focused(state.focused_panel is pane.panel)

        accounts.update(render.accounts_text(state))
        workspaces.update(render.workspaces_text(state))
        lines, from_bottom = render.output_window(state, output.visible_rows())
        output.border_title = render.output_title(from_bottom)
        output.update(render.output_text(lines))

        self._sync_modal(ConfirmApplyScreen, state.pending_apply_confirmation and not state.show_help)
        self._sync_modal(HelpScreen, state.show_help)

    def _sync_modal(self, screen_type: type, wanted: bool) -> None:
        showing = isinstance(self.screen, screen_type)
        if wanted and not showing:
            self.push_screen(screen_type())
        elif showing and not wanted:
            self.pop_screen()

    # -- input ---------------------------------------------------------------

    def _build_keymap(self) -> Dict[str, Callable[[], None]]:
        state = self.state
        controller = self.controller

        # A launch refused because something is running keeps a pending apply prompt.
        def operation(kind: OperationKind) -> Callable[[], None]:
            def start() -> None:
                was_busy = state.busy
                controller.start_operation(kind)
                if not was_busy:
                    state.clear_apply_confirmation()

            return start

        def with_clear(action: Callable[[], None]) -> Callable[[], None]:
            def run() -> None:
                action()
                state.clear_apply_confirmation()

            return run

        def probe() -> None:
            was_busy = state.busy
            controller.start_probe()
            if not was_busy:
                state.clear_apply_confirmation()

        keymap: Dict[str, Callable[[], None]] = {
            "z": with_clear(state.toggle_output_only),
            "left": state.focus_previous,
            "h": state.focus_previous,
            "right": state.focus_next,
            "l": state.focus_next,
            "up": with_clear(state.move_selection_up),
            "k": with_clear(state.move_selection_up),
            "down": with_clear(state.move_selection_down),
            "j": with_clear(state.move_selection_down),
            "pageup": with_clear(lambda: self._scroll_focused(10)),
            "pagedown": with_clear(lambda: self._scroll_focused(-10)),
            "home": with_clear(lambda: self._scroll_focused(None, top=True)),
            "g": with_clear(lambda: self._scroll_focused(None, top=True)),
            "end": with_clear(lambda: self._scroll_focused(None)),
            "G": with_clear(lambda: self._scroll_focused(None)),
            "shift+g": with_clear(lambda: self._scroll_focused(None)),
            "a": operation(OperationKind.AUTH_LOGIN),
            "s": probe,
            "r": operation(OperationKind.REFRESH_WORKSPACES),
            "i": operation(OperationKind.TERRAFORM_INIT),
            "p": operation(OperationKind.TERRAFORM_PLAN),
            "A": controller.request_apply,
            "shift+a": controller.request_apply,
        }
        return keymap

    def _scroll_focused(self, delta: Optional[int], top: bool = False) -> None:
        if self.state.focused_panel is not FocusPanel.OUTPUT:
            return
        if delta is not None:
            self.state.scroll_output(delta)
        elif top:
            self.state.scroll_output_top()
        else:
            self.state.scroll_output_bottom()

    def handle_key(self, key: str) -> None:
        """Map one key press to a state change or controller call."""
        state = self.state

        if key == "question_mark":
            state.toggle_help()
            state.clear_apply_confirmation()
        elif state.show_help and key == "escape":
            state.close_help()
        elif state.show_help and key not in ("q", "c"):
            pass
        elif key == "escape":
            state.exit_output_only()
            state.clear_apply_confirmation()
        elif key == "q":
            self.controller.request_quit()
        elif key == "c":
            self.controller.request_cancel()
        elif key == "y" and state.pending_apply_confirmation:
            self.controller.confirm_apply()
        elif key in self._keymap:
            self._keymap[key]()
        else:
            state.clear_apply_confirmation()

        self.render_state()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        self.handle_key(event.key)

    def scroll_output(self, delta: int) -> None:
        if self.state.focused_panel is FocusPanel.OUTPUT:
            self.state.scroll_output(delta)
            self.render_state()

    # -- actions ---------------------------------------------------------------

    def action_graceful_quit(self) -> None:
        self.controller.request_quit()
        self.render_state()

    def action_focus_panel(self, step: int) -> None:
        if step > 0:
            self.state.focus_next()
        else:
            self.state.focus_previous()
        self.render_state()

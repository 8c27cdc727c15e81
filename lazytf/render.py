"""Rich renderables for the dashboard panes, built from an ``AppState`` snapshot."""

from __future__ import annotations

from typing import List, Tuple

from rich.text import Text

from .state import AppState

SPLIT_HINTS = (
    "j/k or arrows: move  tab/h/l: panel  z:fullscreen output  ?:help  a:aws login  s:auth check  r:workspaces",
    "i:init  p:plan  A then y:apply  c:cancel (again=force)  q:quit  pgup/pgdn g/G/mouse:output scroll",
)
OUTPUT_ONLY_HINTS = (
    "z/esc:exit fullscreen  ?:help  pgup/pgdn g/G mouse:scroll  c:cancel (again=force)  q:quit",
    "output-only mode for plan review",
)

HELP_LINES = (
    "Global:",
    "  ?: toggle help   q: quit   Ctrl+C: graceful quit",
    "  c: cancel running command (press again to force kill)",
    "",
    "Layout & Focus:",
    "  z: toggle output fullscreen   Esc: exit fullscreen/help",
    "  Tab/Shift+Tab or h/l: move focus between panels",
    "",
    "Navigation:",
    "  j/k or arrows: move selection   g/G or Home/End: output top/bottom",
    "  PgUp/PgDn or mouse wheel: scroll output",
    "",
    "Actions:",
    "  a: aws sso login   s: auth check   r: refresh workspaces",
    "  i: terraform init   p: terraform plan   A then y: terraform apply",
)

CONFIRM_LINES = (
    "Apply confirmation",
    "",
    "Press `y` to run terraform apply",
    "Use any navigation key to cancel",
)


def output_line_style(line: str) -> str:
    trimmed = line.lstrip()
    if "Error:" in trimmed:
        return "bold red"
    if "Warning:" in trimmed:
        return "bold yellow"
    if trimmed.startswith("+"):
        return "green"
    if trimmed.startswith("~"):
        return "yellow"
    if trimmed.startswith("-"):
        return "red"
    if trimmed.startswith("Plan:"):
        return "bold cyan"
    if trimmed.startswith("Apply complete!") or trimmed.startswith("No changes."):
        return "bold green"
    if trimmed.startswith("Running `") or trimmed.startswith("Using var files:"):
        return "blue"
    return ""


def styled_output_line(line: str) -> Text:
    return Text(line, style=output_line_style(line), no_wrap=True)


def title_text(state: AppState) -> Text:
    text = Text(" lazytf ", style="bold cyan")
    text.append(
        f"| {state.current_operation_label()} | mode: {state.layout_mode.value} | focus: {state.focused_panel.value}"
    )
    return text


def hint_text(state: AppState) -> Text:
    hints = OUTPUT_ONLY_HINTS if state.is_output_only else SPLIT_HINTS
    return Text("\n".join(hints), style="dim")


def accounts_text(state: AppState) -> Text:
    text = Text()
    for idx, account in enumerate(state.accounts):
        if idx:
            text.append("\n")
        marker = ">" if idx == state.selected_account else " "
        text.append(f"{marker} ")
        text.append(account.auth.icon, style=account.auth.color)
        text.append(f" {account.name} [{account.auth.label}]")
    return text


def workspaces_text(state: AppState) -> Text:
    account = state.selected()
    if account is None:
        return Text("  (no account selected)", style="dim")
    if not account.workspaces:
        return Text("  (no workspaces loaded)", style="dim")
    text = Text()
    for idx, workspace in enumerate(account.workspaces):
        if idx:
            text.append("\n")
        marker = ">" if idx == state.selected_workspace else " "
        text.append(f"{marker} {workspace}", style="bold" if idx == state.selected_workspace else "")
    return text


def output_window(state: AppState, rows: int) -> Tuple[List[str], int]:
    """Lines visible in a pane ``rows`` high, plus the effective scroll offset."""
    rows = max(rows, 1)
    max_from_bottom = max(len(state.output) - rows, 0)
    from_bottom = min(state.output_scroll_from_bottom, max_from_bottom)
    return state.output.tail(rows, from_bottom), from_bottom


def output_text(lines: List[str]) -> Text:
    return Text("\n").join(styled_output_line(line) for line in lines)


def output_title(from_bottom: int) -> str:
    return "Output" if from_bottom == 0 else f"Output (scroll +{from_bottom})"

"""All CSS strings for the fleetdeck dashboard."""


def _button_row_css(
    row_id: str,
    *,
    align: str = "right middle",
    button_margin: str = "0 0 0 1",
) -> str:
    return (
        f"#{row_id} {{\n"
        "    height: 3;\n"
        f"    align: {align};\n"
        "}\n\n"
        f"#{row_id} Button {{\n"
        f"    margin: {button_margin};\n"
        "}\n"
    )


def _dialog_css(screen: str, dialog_id: str, *, border: str, width: int | str) -> str:
    return (
        f"{screen} {{\n"
        "    align: center middle;\n"
        "    background: transparent;\n"
        "}\n\n"
        f"#{dialog_id} {{\n"
        f"    width: {width};\n"
        "    height: auto;\n"
        "    max-height: 40;\n"
        f"    border: {border};\n"
        "    background: #0a0a0a;\n"
        "    padding: 1 2;\n"
        "}\n\n"
        f"#{dialog_id} Label {{\n"
        "    width: 100%;\n"
        "    margin: 0 0 1 0;\n"
        "    color: #cccccc;\n"
        "}\n"
    )


APP_CSS = """
Screen {
    background: #000000;
    overflow: hidden;
    scrollbar-size: 0 0;
}

#title-bar {
    height: 1;
    background: #0a1a2a;
    color: #00d7d7;
    padding: 0 1;
}

#title-text {
    width: auto;
    color: #00d7d7;
    text-style: bold;
}

#title-mode {
    width: 1fr;
    padding: 0 2;
    color: #3a5a5a;
}

#title-mode.streaming {
    color: #44cc88;
}

#title-mode.polling {
    color: #ffaf00;
}

#title-clock {
    width: auto;
    color: #3a5a5a;
}

#summary-bar {
    height: 1;
    padding: 0 1;
    margin: 1 0 0 0;
    background: #050f15;
    color: #cccccc;
}

#agent-table {
    height: 1fr;
    margin: 1 1;
    background: #000000;
    scrollbar-size: 0 1;
}

DataTable > .datatable--header {
    background: #0a1a2a;
    color: #00aabb;
    text-style: bold;
}

#feed-error {
    height: auto;
    margin: 0 1;
    padding: 1 2;
    border: round #ff3366;
    color: #ff6688;
}

#feed-error.hidden {
    display: none;
}

#banner {
    height: 1;
    padding: 0 1;
}

#banner.hidden {
    display: none;
}

#banner.success {
    background: #0d2a18;
    color: #66dd99;
}

#banner.error {
    background: #2a0d14;
    color: #ff6688;
}

#status-line {
    dock: bottom;
    height: 1;
    padding: 0 1;
    background: #0a1a2a;
    color: #447777;
}
"""

CONFIRM_KILL_CSS = f"""
{_dialog_css("ConfirmKillScreen, ConfirmKillAllScreen", "confirm-kill-dialog", border="thick #ff3366", width=60)}

#confirm-kill-dialog Label {{
    content-align: center middle;
}}

{_button_row_css("confirm-kill-buttons", align="center middle", button_margin="0 1")}
"""

AGENT_MESSAGE_CSS = f"""
{_dialog_css("AgentMessageScreen", "agent-message-dialog", border="thick #ffaf00", width=90)}

#agent-message-input {{
    height: 8;
    background: #0a1018;
    border: none;
    color: #cccccc;
}}

{_button_row_css("agent-message-buttons")}
"""

MODAL_REQUIRED_CSS = f"""
{_dialog_css("ModalRequiredScreen", "modal-required-dialog", border="thick #00d7d7", width=90)}

#modal-required-title {{
    color: #00d7d7;
    text-style: bold;
}}

#modal-required-command {{
    height: auto;
    padding: 1 2;
    margin: 0 0 1 0;
    background: #101820;
    color: #f2e8dc;
}}

{_button_row_css("modal-required-buttons")}
"""

INBOX_CSS = f"""
{_dialog_css("InboxScreen", "inbox-dialog", border="thick #5f87ff", width=80)}

#inbox-list {{
    height: auto;
    max-height: 24;
    color: #dddddd;
}}

#inbox-error {{
    color: #ff6688;
}}
"""

TERMINAL_CSS = """
TerminalScreen {
    align: center middle;
    background: #000000d0;
}

#terminal-dialog {
    width: 100%;
    height: 100%;
    background: #000000;
    padding: 0 1;
}

#terminal-title-row {
    width: 100%;
    height: 1;
    background: #0a1a2a;
    color: #00d7d7;
    margin: 0 0 1 0;
    padding: 0 1;
}

#terminal-title {
    width: 1fr;
}

#terminal-hint {
    width: auto;
    color: #6a9090;
}

#terminal-stream {
    height: 1fr;
    background: #000000;
    scrollbar-size: 0 1;
}
"""

CREDENTIAL_CSS = f"""
{_dialog_css("CredentialScreen", "credential-dialog", border="thick #ffaf00", width=70)}

{_button_row_css("credential-buttons")}
"""

HELP_CSS = f"""
{_dialog_css("HelpScreen", "help-dialog", border="solid #00d7d7", width=70)}

#help-dialog .help-row {{
    margin: 0;
}}
"""

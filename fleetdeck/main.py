"""CLI entry point: argument parsing and dispatch."""

import argparse

from .commands import cmd_act, cmd_key, cmd_ls, cmd_probe
from .config import setup_logging
from .dashboard import cmd_dashboard
from .models import ActionVerb
from .settings import SETTINGS


def main():
    parser = argparse.ArgumentParser(
        prog="fleetdeck",
        description="Monitor and control a fleet of agents through the command center",
    )
    sub = parser.add_subparsers(dest="cmd")

    p_ls = sub.add_parser("ls", help="Show fleet status once")
    p_ls.set_defaults(func=cmd_ls)

    p_act = sub.add_parser("act", help="Run one fleet action")
    p_act.add_argument("verb", choices=[v.value for v in ActionVerb], help="Action verb")
    p_act.add_argument("agent_id", nargs="?", help="Target agent (single-agent verbs)")
    p_act.add_argument("-m", "--message", help="Message text for send-message")
    p_act.set_defaults(func=cmd_act)

    p_key = sub.add_parser("key", help="Manage the stored API key")
    key_sub = p_key.add_subparsers(dest="key_cmd")
    p_key_set = key_sub.add_parser("set", help="Store a new API key")
    p_key_set.add_argument("value", help="API key value")
    key_sub.add_parser("show", help="Show the stored API key (masked)")
    key_sub.add_parser("clear", help="Remove the stored API key")
    p_key.set_defaults(func=cmd_key, key_cmd="show")

    p_probe = sub.add_parser("probe", help="Health-probe configured services")
    p_probe.set_defaults(func=cmd_probe)

    p_dash = sub.add_parser("dashboard", aliases=["d"], help="Live dashboard")
    p_dash.set_defaults(func=cmd_dashboard)

    args = parser.parse_args()
    setup_logging(SETTINGS.log_level)
    if hasattr(args, "func"):
        args.func(args)
    else:
        cmd_dashboard(args)

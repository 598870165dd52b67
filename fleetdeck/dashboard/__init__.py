from .app import FleetDeckApp, cmd_dashboard

__all__ = ["FleetDeckApp", "cmd_dashboard"]

from __future__ import annotations

import argparse
import os
from argparse import RawDescriptionHelpFormatter

try:
    import tomllib  # py3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib

from .constants import (
    ALARM_FREQUENCY_HZ,
    ALARM_TONE_MS,
    DEFAULT_INTERVAL_S,
    DEFAULT_PROBE_TIMEOUT_S,
    DEFAULT_PROBE_URL,
    USAGE_EXAMPLES,
)


def get_bool_env(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    val = val.lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def get_notifier_config():
    return {
        "enabled": get_bool_env("NETMON_NOTIFY", False),
        "pushover_token": os.getenv("PUSHOVER_TOKEN"),
        "pushover_user": os.getenv("PUSHOVER_USER"),
    }


def load_toml_config(path: str) -> dict:
    """Load TOML configuration from path."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _get_cfg(cfg: dict, section: str, key: str, default=None):
    sec = cfg.get(section, {})
    if not isinstance(sec, dict):
        return default
    return sec.get(key, default)


def config_defaults_from(cfg: dict) -> dict:
    """Map TOML config (or {} for built-ins) onto argparse destinations."""
    return {
        "url": _get_cfg(cfg, "probe", "url", DEFAULT_PROBE_URL),
        "timeout": _get_cfg(cfg, "probe", "timeout", DEFAULT_PROBE_TIMEOUT_S),
        "interval": _get_cfg(cfg, "monitor", "interval", DEFAULT_INTERVAL_S),
        "silent": not _get_cfg(cfg, "alarm", "enabled", True),
        "frequency": _get_cfg(cfg, "alarm", "frequency", ALARM_FREQUENCY_HZ),
        "tone_ms": _get_cfg(cfg, "alarm", "tone_ms", ALARM_TONE_MS),
        "player": _get_cfg(cfg, "alarm", "player", None),
        "verbose": _get_cfg(cfg, "logging", "verbose", False),
        "json": _get_cfg(cfg, "logging", "json", False),
        "no_banner": _get_cfg(cfg, "logging", "no_banner", False),
        "control_socket": _get_cfg(cfg, "control", "socket", ""),
    }


def apply_config(args, cfg: dict):
    """Fill every option left unset on the command line from cfg, then built-ins.

    Config-backed options parse to None when absent, so an explicit CLI value
    always wins over the file."""
    for k, v in config_defaults_from(cfg).items():
        if getattr(args, k, None) is None:
            setattr(args, k, v)
    return args


def resolved_config_dict(args) -> dict:
    return {
        "probe": {"url": args.url, "timeout": args.timeout},
        "monitor": {"interval": args.interval},
        "alarm": {
            "enabled": not args.silent,
            "frequency": args.frequency,
            "tone_ms": args.tone_ms,
            "player": args.player,
        },
        "logging": {
            "verbose": bool(args.verbose),
            "json": bool(args.json),
            "no_banner": bool(args.no_banner),
        },
        "control": {
            "socket": args.control_socket,
        },
    }


def build_arg_parser():
    """Construct the CLI argument parser for the daemon."""
    ap = argparse.ArgumentParser(
        description="Watch internet connectivity and sound an alarm while it is down.",
        epilog=USAGE_EXAMPLES,
        formatter_class=RawDescriptionHelpFormatter,
    )
    # Config-backed options default to None; apply_config() fills them from
    # the TOML file (if any) and then from built-in defaults.
    ap.set_defaults(**{k: None for k in config_defaults_from({})})
    ap.add_argument("-i", "--interval", type=int, help=f"Seconds between checks, 1-3600 (default: {DEFAULT_INTERVAL_S}).")
    ap.add_argument("--timeout", type=float, help=f"Probe timeout in seconds (default: {DEFAULT_PROBE_TIMEOUT_S:g}).")
    ap.add_argument("--url", help="Endpoint to probe. Any 2xx answer counts as connected.")

    alarm_group = ap.add_mutually_exclusive_group()
    alarm_group.add_argument("--silent", dest="silent", action="store_true", help="Do not play an alarm sound.")
    alarm_group.add_argument("--sound", dest="silent", action="store_false", help="Play the alarm sound (default).")
    ap.add_argument("--frequency", type=float, help=f"Alarm tone frequency in Hz (default: {ALARM_FREQUENCY_HZ:g}).")
    ap.add_argument("--tone-ms", type=int, help=f"Alarm tone length in ms, looped (default: {ALARM_TONE_MS}).")
    ap.add_argument("--player", help="Audio player command (default: first of paplay, aplay, afplay).")

    ap.add_argument("--verbose", dest="verbose", action="store_true", help="Verbose logging (one event per probe).")
    ap.add_argument("--no-verbose", dest="verbose", action="store_false", help="Disable verbose logging.")
    json_group = ap.add_mutually_exclusive_group()
    json_group.add_argument("--json", dest="json", action="store_true", help="Emit JSON log events.")
    json_group.add_argument("--no-json", dest="json", action="store_false", help="Disable JSON log output.")
    ap.add_argument("--no-banner", dest="no_banner", action="store_true", help="Disable the startup banner.")
    ap.add_argument("--banner", dest="no_banner", action="store_false", help="Enable the startup banner.")

    sock_group = ap.add_mutually_exclusive_group()
    sock_group.add_argument("--control-socket", dest="control_socket",
                            help="Path to a local UNIX control socket (e.g. /run/netmon/netmon.sock) for netmonctl.")
    sock_group.add_argument("--no-control-socket", dest="control_socket", action="store_const", const="",
                            help="Disable the local control socket.")

    ap.add_argument("--once", action="store_true", help="Check once and exit (status 0 connected, 1 disconnected).")
    ap.add_argument("--doctor", action="store_true", help="Run endpoint and sound diagnostics and exit.")
    ap.add_argument("--test-alarm", action="store_true", help="With --doctor: play the alarm tone for a few seconds.")
    ap.add_argument("--config", help="Path to a TOML config file. CLI args override config values.")
    ap.add_argument("--print-config", action="store_true", help="Print the resolved configuration and exit.")
    ap.add_argument("--version", action="store_true", help="Print version and exit.")
    return ap

# healthtrack/cli/commands.py
from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from healthtrack.app.config import HealthTrackConfig
from healthtrack.app.controller import HealthTrackController
from healthtrack.app.sinks import CsvTelemetrySink, PrintTelemetrySink, SinkFanout
from healthtrack.model.loader import ProfileLoader
from healthtrack.radio.bleak_radio import BleakRadio

POLL_INTERVAL_S = 0.2

# ---------------- Logging ----------------

def configure_file_logging(app_log_path: Path) -> None:
    """
    Add a file handler to the root logger (idempotent).
    Kept in CLI (presentation-layer concern).
    """
    root = logging.getLogger()
    app_log_path.parent.mkdir(parents=True, exist_ok=True)
    target = str(app_log_path.resolve())

    for h in root.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
            return

    fh = logging.FileHandler(app_log_path, encoding="utf-8", delay=True)
    fh.setLevel(logging.INFO)
    fh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(fh)

    if root.level > logging.INFO:
        root.setLevel(logging.INFO)


def configure_console_logging() -> None:
    root = logging.getLogger()
    for h in root.handlers:
        if type(h) is logging.StreamHandler:
            return
    sh = logging.StreamHandler()
    sh.setLevel(logging.DEBUG)
    sh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"))
    root.addHandler(sh)
    root.setLevel(logging.DEBUG)


def setup_logging(args: argparse.Namespace) -> None:
    configure_file_logging(args.log_file)
    if args.verbose:
        configure_console_logging()


def config_from_args(args: argparse.Namespace) -> HealthTrackConfig:
    return HealthTrackConfig(
        profile_path=args.profile,
        scan_timeout_s=getattr(args, "timeout", 10.0),
        max_notification_errors=getattr(args, "max_notify_errors", 5),
        adapter=getattr(args, "adapter", None),
    )


# ---------------- Commands ----------------

def cmd_profile(args: argparse.Namespace) -> int:
    profile = ProfileLoader(args.profile).load()
    print(f"Target name: {profile.target_name}")
    print(f"Service:     {profile.service_uuid} (prefix {profile.service_uuid_prefix})")
    print("Characteristics:")
    for metric, uuid in profile.characteristics.items():
        print(f"  - {metric.value:<10} {uuid}")
    return 0


def cmd_scan(args: argparse.Namespace) -> int:
    cfg = config_from_args(args)
    return asyncio.run(_scan(cfg, BleakRadio(adapter=cfg.adapter)))


def cmd_monitor(args: argparse.Namespace) -> int:
    cfg = config_from_args(args)
    return asyncio.run(_monitor(args, cfg, BleakRadio(adapter=cfg.adapter)))


async def _scan(cfg: HealthTrackConfig, radio) -> int:
    async with HealthTrackController(cfg, radio=radio) as controller:
        print(f"Scanning for '{controller.profile.target_name}' ({cfg.scan_timeout_s:.0f}s)...")
        found = await controller.scan()
        if found is None:
            print("No matching device found.")
            return 1
        print(f"FOUND {found.display_name} [{found.id}] rssi={found.rssi if found.rssi is not None else '-'}")
        return 0


async def _monitor(args: argparse.Namespace, cfg: HealthTrackConfig, radio) -> int:
    sinks = SinkFanout([PrintTelemetrySink()])
    if args.record:
        sinks.add(CsvTelemetrySink(args.record))
        print(f"Recording: {args.record}")

    try:
        async with HealthTrackController(cfg, radio=radio) as controller:
            target = args.address
            if not target:
                print(f"Scanning for '{controller.profile.target_name}'...")
                found = await controller.scan()
                if found is None:
                    print("No matching device found.")
                    return 1
                print(f"FOUND {found.display_name} [{found.id}]")
                target = found

            if not await controller.connect_to_device(target):
                print(f"Connection failed: {controller.status().last_error or 'unknown error'}")
                return 1

            st = controller.status()
            print(f"Connected: {st.peripheral.display_name if st.peripheral else '-'}")
            print(f"Streams:   {[m.value for m in st.subscribed] or '(none)'}")

            controller.subscribe(sinks.on_sample, sinks.on_status)
            try:
                await _wait_while_connected(controller, args.secs)
            finally:
                await controller.unsubscribe()
                await controller.disconnect()
            return 0
    finally:
        sinks.close()


async def _wait_while_connected(controller: HealthTrackController, secs) -> None:
    loop = asyncio.get_running_loop()
    t0 = loop.time()
    while secs is None or loop.time() - t0 < secs:
        await asyncio.sleep(POLL_INTERVAL_S)
        if not await controller.is_connected():
            print("Link lost.")
            return

#!/usr/bin/env python3

"""
SwitchBot OpenAPI / BLE probe.

Talks to the SwitchBot cloud with the same client the integration uses, so
credentials, device ids and command payloads can be checked outside Home
Assistant.

Usage examples:
  # List devices
  python switchbot_probe.py --token TOKEN --secret SECRET --list

  # Current status of one device
  python switchbot_probe.py --token TOKEN --secret SECRET --device AABBCCDDEEFF --status

  # Turn on and set brightness (1-100)
  python switchbot_probe.py --token TOKEN --secret SECRET --device AABBCCDDEEFF --on --brightness 60

  # Set color by RGB or hex
  python switchbot_probe.py --token TOKEN --secret SECRET --device <id> --color 255,0,64
  python switchbot_probe.py --token TOKEN --secret SECRET --device <id> --color ff0040

  # Set color temperature in Kelvin
  python switchbot_probe.py --token TOKEN --secret SECRET --device <id> --ct 3000

  # Print parsed SwitchBot light advertisements for 15 seconds (no credentials needed)
  python switchbot_probe.py --scan 15

Token and secret may also come from SWITCHBOT_TOKEN / SWITCHBOT_SECRET.
"""

import argparse
import asyncio
import json
import os
import sys
from dataclasses import asdict
from typing import Tuple

# Importing the package does not pull in Home Assistant; only light.py does.
from custom_components.switchbot_light.api import SwitchBotCloudClient
from custom_components.switchbot_light.ble import SwitchBotBleScanner
from custom_components.switchbot_light.errors import LocalTransportError


def _parse_color_arg(arg: str) -> Tuple[int, int, int]:
    s = arg.strip().lower()
    if "," in s:
        parts = [p.strip() for p in s.split(",")]
        if len(parts) != 3:
            raise ValueError("color must be R,G,B or hex")
        r, g, b = (max(0, min(255, int(x))) for x in parts)
        return r, g, b
    if s.startswith("#"):
        s = s[1:]
    if len(s) != 6:
        raise ValueError("hex color must be 6 chars (e.g., ff00aa)")
    v = int(s, 16)
    return (v >> 16) & 0xFF, (v >> 8) & 0xFF, v & 0xFF


def _print_result(label: str, body, err) -> bool:
    if err:
        print(f"{label} → FAILED: {err}", file=sys.stderr)
        return False
    print(f"{label} → ok {json.dumps(body)}")
    return True


async def _scan(seconds: float) -> None:
    seen = set()

    def _print(payload):
        key = (payload.address, payload.state, payload.brightness, payload.color_temperature)
        if key not in seen:
            seen.add(key)
            print(json.dumps(asdict(payload)))

    scanner = SwitchBotBleScanner(listener=_print)
    try:
        await scanner.start()
    except LocalTransportError as ex:
        print(f"Scan failed: {ex}", file=sys.stderr)
        sys.exit(1)
    try:
        await asyncio.sleep(seconds)
    finally:
        await scanner.stop()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="SwitchBot OpenAPI / BLE probe")
    ap.add_argument("--token", default=os.environ.get("SWITCHBOT_TOKEN"))
    ap.add_argument("--secret", default=os.environ.get("SWITCHBOT_SECRET"))
    ap.add_argument("--list", action="store_true", help="List devices and exit")
    ap.add_argument("--device", help="Device id (12 hex digits)")
    ap.add_argument("--status", action="store_true", help="Print device status")
    ap.add_argument("--on", action="store_true")
    ap.add_argument("--off", action="store_true")
    ap.add_argument("--brightness", type=int, help="Brightness 1-100")
    ap.add_argument("--color", help="Color as R,G,B (0-255 each) or 6-char hex")
    ap.add_argument("--ct", type=int, help="Color temperature in Kelvin")
    ap.add_argument("--scan", type=float, metavar="SECONDS", help="Print BLE advertisements")
    return ap


async def main_async(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.scan:
        await _scan(args.scan)
        return 0

    if not (args.token and args.secret):
        print("--token and --secret (or SWITCHBOT_TOKEN / SWITCHBOT_SECRET) are required", file=sys.stderr)
        return 2

    client = await SwitchBotCloudClient.create(args.token, args.secret)
    ok = True
    try:
        if args.list:
            devices, err = await client.get_devices()
            if err:
                print(f"LIST → FAILED: {err}", file=sys.stderr)
                return 1
            print(json.dumps(devices, indent=2))
            if not args.device:
                return 0

        if not args.device:
            print("--device is required for status and control", file=sys.stderr)
            return 2
        dev = args.device.replace(":", "").upper()

        if args.on or args.off:
            body, err = await client.send_command(dev, "turnOn" if args.on else "turnOff")
            ok &= _print_result(f"TURN {'on' if args.on else 'off'}", body, err)
        if args.brightness is not None:
            pct = max(1, min(100, int(args.brightness)))
            body, err = await client.send_command(dev, "setBrightness", pct)
            ok &= _print_result(f"BRIGHTNESS {pct}%", body, err)
        if args.color:
            r, g, b = _parse_color_arg(args.color)
            body, err = await client.send_command(dev, "setColor", f"{r}:{g}:{b}")
            ok &= _print_result(f"COLOR {r},{g},{b}", body, err)
        if args.ct is not None:
            body, err = await client.send_command(dev, "setColorTemperature", int(args.ct))
            ok &= _print_result(f"CT {int(args.ct)}K", body, err)
        if args.status:
            body, err = await client.get_status(dev)
            if err:
                print(f"STATUS → FAILED: {err}", file=sys.stderr)
                ok = False
            else:
                print(json.dumps(body, indent=2))
    finally:
        await client.close()
    return 0 if ok else 1


def main():
    try:
        sys.exit(asyncio.run(main_async()))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Check script for the detector monitor interface.
This utility helps verify that the monitor endpoint answers and serves
decodable images before running the bridge.

Usage:
    python tools/check_detector.py 10.0.0.5 --count 5
"""

import argparse
import os
import sys
import time

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from decoding import StripDecoder  # noqa: E402
from models.errors import MonitorError  # noqa: E402
from observation import MonitorClient  # noqa: E402


def main():
    """Main function for detector checking."""
    parser = argparse.ArgumentParser(description='Check detector monitor interface')
    parser.add_argument('host', help='Detector address')
    parser.add_argument('--port', type=int, default=80,
                        help='Detector HTTP port (default: 80)')
    parser.add_argument('--api-version', type=str, default='1.8.0',
                        help='Monitor API version (default: 1.8.0)')
    parser.add_argument('--count', type=int, default=3,
                        help='Number of images to fetch (default: 3)')
    parser.add_argument('--enable', action='store_true',
                        help='Enable the monitor interface first')
    args = parser.parse_args()

    print(f"Checking monitor interface on {args.host}:{args.port} (API {args.api_version})")

    decoder = StripDecoder(source=args.host)
    with MonitorClient(args.host, args.port, api_version=args.api_version) as client:
        try:
            if args.enable:
                client.enable_monitor()
                print("Monitor enabled")
            print(f"  Monitor mode: {client.get_config('mode')}")
            print(f"  Buffered images: {client.list_images()}")
        except MonitorError as e:
            print(f"ERROR: {e}")
            return 1

        for i in range(args.count):
            start = time.time()
            try:
                data = client.fetch_latest()
            except MonitorError as e:
                print(f"ERROR: fetch failed: {e}")
                return 1
            elapsed = time.time() - start

            if not data:
                print(f"[{i + 1}] no image available ({elapsed:.3f}s)")
                continue

            try:
                frame = decoder.decode(data)
            except MonitorError as e:
                print(f"[{i + 1}] {len(data)} bytes, decode failed: {e}")
                continue

            pixels = frame.pixels
            print(
                f"[{i + 1}] {frame.width}x{frame.height}, "
                f"pixel size {frame.pixel_resolution_x}x{frame.pixel_resolution_y}, "
                f"max {int(pixels.max()) if pixels.size else 0}, "
                f"{len(data)} bytes in {elapsed:.3f}s"
            )

    return 0


if __name__ == "__main__":
    sys.exit(main())

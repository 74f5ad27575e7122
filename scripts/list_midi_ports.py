from __future__ import annotations

import argparse
import os
import sys

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from musicmotion_keys.midi import MidiOutput, find_output, list_output_names  # noqa: E402


def main() -> int:
    ap = argparse.ArgumentParser(description="List MIDI output ports, optionally sending a test note.")
    ap.add_argument("--test", type=str, default=None, help="Send middle C to the port containing this name")
    args = ap.parse_args()

    names = list_output_names()
    if not names:
        print("No MIDI output ports found.")
        return 1
    for i, name in enumerate(names):
        print(f"[{i}] {name}")

    if args.test:
        port_name = find_output(args.test)
        if port_name is None:
            print(f"No port matching '{args.test}'")
            return 1
        with MidiOutput(port_name=port_name) as out:
            out.note_on(0, 60, 100)
            out.note_off(0, 60)
        print(f"Sent C4 to {port_name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Entry point for hotasbridge

Starts the joystick reader, mapping engine and vJoy outputs using a chosen
profile. Also lists devices and auto-maps a physical device into a profile.
"""
import argparse
import logging
import sys
import threading
from pathlib import Path

from core.automap import auto_map
from core.profiles import ProfileRepository
from core.resolver import required_vjoy_devices
from devices.joystick import JoystickReader
from mapper import Mapper
from vjoy.output import VJoyManager

LOG = logging.getLogger("hotasbridge")

DEBUG_MODULES = {
    "joystick": "hotasbridge.joystick",
    "vjoy": "hotasbridge.vjoy",
    "mapper": "hotasbridge.mapper",
    "resolver": "hotasbridge.resolver",
    "automap": "hotasbridge.automap",
    "capture": "hotasbridge.capture",
    "profiles": "hotasbridge.profiles",
    "sc": "hotasbridge.sc",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hotasbridge: HOTAS devices → vJoy")
    parser.add_argument("--profile", help="mapping profile name, or path to a profile YAML file")
    parser.add_argument("--profiles-dir", default="profiles", help="directory holding profiles (default: profiles)")
    parser.add_argument("--hz", type=int, default=60, help="vJoy update frequency")
    parser.add_argument("--list-devices", action="store_true", help="list joysticks and vJoy devices, then exit")
    parser.add_argument("--automap", type=int, metavar="DEVICE_INDEX",
                        help="map the joystick at DEVICE_INDEX (see --list-devices) one-to-one into --profile")
    parser.add_argument("--vjoy-id", type=int,
                        help="with --automap, use this vJoy device even when it is too small")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-format", default="%(levelname)s:%(name)s:%(message)s",
                        help="Logging format string (default: %(levelname)s:%(name)s:%(message)s)")
    parser.add_argument("--debug-modules", nargs="*", default=[],
                        help="Modules to set to DEBUG level (e.g., 'joystick', 'vjoy', 'mapper')")
    return parser


def configure_logging(args):
    logging.basicConfig(level=getattr(logging, args.log_level), format=args.log_format)
    for module in args.debug_modules:
        logger_name = DEBUG_MODULES.get(module, f"hotasbridge.{module}")
        logging.getLogger(logger_name).setLevel(logging.DEBUG)


def load_profile(repo: ProfileRepository, name: str):
    path = Path(name)
    if path.suffix in (".yaml", ".yml") and path.exists():
        return Mapper.load_profile(str(path)).profile
    return repo.load(name)


def list_devices(reader: JoystickReader, vjoy: VJoyManager):
    print("Joysticks:")
    for i, dev in enumerate(reader.devices()):
        print(f"  [{i}] {dev.name} ({dev.device_id}): {dev.axis_count} axes, "
              f"{dev.button_count} buttons, {dev.hat_count} hats")
    print("vJoy devices:")
    for dev in vjoy.enumerate_devices():
        if dev.exists:
            print(f"  [{dev.id}] {dev.axis_count} axes, {dev.button_count} buttons, "
                  f"{dev.disc_pov_count} discrete / {dev.cont_pov_count} continuous POVs")


def run_automap(args, repo, reader, vjoy) -> int:
    profile = load_profile(repo, args.profile)
    if profile is None:
        LOG.error("auto map needs an existing profile, %s not found", args.profile)
        return 1
    devices = reader.devices()
    if not 0 <= args.automap < len(devices):
        LOG.error("no joystick at index %d (%d connected)", args.automap, len(devices))
        return 1
    candidates = vjoy.enumerate_devices()
    target = None
    if args.vjoy_id is not None:
        target = next((d for d in candidates if d.id == args.vjoy_id and d.exists), None)
        if target is None:
            LOG.error("vJoy device %d is not configured", args.vjoy_id)
            return 1
    result = auto_map(profile, devices[args.automap], candidates, target)
    LOG.info("auto map %s: %s", devices[args.automap].name, result.summary)
    if not result.applied:
        return 1
    repo.save(profile)
    return 0


def run(args, repo, reader, vjoy) -> int:
    profile = load_profile(repo, args.profile)
    if profile is None:
        LOG.error("profile %s not found", args.profile)
        return 1
    mapper = Mapper(profile)
    for vjoy_id in sorted(required_vjoy_devices(profile)):
        vjoy.output(vjoy_id)

    stop_event = threading.Event()
    period = 1.0 / float(args.hz)

    def on_state(state):
        vjoy.apply(mapper.map_state_to_vjoy(state))

    reader.subscribe(on_state)

    try:
        vjoy.start()
        reader.start()
        LOG.info("hotasbridge running with profile %s, press Ctrl+C to stop", profile.name)
        while not stop_event.is_set():
            remaining = mapper.pending_pulses()
            if remaining is not None and remaining <= 0.0:
                vjoy.apply(mapper.refresh())
            stop_event.wait(period)
    except KeyboardInterrupt:
        LOG.info("shutdown requested")
    finally:
        reader.stop()
        vjoy.stop()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args)

    repo = ProfileRepository(args.profiles_dir)
    reader = JoystickReader()
    vjoy = VJoyManager(hz=args.hz)

    if args.list_devices:
        list_devices(reader, vjoy)
        return 0
    if not args.profile:
        LOG.error("--profile is required")
        return 2
    if args.automap is not None:
        return run_automap(args, repo, reader, vjoy)
    return run(args, repo, reader, vjoy)


if __name__ == "__main__":
    sys.exit(main())

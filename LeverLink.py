# LeverLink.py
import sys, argparse, importlib, signal, time

from PyQt5.QtCore import QCoreApplication

from app_config import load_app_config, save_app_config
from controls import JoystickManager, AxisBinding, DetentButtons, AXIS
from debug_log import log_message
from definitions import LEVER_DEFINITIONS, endpoint, resolve_control_path, INPUT_VALUE, MIN_INPUT, MAX_INPUT, NOTCH_COUNT, NOTCH_INDEX
from errors import LeverLinkError, CalibrationError, LeverNotFound
from input_calibration import AxisCalibration, calibrate_from_sweep
from lever_analyzer import analyze, quick_check
from lever_controller import LeverController
from lever_mapper import reversed_layout
from notch_mapping import NotchMappingSession, PREVIEW, SAVED
from notches import LeverConfig
from profile_store import LeverProfileStore
from simulator_client import SimulatorClient


def axis_key(joystick, axis): return f"{joystick}:{axis}"


def make_binding(config, joystick, axis):
    saved = config.get("axes", {}).get(axis_key(joystick, axis))
    return AxisBinding(joystick, axis, AxisCalibration.from_dict(saved) if saved else None)


def detent_pair(text):
    """'4=0' style BUTTON=DETENT binding from the command line."""
    button, _, detent = text.partition("=")
    try: return int(button), int(detent)
    except ValueError: raise argparse.ArgumentTypeError(f"invalid detent binding {text!r}, expected BUTTON=DETENT")


def sample_axis(joysticks, binding, seconds, interval_ms, raw=False):
    """Poll the joystick for a while and return the axis readings seen."""
    samples = []
    def on_event(joy_id, type, index, value):
        if binding.matches(joy_id, type, index): samples.append(value if raw else binding.normalize(value))
    joysticks.raw_joystick_event.connect(on_event)
    deadline = time.monotonic() + seconds
    try:
        while time.monotonic() < deadline:
            joysticks.poll(); time.sleep(interval_ms / 1000.0)
    finally:
        joysticks.raw_joystick_event.disconnect(on_event)
    return samples


def open_joystick(config, joystick_id, use_timer=False):
    joysticks = JoystickManager.from_config(config)
    if not joysticks.start_listening(joystick_id, use_timer):
        devices = ", ".join(f"{i}: {name}" for i, name in joysticks.get_devices().items()) or "none"
        joysticks.shutdown()
        raise LeverLinkError(f"Joystick {joystick_id} not found (connected: {devices})")
    return joysticks


# --- COMMANDS ---

def cmd_analyze(args, config, store):
    control_path = resolve_control_path(args.control_path)
    definition = LEVER_DEFINITIONS.get(args.control_path.upper(), {})
    client = SimulatorClient.from_config(config)
    client.info(); log_message(f"Connected to simulator at {client.base_url}", "SIM")
    if args.quick:
        print(f"{control_path}: probably {quick_check(client, control_path)}"); return 0
    try: restore = client.get_float(endpoint(control_path, INPUT_VALUE))
    except LeverLinkError: restore = None
    analyzer = config["analyzer"]
    result = analyze(client, control_path, analyzer["sweep_step"], analyzer["settling_time_ms"],
                     restore_position=restore, preset=args.preset or definition.get("preset"))
    try: lever = store.get(args.lever_id)
    except LeverNotFound: lever = LeverConfig(args.lever_id, description=definition.get("desc"))
    lever = lever.copy(value_endpoint=endpoint(control_path, INPUT_VALUE),
                       min_endpoint=endpoint(control_path, MIN_INPUT), max_endpoint=endpoint(control_path, MAX_INPUT),
                       notch_count_endpoint=endpoint(control_path, NOTCH_COUNT),
                       notch_index_endpoint=endpoint(control_path, NOTCH_INDEX))
    store.save_calibration(lever, result.notches)
    try: sim_count = client.get_int(lever.notch_count_endpoint)
    except LeverLinkError: sim_count = None
    if sim_count is not None and sim_count != len(result.notches):
        log_message(f"Simulator reports {sim_count} notch(es), analysis found {len(result.notches)}", "WARN")
    print(f"{args.lever_id}: {result.lever_type} lever, {len(result.notches)} notch(es) saved to {store.path}")
    for notch in result.notches: print(f"  {notch.index}: {notch.type:<6} sim {notch.sim_input_min:.2f}-{notch.sim_input_max:.2f}  {notch.label()}")
    return 0


def cmd_show(args, config, store):
    lever = store.get(args.lever_id)
    print(f"{lever.lever_id} ({lever.description or 'no description'}) inverted={lever.inverted} "
          f"calibrated_at={lever.calibrated_at.isoformat() if lever.calibrated_at else 'never'}")
    for notch in lever.notches:
        hw = f"{notch.input_min:.2f}-{notch.input_max:.2f}" if notch.has_input_range else "unmapped"
        sim = f"{notch.sim_input_min:.2f}-{notch.sim_input_max:.2f}" if notch.has_sim_input_range else "none"
        print(f"  {notch.index}: {notch.type:<6} hw {hw:<10} sim {sim:<10} {notch.label()}")
    print(f"Layout reversed: {'yes' if reversed_layout(lever.notches) else 'no'}")
    return 0


def cmd_delete(args, config, store):
    store.delete(args.lever_id)
    print(f"Removed {args.lever_id} from {store.path}")
    return 0


def cmd_devices(args, config, store):
    joysticks = JoystickManager.from_config(config)
    devices = joysticks.get_devices()
    for joy_id, name in devices.items():
        joy = joysticks.joysticks[joy_id]
        print(f"  {joy_id}: {name} ({joy.get_numaxes()} axes, {joy.get_numbuttons()} buttons)")
    if not devices: print("No joysticks connected.")
    joysticks.shutdown()
    return 0


def cmd_calibrate(args, config, store):
    joysticks = open_joystick(config, args.joystick)
    binding = AxisBinding(args.joystick, args.axis)
    try:
        input(f"Move axis {args.axis} to its physical minimum, then press Enter and sweep slowly to the maximum...")
        samples = sample_axis(joysticks, binding, args.seconds, config["joystick"]["poll_interval_ms"], raw=True)
    finally:
        joysticks.shutdown()
    calibration = calibrate_from_sweep(samples, args.deadzone)
    config.setdefault("axes", {})[axis_key(args.joystick, args.axis)] = calibration.to_dict()
    if not save_app_config(config, args.config): return 1
    print(f"Saved {calibration!r}")
    return 0


def cmd_map(args, config, store):
    lever = store.get(args.lever_id)
    joysticks = open_joystick(config, args.joystick)
    session = NotchMappingSession.from_config(lever, store, make_binding(config, args.joystick, args.axis), config)
    joysticks.raw_joystick_event.connect(session.on_raw_joystick_event)
    try:
        return run_mapping(session, joysticks, lever, config)
    finally:
        joysticks.shutdown()


def run_mapping(session, joysticks, lever, config):
    interval = config["joystick"]["poll_interval_ms"]
    seconds = config["mapping"].get("capture_seconds", 3.0)

    session.start_mapping()
    while session.step != PREVIEW:
        notch = session.get_public_state()["current_notch"]
        answer = input(f"[{notch['index']}] {notch['description']} ({notch['type']}): put the lever there and press Enter "
                       f"({'wiggle inside the detent' if notch['type'] == 'gate' else 'sweep the whole zone'}), q to quit: ")
        if answer.strip().lower() == "q":
            session.cancel(); return 1
        session.reset_samples(); session.start_capturing()
        deadline = time.monotonic() + seconds
        while time.monotonic() < deadline:
            joysticks.poll(); time.sleep(interval / 1000.0)
        session.stop_capturing()
        try:
            session.capture_range(); session.next_notch()
        except CalibrationError as e:
            print(f"  {e}, try again")

    for entry, notch in zip(session.get_public_state()["captured_ranges"], lever.notches):
        print(f"  {notch.index}: {entry['min']:.4f}-{entry['max']:.4f}  {notch.label()}")
    if input("Save these ranges? [y/N] ").strip().lower() != "y":
        session.cancel(); return 1
    session.save_mapping()
    return 0 if session.step == SAVED else 1


def cmd_run(args, config, store):
    lever = store.get(args.lever_id)
    client = SimulatorClient.from_config(config).with_fast_timeouts()
    detents = DetentButtons(args.joystick, dict(args.detent)) if args.detent else None
    controller = LeverController(lever, make_binding(config, args.joystick, args.axis), client, detents)
    if args.verbose:
        controller.command_sent.connect(lambda path, value: log_message(f"{path} = {value}", "SIM"))
    joysticks = open_joystick(config, args.joystick, use_timer=True)
    joysticks.raw_joystick_event.connect(controller.on_raw_joystick_event)
    log_message(f"Driving {lever.value_endpoint} from joystick {args.joystick} {AXIS} {args.axis}. Ctrl+C to stop.", "APP")
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    try:
        return QCoreApplication.instance().exec_()
    finally:
        joysticks.shutdown()


def build_parser():
    parser = argparse.ArgumentParser(description="Map physical train-sim levers onto simulator notches.")
    parser.add_argument("--config", help="Path to config.json (default: next to the program).")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("analyze", help="Sweep a lever on the simulator and save its notches.")
    p.add_argument("lever_id"); p.add_argument("control_path", help="Simulator path or a known lever name, e.g. THROTTLE")
    p.add_argument("--preset", choices=["throttle", "brake", "reverser"], help="Notch label preset.")
    p.add_argument("--quick", action="store_true", help="Only guess the lever type, save nothing.")
    p.set_defaults(func=cmd_analyze)

    p = sub.add_parser("show", help="Print a lever's notches.")
    p.add_argument("lever_id"); p.set_defaults(func=cmd_show)

    p = sub.add_parser("delete", help="Remove a lever from the profile.")
    p.add_argument("lever_id"); p.set_defaults(func=cmd_delete)

    sub.add_parser("devices", help="List connected joysticks.").set_defaults(func=cmd_devices)

    for name, func, text in (("map", cmd_map, "Capture hardware ranges for every notch."),
                             ("run", cmd_run, "Feed the simulator from the joystick.")):
        p = sub.add_parser(name, help=text)
        p.add_argument("lever_id")
        p.add_argument("--joystick", type=int, default=0); p.add_argument("--axis", type=int, default=0)
        p.set_defaults(func=func)
        if name == "run":
            p.add_argument("--detent", action="append", type=detent_pair, metavar="BUTTON=DETENT",
                           help="Button that jumps to the Nth gate, may be repeated.")
            p.add_argument("--verbose", action="store_true")

    p = sub.add_parser("calibrate", help="Record an axis' raw travel and store it in the config.")
    p.add_argument("--joystick", type=int, default=0); p.add_argument("--axis", type=int, default=0)
    p.add_argument("--seconds", type=float, default=5.0); p.add_argument("--deadzone", type=float, default=0.0)
    p.set_defaults(func=cmd_calibrate)
    return parser


def check_dependencies():
    print("--- Checking Dependencies ---")
    dependencies = [('PyQt5', 'pyqt5'), ('pygame', 'pygame'), ('requests', 'requests'), ('lxml', 'lxml')]
    all_ok = True
    for mod_name, pkg_name in dependencies:
        try: importlib.import_module(mod_name); print(f"[ OK ] {mod_name} is installed.")
        except ImportError: print(f"[ MISSING ] {mod_name} is not installed. Please run: pip install {pkg_name}"); all_ok = False
    if all_ok: print("All dependencies are satisfied.")
    print("-----------------------------\n")


def main(argv=None):
    check_dependencies()
    args = build_parser().parse_args(argv)
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)  # must outlive the command
    config = load_app_config(args.config)
    store = LeverProfileStore(config["profile_path"])
    try:
        return args.func(args, config, store)
    except LeverLinkError as e:
        log_message(str(e), "ERROR")
        return 1
    except OSError as e:
        log_message(f"Profile or config file error: {e}", "ERROR")
        return 1


if __name__ == "__main__":
    sys.exit(main())

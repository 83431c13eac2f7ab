import argparse
import logging
import os

from SimOptions import PRESET_SETTINGS, SimOptions, SimOptionsEnum, from_preset
from Simulation import RunOptionsEnum, Simulation, default_run_options

# command line flag -> option it sets
OPTION_FLAGS = {
    "node_count": SimOptionsEnum.NODE_COUNT,
    "average_degree": SimOptionsEnum.AVERAGE_DEGREE,
    "relay_percentage": SimOptionsEnum.RELAY_PERCENTAGE,
    "push_budget": SimOptionsEnum.PUSH_BUDGET,
    "gossip_budget": SimOptionsEnum.GOSSIP_BUDGET,
    "pull_budget": SimOptionsEnum.PULL_BUDGET,
    "round_delay": SimOptionsEnum.ROUND_DELAY,
    "max_rounds": SimOptionsEnum.MAX_ROUNDS,
    "transfer_duration": SimOptionsEnum.TRANSFER_DURATION,
    "animation_speed": SimOptionsEnum.ANIMATION_SPEED,
    "malicious_percentage": SimOptionsEnum.MALICIOUS_PERCENTAGE,
    "useful_contact_ratio": SimOptionsEnum.USEFUL_CONTACT_RATIO,
}


def build_parser():
    parser = argparse.ArgumentParser(prog="tgl-compare",
                                     description="Compare flooding with the three-stage Push/Gossip/Pull protocol.")
    parser.add_argument("--preset", choices=sorted(PRESET_SETTINGS), default=None)
    parser.add_argument("--load-options", metavar="CSV", default=None, help="settings file written by --save-options")
    parser.add_argument("--save-options", metavar="CSV", default=None)

    parser.add_argument("--node-count", type=int)
    parser.add_argument("--average-degree", type=int)
    parser.add_argument("--relay-percentage", type=float)
    parser.add_argument("--push-budget", type=int)
    parser.add_argument("--gossip-budget", type=int)
    parser.add_argument("--pull-budget", type=int)
    parser.add_argument("--round-delay", type=float, help="ms between two advances")
    parser.add_argument("--max-rounds", type=int)
    parser.add_argument("--transfer-duration", type=float, help="ms a message is in flight")
    parser.add_argument("--animation-speed", type=float)
    parser.add_argument("--malicious-percentage", type=float)
    parser.add_argument("--useful-contact-ratio", type=float)
    parser.add_argument("--hide-transfers", action="store_true", help="advance without waiting for transfers")

    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--plot", action="store_true", help="save a snapshot and the run histories")
    parser.add_argument("--save-folder", default="outputs")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--frame-ms", type=float, default=16)
    parser.add_argument("--max-frames", type=int, default=100000)
    parser.add_argument("--verbose", action="store_true")
    return parser


def options_from_args(args) -> SimOptions:
    if args.preset is not None:
        sim_options = from_preset(args.preset)
    else:
        sim_options = SimOptions()

    if args.load_options is not None:
        folder, filename = split_path(args.load_options)
        sim_options.load(filename, folder)

    values = {}
    for flag, enum_key in OPTION_FLAGS.items():
        value = getattr(args, flag)
        if value is not None:
            values[enum_key] = value
    if args.hide_transfers:
        values[SimOptionsEnum.SHOW_TRANSFERS] = False
    sim_options.apply(values)

    if args.save_options is not None:
        folder, filename = split_path(args.save_options)
        print("Saved options to", sim_options.save(filename, folder))
    return sim_options


def split_path(path):
    folder, filename = os.path.split(path)
    return folder or ".", filename


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(asctime)s,%(msecs)d %(name)s %(levelname)s %(message)s', datefmt='%H:%M:%S')

    sim_options = options_from_args(args)

    run_options_dict = default_run_options()

    # The path to the output folder, where the images and histories get saved
    run_options_dict[RunOptionsEnum.SAVE_FOLDER] = args.save_folder

    # Should save an image and the histories at the end
    run_options_dict[RunOptionsEnum.PLOTTING] = args.plot

    # Extra log file, the run folder gets one anyway when plotting
    run_options_dict[RunOptionsEnum.LOG_FILE] = args.log_file

    # Same seed, same runs
    run_options_dict[RunOptionsEnum.SEED] = args.seed

    # Simulated ms per frame and the frame cap of the headless loop
    run_options_dict[RunOptionsEnum.FRAME_MS] = args.frame_ms
    run_options_dict[RunOptionsEnum.MAX_FRAMES] = args.max_frames

    simulation = Simulation(sim_options=sim_options, run_options_dict=run_options_dict)
    comparison = simulation.run_main_loop()
    if comparison is None:
        print("No comparison, at least one run sent no message")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

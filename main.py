import argparse
from typing import List, Optional

from config.config import Config
from utils.logger_config import LoggerConfig
from src_stereo_proc.stereo_proc import StereoProc


def load_config(config_path: str, overrides: Optional[dict] = None) -> Config:
    """
    Load configuration from a JSON file.

    Args:
        config_path (str): Path to the configuration JSON file.
        overrides (dict): Values taking precedence over the file.

    Returns:
        Config: Loaded configuration object.
    """
    return Config(config_path, overrides)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Offline stereo processing of recorded stereo pairs")
    parser.add_argument("--config", default="config/config_stereo_proc.json",
                        help="Configuration JSON file")
    parser.add_argument("--input", help="Dataset root holding set_*/pair_* folders")
    parser.add_argument("--output", help="Result directory")
    parser.add_argument("--outputs", nargs="+", metavar="TOPIC",
                        help="Output topics to record, e.g. points2 disparity left/image_rect_color")
    return parser.parse_args(argv)


def process_stereo_pairs(config: Config) -> None:
    """
    Replay the configured dataset through the stereo pipeline.

    Args:
        config (Config): Configuration object containing processing parameters.
    """
    stereo_proc = StereoProc(config)
    try:
        stereo_proc.run()
    finally:
        stereo_proc.shutdown()


def main(argv: Optional[List[str]] = None) -> None:
    """
    Main function to execute the offline stereo processing pipeline.
    """
    args = parse_args(argv)

    overrides = {}
    if args.input:
        overrides["input_path"] = args.input
    if args.output:
        overrides["output_path"] = args.output
    if args.outputs:
        overrides["requested_outputs"] = args.outputs

    config = load_config(args.config, overrides)
    LoggerConfig.reconfigure(level=config.get_log_level(), log_file=config.log_file)

    process_stereo_pairs(config)
    print("Processing completed successfully")


if __name__ == "__main__":
    main()

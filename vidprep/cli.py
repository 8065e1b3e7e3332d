"""
Command Line Interface for the Video Pipeline
Main entry point with argument parsing and command execution
"""

import argparse
import json
import os
import sys
import signal
import threading
import traceback
from typing import Any, Dict, List, Optional

import yaml
from tqdm import tqdm

from .config_manager import ConfigManager
from .exceptions import PipelineError
from .ffmpeg_utils import FFmpegRunner
from .logger_setup import setup_logging
from .pipeline import VideoPipeline
from .preset_resolver import PresetResolver
from .video_analyzer import VideoAnalyzer

logger = None  # Will be initialized after logging setup


class VideoPipelineCLI:
    def __init__(self):
        self.config: Optional[ConfigManager] = None
        self.runner: Optional[FFmpegRunner] = None
        self.settings = None
        self.pipeline: Optional[VideoPipeline] = None
        self.shutdown_requested = False
        self.shutdown_lock = threading.Lock()

    def main(self, argv: Optional[List[str]] = None) -> int:
        """Main entry point; returns the process exit status"""
        args = self._parse_arguments(argv)

        global logger
        effective_level = 'DEBUG' if args.debug else args.log_level
        logger = setup_logging(
            config_path=os.path.join(args.config_dir, 'logging.yaml'),
            log_level=effective_level,
            logs_dir=args.logs_dir
        )

        previous_handlers = {}
        try:
            self._initialize_components(args)
            previous_handlers = self._setup_signal_handlers()
            return self._execute_command(args)
        except PipelineError as e:
            logger.error(e.get_detailed_message())
            return 1
        except (ValueError, yaml.YAMLError) as e:
            logger.error(f"Configuration error: {e}")
            return 1
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 1
        except Exception as e:
            logger.error(f"Unexpected error: {e}")
            logger.debug(traceback.format_exc())
            return 1
        finally:
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

    def _parse_arguments(self, argv: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse command line arguments"""
        parser = argparse.ArgumentParser(
            description="vidprep - Transcode videos for web delivery, capture a thumbnail "
                        "and split oversized output into parts",
            epilog="Examples:\n"
                   "  %(prog)s process upload.mov --name 'Holiday clip.mov'\n"
                   "  %(prog)s process big.mp4 --max-size-mb 50 --capture-time 5\n"
                   "  %(prog)s probe input.mp4\n"
                   "  %(prog)s preset config/video_preset.yaml\n",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )

        # Options shared by every command
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument('--config-dir', default='config',
                            help='Configuration directory (default: config)')
        common.add_argument('--log-level', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                            help='Console log level')
        common.add_argument('-v', '--debug', action='store_true',
                            help='Enable verbose console output')
        common.add_argument('--logs-dir', default='logs', help='Directory for log files (default: logs)')

        subparsers = parser.add_subparsers(dest='command', required=True)

        process_parser = subparsers.add_parser('process', aliases=['p'], parents=[common],
                                               help='Transcode, capture a thumbnail and split if needed')
        process_parser.add_argument('input', help='Input video file')
        process_parser.add_argument('-n', '--name', help='Original file name used to name outputs')
        process_parser.add_argument('--preset', help='Preset file (YAML or JSON)')
        process_parser.add_argument('-s', '--max-size-mb', type=float, metavar='MB',
                                    help='Maximum size per output part in MB')
        process_parser.add_argument('-t', '--capture-time', type=float, metavar='SECONDS',
                                    help='Thumbnail capture time in seconds')
        process_parser.add_argument('--temp-dir', help='Working directory for job output')
        process_parser.add_argument('--no-progress', action='store_true', help='Hide the progress bar')

        probe_parser = subparsers.add_parser('probe', aliases=['i', 'info'], parents=[common],
                                             help='Print the metadata of a video file')
        probe_parser.add_argument('input', help='Input video file')

        preset_parser = subparsers.add_parser('preset', parents=[common], help='Print the resolved encoding preset')
        preset_parser.add_argument('path', nargs='?', help='Preset file (default: configured preset_path)')

        return parser.parse_args(argv)

    def _initialize_components(self, args: argparse.Namespace):
        """Build settings from config file, environment and arguments"""
        self.config = ConfigManager(args.config_dir)
        self.config.apply_env_overrides()
        self.config.update_from_args({
            'pipeline.preset_path': getattr(args, 'preset', None),
            'pipeline.max_part_size_mb': getattr(args, 'max_size_mb', None),
            'pipeline.capture_time_seconds': getattr(args, 'capture_time', None),
            'pipeline.temp_dir': getattr(args, 'temp_dir', None),
        })
        self.settings = self.config.build_settings()
        self.runner = FFmpegRunner()

    def _setup_signal_handlers(self) -> Dict[int, Any]:
        """Cancel the running tool on the first signal, exit on the second"""

        def signal_handler(signum, frame):
            try:
                signal_name = signal.Signals(signum).name
            except ValueError:
                signal_name = str(signum)

            with self.shutdown_lock:
                already_requested = self.shutdown_requested
                self.shutdown_requested = True

            if already_requested:
                logger.warning(f"{signal_name} received again, exiting")
                sys.exit(1)

            logger.info(f"Received {signal_name} signal, cancelling running tasks...")
            # Termination waits on the child, so keep it off the interrupted frame
            threading.Thread(target=self.runner.request_shutdown, daemon=True).start()

        previous = {signal.SIGINT: signal.signal(signal.SIGINT, signal_handler)}
        if hasattr(signal, 'SIGTERM'):
            previous[signal.SIGTERM] = signal.signal(signal.SIGTERM, signal_handler)
        return previous

    def _execute_command(self, args: argparse.Namespace) -> int:
        if args.command in ('process', 'p'):
            return self._process(args)
        if args.command in ('probe', 'i', 'info'):
            metadata = VideoAnalyzer(self.settings, self.runner).analyze(args.input)
            self._print_json(metadata.to_dict())
            return 0
        if args.command == 'preset':
            preset = PresetResolver().resolve(args.path or self.settings.preset_path)
            self._print_json(preset.to_dict())
            return 0
        logger.error(f"Unknown command: {args.command}")
        return 1

    def _process(self, args: argparse.Namespace) -> int:
        show_progress = not args.no_progress and sys.stderr.isatty()
        with tqdm(total=100, desc="Transcoding", unit="%", bar_format="{l_bar}{bar}| {n:.1f}%",
                  disable=not show_progress) as pbar:

            def on_progress(percent: float):
                if percent > pbar.n:
                    pbar.update(percent - pbar.n)

            self.pipeline = VideoPipeline(self.settings, runner=self.runner, on_progress=on_progress)
            artifacts = self.pipeline.process(args.input, original_name=args.name)

        self._print_json([artifact.to_dict() for artifact in artifacts])
        return 0

    @staticmethod
    def _print_json(data: Any):
        print(json.dumps(data, indent=2, ensure_ascii=False))


def main(argv: Optional[List[str]] = None) -> int:
    """Console script entry point"""
    return VideoPipelineCLI().main(argv)


if __name__ == '__main__':
    sys.exit(main())

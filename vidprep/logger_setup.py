"""
Logging Setup for the Video Pipeline
Initializes logging configuration from YAML file
"""

import os
import copy
import logging
import logging.config
from typing import Optional, Dict, Any

import yaml
from colorama import init, Fore, Style

# Initialize colorama for Windows compatibility
init(autoreset=True)

PACKAGED_LOGGING_CONFIG = os.path.join(os.path.abspath(os.path.dirname(__file__)), 'config', 'logging.yaml')

DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'detailed': {
            'format': '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'console': {
            'format': '%(asctime)s | %(levelname)-8s | %(message)s',
            'datefmt': '%H:%M:%S'
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'console',
            'stream': 'ext://sys.stderr'
        },
        'file': {
            'class': 'logging.FileHandler',
            'level': 'DEBUG',
            'formatter': 'detailed',
            'filename': 'vidprep.log',
            'mode': 'a',
            'encoding': 'utf-8'
        },
        'error_file': {
            'class': 'logging.FileHandler',
            'level': 'ERROR',
            'formatter': 'detailed',
            'filename': 'errors.log',
            'mode': 'a',
            'encoding': 'utf-8'
        }
    },
    'root': {
        'level': 'DEBUG',
        'handlers': ['console', 'file', 'error_file']
    }
}


class ColoredFormatter(logging.Formatter):
    """Custom formatter to add colors to console output"""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.MAGENTA + Style.BRIGHT,
    }

    def format(self, record):
        # Color a copy so file handlers sharing the record keep plain level names
        record = copy.copy(record)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{Style.RESET_ALL}"
        return super().format(record)


def load_logging_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the 'logging' section of a YAML file, else the built-in default"""
    for path in (config_path, PACKAGED_LOGGING_CONFIG):
        if not path or not os.path.exists(path):
            continue
        with open(path, 'r', encoding='utf-8') as file:
            config_data = yaml.safe_load(file) or {}
        logging_config = config_data.get('logging')
        if isinstance(logging_config, dict):
            return logging_config
    return copy.deepcopy(DEFAULT_LOGGING_CONFIG)


def setup_logging(config_path: Optional[str] = None, log_level: Optional[str] = None,
                  logs_dir: str = "logs") -> logging.Logger:
    """
    Setup logging configuration from YAML file

    Args:
        config_path: Path to logging configuration file
        log_level: Override console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logs_dir: Directory that relative log file names are placed in
    """
    os.makedirs(logs_dir, exist_ok=True)

    try:
        logging_config = load_logging_config(config_path)
    except (OSError, yaml.YAMLError) as e:
        print(f"Warning: Could not read logging config {config_path}: {e}, using default configuration")
        logging_config = copy.deepcopy(DEFAULT_LOGGING_CONFIG)

    # Relative log files live under logs_dir
    for handler in logging_config.get('handlers', {}).values():
        filename = handler.get('filename')
        if filename and not os.path.isabs(filename):
            handler['filename'] = os.path.join(logs_dir, os.path.basename(filename))

    if log_level:
        log_level = log_level.upper()
        console = logging_config.get('handlers', {}).get('console')
        if console:
            console['level'] = log_level

    try:
        logging.config.dictConfig(logging_config)
    except (ValueError, TypeError, AttributeError, ImportError) as config_error:
        # If dictConfig fails, fall back to basic configuration
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s | %(levelname)-8s | %(message)s',
            datefmt='%H:%M:%S'
        )
        logger = get_logger()
        logger.error(f"Failed to apply logging configuration: {config_error}")
        logger.info("Using basic logging configuration as fallback")
        return logger

    # Apply colored formatter to the console handler
    for handler in logging.getLogger().handlers:
        if type(handler) is logging.StreamHandler:
            handler.setFormatter(ColoredFormatter(
                fmt='%(asctime)s | %(levelname)-8s | %(message)s',
                datefmt='%H:%M:%S'
            ))

    logger = get_logger()
    logger.debug("Logging initialized")
    return logger


def get_logger(name: str = None) -> logging.Logger:
    """Get a logger instance"""
    if name:
        return logging.getLogger(f'vidprep.{name}')
    return logging.getLogger('vidprep')

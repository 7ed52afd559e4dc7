# Runtime configuration. Every field can be overridden with an environment
# variable named SNAPCLASS_<FIELD_NAME_UPPERCASE>, e.g. SNAPCLASS_EPOCHS=40.
import argparse
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

import torch

ENV_PREFIX = 'SNAPCLASS_'


def _detect_device() -> str:
    if torch.cuda.is_available():
        return 'cuda'
    if torch.backends.mps.is_available():
        return 'mps'
    return 'cpu'


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _parse_optional_int(value: str) -> Optional[int]:
    value = value.strip()
    if value == '' or value.lower() == 'none':
        return None
    return int(value)


@dataclass
class Config:
    # capture
    camera_index: int = 0
    frame_size: int = 224

    # embedding extractor
    extractor_version: str = 'v2'
    extractor_alpha: float = 1.0
    pretrained: bool = True

    # classifier head + training
    hidden_units: int = 128
    dropout: float = 0.25
    learning_rate: float = 5e-4
    epochs: int = 25
    batch_size: int = 32
    min_total_samples: int = 10
    seed: Optional[int] = None

    # live prediction
    predict_period_seconds: float = 0.3

    device: str = field(default_factory=_detect_device)

    class_a_name: str = 'Class A'
    class_b_name: str = 'Class B'

    def __post_init__(self):
        self._apply_env_overrides()

    def _apply_env_overrides(self):
        field_types = {
            'camera_index': int,
            'frame_size': int,
            'extractor_version': str,
            'extractor_alpha': float,
            'pretrained': _parse_bool,
            'hidden_units': int,
            'dropout': float,
            'learning_rate': float,
            'epochs': int,
            'batch_size': int,
            'min_total_samples': int,
            'seed': _parse_optional_int,
            'predict_period_seconds': float,
            'device': str,
            'class_a_name': str,
            'class_b_name': str,
        }
        for field_name, field_type in field_types.items():
            env_value = os.environ.get(ENV_PREFIX + field_name.upper())
            if env_value is not None:
                setattr(self, field_name, field_type(env_value))

    def class_names(self):
        return (self.class_a_name, self.class_b_name)


_config_instance: Optional[Config] = None


def get_config() -> Config:
    """Return the process-wide Config, creating it on first call."""
    global _config_instance
    if _config_instance is None:
        _config_instance = Config()
    return _config_instance


# ---------------------------------------------------------------------------
# Command line helpers shared by the window and the headless runner
# ---------------------------------------------------------------------------

def positive_float(value):
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f'must be a positive number, got {value}')
    return number


def add_arguments(parser):
    parser.add_argument('--camera', type=int, default=None, help='Camera device index')
    parser.add_argument('--period', type=positive_float, default=None,
                        help='Seconds between live predictions')
    parser.add_argument('--device', type=str, default=None, help='Torch device (cpu, cuda, mps)')
    parser.add_argument('--version', type=str, default=None, choices=['v2', 'v3_large', 'v3_small'],
                        help='MobileNet version used for embeddings')
    parser.add_argument('--alpha', type=float, default=None, help='MobileNet width multiplier')
    parser.add_argument('--log-level', type=str, default='INFO', help='Logging level')
    return parser


def apply_args(config: Config, args) -> Config:
    if args.camera is not None:
        config.camera_index = args.camera
    if args.period is not None:
        config.predict_period_seconds = args.period
    if args.device is not None:
        config.device = args.device
    if args.version is not None:
        config.extractor_version = args.version
    if args.alpha is not None:
        config.extractor_alpha = args.alpha
    return config


def configure_logging(level='INFO'):
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s [%(name)s] %(levelname)s: %(message)s',
        datefmt='%H:%M:%S',
    )

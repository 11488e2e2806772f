from dataclasses import dataclass
from pathlib import Path
import os


@dataclass
class AppConfig:
    config_file: Path
    ha_options_file: Path


@dataclass
class AppContainer:
    config: AppConfig


def build_container() -> AppContainer:
    config_file = Path(os.getenv("PML_CONFIG_FILE", "config.yaml"))
    ha_options_file = Path(os.getenv("PML_OPTIONS_FILE", "/data/options.json"))

    return AppContainer(
        config=AppConfig(
            config_file=config_file,
            ha_options_file=ha_options_file,
        )
    )

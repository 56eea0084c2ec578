"""Configuration objects and helpers for incuview.

YAML files (``incuview.yaml``) describe where the daily CSV logs and backend
event logs live, how to reach the REST service, and the pipeline knobs
(point cap, session gap, refresh period). The typed dataclass in
:mod:`runtime` is what the rest of the package consumes.
"""

from .app_config import AppPaths
from .runtime import IncuviewConfig, config_from_mapping, load_config

__all__ = ["AppPaths", "IncuviewConfig", "config_from_mapping", "load_config"]

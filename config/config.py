import copy
import json
import logging
from typing import Dict, Any, Optional

# Names accepted by the external correlation stage. Values are forwarded to it
# unchanged; range checks live with the matcher.
MATCHER_PARAMETER_NAMES = (
    "prefilter_size",
    "prefilter_cap",
    "correlation_window_size",
    "min_disparity",
    "disparity_range",
    "uniqueness_ratio",
    "texture_threshold",
    "speckle_size",
    "speckle_range",
)

DEFAULT_CONFIG: Dict[str, Any] = {
    "left_namespace": "left",
    "right_namespace": "right",
    "point_cloud_sync_queue_size": 5,
    "stereo_sync_queue_size": 3,
    "color_warning_period": 30.0,
    "advertisement_warning_period": 60.0,
    "missing_disparity": -1.0,
    "stereo_matcher": {
        "prefilter_size": 9,
        "prefilter_cap": 31,
        "correlation_window_size": 15,
        "min_disparity": 0,
        "disparity_range": 64,
        "uniqueness_ratio": 15,
        "texture_threshold": 10,
        "speckle_size": 100,
        "speckle_range": 4
    },
    "log_level": "INFO",
    "log_file": None,
    "input_path": None,
    "output_path": "result",
    "requested_outputs": ["points2", "disparity"],
    "pipeline_mode": "combined"
}

PIPELINE_MODES = ("combined", "split")


class Config:
    def __init__(self, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None):
        self.config_data = copy.deepcopy(DEFAULT_CONFIG)
        if config_path is not None:
            self._merge(self._load_config(config_path))
        if overrides:
            self._merge(overrides)
        self._validate_queue_sizes()
        self._validate_periods()
        self._validate_matcher_config()
        self._validate_log_level()
        self._validate_pipeline()

    def _load_config(self, config_path: str) -> Dict[str, Any]:
        with open(config_path, 'r', encoding='utf-8') as config_file:
            return json.load(config_file)

    def _merge(self, values: Dict[str, Any]) -> None:
        """Merge values onto the current data; the matcher section merges key by key."""
        for key, value in values.items():
            if key == "stereo_matcher" and isinstance(value, dict):
                self.config_data["stereo_matcher"].update(value)
            else:
                self.config_data[key] = value

    def _validate_queue_sizes(self) -> None:
        for key in ("point_cloud_sync_queue_size", "stereo_sync_queue_size"):
            value = self.config_data[key]
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError(f"{key} must be a positive integer, got {value!r}")

    def _validate_periods(self) -> None:
        for key in ("color_warning_period", "advertisement_warning_period"):
            value = self.config_data[key]
            if not isinstance(value, (int, float)) or value < 0:
                raise ValueError(f"{key} must be a non-negative number, got {value!r}")

        missing = self.config_data["missing_disparity"]
        if not isinstance(missing, (int, float)):
            raise ValueError(f"missing_disparity must be a number, got {missing!r}")

    def _validate_matcher_config(self) -> None:
        """Validate matcher parameter names; values are checked by the matcher itself."""
        matcher = self.config_data["stereo_matcher"]
        unknown = sorted(set(matcher) - set(MATCHER_PARAMETER_NAMES))
        if unknown:
            raise ValueError(f"Unknown stereo_matcher parameters: {unknown}")

        for name, value in matcher.items():
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValueError(f"stereo_matcher.{name} must be numeric, got {value!r}")

    def _validate_log_level(self) -> None:
        level = self.config_data["log_level"]
        if not isinstance(logging.getLevelName(str(level).upper()), int):
            raise ValueError(f"Unknown log_level: {level!r}")

    def _validate_pipeline(self) -> None:
        mode = self.config_data["pipeline_mode"]
        if mode not in PIPELINE_MODES:
            raise ValueError(f"pipeline_mode must be one of {PIPELINE_MODES}, got {mode!r}")

        outputs = self.config_data["requested_outputs"]
        if not isinstance(outputs, list) or not all(isinstance(topic, str) for topic in outputs):
            raise ValueError(f"requested_outputs must be a list of topic names, got {outputs!r}")

    def get_matcher_parameters(self) -> Dict[str, Any]:
        """Return a copy of the matcher parameters."""
        return dict(self.config_data["stereo_matcher"])

    def get_log_level(self) -> int:
        return logging.getLevelName(str(self.config_data["log_level"]).upper())

    def get_summary(self) -> str:
        """Get a one-line summary of the processing configuration."""
        return (f"namespaces=({self.left_namespace}, {self.right_namespace}), "
                f"sync queues=(points2: {self.point_cloud_sync_queue_size}, "
                f"stereo: {self.stereo_sync_queue_size}), "
                f"missing disparity={self.missing_disparity}")

    def __getattr__(self, name: str) -> Any:
        if name == "config_data":
            raise AttributeError(name)
        if name in self.config_data:
            return self.config_data[name]
        raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

# ╔══════════════════════════════════════════════════════════════════════╗
# ║  Latentkit — On-device Latent Diffusion                              ║
# ║  Copyright © 2026 Pictofeed, LLC. All rights reserved.               ║
# ╚══════════════════════════════════════════════════════════════════════╝
#
# Portions adapted from optimum-rbln's utils/logging.py, itself modified
# from transformers.utils.logging:
#
# Copyright 2020 Optuna, Hugging Face
# Copyright 2025 Rebellions Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Library logging.

Modified from `transformers.utils.logging.py` by way of optimum-rbln.

All loggers live under the ``latentkit`` root logger, which is configured
once with a stderr handler.  The default level comes from the
``LATENTKIT_VERBOSE`` environment variable (``debug``, ``info``,
``warning``, ``error``, ``critical``) and falls back to ``warning``.
"""
from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Optional


_lock = threading.Lock()
_default_handler: Optional[logging.Handler] = None


log_levels = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_default_log_level = logging.WARNING


def _get_default_logging_level():
    env_level_str = os.getenv("LATENTKIT_VERBOSE", None)
    if env_level_str:
        if env_level_str.lower() in log_levels:
            return log_levels[env_level_str.lower()]
        else:
            logging.getLogger().warning(
                f"Unknown option LATENTKIT_VERBOSE={env_level_str}, "
                f"has to be one of: {', '.join(log_levels.keys())}"
            )
    return _default_log_level


def _get_library_name() -> str:
    return __name__.split(".")[0]


def _get_library_root_logger() -> logging.Logger:
    return logging.getLogger(_get_library_name())


def _configure_library_root_logger() -> None:
    global _default_handler

    with _lock:
        if _default_handler:
            return
        _default_handler = logging.StreamHandler()
        if sys.stderr is None:
            sys.stderr = open(os.devnull, "w")

        _default_handler.flush = sys.stderr.flush

        library_root_logger = _get_library_root_logger()
        library_root_logger.addHandler(_default_handler)
        library_root_logger.setLevel(_get_default_logging_level())
        formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        _default_handler.setFormatter(formatter)

        library_root_logger.propagate = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger under the library root."""
    if name is None:
        name = _get_library_name()

    _configure_library_root_logger()
    return logging.getLogger(name)


def get_verbosity() -> int:
    _configure_library_root_logger()
    return _get_library_root_logger().getEffectiveLevel()


def set_verbosity(verbosity: int | str) -> None:
    """Set the level of the library root logger (int or level name)."""
    if isinstance(verbosity, str):
        if verbosity.lower() not in log_levels:
            raise ValueError(
                f"Unknown verbosity {verbosity!r}, has to be one of: "
                f"{', '.join(log_levels.keys())}")
        verbosity = log_levels[verbosity.lower()]
    _configure_library_root_logger()
    _get_library_root_logger().setLevel(verbosity)


def set_verbosity_debug():
    return set_verbosity(logging.DEBUG)


def set_verbosity_info():
    return set_verbosity(logging.INFO)


def set_verbosity_warning():
    return set_verbosity(logging.WARNING)


def set_verbosity_error():
    return set_verbosity(logging.ERROR)


def disable_default_handler() -> None:
    _configure_library_root_logger()
    assert _default_handler is not None
    _get_library_root_logger().removeHandler(_default_handler)


def enable_default_handler() -> None:
    _configure_library_root_logger()
    assert _default_handler is not None
    _get_library_root_logger().addHandler(_default_handler)


def enable_propagation() -> None:
    """Let records reach the Python root logger (used by pytest's caplog)."""
    _configure_library_root_logger()
    _get_library_root_logger().propagate = True


def disable_propagation() -> None:
    _configure_library_root_logger()
    _get_library_root_logger().propagate = False

"""
Logging utilities for the bundler.

This module provides logging functions that respect the BundleContext
log level and format flags. All output goes to stderr so that it never
mixes with a bundle written to stdout.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import sys
import time
from typing import Optional

from csb_context import BundleContext, LogLevel


def log(context: Optional[BundleContext], log_level: LogLevel, message: str) -> None:
    """
    Log a message if the context's logging level admits it.

    Args:
        context:    The bundle context containing the logging level.
        log_level:  The level of the message to log.
        message:    The message to log.
    """
    if context is None:
        print("No context provided for logging.", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        return
    prefix = ""
    if context.log_rich_format:
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime())
        prefix = {
            LogLevel.ERROR: f"{timestamp} [ERROR] ",
            LogLevel.WARNING: f"{timestamp} [WARNING] ",
            LogLevel.INFO: f"{timestamp} [INFO] ",
            LogLevel.DEBUG: f"{timestamp} [DEBUG] ",
        }.get(log_level, "")
    if context.log_level >= log_level:
        print(f"{prefix}{message}", file=sys.stderr)


def log_error(context: Optional[BundleContext], message: str) -> None:
    log(context, LogLevel.ERROR, message)


def log_warning(context: Optional[BundleContext], message: str) -> None:
    log(context, LogLevel.WARNING, message)


def log_info(context: Optional[BundleContext], message: str) -> None:
    log(context, LogLevel.INFO, message)


def log_debug(context: Optional[BundleContext], message: str) -> None:
    log(context, LogLevel.DEBUG, message)


def log_stage(context: Optional[BundleContext], stage: str, subject: Optional[str] = None) -> None:
    """
    Log the start of a bundling stage.

    Args:
        context: The bundle context containing logging flags.
        stage:   The name of the stage (e.g., "Loading workspace", "Walking closure").
        subject: Optional name of what the stage is working on.
    """
    if subject:
        log(context, LogLevel.INFO, f"{stage} '{subject}'")
    else:
        log(context, LogLevel.INFO, f"{stage}...")

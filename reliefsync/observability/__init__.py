# SPDX-License-Identifier: Apache-2.0

"""
Observability package - tracing and logging setup.
"""

from .config import setup_observability, setup_logging, TraceContextFilter

__all__ = ["setup_observability", "setup_logging", "TraceContextFilter"]

# SPDX-License-Identifier: Apache-2.0

"""
ReliefSync - coordination engine for disaster-relief reports, resource
requests, broadcasts and volunteer tasks.
"""

__version__ = "1.0.0"

# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""gscript - run line-oriented scripts from the command line."""

__version__ = "0.1.0"

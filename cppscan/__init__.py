# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
A tokenizer for C source and a scanner for its preprocessor directives:
macro discovery, conditional compilation and #include/#embed resolution.
"""

__version__ = "0.1.0"

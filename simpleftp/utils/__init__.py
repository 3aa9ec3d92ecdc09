"""Utility module for SimpleFTP.

This module provides cross-cutting utilities:
- Logging: Configured logging with credential redaction
- Validators: Input validation for hosts, ports, paths and octals
- Threading: Background tasks and keyed task scheduling
"""

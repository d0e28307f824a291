#!/usr/bin/env python3
"""
Dotcom Exporter - Prometheus exporter for Dotcom-Monitor device status

This package scrapes the Dotcom-Monitor XML reporting API on every
Prometheus scrape and republishes the state of each monitored device.
"""

__version__ = '1.0.0'

__all__ = ['DotcomClient', 'DotcomExporter', 'DeviceRecord', 'parse']

from .client import DotcomClient
from .exporter import DotcomExporter
from .parser import DeviceRecord, parse

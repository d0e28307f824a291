#!/usr/bin/env python3
"""
Metric descriptors and device mapping

Descriptors are static; the exporter builds fresh metric families from them
on every collection. Default labels (for example a region) are prepended to
every descriptor's label names and merged into every sample.
"""

from collections import namedtuple
from typing import Dict, List, Optional

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.samples import Sample

from .parser import DeviceRecord

DOWN = 'Down'
UP = 'Up'

STATE_DOWN = 0.0
STATE_UP = 1.0
STATE_OTHER = 2.0

MetricDescriptor = namedtuple('MetricDescriptor', ['name', 'documentation', 'labelnames'])

SCRAPE_SUCCESS = MetricDescriptor(
    'dotcom_scrape_success',
    'Whether scraping dotcom device status was successful.',
    (),
)
DEVICE_STATUS = MetricDescriptor(
    'dotcom_device_status',
    'Whether the dotcom alert is active or not',
    ('id', 'name', 'status'),
)

DESCRIPTORS = (SCRAPE_SUCCESS, DEVICE_STATUS)


def device_state_value(state: str) -> float:
    """Down -> 0, Up -> 1, anything else -> 2"""
    if state == DOWN:
        return STATE_DOWN
    if state == UP:
        return STATE_UP
    return STATE_OTHER


def map_device(record: DeviceRecord, default_labels: Dict[str, str] = None) -> Sample:
    """
    Convert a device record into a device status sample.

    Args:
        record: Device record from a status report
        default_labels: Constant labels merged in front of the device labels

    Returns:
        Sample: dotcom_device_status sample without timestamp
    """
    labels = dict(default_labels or {})
    labels.update({
        'id': record.id,
        'name': record.name,
        'status': record.status,
    })
    return Sample(DEVICE_STATUS.name, labels, device_state_value(record.state))


class MetricFactory:
    """Factory class to create gauge families with default labels"""

    def __init__(self, default_labels: Dict[str, str] = None):
        """
        Initialize metric factory

        Args:
            default_labels: Default labels to apply to all metrics
        """
        self.default_labels = default_labels or {}

    def labelnames(self, descriptor: MetricDescriptor) -> List[str]:
        """Default label names followed by the descriptor's own"""
        return list(self.default_labels.keys()) + list(descriptor.labelnames)

    def gauge(self, descriptor: MetricDescriptor) -> GaugeMetricFamily:
        """Create an empty gauge family for a descriptor"""
        return GaugeMetricFamily(
            descriptor.name,
            descriptor.documentation,
            labels=self.labelnames(descriptor),
        )

    def add(self, family: GaugeMetricFamily, value: float, labels: Dict[str, str] = None,
            timestamp: Optional[float] = None):
        """Add a sample to a family with default labels merged"""
        merged = dict(self.default_labels)
        if labels:
            merged.update(labels)
        family.add_sample(family.name, merged, value, timestamp)

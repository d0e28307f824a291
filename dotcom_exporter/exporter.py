#!/usr/bin/env python3
"""
Dotcom Exporter - custom Prometheus collector

Every collection runs one full scrape (fetch, parse, map) while holding the
exporter lock, so concurrent Prometheus scrapes never produce more than one
in-flight request to Dotcom-Monitor.
"""

import logging
import threading
import time
from typing import List, Mapping

from prometheus_client.core import CollectorRegistry, GaugeMetricFamily

from .errors import ScrapeError
from .metrics import DESCRIPTORS, DEVICE_STATUS, SCRAPE_SUCCESS, MetricFactory, map_device
from .parser import DeviceRecord, parse


class DotcomExporter:
    """Prometheus collector for Dotcom-Monitor device status"""

    def __init__(self, client, default_labels: Mapping[str, str] = None,
                 registry: CollectorRegistry = None):
        """
        Initialize the exporter

        Args:
            client: Object with a fetch() method returning the raw status report
            default_labels: Constant labels applied to every sample
            registry: Registry to register this collector with, if any
        """
        self.client = client
        self.default_labels = dict(default_labels or {})
        self.metric_factory = MetricFactory(default_labels=self.default_labels)
        self.logger = logging.getLogger(__name__)

        # One upstream request at a time
        self._lock = threading.Lock()

        self.registry = registry
        if registry is not None:
            registry.register(self)

    def describe(self) -> List[GaugeMetricFamily]:
        """Metric families provided by the exporter, without samples"""
        return [self.metric_factory.gauge(descriptor) for descriptor in DESCRIPTORS]

    def scrape(self) -> List[DeviceRecord]:
        """
        Fetch and parse one status report.

        Raises:
            ScrapeError: any transport, status, parse or empty-result failure
        """
        raw = self.client.fetch()
        return parse(raw)

    def collect(self) -> List[GaugeMetricFamily]:
        """Scrape Dotcom-Monitor and return the resulting metric families"""
        with self._lock:
            started = time.time()
            success = self.metric_factory.gauge(SCRAPE_SUCCESS)

            try:
                devices = self.scrape()
            except ScrapeError as e:
                self.logger.error(f"Failed to gather stats: {e}")
                self.metric_factory.add(success, 0.0, timestamp=started)
                return [success]

            status = self.metric_factory.gauge(DEVICE_STATUS)
            for device in devices:
                sample = map_device(device, self.default_labels)
                status.add_sample(sample.name, sample.labels, sample.value)
            self.metric_factory.add(success, 1.0, timestamp=started)

            self.logger.debug(f"Scraped {len(devices)} devices in {time.time() - started:.3f}s")
            return [status, success]

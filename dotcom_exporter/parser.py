#!/usr/bin/env python3
"""
Response Parser - Dotcom-Monitor XML status report decoding

The status report looks like:

    <DotcomMonitorConfig>
      <Site ID="123" Name="shop" State="Up" Status="OK" />
      ...
    </DotcomMonitorConfig>
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import List

from .errors import EmptyResultError, ParseError

DEVICE_TAG = 'Site'


@dataclass(frozen=True)
class DeviceRecord:
    """One monitored device from a status report"""
    id: str
    name: str
    state: str
    status: str

    @classmethod
    def from_element(cls, element: ET.Element) -> 'DeviceRecord':
        return cls(
            id=element.get('ID', ''),
            name=element.get('Name', ''),
            state=element.get('State', ''),
            status=element.get('Status', ''),
        )


def _first_element(raw: bytes) -> ET.Element:
    """Root element of the report; anything after it is ignored"""
    parser = ET.XMLPullParser(events=('start', 'end'))
    depth = 0
    try:
        parser.feed(raw)
        for finished in (False, True):
            if finished:
                parser.close()
            for event, element in parser.read_events():
                if event == 'start':
                    depth += 1
                    continue
                depth -= 1
                if depth == 0:
                    return element
    except ET.ParseError as e:
        raise ParseError(f"malformed status report: {e}") from e
    raise ParseError("malformed status report: no root element")


def parse(raw: bytes) -> List[DeviceRecord]:
    """
    Decode a status report into device records.

    Args:
        raw: Response body as returned by the upstream API

    Returns:
        list: DeviceRecord per <Site> element, in document order

    Raises:
        ParseError: body does not start with a well-formed XML element
        EmptyResultError: body is well-formed but has no <Site> elements
    """
    root = _first_element(raw)

    devices = [DeviceRecord.from_element(el) for el in root.findall(DEVICE_TAG)]
    if not devices:
        raise EmptyResultError()
    return devices

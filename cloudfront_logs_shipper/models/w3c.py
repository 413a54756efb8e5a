"""
W3C extended log format models
"""

from dataclasses import dataclass, field
from typing import Dict, List

# A single W3C log record, field name -> raw value
LogEntry = Dict[str, str]


@dataclass
class W3CLog:
    """Header fields of a log file plus the records decoded so far"""
    header_fields: List[str] = field(default_factory=list)
    records: List[LogEntry] = field(default_factory=list)

"""
Process-wide request counters, exposed at GET /debug/vars.
"""

from collections import Counter
from typing import Any, Dict


class Metrics:
    def __init__(self) -> None:
        self.total_requests_received = 0
        self.total_responses_sent = 0
        self.total_processing_time_microseconds = 0
        self.total_responses_sent_by_status: Counter = Counter()

    def request_received(self) -> None:
        self.total_requests_received += 1

    def response_sent(self, status_code: int, duration_microseconds: int) -> None:
        self.total_responses_sent += 1
        self.total_processing_time_microseconds += duration_microseconds
        self.total_responses_sent_by_status[str(status_code)] += 1

    def snapshot(self) -> Dict[str, Any]:
        return {
            "total_requests_received": self.total_requests_received,
            "total_responses_sent": self.total_responses_sent,
            "total_processing_time_microseconds": self.total_processing_time_microseconds,
            "total_responses_sent_by_status": dict(self.total_responses_sent_by_status),
        }

"""
Per-item outcomes for batch operations.

Batch endpoints process every id independently. One item failing never
aborts the others; the caller gets a result per id and a 207 status when
anything failed.
"""
from dataclasses import dataclass, field
from typing import List
from rest_framework import status


@dataclass
class BatchItemResult:
    id: str
    success: bool
    message: str

    def to_dict(self):
        return {'id': self.id, 'success': self.success, 'message': self.message}


@dataclass
class BatchResult:
    results: List[BatchItemResult] = field(default_factory=list)

    def succeeded(self, item_id, message):
        self.results.append(BatchItemResult(item_id, True, message))

    def failed(self, item_id, message):
        self.results.append(BatchItemResult(item_id, False, message))

    @property
    def successful_count(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for result in self.results if not result.success)

    @property
    def http_status(self) -> int:
        return status.HTTP_207_MULTI_STATUS if self.failed_count else status.HTTP_200_OK

    def to_dict(self, message: str):
        return {
            'success': self.failed_count == 0,
            'message': message,
            'details': {
                'successfulCount': self.successful_count,
                'failedCount': self.failed_count,
                'results': [result.to_dict() for result in self.results],
            },
        }

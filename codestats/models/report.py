"""汇总报告数据模型"""

import time
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from .enums import BatchStatus


@dataclass(frozen=True)
class AggregateReport:
    """跨平台汇总视图

    每次请求完整重建，不做持久化。
    """
    requested: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    rate_limited: List[str] = field(default_factory=list)
    unavailable: List[str] = field(default_factory=list)
    totals: Dict[str, int] = field(default_factory=dict)
    platform_breakdown: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    activity: Dict[str, int] = field(default_factory=dict)
    estimated_providers: List[str] = field(default_factory=list)
    total_activity: int = 0
    active_days: int = 0
    max_streak: int = 0
    current_streak: int = 0
    data_quality: float = 0.0

    @property
    def platforms_connected(self) -> int:
        return len(self.succeeded)

    def to_dict(self, include_calendar: bool = True) -> Dict[str, Any]:
        """转换为字典格式"""
        return {
            'platforms_requested': self.requested,
            'platforms_connected': self.platforms_connected,
            'successful_platforms': list(self.succeeded),
            'failed_platforms': list(self.failed),
            'rate_limited_platforms': list(self.rate_limited),
            'unavailable_platforms': list(self.unavailable),
            'totals': dict(self.totals),
            'platform_breakdown': dict(self.platform_breakdown),
            'activity': {
                'calendar': dict(self.activity) if include_calendar else {},
                'total': self.total_activity,
                'active_days': self.active_days,
                'max_streak': self.max_streak,
                'current_streak': self.current_streak,
                'estimated_providers': list(self.estimated_providers),
            },
            'data_quality': self.data_quality,
            'data_quality_percent': f"{self.data_quality * 100:.0f}%",
        }


@dataclass
class BatchResponse:
    """调用方可见的批量响应"""
    request_id: str
    status: BatchStatus
    usernames: Dict[str, Any]
    platforms: Dict[str, Dict[str, Any]]
    report: AggregateReport
    processing_time_ms: float
    timestamp: float = field(default_factory=time.time)
    message: Optional[str] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'status': self.status.value,
            'request_id': self.request_id,
            'timestamp': self.timestamp,
            'usernames': dict(self.usernames),
            'platforms': dict(self.platforms),
            'aggregated_stats': self.report.to_dict(),
            'processing_time_ms': round(self.processing_time_ms, 2),
        }
        if self.message:
            data['message'] = self.message
        return data

"""
시간 관련 유틸리티 함수
"""
from datetime import datetime, timezone
from typing import Any


def parse_timestamp(value: Any) -> datetime:
    """
    클라이언트가 보낸 시각 값을 UTC 기준 naive datetime으로 변환합니다.

    Args:
        value: ISO 8601 문자열, epoch 밀리초(int/float), 또는 datetime

    Returns:
        datetime: tzinfo가 제거된 UTC 시각

    Raises:
        ValueError: 해석할 수 없는 값인 경우

    Examples:
        >>> parse_timestamp("2024-05-01T09:00:00Z")
        datetime.datetime(2024, 5, 1, 9, 0)
        >>> parse_timestamp(0)
        datetime.datetime(1970, 1, 1, 0, 0)
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        try:
            dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError) as e:
            # 플랫폼이 표현할 수 있는 범위를 벗어난 epoch 값
            raise ValueError(f"Timestamp out of range: {value!r}") from e
    elif isinstance(value, str) and value.strip():
        # Python 3.10의 fromisoformat은 "Z" 접미사를 지원하지 않음
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    else:
        raise ValueError(f"Invalid timestamp: {value!r}")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt

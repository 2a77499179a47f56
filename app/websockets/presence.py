from typing import Dict, List


class PresenceTracker:
    """
    사용자별 열린 연결 수를 세는 접속 상태 추적기

    한 사용자가 여러 기기로 접속할 수 있으므로 연결 수가 0이 될 때만 오프라인으로 봅니다.
    모든 메서드는 await 없이 한 번에 끝나므로 이벤트 루프 안에서 별도 락이 필요 없습니다.
    서버 인스턴스마다 하나씩 만들어 ConnectionManager에 주입합니다.
    """

    def __init__(self):
        self._counts: Dict[str, int] = {}

    def add(self, user_id: str) -> int:
        """연결 수를 1 늘리고 새 연결 수를 반환 (1이면 방금 온라인이 됨)"""
        uid = str(user_id)
        count = self._counts.get(uid, 0) + 1
        self._counts[uid] = count
        return count

    def remove(self, user_id: str) -> int:
        """연결 수를 1 줄이고 남은 연결 수를 반환 (0이면 오프라인)"""
        uid = str(user_id)
        count = self._counts.get(uid, 0) - 1
        if count <= 0:
            self._counts.pop(uid, None)
            return 0
        self._counts[uid] = count
        return count

    def has(self, user_id: str) -> bool:
        return str(user_id) in self._counts

    def connection_count(self, user_id: str) -> int:
        return self._counts.get(str(user_id), 0)

    def list_all(self) -> List[str]:
        """현재 온라인인 사용자 ID 목록 (순서 무관)"""
        return list(self._counts.keys())

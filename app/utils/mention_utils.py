"""
@멘션 토큰 추출 유틸리티
"""
import re
from typing import Iterator, List

# '@' 뒤에 이어지는 공백이 아닌 문자열 전체가 하나의 이름 토큰
MENTION_PATTERN = re.compile(r"@(\S+)")

# "@Park," 처럼 문장 부호가 붙은 토큰도 이름과 비교할 수 있도록 떼어낼 문자들
TRAILING_PUNCTUATION = ".,!?;:)]}'\"…"


def iter_mention_tokens(content: str) -> Iterator[str]:
    """본문에서 ``@이름`` 토큰을 왼쪽부터 차례로 돌려줍니다 ('@'는 제외)."""
    for match in MENTION_PATTERN.finditer(content or ""):
        yield match.group(1)


def extract_mention_names(content: str) -> List[str]:
    """
    멘션 후보 이름 목록을 반환합니다.

    토큰 원문과 끝의 문장 부호를 뗀 형태를 모두 후보로 넣고, 중복은 제거합니다
    (처음 등장한 순서 유지). 대소문자는 그대로 비교하므로 ``@kim``은 ``Kim``과
    일치하지 않습니다.

    Examples:
        >>> extract_mention_names("hello @Kim and @Park, see @kim")
        ['Kim', 'Park,', 'Park', 'kim']
    """
    names = {}
    for token in iter_mention_tokens(content):
        names.setdefault(token, None)
        stripped = token.rstrip(TRAILING_PUNCTUATION)
        if stripped:
            names.setdefault(stripped, None)
    return list(names)

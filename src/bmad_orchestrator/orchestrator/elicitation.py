"""
사용자 응답 분류

대화형 단계가 classification_options를 선언하면 사용자의 자유 응답을
키워드 점수로 후보 중 하나에 매핑합니다. 결과는 context의
routing_decisions에 기록되어 이후 단계의 condition에서 사용됩니다.
"""

from typing import Dict, List, Mapping, Optional, Sequence, Union
import re


# 후보 이름만으로 판단하기 어려운 범위 분류용 기본 키워드
DEFAULT_KEYWORDS: Dict[str, List[str]] = {
    "single_story": ["single story", "bug fix", "bugfix", "small change", "quick fix", "typo"],
    "small_feature": ["small feature", "few stories", "minor feature", "1-3 stories"],
    "major_enhancement": ["major", "significant", "architectural", "multiple epics", "large", "overhaul"],
}

_WORD = re.compile(r"[a-z0-9]+")


def _tokens(text: str) -> List[str]:
    return _WORD.findall(text.lower())


def classify_response(
    response: str,
    options: Union[Sequence[str], Mapping[str, Sequence[str]]],
) -> Optional[str]:
    """
    응답 분류

    점수 = 키워드 구문 일치 x 3 + 후보 이름 토큰 일치 수.
    동점이면 먼저 선언된 후보를 고릅니다.

    Args:
        response: 사용자 응답
        options: 후보 목록 또는 후보 -> 키워드 매핑

    Returns:
        선택된 후보 또는 None (일치 없음)

    Example:
        classify_response("small feature", ["single_story", "small_feature"])
        # -> "small_feature"
    """
    if not response or not options:
        return None

    if isinstance(options, Mapping):
        keywords = {name: list(words or []) for name, words in options.items()}
    else:
        keywords = {name: DEFAULT_KEYWORDS.get(name, []) for name in options}

    text = " ".join(_tokens(response))
    words = set(text.split())

    best: Optional[str] = None
    best_score = 0
    for name, phrases in keywords.items():
        score = sum(3 for p in phrases if " ".join(_tokens(p)) in text)
        score += sum(1 for token in _tokens(name) if token in words)
        if score > best_score:
            best, best_score = name, score
    return best

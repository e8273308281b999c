"""
생성 결과 구조 검증

언어 모델이 반환한 문서가 필수 섹션을 갖추었는지, 너무 짧지 않은지,
채워지지 않은 플레이스홀더가 남아 있지 않은지 확인합니다.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import re


PLACEHOLDER_PATTERNS = [
    re.compile(r"\[(insert|placeholder|your)[^\]]*\]", re.IGNORECASE),
    re.compile(r"\{\{[^}]*\}\}"),
    re.compile(r"lorem ipsum", re.IGNORECASE),
    re.compile(r"\bTBD\b"),
]


@dataclass
class ValidationResult:
    """검증 결과"""

    valid: bool
    errors: List[str] = field(default_factory=list)
    missing_sections: List[str] = field(default_factory=list)

    @property
    def feedback(self) -> str:
        """다음 시도 프롬프트에 붙일 피드백"""
        return "; ".join(self.errors)


class OutputValidator:
    """
    생성 결과 검증기

    사용법:
        validator = OutputValidator(["Context", "Instructions", "Task"])
        result = validator.validate(text)
        if not result.valid:
            retry_with(result.feedback)
    """

    def __init__(
        self,
        required_sections: Sequence[str] = ("Context", "Instructions", "Task"),
        min_length: int = 100,
    ):
        self.required_sections = list(required_sections)
        self.min_length = min_length

    def validate(
        self, content: Optional[str], required_sections: Optional[Sequence[str]] = None
    ) -> ValidationResult:
        """
        생성 결과 검증

        Args:
            content: 검증할 텍스트
            required_sections: 단계별 필수 섹션 (없으면 기본값)

        Returns:
            ValidationResult
        """
        if not content or not content.strip():
            return ValidationResult(valid=False, errors=["Output is empty"])

        sections = (
            list(required_sections)
            if required_sections is not None
            else self.required_sections
        )
        errors: List[str] = []

        missing = [s for s in sections if not self.has_section(content, s)]
        if missing:
            errors.append(f"Missing required sections: {', '.join(missing)}")

        if len(content.strip()) < self.min_length:
            errors.append(
                f"Output too short ({len(content.strip())} < {self.min_length} characters)"
            )

        for pattern in PLACEHOLDER_PATTERNS:
            match = pattern.search(content)
            if match:
                errors.append(f"Output contains placeholder content: {match.group(0)!r}")
                break

        return ValidationResult(valid=not errors, errors=errors, missing_sections=missing)

    @staticmethod
    def has_section(content: str, section: str) -> bool:
        """마크다운 헤딩(#) 또는 굵은 글씨 라벨로 섹션 존재 확인"""
        name = re.escape(section)
        heading = re.compile(rf"^\s*#{{1,6}}\s*{name}\b", re.IGNORECASE | re.MULTILINE)
        label = re.compile(rf"^\s*\*\*{name}\*\*", re.IGNORECASE | re.MULTILINE)
        return bool(heading.search(content) or label.search(content))

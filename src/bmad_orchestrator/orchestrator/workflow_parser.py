"""
YAML 워크플로우 파서

동적 워크플로우 정의 파일을 파싱하여 Step 목록으로 변환합니다.

파일 형식:
    workflow:
      id: greenfield-fullstack
      name: Greenfield Full-Stack
      description: ...
      type: greenfield
      project_types: [web-app, saas]
      sequence:
        - step: project_brief
          agent: analyst
          action: create_project_brief
          creates: project-brief
        - agent: pm
          creates: prd
          requires: project-brief
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

import yaml

from ..core.sequences import Step


@dataclass
class WorkflowDefinition:
    """
    파싱된 워크플로우 정의

    Attributes:
        id: 정의 ID (파일명)
        name: 이름
        description: 설명
        type: 분류 (greenfield, brownfield ...)
        project_types: 적용 대상 프로젝트 유형
        steps: 단계 목록
    """

    id: str
    name: str
    description: str = ""
    type: str = ""
    project_types: List[str] = field(default_factory=list)
    steps: List[Step] = field(default_factory=list)

    def get_step(self, name: str) -> Optional[Step]:
        """단계 이름으로 조회"""
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환"""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "project_types": self.project_types,
            "steps": [s.to_dict() for s in self.steps],
        }


class WorkflowParser:
    """
    YAML 워크플로우 파서

    사용법:
        parser = WorkflowParser(Path("definitions/workflows"))
        definition = parser.load("greenfield-fullstack")

        # 또는 문자열에서 파싱
        definition = parser.parse_string(yaml_content)
    """

    def __init__(self, workflows_dir: Path):
        """
        Args:
            workflows_dir: 워크플로우 파일 디렉토리
        """
        self.workflows_dir = Path(workflows_dir)
        self.logger = logging.getLogger("orchestrator.parser")

    def _path(self, workflow_name: str) -> Path:
        return self.workflows_dir / f"{workflow_name}.yaml"

    def exists(self, workflow_name: str) -> bool:
        """워크플로우 파일 존재 여부"""
        return self._path(workflow_name).is_file()

    def load(self, workflow_name: str) -> WorkflowDefinition:
        """
        워크플로우 파일 로드 및 파싱

        Args:
            workflow_name: 워크플로우 이름 (.yaml 제외)

        Returns:
            WorkflowDefinition

        Raises:
            FileNotFoundError: 워크플로우 파일이 없음
            ValueError: 형식 오류
            yaml.YAMLError: YAML 파싱 오류
        """
        file_path = self._path(workflow_name)
        if not file_path.exists():
            raise FileNotFoundError(f"Workflow not found: {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)

        return self._parse(data, workflow_name)

    def parse_string(
        self, yaml_content: str, workflow_id: str = "inline"
    ) -> WorkflowDefinition:
        """YAML 문자열에서 워크플로우 파싱"""
        return self._parse(yaml.safe_load(yaml_content), workflow_id)

    def _parse(self, data: Any, default_id: str) -> WorkflowDefinition:
        """YAML 데이터를 WorkflowDefinition으로 변환"""
        if not data or not isinstance(data, dict):
            raise ValueError("Empty workflow data")

        root = data.get("workflow", data)
        if not isinstance(root, dict):
            raise ValueError("'workflow' must be a mapping")

        steps: List[Step] = []
        for index, item in enumerate(root.get("sequence") or []):
            if not isinstance(item, dict):
                raise ValueError(f"Sequence item {index} is not a mapping")
            if not item.get("agent") and not item.get("agent_id"):
                # 안내용 항목 (예: workflow_end)
                self.logger.debug(f"Skipping non-agent sequence item {index}: {item}")
                continue
            steps.append(Step.from_dict(item))

        return WorkflowDefinition(
            id=root.get("id", default_id),
            name=root.get("name", default_id),
            description=root.get("description", ""),
            type=root.get("type", ""),
            project_types=list(root.get("project_types") or []),
            steps=steps,
        )

    def validate(self, definition: WorkflowDefinition) -> List[str]:
        """
        워크플로우 구조 검사

        에이전트 존재 여부와 산출물 흐름은 AgentRegistry.validate_sequence가
        담당합니다.

        Returns:
            에러 메시지 목록 (빈 리스트면 유효)
        """
        errors = []

        if not definition.steps:
            errors.append("Workflow has no steps")

        for index, step in enumerate(definition.steps):
            if step.max_attempts is not None and (
                not isinstance(step.max_attempts, int) or step.max_attempts < 1
            ):
                errors.append(
                    f"Step {index} ({step.name}) has invalid max_attempts: {step.max_attempts}"
                )
            if step.classification_options and not step.interactive:
                errors.append(
                    f"Step {index} ({step.name}) declares classification_options "
                    f"but is not interactive"
                )
            if step.condition is not None and not str(step.condition).strip():
                errors.append(f"Step {index} ({step.name}) has an empty condition")

        return errors

    def list_workflows(self) -> List[str]:
        """사용 가능한 워크플로우 이름 목록"""
        if not self.workflows_dir.exists():
            return []

        return sorted(
            f.stem for f in self.workflows_dir.glob("*.yaml") if f.is_file()
        )

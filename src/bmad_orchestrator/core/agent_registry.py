"""
에이전트 중앙 등록소

정적 YAML 정의에서 에이전트를 읽어 등록하고, 시퀀스 검증을 제공합니다.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import logging

import yaml

from .exceptions import AgentDefinitionError, AgentNotFoundError
from .sequences import Step


@dataclass(frozen=True)
class Agent:
    """
    에이전트 정의 (로드 후 불변)

    Attributes:
        id: 고유 ID (예: "analyst", "ux-expert")
        name: 표시 이름
        title: 직함
        icon: 아이콘
        role: 역할/페르소나 요약
        persona: 스타일, 정체성, 초점 등 상세 페르소나
        commands: 허용된 명령어 (순서 유지)
        dependencies: 종류별 의존 리소스 (tasks, templates, checklists ...)
        when_to_use: 사용 시점 안내
    """

    id: str
    role: str
    name: str = ""
    title: str = ""
    icon: str = ""
    persona: Dict[str, Any] = field(default_factory=dict)
    commands: Tuple[str, ...] = ()
    dependencies: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    when_to_use: str = ""

    @classmethod
    def from_definition(
        cls, data: Dict[str, Any], source: Optional[str] = None
    ) -> "Agent":
        """
        YAML 항목에서 Agent 생성

        Raises:
            AgentDefinitionError: id 또는 role 누락
        """
        if not isinstance(data, dict):
            raise AgentDefinitionError(f"entry is not a mapping: {data!r}", source)
        agent_id = data.get("id")
        if not agent_id:
            raise AgentDefinitionError("missing 'id'", source)
        if not data.get("role"):
            raise AgentDefinitionError(f"agent '{agent_id}' missing 'role'", source)

        dependencies = {
            kind: tuple(names or ())
            for kind, names in (data.get("dependencies") or {}).items()
        }
        return cls(
            id=str(agent_id),
            role=str(data["role"]),
            name=data.get("name", agent_id),
            title=data.get("title", ""),
            icon=data.get("icon", ""),
            persona=dict(data.get("persona") or {}),
            commands=tuple(data.get("commands") or ()),
            dependencies=dependencies,
            when_to_use=data.get("when_to_use", ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환"""
        return {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "icon": self.icon,
            "role": self.role,
            "persona": dict(self.persona),
            "commands": list(self.commands),
            "dependencies": {k: list(v) for k, v in self.dependencies.items()},
            "when_to_use": self.when_to_use,
        }


@dataclass
class SequenceValidation:
    """
    시퀀스 검증 결과

    errors가 비어 있으면 valid입니다. warnings는 실행을 막지 않습니다.
    """

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": self.errors, "warnings": self.warnings}


class AgentRegistry:
    """
    에이전트 중앙 등록소

    사용법:
        registry = AgentRegistry(Path("definitions/agents.yaml"))
        registry.load_all()

        analyst = registry.get("analyst")
        result = registry.validate_sequence(steps)

    Note:
        싱글톤이 아닙니다. Orchestrator가 인스턴스 하나를 소유하고
        필요한 곳에 명시적으로 전달합니다.
    """

    def __init__(self, definitions_file: Optional[Path] = None):
        self.definitions_file = definitions_file
        self._agents: Dict[str, Agent] = {}
        self.logger = logging.getLogger("agent.registry")

    def load_all(self) -> List[str]:
        """
        정의 파일의 모든 에이전트 로드

        기존 등록 내용은 새 정의로 교체됩니다. 파일 전체를 검증한 뒤에
        교체하므로 잘못된 항목이 하나라도 있으면 아무것도 등록되지 않습니다.

        Returns:
            로드된 에이전트 ID 목록

        Raises:
            AgentDefinitionError: 파일 없음, YAML 오류, 필수 필드 누락, 중복 ID
        """
        if self.definitions_file is None:
            raise AgentDefinitionError("no definitions file configured")

        source = str(self.definitions_file)
        path = Path(self.definitions_file)
        if not path.exists():
            raise AgentDefinitionError("definitions file not found", source)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise AgentDefinitionError(f"YAML parse error: {e}", source) from e

        entries = (data or {}).get("agents") if isinstance(data, dict) else None
        if not entries:
            raise AgentDefinitionError("no 'agents' list", source)

        loaded: Dict[str, Agent] = {}
        for entry in entries:
            agent = Agent.from_definition(entry, source)
            if agent.id in loaded:
                raise AgentDefinitionError(f"duplicate agent id '{agent.id}'", source)
            loaded[agent.id] = agent

        self._agents = loaded
        self.logger.info(f"Loaded {len(loaded)} agents from {source}")
        return list(loaded.keys())

    def register(self, agent: Agent) -> None:
        """
        에이전트 등록

        Raises:
            ValueError: 이미 등록된 ID
        """
        if agent.id in self._agents:
            raise ValueError(f"Agent already registered: {agent.id}")
        self._agents[agent.id] = agent
        self.logger.info(f"Registered agent: {agent.id}")

    def unregister(self, agent_id: str) -> bool:
        """에이전트 등록 해제"""
        if self._agents.pop(agent_id, None) is None:
            return False
        self.logger.info(f"Unregistered agent: {agent_id}")
        return True

    def resolve_id(self, agent_id: str) -> Optional[str]:
        """
        에이전트 ID 해석

        "pm/architect" 같은 복합 ID는 등록된 첫 번째 ID로 해석합니다.

        Returns:
            등록된 ID 또는 None
        """
        if agent_id in self._agents:
            return agent_id
        for part in agent_id.split("/"):
            part = part.strip()
            if part in self._agents:
                return part
        return None

    def get(self, agent_id: str) -> Agent:
        """
        에이전트 조회

        Raises:
            AgentNotFoundError: 등록되지 않은 ID
        """
        resolved = self.resolve_id(agent_id)
        if resolved is None:
            raise AgentNotFoundError(agent_id)
        return self._agents[resolved]

    def get_safe(self, agent_id: str) -> Optional[Agent]:
        """에이전트 조회 (없으면 None)"""
        resolved = self.resolve_id(agent_id)
        return self._agents[resolved] if resolved else None

    def find_by_command(self, command: str) -> List[Agent]:
        """명령어를 가진 에이전트 검색"""
        return [a for a in self._agents.values() if command in a.commands]

    def validate_sequence(self, sequence: Sequence[Step]) -> SequenceValidation:
        """
        시퀀스 검증

        (a) 모든 에이전트 ID가 해석되는지 확인하고 실패는 errors에,
        (b) requires 산출물이 앞선 단계에서 만들어지는지 확인하고 누락은
        warnings에 모읍니다. 예외를 던지지 않습니다.

        Args:
            sequence: 검증할 Step 목록

        Returns:
            SequenceValidation
        """
        errors: List[str] = []
        warnings: List[str] = []
        created: set = set()

        if not sequence:
            errors.append("Sequence has no steps")

        for index, step in enumerate(sequence):
            if self.resolve_id(step.agent_id) is None:
                errors.append(
                    f"Step {index} ({step.name}) references unknown agent: {step.agent_id}"
                )
            for required in step.requires:
                if required not in created:
                    warnings.append(
                        f"Step {index} ({step.name}) requires '{required}' "
                        f"which no earlier step creates"
                    )
            created.update(step.creates)

        return SequenceValidation(valid=not errors, errors=errors, warnings=warnings)

    def list_agents(self) -> List[str]:
        """등록된 모든 에이전트 ID 목록"""
        return list(self._agents.keys())

    def get_all_info(self) -> List[Dict[str, Any]]:
        """모든 에이전트 정보"""
        return [agent.to_dict() for agent in self._agents.values()]

    def clear(self) -> None:
        """모든 에이전트 등록 해제"""
        self._agents.clear()
        self.logger.warning("Registry cleared - all agents unregistered")

    def __contains__(self, agent_id: str) -> bool:
        return self.resolve_id(agent_id) is not None

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self) -> Iterator[Agent]:
        return iter(self._agents.values())

"""
AgentRegistry 테스트

- 정의 파일 로드와 오류 처리
- 조회, 복합 ID 해석
- 시퀀스 검증
"""

import pytest

from bmad_orchestrator.core.agent_registry import Agent, AgentRegistry
from bmad_orchestrator.core.exceptions import AgentDefinitionError, AgentNotFoundError
from bmad_orchestrator.core.sequences import Step, get_static_sequence


def write_definitions(tmp_path, content):
    path = tmp_path / "agents.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoading:
    """정의 로드 테스트"""

    def test_load_bundled_definitions(self, settings):
        registry = AgentRegistry(settings.agents_file)
        loaded = registry.load_all()

        assert loaded == ["analyst", "pm", "architect", "ux-expert", "dev", "qa", "sm", "po"]
        analyst = registry.get("analyst")
        assert analyst.name == "Mary"
        assert "create_project_brief" in analyst.commands
        assert "project-brief-tmpl" in analyst.dependencies["templates"]

    def test_missing_file(self, tmp_path):
        registry = AgentRegistry(tmp_path / "nope.yaml")
        with pytest.raises(AgentDefinitionError):
            registry.load_all()

    def test_missing_role_loads_nothing(self, tmp_path):
        path = write_definitions(tmp_path, "agents:\n  - id: analyst\n    role: Analyst\n  - id: pm\n")
        registry = AgentRegistry(path)

        with pytest.raises(AgentDefinitionError, match="role"):
            registry.load_all()
        assert len(registry) == 0

    def test_duplicate_ids(self, tmp_path):
        path = write_definitions(
            tmp_path, "agents:\n  - id: pm\n    role: A\n  - id: pm\n    role: B\n"
        )
        with pytest.raises(AgentDefinitionError, match="duplicate"):
            AgentRegistry(path).load_all()

    def test_invalid_yaml(self, tmp_path):
        path = write_definitions(tmp_path, "agents: [unclosed\n")
        with pytest.raises(AgentDefinitionError, match="YAML"):
            AgentRegistry(path).load_all()


class TestLookup:
    """조회 테스트"""

    def test_get_unknown_raises(self, registry):
        with pytest.raises(AgentNotFoundError):
            registry.get("wizard")
        assert registry.get_safe("wizard") is None

    def test_compound_id_resolves_first_registered(self, registry):
        assert registry.resolve_id("pm/architect") == "pm"
        assert registry.resolve_id("wizard/architect") == "architect"
        assert "wizard/po" in registry

    def test_register_rejects_duplicates(self, registry):
        with pytest.raises(ValueError):
            registry.register(Agent(id="pm", role="Another PM"))

        registry.register(Agent(id="devops", role="Platform engineer"))
        assert registry.get("devops").role == "Platform engineer"
        assert registry.unregister("devops")
        assert not registry.unregister("devops")

    def test_find_by_command(self, registry):
        agents = registry.find_by_command("create_prd")
        assert [a.id for a in agents] == ["pm"]


class TestValidateSequence:
    """시퀀스 검증 테스트"""

    def test_static_sequence_is_valid(self, registry):
        result = registry.validate_sequence(get_static_sequence("FULL_STACK"))

        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_unknown_agent_is_error(self, registry):
        sequence = [Step.from_dict({"agent": "wizard", "creates": "spell"})]
        result = registry.validate_sequence(sequence)

        assert not result.valid
        assert "wizard" in result.errors[0]

    def test_unmet_requirement_is_warning(self, registry):
        sequence = [
            Step.from_dict({"agent": "pm", "creates": "prd", "requires": "project-brief"}),
            Step.from_dict({"agent": "architect", "creates": "architecture", "requires": "prd"}),
        ]
        result = registry.validate_sequence(sequence)

        assert result.valid
        assert len(result.warnings) == 1
        assert "project-brief" in result.warnings[0]

    def test_empty_sequence_is_error(self, registry):
        assert not registry.validate_sequence([]).valid

"""
BMAD Orchestrator - 다중 에이전트 워크플로우 오케스트레이션

역할별 에이전트(analyst, pm, architect, ux-expert, dev, qa, sm, po)가
순서대로 산출물을 만들어 넘기는 워크플로우를 실행합니다.

구조:
    core/          에이전트 레지스트리, 메시지 채널, 기본 타입
    executor/      단계 실행 (mock / 언어 모델)
    orchestrator/  워크플로우 엔진, 파서, 체크포인트, 파사드
    persistence/   워크플로우 스냅샷 저장소
    broadcast/     실시간 이벤트 전송
    api/           FastAPI HTTP/WebSocket 표면

사용법:
    from bmad_orchestrator import Orchestrator

    orchestrator = Orchestrator()
    await orchestrator.initialize()
    started = await orchestrator.start_workflow("Build a recipe sharing site")
"""

from .config import Settings, get_settings
from .orchestrator import Orchestrator, WorkflowConfig, WorkflowEngine

__version__ = "1.0.0"

__all__ = [
    "Orchestrator",
    "WorkflowConfig",
    "WorkflowEngine",
    "Settings",
    "get_settings",
    "__version__",
]

# noqa
from mediator.services.conversation_service import ConversationService, MediatorReply
from mediator.services.participant_service import ParticipantService
from mediator.services.safety_service import SafetyClassifier
from mediator.services.session_service import SessionService, TurnResult
from mediator.services.settings_service import SettingsService
from mediator.services.stage_machine import StageDecision, StageMachine

__all__ = [
    "ConversationService",
    "MediatorReply",
    "ParticipantService",
    "SafetyClassifier",
    "SessionService",
    "TurnResult",
    "SettingsService",
    "StageDecision",
    "StageMachine",
]

import uuid
from typing import Dict, Optional, Tuple

from core.exceptions import NotFoundError
from core.logger import logger
from services.ai_service import AIService
from services.evaluation_service import AnswerEvaluator
from services.session_service import QuizCatalog, ResultGateway, SessionController


class SessionRegistry:
    """In-memory live sessions, at most one per user. Nothing here survives a restart."""

    def __init__(self, evaluator: AnswerEvaluator, gateway: ResultGateway,
                 explainer: Optional[AIService] = None, tick_seconds: Optional[float] = None):
        self.evaluator = evaluator
        self.gateway = gateway
        self.explainer = explainer
        self.tick_seconds = tick_seconds
        self._sessions: Dict[str, SessionController] = {}
        self._by_user: Dict[int, str] = {}

    def __len__(self):
        return len(self._sessions)

    async def open(self, catalog: QuizCatalog, user_id: int, quiz_id: int) -> Tuple[str, SessionController]:
        controller = await SessionController.open(
            catalog, quiz_id, user_id, self.evaluator, self.gateway,
            explainer=self.explainer, tick_seconds=self.tick_seconds
        )

        # Starting a new sitting abandons the previous one
        previous = self._by_user.get(user_id)
        if previous is not None:
            await self.discard(previous)

        session_id = uuid.uuid4().hex
        self._sessions[session_id] = controller
        self._by_user[user_id] = session_id
        return session_id, controller

    def get(self, session_id: str) -> SessionController:
        controller = self._sessions.get(session_id)
        if controller is None:
            raise NotFoundError("Session not found")
        return controller

    async def discard(self, session_id: str):
        controller = self._sessions.pop(session_id, None)
        if controller is None:
            raise NotFoundError("Session not found")
        if self._by_user.get(controller.state.user_id) == session_id:
            del self._by_user[controller.state.user_id]
        await controller.close()
        logger.debug("Session removed from registry", session_id=session_id)

    async def close_all(self):
        for session_id in list(self._sessions):
            await self.discard(session_id)

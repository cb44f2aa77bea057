"""Priced Genie query orchestration."""

from dataclasses import dataclass

from genie_tokens.api.schemas import BalanceWarning, ConversationMessage, QueryResponse
from genie_tokens.core.base import BaseService
from genie_tokens.core.exceptions import (
    GenieException,
    InsufficientTokens,
    user_message_for,
)
from genie_tokens.infrastructure.genie_client import GenieAPIClient
from genie_tokens.modules.balance.gate import InsufficientBalanceGate, UpsellContext
from genie_tokens.utils.logger import bind_session

INSUFFICIENT_TOKENS_CHAT_MESSAGE = (
    "I'd love to help, but you don't have enough tokens right now. "
    "Tap the token balance above to get more."
)

CRITICAL_WARNING_LEVEL = "critical"


@dataclass(frozen=True)
class QueryOutcome:
    """Result of a priced query; exactly one of response / upsell / error applies."""

    response: QueryResponse | None = None
    upsell: UpsellContext | None = None
    error_message: str | None = None
    balance_warning: BalanceWarning | None = None
    self_heal_scheduled: bool = False

    @property
    def succeeded(self) -> bool:
        return self.response is not None


class QueryService(BaseService):
    """Sends priced queries and turns every API outcome into something displayable.

    Nothing raised by the API escapes ``ask``: the chat must stay usable.
    """

    def __init__(self, api: GenieAPIClient, gate: InsufficientBalanceGate):
        super().__init__()
        self.api = api
        self.gate = gate
        self._warned_levels: set[str] = set()

    async def ask(
        self,
        text: str,
        session_id: str | None = None,
        is_voice_input: bool = False,
        conversation_history: list[ConversationMessage] | None = None,
        image_base64: str | None = None,
        frames: list[str] | None = None,
    ) -> QueryOutcome:
        if session_id:
            bind_session(session_id=session_id)

        try:
            if image_base64 is not None:
                response = await self.api.query_with_image(
                    text, image_base64, session_id=session_id
                )
            elif frames:
                response = await self.api.query_with_video(
                    text, frames, session_id=session_id
                )
            else:
                response = await self.api.query(
                    text,
                    session_id=session_id,
                    is_voice_input=is_voice_input,
                    conversation_history=conversation_history,
                )
        except InsufficientTokens as e:
            upsell = self.gate.handle_insufficient(e)
            return QueryOutcome(
                upsell=upsell, error_message=INSUFFICIENT_TOKENS_CHAT_MESSAGE
            )
        except GenieException as e:
            self.logger.warning(
                "Genie query failed",
                message_code=e.message_code.value,
                details=e.details,
            )
            return QueryOutcome(error_message=user_message_for(e))

        self_heal_scheduled = await self.gate.apply_query_result(response)
        return QueryOutcome(
            response=response,
            balance_warning=self._surface_warning(response.balance_warning),
            self_heal_scheduled=self_heal_scheduled,
        )

    def reset_session(self) -> None:
        """Start a new chat session; non-critical warnings may show again."""
        self._warned_levels.clear()

    def _surface_warning(self, warning: BalanceWarning | None) -> BalanceWarning | None:
        # Non-critical warnings show once per session
        if warning is None:
            return None
        if warning.level == CRITICAL_WARNING_LEVEL:
            return warning
        if warning.level in self._warned_levels:
            return None
        self._warned_levels.add(warning.level)
        return warning

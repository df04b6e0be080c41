"""Conversation orchestrator: the two-turn "reply or call a tool" protocol."""

import logging
from typing import Dict, List, Optional

from travel_agent.adapters.llm_client import CompletionClient, completion_client
from travel_agent.adapters.mcp_client import CalendarConnector, calendar_connector
from travel_agent.infra.config import config
from travel_agent.infra.error_handler import EndpointError
from travel_agent.infra.metrics import chat_requests_total
from travel_agent.models.conversation import ModelEndpoint
from travel_agent.models.tool import ToolCall
from travel_agent.services.argument_normalizer import normalize_arguments
from travel_agent.services.prompt_builder import build_decision_messages, build_summary_messages
from travel_agent.services.tool_call_extractor import extract_tool_call_json, parse_tool_call
from travel_agent.services.tool_execution_engine import ToolDispatcher, tool_dispatcher
from travel_agent.services.tool_registry import ToolRegistry, tool_registry

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "I'm having trouble processing your request right now. Please try again in a moment."

DECISION_MAX_TOKENS = 500
DECISION_TEMPERATURE = 0.1  # Low temp for precise tool calling
SUMMARY_MAX_TOKENS = 400
SUMMARY_TEMPERATURE = 0.3  # Slightly higher for natural language


class AgentService:
    """Turns a user message into a reply, calling at most one tool on the way."""

    def __init__(
        self,
        registry: ToolRegistry = tool_registry,
        connector: CalendarConnector = calendar_connector,
        dispatcher: ToolDispatcher = tool_dispatcher,
        llm: CompletionClient = completion_client,
        endpoints: Optional[List[ModelEndpoint]] = None,
        call_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.connector = connector
        self.dispatcher = dispatcher
        self.llm = llm
        self.endpoints = sorted(endpoints or config.MODEL_ENDPOINTS, key=lambda e: e.priority)
        self.call_timeout = call_timeout or config.LLM_CALL_TIMEOUT

    async def generate_response(self, user_message: str, caller_id: int) -> str:
        """
        Produce the reply for one user message.

        Never raises for internal failures: every failure resolves to
        user-facing text. Cancellation still propagates so an abandoned
        request stops its in-flight calls.

        Args:
            user_message: Free-text user request
            caller_id: Authenticated user id

        Returns:
            Reply text
        """
        try:
            return await self._respond(user_message, caller_id)
        except Exception as e:
            logger.error(f"Unhandled error while answering user {caller_id}: {e}", exc_info=True)
            chat_requests_total.labels(outcome="apology").inc()
            return APOLOGY_MESSAGE

    async def _respond(self, user_message: str, caller_id: int) -> str:
        await self.connector.ensure_connected()

        messages = build_decision_messages(self.registry.manifest(), user_message)
        decision = await self._complete_with_fallback(messages, DECISION_MAX_TOKENS, DECISION_TEMPERATURE)
        if decision is None:
            chat_requests_total.labels(outcome="apology").inc()
            return APOLOGY_MESSAGE

        tool_call_text = extract_tool_call_json(decision)
        if tool_call_text is None:
            chat_requests_total.labels(outcome="plain_reply").inc()
            return decision

        tool_call = parse_tool_call(tool_call_text)
        if tool_call is None:
            # JSON-shaped but not a usable tool call: treat as conversation
            chat_requests_total.labels(outcome="plain_reply").inc()
            return decision

        args = normalize_arguments(tool_call.tool, tool_call.args)
        logger.info(f"Executing tool '{tool_call.tool}' for user {caller_id}")
        result = await self.dispatcher.execute(ToolCall(tool=tool_call.tool, args=args), caller_id)

        if result.short_circuit:
            chat_requests_total.labels(outcome="short_circuit").inc()
            return result.text

        summary_messages = build_summary_messages(user_message, tool_call_text, result.text)
        summary = await self._complete_with_fallback(summary_messages, SUMMARY_MAX_TOKENS, SUMMARY_TEMPERATURE)
        if summary is None:
            # The tool may already have changed a booking; report its outcome as is
            chat_requests_total.labels(outcome="tool_result").inc()
            return result.text

        chat_requests_total.labels(outcome="tool_reply").inc()
        return summary

    async def _complete_with_fallback(
        self,
        messages: List[Dict[str, str]],
        max_tokens: int,
        temperature: float,
    ) -> Optional[str]:
        """
        Try each endpoint in priority order, starting from the top every time.

        Returns:
            First successful completion, or None when every endpoint failed
        """
        for endpoint in self.endpoints:
            try:
                return await self.llm.complete(
                    endpoint,
                    messages,
                    max_tokens=max_tokens,
                    temperature=temperature,
                    timeout=self.call_timeout,
                )
            except EndpointError as e:
                logger.warning(f"Endpoint {endpoint.identifier} failed ({e.category.value}): {e.message}")
                continue

        logger.error(f"All {len(self.endpoints)} model endpoints failed")
        return None


agent_service = AgentService()

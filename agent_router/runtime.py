"""Application runtime composition helpers."""
from __future__ import annotations

import logging
from functools import lru_cache

from agent_router.agents.llm_agent import LLMAgent
from agent_router.agents.product import ProductAgent
from agent_router.config import config
from agent_router.core.context_store import InMemoryContextStore
from agent_router.orchestration.intent import KeywordIntentClassifier
from agent_router.orchestration.orchestrator import Orchestrator
from agent_router.orchestration.registry import AgentRegistry
from agent_router.services.event_store import InMemoryEventStore
from agent_router.services.inference import OpenAIInferenceProvider
from agent_router.services.listing_tools import listing_tools
from agent_router.services.llm_pool import LLMPool
from agent_router.services.tools import StaticToolResolver, ToolExecutor

logger = logging.getLogger(__name__)

# (agent id, display name, intents, system prompt)
_LLM_AGENTS = (
    (
        "analytics_agent",
        "Analytics",
        ("analytics",),
        "You are an e-commerce analytics assistant. Explain sales and listing performance clearly.",
    ),
    (
        "pricing_agent",
        "Pricing",
        ("pricing",),
        "You are a pricing assistant. Help the user compare prices and choose a pricing strategy.",
    ),
    (
        "general_agent",
        "General Assistant",
        ("general",),
        "You are a helpful assistant for an e-commerce seller. Answer briefly.",
    ),
)


@lru_cache
def get_context_store() -> InMemoryContextStore:
    return InMemoryContextStore(
        default_expiration=config.context_store.default_expiration,
        cleanup_interval=config.context_store.cleanup_interval,
    )


@lru_cache
def get_event_store() -> InMemoryEventStore:
    return InMemoryEventStore()


@lru_cache
def get_tool_executor() -> ToolExecutor:
    return ToolExecutor(StaticToolResolver(listing_tools()))


@lru_cache
def get_llm_pool() -> LLMPool:
    pool = LLMPool()

    # Register Azure OpenAI if configured
    if config.azure_openai:
        pool.register_azure_openai(config.azure_openai.deployment_name, config.azure_openai)
    if config.openai:
        pool.register_openai(config.openai.model, config.openai)

    return pool


@lru_cache
def get_registry() -> AgentRegistry:
    registry = AgentRegistry()
    registry.register(ProductAgent(get_tool_executor()))

    model = config.default_model
    if model is None:
        logger.warning("No LLM provider configured; only scripted agents are available")
        return registry

    provider = OpenAIInferenceProvider(get_llm_pool(), model, temperature=config.temperature)
    for agent_id, name, intents, prompt in _LLM_AGENTS:
        registry.register(
            LLMAgent(
                agent_id=agent_id,
                name=name,
                intents=intents,
                provider=provider,
                description=f"{name} agent backed by {model}",
                system_prompt=prompt,
                max_tool_rounds=config.max_tool_rounds,
            )
        )
    return registry


@lru_cache
def get_orchestrator() -> Orchestrator:
    return Orchestrator(
        registry=get_registry(),
        context_store=get_context_store(),
        event_store=get_event_store(),
        intent_classifier=KeywordIntentClassifier(),
    )

"""LLM factory for the code-repair and analysis service."""

from langchain_openai import ChatOpenAI
import structlog

from ..config import Settings

logger = structlog.get_logger()

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class LLMFactory:
    """Creates chat models for the configured provider.

    Supports:
    - OpenAI: direct connection (default)
    - OpenRouter: OpenAI-compatible gateway to other model vendors
    """

    @staticmethod
    def create_llm(settings: Settings) -> ChatOpenAI:
        """Create a chat model from settings.

        Raises:
            ValueError: If the provider's API key is not configured
        """
        logger.info(
            "llm_created",
            provider=settings.llm_provider,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
        )
        if settings.llm_provider == "openrouter":
            return LLMFactory._create_openrouter_llm(settings)
        return LLMFactory._create_openai_llm(settings)

    @staticmethod
    def _create_openrouter_llm(settings: Settings) -> ChatOpenAI:
        if not settings.open_router_key:
            raise ValueError("OPEN_ROUTER_KEY is not set. Please set it to use OpenRouter.")

        return ChatOpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=settings.open_router_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout_sec,
            default_headers={"X-Title": "Autodeploy"},
        )

    @staticmethod
    def _create_openai_llm(settings: Settings) -> ChatOpenAI:
        if not settings.openai_api_key:
            raise ValueError(
                "OPENAI_API_KEY is not set. Please set it to use direct OpenAI connection."
            )

        return ChatOpenAI(
            api_key=settings.openai_api_key,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout_sec,
        )

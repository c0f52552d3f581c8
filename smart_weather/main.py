# main.py
"""Main entry point for the smart weather query router."""

import asyncio
import json
import logging
import sys
from typing import Optional

import click

from smart_weather.core.config import Config, RouterConfig
from smart_weather.core.settings import settings
from smart_weather.query_handlers.advice_handler import AdviceHandler
from smart_weather.query_handlers.location_config import initialize_location_config
from smart_weather.query_handlers.location_handler import LocationSearchHandler
from smart_weather.query_handlers.router import QueryRouter
from smart_weather.services.tool_handlers import ToolHandlerService

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=level or settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def build_router(use_ai: bool = True) -> QueryRouter:
    """Build the router, with the Groq-backed AI parser when an API key is available"""
    ai_parser = None
    api_key = Config.get_groq_api_key() if use_ai else None

    if api_key:
        from smart_weather.providers import GroqLLM, LLMQueryParser

        ai_parser = LLMQueryParser(GroqLLM(api_key=api_key))
        logger.info(f"AI parsing enabled with {ai_parser.model_name}")
    else:
        logger.info("AI parsing disabled, using rule-based parser only")

    return QueryRouter(ai_parser=ai_parser, config=RouterConfig.from_settings())


def build_service(use_ai: bool = True) -> ToolHandlerService:
    """Tool service with the offline capabilities wired in.

    Weather data backends are supplied by the hosting application; without
    one, weather searches answer with the routing decision.
    """
    location_config = initialize_location_config()
    return ToolHandlerService(
        router=build_router(use_ai),
        location_handler=LocationSearchHandler(location_config=location_config),
        advice_handler=AdviceHandler(),
    )


async def run(tool: str, query: str, context: Optional[str], use_ai: bool) -> int:
    service = build_service(use_ai)
    response = await service.handle_tool_call(tool, {"query": query, "context": context})

    for segment in response.content:
        click.echo(segment.text)
        click.echo()
    return 1 if response.is_error else 0


TOOL_NAMES = [tool["name"] for tool in ToolHandlerService.get_tool_definitions()["tools"]]


@click.command()
@click.argument("query", required=False)
@click.option("--context", default=None, help="Optional context, e.g. 'location: Taipei, fahrenheit'")
@click.option("--tool", type=click.Choice(TOOL_NAMES), default="search_weather", show_default=True)
@click.option("--no-ai", is_flag=True, help="Use the rule-based parser only")
@click.option("--list-tools", is_flag=True, help="Print tool definitions and exit")
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def main(query, context, tool, no_ai, list_tools, log_level):
    """Route a natural-language weather QUERY, or the sample queries when omitted."""
    Config.load_env_for_development()
    configure_logging(log_level)

    if list_tools:
        click.echo(json.dumps(ToolHandlerService.get_tool_definitions(), ensure_ascii=False, indent=2))
        return

    queries = [query] if query else Config.SAMPLE_QUERIES
    status = 0
    for text in queries:
        status |= asyncio.run(run(tool, text, context, use_ai=not no_ai))
    sys.exit(status)


if __name__ == "__main__":
    main()

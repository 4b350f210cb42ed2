"""
Agent Gateway - Main Entry Point

CLI for exercising the provider gateway from a terminal.
Sends one chat completion, lists a provider's models, or shows which
providers are configured.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from gateway.config.loader import build_provider_settings, load_gateway_config
from gateway.config.schema import GatewayConfig
from gateway.exceptions import GatewayError
from gateway.llm.models import AgentContext, ChatRequest, ModelParams, ProviderConfig
from gateway.llm.router import ProviderRouter
from gateway.observability.logging_config import configure_logging

# Load environment (override=True to ensure .env values take precedence)
root_env = Path(__file__).parent / ".env"
if root_env.exists():
    load_dotenv(root_env, override=True)
else:
    load_dotenv(override=True)

app = typer.Typer(
    name="gateway",
    help="Agent Gateway - one chat request, any provider",
)
console = Console()
logger = logging.getLogger("gateway")


def _get_config(config_path: Optional[str]) -> GatewayConfig:
    """Load and return gateway config, with friendly error on failure."""
    try:
        config = load_gateway_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(Panel(
            f"[red]{e}[/]",
            title="⚠ Configuration Error",
            border_style="red",
        ))
        raise typer.Exit(code=1)

    configure_logging(
        env=config.logging.env,
        level=getattr(logging, config.logging.level),
    )
    return config


def _print_error(e: GatewayError) -> None:
    console.print(Panel(
        f"[red]{e.message}[/]\n\n"
        f"Kind: [cyan]{e.kind.value}[/]\n"
        f"Status: [cyan]{e.status}[/]\n"
        f"Provider: [cyan]{e.provider or 'n/a'}[/]",
        title="⚠ Gateway Error",
        border_style="red",
    ))


def _metrics_table(router: ProviderRouter) -> Table:
    table = Table(title="Provider Instances")
    table.add_column("Instance", style="cyan")
    table.add_column("Requests", justify="right")
    table.add_column("Errors", justify="right", style="red")
    table.add_column("Avg Latency (ms)", justify="right", style="yellow")
    table.add_column("Error Rate", justify="right")

    for key, m in router.get_provider_metrics().items():
        table.add_row(
            key,
            str(m["requests"]),
            str(m["errors"]),
            f"{m['avgLatency']:.1f}",
            f"{m['errorRate']:.1f}%",
        )
    return table


# =========================================================================
# Commands
# =========================================================================


@app.command()
def chat(
    prompt: str = typer.Argument(..., help="User message to send"),
    model: str = typer.Option("gpt-4o-mini", help="Model id; the provider is inferred from it"),
    provider: Optional[str] = typer.Option(None, help="Force a provider instead of inferring it"),
    system: Optional[str] = typer.Option(None, help="Optional system prompt"),
    endpoint: Optional[str] = typer.Option(None, help="Endpoint override for this call"),
    temperature: Optional[float] = typer.Option(None, help="Sampling temperature"),
    max_tokens: Optional[int] = typer.Option(None, help="Completion token limit"),
    agent_id: Optional[str] = typer.Option(None, help="Agent id; enables affinity, metrics and failover"),
    conversation_id: str = typer.Option("", help="Conversation id for the agent context"),
    role: str = typer.Option("", help="Agent role for the agent context"),
    priority: int = typer.Option(3, min=1, max=5, help="Agent priority (failover from 4)"),
    raw_json: bool = typer.Option(False, "--json", help="Print the canonical envelope as JSON"),
    config: Optional[str] = typer.Option(None, help="Path to gateway.yaml"),
):
    """Send one chat completion through the gateway."""

    async def _run():
        gateway_config = _get_config(config)
        router = ProviderRouter.from_config(gateway_config)

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        request = ChatRequest(
            messages=messages,
            model=model,
            provider=provider,
            endpoint=endpoint,
            params=ModelParams.from_raw(
                {"temperature": temperature, "max_tokens": max_tokens}
            ),
            agent_context=(
                AgentContext(
                    agent_id=agent_id,
                    conversation_id=conversation_id,
                    role=role,
                    priority=priority,
                )
                if agent_id else None
            ),
        )

        try:
            completion = await router.complete(request)
        except GatewayError as e:
            await router.aclose()
            _print_error(e)
            raise typer.Exit(code=1)

        if raw_json:
            console.print_json(json.dumps(completion.to_dict()))
        else:
            usage = completion.usage
            console.print(Panel(
                completion.text or "[dim](empty response)[/]",
                title=f"{completion.provider} · {completion.model}",
                subtitle=(
                    f"{usage.prompt_tokens} in / {usage.completion_tokens} out · "
                    f"finish={completion.choices[0].finish_reason}"
                ),
            ))
            if completion.agent_metadata is not None:
                meta = completion.agent_metadata
                console.print(
                    f"[dim]instance={meta.provider_instance} "
                    f"response_time={meta.response_time}ms"
                    f"{' failover=true' if meta.failover else ''}[/]"
                )

        if completion.agent_metadata is not None:
            console.print(_metrics_table(router))

        await router.aclose()

    asyncio.run(_run())


@app.command()
def models(
    provider: str = typer.Argument(..., help="openai, anthropic, ollama or openrouter"),
    endpoint: Optional[str] = typer.Option(None, help="Endpoint to query instead of the default"),
    config: Optional[str] = typer.Option(None, help="Path to gateway.yaml"),
):
    """List the models a provider offers."""

    async def _run():
        gateway_config = _get_config(config)
        router = ProviderRouter.from_config(gateway_config)

        try:
            found = await router.list_models(provider, ProviderConfig(endpoint=endpoint))
        except GatewayError as e:
            _print_error(e)
            raise typer.Exit(code=1)
        finally:
            await router.aclose()

        table = Table(title=f"{provider} models: {len(found)}")
        table.add_column("#", style="dim")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="white")
        for i, m in enumerate(found, 1):
            table.add_row(str(i), str(m.get("id", "")), str(m.get("name", "")))
        console.print(table)

    asyncio.run(_run())


@app.command()
def providers(
    config: Optional[str] = typer.Option(None, help="Path to gateway.yaml"),
):
    """Show configured providers and whether their credentials are set."""
    gateway_config = _get_config(config)
    settings = build_provider_settings(gateway_config)

    table = Table(title="Agent Gateway - Providers")
    table.add_column("Provider", style="cyan")
    table.add_column("Endpoint", style="white")
    table.add_column("Credential", style="green")
    table.add_column("Fallback", style="yellow")
    table.add_column("Timeout", justify="right")

    for name, s in settings.items():
        if not s.requires_key:
            credential = "[dim]not required[/]"
        elif s.env_key():
            credential = f"{s.api_key_env} ✓"
        else:
            credential = f"[red]{s.api_key_env} missing[/]"

        fallback_parts = []
        if s.fallback_key_env and os.environ.get(s.fallback_key_env):
            fallback_parts.append("key")
        if s.fallback_endpoint():
            fallback_parts.append(s.fallback_endpoint())
        fallback = ", ".join(fallback_parts) if fallback_parts else "[dim]none[/]"

        table.add_row(
            name,
            s.env_endpoint() or s.default_endpoint,
            credential,
            fallback,
            f"{s.timeout_seconds:g}s",
        )

    console.print(table)
    console.print(
        f"[dim]Failover from priority {gateway_config.failover.min_priority}, "
        f"latency smoothing {gateway_config.metrics.smoothing}[/]"
    )


if __name__ == "__main__":
    app()

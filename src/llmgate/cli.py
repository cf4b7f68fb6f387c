from __future__ import annotations
import asyncio
import logging
from pathlib import Path
from typing import Any, Dict

import typer

from .bootstrap import build_gateway
from .core.errors import ConfigError, ProviderError
from .core.health import check_deployments
from .core.schema import Message, UnifiedRequest
from .core.session import GatewaySession

app = typer.Typer(add_completion=False)

DEFAULT_CONFIG = Path("config/deployments.yaml")


@app.callback()
def main(log_level: str = typer.Option("WARNING", help="Python logging level")):
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build(config: Path) -> Dict[str, Any]:
    try:
        return build_gateway(config)
    except (ConfigError, FileNotFoundError) as e:
        typer.echo(f"[config] {e}", err=True)
        raise typer.Exit(code=2)


async def _close_adapters(ctx: Dict[str, Any]) -> None:
    for adapter in ctx["adapters"].values():
        await adapter.aclose()


@app.command()
def validate(config: Path = typer.Option(DEFAULT_CONFIG, "--config")):
    """Validate every deployment in the config."""
    ctx = _build(config)
    for dep in ctx["deployments"].list():
        info = ctx["adapters"][dep.id].get_info()
        typer.echo(f"ok  {dep.id}  ({info.name})")
    asyncio.run(_close_adapters(ctx))


@app.command()
def health(config: Path = typer.Option(DEFAULT_CONFIG, "--config")):
    """Health-check every deployment concurrently."""
    ctx = _build(config)

    async def run():
        try:
            return await check_deployments(ctx["adapters"], ctx["deployments"].list())
        finally:
            await _close_adapters(ctx)

    reports = asyncio.run(run())
    unhealthy = 0
    for dep_id in sorted(reports):
        r = reports[dep_id]
        if r.healthy:
            typer.echo(f"UP    {dep_id}  {r.latency_ms} ms")
        else:
            unhealthy += 1
            typer.echo(f"DOWN  {dep_id}  {r.error}")
    if unhealthy:
        raise typer.Exit(code=1)


@app.command()
def chat(
    deployment_id: str,
    prompt: str,
    config: Path = typer.Option(DEFAULT_CONFIG, "--config"),
    stream: bool = typer.Option(False, "--stream/--no-stream"),
    max_tokens: int = typer.Option(0, help="0 leaves it to the backend"),
    temperature: float = typer.Option(0.0, help="0 leaves it to the backend"),
):
    """Send one prompt through a deployment and print the reply."""
    ctx = _build(config)
    dep = ctx["deployments"].get(deployment_id)
    if dep is None:
        typer.echo(f"Unknown deployment '{deployment_id}'", err=True)
        raise typer.Exit(code=2)

    req = UnifiedRequest(
        model=dep.model_id or dep.provider_model_id,
        messages=[Message(role="user", content=prompt)],
        max_tokens=max_tokens,
        temperature=temperature,
        stream=stream,
    )

    async def run():
        audit = ctx["audit"].open()
        session = GatewaySession(ctx["adapters"][dep.id], dep, audit=audit)
        try:
            if stream:
                async for piece in session.complete_stream(req):
                    typer.echo(piece, nl=False)
                typer.echo("")
            else:
                resp = await session.complete(req)
                typer.echo(resp.content)
        finally:
            audit.close()
            await _close_adapters(ctx)

    try:
        asyncio.run(run())
    except ProviderError as e:
        typer.echo(f"\n[error] {e}", err=True)
        raise typer.Exit(code=1)

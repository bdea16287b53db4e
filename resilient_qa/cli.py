"""CLI entry point for the resilient execution core."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from resilient_qa.ai.client import AIClient
from resilient_qa.driver.playwright_driver import launch_driver
from resilient_qa.executor.executor import ExecutorCapabilities, ToolExecutor
from resilient_qa.executor.recovery import AIRecoveryAdvisor
from resilient_qa.executor.tool_registry import DEFAULT_REGISTRY
from resilient_qa.healing.healer import SelectorHealer
from resilient_qa.healing.history_store import InMemoryHealingHistoryStore, JsonHealingHistoryStore
from resilient_qa.healing.llm_generator import AISelectorGenerator
from resilient_qa.models.config import FrameworkConfig
from resilient_qa.models.healing import HealingContext
from resilient_qa.models.page_state import PageState
from resilient_qa.models.tool_call import ToolCall
from resilient_qa.models.visual import CheckpointType, ScreenshotRegion, VisualCheckpoint
from resilient_qa.visual.baseline_store import BaselineStore
from resilient_qa.visual.comparator import VisualComparator
from resilient_qa.visual.phash import hash_similarity, hash_to_hex, perceptual_hash
from resilient_qa.visual.service import VisualComparisonService

console = Console()


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _parse_region(value: Optional[str]) -> Optional[ScreenshotRegion]:
    if not value:
        return None
    try:
        x, y, w, h = (int(part) for part in value.split(","))
    except ValueError:
        raise click.BadParameter("region must be four integers: x,y,width,height") from None
    return ScreenshotRegion(x=x, y=y, width=w, height=h)


def _build_healer(cfg: FrameworkConfig, use_llm: bool) -> SelectorHealer:
    if cfg.healing_history_path:
        store = JsonHealingHistoryStore(cfg.healing_history_path)
    else:
        store = InMemoryHealingHistoryStore()

    generator = None
    if use_llm and cfg.healing.enable_llm:
        generator = AISelectorGenerator(AIClient(model=cfg.ai.model, max_tokens=cfg.ai.max_tokens, api_key=cfg.ai.api_key))
    return SelectorHealer(cfg.healing, candidate_generator=generator, history_store=store)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Resilient browser tool execution, selector healing and visual comparison"""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default="resilient-qa.json", help="Config file path")
def init(config: str) -> None:
    """Create a default configuration file."""
    config_path = Path(config)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            return

    FrameworkConfig().save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print(f"  [blue]resilient-qa run calls.json -c {config_path}[/blue]")


@cli.command()
def tools() -> None:
    """List the registered browser tools."""
    table = Table(title="Registered Tools")
    table.add_column("Tool", style="bold")
    table.add_column("Required")
    table.add_column("Optional", style="dim")
    table.add_column("Description")
    for definition in DEFAULT_REGISTRY.definitions():
        required = definition.required_parameters
        optional = [name for name in definition.parameters if name not in required]
        table.add_row(definition.name, ", ".join(required), ", ".join(optional), definition.description)
    console.print(table)


@cli.command()
@click.argument("baseline", type=click.Path(exists=True, dir_okay=False))
@click.argument("actual", type=click.Path(exists=True, dir_okay=False))
@click.option("--tolerance", "-t", default=0.01, show_default=True, help="Allowed fraction of differing pixels")
@click.option("--type", "checkpoint_type", default="full_page", show_default=True, help="Checkpoint type")
@click.option("--region", default=None, help="Crop region as x,y,width,height")
@click.option("--diff-out", default=None, help="Write the diff image to this path")
@click.option("--config", "-c", default="resilient-qa.json", help="Config file path")
def compare(
    baseline: str,
    actual: str,
    tolerance: float,
    checkpoint_type: str,
    region: Optional[str],
    diff_out: Optional[str],
    config: str,
) -> None:
    """Compare two screenshots and report the difference."""
    cfg = FrameworkConfig.load(config)
    try:
        kind = CheckpointType.parse(checkpoint_type)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--type") from None

    checkpoint = VisualCheckpoint(name=Path(actual).stem, type=kind, region=_parse_region(region), tolerance=tolerance)
    metrics = VisualComparator(cfg.visual).compare(Path(baseline).read_bytes(), Path(actual).read_bytes(), checkpoint)

    table = Table(title="Visual Comparison")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    status = "[green]PASSED[/green]" if metrics.passed else "[red]FAILED[/red]"
    table.add_row("Result", status)
    table.add_row("Difference", f"{metrics.difference_percentage:.4%}")
    table.add_row("Tolerance", f"{tolerance:.4%}")
    table.add_row("Pixels different", f"{metrics.pixels_different} / {metrics.total_pixels}")
    if metrics.ssim_score is not None:
        table.add_row("SSIM", f"{metrics.ssim_score:.4f}")
    if metrics.difference_type is not None:
        table.add_row("Difference type", metrics.difference_type.value)
    table.add_row("Regions", str(len(metrics.regions)))
    if metrics.error_message:
        table.add_row("Error", f"[red]{metrics.error_message}[/red]")
    console.print(table)

    if diff_out and metrics.diff_image is not None:
        Path(diff_out).write_bytes(metrics.diff_image)
        console.print(f"Diff image: [blue]{diff_out}[/blue]")

    if not metrics.passed:
        sys.exit(1)


@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False))
@click.argument("other", required=False, type=click.Path(exists=True, dir_okay=False))
def phash(image: str, other: Optional[str]) -> None:
    """Print an image's perceptual hash, or the similarity of two images."""
    first = perceptual_hash(Path(image).read_bytes())
    if other is None:
        console.print(hash_to_hex(first))
        return
    second = perceptual_hash(Path(other).read_bytes())
    console.print(f"{hash_to_hex(first)}  {hash_to_hex(second)}  similarity={hash_similarity(first, second):.4f}")


@cli.command()
@click.argument("page_state_file", type=click.Path(exists=True, dir_okay=False))
@click.argument("selector")
@click.option("--expected-text", default=None, help="Text the element is expected to contain")
@click.option("--candidates", "show_candidates", is_flag=True, help="Also list every candidate found")
@click.option("--config", "-c", default="resilient-qa.json", help="Config file path")
def heal(page_state_file: str, selector: str, expected_text: Optional[str], show_candidates: bool, config: str) -> None:
    """Heal SELECTOR offline against a saved page snapshot."""
    cfg = FrameworkConfig.load(config)
    with open(page_state_file) as f:
        page_state = PageState(**json.load(f))

    healer = _build_healer(cfg, use_llm=False)
    healed = asyncio.run(healer.heal(selector, page_state, expected_text))

    if show_candidates:
        context = HealingContext(
            failed_selector=selector,
            page_state=page_state,
            expected_text=expected_text,
            min_confidence_threshold=cfg.healing.min_confidence_threshold,
        )
        candidates = asyncio.run(healer.find_selector_candidates(context))
        table = Table(title="Selector Candidates")
        table.add_column("Selector", style="bold")
        table.add_column("Strategy")
        table.add_column("Confidence", justify="right")
        for candidate in candidates:
            table.add_row(candidate.selector, candidate.strategy.value, f"{candidate.final_confidence:.3f}")
        console.print(table)

    if healed is None:
        console.print(f"[red]No replacement found for[/red] {selector}")
        sys.exit(1)
    console.print(
        f"[green]Healed:[/green] {healed.original_selector} -> [bold]{healed.new_selector}[/bold] "
        f"({healed.strategy.value}, confidence {healed.confidence_score:.3f})"
    )


async def _run_calls(cfg: FrameworkConfig, calls: list[ToolCall], url: Optional[str]) -> list:
    use_ai = bool(cfg.ai.api_key or os.environ.get("ANTHROPIC_API_KEY"))
    capabilities = ExecutorCapabilities(
        healer=_build_healer(cfg, use_llm=use_ai),
        visual_service=VisualComparisonService(BaselineStore(cfg.visual.baseline_dir), VisualComparator(cfg.visual)),
    )
    if use_ai:
        client = AIClient(model=cfg.ai.model, max_tokens=cfg.ai.max_tokens, api_key=cfg.ai.api_key)
        capabilities.recovery_advisor = AIRecoveryAdvisor(client, max_calls=cfg.ai.max_recovery_calls)

    async with launch_driver(cfg.browser, timeout_ms=cfg.executor.effective_action_timeout_ms) as driver:
        executor = ToolExecutor(driver, cfg.executor, capabilities)
        if url:
            calls = [ToolCall(tool_name="navigate", parameters={"url": url}, reasoning="Open start page")] + calls
        return await executor.execute_sequence(calls)


@cli.command()
@click.argument("calls_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--url", "-u", default=None, help="Navigate here before the first call")
@click.option("--config", "-c", default="resilient-qa.json", help="Config file path")
def run(calls_file: str, url: Optional[str], config: str) -> None:
    """Execute a JSON list of tool calls against a live browser."""
    cfg = FrameworkConfig.load(config)
    with open(calls_file) as f:
        raw_calls = json.load(f)
    if not raw_calls and not url:
        console.print("[yellow]No tool calls to execute[/yellow]")
        return
    calls = [ToolCall(**raw) for raw in raw_calls]

    results = asyncio.run(_run_calls(cfg, calls, url))

    table = Table(title="Execution Results")
    table.add_column("#", justify="right")
    table.add_column("Tool", style="bold")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Detail")
    for i, result in enumerate(results, 1):
        status = "[green]ok[/green]" if result.success else "[red]failed[/red]"
        detail = result.error_message if not result.success else ""
        if result.success and isinstance(result.result, dict) and result.result.get("healed"):
            detail = f"healed -> {result.result['healed_selector']}"
        table.add_row(
            str(i), result.tool_name, status, str(result.attempt_count),
            f"{result.execution_duration_ms:.0f}ms", detail,
        )
    console.print(table)

    if not all(r.success for r in results):
        sys.exit(1)


if __name__ == "__main__":
    cli()

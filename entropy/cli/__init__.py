"""
entropy.cli
-----------

Operator CLI for the entropy provider.

Commands:
  - commitment : Build each configured chain and print its commitment.
  - inspect    : Show chain parameters and one revealed element.
  - simulate   : Offline request → reveal → fulfill run with audit output.
  - audit      : Black-box audit of a running provider over HTTP.
  - serve      : Run the HTTP API (uvicorn).

Configuration comes from ``--config`` (JSON/YAML) or, when omitted, from
``ENTROPY_*`` environment variables (see `entropy.config`).

Example:
  python -m entropy.cli commitment --config provider.yaml
  python -m entropy.cli simulate --samples 1000 --out-dir ./audit
  python -m entropy.cli audit --chain-id mainnet --samples 100 --config provider.yaml
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

import typer

from ..chain.pebble import PebbleHashChain
from ..config import EntropyConfig, load_config
from ..errors import EntropyError
from ..server import build_chain, serve
from ..simulation import (DEFAULT_SIM_SECRET, DEFAULT_SIM_STRIDE, LiveAuditError,
                          format_audit_line, run_audit, run_live_audit,
                          write_audit_files)
from ..utils.bytes import from_hex, to_hex

__all__ = ["app", "main"]

app = typer.Typer(
    name="entropy",
    help="Hash-chain entropy provider: chains, simulation and audits.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def _root(
    log_level: str = typer.Option("WARNING", "--log-level", help="Python logging level."),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(config: Optional[str]) -> EntropyConfig:
    try:
        return load_config(config)
    except (OSError, ValueError) as e:
        raise SystemExit(f"Invalid configuration: {e}")


def _chain(cfg: EntropyConfig, chain_id: str) -> PebbleHashChain:
    if chain_id not in cfg.chain_ids:
        raise SystemExit(f"Unknown chain id {chain_id!r} (configured: {', '.join(cfg.chain_ids)})")
    return build_chain(cfg, chain_id)


@app.command("commitment")
def cmd_commitment(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file."),
) -> None:
    """Print the commitment (d_0) of every configured chain."""
    cfg = _load(config)
    out = {cid: to_hex(_chain(cfg, cid).commitment) for cid in cfg.chain_ids}
    typer.echo(json.dumps(out, indent=2, sort_keys=True))


@app.command("inspect")
def cmd_inspect(
    chain_id: str = typer.Option(..., "--chain-id", help="Configured chain id."),
    index: int = typer.Option(0, "--index", "-i", min=0, help="Chain index to reveal."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file."),
) -> None:
    """Show chain parameters and the element at --index."""
    cfg = _load(config)
    chain = _chain(cfg, chain_id)
    try:
        value = chain.reveal(index)
    except EntropyError as e:
        raise SystemExit(str(e))
    typer.echo(
        json.dumps(
            {
                "chain_id": chain_id,
                "length": len(chain),
                "stride": chain.stride,
                "pebbles": chain.pebble_count,
                "commitment": to_hex(chain.commitment),
                "index": index,
                "value": to_hex(value),
            },
            indent=2,
        )
    )


@app.command("simulate")
def cmd_simulate(
    samples: int = typer.Option(1000, "--samples", "-n", min=1, help="Number of samples."),
    secret: str = typer.Option(
        DEFAULT_SIM_SECRET.hex(), "--secret", help="32-byte hex chain seed for the simulated provider."
    ),
    stride: int = typer.Option(DEFAULT_SIM_STRIDE, "--stride", min=1, help="Pebble stride."),
    out_dir: Optional[str] = typer.Option(None, "--out-dir", help="Write audit files here."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print audit lines."),
) -> None:
    """Offline run of the full commit–reveal flow with reproducible inputs."""
    try:
        records = run_audit(samples, secret=from_hex(secret), stride=stride)
    except (EntropyError, ValueError) as e:
        raise SystemExit(f"Simulation failed: {e}")
    if not quiet:
        for r in records:
            typer.echo(format_audit_line(r))
    if out_dir:
        numbers, trail = write_audit_files(records, out_dir)
        typer.echo(f"wrote {numbers} and {trail}", err=True)
    typer.echo(f"verified {len(records)} samples", err=True)


@app.command("audit")
def cmd_audit(
    chain_id: str = typer.Option(..., "--chain-id", help="Chain id to query."),
    samples: int = typer.Option(100, "--samples", "-n", min=1, help="Number of samples."),
    server_url: str = typer.Option("http://localhost:8080", "--server-url", help="Provider base URL."),
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Provider config; bounds --samples by chain_length."
    ),
    out_dir: str = typer.Option(".", "--out-dir", help="Where to write the audit files."),
) -> None:
    """Fetch revelations from a live provider and verify each one locally."""
    chain_length = _load(config).provider.chain_length if config else None
    try:
        records = run_live_audit(server_url, chain_id, samples, chain_length=chain_length)
    except ValueError as e:
        raise SystemExit(str(e))
    except (LiveAuditError, EntropyError) as e:
        raise SystemExit(f"Audit failed: {e}")
    numbers, trail = write_audit_files(records, out_dir)
    typer.echo(f"Live audit complete: {len(records)} samples. Files: {numbers}, {trail}")


@app.command("serve")
def cmd_serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON/YAML config file."),
    host: Optional[str] = typer.Option(None, "--host", help="Override server.host."),
    port: Optional[int] = typer.Option(None, "--port", help="Override server.port."),
) -> None:
    """Run the provider HTTP API."""
    cfg = _load(config)
    if host:
        cfg.server.host = host
    if port:
        cfg.server.port = port
    logging.getLogger().setLevel(getattr(logging, cfg.log_level.upper(), logging.INFO))
    serve(cfg)


def main() -> None:  # pragma: no cover
    try:
        app(prog_name="entropy")
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()

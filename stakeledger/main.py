"""Stake Ledger CLI."""
import os
import sys
import json
import functools
from decimal import Decimal, InvalidOperation, localcontext
from pathlib import Path
from typing import Optional
import click
from loguru import logger

from .core.config import StakingConfig, get_data_dir, load_config, save_config
from .core.errors import StakingError
from .core.service import StakingService
from .core.store import StateStore
from .core.transfer import (
    YOCTO_PER_NEAR,
    InMemoryTransferGateway,
    NearCliTransferGateway,
    TransferGateway,
    TransferTicket,
    format_near_amount,
)


def configure_logging(level: str) -> None:
    """Send log output to stderr at ``level``."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="<level>{level: <8}</level> | {message}")


def parse_amount(text: str) -> int:
    """Parse an amount in base units, or in NEAR when suffixed with ``N`` (e.g. ``1.5N``)."""
    text = text.strip()
    try:
        if text.upper().endswith('N'):
            with localcontext() as dctx:
                dctx.prec = 80
                value = Decimal(text[:-1]) * YOCTO_PER_NEAR
            if value != value.to_integral_value():
                raise click.BadParameter(f"{text} has more precision than 1 yoctoNEAR")
            return int(value)
        return int(text)
    except (ValueError, InvalidOperation):
        raise click.BadParameter(f"Invalid amount: {text}")


def build_gateway(kind: str, config: StakingConfig) -> TransferGateway:
    if kind == 'near':
        return NearCliTransferGateway(network=config.network, near_binary=config.near_binary)
    return InMemoryTransferGateway()


def handle_errors(func):
    """Log rejected operations and exit non-zero."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except StakingError as e:
            logger.error(f"{type(e).__name__}: {e}")
            sys.exit(1)
    return wrapper


def report_ticket(ticket: TransferTicket) -> None:
    if ticket.succeeded:
        logger.info(f"{ticket.kind.value.capitalize()} transfer of {ticket.amount} "
                    f"({format_near_amount(ticket.amount)} NEAR) completed")
        if ticket.transaction_hash:
            logger.info(f"Transaction Hash: {ticket.transaction_hash}")
    elif ticket.done:
        logger.error(f"{ticket.kind.value.capitalize()} transfer failed: {ticket.error}")
        sys.exit(1)
    else:
        logger.info(f"{ticket.kind.value.capitalize()} transfer {ticket.ticket_id} is pending")


class CliContext:
    """Lazily builds the service for the selected data directory."""

    def __init__(self, data_dir: Path, gateway_kind: str):
        self.data_dir = data_dir
        self.gateway_kind = gateway_kind
        self._service: Optional[StakingService] = None

    @property
    def service(self) -> StakingService:
        if self._service is None:
            config = load_config(self.data_dir)
            self._service = StakingService(
                gateway=build_gateway(self.gateway_kind, config),
                config=config,
                store=StateStore(self.data_dir),
            )
        return self._service


pass_ctx = click.make_pass_decorator(CliContext)


@click.group()
@click.version_option(package_name="stake-ledger")
@click.option('--data-dir', type=click.Path(file_okay=False, path_type=Path),
              help='Directory holding state.json and config.json')
@click.option('--gateway', type=click.Choice(['memory', 'near']), default='memory', show_default=True,
              help='Transport used to move funds')
@click.option('--log-level', default=lambda: os.getenv("STAKE_LEDGER_LOG_LEVEL", "INFO"),
              help='Log level (env: STAKE_LEDGER_LOG_LEVEL)')
@click.pass_context
def cli(ctx, data_dir: Optional[Path], gateway: str, log_level: str):
    """Stake Ledger CLI for time-weighted staking and reward pools."""
    configure_logging(log_level)
    ctx.obj = CliContext(data_dir or get_data_dir(), gateway)


@cli.command()
@click.argument('owner')
@click.argument('funding_source')
@click.option('--opening-balance', default='0', help='Initial reward pool balance')
@click.option('--lockup-months', type=click.IntRange(min=1), default=1, show_default=True, help='Default lock tier in months')
@click.option('--pool-account', default=None, help='Account holding pool funds')
@click.option('--network', type=click.Choice(['testnet', 'mainnet']), default='testnet', show_default=True)
@click.option('--keep-lock-on-restake', is_flag=True, help='Do not restart the lock when topping up a stake')
@pass_ctx
@handle_errors
def init(obj: CliContext, owner: str, funding_source: str, opening_balance: str, lockup_months: int,
         pool_account: Optional[str], network: str, keep_lock_on_restake: bool):
    """Create the reward pool owned by OWNER, funded from FUNDING_SOURCE."""
    settings = {
        "default_lockup_months": lockup_months,
        "network": network,
        "restake_resets_lock": not keep_lock_on_restake,
    }
    if pool_account:
        settings["pool_account"] = pool_account
    store = StateStore(obj.data_dir)
    if not store.exists():
        save_config(StakingConfig(**settings), obj.data_dir)
    obj.service.initialize(owner, funding_source, parse_amount(opening_balance))
    logger.info(f"State stored in {obj.data_dir}")


@cli.command()
@click.argument('caller')
@click.argument('amount')
@pass_ctx
@handle_errors
def fund(obj: CliContext, caller: str, amount: str):
    """Fund the reward pool with AMOUNT (owner only)."""
    ticket = obj.service.fund_pool(caller, parse_amount(amount))
    report_ticket(ticket)
    logger.info(f"Pool balance: {obj.service.pool_balance()}")


@cli.command()
@click.argument('account')
@click.argument('amount')
@click.option('--months', type=click.IntRange(min=1), default=None, help='Lock tier in months (first stake only)')
@click.option('--memo', default=None, help='Optional note stored with the stake')
@pass_ctx
@handle_errors
def stake(obj: CliContext, account: str, amount: str, months: Optional[int], memo: Optional[str]):
    """Stake AMOUNT for ACCOUNT."""
    entry = obj.service.stake(account, parse_amount(amount), lockup_months=months, memo=memo)
    logger.info(f"Staked balance: {entry.amount} (weight x{float(entry.weight):g}), "
                f"unlocks at {entry.unlocks_at}")


@cli.command()
@click.argument('account')
@pass_ctx
@handle_errors
def claim(obj: CliContext, account: str):
    """Claim ACCOUNT's share of the reward pool."""
    report_ticket(obj.service.claim_rewards(account))


@cli.command()
@click.argument('account')
@pass_ctx
@handle_errors
def unstake(obj: CliContext, account: str):
    """Withdraw ACCOUNT's principal once the lock has elapsed."""
    report_ticket(obj.service.unstake(account))


@cli.group()
def pool():
    """Inspect the reward pool."""
    pass


@pool.command()
@pass_ctx
@handle_errors
def balance(obj: CliContext):
    """Show the distributable pool balance."""
    amount = obj.service.pool_balance()
    click.echo(f"{amount} ({format_near_amount(amount)} NEAR)")


@pool.command()
@pass_ctx
@handle_errors
def staked(obj: CliContext):
    """Show the principal staked across all participants."""
    amount = obj.service.total_staked()
    click.echo(f"{amount} ({format_near_amount(amount)} NEAR)")


@pool.command()
@pass_ctx
@handle_errors
def points(obj: CliContext):
    """Show the total weighted points."""
    click.echo(str(obj.service.total_points()))


@cli.command()
@click.argument('account')
@pass_ctx
@handle_errors
def entry(obj: CliContext, account: str):
    """Show ACCOUNT's staking entry as JSON."""
    record = obj.service.entry_of(account)
    if record is None:
        click.echo("null")
        return
    click.echo(json.dumps(json.loads(record.model_dump_json()), indent=2))


@cli.command()
@click.argument('account')
@pass_ctx
@handle_errors
def preview(obj: CliContext, account: str):
    """Show the reward ACCOUNT could claim now."""
    click.echo(str(obj.service.preview_reward(account)))


@cli.command()
@pass_ctx
@handle_errors
def check(obj: CliContext):
    """Verify the pool's point totals against the ledger."""
    obj.service.check_invariants()
    logger.info("Ledger and pool totals are consistent")


@cli.command(name='config')
@pass_ctx
def show_config(obj: CliContext):
    """Show the active configuration."""
    click.echo(json.dumps(load_config(obj.data_dir).model_dump(), indent=2))

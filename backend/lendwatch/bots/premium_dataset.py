"""
Historical flash loan premiums used to bootstrap the treasury fee statistics.

The dataset is a CSV with at least the columns `asset` (token address) and
`premium` (raw integer amount in token units). It can be collected from the
chain with:

    python -m lendwatch.bots.premium_dataset collect --days 180 --output premiums.csv
"""
from __future__ import annotations

import argparse
import asyncio
import csv
import logging
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from ..chains.abis import LENDING_POOL_ABI
from ..chains.decoder import DecodedLog, LogDecoder
from ..chains.evm_client import ChainEventSource, build_web3
from ..core.concurrency import gather_settled
from ..core.exceptions import ChainConnectionError, ConfigurationError
from ..core.logging import cleanup_logging, setup_logging
from ..core.settings import get_settings
from ..stats.numeric import ETHER_DECIMALS, numeric_context, scale_amount, to_decimal

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("asset", "premium")

BLOCK_CHUNK = 128
SECONDS_IN_DAY = 24 * 60 * 60
TIMESTAMP_TOLERANCE_SECONDS = 60


@dataclass(frozen=True)
class PremiumRow:
    asset: str
    premium: int


def read_premium_rows(path: Path) -> List[PremiumRow]:
    """
    Read every row of the dataset.

    Raises:
        ConfigurationError: If the file is missing or lacks the required columns
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(
            f"Premium dataset not found: {path}", details={'path': str(path)}
        )

    rows: List[PremiumRow] = []
    with path.open('r', newline='', encoding='utf-8') as csvfile:
        reader = csv.DictReader(csvfile)
        missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ConfigurationError(
                f"Premium dataset {path} is missing columns {missing}",
                details={'path': str(path), 'columns': reader.fieldnames},
            )

        for line_number, record in enumerate(reader, start=2):
            try:
                premium = int(to_decimal(record['premium']))
            except (TypeError, ValueError) as e:
                logger.warning(
                    f"Skipping dataset line {line_number}: {e}",
                    extra={'extra_data': {'path': str(path), 'line': line_number}}
                )
                continue
            asset = (record['asset'] or '').strip()
            if not asset:
                continue
            rows.append(PremiumRow(asset=asset, premium=premium))

    logger.info(
        f"Loaded {len(rows)} historical premiums",
        extra={'extra_data': {'path': str(path), 'rows': len(rows)}}
    )
    return rows


def premium_in_eth(premium: int, decimals: int, token_price_eth: Decimal) -> Decimal:
    """Raw premium scaled by token decimals and priced in ETH."""
    with numeric_context():
        return scale_amount(premium, decimals) * token_price_eth


def premiums_in_eth(
    rows: Iterable[PremiumRow],
    token_decimals: Mapping[str, int],
    spot_prices_eth: Mapping[str, Decimal],
) -> Iterator[Decimal]:
    """
    Convert dataset rows to ETH, in file order. Rows for assets without known
    decimals or price are skipped.
    """
    for row in rows:
        asset = row.asset.lower()
        if asset not in token_decimals or asset not in spot_prices_eth:
            logger.debug(
                f"No decimals or spot price for dataset asset {row.asset}",
                extra={'extra_data': {'asset': row.asset}}
            )
            continue
        yield premium_in_eth(row.premium, token_decimals[asset], spot_prices_eth[asset])


def spot_prices_by_asset(assets: Iterable[str], prices_wei: Iterable[int]) -> Dict[str, Decimal]:
    return {
        asset.lower(): scale_amount(price, ETHER_DECIMALS)
        for asset, price in zip(assets, prices_wei)
    }


def block_ranges(start: int, end: int, chunk: int = BLOCK_CHUNK) -> List[Tuple[int, int]]:
    """Split [start, end] into contiguous inclusive ranges of at most chunk blocks."""
    if chunk <= 0:
        raise ValueError(f"chunk must be positive, got {chunk}")
    return [(low, min(low + chunk - 1, end)) for low in range(start, end + 1, chunk)]


async def find_block_by_timestamp(
    source: ChainEventSource,
    timestamp: int,
    high: int,
    tolerance: int = TIMESTAMP_TOLERANCE_SECONDS,
) -> int:
    """
    Binary search for a block mined within tolerance seconds of timestamp.

    Falls back to the first block after timestamp when no block is that close.
    """
    low = 0
    while low < high:
        mid = low + (high - low) // 2
        block = await source.get_block_event(mid)
        block_time = int(block.timestamp or 0)
        if abs(block_time - timestamp) <= tolerance:
            return mid
        if block_time > timestamp:
            high = mid
        else:
            low = mid + 1
    return low


async def collect_event_logs(
    source: ChainEventSource,
    decoder: LogDecoder,
    address: str,
    days: float,
    event_name: str = "FlashLoan",
    chunk: int = BLOCK_CHUNK,
) -> List[DecodedLog]:
    """
    Decode every event_name log emitted by address over the last days.

    Raises:
        ChainConnectionError: If the node fails any block or log request
    """
    end = await source.latest_block_number()
    end_block = await source.get_block_event(end)
    start_timestamp = int(end_block.timestamp or 0) - int(days * SECONDS_IN_DAY)
    start = await find_block_by_timestamp(source, start_timestamp, end)

    topic = decoder.topic(event_name)
    ranges = block_ranges(start, end, chunk)
    logger.info(
        f"Collecting {event_name} logs from block {start} to {end}",
        extra={'extra_data': {'start_block': start, 'end_block': end, 'requests': len(ranges)}}
    )

    async def fetch(block_range: Tuple[int, int]) -> List[Dict]:
        return await source.get_logs(block_range[0], block_range[1], address, [topic])

    outcomes = await gather_settled(ranges, fetch, label=lambda r: f"logs {r[0]}-{r[1]}")

    # a gap in the history would skew the bootstrapped statistics
    failed = [outcome.item for outcome in outcomes if not outcome.ok]
    if failed:
        raise ChainConnectionError(
            f"{len(failed)} of {len(ranges)} log requests failed",
            details={'failed_ranges': failed[:10]},
        )

    logs = [log for outcome in outcomes for log in outcome.value]
    return decoder.filter_logs(logs, [event_name], address)


def write_event_csv(
    decoded: Sequence[DecodedLog], columns: Sequence[str], path: Path
) -> int:
    """Write one row per decoded log, its arguments followed by blockNumber and txHash."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = [*columns, "blockNumber", "txHash"]

    with path.open('w', newline='', encoding='utf-8') as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=fieldnames)
        writer.writeheader()
        for log in decoded:
            row = {name: log.args.get(name) for name in columns}
            row["blockNumber"] = log.block_number
            row["txHash"] = log.transaction_hash
            writer.writerow(row)

    logger.info(
        f"Wrote {len(decoded)} rows to {path}",
        extra={'extra_data': {'path': str(path), 'rows': len(decoded)}}
    )
    return len(decoded)


async def collect(args: argparse.Namespace) -> int:
    settings = get_settings()
    source = ChainEventSource(build_web3(settings))
    decoder = LogDecoder(LENDING_POOL_ABI)
    address = args.address or settings.contracts.lending_pool

    decoded = await collect_event_logs(
        source, decoder, address, args.days, event_name=args.event, chunk=args.chunk
    )
    return write_event_csv(decoded, decoder.input_names(args.event), args.output)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Command line entry point for building the premium dataset."""
    parser = argparse.ArgumentParser(
        description="Collect historical lending pool events into a CSV dataset",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m lendwatch.bots.premium_dataset collect
  python -m lendwatch.bots.premium_dataset collect --days 30 --output data/premiums.csv
        """
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    collect_parser = subparsers.add_parser("collect", help="Collect event logs from the chain")
    collect_parser.add_argument(
        "--days", type=float, default=180,
        help="How many days of history to collect (default: 180)"
    )
    collect_parser.add_argument(
        "--output", type=Path, default=Path("premiums.csv"),
        help="CSV file to write (default: premiums.csv)"
    )
    collect_parser.add_argument(
        "--address", type=str, default=None,
        help="Emitting contract (default: the configured lending pool)"
    )
    collect_parser.add_argument(
        "--event", type=str, default="FlashLoan",
        help="Event to collect (default: FlashLoan)"
    )
    collect_parser.add_argument(
        "--chunk", type=int, default=BLOCK_CHUNK,
        help=f"Blocks per log request (default: {BLOCK_CHUNK})"
    )

    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(settings.log_level, debug=settings.debug, log_dir=settings.log_dir)
    try:
        rows = asyncio.run(collect(args))
        print(f"Collected {rows} {args.event} events into {args.output}")
    finally:
        cleanup_logging()


if __name__ == "__main__":
    main()

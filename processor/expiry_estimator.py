"""Estimation of name expiry times from block height data."""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from processor.models import ExtraInfo, NameRecord

logger = logging.getLogger(__name__)

# Number of blocks after its last update at which a name expires.
EXPIRY_BLOCKS = 36000

# Assumed average block interval; not measured.
TIME_PER_BLOCK = timedelta(minutes=10)

# Rounding grid anchor.
ZERO_INSTANT = datetime(1, 1, 1, tzinfo=timezone.utc)

_LATEST_INSTANT = datetime.max.replace(tzinfo=timezone.utc)


def floor_to_quantum(moment: datetime, quantum: timedelta) -> datetime:
    """
    Round a timestamp down to a multiple of quantum since ZERO_INSTANT.
    
    Args:
        moment: Timezone-aware timestamp
        quantum: Rounding granularity; non-positive values disable rounding
        
    Returns:
        Floored timestamp
    """
    if quantum <= timedelta(0):
        return moment
    
    return ZERO_INSTANT + ((moment - ZERO_INSTANT) // quantum) * quantum


def estimate_expiry(
    current_height: int,
    expiry_height: int,
    now: datetime,
    margin: timedelta,
    quantum: timedelta,
    expired: bool = False
) -> datetime:
    """
    Estimate the calendar time at which a name expires.
    
    Args:
        current_height: Current block height
        expiry_height: Block height at which the name expires
        now: Current time (timezone-aware)
        margin: Safety margin subtracted from the estimate
        quantum: Rounding granularity for the final estimate
        expired: Whether the registry already reports the name as expired
        
    Returns:
        Estimated expiry time, floored to quantum; now if already expired
    """
    if expired or expiry_height <= current_height:
        return now
    
    blocks_to_go = expiry_height - current_height
    
    try:
        raw = now + blocks_to_go * TIME_PER_BLOCK - margin
    except OverflowError:
        logger.warning(
            f"Expiry {blocks_to_go} blocks ahead is out of range, clamping"
        )
        raw = _LATEST_INSTANT
    
    return floor_to_quantum(raw, quantum)


def infer_current_height(records: Sequence[NameRecord]) -> Optional[int]:
    """
    Infer the current block height from name_list results.
    
    Only the first record is consulted; all records of one query are
    assumed to share the same view of the chain.
    
    Args:
        records: Name records from a single registry query
        
    Returns:
        Inferred block height, or None for an empty batch
    """
    if not records:
        return None
    
    first = records[0]
    return first.height + EXPIRY_BLOCKS - first.expires_in


def compute_extra_info(
    now: datetime,
    records: Sequence[NameRecord],
    margin: timedelta,
    quantum: timedelta
) -> List[ExtraInfo]:
    """
    Compute expiry estimates for a batch of name records.
    
    Args:
        now: Current time (timezone-aware)
        records: Name records from a single registry query
        margin: Safety margin subtracted from each estimate
        quantum: Rounding granularity for each estimate
        
    Returns:
        List of ExtraInfo objects, one per record, in the same order
    """
    current_height = infer_current_height(records)
    extra_info = []
    
    for record in records:
        expiry_height = record.height + EXPIRY_BLOCKS
        estimated = estimate_expiry(
            current_height=current_height,
            expiry_height=expiry_height,
            now=now,
            margin=margin,
            quantum=quantum,
            expired=record.expired
        )
        extra_info.append(
            ExtraInfo(
                estimated_expiry_time=estimated,
                expiry_height=expiry_height
            )
        )
    
    logger.debug(
        f"Computed expiry estimates for {len(extra_info)} names "
        f"at height {current_height}"
    )
    return extra_info

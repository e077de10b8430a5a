"""
Read-only views over store snapshots for dashboards and listings.
None of these functions mutate the records they are given.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from .models import Asset, AssetStatus, LogAction, LogEntry, utcnow

DAYS_PER_YEAR = 365.25


def _aware(value: datetime, like: datetime) -> datetime:
    # Stored dates may be naive; compare them in the reference timezone
    if value.tzinfo is None and like.tzinfo is not None:
        return value.replace(tzinfo=like.tzinfo)
    if value.tzinfo is not None and like.tzinfo is None:
        return value.replace(tzinfo=None)
    return value


def asset_history(logs: Iterable[LogEntry], asset_id: str) -> List[LogEntry]:
    """
    Log rows recorded for *asset_id*, newest first.

    The asset itself may no longer exist; its history is still returned.
    """
    rows = [log for log in logs if log.asset_id == asset_id]
    return sorted(rows, key=lambda log: log.timestamp, reverse=True)


def subtract_years(moment: datetime, years: int) -> datetime:
    try:
        return moment.replace(year=moment.year - years)
    except ValueError:
        # 29 February in a non-leap target year
        return moment.replace(year=moment.year - years, day=28)


def dispose_candidates(
    assets: Iterable[Asset],
    now: Optional[datetime] = None,
    years: int = 5,
) -> List[Asset]:
    """In Stock assets purchased at least *years* years before *now*"""
    now = now or utcnow()
    cutoff = subtract_years(now, years)
    return [
        a for a in assets
        if a.status == AssetStatus.IN_STOCK
        and a.purchase_date is not None
        and _aware(a.purchase_date, now) <= cutoff
    ]


def second_hand_assets(assets: Iterable[Asset], logs: Iterable[LogEntry]) -> List[Asset]:
    """Assets that have been returned at least once"""
    returned = {log.asset_id for log in logs if log.action == LogAction.CHECK_IN}
    return [a for a in assets if a.id in returned]


def last_return(logs: Iterable[LogEntry], asset_id: str) -> Optional[LogEntry]:
    returns = [log for log in asset_history(logs, asset_id) if log.action == LogAction.CHECK_IN]
    return returns[0] if returns else None


def asset_age_years(asset: Asset, now: Optional[datetime] = None) -> Optional[float]:
    if asset.purchase_date is None:
        return None
    now = now or utcnow()
    delta = abs(now - _aware(asset.purchase_date, now))
    return round(delta.days / DAYS_PER_YEAR, 1)


def dashboard_summary(
    assets: Iterable[Asset],
    logs: Iterable[LogEntry],
    now: Optional[datetime] = None,
    warranty_window_days: int = 30,
) -> Dict[str, Any]:
    """
    Headline numbers for the dashboard.

    Args:
        assets: Current assets
        logs: Activity log
        now: Reference time, defaults to the current UTC time
        warranty_window_days: Horizon for the expiring-warranty count

    Returns:
        Dictionary with total, per-status counts, second-hand count, average
        age in years and the number of warranties expiring within the window
    """
    now = now or utcnow()
    assets = list(assets)
    logs = list(logs)

    by_status = {status.value: 0 for status in AssetStatus}
    for asset in assets:
        by_status[asset.status.value] += 1

    dated = [a for a in assets if a.purchase_date is not None]
    if dated:
        total_days = sum(abs(now - _aware(a.purchase_date, now)).days for a in dated)
        average_age_years = round(total_days / len(dated) / 365, 1)
    else:
        average_age_years = 0.0

    horizon = now + timedelta(days=warranty_window_days)
    expiring = sum(
        1 for a in assets
        if a.warranty_expiry is not None
        and now < _aware(a.warranty_expiry, now) <= horizon
    )

    return {
        "total_assets": len(assets),
        "by_status": by_status,
        "second_hand": len(second_hand_assets(assets, logs)),
        "average_age_years": average_age_years,
        "expiring_warranties": expiring,
    }

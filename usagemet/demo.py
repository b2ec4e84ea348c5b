"""Deterministic synthetic telemetry for trying the dashboard and report."""

from datetime import datetime, timedelta, timezone
from random import Random
from typing import Dict, List, Optional

from .codec import format_timestamp

SLIDERS = ("price", "down_payment", "rate", "term_years")
PLATFORMS = ("ios", "android", "web")


def build_demo_batches(count: int = 50, seed: int = 42, now: Optional[datetime] = None) -> List[Dict]:
    """Return ``count`` raw batches shaped like client submissions."""
    rng = Random(seed)
    now = now or datetime.now(timezone.utc)

    batches = []
    for idx in range(count):
        started_at = now - timedelta(hours=idx * 5, minutes=rng.randint(0, 59))
        user_id = None if idx % 6 == 0 else idx % 9
        events = [_event("app_opened", started_at, {})]
        offset = 0

        for _ in range(rng.randint(0, 6)):
            offset += rng.randint(5, 40)
            events.append(
                _event(
                    "slider_changed",
                    started_at + timedelta(seconds=offset),
                    {"slider": rng.choice(SLIDERS)},
                )
            )

        for _ in range(rng.randint(0, 4)):
            offset += rng.randint(10, 90)
            price = rng.randrange(3_000_000, 15_000_000, 100_000)
            events.append(
                _event(
                    "calculation_performed",
                    started_at + timedelta(seconds=offset),
                    {
                        "price": price,
                        "down_payment": int(price * rng.choice((0.1, 0.15, 0.2, 0.3))),
                        "rate": round(rng.uniform(6.0, 16.0), 1),
                        "term_years": rng.choice((10, 15, 20, 25, 30)),
                    },
                )
            )
            if rng.random() < 0.15:
                events.append(_event("share_clicked", started_at + timedelta(seconds=offset + 3), {}))

        batches.append(
            {
                "session_id": f"demo-{idx}",
                "user_id": user_id,
                "user_info": {"platform": rng.choice(PLATFORMS)},
                "events": events,
            }
        )
    return batches


def _event(event_name: str, at: datetime, properties: Dict) -> Dict:
    return {"event_name": event_name, "properties": properties, "timestamp": format_timestamp(at)}

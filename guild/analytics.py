"""Analytics module for sending metrics to Datadog.

This module implements fail-open analytics integration with Datadog HTTP API.
Metric failures are logged but never block a progression update.
"""

import logging
import time

import requests

logger = logging.getLogger(__name__)

DATADOG_API_URL = "https://api.datadoghq.com/api/v1/series"
RANK_UP_METRIC = "guild.rank_up"


def send_rank_up_metric(previous_rank: str | None, new_rank: str, datadog_api_key: str) -> bool:
    """Send a rank-up metric to Datadog.

    Sends a COUNT metric named "guild.rank_up" tagged with the rank the
    adventurer left and the rank they reached. Fail-open: errors are logged
    and reported as False instead of raised.

    Args:
        previous_rank: The rank before the update (None for a new adventurer)
        new_rank: The rank derived from the new XP total
        datadog_api_key: Datadog API key for authentication

    Returns:
        True if metric was sent successfully, False otherwise

    Example:
        >>> send_rank_up_metric("C", "B", "your-api-key")
        True
    """
    try:
        # Generate Unix timestamp
        timestamp = int(time.time())

        # Build metric payload (one COUNT point per rank-up)
        payload = {
            "series": [{
                "metric": RANK_UP_METRIC,
                "type": "count",
                "points": [[timestamp, 1]],
                "tags": [f"from_rank:{previous_rank or 'none'}", f"to_rank:{new_rank}"]
            }]
        }

        # Authenticate with the API key header
        headers = {
            "Content-Type": "application/json",
            "DD-API-KEY": datadog_api_key
        }

        # Send to Datadog
        response = requests.post(
            DATADOG_API_URL,
            json=payload,
            headers=headers,
            timeout=5
        )

        # Non-2xx responses count as failures
        response.raise_for_status()
        logger.info(f"Sent rank-up metric: {previous_rank} -> {new_rank}")
        return True

    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send Datadog rank-up metric {previous_rank} -> {new_rank}: {e}")
        return False
    except Exception as e:
        logger.error(f"Unexpected error sending Datadog rank-up metric: {e}")
        return False

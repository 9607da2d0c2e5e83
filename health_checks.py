"""
Health check system for the classifier, the media library and state storage.
"""
import asyncio
import logging
import time
from typing import Dict, Any, Optional, Callable, Awaitable

from botbuilder.core import Storage  # type: ignore

from bot_core.moody_bot import MoodyTunesBot
from bot_core.redis_storage import RedisStorage, RedisStorageError
from state_models import Sentiment

log = logging.getLogger("health")

# Status symbols for visual feedback
STATUS_SYMBOLS = {
    "OK": "✓",
    "DEGRADED_OPERATIONAL": "~",
    "WARNING": "⚠",
    "ERROR": "✗",
    "DOWN": "⬇",
    "NOT CONFIGURED": "•",
    "UNKNOWN": "?",
}

CRITICAL_COMPONENTS = ("LUIS", "Media Library")


async def _run_single_check(
    check: Callable[[], Awaitable[Dict[str, Any]]],
    service_name: str,
) -> tuple[str, Dict[str, Any]]:
    """Runs a single health check with error handling and timing."""
    log.info(f"Starting health check: {service_name}")
    start_time = time.monotonic()

    try:
        result = await check()
    except Exception as e:
        elapsed = time.monotonic() - start_time
        log.error(f"{STATUS_SYMBOLS['ERROR']} {service_name} check failed after {elapsed:.2f}s: {e}", exc_info=True)
        return service_name, {"status": "ERROR", "message": f"Unexpected error: {e}", "elapsed_time": elapsed}

    elapsed = time.monotonic() - start_time
    if not isinstance(result, dict) or "status" not in result:
        log.error(f"Invalid check result format from {service_name}")
        return service_name, {"status": "ERROR", "message": "Invalid check result format", "elapsed_time": elapsed}

    result["elapsed_time"] = elapsed
    status = result.get("status", "UNKNOWN")
    symbol = STATUS_SYMBOLS.get(status, STATUS_SYMBOLS["UNKNOWN"])
    log.info(f"{symbol} {service_name} check completed in {elapsed:.2f}s - Status: {status}")
    if status != "OK":
        log.warning(f"  Details: {result.get('message', 'No details provided')}")
    return service_name, result


# --- Specific Service Check Functions ---

async def _check_recognizer(bot: MoodyTunesBot) -> Dict[str, Any]:
    recognizer = bot.recognizer
    if not hasattr(recognizer, "health_check"):
        return {"status": "WARNING", "message": "Health check not implemented"}
    return await recognizer.health_check()


async def _check_media_library(bot: MoodyTunesBot) -> Dict[str, Any]:
    library = bot.media_library
    if len(library) == 0:
        return {"status": "ERROR", "message": "Media library is empty."}
    missing = library.missing_labels(s.value for s in Sentiment)
    if missing:
        return {
            "status": "ERROR",
            "message": f"No media for sentiment label(s): {', '.join(missing)}",
        }
    return {"status": "OK", "message": f"Media library loaded ({library.summary()})."}


async def _check_storage(storage: Optional[Storage]) -> Dict[str, Any]:
    if storage is None:
        return {"status": "NOT CONFIGURED", "message": "No welcome state storage configured."}
    if isinstance(storage, RedisStorage):
        try:
            await storage.ping()
        except RedisStorageError as e:
            return {"status": "DOWN", "message": str(e)}
        return {"status": "OK", "message": "Redis reachable."}
    return {"status": "OK", "message": f"{type(storage).__name__} in use."}


# --- Main Health Check Runner ---

async def run_health_checks(bot: MoodyTunesBot, storage: Optional[Storage] = None) -> Dict[str, Dict[str, Any]]:
    """Runs all health checks concurrently."""
    log.info("=== Starting Health Checks ===")
    start_time = time.monotonic()

    checks = [
        _run_single_check(lambda: _check_recognizer(bot), "LUIS"),
        _run_single_check(lambda: _check_media_library(bot), "Media Library"),
        _run_single_check(lambda: _check_storage(storage), "State Storage"),
    ]
    results = dict(await asyncio.gather(*checks))

    log.info(f"Health checks completed in {time.monotonic() - start_time:.2f}s")
    return results


def overall_status(results: Dict[str, Dict[str, Any]]) -> str:
    """OK, DEGRADED, or ERROR when a critical component is ERROR/DOWN."""
    status = "OK"
    for component, result in results.items():
        component_status = result.get("status", "UNKNOWN")
        if component_status in ("OK", "NOT CONFIGURED"):
            continue
        if component in CRITICAL_COMPONENTS and component_status in ("ERROR", "DOWN"):
            return "ERROR"
        status = "DEGRADED"
    return status

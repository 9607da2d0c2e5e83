# -- app.py --
"""
Main entry point for the Moody Tunes bot (Bot Framework Version).
"""
import os
import sys
from typing import Optional

# Imports for Bot Framework and Web Server
from aiohttp import web
from botbuilder.core import BotFrameworkAdapterSettings, MemoryStorage, Storage  # type: ignore
from botbuilder.schema import Activity, ActivityTypes  # type: ignore
from dotenv import load_dotenv, find_dotenv

from utils.logging_config import setup_logging, get_logger, bind_turn_context, clear_turn_context

APP_VERSION = "1.0.0"

BOT_KEY = web.AppKey("bot", object)
ADAPTER_KEY = web.AppKey("adapter", object)
STORAGE_KEY = web.AppKey("storage", object)

setup_logging(level_str=os.getenv("LOG_LEVEL", "INFO"))
logger = get_logger(__name__)


def load_environment() -> bool:
    logger.info("=== LOADING ENVIRONMENT VARIABLES ===")
    possible_paths = [
        os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env'),
        os.path.join(os.getcwd(), '.env'),
        find_dotenv(usecwd=True),
    ]
    for dotenv_path in possible_paths:
        if dotenv_path and os.path.exists(dotenv_path):
            load_dotenv(dotenv_path, override=True)
            logger.info(f"Loaded .env file from: {dotenv_path}")
            for var in ['LUIS_APP_ID', 'LUIS_API_KEY', 'MICROSOFT_APP_ID', 'MICROSOFT_APP_PASSWORD']:
                val = os.environ.get(var)
                if val:
                    logger.info(f"  {var}: {val[:4]}*** (length: {len(val)})")
                else:
                    logger.warning(f"  {var}: NOT FOUND")
            logger.info("=== ENVIRONMENT LOADED SUCCESSFULLY ===")
            return True
    logger.warning("No .env file found. Using system environment variables.")
    return False


from config import get_config, Config  # noqa: E402
from bot_core.adapter_with_error_handler import AdapterWithErrorHandler  # noqa: E402
from bot_core.moody_bot import MoodyTunesBot  # noqa: E402
from bot_core.redis_storage import RedisStorage  # noqa: E402
from bot_core.welcome_state import WelcomeStateStore  # noqa: E402
from health_checks import run_health_checks, overall_status  # noqa: E402


def create_storage(app_config: Config) -> Storage:
    if app_config.settings.memory_type == "redis":
        logger.info(f"Using Redis for welcome state. URL: {app_config.settings.redis_url}, Host: {app_config.settings.redis_host}")
        return RedisStorage(app_settings=app_config.settings)
    logger.info("Using in-memory storage for welcome state.")
    return MemoryStorage()


async def messages(req: web.Request) -> web.Response:
    if "application/json" not in req.headers.get("Content-Type", ""):
        logger.warning("Request received with non-JSON content type.")
        return web.Response(status=415)

    try:
        body = await req.json()
    except ValueError as json_e:
        logger.error(f"Failed to parse request body as JSON: {json_e}")
        return web.Response(status=400, text="Invalid JSON body")

    activity = Activity().deserialize(body)
    auth_header = req.headers.get("Authorization", "")

    user_id = activity.from_property.id if activity.from_property else None
    conversation_id = activity.conversation.id if activity.conversation else None
    bind_turn_context(conversation_id=conversation_id, user_id=user_id, activity_type=activity.type)
    logger.info(f"Received activity: Type='{activity.type}', From='{user_id}', ConvID='{conversation_id}'")
    if activity.type == ActivityTypes.message and activity.text:
        logger.debug(f"  Message Text: '{activity.text[:100]}{'...' if len(activity.text) > 100 else ''}'")

    bot: MoodyTunesBot = req.app[BOT_KEY]
    adapter: AdapterWithErrorHandler = req.app[ADAPTER_KEY]
    try:
        response = await adapter.process_activity(activity, auth_header, bot.on_turn)
    except PermissionError as auth_e:
        logger.warning(f"Rejected activity with invalid credentials: {auth_e}")
        return web.Response(status=401)
    except Exception as exception:
        logger.error(f"Error processing activity in messages handler: {exception}", exc_info=True)
        return web.Response(status=500, text=f"Internal Server Error: {exception}")
    finally:
        clear_turn_context()

    if response:
        return web.json_response(response.body, status=response.status)
    return web.Response(status=201)


async def healthz(req: web.Request) -> web.Response:
    logger.info("Health check endpoint requested.")
    results = await run_health_checks(req.app[BOT_KEY], req.app[STORAGE_KEY])
    status = overall_status(results)
    http_status_code = 503 if status == "ERROR" else 200
    logger.info(f"Health check completed. Overall status: {status}")
    return web.json_response(
        {"overall_status": status, "components": results, "version": APP_VERSION},
        status=http_status_code,
    )


async def on_bot_shutdown(app: web.Application):
    logger.info("Bot application shutting down. Cleaning up resources...")
    storage = app.get(STORAGE_KEY)
    if isinstance(storage, RedisStorage):
        logger.info("Closing Redis bot storage connection...")
        await storage.close()


def create_app(
    app_config: Config,
    bot: Optional[MoodyTunesBot] = None,
    storage: Optional[Storage] = None,
    adapter: Optional[AdapterWithErrorHandler] = None,
) -> web.Application:
    """Wire storage, bot and adapter into an aiohttp application."""
    if storage is None:
        storage = create_storage(app_config)
    if bot is None:
        bot = MoodyTunesBot.from_config(app_config, welcome_store=WelcomeStateStore(storage))
    if adapter is None:
        adapter_settings = BotFrameworkAdapterSettings(
            app_id=app_config.MICROSOFT_APP_ID or "",
            app_password=app_config.MICROSOFT_APP_PASSWORD or "",
        )
        adapter = AdapterWithErrorHandler(adapter_settings, config=app_config)

    app = web.Application()
    app[BOT_KEY] = bot
    app[ADAPTER_KEY] = adapter
    app[STORAGE_KEY] = storage
    app.router.add_post(app_config.settings.bot_api_messages_endpoint, messages)
    app.router.add_get(app_config.settings.bot_api_healthcheck_endpoint, healthz)
    app.on_cleanup.append(on_bot_shutdown)
    return app


def main():
    load_environment()
    try:
        app_config = get_config()
    except ValueError as config_e:
        # pydantic's ValidationError is a ValueError
        print(f"FATAL: Configuration error: {config_e}", file=sys.stderr)
        logger.critical(f"Configuration error: {config_e}", exc_info=True)
        sys.exit(1)

    setup_logging(
        level_str=app_config.settings.log_level,
        json_output=app_config.settings.log_format == "json",
    )
    logger.info(f"Root logger level set to {app_config.settings.log_level} ({app_config.settings.log_format} output) from configuration.")

    try:
        server_app = create_app(app_config)
    except (OSError, ValueError) as init_e:
        logger.critical(f"Failed to initialize MoodyTunesBot: {init_e}", exc_info=True)
        sys.exit(1)

    port_to_use = app_config.settings.port
    logger.info(f"Bot server starting on http://0.0.0.0:{port_to_use}")
    web.run_app(server_app, host="0.0.0.0", port=port_to_use)


if __name__ == "__main__":
    main()

import json
import logging
from typing import List, Dict, Any, Optional

import redis
import redis.asyncio as aioredis
from botbuilder.core import Storage  # type: ignore
from pydantic import BaseModel

from config import AppSettings

log = logging.getLogger(__name__)


class RedisStorageError(Exception):
    """Custom exception for RedisStorage errors."""
    pass


class RedisStorage(Storage):
    """
    A Storage provider that uses an asynchronous Redis client for state persistence.
    It stores bot state data as JSON strings in Redis.
    """

    def __init__(self, app_settings: AppSettings):
        """
        Initializes a new instance of the RedisStorage class.

        Args:
            app_settings: The application settings containing Redis configuration.
        """
        super().__init__()
        self._app_settings = app_settings
        self._redis_client: Optional[aioredis.Redis] = None
        self._redis_prefix = self._app_settings.redis_prefix

    async def _ensure_client_initialized(self):
        """Ensures the Redis client is initialized before use."""
        if self._redis_client is None:
            await self._initialize_client()

    async def _initialize_client(self):
        """
        Establishes a connection to the Redis server using settings from AppSettings.
        """
        if self._redis_client:
            return

        log.info("Initializing Redis client...")
        settings = self._app_settings

        try:
            if settings.redis_url:
                log.info(f"Connecting to Redis using URL: {settings.redis_url}")
                client = aioredis.from_url(
                    str(settings.redis_url),
                    encoding="utf-8",
                    decode_responses=True
                )
            else:
                log.info(f"Connecting to Redis using host: {settings.redis_host}, port: {settings.redis_port}, DB: {settings.redis_db}")
                client = aioredis.Redis(
                    host=settings.redis_host,
                    port=settings.redis_port or 6379,
                    password=settings.redis_password,
                    db=settings.redis_db or 0,
                    ssl=settings.redis_ssl_enabled or False,
                    encoding="utf-8",
                    decode_responses=True
                )

            await client.ping()
            self._redis_client = client
            log.info("Successfully connected to Redis and pinged server.")

        except redis.exceptions.ConnectionError as e:
            log.error(f"Redis connection failed: {e}", exc_info=True)
            self._redis_client = None
            raise RedisStorageError(f"Failed to connect to Redis: {e}") from e
        except redis.exceptions.RedisError as e:
            log.error(f"An unexpected error occurred during Redis client initialization: {e}", exc_info=True)
            self._redis_client = None
            raise RedisStorageError(f"Unexpected error initializing Redis client: {e}") from e

    async def read(self, keys: List[str]) -> Dict[str, Any]:
        """
        Reads specific StoreItems from Redis.

        Args:
            keys: A list of keys for the StoreItems to read.

        Returns:
            A dictionary of StoreItems, with keys matching the input.
        """
        if not keys:
            return {}

        await self._ensure_client_initialized()

        state: Dict[str, Any] = {}
        prefixed_keys = [self._redis_prefix + key for key in keys]
        try:
            log.debug(f"Reading prefixed keys from Redis: {prefixed_keys}")
            values = await self._redis_client.mget(prefixed_keys)
        except redis.exceptions.RedisError as e:
            log.error(f"Redis read operation failed: {e}", exc_info=True)
            raise RedisStorageError(f"Redis read failed: {e}") from e

        for original_key, prefixed_key, value in zip(keys, prefixed_keys, values):
            if value is None:
                log.debug(f"Key '{original_key}' (prefixed: {prefixed_key}) not found in Redis.")
                continue
            try:
                deserialized_item = json.loads(value)
            except json.JSONDecodeError as e:
                log.error(f"Failed to deserialize JSON for key '{original_key}' (prefixed: {prefixed_key}). Value: '{value[:500]}'. Error: {e}")
                continue
            if not isinstance(deserialized_item, dict):
                log.warning(f"Deserialized item for key '{original_key}' is not a dict, skipping. Value: {value[:200]}")
                continue
            state[original_key] = deserialized_item

        log.debug(f"Successfully read {len(state)} items from Redis.")
        return state

    async def write(self, changes: Dict[str, Any]):
        """
        Writes StoreItems to Redis.

        Args:
            changes: A dictionary of StoreItems to write, with their keys.
                     The value should be a dict or a pydantic model.
        """
        if not changes:
            return

        await self._ensure_client_initialized()

        try:
            log.debug(f"Writing {len(changes)} items to Redis.")
            # Redis has no e_tag support; last write wins.
            async with self._redis_client.pipeline(transaction=True) as pipe:
                for key, store_item_data in changes.items():
                    if isinstance(store_item_data, BaseModel):
                        data_to_serialize = store_item_data.model_dump(mode='json')
                    elif isinstance(store_item_data, dict):
                        data_to_serialize = {
                            item_key: item_val.model_dump(mode='json') if isinstance(item_val, BaseModel) else item_val
                            for item_key, item_val in store_item_data.items()
                        }
                    else:
                        log.warning(f"Item for key '{key}' is not a dict or Pydantic BaseModel, skipping write. Type: {type(store_item_data)}")
                        continue

                    prefixed_key = self._redis_prefix + key
                    try:
                        serialized_value = json.dumps(data_to_serialize)
                    except TypeError as e:
                        log.error(f"Failed to serialize item for key '{key}' (prefixed: {prefixed_key}) to JSON. Error: {e}", exc_info=True)
                        raise RedisStorageError(f"Serialization failed for key '{key}': {e}") from e
                    pipe.set(prefixed_key, serialized_value)
                    log.debug(f"Queued SET for key: {key} (prefixed: {prefixed_key})")
                await pipe.execute()
            log.info(f"Successfully wrote {len(changes)} items to Redis.")

        except redis.exceptions.RedisError as e:
            log.error(f"Redis write operation failed: {e}", exc_info=True)
            raise RedisStorageError(f"Redis write failed: {e}") from e

    async def delete(self, keys: List[str]):
        """
        Deletes StoreItems from Redis.

        Args:
            keys: A list of keys for the StoreItems to delete.
        """
        if not keys:
            return

        await self._ensure_client_initialized()

        prefixed_keys = [self._redis_prefix + key for key in keys]
        try:
            log.debug(f"Deleting prefixed keys from Redis: {prefixed_keys}")
            deleted_count = await self._redis_client.delete(*prefixed_keys)
            log.info(f"Successfully deleted {deleted_count} keys from Redis.")
        except redis.exceptions.RedisError as e:
            log.error(f"Redis delete operation failed: {e}", exc_info=True)
            raise RedisStorageError(f"Redis delete failed: {e}") from e

    async def ping(self) -> bool:
        await self._ensure_client_initialized()
        try:
            return bool(await self._redis_client.ping())
        except redis.exceptions.RedisError as e:
            raise RedisStorageError(f"Redis ping failed: {e}") from e

    async def close(self):
        """
        Closes the Redis client connection if it's open.
        """
        if self._redis_client:
            log.info("Closing Redis client connection...")
            try:
                await self._redis_client.aclose()
                log.info("Redis client connection closed successfully.")
            except redis.exceptions.RedisError as e:
                log.error(f"Error closing Redis connection: {e}", exc_info=True)
            finally:
                self._redis_client = None

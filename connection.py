"""
Conexión a MongoDB con timeout y verificación de liveness (ping).
"""

from pymongo import MongoClient
from pymongo.errors import ConfigurationError, PyMongoError

import config
from errors import StoreConnectionError


def connect_to_mongo(uri=None, timeout_seconds=None, app_name=None):
    """
    Establece conexión a MongoDB y la valida con un ping a 'admin'.

    Args:
        uri: URI de conexión (default: config.MONGO_URI)
        timeout_seconds: Timeout de conexión (default: config.CONNECT_TIMEOUT_SECONDS)
        app_name: Nombre de aplicación reportado al servidor

    Returns:
        MongoClient: Cliente conectado y verificado

    Raises:
        StoreConnectionError: URI inválida o ping fallido. Nunca retorna
                              un cliente parcialmente conectado.
    """
    uri = uri or config.MONGO_URI
    timeout_ms = int((timeout_seconds or config.CONNECT_TIMEOUT_SECONDS) * 1000)

    print("🔌 Conectando a MongoDB...")
    try:
        client = MongoClient(
            uri,
            appname=app_name or config.MONGO_APP_NAME,
            connectTimeoutMS=timeout_ms,
            serverSelectionTimeoutMS=timeout_ms,
        )
    except (ConfigurationError, ValueError, TypeError) as e:
        raise StoreConnectionError(f"URI de MongoDB inválida: {e}", cause=e) from e

    try:
        client.admin.command("ping")
    except PyMongoError as e:
        client.close()
        raise StoreConnectionError(f"Ping a MongoDB falló: {e}", cause=e) from e

    print("✅ Conexión a MongoDB exitosa")
    return client


def get_database(client, migration_config):
    """Retorna la base de datos configurada para la migración."""
    return client[migration_config["database"]]

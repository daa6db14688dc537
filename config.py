"""
Configuración centralizada para la migración de productos USDA (MongoDB → MongoDB).

ARQUITECTURA:
Cada migración se declara en MIGRATIONS con su base de datos, colecciones
origen/destino, filtro de procedencia y parámetros de lectura/escritura.
El pipeline recibe una copia validada de esa configuración, de modo que el
mismo código sirve para otros pares origen/destino y para tests con fakes.

FLUJO:
1. usdamigra.py conecta (connection.py) y carga la configuración
2. El extractor (extractors/) lee la colección origen con filtro + proyección
3. Cada documento se transforma en NormalizedRecord (records.py)
4. ConcurrentWriter (writer.py) inserta en la colección destino

USO DE LAS FUNCIONES HELPER:
    cfg = get_migration_config('usda')
    cfg['source_collection']   # 'products'

    # Sobrescribir parámetros puntuales (ej: tests o CLI)
    cfg = get_migration_config('usda', {'writer_concurrency': 4})
"""

import os
from dotenv import load_dotenv

# Carga las variables del archivo .env en las variables de entorno del sistema
load_dotenv(override=True)


def _int_env(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


# --- Configuración de MongoDB ---
MONGO_URI = os.getenv("MONGO_URI") or "mongodb://localhost:27017"
MONGO_DATABASE_NAME = os.getenv("MONGO_DATABASE") or "off"
MONGO_APP_NAME = os.getenv("MONGO_APP_NAME") or "usda-migra"
CONNECT_TIMEOUT_SECONDS = _int_env("MONGO_CONNECT_TIMEOUT", 60)

# --- Configuración de Lectura/Escritura ---
FIND_BATCH_SIZE = _int_env("ETL_FIND_BATCH_SIZE", 1000)
AGGREGATE_BATCH_SIZE = _int_env("ETL_AGGREGATE_BATCH_SIZE", 100)
AGGREGATE_MAX_TIME_MS = _int_env("ETL_AGGREGATE_MAX_TIME_MS", 360_000)
WRITER_CONCURRENCY = _int_env("ETL_WRITER_CONCURRENCY", 16)

# Errores de decodificación BSON seguidos antes de abortar la lectura
MAX_CONSECUTIVE_DECODE_ERRORS = 100

# Frecuencia (en documentos) del progreso por consola
PROGRESS_EVERY = 100

# --- Configuración Multi-Migración ---
# Cada migración define:
# - database: Base de datos MongoDB donde viven origen y destino
# - source_collection / target_collection: Colecciones origen y destino
# - creator_token: Palabra buscada (case-insensitive) en el campo 'creator'
# - require_source_url: Exigir 'sources.url' en el filtro del servidor
# - find_batch_size / aggregate_batch_size: Tamaño de página del cursor
# - aggregate_max_time_ms / allow_disk_use: Límites de la agregación
# - writer_concurrency: Máximo de inserciones simultáneas
# - test_set_*: Muestra para pruebas (sample_set.py)
# - verify_*: Lectura de control del destino (verify.py)

MIGRATIONS = {
    "usda": {
        "database": MONGO_DATABASE_NAME,
        "source_collection": "products",
        "target_collection": "usda",
        "creator_token": "usda",
        "require_source_url": True,
        "find_batch_size": FIND_BATCH_SIZE,
        "aggregate_batch_size": AGGREGATE_BATCH_SIZE,
        "aggregate_max_time_ms": AGGREGATE_MAX_TIME_MS,
        "allow_disk_use": True,
        "writer_concurrency": WRITER_CONCURRENCY,
        "test_set_collection": "test_set",
        "test_set_limit": 10000,
        "verify_batch_size": 500,
        "verify_limit": 62000,
        "description": "Productos con creator USDA y URL de origen → colección normalizada usda",
    },
}

MIGRATION_ORDER = ["usda"]

DEFAULT_MIGRATION = "usda"

# Claves numéricas que deben ser enteros positivos
_POSITIVE_INT_KEYS = (
    "find_batch_size",
    "aggregate_batch_size",
    "aggregate_max_time_ms",
    "writer_concurrency",
    "test_set_limit",
    "verify_batch_size",
    "verify_limit",
)

_REQUIRED_STR_KEYS = (
    "database",
    "source_collection",
    "target_collection",
    "creator_token",
)


# --- Funciones Helper ---


def list_migrations() -> list:
    """Retorna los nombres de migración en orden de ejecución."""
    return list(MIGRATION_ORDER)


def get_migration_config(migration_name: str, overrides: dict = None) -> dict:
    """
    Obtiene una copia validada de la configuración de una migración.

    Args:
        migration_name: Nombre de la migración (ej: 'usda')
        overrides: Valores que reemplazan a los configurados (opcional).
                   Las claves con valor None se ignoran.

    Returns:
        dict: Copia independiente de la configuración

    Raises:
        KeyError: Si la migración no está configurada o un override no existe
        ValueError: Si algún valor no es válido

    Ejemplo:
        >>> cfg = get_migration_config('usda', {'writer_concurrency': 4})
        >>> cfg['writer_concurrency']
        4
    """
    if migration_name not in MIGRATIONS:
        available = ", ".join(MIGRATIONS.keys())
        raise KeyError(
            f"Migración '{migration_name}' no está configurada.\n"
            f"Migraciones disponibles: {available}"
        )

    cfg = dict(MIGRATIONS[migration_name])
    cfg["name"] = migration_name

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in cfg:
            raise KeyError(f"Parámetro desconocido para '{migration_name}': {key}")
        cfg[key] = value

    validate_migration_config(cfg)
    return cfg


def validate_migration_config(cfg: dict):
    """
    Valida tipos y rangos de una configuración de migración.

    Raises:
        ValueError: Con el primer problema encontrado
    """
    for key in _REQUIRED_STR_KEYS:
        value = cfg.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"'{key}' debe ser un string no vacío")

    for key in _POSITIVE_INT_KEYS:
        value = cfg.get(key)
        # bool es subclase de int, no se acepta como tamaño
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValueError(f"'{key}' debe ser un entero positivo (recibido: {value!r})")

    if cfg["source_collection"] == cfg["target_collection"]:
        raise ValueError("Las colecciones origen y destino deben ser distintas")


def get_target_collection(migration_name: str) -> str:
    """
    Obtiene el nombre de la colección destino de una migración.

    Ejemplo:
        >>> get_target_collection('usda')
        'usda'
    """
    return get_migration_config(migration_name)["target_collection"]

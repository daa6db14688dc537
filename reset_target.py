# reset_target.py
"""
Script para eliminar la colección destino antes de repetir una migración.

La migración no es idempotente: ejecutarla dos veces duplica los registros.
Usar este script antes de una nueva ejecución completa.

ADVERTENCIA: Esto destruye TODOS los registros migrados de la colección destino.
"""

import sys

from pymongo.errors import PyMongoError

import config
from connection import connect_to_mongo, get_database
from errors import StoreConnectionError


def reset_target(database, migration_config):
    """
    Elimina la colección destino de la migración.

    Returns:
        int: Documentos que tenía la colección antes de eliminarla
    """
    target = migration_config["target_collection"]

    print("=" * 70)
    print("🗑️  LIMPIEZA DE COLECCIÓN DESTINO")
    print("=" * 70)

    collection = database[target]
    previous = collection.count_documents({})

    print(f"\n🗑️  Eliminando '{migration_config['database']}.{target}' ({previous:,} documentos)...")
    collection.drop()
    print(f"   ✅ Colección '{target}' eliminada")

    print("\n" + "=" * 70)
    print("✅ LIMPIEZA FINALIZADA")
    print("=" * 70)
    print("\nAhora ejecutar:")
    print("  python usdamigra.py migrate")
    return previous


def main(argv=None):
    """
    Pide confirmación y elimina la colección destino.

    Returns:
        int: Exit code
    """
    argv = sys.argv[1:] if argv is None else argv
    migration_name = argv[0] if argv else config.DEFAULT_MIGRATION
    cfg = config.get_migration_config(migration_name)

    # Seguridad: pedir confirmación
    print(f"\n⚠️  ADVERTENCIA: Esto eliminará '{cfg['database']}.{cfg['target_collection']}'.")
    response = input("¿Continuar? (escribir 'SI' en mayúsculas): ")

    if response != "SI":
        print("\n❌ Operación cancelada")
        return 0

    try:
        client = connect_to_mongo()
    except StoreConnectionError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    try:
        reset_target(get_database(client, cfg), cfg)
    except PyMongoError as e:
        print(f"\n❌ Error eliminando la colección destino: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

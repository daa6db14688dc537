r"""
Script principal de la migración de productos USDA (MongoDB → MongoDB).

Arquitectura:
- usdamigra.py: Punto de entrada (conexión, selección de comando, exit code)
- pipeline.py: Orquestación lector → transformación → escritura concurrente
- extractors/*.py: Estrategias de lectura (cursor / agregación)
- writer.py: Escritura concurrente acotada
- config.py: Configuración centralizada

Flujo de ejecución (migrate):
1. Cargar configuración de la migración
2. Conectar a MongoDB (timeout + ping)
3. Cargar el extractor de la estrategia elegida
4. Leer, transformar y escribir cada documento de forma independiente
5. Imprimir resumen (leídos, transformados, saltados, escritos)

Uso:
    python usdamigra.py migrate [--strategy cursor|aggregation] [--workers N]
    python usdamigra.py verify [--limit N]
    python usdamigra.py sample [--limit N] [--export]

Exit Codes:
    0: Éxito (aunque haya registros saltados o escrituras fallidas)
    1: Error fatal (conexión, emisión de consulta, lectura interrumpida)
"""

import argparse
import sys

import config
from connection import connect_to_mongo, get_database
from errors import EtlError
from pipeline import STRATEGIES, run_migration
from sample_set import create_test_set, export_collection_sample
from verify import verify_target


def build_parser():
    parser = argparse.ArgumentParser(
        prog="usdamigra",
        description="Migra productos USDA de la colección origen a la colección normalizada.",
    )
    parser.add_argument(
        "--migration",
        default=config.DEFAULT_MIGRATION,
        choices=config.list_migrations(),
        help="Migración configurada en config.MIGRATIONS",
    )
    parser.add_argument("--uri", default=None, help="URI de MongoDB (default: MONGO_URI)")

    commands = parser.add_subparsers(dest="command", required=True)

    migrate = commands.add_parser("migrate", help="Ejecuta la migración")
    migrate.add_argument("--strategy", choices=STRATEGIES, default="cursor")
    migrate.add_argument("--workers", type=int, default=None, help="Escrituras simultáneas")

    verify = commands.add_parser("verify", help="Lista la colección destino")
    verify.add_argument("--limit", type=int, default=None)
    verify.add_argument("--quiet", action="store_true", help="Solo contar")

    sample = commands.add_parser("sample", help="Crea la colección de pruebas")
    sample.add_argument("--limit", type=int, default=None)
    sample.add_argument("--export", action="store_true", help="Exportar también a JSON")

    return parser


def dispatch(args, database, migration_config):
    """Ejecuta el comando seleccionado sobre una base de datos ya conectada."""
    if args.command == "migrate":
        return run_migration(database, migration_config, strategy=args.strategy)
    if args.command == "verify":
        return verify_target(database, migration_config, limit=args.limit, echo=not args.quiet)
    if args.command == "sample":
        result = create_test_set(database, migration_config, limit=args.limit)
        if args.export:
            export_collection_sample(
                database, migration_config["test_set_collection"], limit=args.limit or 200
            )
        return result
    raise ValueError(f"Comando desconocido: {args.command}")


def main(argv=None):
    """
    Función principal que coordina el flujo completo.

    Returns:
        int: Exit code
    """
    args = build_parser().parse_args(argv)

    try:
        migration_config = config.get_migration_config(
            args.migration, {"writer_concurrency": getattr(args, "workers", None)}
        )
    except (KeyError, ValueError) as e:
        print(f"❌ Configuración inválida: {e}", file=sys.stderr)
        return 1

    print("=" * 70)
    print("🚀 MIGRACIÓN DE PRODUCTOS USDA (MONGODB → MONGODB)")
    print("=" * 70)
    print(f"📍 Base de datos: {migration_config['database']}")
    print(f"📍 Origen: {migration_config['source_collection']}")
    print(f"📍 Destino: {migration_config['target_collection']}")

    try:
        client = connect_to_mongo(args.uri)
    except EtlError as e:
        print(f"❌ Error de conexión a MongoDB", file=sys.stderr)
        print(f"   Detalle: {e}", file=sys.stderr)
        return 1

    try:
        dispatch(args, get_database(client, migration_config), migration_config)
    except EtlError as e:
        print(f"\n❌ Error fatal: {e}", file=sys.stderr)
        return 1
    finally:
        print("\n🔒 Cerrando conexión...")
        client.close()

    print("\n" + "=" * 70)
    print("✅ PROCESO COMPLETADO")
    print("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())

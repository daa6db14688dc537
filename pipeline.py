"""
Orquestación de la migración: lector secuencial → transformación → escritura concurrente.

Flujo de ejecución:
1. Cargar el extractor de la estrategia (carga dinámica por convención)
2. Emitir la consulta (open_stream)
3. Iterar el cursor en el hilo llamador, clasificando los errores de lectura
4. Transformar cada documento (extract_data); sin _id → se cuenta y se salta
5. Entregar el registro al ConcurrentWriter (bloquea si el pool está lleno)
6. Esperar a que terminen las escrituras en vuelo y reportar el resumen

Política de errores:
- QueryIssuanceError / MidStreamReadError: fatales, se propagan DESPUÉS de
  drenar las escrituras en vuelo
- ExtractionError / WriteError: por registro, se cuentan
- InvalidBSON: fatal si el cursor murió con el lote (caso de pymongo)
"""

import importlib
import sys
import time
from dataclasses import dataclass, field

from bson.errors import InvalidBSON
from pymongo.errors import ExecutionTimeout, PyMongoError

import config
from errors import (
    ExtractionError,
    MidStreamReadError,
    QueryIssuanceError,
    ReadTimeoutError,
)
from extractors.base import BaseExtractor
from writer import ConcurrentWriter

STRATEGIES = ["cursor", "aggregation"]


@dataclass
class MigrationStats:
    """Contadores de una ejecución. Se reportan al final (no objetos de error)."""

    strategy: str = ""
    total_expected: int = None
    documents_read: int = 0
    records_transformed: int = 0
    extraction_failures: int = 0
    decode_failures: int = 0
    records_written: int = 0
    write_failures: int = 0
    started_at: float = field(default_factory=time.monotonic)
    finished_at: float = None
    error: str = None

    @property
    def skipped(self) -> int:
        return self.extraction_failures + self.decode_failures

    @property
    def elapsed_seconds(self) -> float:
        end = self.finished_at if self.finished_at is not None else time.monotonic()
        return end - self.started_at

    def as_dict(self) -> dict:
        return {
            "strategy": self.strategy,
            "documents_read": self.documents_read,
            "records_transformed": self.records_transformed,
            "skipped": self.skipped,
            "extraction_failures": self.extraction_failures,
            "decode_failures": self.decode_failures,
            "records_written": self.records_written,
            "write_failures": self.write_failures,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "error": self.error,
        }

    def print_summary(self):
        print("\n" + "=" * 70)
        print(f"📊 RESUMEN DE MIGRACIÓN ({self.strategy})")
        print("=" * 70)
        print(f"   📥 Documentos leídos:      {self.documents_read:,}")
        print(f"   🔄 Registros transformados: {self.records_transformed:,}")
        print(f"   ⏭️  Saltados:               {self.skipped:,}")
        print(f"      └─ Sin _id:             {self.extraction_failures:,}")
        print(f"      └─ BSON inválido:       {self.decode_failures:,}")
        print(f"   💾 Registros escritos:     {self.records_written:,}")
        print(f"   ❌ Escrituras fallidas:    {self.write_failures:,}")
        print(f"   ⏱️  Tiempo:                 {self.elapsed_seconds:.1f}s")
        if self.error:
            print(f"   🛑 Lectura abortada: {self.error}")
        print("=" * 70)


def load_extractor(strategy, migration_config):
    """
    Carga dinámicamente el extractor de una estrategia.

    Convención de nombres:
        cursor → extractors.cursor → CursorExtractor
        aggregation → extractors.aggregation → AggregationExtractor

    Raises:
        ValueError: Si la estrategia no existe o no hereda de BaseExtractor
    """
    if strategy not in STRATEGIES:
        raise ValueError(
            f"Estrategia '{strategy}' desconocida. Disponibles: {', '.join(STRATEGIES)}"
        )

    class_name = "".join(word.capitalize() for word in strategy.split("_")) + "Extractor"
    module = importlib.import_module(f"extractors.{strategy}")
    extractor_class = getattr(module, class_name)

    if not issubclass(extractor_class, BaseExtractor):
        raise ValueError(f"{class_name} no hereda de BaseExtractor")

    return extractor_class(migration_config)


def iter_documents(cursor, stats):
    """
    Recorre un cursor clasificando los errores de lectura.

    Actualiza stats.documents_read y stats.decode_failures (cualquier objeto
    con esos dos atributos sirve, p.ej. MigrationStats).

    - Error antes del primer documento → QueryIssuanceError
    - Error después → MidStreamReadError (ReadTimeoutError si es maxTimeMS)
    - InvalidBSON con el cursor cerrado → MidStreamReadError. pymongo decodifica
      el lote entero y cierra el cursor si falla: seguir iterando daría un
      StopIteration y el resto de la colección se perdería sin aviso
    - InvalidBSON con el cursor vivo → documento saltado; demasiados seguidos
      → MidStreamReadError
    """
    consecutive_decode_errors = 0
    iterator = iter(cursor)

    while True:
        try:
            doc = next(iterator)
        except StopIteration:
            return
        except InvalidBSON as e:
            stats.decode_failures += 1
            consecutive_decode_errors += 1
            if not getattr(cursor, "alive", True):
                raise MidStreamReadError(
                    f"Lote con BSON inválido tras {stats.documents_read:,} documentos; "
                    f"el servidor cerró el cursor: {e}",
                    cause=e,
                    documents_read=stats.documents_read,
                ) from e
            print(f"\n   ⚠️  Documento con BSON inválido saltado: {e}", file=sys.stderr)
            if consecutive_decode_errors > config.MAX_CONSECUTIVE_DECODE_ERRORS:
                raise MidStreamReadError(
                    f"{consecutive_decode_errors} errores de decodificación seguidos",
                    cause=e,
                    documents_read=stats.documents_read,
                ) from e
            continue
        except ExecutionTimeout as e:
            raise ReadTimeoutError(
                f"Lectura cortada por tiempo máximo de ejecución: {e}",
                cause=e,
                documents_read=stats.documents_read,
            ) from e
        except PyMongoError as e:
            if stats.documents_read == 0 and stats.decode_failures == 0:
                raise QueryIssuanceError(f"La consulta falló al emitirse: {e}", cause=e) from e
            raise MidStreamReadError(
                f"Lectura interrumpida tras {stats.documents_read:,} documentos: {e}",
                cause=e,
                documents_read=stats.documents_read,
            ) from e

        consecutive_decode_errors = 0
        stats.documents_read += 1
        yield doc


class MigrationPipeline:
    """
    Ejecuta una migración completa con una estrategia de extracción.

    Attributes:
        stats (MigrationStats): Disponible también si run() lanzó un error fatal
    """

    def __init__(self, database, migration_config, extractor=None, strategy="cursor"):
        self.database = database
        self.config = migration_config
        self.extractor = extractor or load_extractor(strategy, migration_config)
        self.stats = MigrationStats(strategy=self.extractor.strategy)

    def target_collection(self):
        return self.database[self.config["target_collection"]]

    def count_expected(self):
        """
        Cuenta los documentos que cumplen el filtro (solo para el progreso).

        Raises:
            QueryIssuanceError: Si el servidor rechaza el filtro
        """
        source = self.extractor.source_collection(self.database)
        try:
            return source.count_documents(self.extractor.build_filter())
        except PyMongoError as e:
            raise QueryIssuanceError(f"No se pudo contar documentos origen: {e}", cause=e) from e

    def run(self):
        """
        Ejecuta la migración.

        Returns:
            MigrationStats: Contadores finales

        Raises:
            QueryIssuanceError: La consulta no pudo emitirse (nada procesado)
            MidStreamReadError: La lectura se cortó; lo ya leído se escribió
        """
        stats = self.stats
        cfg = self.config

        print(f"\n🚚 Iniciando migración '{cfg.get('name', cfg['target_collection'])}'...")
        print(f"   🧭 Estrategia: {self.extractor.describe()}")
        print(f"   🎯 Destino: {cfg['database']}.{cfg['target_collection']}")
        print(f"   👷 Escrituras simultáneas: {cfg['writer_concurrency']}")

        try:
            stats.total_expected = self.count_expected()
            print(f"   📊 Documentos que cumplen el filtro: {stats.total_expected:,}")
            cursor = self.extractor.open_stream(self.database)
        except QueryIssuanceError as e:
            stats.error = str(e)
            stats.finished_at = time.monotonic()
            raise

        writer = ConcurrentWriter(self.target_collection(), cfg["writer_concurrency"])

        try:
            for doc in iter_documents(cursor, stats):
                try:
                    record = self.extractor.extract_data(doc)
                except ExtractionError as e:
                    stats.extraction_failures += 1
                    print(f"\n   ⚠️  Documento #{stats.documents_read} saltado: {e}", file=sys.stderr)
                    continue

                stats.records_transformed += 1
                writer.submit(record)
                self._print_progress()
        except (QueryIssuanceError, MidStreamReadError) as e:
            stats.error = str(e)
            raise
        finally:
            # Drenar: las escrituras en vuelo terminan aunque la lectura haya fallado
            writer.close()
            _close_cursor(cursor)
            stats.records_written = writer.written
            stats.write_failures = writer.failed
            stats.finished_at = time.monotonic()

        print(f"\n✅ Migración completada: {stats.documents_read:,} documentos procesados")
        return stats

    def _print_progress(self):
        count = self.stats.documents_read
        if count % config.PROGRESS_EVERY != 0:
            return
        total = self.stats.total_expected
        if total:
            # \033[K limpia la línea para evitar basura visual
            print(
                f"\r\033[K⏳ Procesados: {count:,}/{total:,} ({count * 100 // total}%)",
                end="",
                flush=True,
            )
        else:
            print(f"\r\033[K⏳ Procesados: {count:,}", end="", flush=True)


def _close_cursor(cursor):
    close = getattr(cursor, "close", None)
    if close is not None:
        close()


def run_migration(database, migration_config, strategy="cursor"):
    """
    Atajo: construye el pipeline, lo ejecuta e imprime el resumen.

    El resumen se imprime también si la lectura falló.
    """
    pipeline = MigrationPipeline(database, migration_config, strategy=strategy)
    try:
        return pipeline.run()
    finally:
        pipeline.stats.print_summary()

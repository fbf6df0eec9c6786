"""
Servicio de negocio para los estudiantes.

Cada operación emite una sola sentencia SQL y, si hace falta, llamadas al
bucket de fotos. Base de datos y S3 no comparten transacción: una foto subida
antes de un fallo en la base de datos no se elimina, y al revés.
"""

import asyncio
import logging
import time
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.estudiante import Estudiante
from app.schemas.estudiante import EstudianteForm, FotoSubida
from app.storage import PhotoStorage

logger = logging.getLogger(__name__)

# Fallos de los servicios externos que terminan la petición con un 500
ERRORES_REMOTOS = (SQLAlchemyError, BotoCoreError, ClientError)


class EstudianteNoEncontrado(LookupError):
    """No existe ningún registro con el id pedido."""


def generar_clave_foto(nombre_archivo: str, ahora_ms: Optional[int] = None) -> str:
    """
    Clave S3 de una foto: <epoch en milisegundos>-<nombre original>.
    Dos subidas del mismo nombre en el mismo milisegundo colisionan.
    """
    if ahora_ms is None:
        ahora_ms = time.time_ns() // 1_000_000
    return f"{ahora_ms}-{nombre_archivo}"


async def listar_estudiantes(db: AsyncSession) -> List[Estudiante]:
    """Todos los registros, en el orden natural de la base de datos."""
    result = await db.execute(select(Estudiante))
    return list(result.scalars().all())


async def buscar_por_apellido(db: AsyncSession, apellido: Optional[str]) -> List[Estudiante]:
    """
    Registros cuyo campo apellidos contiene el fragmento como subcadena literal.
    Un fragmento vacío devuelve todos los registros, también los de apellidos NULL.
    """
    if not apellido:
        return await listar_estudiantes(db)
    result = await db.execute(
        select(Estudiante).where(Estudiante.apellidos.contains(apellido, autoescape=True))
    )
    return list(result.scalars().all())


async def obtener_estudiante(db: AsyncSession, estudiante_id: int) -> Optional[Estudiante]:
    return await db.get(Estudiante, estudiante_id)


async def crear_estudiante(
    db: AsyncSession,
    storage: PhotoStorage,
    datos: EstudianteForm,
    foto: Optional[FotoSubida] = None,
) -> Optional[str]:
    """
    Sube la foto (si la hay) y después inserta el registro con su clave.
    Devuelve la clave guardada en la columna foto, o None.
    """
    clave = None
    if foto is not None:
        clave = generar_clave_foto(foto.nombre)
        await storage.upload(clave, foto.contenido, foto.content_type)

    await db.execute(insert(Estudiante).values(**datos.columnas(), foto=clave))
    await db.commit()
    logger.info("Estudiante %s %s creado (foto: %s)", datos.nombre, datos.apellidos, clave)
    return clave


async def actualizar_estudiante(
    db: AsyncSession,
    storage: PhotoStorage,
    estudiante_id: int,
    datos: EstudianteForm,
    foto_anterior: Optional[str] = None,
    foto_nueva: Optional[FotoSubida] = None,
) -> Optional[str]:
    """
    Actualiza todos los campos del registro.

    Con foto nueva: borra la anterior (si había clave), sube la nueva con una
    clave recién generada y la guarda. Sin foto nueva se conserva foto_anterior
    sin tocar el bucket. Devuelve la clave final de la foto.
    """
    foto = foto_anterior
    if foto_nueva is not None:
        if foto_anterior:
            await storage.delete(foto_anterior)
        foto = generar_clave_foto(foto_nueva.nombre)
        await storage.upload(foto, foto_nueva.contenido, foto_nueva.content_type)

    result = await db.execute(
        update(Estudiante)
        .where(Estudiante.id == estudiante_id)
        .values(**datos.columnas(), foto=foto)
    )
    await db.commit()

    if result.rowcount == 0:
        logger.warning("Actualización sin efecto: no existe el estudiante %s", estudiante_id)
    else:
        logger.info("Estudiante %s actualizado (foto: %s)", estudiante_id, foto)
    return foto


async def eliminar_estudiante(db: AsyncSession, storage: PhotoStorage, estudiante_id: int) -> None:
    """
    Borra la foto del registro (si tiene) y después el registro.
    Lanza EstudianteNoEncontrado si el id no existe, sin tocar el bucket.
    """
    estudiante = await db.get(Estudiante, estudiante_id)
    if estudiante is None:
        raise EstudianteNoEncontrado(estudiante_id)

    if estudiante.foto:
        await storage.delete(estudiante.foto)

    await db.execute(delete(Estudiante).where(Estudiante.id == estudiante_id))
    await db.commit()
    logger.info("Estudiante %s eliminado", estudiante_id)


async def eliminar_todos(db: AsyncSession, storage: PhotoStorage) -> int:
    """
    Borra todas las fotos en paralelo y, cuando todas han terminado, todos los registros.

    Si alguna eliminación en S3 falla se relanza su error una vez terminadas
    las demás y no se borra ningún registro. Las fotos ya eliminadas no se
    restauran. Devuelve el número de fotos borradas.
    """
    result = await db.execute(select(Estudiante.foto))
    claves = [foto for foto in result.scalars().all() if foto]

    resultados = await asyncio.gather(
        *(storage.delete(clave) for clave in claves), return_exceptions=True
    )
    errores = [r for r in resultados if isinstance(r, BaseException)]
    if errores:
        logger.error(
            "%d de %d fotos no se pudieron eliminar; no se borra ningún registro",
            len(errores), len(claves),
        )
        raise errores[0]

    await db.execute(delete(Estudiante))
    await db.commit()
    logger.info("Todos los estudiantes eliminados (%d fotos borradas)", len(claves))
    return len(claves)

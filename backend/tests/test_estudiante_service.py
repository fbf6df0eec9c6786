"""
Tests unitarios del servicio de estudiantes.
"""

import asyncio
import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from botocore.exceptions import ClientError

from app.models.estudiante import Estudiante
from app.schemas.estudiante import EstudianteForm, FotoSubida
from app.services.estudiante_service import (
    EstudianteNoEncontrado,
    actualizar_estudiante,
    buscar_por_apellido,
    crear_estudiante,
    eliminar_estudiante,
    eliminar_todos,
    generar_clave_foto,
)
from app.storage import PhotoStorage

pytestmark = pytest.mark.anyio


# --- Helpers ---

def make_db_mock(rows=None, rowcount=1, estudiante=None):
    db = AsyncMock()
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows or []
    result.rowcount = rowcount
    db.execute.return_value = result
    db.get.return_value = estudiante
    return db


def make_storage_mock():
    storage = MagicMock(spec=PhotoStorage)
    storage.upload = AsyncMock()
    storage.delete = AsyncMock()
    return storage


DATOS = EstudianteForm(nombre="Ana", apellidos="Diaz", correo="a@x.com", programa="CS", edad=20, dni="123")


# --- Clave de foto ---

def test_clave_foto_formato():
    assert generar_clave_foto("yo.png", ahora_ms=1700000000123) == "1700000000123-yo.png"


def test_clave_foto_usa_milisegundos_actuales():
    clave = generar_clave_foto("yo.png")
    ms, nombre = clave.split("-", 1)
    assert nombre == "yo.png"
    assert len(ms) >= 13


def test_clave_foto_colision_mismo_milisegundo():
    """Mismo nombre en el mismo milisegundo produce la misma clave (riesgo conocido)."""
    assert generar_clave_foto("a.png", 1) == generar_clave_foto("a.png", 1)


# --- Esquema de formulario ---

def test_formulario_edad_vacia_es_none():
    assert EstudianteForm(edad="").edad is None


def test_formulario_columnas_sin_foto_ni_id():
    assert set(DATOS.columnas()) == {"nombre", "apellidos", "correo", "programa", "edad", "dni"}


# --- Búsqueda ---

async def test_busqueda_usa_subcadena_literal():
    db = make_db_mock(rows=[Estudiante(id=1, apellidos="50%_Garcia")])

    resultado = await buscar_por_apellido(db, "50%")

    assert len(resultado) == 1
    stmt = db.execute.await_args.args[0]
    assert "ESCAPE" in str(stmt)
    assert "50/%" in stmt.compile().params.values()


async def test_busqueda_sin_fragmento_no_filtra():
    db = make_db_mock()
    await buscar_por_apellido(db, None)
    assert "WHERE" not in str(db.execute.await_args.args[0])


# --- Alta ---

async def test_crear_sin_foto():
    db, storage = make_db_mock(), make_storage_mock()

    clave = await crear_estudiante(db, storage, DATOS)

    assert clave is None
    storage.upload.assert_not_awaited()
    assert db.execute.await_args.args[0].compile().params["foto"] is None


async def test_crear_con_foto():
    db, storage = make_db_mock(), make_storage_mock()
    foto = FotoSubida(nombre="yo.jpg", contenido=b"jpg", content_type="image/jpeg")

    clave = await crear_estudiante(db, storage, DATOS, foto)

    assert re.fullmatch(r"\d+-yo\.jpg", clave)
    storage.upload.assert_awaited_once_with(clave, b"jpg", "image/jpeg")
    assert db.execute.await_args.args[0].compile().params["foto"] == clave


# --- Actualización ---

async def test_actualizar_registro_inexistente_no_falla():
    """Un UPDATE sin filas afectadas no es un error."""
    db, storage = make_db_mock(rowcount=0), make_storage_mock()

    foto = await actualizar_estudiante(db, storage, 99, DATOS, foto_anterior="1-a.png")

    assert foto == "1-a.png"
    db.commit.assert_awaited_once()


async def test_actualizar_borra_antes_de_subir():
    db, storage = make_db_mock(), make_storage_mock()
    orden = []
    storage.delete.side_effect = lambda key: orden.append("delete")
    storage.upload.side_effect = lambda *args: orden.append("upload")

    await actualizar_estudiante(
        db, storage, 1, DATOS,
        foto_anterior="1-a.png",
        foto_nueva=FotoSubida(nombre="b.png", contenido=b"b"),
    )

    assert orden == ["delete", "upload"]


# --- Borrado ---

async def test_eliminar_inexistente():
    db, storage = make_db_mock(estudiante=None), make_storage_mock()

    with pytest.raises(EstudianteNoEncontrado):
        await eliminar_estudiante(db, storage, 5)

    storage.delete.assert_not_awaited()
    db.execute.assert_not_awaited()


async def test_eliminar_con_foto():
    db = make_db_mock(estudiante=Estudiante(id=5, foto="1-a.png"))
    storage = make_storage_mock()

    await eliminar_estudiante(db, storage, 5)

    storage.delete.assert_awaited_once_with("1-a.png")
    assert str(db.execute.await_args.args[0]).startswith("DELETE FROM estudiantes")


# --- Borrado total ---

async def test_eliminar_todos_lanza_borrados_en_paralelo():
    """Cada borrado espera al otro: solo termina si se ejecutan a la vez."""
    db, storage = make_db_mock(rows=["a.png", "b.png"]), make_storage_mock()
    iniciados = {"a.png": asyncio.Event(), "b.png": asyncio.Event()}

    async def borrar(key):
        iniciados[key].set()
        otro = "b.png" if key == "a.png" else "a.png"
        await iniciados[otro].wait()

    storage.delete.side_effect = borrar

    borradas = await asyncio.wait_for(eliminar_todos(db, storage), timeout=2)

    assert borradas == 2
    assert db.execute.await_count == 2
    db.commit.assert_awaited_once()


async def test_eliminar_todos_espera_a_todos_antes_de_fallar():
    db, storage = make_db_mock(rows=["a.png", "b.png", None]), make_storage_mock()
    terminados = []

    async def borrar(key):
        if key == "a.png":
            raise ClientError({"Error": {"Code": "403", "Message": "denegado"}}, "DeleteObject")
        await asyncio.sleep(0.01)
        terminados.append(key)

    storage.delete.side_effect = borrar

    with pytest.raises(ClientError):
        await eliminar_todos(db, storage)

    assert terminados == ["b.png"]
    assert db.execute.await_count == 1
    db.commit.assert_not_awaited()


async def test_eliminar_todos_sin_fotos():
    db, storage = make_db_mock(rows=[None, None]), make_storage_mock()

    borradas = await eliminar_todos(db, storage)

    assert borradas == 0
    storage.delete.assert_not_awaited()
    assert db.execute.await_count == 2

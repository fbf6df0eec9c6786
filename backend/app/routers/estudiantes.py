"""
Router de las vistas HTML de estudiantes.
Listado y búsqueda (GET /, POST /search)
Alta (GET /create, POST /save)
Edición (GET /edit/{id}, POST /update)
Borrado (GET /delete/{id}, GET /delete-all)
"""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import PlainTextResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from app.config import Settings
from app.database import get_db
from app.schemas.estudiante import (
    CAMPOS_ESTUDIANTE,
    EstudianteForm,
    EstudianteUpdateForm,
    FormularioEstudiante,
    FotoSubida,
)
from app.services import estudiante_service
from app.services.estudiante_service import ERRORES_REMOTOS, EstudianteNoEncontrado
from app.storage import PhotoStorage, get_storage

logger = logging.getLogger(__name__)

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

router = APIRouter(tags=["Estudiantes"])


async def _leer_foto(archivo: UploadFile, config: Settings) -> FotoSubida:
    """Lee el fichero subido rechazando los que superan el tamaño máximo."""
    limite = config.max_photo_size
    if archivo.size is not None and archivo.size > limite:
        raise HTTPException(status_code=413, detail=_mensaje_tamano(config))
    contenido = await archivo.read(limite + 1)
    if len(contenido) > limite:
        raise HTTPException(status_code=413, detail=_mensaje_tamano(config))
    return FotoSubida(nombre=archivo.filename, contenido=contenido, content_type=archivo.content_type)


def _mensaje_tamano(config: Settings) -> str:
    return f"La foto supera el tamaño máximo permitido ({config.MAX_PHOTO_SIZE_MB} MB)."


async def _leer_formulario(request: Request, con_id: bool = False) -> FormularioEstudiante:
    """
    Lee un formulario multipart de estudiante.

    El formulario de edición envía dos campos llamados foto: uno oculto con la
    clave actual (texto) y el input de fichero. Un input de fichero vacío
    llega sin nombre y se ignora.
    """
    async with request.form() as form:
        foto_anterior = None
        foto_nueva = None
        for valor in form.getlist("foto"):
            if isinstance(valor, UploadFile):
                if valor.filename:
                    foto_nueva = await _leer_foto(valor, request.app.state.settings)
            elif valor:
                foto_anterior = valor

        valores = {campo: form.get(campo) for campo in CAMPOS_ESTUDIANTE}
        if con_id:
            valores["id"] = form.get("id")

    esquema = EstudianteUpdateForm if con_id else EstudianteForm
    try:
        datos = esquema.model_validate(valores)
    except ValidationError as exc:
        logger.info("Formulario rechazado: %s", exc)
        raise HTTPException(status_code=422, detail="Datos del formulario no válidos.")

    return FormularioEstudiante(datos=datos, foto_anterior=foto_anterior, foto_nueva=foto_nueva)


@router.get("/", summary="Listar todos los estudiantes")
async def index(request: Request, db: AsyncSession = Depends(get_db)):
    try:
        estudiantes = await estudiante_service.listar_estudiantes(db)
    except ERRORES_REMOTOS as exc:
        logger.error("Error al obtener los registros de la base de datos: %s", exc)
        return PlainTextResponse("Error al obtener los registros.", status_code=500)
    return templates.TemplateResponse(request, "index.html", {"data": estudiantes})


@router.post("/search", summary="Buscar estudiantes por apellido")
async def search(request: Request, apellido: str = Form(""), db: AsyncSession = Depends(get_db)):
    """Filtra por fragmento de apellidos; un fragmento vacío lista todo."""
    try:
        estudiantes = await estudiante_service.buscar_por_apellido(db, apellido)
    except ERRORES_REMOTOS as exc:
        logger.error("Error al buscar registros por apellido '%s': %s", apellido, exc)
        return PlainTextResponse("Error al obtener los registros.", status_code=500)
    return templates.TemplateResponse(request, "index.html", {"data": estudiantes})


@router.get("/create", summary="Formulario de alta")
async def create(request: Request):
    return templates.TemplateResponse(request, "create.html", {})


@router.post("/save", summary="Crear un estudiante")
async def save(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: PhotoStorage = Depends(get_storage),
):
    formulario = await _leer_formulario(request)
    try:
        await estudiante_service.crear_estudiante(db, storage, formulario.datos, formulario.foto_nueva)
    except ERRORES_REMOTOS as exc:
        logger.error(
            "Error al subir la foto a S3 o guardar la información en la base de datos: %s", exc
        )
        return PlainTextResponse("Error al subir la foto o guardar la información.", status_code=500)
    return RedirectResponse("/", status_code=302)


@router.get("/edit/{estudiante_id}", summary="Formulario de edición")
async def edit(
    request: Request,
    estudiante_id: int,
    db: AsyncSession = Depends(get_db),
    storage: PhotoStorage = Depends(get_storage),
):
    """
    Muestra el formulario de edición con la foto actual.
    Un registro sin foto se trata igual que uno inexistente (404).
    """
    try:
        estudiante = await estudiante_service.obtener_estudiante(db, estudiante_id)
    except ERRORES_REMOTOS as exc:
        logger.error("Error al obtener el registro de la base de datos: %s", exc)
        return PlainTextResponse("Error al obtener el registro.", status_code=500)

    if estudiante is None or not estudiante.foto:
        raise HTTPException(status_code=404, detail="Registro no encontrado o sin foto")

    return templates.TemplateResponse(
        request,
        "edit.html",
        {"estudiante": estudiante, "foto_url": storage.url_for(estudiante.foto)},
    )


@router.post("/update", summary="Actualizar un estudiante")
async def update(
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: PhotoStorage = Depends(get_storage),
):
    formulario = await _leer_formulario(request, con_id=True)
    try:
        await estudiante_service.actualizar_estudiante(
            db,
            storage,
            formulario.datos.id,
            formulario.datos,
            foto_anterior=formulario.foto_anterior,
            foto_nueva=formulario.foto_nueva,
        )
    except ERRORES_REMOTOS as exc:
        logger.error("Error al actualizar el registro en la base de datos o en S3: %s", exc)
        return PlainTextResponse("Error al actualizar el registro.", status_code=500)
    return RedirectResponse("/", status_code=302)


@router.get("/delete-all", summary="Eliminar todos los estudiantes")
async def delete_all(
    db: AsyncSession = Depends(get_db),
    storage: PhotoStorage = Depends(get_storage),
):
    try:
        await estudiante_service.eliminar_todos(db, storage)
    except ERRORES_REMOTOS as exc:
        logger.error(
            "Error al eliminar las imágenes de S3 o los registros de la base de datos: %s", exc
        )
        return PlainTextResponse("Error al eliminar las imágenes o los registros.", status_code=500)
    return RedirectResponse("/", status_code=302)


@router.get("/delete/{estudiante_id}", summary="Eliminar un estudiante")
async def delete(
    estudiante_id: int,
    db: AsyncSession = Depends(get_db),
    storage: PhotoStorage = Depends(get_storage),
):
    try:
        await estudiante_service.eliminar_estudiante(db, storage, estudiante_id)
    except EstudianteNoEncontrado:
        raise HTTPException(status_code=404, detail="Registro no encontrado.")
    except ERRORES_REMOTOS as exc:
        logger.error(
            "Error al eliminar la foto de S3 o el registro de la base de datos: %s", exc
        )
        return PlainTextResponse("Error al eliminar la foto o el registro.", status_code=500)
    return RedirectResponse("/", status_code=302)

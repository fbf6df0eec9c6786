"""
Esquemas Pydantic para los formularios HTML de estudiantes.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator

CAMPOS_ESTUDIANTE = ("nombre", "apellidos", "correo", "programa", "edad", "dni")


class EstudianteForm(BaseModel):
    """Campos del formulario de alta (POST /save). Ninguno es obligatorio."""
    nombre: Optional[str] = None
    apellidos: Optional[str] = None
    correo: Optional[str] = None
    programa: Optional[str] = None
    edad: Optional[int] = None
    dni: Optional[str] = None

    @field_validator("edad", mode="before")
    @classmethod
    def edad_vacia(cls, v: Any) -> Any:
        # Un input numérico vacío llega como cadena vacía
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def columnas(self) -> Dict[str, Any]:
        """Valores a escribir en la tabla, sin id ni foto."""
        return self.model_dump(include=set(CAMPOS_ESTUDIANTE))


class EstudianteUpdateForm(EstudianteForm):
    """Formulario de edición (POST /update): incluye el id del registro."""
    id: int


class FotoSubida(BaseModel):
    """Fichero de foto ya leído en memoria."""
    nombre: str
    contenido: bytes
    content_type: Optional[str] = None


class FormularioEstudiante(BaseModel):
    """Resultado de leer un formulario multipart de estudiante."""
    datos: EstudianteForm
    foto_anterior: Optional[str] = None
    foto_nueva: Optional[FotoSubida] = None

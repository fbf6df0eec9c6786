"""
Modelo SQLAlchemy para la tabla estudiantes.
La columna foto guarda la clave del objeto en S3, nunca la imagen.
"""

from sqlalchemy import Column, Integer, String

from app.database import Base


class Estudiante(Base):
    __tablename__ = "estudiantes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nombre = Column(String(100), nullable=True)
    apellidos = Column(String(150), nullable=True)
    correo = Column(String(150), nullable=True)
    programa = Column(String(150), nullable=True)
    edad = Column(Integer, nullable=True)
    dni = Column(String(20), nullable=True)
    foto = Column(String(255), nullable=True)

# Importa los modelos para registrar sus tablas en Base.metadata
# antes de que create_all o las consultas los necesiten.

from app.models.estudiante import Estudiante  # noqa: F401

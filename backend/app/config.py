"""
Configuración central de la aplicación mediante variables de entorno.
En desarrollo se cargan desde un fichero .env.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Base de datos (obligatoria)
    DATABASE_URL: str

    # Almacenamiento S3 de fotos (obligatorio)
    AWS_ACCESS_KEY_ID: str
    AWS_SECRET_ACCESS_KEY: str
    AWS_REGION: str
    AWS_BUCKET_NAME: str

    # Servidor
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    # Fotos
    PHOTO_BASE_URL: str = "/fotos/"
    MAX_PHOTO_SIZE_MB: int = 10

    # Crea la tabla estudiantes al arrancar (desarrollo y tests)
    CREATE_TABLES: bool = False

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def async_database_url(self) -> str:
        """URL para el motor asíncrono: mysql:// se traduce al driver aiomysql."""
        for prefix in ("mysql://", "mysql+pymysql://"):
            if self.DATABASE_URL.startswith(prefix):
                return "mysql+aiomysql://" + self.DATABASE_URL[len(prefix):]
        return self.DATABASE_URL

    @property
    def max_photo_size(self) -> int:
        return self.MAX_PHOTO_SIZE_MB * 1024 * 1024


settings = Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # HTTP API
    HOST: str = "0.0.0.0"
    PORT: int = 5001

    # Webhook
    WEBHOOK_URL: str = "http://localhost:5000/webhook"
    WEBHOOK_TIMEOUT_SECONDS: float = 10.0

    # FTP blob store
    FTP_HOST: str
    FTP_PORT: int = 21
    FTP_USER: str  # Also the account segment of upload paths
    FTP_PASSWORD: str
    FTP_PATH_URL: str = ""  # Public base URL of FTP_ROOT
    FTP_ROOT: str = "/public_html"
    DOCUMENTS_DIR: str = "documentos"
    IMAGES_DIR: str = "imagem_rosto"
    UPLOAD_TIMEOUT_SECONDS: float = 60.0

    # WhatsApp session
    AUTH_DIR: str = "./auth"
    TRANSPORT_FACTORY: str = ""  # "package.module:callable"
    RECONNECT_DELAY_SECONDS: float = 0.0
    MAX_CONCURRENT_BATCHES: int = 8

    # Observability
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = ""

    # Blockchain
    SOLANA_RPC_URL: str = "https://api.mainnet-beta.solana.com"
    SOLANA_WS_URL: str = "wss://api.mainnet-beta.solana.com"
    RPC_TIMEOUT: float = 30.0

    # Program addresses
    LENDING_PROGRAM_ID: str = "6JjHXLheGSNvvexgzMthEcgjkcirDrGduc3HAKB2P1v2"
    DRIFT_PROGRAM_ID: str = "dRiftyHA39MWEi3m9aunc5MzRF1JYuBsbn6VPcn33UH"

    # Health computation service (runs the margin protocol SDK)
    HEALTH_API_URL: str = "http://localhost:8090"

    # APIs
    TELEGRAM_BOT_TOKEN: str = ""

    # Application
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"
    API_PORT: int = 8010

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()

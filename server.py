import uvicorn
from loguru import logger

from contatori.api.app import create_app
from contatori.config import AppConfig

config = AppConfig()
app = create_app(config)


if __name__ == "__main__":
    logger.info("Starting Agente Telefonico Contatori on port {}", config.api.port)
    uvicorn.run(app, host=config.api.host, port=config.api.port)

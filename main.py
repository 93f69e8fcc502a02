import logging

from split_g_api.config import Config
from split_g_api.split_g_api import create_app

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

config = Config.from_env()
app = create_app(config)

if __name__ == "__main__":
    from waitress import serve
    serve(app, host="0.0.0.0", port=config.port)

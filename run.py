# run.py
from descuentosya.config import Config
from descuentosya.main import create_app

app = create_app()

if __name__ == "__main__":
    app.run(
        debug=Config.DEBUG,
        host=Config.FLASK_RUN_HOST,
        port=Config.FLASK_RUN_PORT,
    )

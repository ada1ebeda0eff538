#setup: python -m venv .venv
#setup: source .venv/bin/activate   # (windows: .venv\Scripts\activate)
#setup: pip install -U pip -e ".[test]"
#setup: flask --app invoice_split.wsgi run --port 5000 --debug

from invoice_split.app import create_app
from invoice_split.config import load_settings

settings = load_settings()
app = create_app(settings)


if __name__ == "__main__":
    app.run(port=settings.port, debug=True)

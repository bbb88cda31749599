# codescope/main.py
from codescope.cli import app

if __name__ == "__main__":
    app()

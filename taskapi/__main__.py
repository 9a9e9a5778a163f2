"""
taskapi/__main__.py — `python -m taskapi` runs the server
"""
from taskapi.main import main

if __name__ == "__main__":
    main()

# app.py  (entry point)
from repairhub.main import app as app  # FastAPI instance from repairhub/main.py

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("repairhub.app:app", host="127.0.0.1", port=8000, reload=True)

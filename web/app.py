from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from deckscout.config import (
    DEFAULT_DB_PATH,
    KEY_BATTLES_DATA,
    KEY_CARDS_TEXT,
    KEY_FINAL_TEXT,
    normalize_tag,
)
from deckscout.database import SessionStore
from deckscout.pagination import load_checkpoint

app = FastAPI()


def _db_path() -> str:
    return os.environ.get("DECKSCOUT_DB_PATH", DEFAULT_DB_PATH)


def _open_store(tag: str) -> SessionStore:
    clean = normalize_tag(tag)
    if not clean:
        raise HTTPException(status_code=400, detail="tag is required")
    return SessionStore(_db_path(), namespace=clean)


def _stored_report(tag: str) -> str:
    store = _open_store(tag)
    try:
        report = store.get(KEY_FINAL_TEXT)
    finally:
        store.close()
    if not report:
        raise HTTPException(status_code=404, detail=f"No finished report for #{normalize_tag(tag)}")
    return report


@app.get("/api/report/{tag}")
async def report_json(tag: str) -> dict:
    try:
        report = _stored_report(tag)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load report: {str(e)}")
    return {"tag": normalize_tag(tag), "report": report}


@app.get("/report/{tag}", response_class=PlainTextResponse)
async def report_text(tag: str) -> str:
    try:
        return _stored_report(tag)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load report: {str(e)}")


@app.get("/api/flow-state/{tag}")
async def flow_state(tag: str) -> dict:
    store = _open_store(tag)
    try:
        state = load_checkpoint(store)
        return {
            "tag": store.namespace,
            "stage": state.stage.value,
            "battles": len(state.records),
            "pages_visited": state.pages_visited,
            "next_page": state.continuation,
            "origin": state.origin_url,
            "updated_at": state.updated_at,
            "has_cards": bool(store.get(KEY_CARDS_TEXT)),
            "has_report": bool(store.get(KEY_FINAL_TEXT)),
            "has_battle_snapshot": store.get(KEY_BATTLES_DATA) is not None,
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to load flow state: {str(e)}")
    finally:
        store.close()


@app.post("/api/flow/reset/{tag}")
async def reset_flow(tag: str) -> dict:
    store = _open_store(tag)
    try:
        store.clear()
        return {"tag": store.namespace, "reset": True}
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to reset flow: {str(e)}")
    finally:
        store.close()


if __name__ == "__main__":
    import uvicorn

    print("Starting DeckScout report server...")
    print("Open http://localhost:5000/api/flow-state/<TAG> in your browser")
    uvicorn.run(app, host="127.0.0.1", port=5000)

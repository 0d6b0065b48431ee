from fastapi import FastAPI, HTTPException, Request
import os

app = FastAPI(title="Mock ERP Server", version="1.0.0")
# MOCK_ERP_MODE=error makes every sync fail with 503 to exercise client retries
MODE = os.getenv("MOCK_ERP_MODE", "ok")
RECEIVED = []

@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/mock-erp/transactions")
async def receive_transactions(request: Request):
    if MODE == "error":
        raise HTTPException(status_code=503, detail="erp unavailable")
    payload = await request.json()
    batch = payload.get("transactions", [])
    RECEIVED.extend(batch)
    return {"accepted": len(batch)}

@app.get("/mock-erp/transactions")
def list_transactions(): return {"transactions": RECEIVED}

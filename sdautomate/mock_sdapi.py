from __future__ import annotations
import base64, io, json, os, random, threading, time
from typing import Dict, Any
from fastapi import FastAPI, Body
from PIL import Image, ImageDraw

# Seconds one sampling step takes; 0 makes txt2img return immediately.
STEP_SECONDS = float(os.getenv("SD_MOCK_STEP_SECONDS", "0.05"))

app = FastAPI(title="SD Mock API")

_lock = threading.Lock()
_state: Dict[str, Any] = {"job": "", "started": 0.0, "steps": 0, "job_count": 0}


def _card(prompt: str, w: int, h: int) -> str:
    img = Image.new("RGB", (w, h), (random.randint(64, 192), 128, random.randint(64, 192)))
    d = ImageDraw.Draw(img)
    text = (prompt[:80] + "…") if len(prompt) > 80 else prompt
    d.text((16, 16), f"MOCK\n{text}", fill=(255, 255, 255))
    buf = io.BytesIO(); img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")


@app.post("/sdapi/v1/txt2img")
def txt2img(payload: Dict[str, Any] = Body(default={})):
    prompt = (payload.get("prompt") or "mock").strip()
    w = int(payload.get("width") or 512)
    h = int(payload.get("height") or 512)
    steps = int(payload.get("steps") or 20)
    n_iter = max(1, int(payload.get("n_iter") or 1))
    batch = max(1, int(payload.get("batch_size") or 1))
    seed = int(payload.get("seed", -1))
    if seed < 0:
        seed = random.randrange(1_000_000_000)

    with _lock:
        _state.update(job=f"job({n_iter})", started=time.monotonic(), steps=steps, job_count=n_iter)
    try:
        time.sleep(STEP_SECONDS * steps * n_iter)
        images = [_card(prompt, w, h) for _ in range(batch * n_iter)]
    finally:
        with _lock:
            _state.update(job="", started=0.0, steps=0, job_count=0)

    info = {"seed": seed, "all_seeds": [seed + i for i in range(len(images))], "prompt": prompt}
    return {"images": images, "parameters": payload, "info": json.dumps(info)}


@app.get("/sdapi/v1/progress")
def progress():
    with _lock:
        st = dict(_state)
    if not st["job"]:
        return {"progress": 0.0, "eta_relative": 0.0,
                "state": {"skipped": False, "interrupted": False, "job": "", "job_count": 0,
                          "job_no": 0, "sampling_step": 0, "sampling_steps": 0}}

    per_iter = max(STEP_SECONDS * st["steps"], 1e-6)
    total = per_iter * st["job_count"]
    elapsed = min(time.monotonic() - st["started"], total)
    job_no = min(int(elapsed // per_iter), st["job_count"] - 1)
    frac = min(1.0, (elapsed - job_no * per_iter) / per_iter)
    return {
        "progress": round(frac, 3),
        "eta_relative": round(total - elapsed, 2),
        "state": {"skipped": False, "interrupted": False, "job": st["job"],
                  "job_count": st["job_count"], "job_no": job_no,
                  "sampling_step": int(frac * st["steps"]), "sampling_steps": st["steps"]},
    }


def main():
    import uvicorn
    port = int(os.getenv("SD_MOCK_PORT", "7860"))
    uvicorn.run(app, host="127.0.0.1", port=port)


if __name__ == "__main__":
    main()
